"""Base test suites for all storage types."""

from .store_suite import BaseUserStoreTestSuite, UserStoreContract

__all__ = [
    "BaseUserStoreTestSuite",
    "UserStoreContract",
]
