from .backup.manager import BackupManager
from .config import ArtifactConfig, BackupConfig, StoreConfig

__version__ = "0.3.0"
__author__ = "IMAN App Team"
__url__ = "https://github.com/iman-app/iman-backup"

__all__ = ["BackupManager", "BackupConfig", "StoreConfig", "ArtifactConfig"]
