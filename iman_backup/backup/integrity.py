"""Minimal contract check over the live users table.

Only one field is checked: every document must be a JSON object with a
numeric top-level totalPoints. Nothing else in the document is validated,
so a record reported as valid may still carry bad data elsewhere.
"""

from typing import Any, Optional

from .._utils import logger
from ..base import BaseUserStore
from ..schemas import is_points_value
from .codec import parse_payload
from .models import IntegrityIssue, IntegrityReport, IssueReason


REQUIRED_FIELD = "totalPoints"


def classify_record(record_id: int, data: Any) -> Optional[IntegrityIssue]:
    """Return the record's issue, or None when it passes."""
    try:
        payload = parse_payload(data)
    except (TypeError, ValueError) as e:
        return IntegrityIssue(
            record_id=record_id,
            reason=IssueReason.MALFORMED_PAYLOAD,
            message=f"User {record_id}: malformed JSON - {e}",
        )

    if REQUIRED_FIELD not in payload:
        return IntegrityIssue(
            record_id=record_id,
            reason=IssueReason.MISSING_REQUIRED_FIELD,
            message=f"User {record_id}: missing {REQUIRED_FIELD}",
        )

    value = payload[REQUIRED_FIELD]
    if not is_points_value(value):
        return IntegrityIssue(
            record_id=record_id,
            reason=IssueReason.WRONG_FIELD_TYPE,
            message=f"User {record_id}: {REQUIRED_FIELD} has type {type(value).__name__}, expected a number",
        )
    return None


class IntegrityScanner:
    """Classify every live record as valid or invalid. Read-only."""

    def __init__(self, store: BaseUserStore):
        self.store = store

    async def verify_integrity(self) -> IntegrityReport:
        """Scan the current table state.

        Raises:
            StoreConnectionError: The scan failed; no partial report is returned
        """
        rows = await self.store.scan()
        report = IntegrityReport()

        for row in rows:
            issue = classify_record(row["telegram_id"], row["data"])
            if issue is None:
                report.valid_count += 1
            else:
                report.invalid_count += 1
                report.issues.append(issue)

        logger.info(f"Integrity check: {report.valid_count} valid, {report.invalid_count} invalid")
        for issue in report.issues:
            logger.warning(f"[{issue.reason.value}] {issue.message}")
        return report
