import hashlib
import logging
import os
import re
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger("iman-backup")


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach an app-managed stdout handler to the package logger.

    The handler is replaced on every call so repeated CLI runs in one process
    don't duplicate output. Set DISABLE_APP_LOGGING=true to leave handler
    configuration to the host process instead.
    """
    level_name = (level or os.getenv("IMAN_BACKUP_LOG_LEVEL", "INFO")).upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    if os.getenv("DISABLE_APP_LOGGING", "false").lower() == "true":
        logger.handlers.clear()
        logger.propagate = True
        return logger

    logger.propagate = False
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - [%(name)s] - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    logger.addHandler(console_handler)
    return logger


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp()) * 1000 + moment.microsecond // 1000


def from_epoch_ms(value: int) -> datetime:
    return datetime.fromtimestamp(value // 1000, timezone.utc) + timedelta(milliseconds=value % 1000)


def is_digit_string(value) -> bool:
    """True for strings such as "1700000000000", the way node-pg renders BIGINT."""
    return isinstance(value, str) and re.fullmatch(r"-?[0-9]+", value.strip()) is not None


def parse_epoch_ms(value: Union[int, str]) -> int:
    """Epoch milliseconds from an int, a digit string or an ISO-8601 timestamp.

    Naive timestamps are taken as UTC.

    Raises:
        ValueError: the value is none of those
    """
    if isinstance(value, bool):
        raise ValueError(f"Unsupported timestamp {value!r}")
    if isinstance(value, int):
        return value
    if is_digit_string(value):
        return int(value)
    if isinstance(value, str):
        moment = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return to_epoch_ms(moment)
    raise ValueError(f"Unsupported timestamp {value!r}")


def to_iso(moment: datetime) -> str:
    """ISO-8601 with millisecond precision and a trailing Z."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def compute_checksum(data: bytes) -> str:
    """Compute SHA-256 checksum of serialized artifact bytes.

    Returns:
        SHA-256 checksum as hex string with 'sha256:' prefix
    """
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


def atomic_write_bytes(path: Path, data: bytes) -> int:
    """Write bytes to path so readers only ever see the old or the new file.

    The data goes to a temporary file in the target directory, is flushed and
    fsynced, then renamed over the destination with os.replace.

    Returns:
        Number of bytes written
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    return len(data)
