"""Snapshot and registry artifacts on the local filesystem."""

import asyncio
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..base import BaseArtifactStore
from ..exceptions import ArtifactReadError, ArtifactWriteError
from .._utils import atomic_write_bytes, logger


@dataclass
class LocalArtifactStore(BaseArtifactStore):
    """Artifacts as files in one backup directory."""

    def __post_init__(self):
        self.backend_name = "local"
        self.backup_dir = Path(self.config.backup_dir).expanduser()

    def path_for(self, name: str) -> Path:
        if Path(name).name != name:
            raise ValueError(f"Artifact name must be a plain file name: {name!r}")
        return self.backup_dir / name

    async def write(self, name: str, data: bytes) -> str:
        path = self.path_for(name)
        try:
            size = await asyncio.to_thread(atomic_write_bytes, path, data)
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")
            raise ArtifactWriteError(name, e) from e
        logger.debug(f"Wrote {path} ({size:,} bytes)")
        return str(path)

    async def read(self, name: str) -> Optional[bytes]:
        path = self.path_for(name)
        if not path.exists():
            return None
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            logger.error(f"Failed to read {path}: {e}")
            raise ArtifactReadError(name, e) from e

    async def list_names(self) -> List[str]:
        if not self.backup_dir.exists():
            return []
        # Leftover temp files from an interrupted write start with a dot
        return sorted(p.name for p in self.backup_dir.iterdir() if p.is_file() and not p.name.startswith("."))

    async def health(self) -> Dict[str, Any]:
        details = {"backup_dir": str(self.backup_dir)}
        warnings: List[str] = []
        issues: List[str] = []

        if not self.backup_dir.exists():
            warnings.append(f"Backup directory {self.backup_dir} does not exist yet, it is created on first backup")
        elif not self.backup_dir.is_dir():
            issues.append(f"{self.backup_dir} is not a directory")
        elif not os.access(self.backup_dir, os.R_OK | os.W_OK):
            issues.append(f"Backup directory {self.backup_dir} is not readable and writable")

        return {"details": details, "warnings": warnings, "issues": issues}
