"""Snapshot and registry artifacts in an S3-compatible bucket."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from ..base import BaseArtifactStore
from ..exceptions import ArtifactReadError, ArtifactWriteError
from .._utils import logger


_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


@dataclass
class S3ArtifactStore(BaseArtifactStore):
    """Artifacts as objects under a key prefix.

    A PutObject either lands completely or not at all, so readers never see a
    half-written snapshot.
    """

    def __post_init__(self):
        self.backend_name = "s3"
        self.bucket = self.config.s3_bucket
        self.prefix = self.config.s3_prefix
        self.session = aioboto3.Session()

    def _key(self, name: str) -> str:
        return f"{self.prefix}{name}"

    def _client(self):
        return self.session.client(
            "s3",
            region_name=self.config.s3_region,
            endpoint_url=self.config.s3_endpoint_url,
        )

    async def write(self, name: str, data: bytes) -> str:
        key = self._key(name)
        try:
            async with self._client() as s3:
                await s3.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=data,
                    ContentType="application/json",
                )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload s3://{self.bucket}/{key}: {e}")
            raise ArtifactWriteError(name, e) from e
        logger.debug(f"Uploaded s3://{self.bucket}/{key} ({len(data):,} bytes)")
        return f"s3://{self.bucket}/{key}"

    async def read(self, name: str) -> Optional[bytes]:
        key = self._key(name)
        try:
            async with self._client() as s3:
                response = await s3.get_object(Bucket=self.bucket, Key=key)
                async with response["Body"] as stream:
                    return await stream.read()
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _MISSING_CODES:
                return None
            logger.error(f"Failed to download s3://{self.bucket}/{key}: {e}")
            raise ArtifactReadError(name, e) from e
        except BotoCoreError as e:
            logger.error(f"Failed to download s3://{self.bucket}/{key}: {e}")
            raise ArtifactReadError(name, e) from e

    async def list_names(self) -> List[str]:
        names = []
        async with self._client() as s3:
            paginator = s3.get_paginator("list_objects_v2")
            async for page in paginator.paginate(Bucket=self.bucket, Prefix=self.prefix):
                for obj in page.get("Contents", []):
                    name = obj["Key"][len(self.prefix):]
                    if name and "/" not in name:
                        names.append(name)
        return sorted(names)

    async def health(self) -> Dict[str, Any]:
        details = {"bucket": str(self.bucket), "prefix": self.prefix}
        issues: List[str] = []
        try:
            async with self._client() as s3:
                await s3.head_bucket(Bucket=self.bucket)
        except (ClientError, BotoCoreError) as e:
            issues.append(f"Bucket {self.bucket} is not reachable: {e}")
        return {"details": details, "warnings": [], "issues": issues}
