"""
Upload a staged archive to S3 under the fixed destination key.
"""

from __future__ import annotations

import asyncio
import importlib
import logging
import time
from dataclasses import dataclass
from typing import Any

from .archive import ArchiveJob
from .errors import PublishFailed, StagingReadFailed
from .logs import log_event

logger = logging.getLogger(__name__)


def _boto3():
    # Allow tests to monkeypatch module-level `boto3` symbol.
    return globals().get("boto3") or importlib.import_module("boto3")


@dataclass(frozen=True)
class PublishResult:
    bucket: str
    key: str
    size: int

    @property
    def destination(self) -> str:
        return f"s3://{self.bucket}/{self.key}"


class ObjectStorePublisher:
    """Write every archive to the same object; each success replaces the previous one."""

    def __init__(self, bucket: str | None, key: str | None, s3_client: Any = None) -> None:
        self.bucket = bucket
        self.key = key
        self._s3 = s3_client

    async def publish(self, job: ArchiveJob) -> PublishResult:
        if not self.bucket or not self.key:
            raise PublishFailed(
                "S3_BUCKET/S3_FILE_KEY are not configured", bucket=self.bucket, key=self.key
            )
        try:
            data = await asyncio.to_thread(job.path.read_bytes)
        except OSError as e:
            logger.exception("Staged archive read failed")
            raise StagingReadFailed(f"cannot read staged archive {job.path}: {e}", cause=e) from e

        if self._s3 is None:
            self._s3 = _boto3().client("s3")
        t0 = time.time()
        try:
            await asyncio.to_thread(
                self._s3.put_object, Bucket=self.bucket, Key=self.key, Body=data
            )
        except Exception as e:
            logger.exception("S3 put failed")
            log_event(
                logger,
                "publish_error",
                level=logging.ERROR,
                bucket=self.bucket,
                key=self.key,
                error=str(e),
            )
            raise PublishFailed(
                f"couldn't store {job.path} in bucket {self.bucket}: {e}",
                bucket=self.bucket,
                key=self.key,
                cause=e,
            ) from e

        result = PublishResult(bucket=self.bucket, key=self.key, size=len(data))
        log_event(
            logger,
            "published",
            source=str(job.path),
            destination=result.destination,
            bytes=result.size,
            ms=int((time.time() - t0) * 1000),
        )
        return result
