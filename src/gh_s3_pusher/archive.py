"""
Stream a repository archive into local staging storage.

The archive is written to `<revision>.zip.part`, flushed and fsynced, closed, and only
then renamed to `<revision>.zip`. A failed transfer never leaves a `.zip` behind.
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path

from .errors import ArchiveFetchFailed
from .events import Trigger
from .github import GitHubClient
from .logs import log_event

logger = logging.getLogger(__name__)

STAGED = "staged"

CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class ArchiveJob:
    """A fully written archive in staging storage.

    Failed fetches raise ArchiveFetchFailed, so a returned job is always STAGED.
    """

    revision: str
    path: Path
    status: str = STAGED

    def discard(self) -> None:
        self.path.unlink(missing_ok=True)


def staging_path(staging_dir: str | Path, revision: str) -> Path:
    return Path(staging_dir) / f"{revision}.zip"


class ArchiveFetcher:
    def __init__(
        self,
        staging_dir: str | Path,
        *,
        api_url: str,
        archive_format: str = "zipball",
        timeout: int = 10,
    ) -> None:
        self.staging_dir = Path(staging_dir)
        self.api_url = api_url
        self.archive_format = archive_format
        self.timeout = timeout

    async def fetch(self, trigger: Trigger, revision: str, credential: str) -> ArchiveJob:
        target = staging_path(self.staging_dir, revision)
        abort = threading.Event()
        t0 = time.time()
        try:
            size = await asyncio.to_thread(
                self._stream_to_file, trigger, revision, credential, target, abort
            )
        except asyncio.CancelledError:
            # the worker thread stops at its next chunk and removes the .part file
            abort.set()
            log_event(
                logger,
                "archive_fetch_cancelled",
                level=logging.WARNING,
                repo=trigger.repository,
                sha=revision,
            )
            raise
        except Exception as e:
            logger.exception("Archive fetch failed")
            log_event(
                logger,
                "archive_fetch_error",
                level=logging.ERROR,
                repo=trigger.repository,
                sha=revision,
                error=str(e),
            )
            raise ArchiveFetchFailed(
                f"archive of {trigger.repository}@{revision} failed: {e}", cause=e
            ) from e

        log_event(
            logger,
            "archive_staged",
            repo=trigger.repository,
            sha=revision,
            path=str(target),
            bytes=size,
            ms=int((time.time() - t0) * 1000),
        )
        return ArchiveJob(revision=revision, path=target)

    def _stream_to_file(
        self,
        trigger: Trigger,
        revision: str,
        credential: str,
        target: Path,
        abort: threading.Event,
    ) -> int:
        self.staging_dir.mkdir(parents=True, exist_ok=True)
        client = GitHubClient(self.api_url, credential, timeout=self.timeout)
        part = target.with_name(target.name + ".part")
        try:
            with client.open_archive(
                trigger.repository, revision, self.archive_format, user=trigger.owner
            ) as src, open(part, "wb") as dst:
                while True:
                    if abort.is_set():
                        raise InterruptedError("archive transfer aborted")
                    chunk = src.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    dst.write(chunk)
                dst.flush()
                os.fsync(dst.fileno())
            if abort.is_set():
                raise InterruptedError("archive transfer aborted")
            # both streams are closed here; only now is the archive visible under its final name
            os.replace(part, target)
        except BaseException:
            part.unlink(missing_ok=True)
            raise
        return target.stat().st_size
