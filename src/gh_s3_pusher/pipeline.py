"""
Orchestrate one inbound notification: filter, resolve, fetch, publish.

`run` never raises for stage failures; it returns exactly one Outcome.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Union

from .archive import ArchiveFetcher, ArchiveJob
from .config import Settings
from .credentials import CredentialCache
from .errors import PipelineError, Timeout
from .events import InboundEnvelope, NoMatch, match_event
from .logs import log_event
from .publisher import ObjectStorePublisher, PublishResult
from .resolver import PullRequestResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Published:
    revision: str
    result: PublishResult


@dataclass(frozen=True)
class NotMatched:
    reason: str


@dataclass(frozen=True)
class Failed:
    stage: str
    reason: str
    error: PipelineError | None = None


Outcome = Union[Published, NotMatched, Failed]


class Orchestrator:
    """Sequence the stages for one envelope.

    Holds no per-run state; the CredentialCache it is given is the only thing shared
    between runs in the same process.
    """

    def __init__(
        self,
        credentials: CredentialCache,
        resolver: PullRequestResolver,
        fetcher: ArchiveFetcher,
        publisher: ObjectStorePublisher,
        *,
        trigger_phrase: str,
        event_type_attribute: str,
        event_type: str,
        keep_staged_archive: bool = False,
    ) -> None:
        self.credentials = credentials
        self.resolver = resolver
        self.fetcher = fetcher
        self.publisher = publisher
        self.trigger_phrase = trigger_phrase
        self.event_type_attribute = event_type_attribute
        self.event_type = event_type
        self.keep_staged_archive = keep_staged_archive

    @classmethod
    def from_settings(cls, settings: Settings) -> Orchestrator:
        credentials = CredentialCache(settings.encrypted_token)
        return cls(
            credentials,
            PullRequestResolver(
                credentials,
                api_url=settings.github_api_url,
                owner=settings.github_user,
                repo=settings.github_repo,
                timeout=settings.http_timeout_seconds,
            ),
            ArchiveFetcher(
                settings.staging_dir,
                api_url=settings.github_api_url,
                archive_format=settings.archive_format,
                timeout=settings.http_timeout_seconds,
            ),
            ObjectStorePublisher(settings.s3_bucket, settings.s3_file_key),
            trigger_phrase=settings.trigger_phrase,
            event_type_attribute=settings.event_type_attribute,
            event_type=settings.event_type,
            keep_staged_archive=settings.keep_staged_archive,
        )

    async def run(
        self, envelope: InboundEnvelope, *, timeout: float | None = None, rid: str | None = None
    ) -> Outcome:
        start_ts = time.time()
        try:
            outcome = await asyncio.wait_for(self._run(envelope, rid), timeout)
        except asyncio.TimeoutError:
            err = Timeout.after(timeout or 0.0)
            log_event(logger, "pipeline_timeout", level=logging.ERROR, rid=rid, reason=err.reason)
            return Failed(stage=err.stage, reason=err.reason, error=err)
        except PipelineError as e:
            log_event(
                logger,
                "pipeline_failed",
                level=logging.ERROR,
                rid=rid,
                stage=e.stage,
                reason=e.reason,
            )
            return Failed(stage=e.stage, reason=e.reason, error=e)

        if isinstance(outcome, Published):
            log_event(
                logger,
                "ok",
                rid=rid,
                sha=outcome.revision,
                destination=outcome.result.destination,
                ms_total=int((time.time() - start_ts) * 1000),
            )
        return outcome

    async def _run(self, envelope: InboundEnvelope, rid: str | None) -> Outcome:
        # Prime once per process; later runs hit the cache.
        await self.credentials.get()

        verdict = match_event(
            envelope,
            trigger_phrase=self.trigger_phrase,
            event_type_attribute=self.event_type_attribute,
            event_type=self.event_type,
        )
        if isinstance(verdict, NoMatch):
            fields: dict[str, Any] = {"rid": rid, "reason": verdict.reason}
            if verdict.error is not None:
                fields["error"] = str(verdict.error)
            fields["event_type"] = envelope.attributes.get(self.event_type_attribute)
            log_event(logger, "ignored", **fields)
            return NotMatched(reason=verdict.reason)

        log_event(
            logger,
            "triggered",
            rid=rid,
            repo=verdict.repository,
            number=verdict.number,
        )
        revision = await self.resolver.resolve(verdict)
        credential = await self.credentials.get()
        job = await self.fetcher.fetch(verdict, revision, credential)
        try:
            result = await self.publisher.publish(job)
        finally:
            if not self.keep_staged_archive:
                _discard(job)
        return Published(revision=revision, result=result)


def _discard(job: ArchiveJob) -> None:
    try:
        job.discard()
    except OSError as e:
        log_event(
            logger,
            "staging_cleanup_error",
            level=logging.WARNING,
            path=str(job.path),
            error=str(e),
        )
