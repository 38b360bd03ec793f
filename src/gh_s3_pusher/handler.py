"""
AWS Lambda handler for GitHub webhook (via SNS) -> archive on S3.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Coroutine, TypeVar

from .config import Settings, load_settings
from .errors import InvocationFailed
from .events import envelope_from_sns
from .logs import configure_logging, request_id
from .pipeline import NotMatched, Orchestrator, Published

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Reused across invocations served by the same process; holds the decrypted token.
_ORCHESTRATOR: Orchestrator | None = None
_ORCHESTRATOR_SETTINGS: Settings | None = None


def get_orchestrator(settings: Settings) -> Orchestrator:
    global _ORCHESTRATOR, _ORCHESTRATOR_SETTINGS
    if _ORCHESTRATOR is None or _ORCHESTRATOR_SETTINGS != settings:
        _ORCHESTRATOR = Orchestrator.from_settings(settings)
        _ORCHESTRATOR_SETTINGS = settings
    return _ORCHESTRATOR


def reset_orchestrator() -> None:
    global _ORCHESTRATOR, _ORCHESTRATOR_SETTINGS
    _ORCHESTRATOR = None
    _ORCHESTRATOR_SETTINGS = None


def _deadline(context: Any, settings: Settings) -> float | None:
    remaining = getattr(context, "get_remaining_time_in_millis", None)
    if not callable(remaining):
        return None
    ms = int(remaining()) - settings.deadline_margin_ms
    return max(ms, 0) / 1000.0


def _run_to_completion(coro: Coroutine[Any, Any, T]) -> T:
    """Run `coro` on a fresh loop without joining worker threads on the way out.

    A transfer abandoned at the deadline finishes (or aborts) in the background
    instead of holding the invocation open.
    """
    loop = asyncio.new_event_loop()
    executor = ThreadPoolExecutor(thread_name_prefix="gh-s3-pusher")
    loop.set_default_executor(executor)
    try:
        return loop.run_until_complete(coro)
    finally:
        pending = asyncio.all_tasks(loop)
        for task in pending:
            task.cancel()
        if pending:
            loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        loop.run_until_complete(loop.shutdown_asyncgens())
        executor.shutdown(wait=False)
        loop.close()


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    configure_logging()
    settings = load_settings()
    orchestrator = get_orchestrator(settings)

    envelope = envelope_from_sns(event)
    outcome = _run_to_completion(
        orchestrator.run(envelope, timeout=_deadline(context, settings), rid=request_id(context))
    )

    if isinstance(outcome, Published):
        return {
            "result": "ok",
            "bucket": outcome.result.bucket,
            "key": outcome.result.key,
            "revision": outcome.revision,
        }
    if isinstance(outcome, NotMatched):
        return {"result": "ignored", "reason": outcome.reason}
    raise InvocationFailed(outcome.reason)
