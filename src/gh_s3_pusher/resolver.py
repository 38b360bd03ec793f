"""
Resolve the head revision of the pull request named by a trigger.
"""

from __future__ import annotations

import asyncio
import logging
import time

from .credentials import CredentialCache
from .errors import PullRequestLookupFailed
from .events import Trigger
from .github import GitHubClient
from .logs import log_event

logger = logging.getLogger(__name__)


class PullRequestResolver:
    """Look up pull requests in one fixed repository.

    The lookup is scoped to the configured `owner`/`repo`, not to the repository named
    in the webhook payload.
    """

    def __init__(
        self,
        credentials: CredentialCache,
        *,
        api_url: str,
        owner: str | None,
        repo: str | None,
        timeout: int = 10,
    ) -> None:
        self.credentials = credentials
        self.api_url = api_url
        self.owner = owner
        self.repo = repo
        self.timeout = timeout

    async def resolve(self, trigger: Trigger) -> str:
        # CredentialUnavailable propagates before any request is made
        token = await self.credentials.get()
        if not self.owner or not self.repo:
            raise PullRequestLookupFailed("GITHUB_USER/GITHUB_REPO are not configured")

        client = GitHubClient(self.api_url, token, timeout=self.timeout)
        t0 = time.time()
        try:
            pr = await asyncio.to_thread(
                client.get_pull_request, self.owner, self.repo, trigger.number
            )
            sha = (pr.get("head") or {}).get("sha")
        except Exception as e:
            logger.exception("Pull request lookup failed")
            log_event(
                logger,
                "pr_lookup_error",
                level=logging.ERROR,
                number=trigger.number,
                error=str(e),
            )
            raise PullRequestLookupFailed(
                f"lookup of {self.owner}/{self.repo}#{trigger.number} failed: {e}", cause=e
            ) from e
        if not isinstance(sha, str) or not sha:
            raise PullRequestLookupFailed(
                f"{self.owner}/{self.repo}#{trigger.number} has no head sha"
            )

        log_event(
            logger,
            "pr_resolved",
            number=trigger.number,
            sha=sha,
            ms=int((time.time() - t0) * 1000),
        )
        return sha
