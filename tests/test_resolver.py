import asyncio
import logging
import urllib.error

import pytest

import gh_s3_pusher.resolver as r
from gh_s3_pusher.credentials import CredentialCache
from gh_s3_pusher.errors import CredentialUnavailable, PullRequestLookupFailed
from gh_s3_pusher.events import Trigger

from .fakes import CIPHERTEXT, FakeGitHub, FakeKMS

TRIGGER = Trigger(repository="someone-else/fork", number=42, owner="someone-else")


@pytest.fixture(autouse=True)
def fake_github(monkeypatch):
    FakeGitHub.reset()
    monkeypatch.setitem(r.__dict__, "GitHubClient", FakeGitHub)
    return FakeGitHub


def _resolver(kms=None, **kw):
    cache = CredentialCache(CIPHERTEXT, kms_client=kms or FakeKMS())
    opts = {"api_url": "https://api.github.com", "owner": "acme", "repo": "widgets"}
    opts.update(kw)
    return r.PullRequestResolver(cache, **opts)


def test_resolves_head_sha_in_configured_repo():
    sha = asyncio.run(_resolver().resolve(TRIGGER))
    assert sha == "abc123"
    # fixed owner/repo, not the repository that sent the webhook
    assert FakeGitHub.calls == [("pull", "acme", "widgets", 42, "ghp_token")]


def test_lookup_failure_is_tagged():
    FakeGitHub.lookup_error = urllib.error.URLError("no route")
    with pytest.raises(PullRequestLookupFailed) as ei:
        asyncio.run(_resolver().resolve(TRIGGER))
    assert isinstance(ei.value.cause, urllib.error.URLError)
    assert ei.value.reason.startswith("PullRequestLookupFailed:")


def test_missing_head_sha():
    FakeGitHub.head_sha = None
    with pytest.raises(PullRequestLookupFailed):
        asyncio.run(_resolver().resolve(TRIGGER))


def test_credential_failure_happens_before_any_request():
    with pytest.raises(CredentialUnavailable):
        asyncio.run(_resolver(kms=FakeKMS(fail=True)).resolve(TRIGGER))
    assert FakeGitHub.calls == []


def test_unconfigured_repository():
    with pytest.raises(PullRequestLookupFailed):
        asyncio.run(_resolver(repo=None).resolve(TRIGGER))
    assert FakeGitHub.calls == []


def test_lookup_failure_logs_traceback(caplog):
    FakeGitHub.lookup_error = OSError("403 Forbidden")
    with caplog.at_level(logging.ERROR, logger="gh_s3_pusher"):
        with pytest.raises(PullRequestLookupFailed):
            asyncio.run(_resolver().resolve(TRIGGER))
    assert any(r.exc_info and "403 Forbidden" in str(r.exc_info[1]) for r in caplog.records)
