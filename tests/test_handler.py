import json
import time
import types

import pytest

import gh_s3_pusher.archive as archive_mod
import gh_s3_pusher.credentials as creds
import gh_s3_pusher.handler as h
import gh_s3_pusher.publisher as pub
import gh_s3_pusher.resolver as resolver_mod
from gh_s3_pusher.errors import InvocationFailed

from .fakes import CIPHERTEXT, BotoModule, FakeGitHub, FakeKMS, FakeS3, wait_for_empty_dir


def _sns_event(payload, event_type="issue_comment"):
    return {
        "Records": [
            {
                "EventSource": "aws:sns",
                "Sns": {
                    "Message": json.dumps(payload),
                    "MessageAttributes": {
                        "X-Github-Event": {"Type": "String", "Value": event_type},
                    },
                },
            }
        ]
    }


PAYLOAD = {
    "action": "created",
    "comment": {"body": "deeplock"},
    "issue": {"number": 42, "state": "open"},
    "repository": {"full_name": "acme/widgets"},
}

CONTEXT = types.SimpleNamespace(
    aws_request_id="req-1", get_remaining_time_in_millis=lambda: 30000
)


@pytest.fixture
def boto(monkeypatch, tmp_path):
    monkeypatch.setenv("GIT_TOKEN", CIPHERTEXT)
    monkeypatch.setenv("S3_BUCKET", "snapshots")
    monkeypatch.setenv("S3_FILE_KEY", "latest.zip")
    monkeypatch.setenv("GITHUB_USER", "acme")
    monkeypatch.setenv("GITHUB_REPO", "widgets")
    monkeypatch.setenv("STAGING_DIR", str(tmp_path))

    module = BotoModule(kms=FakeKMS(), s3=FakeS3())
    monkeypatch.setitem(creds.__dict__, "boto3", module)
    monkeypatch.setitem(pub.__dict__, "boto3", module)
    FakeGitHub.reset()
    monkeypatch.setitem(resolver_mod.__dict__, "GitHubClient", FakeGitHub)
    monkeypatch.setitem(archive_mod.__dict__, "GitHubClient", FakeGitHub)
    h.reset_orchestrator()
    yield module
    h.reset_orchestrator()


def test_lambda_handler_happy_path(boto):
    res = h.lambda_handler(_sns_event(PAYLOAD), CONTEXT)

    assert res == {"result": "ok", "bucket": "snapshots", "key": "latest.zip", "revision": "abc123"}
    assert boto.s3.puts == [("snapshots", "latest.zip", FakeGitHub.archive)]


def test_lambda_handler_ignores_other_events(boto):
    res = h.lambda_handler(_sns_event(PAYLOAD, event_type="push"), CONTEXT)
    assert res == {"result": "ignored", "reason": "not_issue_comment"}
    assert boto.s3.puts == []


def test_token_decrypted_once_per_process(boto):
    h.lambda_handler(_sns_event(PAYLOAD), CONTEXT)
    h.lambda_handler(_sns_event(PAYLOAD), CONTEXT)
    h.lambda_handler(_sns_event(PAYLOAD, event_type="push"), None)
    assert boto.kms.calls == 1
    assert len(boto.s3.puts) == 2


def test_failure_raises_with_stage(boto):
    FakeGitHub.lookup_error = OSError("Not Found")
    with pytest.raises(InvocationFailed, match="PullRequestLookupFailed"):
        h.lambda_handler(_sns_event(PAYLOAD), CONTEXT)
    assert boto.s3.puts == []


def test_exhausted_deadline_reports_timeout(boto):
    ctx = types.SimpleNamespace(aws_request_id="req-2", get_remaining_time_in_millis=lambda: 500)
    with pytest.raises(InvocationFailed, match="Timeout"):
        h.lambda_handler(_sns_event(PAYLOAD), ctx)


def test_slow_archive_times_out_on_schedule(boto, tmp_path):
    # the stream would take ~3s; the deadline is 1500ms - 1000ms margin = 0.5s
    FakeGitHub.slow_archive = True
    ctx = types.SimpleNamespace(aws_request_id="req-3", get_remaining_time_in_millis=lambda: 1500)

    t0 = time.time()
    with pytest.raises(InvocationFailed, match="Timeout"):
        h.lambda_handler(_sns_event(PAYLOAD), ctx)
    elapsed = time.time() - t0

    assert elapsed < 1.5
    assert boto.s3.puts == []
    assert wait_for_empty_dir(tmp_path) == []
