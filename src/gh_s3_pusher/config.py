"""
Configuration helpers and defaults.

Centralize tunables to avoid magic numbers in code/tests.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_TRIGGER_PHRASE = "deeplock"
DEFAULT_EVENT_TYPE_ATTRIBUTE = "X-Github-Event"
DEFAULT_EVENT_TYPE = "issue_comment"
DEFAULT_GITHUB_API_URL = "https://api.github.com"


def _env(name: str, default: str | None = None) -> str | None:
    v = os.getenv(name)
    return v if v is not None else default


def _flag(name: str, default: str) -> bool:
    return (_env(name, default) or default).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class Settings:
    encrypted_token: str | None
    s3_bucket: str | None
    s3_file_key: str | None
    github_user: str | None
    github_repo: str | None
    trigger_phrase: str
    event_type_attribute: str
    event_type: str
    github_api_url: str
    archive_format: str
    staging_dir: str
    http_timeout_seconds: int
    deadline_margin_ms: int
    keep_staged_archive: bool


def load_settings() -> Settings:
    """Load settings from environment with safe defaults for local tests."""

    return Settings(
        encrypted_token=_env("GIT_TOKEN"),
        s3_bucket=_env("S3_BUCKET"),
        s3_file_key=_env("S3_FILE_KEY"),
        github_user=_env("GITHUB_USER"),
        github_repo=_env("GITHUB_REPO"),
        trigger_phrase=_env("TRIGGER_PHRASE", DEFAULT_TRIGGER_PHRASE) or DEFAULT_TRIGGER_PHRASE,
        event_type_attribute=_env("EVENT_TYPE_ATTRIBUTE", DEFAULT_EVENT_TYPE_ATTRIBUTE)
        or DEFAULT_EVENT_TYPE_ATTRIBUTE,
        event_type=_env("EVENT_TYPE", DEFAULT_EVENT_TYPE) or DEFAULT_EVENT_TYPE,
        github_api_url=_env("GITHUB_API_URL", DEFAULT_GITHUB_API_URL) or DEFAULT_GITHUB_API_URL,
        archive_format=_env("ARCHIVE_FORMAT", "zipball") or "zipball",
        staging_dir=_env("STAGING_DIR", "/tmp") or "/tmp",  # nosec B108
        http_timeout_seconds=int(_env("HTTP_TIMEOUT_SECONDS", "10") or 10),
        deadline_margin_ms=int(_env("DEADLINE_MARGIN_MS", "1000") or 1000),
        keep_staged_archive=_flag("KEEP_STAGED_ARCHIVE", "false"),
    )
