"""
Minimal GitHub REST client (v3) using stdlib urllib.
"""

from __future__ import annotations

import base64
import json
import urllib.parse
import urllib.request
from typing import Any, BinaryIO

USER_AGENT = "GitHubS3Pusher/1.0"


class GitHubClient:
    def __init__(self, base_url: str, token: str, timeout: int = 10) -> None:
        self.base_api = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    # ----- Helpers -----
    def _url(self, path: str) -> str:
        return self.base_api + path

    def _headers(self, auth: str) -> dict[str, str]:
        return {
            "User-Agent": USER_AGENT,
            "Accept": "application/vnd.github+json",
            "Authorization": auth,
        }

    def _get_json(self, url: str) -> Any:
        req = urllib.request.Request(url, headers=self._headers(f"token {self.token}"))
        with urllib.request.urlopen(req, timeout=self.timeout) as resp:  # nosec B310
            data = resp.read()
        return json.loads(data.decode("utf-8"))

    # ----- Public APIs -----
    def get_pull_request(self, owner: str, repo: str, number: int) -> dict[str, Any]:
        url = self._url(
            f"/repos/{urllib.parse.quote(owner)}/{urllib.parse.quote(repo)}/pulls/{int(number)}"
        )
        return self._get_json(url)

    def open_archive(
        self, full_name: str, ref: str, archive_format: str = "zipball", user: str | None = None
    ) -> BinaryIO:
        """Open a streaming download of the repository archive at `ref`.

        Authenticates with basic auth `user:token` when a user is given. GitHub answers
        with a redirect to codeload, which urllib follows. Caller closes the stream.
        """
        url = self._url(
            f"/repos/{urllib.parse.quote(full_name)}/{archive_format}/{urllib.parse.quote(ref)}"
        )
        if user:
            basic = base64.b64encode(f"{user}:{self.token}".encode()).decode("ascii")
            auth = f"Basic {basic}"
        else:
            auth = f"token {self.token}"
        req = urllib.request.Request(url, headers=self._headers(auth))
        return urllib.request.urlopen(req, timeout=self.timeout)  # nosec B310
