"""
Process-wide cache for the decrypted GitHub token.

The ciphertext is decrypted with KMS at most once per process. Concurrent first
callers on one event loop share a single in-flight decrypt and its result; callers
on other loops (other threads) serialize on a lock and reuse the cached value.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import importlib
import logging
import threading
import time
from typing import Any

from .errors import CredentialUnavailable
from .logs import log_event

logger = logging.getLogger(__name__)


def _boto3():
    # Allow tests to monkeypatch module-level `boto3` symbol.
    return globals().get("boto3") or importlib.import_module("boto3")


class CredentialCache:
    def __init__(self, ciphertext: str | None, kms_client: Any = None) -> None:
        self._ciphertext = ciphertext
        self._kms = kms_client
        self._plaintext: str | None = None
        self._inflight: asyncio.Task[str] | None = None
        self._lock = threading.Lock()

    @property
    def cached(self) -> bool:
        return self._plaintext is not None

    async def get(self) -> str:
        """Return the plaintext token, decrypting it on first use.

        A failed decrypt leaves the cache empty so a later invocation may retry.
        """
        if self._plaintext is not None:
            return self._plaintext
        task = self._inflight
        if task is None or task.done() or task.get_loop() is not asyncio.get_running_loop():
            task = asyncio.ensure_future(self._decrypt())
            self._inflight = task
        try:
            # shield: one waiter hitting its deadline must not cancel the shared decrypt
            return await asyncio.shield(task)
        finally:
            if self._inflight is task and task.done():
                self._inflight = None

    async def _decrypt(self) -> str:
        if not self._ciphertext:
            raise CredentialUnavailable.not_configured()
        try:
            blob = base64.b64decode(self._ciphertext, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CredentialUnavailable("encrypted token is not valid base64", cause=e) from e

        try:
            return await asyncio.to_thread(self._decrypt_once, blob)
        except Exception as e:
            logger.exception("KMS decrypt failed")
            log_event(logger, "credential_decrypt_error", level=logging.ERROR, error=str(e))
            raise CredentialUnavailable(f"KMS decrypt failed: {e}", cause=e) from e

    def _decrypt_once(self, blob: bytes) -> str:
        with self._lock:
            if self._plaintext is not None:
                return self._plaintext
            if self._kms is None:
                self._kms = _boto3().client("kms")
            t0 = time.time()
            resp = self._kms.decrypt(CiphertextBlob=blob)
            plaintext = resp["Plaintext"]
            if isinstance(plaintext, (bytes, bytearray)):
                plaintext = plaintext.decode("ascii")
            self._plaintext = plaintext
            log_event(logger, "credential_decrypted", ms=int((time.time() - t0) * 1000))
            return plaintext
