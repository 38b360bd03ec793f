"""
Structured log helpers shared by the pipeline stages.

Each record is one JSON line: {"msg": <event name>, ...fields}.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any

PACKAGE_LOGGER = "gh_s3_pusher"


def configure_logging() -> None:
    level_name = (os.getenv("LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)
    root = logging.getLogger()
    if root.level and root.level > level:
        root.setLevel(level)


def log_event(
    logger: logging.Logger, msg: str, *, level: int = logging.INFO, **fields: Any
) -> None:
    try:
        rec = {"msg": msg, **fields}
        logger.log(level, json.dumps(rec, ensure_ascii=False))
    except (TypeError, ValueError):
        # Fallback to plain log
        logger.log(level, "%s | %s", msg, fields)


def request_id(context: Any) -> str | None:
    return getattr(context, "aws_request_id", None)
