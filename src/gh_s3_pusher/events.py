"""
Inbound SNS envelope parsing and trigger matching.

A GitHub `issue_comment` webhook arrives through SNS; only a "created" comment whose
body is exactly the trigger phrase, on an open issue/pull request, starts a run.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class InboundEnvelope:
    body: str
    attributes: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Trigger:
    repository: str
    number: int
    owner: str


@dataclass(frozen=True)
class NoMatch:
    reason: str
    error: Exception | None = None


def envelope_from_sns(event: Mapping[str, Any]) -> InboundEnvelope:
    """Build an envelope from the first SNS record of a Lambda event.

    SNS message attributes look like {"X-Github-Event": {"Type": "String", "Value": "..."}}.
    """
    records = event.get("Records") or []
    if not records:
        return InboundEnvelope(body="")
    sns = (records[0] or {}).get("Sns") or {}
    attrs: dict[str, str] = {}
    for name, attr in (sns.get("MessageAttributes") or {}).items():
        if isinstance(attr, dict):
            value = attr.get("Value")
        else:
            value = attr
        if value is not None:
            attrs[name] = str(value)
    return InboundEnvelope(body=sns.get("Message") or "", attributes=attrs)


def owner_of(full_name: str) -> str:
    # "acme/widgets" -> "acme"
    return full_name.split("/", 1)[0]


def match_event(
    envelope: InboundEnvelope,
    *,
    trigger_phrase: str,
    event_type_attribute: str,
    event_type: str,
) -> Trigger | NoMatch:
    if envelope.attributes.get(event_type_attribute) != event_type:
        return NoMatch("not_issue_comment")

    try:
        payload = json.loads(envelope.body or "")
    except ValueError as e:
        return NoMatch("payload_not_json", error=e)
    if not isinstance(payload, dict):
        return NoMatch("payload_not_object")

    comment = payload.get("comment") or {}
    issue = payload.get("issue") or {}
    if payload.get("action") != "created":
        return NoMatch("action_not_created")
    if not isinstance(comment, dict) or comment.get("body") != trigger_phrase:
        return NoMatch("comment_not_trigger_phrase")
    if not isinstance(issue, dict) or issue.get("state") != "open":
        return NoMatch("issue_not_open")

    repository = payload.get("repository") or {}
    full_name = repository.get("full_name") if isinstance(repository, dict) else None
    number = issue.get("number")
    if not isinstance(full_name, str) or not full_name:
        return NoMatch("missing_repository")
    try:
        number = int(number)
    except (TypeError, ValueError) as e:
        return NoMatch("missing_issue_number", error=e)
    return Trigger(repository=full_name, number=number, owner=owner_of(full_name))
