"""Natural-language command parsing through the LLM prompt contract.

The parser builds one prompt per command, asks the completion provider for a
JSON envelope, and turns the reply into a `CommandEnvelope`. Replies are
repaired leniently (markdown fences, leading prose) but never validated
beyond "is it a JSON object".
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Protocol

from herald.datetime_utils import format_offset_timestamp

from .models import ACTIONS, INTENTS, SERVICES, CommandEnvelope, build_details, service_for_intent

LOGGER = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"^```[a-zA-Z0-9_-]*\s*|\s*```$")


class ParseError(ValueError):
    """The LLM reply could not be read as a JSON command envelope."""

    def __init__(self, raw_text: str, reason: str = "no JSON object in reply") -> None:
        super().__init__(f"Could not parse command {raw_text!r}: {reason}")
        self.raw_text = raw_text
        self.reason = reason


class Completion(Protocol):
    async def complete(self, prompt: str) -> Any: ...


def build_intent_prompt(raw_text: str, now: datetime) -> str:
    """Render the parsing prompt for `raw_text` relative to `now`."""
    reference = format_offset_timestamp(now)
    offset = reference[-6:]
    intents = "|".join(INTENTS)
    actions = "|".join(action for group in ACTIONS.values() for action in group)
    services = "|".join(SERVICES)
    return f"""You are an AI intent parser for a productivity assistant. Extract ALL details from the user's natural language command.

Current date and time: {reference} (UTC offset {offset})
Resolve relative dates ("tomorrow", "next Monday", "at 3pm") against this moment.
Write every timestamp as ISO-8601 with an explicit numeric UTC offset, for example {reference}. Never use the "Z" suffix.

User command:
"{raw_text}"

Return ONLY valid JSON (no markdown, no code blocks, no extra text):
{{
  "intent": "{intents}",
  "action": "{actions}",
  "service": "{services}",
  "details": {{
    "to": "",
    "subject": "",
    "body": "",
    "title": "",
    "start": "",
    "end": "",
    "query": "",
    "eventId": "",
    "labels": [],
    "participants": [],
    "location": "",
    "description": "",
    "phoneNumber": "",
    "purpose": "",
    "duration": 60
  }}
}}
"""


def _strip_fences(text: str) -> str:
    return _FENCE_PATTERN.sub("", text.strip()).strip()


def _loads_object(text: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def parse_envelope_payload(reply: Any) -> dict[str, Any] | None:
    """Recover a JSON object from an LLM reply, or None."""
    if isinstance(reply, Mapping):
        return dict(reply)
    if not isinstance(reply, str):
        return None
    text = reply.strip()
    if not text:
        return None
    for candidate in (text, _strip_fences(text)):
        parsed = _loads_object(candidate)
        if parsed is not None:
            return parsed
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return _loads_object(text[start : end + 1])


def parse_envelope(raw_text: str, reply: Any) -> CommandEnvelope:
    """Turn an LLM reply into a `CommandEnvelope` or raise ParseError."""
    payload = parse_envelope_payload(reply)
    if payload is None:
        raise ParseError(raw_text)
    intent = str(payload.get("intent") or "").strip().lower()
    action = str(payload.get("action") or "").strip().lower()
    service = str(payload.get("service") or "").strip().lower()
    if not service:
        service = service_for_intent(intent) or ""
    details = payload.get("details")
    return CommandEnvelope(
        intent=intent,
        action=action,
        service=service,
        details=build_details(service, details if isinstance(details, Mapping) else {}),
    )


class IntentParser:
    """Ask the completion provider to classify a command."""

    def __init__(self, completion: Completion, logger: logging.Logger | None = None) -> None:
        self._completion = completion
        self._logger = logger or LOGGER

    async def parse_command(self, raw_text: str, now: datetime) -> CommandEnvelope:
        prompt = build_intent_prompt(raw_text, now)
        reply = await self._completion.complete(prompt)
        try:
            envelope = parse_envelope(raw_text, reply)
        except ParseError:
            self._logger.warning("Unparseable intent reply for %r: %r", raw_text, reply)
            raise
        implied = service_for_intent(envelope.intent)
        if implied and envelope.service and implied != envelope.service:
            self._logger.debug(
                "Intent %s implies %s but service is %s; using service",
                envelope.intent,
                implied,
                envelope.service,
            )
        self._logger.info("Parsed intent %s (%s/%s)", envelope.intent, envelope.service, envelope.action)
        return envelope
