"""Dispatch parsed command envelopes to the action agents."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from .credentials import Credential
from .email_normalizer import normalize_email_details
from .models import ActionResult, CalendarDetails, CallDetails, CommandEnvelope, EmailDetails

LOGGER = logging.getLogger(__name__)


class EmailActions(Protocol):
    async def perform(
        self, action: str, details: EmailDetails, user_id: str, credential: Credential | None
    ) -> ActionResult: ...


class CalendarActions(Protocol):
    async def perform(
        self, action: str, details: CalendarDetails, user_id: str, credential: Credential | None
    ) -> ActionResult: ...


class CallActions(Protocol):
    async def perform(self, action: str, details: CallDetails, user_id: str) -> ActionResult: ...


@dataclass
class CommandRouter:
    """Normalize an envelope and hand it to the matching agent.

    Agent results are returned verbatim. The router keeps no state between
    calls and never retries.
    """

    email: EmailActions
    calendar: CalendarActions
    calls: CallActions
    logger: logging.Logger | None = None

    def __post_init__(self) -> None:
        self._logger = self.logger or LOGGER

    async def route(self, envelope: CommandEnvelope, user_id: str, credential: Credential | None) -> ActionResult:
        service = envelope.service
        action = envelope.action
        try:
            if service == "email":
                details = _as(envelope.details, EmailDetails)
                return await self.email.perform(action, normalize_email_details(details), user_id, credential)
            if service == "calendar":
                return await self.calendar.perform(action, _as(envelope.details, CalendarDetails), user_id, credential)
            if service in ("voice", "voice_call"):
                return await self.calls.perform(action, _as(envelope.details, CallDetails), user_id)
        except Exception as exc:
            self._logger.exception("%s/%s handler failed", service, action)
            return ActionResult.failure(f"Failed to process command: {exc}", error="delegate_failure", action=action)
        self._logger.warning("No handler for service %r (intent %r)", service, envelope.intent)
        return ActionResult.failure("Could not determine service type", error="unknown_service")


def _as(details: Any, kind: type) -> Any:
    if isinstance(details, kind):
        return details
    if isinstance(details, dict):
        return kind.from_mapping(details)
    return kind()
