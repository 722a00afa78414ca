"""End-to-end handling of one text command."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Any

from herald.datetime_utils import local_now

from .calendar_agent import CalendarAgent
from .call_agent import CallAgent
from .call_session import CallConversation
from .config import AssistantConfig
from .credentials import Credential, CredentialStore, InMemoryCredentialStore, JsonFileCredentialStore, NotAuthorized
from .email_agent import EmailAgent
from .intent_parser import IntentParser, ParseError
from .llm import LLMError, build_completion_provider
from .models import ActionResult
from .notifications import (
    CONFIRMATION_KEYWORDS,
    ConfirmationNotifier,
    extract_recipient_email,
    should_send_confirmation,
)
from .router import CommandRouter
from .session_store import InMemorySessionStore, JsonFileSessionStore, SessionStore
from .telephony import build_call_provider

LOGGER = logging.getLogger(__name__)

NOT_UNDERSTOOD_MESSAGE = "I didn't understand that command. Try asking me to send an email or schedule a meeting."
FAILED_MESSAGE = "Could not process your request"
NOT_AUTHORIZED_MESSAGE = "Authorization required: link a Google account first"

# Result action -> (operation type, operation) for confirmation emails.
CONFIRMABLE_ACTIONS: dict[str, tuple[str, str]] = {
    "email_sent": ("email", "send"),
    "email_drafted": ("email", "draft"),
    "emails_found": ("email", "search"),
    "emails_summarized": ("email", "summarize"),
    "event_created": ("calendar", "create"),
    "event_modified": ("calendar", "modify"),
    "event_deleted": ("calendar", "delete"),
    "events_listed": ("calendar", "list"),
    "availability_checked": ("calendar", "check"),
}


@dataclass
class CommandResponse:
    success: bool
    message: str
    action: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.action:
            payload["action"] = self.action
        if self.data:
            payload["data"] = self.data
        return payload


def user_message(result: ActionResult) -> str:
    """Turn a successful result into the sentence shown or spoken to the user."""
    data = result.data
    action = result.action
    if action == "email_sent":
        subject = data.get("subject")
        suffix = f' with subject "{subject}"' if subject else ""
        return f"Email sent to {data.get('to')}{suffix}"
    if action == "email_drafted":
        return "Email drafted (ready to send)"
    if action == "emails_found":
        return f"Found {data.get('count', 0)} emails"
    if action == "emails_summarized":
        return f"Summarized {data.get('count', 0)} emails"
    if action == "event_created":
        return f'Event "{data.get("title")}" scheduled'
    if action == "event_modified":
        return "Event updated"
    if action == "event_deleted":
        return "Event deleted"
    if action == "events_listed":
        return f"Found {data.get('count', 0)} upcoming events"
    if action == "availability_checked":
        return f"Found {len(data.get('available_slots') or [])} available time slots"
    return result.message or "Action completed successfully!"


class CommandService:
    def __init__(
        self,
        credentials: CredentialStore,
        parser: IntentParser,
        router: CommandRouter,
        notifier: ConfirmationNotifier | None = None,
        *,
        tz: tzinfo | None = None,
        clock: Callable[[], datetime] | None = None,
        confirmation_keywords: tuple[str, ...] = CONFIRMATION_KEYWORDS,
        logger: logging.Logger | None = None,
    ) -> None:
        self._credentials = credentials
        self._parser = parser
        self._router = router
        self._notifier = notifier
        self._clock = clock or (lambda: local_now(tz))
        self._keywords = confirmation_keywords or CONFIRMATION_KEYWORDS
        self._logger = logger or LOGGER

    async def handle(self, text: str, user_id: str) -> CommandResponse:
        if not text or not text.strip() or not user_id:
            return CommandResponse(False, "User ID and text are required")
        self._logger.info("Command from %s: %s", user_id, text)

        try:
            credential = await self._credentials.get_credential(user_id)
        except NotAuthorized as exc:
            self._logger.warning("%s", exc)
            return CommandResponse(False, NOT_AUTHORIZED_MESSAGE, data={"error": "not_authorized"})

        try:
            envelope = await self._parser.parse_command(text, self._clock())
        except ParseError:
            return CommandResponse(False, NOT_UNDERSTOOD_MESSAGE, data={"error": "parse_error"})
        except LLMError as exc:
            self._logger.error("Intent parsing failed: %s", exc)
            return CommandResponse(False, FAILED_MESSAGE, data={"error": "delegate_failure"})

        result = await self._router.route(envelope, user_id, credential)
        if not result.ok:
            return CommandResponse(False, result.message or FAILED_MESSAGE, action=result.action, data=result.to_dict())

        message = user_message(result)
        confirmation = await self._maybe_confirm(text, result, credential)
        if confirmation is not None:
            message = f"{message} ({confirmation})"
        return CommandResponse(True, message, action=result.action, data=result.to_dict())

    async def _maybe_confirm(self, text: str, result: ActionResult, credential: Credential) -> str | None:
        if self._notifier is None or not should_send_confirmation(text, self._keywords):
            return None
        target = CONFIRMABLE_ACTIONS.get(result.action or "")
        if target is None:
            return None
        recipient = extract_recipient_email(text, credential.email)
        if not recipient:
            return None
        operation_type, operation = target
        sent = await self._notifier.send(operation, operation_type, result, recipient, credential)
        return sent.message if sent.ok else None


@dataclass
class Assistant:
    """Fully wired command service plus the call conversation it shares stores with."""

    commands: CommandService
    conversation: CallConversation
    credentials: CredentialStore


def build_assistant(config: AssistantConfig, logger: logging.Logger | None = None) -> Assistant:
    log = logger or LOGGER
    tz = config.timezone
    completion = build_completion_provider(config.llm, log, log_messages=config.log_llm_messages)

    credentials: CredentialStore
    if config.storage.credentials_file:
        credentials = JsonFileCredentialStore(config.storage.credentials_file, log)
    else:
        credentials = InMemoryCredentialStore()
    sessions: SessionStore
    if config.storage.sessions_file:
        sessions = JsonFileSessionStore(config.storage.sessions_file, log)
    else:
        sessions = InMemorySessionStore()

    email_agent = EmailAgent(completion, config.google, logger=log)
    router = CommandRouter(
        email=email_agent,
        calendar=CalendarAgent(config.google, tz, logger=log),
        calls=CallAgent(build_call_provider(config.telephony, log), log),
        logger=log,
    )
    notifier = ConfirmationNotifier(email_agent, log) if config.confirmation_emails else None
    commands = CommandService(
        credentials,
        IntentParser(completion, log),
        router,
        notifier,
        tz=tz,
        confirmation_keywords=config.confirmation_keywords,
        logger=log,
    )
    conversation = CallConversation(
        completion,
        sessions,
        email_agent,
        credentials,
        assistant_name=config.assistant_name,
        logger=log,
    )
    return Assistant(commands=commands, conversation=conversation, credentials=credentials)
