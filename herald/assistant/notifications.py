"""Optional confirmation emails sent after a successful command."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from herald.datetime_utils import local_now, parse_iso_timestamp

from .credentials import Credential
from .email_agent import EmailAgent
from .models import ActionResult

LOGGER = logging.getLogger(__name__)

CONFIRMATION_KEYWORDS = (
    "send mail",
    "send email",
    "mail me",
    "email me",
    "notify me",
    "confirm",
    "tell me",
    "let me know",
)
RECIPIENT_PATTERN = re.compile(r"[\w.-]+@[\w.-]+\.\w+")
FOOTER = "This is an automated notification from your Voice Assistant."
PREVIEW_CHARS = 200


def should_send_confirmation(text: str, keywords: Iterable[str] = CONFIRMATION_KEYWORDS) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def extract_recipient_email(text: str, default: str | None = None) -> str | None:
    match = RECIPIENT_PATTERN.search(text)
    if match:
        return match.group(0)
    return default


def _when(value: Any) -> str:
    if not value:
        return ""
    parsed = parse_iso_timestamp(str(value))
    if parsed is None:
        return str(value)
    return parsed.strftime("%a, %b %d, %Y, %I:%M %p")


def _preview(body: Any) -> str:
    text = str(body or "")
    if not text:
        return "[No content]"
    return text[:PREVIEW_CHARS] + ("..." if len(text) > PREVIEW_CHARS else "")


def _stamp(now: datetime | None) -> str:
    return (now or local_now()).strftime("%Y-%m-%d %H:%M")


def format_calendar_confirmation(operation: str, data: Mapping[str, Any], now: datetime | None = None) -> str:
    stamp = _stamp(now)
    location = data.get("location") or "Not specified"
    span = f"{_when(data.get('start'))} to {_when(data.get('end'))}"
    if operation == "create":
        participants = ", ".join(data.get("participants") or []) or "You"
        return (
            "Event Created\n\n"
            f"Event: {data.get('title')}\n"
            f"Date & Time: {span}\n"
            f"Location: {location}\n"
            f"Description: {data.get('description') or 'No description'}\n"
            f"Participants: {participants}\n\n"
            f"---\nCreated: {stamp}\n{FOOTER}"
        )
    if operation == "modify":
        return (
            "Event Updated\n\n"
            f"Event: {data.get('title')}\n"
            f"New Date & Time: {span}\n"
            f"Location: {location}\n"
            f"Description: {data.get('description') or 'No description'}\n\n"
            f"---\nUpdated: {stamp}\n{FOOTER}"
        )
    if operation == "delete":
        return (
            "Event Deleted\n\n"
            f"Event: {data.get('title')}\n"
            f"Was scheduled: {span}\n"
            f"Location: {location}\n\n"
            f"---\nDeleted: {stamp}\n{FOOTER}"
        )
    if operation == "list":
        events = data.get("events") or []
        lines = [
            f"Upcoming Events (Next {data.get('days', 7)} days)",
            "",
            f"Found: {data.get('count', len(events))} event(s)",
            "",
        ]
        for index, event in enumerate(events, start=1):
            lines.append(f"{index}. {event.get('summary')}")
            lines.append(f"   When: {_when(event.get('start'))}")
            if event.get("location"):
                lines.append(f"   Where: {event['location']}")
            if event.get("attendees"):
                lines.append(f"   Attendees: {event['attendees']}")
            lines.append("")
        if not events:
            lines.append("No upcoming events scheduled.")
        lines.append(f"---\n{stamp}\n{FOOTER}")
        return "\n".join(lines)
    if operation == "check":
        slots = data.get("available_slots") or []
        duration = data.get("duration") or 60
        lines = [
            "Available Time Slots",
            "",
            f"Found: {len(slots)} available slot(s)",
            f"Busy times: {data.get('busy_count', 0)}",
            "",
        ]
        for index, slot in enumerate(slots, start=1):
            lines.append(f"{index}. {_when(slot.get('start'))}")
            lines.append(f"   Duration: {duration} minutes")
            lines.append("")
        if not slots:
            lines.append("No available slots found for the requested period.")
        lines.append(f"---\n{stamp}\n{FOOTER}")
        return "\n".join(lines)
    return f"Calendar Operation Completed\n\n{json.dumps(dict(data), indent=2, default=str)}\n\n---\n{stamp}"


def format_email_confirmation(operation: str, data: Mapping[str, Any], now: datetime | None = None) -> str:
    stamp = _stamp(now)
    if operation == "send":
        return (
            "Email Sent Successfully\n\n"
            f"To: {data.get('to')}\n"
            f"Subject: {data.get('subject')}\n\n"
            f"Message Preview:\n{_preview(data.get('body'))}\n\n"
            f"---\nSent: {stamp}\n{FOOTER}"
        )
    if operation == "draft":
        return (
            "Email Draft Created\n\n"
            f"To: {data.get('to')}\n"
            f"Subject: {data.get('subject')}\n\n"
            f"Message Preview:\n{_preview(data.get('body'))}\n\n"
            f"---\nDraft saved: {stamp}\n"
            "This email is saved as a draft. You can edit and send it later."
        )
    if operation == "search":
        return (
            "Email Search Results\n\n"
            f"Query: {data.get('query')}\n"
            f"Found: {data.get('count', 0)} email(s)\n\n"
            f"---\nSearch completed: {stamp}"
        )
    return f"Email Operation Completed\n\n{json.dumps(dict(data), indent=2, default=str)}\n\n---\n{stamp}"


def confirmation_subject(operation: str, operation_type: str) -> str:
    if operation_type == "calendar":
        return f"Calendar Operation: {operation.capitalize()}"
    if operation_type == "email":
        return f"Email Operation: {operation.capitalize()}"
    return f"Operation Completed: {operation}"


class ConfirmationNotifier:
    """Email a summary of a completed operation; failures never propagate."""

    def __init__(self, email_agent: EmailAgent, logger: logging.Logger | None = None) -> None:
        self._email_agent = email_agent
        self._logger = logger or LOGGER

    async def send(
        self,
        operation: str,
        operation_type: str,
        result: ActionResult,
        recipient: str | None,
        credential: Credential | None,
    ) -> ActionResult:
        if not recipient or credential is None or not credential.access_token:
            self._logger.warning("Cannot send confirmation: missing recipient or credential")
            return ActionResult.failure("Missing recipient or access token", action="confirmation")
        if operation_type == "calendar":
            body = format_calendar_confirmation(operation, result.data)
        elif operation_type == "email":
            body = format_email_confirmation(operation, result.data)
        else:
            body = json.dumps(result.to_dict(), indent=2, default=str)
        try:
            sent = await self._email_agent.compose(
                recipient,
                confirmation_subject(operation, operation_type),
                body,
                credential,
            )
        except Exception as exc:
            self._logger.exception("Confirmation email to %s failed", recipient)
            return ActionResult.failure(f"Failed to send confirmation: {exc}", action="confirmation")
        if sent.ok:
            self._logger.info("Confirmation email sent to %s", recipient)
            return ActionResult.success(
                "confirmation_sent",
                f"Confirmation email sent to {recipient}",
                recipient=recipient,
            )
        self._logger.warning("Confirmation email to %s failed: %s", recipient, sent.message)
        return ActionResult.failure(sent.message, action="confirmation")
