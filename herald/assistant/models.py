"""Value types shared by the intent parser, router, and action agents."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from herald.datetime_utils import TimeRange
from herald.utils import coerce_int, coerce_str, coerce_str_list

__all__ = [
    "ACTIONS",
    "INTENTS",
    "SERVICES",
    "ActionResult",
    "AvailableSlot",
    "BusyInterval",
    "CalendarDetails",
    "CallDetails",
    "CommandEnvelope",
    "EmailDetails",
    "ExtractedEmail",
    "TimeRange",
    "build_details",
    "service_for_intent",
]

SERVICES = ("email", "calendar", "voice")

INTENTS: dict[str, str] = {
    "email_send": "email",
    "email_draft": "email",
    "email_reply": "email",
    "email_search": "email",
    "email_label": "email",
    "email_summarize": "email",
    "calendar_create": "calendar",
    "calendar_modify": "calendar",
    "calendar_delete": "calendar",
    "calendar_list": "calendar",
    "calendar_availability": "calendar",
    "voice_call": "voice",
}

ACTIONS: dict[str, tuple[str, ...]] = {
    "email": ("send", "draft", "reply", "search", "label", "summarize"),
    "calendar": ("create", "modify", "delete", "list", "check"),
    "voice": ("call",),
}

ErrorKind = Literal["parse_error", "unknown_service", "unknown_action", "delegate_failure", "not_authorized"]


def service_for_intent(intent: str | None) -> str | None:
    if not intent:
        return None
    return INTENTS.get(intent.strip().lower())


def _pick(mapping: Mapping[str, Any], *keys: str) -> Any:
    """Return the first present value among camelCase/snake_case aliases."""
    for key in keys:
        if key in mapping and mapping[key] not in (None, ""):
            return mapping[key]
    return None


def _extras(mapping: Mapping[str, Any], known: set[str]) -> dict[str, Any]:
    return {key: value for key, value in mapping.items() if key not in known}


@dataclass
class EmailDetails:
    to: str | None = None
    subject: str | None = None
    body: str | None = None
    prompt_for_body: str | None = None
    message_id: str | None = None
    query: str | None = None
    labels: list[str] = field(default_factory=list)
    max_results: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    _KEYS = {
        "to",
        "subject",
        "body",
        "promptForBody",
        "prompt_for_body",
        "messageId",
        "message_id",
        "query",
        "labels",
        "maxResults",
        "max_results",
    }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> EmailDetails:
        return cls(
            to=coerce_str(data.get("to")),
            subject=coerce_str(data.get("subject")),
            body=coerce_str(data.get("body")),
            prompt_for_body=coerce_str(_pick(data, "promptForBody", "prompt_for_body")),
            message_id=coerce_str(_pick(data, "messageId", "message_id")),
            query=coerce_str(data.get("query")),
            labels=coerce_str_list(data.get("labels")),
            max_results=coerce_int(_pick(data, "maxResults", "max_results")),
            extra=_extras(data, cls._KEYS),
        )


@dataclass
class CalendarDetails:
    title: str | None = None
    start: str | None = None
    end: str | None = None
    description: str | None = None
    location: str | None = None
    participants: list[str] = field(default_factory=list)
    event_id: str | None = None
    duration: int | None = None
    days: int | None = None
    max_results: int | None = None
    search_date: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    _KEYS = {
        "title",
        "start",
        "end",
        "description",
        "location",
        "participants",
        "eventId",
        "event_id",
        "duration",
        "days",
        "maxResults",
        "max_results",
        "searchDate",
        "search_date",
    }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> CalendarDetails:
        return cls(
            title=coerce_str(data.get("title")),
            start=coerce_str(data.get("start")),
            end=coerce_str(data.get("end")),
            description=coerce_str(data.get("description")),
            location=coerce_str(data.get("location")),
            participants=coerce_str_list(data.get("participants")),
            event_id=coerce_str(_pick(data, "eventId", "event_id")),
            duration=coerce_int(data.get("duration")),
            days=coerce_int(data.get("days")),
            max_results=coerce_int(_pick(data, "maxResults", "max_results")),
            search_date=coerce_str(_pick(data, "searchDate", "search_date")),
            extra=_extras(data, cls._KEYS),
        )


@dataclass
class CallDetails:
    phone_number: str | None = None
    purpose: str | None = None
    recipient_name: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    _KEYS = {"phoneNumber", "phone_number", "purpose", "recipientName", "recipient_name"}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> CallDetails:
        return cls(
            phone_number=coerce_str(_pick(data, "phoneNumber", "phone_number")),
            purpose=coerce_str(data.get("purpose")),
            recipient_name=coerce_str(_pick(data, "recipientName", "recipient_name")),
            extra=_extras(data, cls._KEYS),
        )


Details = EmailDetails | CalendarDetails | CallDetails | dict[str, Any]


def build_details(service: str, data: Mapping[str, Any] | None) -> Details:
    """Build the per-service details variant; unknown services keep the raw mapping."""
    mapping: Mapping[str, Any] = data if isinstance(data, Mapping) else {}
    if service == "email":
        return EmailDetails.from_mapping(mapping)
    if service == "calendar":
        return CalendarDetails.from_mapping(mapping)
    if service in ("voice", "voice_call"):
        return CallDetails.from_mapping(mapping)
    return dict(mapping)


@dataclass(frozen=True)
class CommandEnvelope:
    intent: str
    action: str
    service: str
    details: Details


@dataclass(frozen=True)
class BusyInterval:
    start: datetime
    end: datetime


@dataclass(frozen=True)
class AvailableSlot:
    start: datetime
    end: datetime

    def to_dict(self) -> dict[str, str]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "display_time": f"{self.start:%a %b} {self.start.day}, {self.start:%I:%M %p}",
        }


@dataclass(frozen=True)
class ExtractedEmail:
    local_part: str
    domain: str

    @property
    def address(self) -> str:
        return f"{self.local_part}@{self.domain}"

    def __str__(self) -> str:
        return self.address


@dataclass
class ActionResult:
    """Tagged outcome of a routed command or a collaborator call."""

    status: Literal["SUCCESS", "ERROR"]
    message: str
    action: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    error: ErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.status == "SUCCESS"

    @classmethod
    def success(cls, action: str, message: str, **data: Any) -> ActionResult:
        return cls(status="SUCCESS", action=action, message=message, data=data)

    @classmethod
    def failure(
        cls,
        message: str,
        *,
        error: ErrorKind = "delegate_failure",
        action: str | None = None,
        **data: Any,
    ) -> ActionResult:
        return cls(status="ERROR", action=action, message=message, data=data, error=error)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"status": self.status, "message": self.message}
        if self.action:
            payload["action"] = self.action
        if self.error:
            payload["error"] = self.error
        payload.update(self.data)
        return payload
