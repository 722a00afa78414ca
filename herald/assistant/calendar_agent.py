"""Google Calendar actions: create, modify, delete, list, check."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, tzinfo
from typing import Any

from herald.datetime_utils import (
    DEFAULT_DURATION_MINUTES,
    format_offset_timestamp,
    local_now,
    parse_iso_timestamp,
    parse_range_or_resolve,
    resolve_range,
)

from .availability import find_available_slots, top_slots
from .config import GoogleConfig
from .credentials import Credential
from .google_client import GoogleApiClient, GoogleApiError
from .models import ActionResult, BusyInterval, CalendarDetails, TimeRange

LOGGER = logging.getLogger(__name__)

LIST_DEFAULT_DAYS = 7
LIST_DEFAULT_RESULTS = 10
LIST_MAX_RESULTS = 250
LOOKUP_DAYS = 30
LOOKUP_MAX_RESULTS = 100
DEFAULT_DESCRIPTION = "Created via Voice Assistant"

ClientFactory = Callable[[str], GoogleApiClient]


def derive_title(title: str | None, description: str | None, participants: list[str]) -> str:
    """Pick an event title when the parser left it empty or generic."""
    if title and title.strip().lower() != "meeting":
        return title
    if description:
        return f"Meeting - {description}"
    if participants:
        names = ", ".join(participant.split("@")[0] for participant in participants)
        return f"Meeting with {names}"
    return "Meeting"


def attendee_emails(participants: list[str]) -> list[str]:
    return [participant for participant in participants if "@" in participant]


def find_event_by_title(events: list[dict[str, Any]], title: str) -> dict[str, Any] | None:
    """Exact (case-insensitive) summary match first, then substring."""
    wanted = title.strip().lower()
    summaries = [(event, str(event.get("summary") or "").lower()) for event in events]
    for event, summary in summaries:
        if summary and summary == wanted:
            return event
    for event, summary in summaries:
        if summary and wanted in summary:
            return event
    return None


def _event_time(value: dict[str, Any] | None) -> str | None:
    if not isinstance(value, dict):
        return None
    return value.get("dateTime") or value.get("date")


class CalendarAgent:
    """Run Google Calendar actions on behalf of a user's access token."""

    def __init__(
        self,
        config: GoogleConfig,
        tz: tzinfo,
        *,
        client_factory: ClientFactory | None = None,
        clock: Callable[[], datetime] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._tz = tz
        self._client_factory = client_factory or (lambda token: GoogleApiClient(config, token))
        self._clock = clock or (lambda: local_now(tz))
        self._logger = logger or LOGGER

    async def perform(
        self,
        action: str,
        details: CalendarDetails,
        user_id: str,
        credential: Credential | None,
    ) -> ActionResult:
        self._logger.info("Calendar action %s for %s (title=%s)", action, user_id, details.title)
        if credential is None or not credential.access_token:
            return ActionResult.failure("No access token provided", error="not_authorized", action=action)
        handler = {
            "create": self._create,
            "modify": self._modify,
            "delete": self._delete,
            "list": self._list,
            "check": self._check,
        }.get(action)
        if handler is None:
            return ActionResult.failure(f"Unknown calendar action: {action}", error="unknown_action", action=action)
        async with self._client_factory(credential.access_token) as client:
            try:
                return await handler(client, details)
            except GoogleApiError as exc:
                self._logger.exception("Calendar %s failed", action)
                return ActionResult.failure(f"Failed to {action} event: {exc}", action=action)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def _create(self, client: GoogleApiClient, details: CalendarDetails) -> ActionResult:
        title = derive_title(details.title, details.description, details.participants)
        window = parse_range_or_resolve(
            details.start,
            details.end,
            self._clock(),
            duration_minutes=details.duration or DEFAULT_DURATION_MINUTES,
            logger=self._logger,
        )
        event: dict[str, Any] = {
            "summary": title,
            "description": details.description or DEFAULT_DESCRIPTION,
            "location": details.location or "",
            **self._event_times(window),
        }
        attendees = attendee_emails(details.participants)
        if attendees:
            event["attendees"] = [{"email": email, "responseStatus": "needsAction"} for email in attendees]
        self._logger.debug("Creating event %r at %s", title, window.start.isoformat())
        response = await client.insert_event(event)
        return ActionResult.success(
            "event_created",
            f'Event "{title}" scheduled for {_display(window.start)}',
            title=title,
            start=window.start.isoformat(),
            end=window.end.isoformat(),
            description=details.description,
            location=details.location,
            participants=list(details.participants),
            event_id=response.get("id"),
            event_link=response.get("htmlLink"),
        )

    async def _modify(self, client: GoogleApiClient, details: CalendarDetails) -> ActionResult:
        if not details.event_id:
            return ActionResult.failure("Event ID is required", action="modify")
        event = await client.get_event(details.event_id)
        if details.title:
            event["summary"] = details.title
        if details.description:
            event["description"] = details.description
        if details.location:
            event["location"] = details.location
        window: TimeRange | None = None
        if details.start or details.end:
            window = resolve_range(
                details.start,
                details.end,
                self._clock(),
                duration_minutes=details.duration or DEFAULT_DURATION_MINUTES,
                logger=self._logger,
            )
            event.update(self._event_times(window))
        response = await client.update_event(details.event_id, event)
        return ActionResult.success(
            "event_modified",
            "Event updated successfully",
            event_id=response.get("id") or details.event_id,
            title=response.get("summary") or event.get("summary"),
            start=window.start.isoformat() if window else _event_time(event.get("start")),
            end=window.end.isoformat() if window else _event_time(event.get("end")),
            description=event.get("description"),
            location=event.get("location"),
        )

    async def _delete(self, client: GoogleApiClient, details: CalendarDetails) -> ActionResult:
        event_id = details.event_id
        found: dict[str, Any] | None = None
        if not event_id and details.title:
            now = self._clock()
            events = await client.list_events(
                format_offset_timestamp(now),
                format_offset_timestamp(now + timedelta(days=LOOKUP_DAYS)),
                LOOKUP_MAX_RESULTS,
            )
            found = find_event_by_title(events, details.title)
            if found is None:
                return ActionResult.failure(
                    f'Could not find event "{details.title}". Please check the event name or provide an event ID.',
                    action="delete",
                )
            event_id = str(found.get("id"))
            self._logger.info("Matched event %s for title %r", event_id, details.title)
        if not event_id:
            return ActionResult.failure("Event ID or title is required to delete an event", action="delete")
        await client.delete_event(event_id)
        title = details.title or (found or {}).get("summary") or "event"
        return ActionResult.success(
            "event_deleted",
            f'Event "{title}" deleted successfully',
            event_id=event_id,
            title=title,
            start=_event_time((found or {}).get("start")),
            end=_event_time((found or {}).get("end")),
            location=(found or {}).get("location"),
        )

    async def _list(self, client: GoogleApiClient, details: CalendarDetails) -> ActionResult:
        days = details.days or LIST_DEFAULT_DAYS
        limit = min(details.max_results or LIST_DEFAULT_RESULTS, LIST_MAX_RESULTS)
        now = self._clock()
        items = await client.list_events(
            format_offset_timestamp(now),
            format_offset_timestamp(now + timedelta(days=days)),
            limit,
        )
        events = [
            {
                "id": item.get("id"),
                "summary": item.get("summary"),
                "start": _event_time(item.get("start")),
                "end": _event_time(item.get("end")),
                "location": item.get("location") or "",
                "attendees": len(item.get("attendees") or []),
            }
            for item in items
        ]
        return ActionResult.success(
            "events_listed",
            f"Found {len(events)} upcoming events in the next {days} days",
            count=len(events),
            days=days,
            events=events,
        )

    async def _check(self, client: GoogleApiClient, details: CalendarDetails) -> ActionResult:
        days = details.days or LIST_DEFAULT_DAYS
        duration = details.duration or DEFAULT_DURATION_MINUTES
        now = self._clock()
        window_start = parse_iso_timestamp(details.search_date, self._tz)
        if window_start is None:
            window_start = resolve_range(details.search_date, None, now, logger=self._logger).start
        window_end = window_start + timedelta(days=days)
        calendar_ids = [self._config.calendar_id, *attendee_emails(details.participants)]
        payload = await client.query_free_busy(
            format_offset_timestamp(min(now, window_start)),
            format_offset_timestamp(window_end),
            calendar_ids,
        )
        busy = self._busy_intervals(payload)
        slots = list(find_available_slots(window_start, window_end, busy, duration))
        top = top_slots(slots)
        return ActionResult.success(
            "availability_checked",
            f"Found {len(slots)} available time slots",
            available_slots=[slot.to_dict() for slot in top],
            busy_count=len(busy),
            duration=duration,
        )

    # ------------------------------------------------------------------

    def _event_times(self, window: TimeRange) -> dict[str, Any]:
        zone = self._config.event_timezone
        return {
            "start": {"dateTime": format_offset_timestamp(window.start), "timeZone": zone},
            "end": {"dateTime": format_offset_timestamp(window.end), "timeZone": zone},
        }

    def _busy_intervals(self, payload: dict[str, Any]) -> list[BusyInterval]:
        calendars = payload.get("calendars") or {}
        primary = calendars.get(self._config.calendar_id) or {}
        intervals: list[BusyInterval] = []
        for entry in primary.get("busy") or []:
            start = parse_iso_timestamp(_zulu(entry.get("start")), self._tz)
            end = parse_iso_timestamp(_zulu(entry.get("end")), self._tz)
            if start is None or end is None:
                self._logger.debug("Skipping malformed busy entry: %s", entry)
                continue
            intervals.append(BusyInterval(start=start.astimezone(self._tz), end=end.astimezone(self._tz)))
        return intervals


def _zulu(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    return value[:-1] + "+00:00" if value.endswith("Z") else value


def _display(value: datetime) -> str:
    return value.strftime("%a %b %d %Y, %I:%M %p")
