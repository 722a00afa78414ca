"""Tests for confirmation emails (herald/assistant/notifications.py)."""

from __future__ import annotations

from unittest.mock import AsyncMock, Mock

import pytest

from herald.assistant.models import ActionResult
from herald.assistant.notifications import (
    ConfirmationNotifier,
    confirmation_subject,
    extract_recipient_email,
    format_calendar_confirmation,
    format_email_confirmation,
    should_send_confirmation,
)

pytestmark = pytest.mark.anyio


class TestTriggers:
    """Keyword detection and recipient extraction."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("Schedule a sync tomorrow and email me", True),
            ("Book lunch on Friday, let me know", True),
            ("Please CONFIRM the meeting", True),
            ("Schedule a sync tomorrow", False),
        ],
    )
    def test_default_keywords(self, text, expected):
        assert should_send_confirmation(text) is expected

    def test_custom_keywords(self):
        assert should_send_confirmation("ping me when done", ("ping me",)) is True
        assert should_send_confirmation("email me", ("ping me",)) is False

    def test_recipient_from_text(self):
        assert extract_recipient_email("book it and send confirmation to boss@corp.com", "me@x.com") == "boss@corp.com"

    def test_recipient_default(self):
        assert extract_recipient_email("book it and email me", "me@x.com") == "me@x.com"
        assert extract_recipient_email("book it") is None


class TestFormatting:
    """Confirmation bodies."""

    def test_calendar_create(self, now):
        data = {
            "title": "Sync",
            "start": "2026-01-18T15:00:00+05:30",
            "end": "2026-01-18T16:00:00+05:30",
            "participants": ["john@x.com"],
        }
        body = format_calendar_confirmation("create", data, now)
        assert body.startswith("Event Created\n")
        assert "Event: Sync" in body
        assert "Date & Time: Sun, Jan 18, 2026, 03:00 PM to Sun, Jan 18, 2026, 04:00 PM" in body
        assert "Location: Not specified" in body
        assert "Description: No description" in body
        assert "Participants: john@x.com" in body
        assert "Created: 2026-01-17 10:00" in body

    def test_calendar_list_empty(self, now):
        body = format_calendar_confirmation("list", {"days": 3, "count": 0, "events": []}, now)
        assert body.startswith("Upcoming Events (Next 3 days)")
        assert "No upcoming events scheduled." in body

    def test_calendar_list_events(self, now):
        events = [{"summary": "Standup", "start": "2026-01-18T09:00:00+05:30", "location": "Room 1", "attendees": 3}]
        body = format_calendar_confirmation("list", {"days": 7, "count": 1, "events": events}, now)
        assert "1. Standup" in body
        assert "   Where: Room 1" in body
        assert "   Attendees: 3" in body

    def test_calendar_check(self, now):
        slots = [{"start": "2026-01-18T09:00:00+05:30"}, {"start": "2026-01-18T10:30:00+05:30"}]
        body = format_calendar_confirmation("check", {"available_slots": slots, "busy_count": 1, "duration": 30}, now)
        assert "Found: 2 available slot(s)" in body
        assert "Busy times: 1" in body
        assert "Duration: 30 minutes" in body

    def test_calendar_unknown_operation(self, now):
        body = format_calendar_confirmation("archive", {"event_id": "e1"}, now)
        assert body.startswith("Calendar Operation Completed")
        assert '"event_id": "e1"' in body

    def test_email_send_preview_truncated(self, now):
        body = format_email_confirmation("send", {"to": "a@b.com", "subject": "Hi", "body": "y" * 250}, now)
        assert body.startswith("Email Sent Successfully")
        assert "y" * 200 + "..." in body
        assert "y" * 201 not in body

    def test_email_draft_without_body(self, now):
        body = format_email_confirmation("draft", {"to": "a@b.com", "subject": "Hi"}, now)
        assert "[No content]" in body
        assert "saved as a draft" in body

    def test_email_search(self, now):
        body = format_email_confirmation("search", {"query": "invoice", "count": 4}, now)
        assert "Query: invoice" in body
        assert "Found: 4 email(s)" in body

    @pytest.mark.parametrize(
        ("operation", "operation_type", "expected"),
        [
            ("create", "calendar", "Calendar Operation: Create"),
            ("send", "email", "Email Operation: Send"),
            ("call", "voice", "Operation Completed: call"),
        ],
    )
    def test_subject(self, operation, operation_type, expected):
        assert confirmation_subject(operation, operation_type) == expected


class TestConfirmationNotifier:
    """Sending confirmations through the email agent."""

    @pytest.fixture
    def email_agent(self):
        agent = Mock()
        agent.compose = AsyncMock(return_value=ActionResult.success("email_sent", "Email sent"))
        return agent

    async def test_send(self, email_agent, credential, mock_logger):
        notifier = ConfirmationNotifier(email_agent, mock_logger)
        result = ActionResult.success("event_created", "ok", title="Sync", start=None, end=None)

        sent = await notifier.send("create", "calendar", result, "boss@corp.com", credential)

        assert sent.ok
        assert sent.action == "confirmation_sent"
        assert sent.message == "Confirmation email sent to boss@corp.com"
        to, subject, body, passed = email_agent.compose.await_args.args
        assert to == "boss@corp.com"
        assert subject == "Calendar Operation: Create"
        assert "Event: Sync" in body
        assert passed is credential

    async def test_missing_recipient(self, email_agent, credential, mock_logger):
        notifier = ConfirmationNotifier(email_agent, mock_logger)
        sent = await notifier.send("create", "calendar", ActionResult.success("event_created", "ok"), None, credential)
        assert not sent.ok
        email_agent.compose.assert_not_awaited()
        mock_logger.warning.assert_called_once()

    async def test_compose_failure(self, email_agent, credential, mock_logger):
        email_agent.compose.return_value = ActionResult.failure("Failed to send email: quota")
        notifier = ConfirmationNotifier(email_agent, mock_logger)

        sent = await notifier.send("send", "email", ActionResult.success("email_sent", "ok"), "a@b.com", credential)

        assert not sent.ok
        assert sent.message == "Failed to send email: quota"

    async def test_compose_exception_is_contained(self, email_agent, credential, mock_logger):
        email_agent.compose.side_effect = ValueError("Expecting property name")
        notifier = ConfirmationNotifier(email_agent, mock_logger)

        sent = await notifier.send("create", "calendar", ActionResult.success("event_created", "ok"), "a@b.com", credential)

        assert not sent.ok
        assert sent.action == "confirmation"
        assert sent.message == "Failed to send confirmation: Expecting property name"
        mock_logger.exception.assert_called_once()
