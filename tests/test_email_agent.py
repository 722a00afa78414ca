"""Tests for Gmail actions (herald/assistant/email_agent.py)."""

from __future__ import annotations

import base64
from email import message_from_bytes

import httpx
import pytest

from herald.assistant.email_agent import (
    FALLBACK_SUBJECT,
    EmailAgent,
    encode_message,
    needs_rewrite,
    strip_subject_prefix,
)
from herald.assistant.llm import LLMError
from herald.assistant.models import EmailDetails

pytestmark = pytest.mark.anyio

LONG_BODY = "Hi Rohit, the quarterly report is attached and ready for your review before Friday."


def decode(raw):
    return message_from_bytes(base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4)))


@pytest.fixture
def make_agent(mock_completion, google_config, google_api, mock_logger):
    def _build(routes):
        handler, factory = google_api(routes)
        agent = EmailAgent(mock_completion, google_config, client_factory=factory, logger=mock_logger)
        return agent, handler

    return _build


# ============================================================================
# Helpers
# ============================================================================


class TestHelpers:
    """Message encoding and rewrite heuristics."""

    def test_encode_message_round_trip(self):
        raw = encode_message("a@b.com", "Hello", "Body text")
        assert "=" not in raw
        message = decode(raw)
        assert message["To"] == "a@b.com"
        assert message["Subject"] == "Hello"
        assert message.get_payload().strip() == "Body text"

    def test_encode_reply_headers(self):
        message = decode(encode_message("a@b.com", "Re: Hi", "ok", in_reply_to="<id@mail>"))
        assert message["In-Reply-To"] == "<id@mail>"
        assert message["References"] == "<id@mail>"

    def test_needs_rewrite(self):
        assert needs_rewrite(None, None) is True
        assert needs_rewrite("I am late", None) is True
        assert needs_rewrite(LONG_BODY, None) is False
        assert needs_rewrite(LONG_BODY, "make it polite") is True

    @pytest.mark.parametrize(
        ("reply", "expected"),
        [
            ("Subject: Running late", "Running late"),
            ('"Quarterly report"', "Quarterly report"),
            ('  subject: "Lunch?"  ', "Lunch?"),
        ],
    )
    def test_strip_subject_prefix(self, reply, expected):
        assert strip_subject_prefix(reply) == expected


# ============================================================================
# Send / draft
# ============================================================================


class TestSend:
    """Composition and sending."""

    async def test_send_long_body_without_llm(self, make_agent, mock_completion, credential):
        agent, handler = make_agent({"POST /messages/send": {"id": "m1"}})
        details = EmailDetails(to="rohit at gmail.com", subject="Report", body=LONG_BODY)

        result = await agent.perform("send", details, "user123", credential)

        assert result.ok
        assert result.action == "email_sent"
        assert result.data["to"] == "rohit@gmail.com"
        assert result.data["message_id"] == "m1"
        mock_completion.complete.assert_not_awaited()
        sent = decode(handler.bodies("POST", "/messages/send")[0]["raw"])
        assert sent["To"] == "rohit@gmail.com"
        assert sent["Subject"] == "Report"

    async def test_short_body_is_rewritten(self, make_agent, mock_completion, credential):
        agent, _ = make_agent({"POST /messages/send": {"id": "m2"}})
        mock_completion.complete.side_effect = ["Subject: Running late", "Hi Rohit,\n\nI am running late.\n\nBest"]

        result = await agent.perform("send", EmailDetails(to="rohit@gmail.com", body="I am late"), "user123", credential)

        assert result.data["subject"] == "Running late"
        assert result.data["body"].startswith("Hi Rohit")
        assert mock_completion.complete.await_count == 2

    async def test_llm_failure_keeps_body_and_uses_fallback_subject(self, make_agent, mock_completion, credential):
        agent, _ = make_agent({"POST /messages/send": {"id": "m3"}})
        mock_completion.complete.side_effect = LLMError("down")

        result = await agent.perform("send", EmailDetails(to="rohit@gmail.com", body="I am late"), "user123", credential)

        assert result.ok
        assert result.data["subject"] == FALLBACK_SUBJECT
        assert result.data["body"] == "I am late"

    async def test_draft(self, make_agent, credential):
        agent, handler = make_agent({"POST /users/me/drafts": {"id": "d1"}})

        result = await agent.perform(
            "draft", EmailDetails(to="asha@example.org", subject="Notes", body=LONG_BODY), "user123", credential
        )

        assert result.action == "email_drafted"
        assert result.data["draft_id"] == "d1"
        assert "message" in handler.bodies("POST", "/drafts")[0]

    async def test_missing_recipient(self, make_agent, credential):
        agent, handler = make_agent({})
        result = await agent.perform("send", EmailDetails(body=LONG_BODY), "user123", credential)
        assert result.message == "Email recipient is required"
        assert handler.requests == []

    async def test_invalid_recipient(self, make_agent, credential):
        agent, _ = make_agent({})
        result = await agent.perform("send", EmailDetails(to="john", body=LONG_BODY), "user123", credential)
        assert not result.ok
        assert "Could not find a valid email address" in result.message

    async def test_google_error(self, make_agent, credential):
        agent, _ = make_agent(
            {"POST /messages/send": httpx.Response(500, json={"error": {"message": "backend"}})}
        )
        result = await agent.perform("send", EmailDetails(to="a@b.com", subject="S", body=LONG_BODY), "u", credential)
        assert result.status == "ERROR"
        assert result.message == "Failed to send email: Google API error 500: backend"

    async def test_compose_skips_llm(self, make_agent, mock_completion, credential):
        agent, _ = make_agent({"POST /messages/send": {"id": "c1"}})
        result = await agent.compose("a@b.com", "Summary", "short", credential)
        assert result.ok
        assert result.data["message_id"] == "c1"
        mock_completion.complete.assert_not_awaited()


class TestPerformGuards:
    """Authorization and dispatch guards."""

    async def test_no_credential(self, make_agent):
        agent, _ = make_agent({})
        result = await agent.perform("send", EmailDetails(to="a@b.com"), "user123", None)
        assert result.message == "No access token provided"
        assert result.error == "not_authorized"

    async def test_unknown_action(self, make_agent, credential):
        agent, _ = make_agent({})
        result = await agent.perform("forward", EmailDetails(), "user123", credential)
        assert result.message == "Unknown email action: forward"
        assert result.error == "unknown_action"


# ============================================================================
# Reply / search / label / summarize
# ============================================================================


ORIGINAL = {
    "id": "m1",
    "threadId": "t1",
    "payload": {
        "headers": [
            {"name": "From", "value": "Asha <asha@example.org>"},
            {"name": "Subject", "value": "Budget"},
            {"name": "Message-ID", "value": "<abc@mail>"},
        ]
    },
}


class TestMailboxActions:
    """Actions that read the mailbox first."""

    async def test_reply(self, make_agent, credential):
        agent, handler = make_agent({"GET /messages/m1": ORIGINAL, "POST /messages/send": {"id": "r1"}})

        result = await agent.perform("reply", EmailDetails(message_id="m1", body="Sounds good"), "u", credential)

        assert result.action == "email_replied"
        assert result.data["to"] == "asha@example.org"
        assert result.data["subject"] == "Re: Budget"
        body = handler.bodies("POST", "/messages/send")[0]
        assert body["threadId"] == "t1"
        assert decode(body["raw"])["In-Reply-To"] == "<abc@mail>"

    async def test_reply_requires_message_id(self, make_agent, credential):
        agent, _ = make_agent({})
        result = await agent.perform("reply", EmailDetails(body="ok"), "u", credential)
        assert result.message == "Message ID and reply body are required"

    async def test_search(self, make_agent, credential):
        message = {"id": "m1", "threadId": "t1", "payload": {"headers": [{"name": "Subject", "value": "Invoice"}]}}
        agent, handler = make_agent(
            {"GET /users/me/messages": {"messages": [{"id": "m1"}]}, "GET /messages/m1": message}
        )

        result = await agent.perform("search", EmailDetails(query="invoice", max_results=500), "u", credential)

        assert result.action == "emails_found"
        assert result.data["count"] == 1
        assert result.data["results"][0]["subject"] == "Invoice"
        assert handler.requests[0].url.params["maxResults"] == "50"

    async def test_search_requires_query(self, make_agent, credential):
        agent, _ = make_agent({})
        result = await agent.perform("search", EmailDetails(), "u", credential)
        assert result.message == "Search query is required"

    async def test_label_creates_missing(self, make_agent, credential):
        agent, handler = make_agent(
            {
                "GET /users/me/labels": {"labels": [{"id": "L1", "name": "work"}]},
                "POST /users/me/labels": {"id": "L2", "name": "urgent"},
                "POST /messages/m1/modify": {},
            }
        )

        result = await agent.perform("label", EmailDetails(message_id="m1", labels=["work", "urgent"]), "u", credential)

        assert result.action == "email_labeled"
        assert handler.bodies("POST", "/labels")[0]["name"] == "urgent"
        assert handler.bodies("POST", "/modify") == [{"addLabelIds": ["L1", "L2"]}]

    async def test_summarize_empty_inbox(self, make_agent, credential):
        agent, handler = make_agent({"GET /users/me/messages": {}})

        result = await agent.perform("summarize", EmailDetails(), "u", credential)

        assert result.action == "emails_summarized"
        assert result.data["count"] == 0
        assert handler.requests[0].url.params["q"] == "is:unread"

    async def test_summarize_previews(self, make_agent, credential):
        message = dict(ORIGINAL, snippet="x" * 150)
        agent, _ = make_agent({"GET /users/me/messages": {"messages": [{"id": "m1"}]}, "GET /messages/m1": message})

        result = await agent.perform("summarize", EmailDetails(), "u", credential)

        summary = result.data["summary"]
        assert summary.startswith("1. From: Asha <asha@example.org>")
        assert f"Preview: {'x' * 100}..." in summary
