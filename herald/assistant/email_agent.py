"""Gmail actions: send, draft, reply, search, label, summarize."""

from __future__ import annotations

import asyncio
import base64
import logging
from collections.abc import Callable
from email.message import EmailMessage
from typing import Any, Protocol

from .config import GoogleConfig
from .credentials import Credential
from .email_normalizer import extract_email_and_body
from .google_client import GoogleApiClient, GoogleApiError, header_value
from .llm import LLMError
from .models import ActionResult, EmailDetails

LOGGER = logging.getLogger(__name__)

SEARCH_DEFAULT_RESULTS = 10
SEARCH_MAX_RESULTS = 50
SUMMARY_DEFAULT_QUERY = "is:unread"
SUMMARY_DEFAULT_RESULTS = 5
SUMMARY_MAX_RESULTS = 10
SHORT_BODY_WORDS = 10
FALLBACK_SUBJECT = "Checking in"

ClientFactory = Callable[[str], GoogleApiClient]


class Completion(Protocol):
    async def complete(self, prompt: str) -> str: ...


def encode_message(
    to: str,
    subject: str,
    body: str,
    *,
    in_reply_to: str | None = None,
) -> str:
    """Render an RFC 2822 message and base64url-encode it for the Gmail API."""
    message = EmailMessage()
    message["To"] = to
    message["Subject"] = subject
    if in_reply_to:
        message["In-Reply-To"] = in_reply_to
        message["References"] = in_reply_to
    message.set_content(body or "")
    return base64.urlsafe_b64encode(message.as_bytes()).decode("ascii").rstrip("=")


def normalize_recipient(value: str | None) -> str | None:
    email, _ = extract_email_and_body(value)
    return email.address if email else None


def needs_rewrite(body: str | None, prompt_for_body: str | None) -> bool:
    if prompt_for_body:
        return True
    if not body or not body.strip():
        return True
    return len(body.split()) < SHORT_BODY_WORDS


class EmailAgent:
    """Run Gmail actions on behalf of a user's access token."""

    def __init__(
        self,
        completion: Completion,
        config: GoogleConfig,
        *,
        client_factory: ClientFactory | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._completion = completion
        self._config = config
        self._client_factory = client_factory or (lambda token: GoogleApiClient(config, token))
        self._logger = logger or LOGGER

    async def perform(
        self,
        action: str,
        details: EmailDetails,
        user_id: str,
        credential: Credential | None,
    ) -> ActionResult:
        self._logger.info("Email action %s for %s (to=%s)", action, user_id, details.to)
        if credential is None or not credential.access_token:
            return ActionResult.failure("No access token provided", error="not_authorized", action=action)
        handler = {
            "send": self._send,
            "draft": self._draft,
            "reply": self._reply,
            "search": self._search,
            "label": self._label,
            "summarize": self._summarize,
        }.get(action)
        if handler is None:
            return ActionResult.failure(f"Unknown email action: {action}", error="unknown_action", action=action)
        async with self._client_factory(credential.access_token) as client:
            try:
                return await handler(client, details)
            except GoogleApiError as exc:
                self._logger.exception("Email %s failed", action)
                return ActionResult.failure(f"Failed to {action} email: {exc}", action=action)

    async def compose(self, to: str, subject: str, body: str, credential: Credential) -> ActionResult:
        """Send a ready-made message without any LLM rewriting."""
        async with self._client_factory(credential.access_token) as client:
            try:
                response = await client.send_message(encode_message(to, subject, body))
            except GoogleApiError as exc:
                self._logger.exception("Sending message to %s failed", to)
                return ActionResult.failure(f"Failed to send email: {exc}", action="send")
        return ActionResult.success(
            "email_sent",
            f"Email sent to {to}",
            to=to,
            subject=subject,
            message_id=response.get("id"),
        )

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def _send(self, client: GoogleApiClient, details: EmailDetails) -> ActionResult:
        prepared = await self._prepare(details)
        if isinstance(prepared, ActionResult):
            return prepared
        to, subject, body = prepared
        response = await client.send_message(encode_message(to, subject, body))
        return ActionResult.success(
            "email_sent",
            f"Email sent to {to}",
            to=to,
            subject=subject,
            body=body,
            message_id=response.get("id"),
        )

    async def _draft(self, client: GoogleApiClient, details: EmailDetails) -> ActionResult:
        prepared = await self._prepare(details)
        if isinstance(prepared, ActionResult):
            return prepared
        to, subject, body = prepared
        response = await client.create_draft(encode_message(to, subject, body))
        return ActionResult.success(
            "email_drafted",
            "Email draft created (not sent)",
            to=to,
            subject=subject,
            body=body,
            draft_id=response.get("id"),
        )

    async def _reply(self, client: GoogleApiClient, details: EmailDetails) -> ActionResult:
        if not details.message_id or not details.body:
            return ActionResult.failure("Message ID and reply body are required", action="reply")
        original = await client.get_message(
            details.message_id,
            metadata_headers=("From", "Subject", "Message-ID"),
        )
        sender = normalize_recipient(header_value(original, "From"))
        if not sender:
            return ActionResult.failure("Could not determine who sent the original message", action="reply")
        subject = details.subject or header_value(original, "Subject")
        if not subject.lower().startswith("re:"):
            subject = f"Re: {subject}"
        thread_id = original.get("threadId")
        raw = encode_message(
            sender,
            subject,
            details.body,
            in_reply_to=header_value(original, "Message-ID") or details.message_id,
        )
        response = await client.send_message(raw, thread_id=thread_id)
        return ActionResult.success(
            "email_replied",
            "Reply sent",
            to=sender,
            subject=subject,
            message_id=response.get("id"),
            thread_id=thread_id,
        )

    async def _search(self, client: GoogleApiClient, details: EmailDetails) -> ActionResult:
        if not details.query:
            return ActionResult.failure("Search query is required", action="search")
        limit = min(details.max_results or SEARCH_DEFAULT_RESULTS, SEARCH_MAX_RESULTS)
        messages = await client.list_messages(details.query, limit)
        fetched = await asyncio.gather(
            *(
                client.get_message(str(item.get("id")), metadata_headers=("From", "Subject", "Date"))
                for item in messages
                if item.get("id")
            )
        )
        results = [
            {
                "id": message.get("id"),
                "thread_id": message.get("threadId"),
                "from": header_value(message, "From"),
                "subject": header_value(message, "Subject"),
                "date": header_value(message, "Date"),
            }
            for message in fetched
        ]
        return ActionResult.success(
            "emails_found",
            f'Found {len(results)} emails matching "{details.query}"',
            query=details.query,
            count=len(results),
            results=results,
        )

    async def _label(self, client: GoogleApiClient, details: EmailDetails) -> ActionResult:
        if not details.message_id or not details.labels:
            return ActionResult.failure("Message ID and label(s) are required", action="label")
        existing = {str(label.get("name")): label for label in await client.list_labels()}
        label_ids: list[str] = []
        for name in details.labels:
            label = existing.get(name)
            if label is None:
                self._logger.debug("Creating Gmail label %s", name)
                label = await client.create_label(name)
                existing[name] = label
            label_ids.append(str(label.get("id")))
        await client.modify_message_labels(details.message_id, label_ids)
        return ActionResult.success(
            "email_labeled",
            f"Labels applied: {', '.join(details.labels)}",
            message_id=details.message_id,
            labels=list(details.labels),
        )

    async def _summarize(self, client: GoogleApiClient, details: EmailDetails) -> ActionResult:
        query = details.query or SUMMARY_DEFAULT_QUERY
        limit = min(details.max_results or SUMMARY_DEFAULT_RESULTS, SUMMARY_MAX_RESULTS)
        messages = await client.list_messages(query, limit)
        if not messages:
            return ActionResult.success(
                "emails_summarized",
                "No emails found matching your query",
                count=0,
                summary="No emails found matching your query",
            )
        fetched = await asyncio.gather(
            *(client.get_message(str(item.get("id")), format="full") for item in messages if item.get("id"))
        )
        summary = "\n\n".join(_preview(index, message) for index, message in enumerate(fetched, start=1))
        return ActionResult.success(
            "emails_summarized",
            f"Summarized {len(fetched)} emails",
            query=query,
            count=len(fetched),
            summary=summary,
        )

    # ------------------------------------------------------------------
    # Composition helpers
    # ------------------------------------------------------------------

    async def _prepare(self, details: EmailDetails) -> tuple[str, str, str] | ActionResult:
        if not details.to:
            return ActionResult.failure("Email recipient is required")
        to = normalize_recipient(details.to)
        if not to:
            return ActionResult.failure(f"Could not find a valid email address in {details.to!r}")
        instruction = details.prompt_for_body or details.body or FALLBACK_SUBJECT
        subject = details.subject or await self._generate_subject(instruction)
        body = details.body or ""
        if needs_rewrite(details.body, details.prompt_for_body):
            body = await self._professionalize(details.prompt_for_body or details.body or "", to, subject, body)
        return to, subject, body

    async def _generate_subject(self, instruction: str) -> str:
        prompt = f'Generate a short, professional email subject for this instruction: "{instruction}"'
        try:
            reply = await self._completion.complete(prompt)
        except LLMError:
            self._logger.warning("Subject generation failed; using %r", FALLBACK_SUBJECT)
            return FALLBACK_SUBJECT
        return strip_subject_prefix(reply) or FALLBACK_SUBJECT

    async def _professionalize(self, instruction: str, to: str, subject: str, original: str) -> str:
        prompt = (
            f'Write a professional, concise email body based on this instruction: "{instruction}".\n'
            f"The email is to: {to}\n"
            f"Subject: {subject}\n\n"
            "Output ONLY the body text, no 'Subject:' line or extra commentary."
        )
        try:
            reply = await self._completion.complete(prompt)
        except LLMError:
            self._logger.warning("Body generation failed; keeping the original body")
            return original
        return str(reply).strip() or original


def strip_subject_prefix(text: Any) -> str:
    value = str(text or "").strip().strip('"').strip()
    if value.lower().startswith("subject:"):
        value = value[len("subject:") :].strip()
    return value.strip('"').strip()


def _preview(index: int, message: dict[str, Any]) -> str:
    snippet = str(message.get("snippet") or "")
    return (
        f"{index}. From: {header_value(message, 'From')}\n"
        f"   Subject: {header_value(message, 'Subject')}\n"
        f"   Preview: {snippet[:100]}..."
    )
