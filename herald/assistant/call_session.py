"""Drive a live phone conversation turn by turn and report on it afterwards.

Telephony webhooks call `start` when the callee picks up, `respond` after
each utterance, and `finish` on status callbacks. Each returns call-control
markup (or nothing, for `finish`); all state lives in the session store so
webhook handlers stay stateless.
"""

from __future__ import annotations

import logging
from typing import Protocol

from .credentials import CredentialStore, NotAuthorized
from .email_agent import EmailAgent
from .llm import LLMError
from .session_store import CallSession, SessionStore, Turn
from .telephony import Dialect, build_call_markup

LOGGER = logging.getLogger(__name__)

END_CALL_MARKER = "[END_CALL]"
FINAL_STATUSES = frozenset({"completed", "busy", "no-answer"})
MISSING_SESSION_REPLY = "I'm sorry, I encountered a system error. Goodbye."
LLM_FAILURE_REPLY = "I'm having trouble connecting to my central brain. Let me call you back later. Goodbye."


class Completion(Protocol):
    async def complete(self, prompt: str) -> str: ...


class CallConversation:
    def __init__(
        self,
        completion: Completion,
        store: SessionStore,
        email_agent: EmailAgent,
        credentials: CredentialStore,
        *,
        assistant_name: str = "Rohit",
        logger: logging.Logger | None = None,
    ) -> None:
        self._completion = completion
        self._store = store
        self._email_agent = email_agent
        self._credentials = credentials
        self._name = assistant_name
        self._logger = logger or LOGGER

    def greeting(self, purpose: str) -> str:
        return (
            f"Hello, I am {self._name}, a personal AI assistant calling on behalf of my user "
            f"regarding {purpose}. How can I help you?"
        )

    async def start(self, call_sid: str, user_id: str, purpose: str, *, dialect: Dialect = "twiml") -> str:
        session = CallSession(call_sid=call_sid, user_id=user_id, purpose=purpose, dialect=dialect)
        await self._store.set(session)
        self._logger.info("Call %s answered (purpose=%s)", call_sid, purpose)
        return build_call_markup(self.greeting(purpose), dialect=dialect, action=_respond_path(dialect))

    async def respond(self, call_sid: str, speech: str | None, *, dialect: Dialect = "twiml") -> str:
        session = await self._store.get(call_sid)
        if session is None:
            self._logger.error("No session found for call %s", call_sid)
            return build_call_markup(MISSING_SESSION_REPLY, dialect=dialect, hangup=True)

        heard = (speech or "").strip()
        session.history.append(Turn("human", heard))
        try:
            reply = await self._completion.complete(self._turn_prompt(session, heard))
        except LLMError:
            self._logger.exception("LLM failed during call %s", call_sid)
            await self._store.set(session)
            return build_call_markup(LLM_FAILURE_REPLY, dialect=session.dialect, hangup=True)

        should_end = END_CALL_MARKER in reply
        spoken = reply.replace(END_CALL_MARKER, "").strip()
        session.history.append(Turn("ai", spoken))
        await self._store.set(session)
        return build_call_markup(
            spoken,
            dialect=session.dialect,
            hangup=should_end,
            action=_respond_path(session.dialect),
        )

    async def finish(self, call_sid: str, status: str) -> bool:
        """Summarize and email a finished call; returns True when a summary was sent."""
        if status not in FINAL_STATUSES:
            return False
        session = await self._store.get(call_sid)
        if session is None:
            return False
        self._logger.info("Call %s ended with status %s", call_sid, status)
        sent = False
        try:
            if session.history:
                sent = await self._summarize_and_email(session, status)
        finally:
            await self._store.delete(call_sid)
        return sent

    def _turn_prompt(self, session: CallSession, heard: str) -> str:
        return f"""You are {self._name}, a personal AI assistant on a phone call.
User's purpose for this call: {session.purpose}

Conversation history:
{session.transcript()}

Role:
- Be polite, professional, and concise.
- If you have achieved the goal (e.g. booked the appointment), end the call gracefully.
- If you are stuck, ask for clarification.
- If you want to end the call, include "{END_CALL_MARKER}" at the end of your response.

Human's last response: "{heard}"
AI Response:"""

    async def _summarize_and_email(self, session: CallSession, status: str) -> bool:
        prompt = (
            "Summarize the following phone call conversation for the user.\n"
            f"Purpose: {session.purpose}\n\n"
            f"History:\n{session.transcript()}\n\n"
            "Format as 5-8 bullet points. Include success/failure status."
        )
        try:
            summary = await self._completion.complete(prompt)
            credential = await self._credentials.get_credential(session.user_id)
        except (LLMError, NotAuthorized):
            self._logger.exception("Could not summarize call %s", session.call_sid)
            return False
        if not credential.email:
            self._logger.warning("No email address for %s; call summary not sent", session.user_id)
            return False
        body = (
            "Here is the summary of the AI call made on your behalf:\n\n"
            f"- Purpose: {session.purpose}\n"
            f"- Date: {session.started_at:%Y-%m-%d %H:%M %Z}\n"
            f"- Status: {status}\n\n"
            f"Summary:\n{summary.strip()}\n\n"
            f"Full Transcript:\n{session.transcript(upper=True)}\n"
        )
        result = await self._email_agent.compose(
            credential.email,
            f"AI Call Summary – {session.purpose}",
            body,
            credential,
        )
        if not result.ok:
            self._logger.warning("Call summary email failed: %s", result.message)
        return result.ok


def _respond_path(dialect: Dialect) -> str:
    return "/voice/exotel/respond" if dialect == "exoml" else "/voice/call/respond"
