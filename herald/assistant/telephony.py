"""Outbound call providers (Twilio, Exotel) and call-control markup."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol
from urllib.parse import urlencode

import httpx

from .config import TelephonyConfig

LOGGER = logging.getLogger(__name__)

TWILIO_VOICE = "Polly.Matthew"
TWILIO_LANGUAGE = "en-US"
DEFAULT_HINTS = "appointment, schedule, doctor, yes, no"
UNVERIFIED_CODES = {21210, 21219, 21608}

Dialect = Literal["twiml", "exoml"]


class CallError(RuntimeError):
    """Call initiation failed."""


class UnverifiedNumberError(CallError):
    """The provider only allows calls to verified numbers (trial accounts)."""


@dataclass(frozen=True)
class CallHandle:
    sid: str
    provider: str
    status: str | None = None


class CallProvider(Protocol):
    name: str

    async def initiate_call(self, phone_number: str, purpose: str, user_id: str) -> CallHandle: ...


def _is_unverified(message: str, code: Any = None) -> bool:
    lowered = message.lower()
    if "not verified" in lowered or "unverified" in lowered:
        return True
    try:
        return int(code) in UNVERIFIED_CODES
    except (TypeError, ValueError):
        return False


@dataclass(slots=True)
class TwilioCallProvider:
    config: TelephonyConfig
    transport: httpx.AsyncBaseTransport | None = None
    logger: logging.Logger | None = None
    name: str = field(init=False, default="twilio")

    def webhook_url(self, purpose: str, user_id: str) -> str:
        query = urlencode({"purpose": purpose, "userId": user_id})
        return f"{self.config.callback_base}/voice/call/webhook?{query}"

    async def initiate_call(self, phone_number: str, purpose: str, user_id: str) -> CallHandle:
        sid = self.config.twilio_account_sid
        token = self.config.twilio_auth_token
        if not sid or not token:
            raise CallError("Twilio client not initialized. Check TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN.")
        url = f"{self.config.twilio_base_url.rstrip('/')}/2010-04-01/Accounts/{sid}/Calls.json"
        form = {
            "To": phone_number,
            "From": self.config.twilio_phone_number or "",
            "Url": self.webhook_url(purpose, user_id),
            "StatusCallback": f"{self.config.callback_base}/voice/call/status",
        }
        payload = await _post_form(url, form, (sid, token), self.config.timeout, self.transport, "Twilio")
        call_sid = payload.get("sid")
        if not call_sid:
            raise CallError("Twilio response missing call sid")
        (self.logger or LOGGER).info("Twilio call initiated: %s", call_sid)
        return CallHandle(sid=str(call_sid), provider=self.name, status=payload.get("status"))


@dataclass(slots=True)
class ExotelCallProvider:
    config: TelephonyConfig
    transport: httpx.AsyncBaseTransport | None = None
    logger: logging.Logger | None = None
    name: str = field(init=False, default="exotel")

    def webhook_url(self, purpose: str, user_id: str) -> str:
        query = urlencode({"purpose": purpose, "userId": user_id})
        return f"{self.config.callback_base}/voice/exotel/webhook?{query}"

    async def initiate_call(self, phone_number: str, purpose: str, user_id: str) -> CallHandle:
        sid = self.config.exotel_account_sid
        if not sid or not self.config.exotel_api_key or not self.config.exotel_api_token:
            raise CallError("Exotel is not configured. Check EXOTEL_ACCOUNT_SID, EXOTEL_API_KEY and EXOTEL_API_TOKEN.")
        url = f"{self.config.exotel_base_url.rstrip('/')}/Accounts/{sid}/Calls/connect.json"
        number = self.config.exotel_virtual_number or ""
        form = {
            "From": number,
            "To": phone_number,
            "CallerId": number,
            "Url": self.webhook_url(purpose, user_id),
            "StatusCallback": f"{self.config.callback_base}/voice/exotel/status",
        }
        auth = (self.config.exotel_api_key, self.config.exotel_api_token)
        payload = await _post_form(url, form, auth, self.config.timeout, self.transport, "Exotel")
        call = payload.get("Call") or {}
        call_sid = call.get("Sid") if isinstance(call, dict) else None
        if not call_sid:
            raise CallError("Exotel response missing call sid")
        (self.logger or LOGGER).info("Exotel call initiated: %s", call_sid)
        return CallHandle(sid=str(call_sid), provider=self.name, status=call.get("Status"))


async def _post_form(
    url: str,
    form: dict[str, str],
    auth: tuple[str, str],
    timeout: int,
    transport: httpx.AsyncBaseTransport | None,
    label: str,
) -> dict[str, Any]:
    async with httpx.AsyncClient(timeout=float(timeout), transport=transport) as client:
        try:
            response = await client.post(url, data=form, auth=auth)
        except httpx.RequestError as exc:  # pragma: no cover - network errors
            raise CallError(f"Failed to contact {label}: {exc}") from exc
    try:
        payload = response.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}
    if response.status_code >= 400:
        message, code = _provider_error(payload)
        message = message or f"{label} API error {response.status_code}"
        if _is_unverified(message, code):
            raise UnverifiedNumberError(message)
        raise CallError(message)
    return payload


def _provider_error(payload: dict[str, Any]) -> tuple[str | None, Any]:
    rest = payload.get("RestException")
    if isinstance(rest, dict):
        return rest.get("Message"), rest.get("Code")
    return payload.get("message"), payload.get("code")


def build_call_provider(config: TelephonyConfig, logger: logging.Logger | None = None) -> CallProvider:
    if config.provider == "exotel":
        return ExotelCallProvider(config, logger=logger)
    return TwilioCallProvider(config, logger=logger)


def build_call_markup(
    text: str | None,
    *,
    dialect: Dialect = "twiml",
    hangup: bool = False,
    action: str | None = None,
    hints: str | None = None,
) -> str:
    """Render TwiML / ExoML: say `text`, then gather speech or hang up."""
    response = ET.Element("Response")
    if text:
        say = ET.SubElement(response, "Say")
        if dialect == "twiml":
            say.set("voice", TWILIO_VOICE)
            say.set("language", TWILIO_LANGUAGE)
        say.text = text
    if hangup:
        ET.SubElement(response, "Hangup")
    elif dialect == "twiml":
        ET.SubElement(
            response,
            "Gather",
            {
                "input": "speech",
                "action": action or "/voice/call/respond",
                "speechTimeout": "auto",
                "hints": hints or DEFAULT_HINTS,
            },
        )
    else:
        gather = ET.SubElement(
            response,
            "Gather",
            {"input": "speech", "action": action or "/voice/exotel/respond", "timeout": "5"},
        )
        ET.SubElement(gather, "Say").text = "..."
    body = ET.tostring(response, encoding="unicode")
    return f'<?xml version="1.0" encoding="UTF-8"?>{body}'
