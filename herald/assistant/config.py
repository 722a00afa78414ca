"""Configuration helpers for the Herald command assistant."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from herald.utils import parse_bool, parse_int, split_csv, strip_or_none

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Asia/Kolkata"
LLM_PROVIDERS = {"openai", "gemini", "openrouter"}
CALL_PROVIDERS = {"twilio", "exotel"}

_OFFSET_PATTERN = re.compile(r"^(?:UTC|GMT)?\s*([+-])(\d{1,2})(?::?(\d{2}))?$", re.IGNORECASE)


@dataclass(frozen=True)
class LLMConfig:
    provider: str
    openai_model: str
    openai_api_key: str | None
    openai_base_url: str
    openai_timeout: int
    gemini_model: str
    gemini_api_key: str | None
    gemini_base_url: str
    gemini_timeout: int
    openrouter_model: str
    openrouter_api_key: str | None
    openrouter_base_url: str
    openrouter_timeout: int
    openrouter_referer: str | None
    openrouter_title: str | None
    temperature: float = 0.6
    max_tokens: int = 600


@dataclass(frozen=True)
class GoogleConfig:
    gmail_base_url: str
    calendar_base_url: str
    calendar_id: str
    timeout: int
    event_timezone: str


@dataclass(frozen=True)
class TelephonyConfig:
    provider: str
    twilio_account_sid: str | None
    twilio_auth_token: str | None
    twilio_phone_number: str | None
    twilio_base_url: str
    exotel_account_sid: str | None
    exotel_api_key: str | None
    exotel_api_token: str | None
    exotel_virtual_number: str | None
    exotel_base_url: str
    backend_url: str | None
    timeout: int

    @property
    def callback_base(self) -> str:
        return (self.backend_url or "http://localhost:4000").rstrip("/")


@dataclass(frozen=True)
class StorageConfig:
    credentials_file: Path | None
    sessions_file: Path | None


@dataclass(frozen=True)
class AssistantConfig:
    assistant_name: str
    timezone_name: str
    llm: LLMConfig
    google: GoogleConfig
    telephony: TelephonyConfig
    storage: StorageConfig
    log_llm_messages: bool
    confirmation_emails: bool
    default_user_id: str
    confirmation_keywords: tuple[str, ...] = ()

    @property
    def timezone(self) -> tzinfo:
        return resolve_timezone(self.timezone_name)

    @staticmethod
    def from_env(env: dict[str, str] | None = None) -> AssistantConfig:
        source = env or os.environ

        openrouter_key = strip_or_none(source.get("OPENROUTER_API_KEY"))
        default_provider = "openrouter" if openrouter_key else "openai"
        llm = LLMConfig(
            provider=_normalize_choice(source.get("HERALD_LLM_PROVIDER"), LLM_PROVIDERS, default_provider),
            openai_model=source.get("OPENAI_MODEL", "gpt-4o-mini"),
            openai_api_key=strip_or_none(source.get("OPENAI_API_KEY")),
            openai_base_url=source.get("OPENAI_BASE_URL", "https://api.openai.com/v1"),
            openai_timeout=parse_int(source.get("OPENAI_TIMEOUT_SECONDS"), 45),
            gemini_model=source.get("GEMINI_MODEL", "gemini-1.5-flash-latest"),
            gemini_api_key=strip_or_none(source.get("GEMINI_API_KEY")),
            gemini_base_url=source.get("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"),
            gemini_timeout=parse_int(source.get("GEMINI_TIMEOUT_SECONDS"), 45),
            openrouter_model=source.get("OPENROUTER_MODEL", "openai/gpt-3.5-turbo"),
            openrouter_api_key=openrouter_key,
            openrouter_base_url=source.get("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1"),
            openrouter_timeout=parse_int(source.get("OPENROUTER_TIMEOUT_SECONDS"), 45),
            openrouter_referer=strip_or_none(source.get("OPENROUTER_REFERER")) or "http://localhost:4000",
            openrouter_title=strip_or_none(source.get("OPENROUTER_TITLE")),
            temperature=_parse_float(source.get("HERALD_LLM_TEMPERATURE"), 0.6),
            max_tokens=parse_int(source.get("HERALD_LLM_MAX_TOKENS"), 600),
        )

        timezone_name = strip_or_none(source.get("HERALD_TIMEZONE")) or DEFAULT_TIMEZONE

        google = GoogleConfig(
            gmail_base_url=source.get("GOOGLE_GMAIL_BASE_URL", "https://gmail.googleapis.com/gmail/v1"),
            calendar_base_url=source.get("GOOGLE_CALENDAR_BASE_URL", "https://www.googleapis.com/calendar/v3"),
            calendar_id=source.get("GOOGLE_CALENDAR_ID", "primary"),
            timeout=parse_int(source.get("GOOGLE_TIMEOUT_SECONDS"), 20),
            event_timezone=strip_or_none(source.get("GOOGLE_EVENT_TIMEZONE")) or timezone_name,
        )

        telephony = TelephonyConfig(
            provider=_normalize_choice(source.get("HERALD_CALL_PROVIDER"), CALL_PROVIDERS, "twilio"),
            twilio_account_sid=strip_or_none(source.get("TWILIO_ACCOUNT_SID")),
            twilio_auth_token=strip_or_none(source.get("TWILIO_AUTH_TOKEN")),
            twilio_phone_number=strip_or_none(source.get("TWILIO_PHONE_NUMBER")),
            twilio_base_url=source.get("TWILIO_BASE_URL", "https://api.twilio.com"),
            exotel_account_sid=strip_or_none(source.get("EXOTEL_ACCOUNT_SID")),
            exotel_api_key=strip_or_none(source.get("EXOTEL_API_KEY")),
            exotel_api_token=strip_or_none(source.get("EXOTEL_API_TOKEN")),
            exotel_virtual_number=strip_or_none(source.get("EXOTEL_VIRTUAL_NUMBER")),
            exotel_base_url=source.get("EXOTEL_BASE_URL", "https://api.exotel.com/v1"),
            backend_url=strip_or_none(source.get("BACKEND_URL")),
            timeout=parse_int(source.get("HERALD_CALL_TIMEOUT_SECONDS"), 20),
        )

        storage = StorageConfig(
            credentials_file=_optional_path(source.get("HERALD_CREDENTIALS_FILE")),
            sessions_file=_optional_path(source.get("HERALD_SESSIONS_FILE")),
        )

        return AssistantConfig(
            assistant_name=source.get("HERALD_ASSISTANT_NAME", "Rohit"),
            timezone_name=timezone_name,
            llm=llm,
            google=google,
            telephony=telephony,
            storage=storage,
            log_llm_messages=parse_bool(source.get("HERALD_LOG_LLM_MESSAGES"), False),
            confirmation_emails=parse_bool(source.get("HERALD_CONFIRMATION_EMAILS"), True),
            default_user_id=source.get("HERALD_USER_ID", "user123"),
            confirmation_keywords=tuple(split_csv(source.get("HERALD_CONFIRMATION_KEYWORDS"))),
        )


def resolve_timezone(name: str | None, logger: logging.Logger | None = None) -> tzinfo:
    """Resolve an IANA zone name or a fixed "+05:30" style offset.

    Unknown names fall back to the system local zone.
    """
    log = logger or LOGGER
    text = (name or "").strip()
    if not text:
        return _system_timezone()
    match = _OFFSET_PATTERN.match(text)
    if match:
        sign, hours, minutes = match.groups()
        delta = timedelta(hours=int(hours), minutes=int(minutes or 0))
        return timezone(-delta if sign == "-" else delta)
    if text.upper() in {"UTC", "Z", "GMT"}:
        return timezone.utc
    try:
        return ZoneInfo(text)
    except (ZoneInfoNotFoundError, ValueError):
        log.warning("Unknown timezone %r; using the system local zone", text)
        return _system_timezone()


def _system_timezone() -> tzinfo:
    return datetime.now().astimezone().tzinfo or timezone.utc


def _optional_path(value: str | None) -> Path | None:
    text = strip_or_none(value)
    if not text:
        return None
    return Path(text).expanduser()


def _parse_float(value: str | None, default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _normalize_choice(value: str | None, allowed: set[str], default: str) -> str:
    if not value:
        return default
    lowered = value.strip().lower()
    if lowered in allowed:
        return lowered
    return default
