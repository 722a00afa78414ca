"""Keyed storage for live call sessions."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Literal, Protocol

from herald.datetime_utils import parse_iso_timestamp, utc_now

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Turn:
    role: Literal["human", "ai"]
    text: str


@dataclass
class CallSession:
    call_sid: str
    user_id: str
    purpose: str
    dialect: str = "twiml"
    history: list[Turn] = field(default_factory=list)
    started_at: datetime = field(default_factory=utc_now)

    def transcript(self, *, upper: bool = False) -> str:
        return "\n".join(f"{turn.role.upper() if upper else turn.role}: {turn.text}" for turn in self.history)

    def to_dict(self) -> dict[str, Any]:
        return {
            "call_sid": self.call_sid,
            "user_id": self.user_id,
            "purpose": self.purpose,
            "dialect": self.dialect,
            "history": [{"role": turn.role, "text": turn.text} for turn in self.history],
            "started_at": self.started_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> CallSession:
        history = [
            Turn(role=item["role"], text=str(item.get("text") or ""))
            for item in payload.get("history") or []
            if isinstance(item, dict) and item.get("role") in ("human", "ai")
        ]
        return cls(
            call_sid=payload["call_sid"],
            user_id=payload["user_id"],
            purpose=payload.get("purpose") or "",
            dialect=payload.get("dialect") or "twiml",
            history=history,
            started_at=parse_iso_timestamp(payload.get("started_at")) or utc_now(),
        )


class SessionStore(Protocol):
    async def get(self, call_sid: str) -> CallSession | None: ...

    async def set(self, session: CallSession) -> None: ...

    async def delete(self, call_sid: str) -> None: ...


class InMemorySessionStore:
    def __init__(self) -> None:
        self._sessions: dict[str, CallSession] = {}

    async def get(self, call_sid: str) -> CallSession | None:
        return self._sessions.get(call_sid)

    async def set(self, session: CallSession) -> None:
        self._sessions[session.call_sid] = session

    async def delete(self, call_sid: str) -> None:
        self._sessions.pop(call_sid, None)


class JsonFileSessionStore:
    """Sessions persisted to one JSON file, rewritten atomically on change."""

    def __init__(self, path: Path, logger: logging.Logger | None = None) -> None:
        self._path = path
        self._logger = logger or LOGGER

    async def get(self, call_sid: str) -> CallSession | None:
        entry = self._load().get(call_sid)
        if not isinstance(entry, dict):
            return None
        try:
            return CallSession.from_dict(entry)
        except (KeyError, TypeError) as exc:
            self._logger.warning("Skipping invalid call session %s: %s", call_sid, exc)
            return None

    async def set(self, session: CallSession) -> None:
        sessions = self._load()
        sessions[session.call_sid] = session.to_dict()
        self._persist(sessions)

    async def delete(self, call_sid: str) -> None:
        sessions = self._load()
        if sessions.pop(call_sid, None) is not None:
            self._persist(sessions)

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            self._logger.warning("Failed to load sessions file %s: %s", self._path, exc)
            return {}
        sessions = data.get("sessions") if isinstance(data, dict) else None
        return dict(sessions) if isinstance(sessions, dict) else {}

    def _persist(self, sessions: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps({"sessions": sessions}, indent=2), encoding="utf-8")
        tmp_path.replace(self._path)
