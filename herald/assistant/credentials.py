"""Per-user Google credentials.

Obtaining and refreshing tokens is handled elsewhere; these stores only hand
back whatever was last saved for a user.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from herald.datetime_utils import parse_iso_timestamp, utc_now

LOGGER = logging.getLogger(__name__)


class NotAuthorized(RuntimeError):
    """No usable credential is stored for the user."""

    def __init__(self, user_id: str, reason: str = "no Google account linked") -> None:
        super().__init__(f"User {user_id!r} is not authorized: {reason}")
        self.user_id = user_id
        self.reason = reason


@dataclass(frozen=True)
class Credential:
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None
    email: str | None = None

    @property
    def expired(self) -> bool:
        return self.expires_at is not None and self.expires_at <= utc_now()

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "email": self.email,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Credential:
        token = payload.get("access_token")
        if not isinstance(token, str) or not token.strip():
            raise ValueError("credential is missing access_token")
        return cls(
            access_token=token.strip(),
            refresh_token=payload.get("refresh_token"),
            expires_at=parse_iso_timestamp(payload.get("expires_at")),
            email=payload.get("email"),
        )


class CredentialStore(Protocol):
    async def get_credential(self, user_id: str) -> Credential: ...


class InMemoryCredentialStore:
    def __init__(self, credentials: dict[str, Credential] | None = None) -> None:
        self._credentials: dict[str, Credential] = dict(credentials or {})

    async def get_credential(self, user_id: str) -> Credential:
        credential = self._credentials.get(user_id)
        if credential is None:
            raise NotAuthorized(user_id)
        return credential

    async def set_credential(self, user_id: str, credential: Credential) -> None:
        self._credentials[user_id] = credential


class JsonFileCredentialStore:
    """Credentials kept in a JSON file keyed by user id."""

    def __init__(self, path: Path, logger: logging.Logger | None = None) -> None:
        self._path = path
        self._logger = logger or LOGGER

    async def get_credential(self, user_id: str) -> Credential:
        entry = self._read().get(user_id)
        if not isinstance(entry, dict):
            raise NotAuthorized(user_id)
        try:
            return Credential.from_dict(entry)
        except ValueError as exc:
            self._logger.warning("Ignoring invalid credential for %s: %s", user_id, exc)
            raise NotAuthorized(user_id, str(exc)) from exc

    async def set_credential(self, user_id: str, credential: Credential) -> None:
        users = self._read()
        users[user_id] = credential.to_dict()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps({"users": users}, indent=2), encoding="utf-8")
        tmp_path.replace(self._path)

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            self._logger.warning("Failed to load credentials file %s: %s", self._path, exc)
            return {}
        users = data.get("users") if isinstance(data, dict) else None
        return dict(users) if isinstance(users, dict) else {}
