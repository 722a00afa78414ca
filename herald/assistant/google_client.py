"""Async client helpers for the Gmail v1 and Calendar v3 REST APIs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import httpx

from .config import GoogleConfig


class GoogleApiError(RuntimeError):
    """Generic Google API failure."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GoogleAuthError(GoogleApiError):
    """Raised when Google returns 401/403."""


@dataclass(slots=True)
class GoogleApiClient:
    config: GoogleConfig
    access_token: str
    transport: httpx.AsyncBaseTransport | None = None
    _client: httpx.AsyncClient = field(init=False, repr=False)
    _closed: bool = field(init=False, default=True, repr=False)

    def __post_init__(self) -> None:
        if not self.access_token:
            raise ValueError("Google access token is not configured")
        self._client = httpx.AsyncClient(
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Accept": "application/json",
            },
            timeout=float(self.config.timeout),
            transport=self.transport,
        )
        self._closed = False

    async def __aenter__(self) -> GoogleApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Gmail
    # ------------------------------------------------------------------

    async def send_message(self, raw: str, *, thread_id: str | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {"raw": raw}
        if thread_id:
            body["threadId"] = thread_id
        return await self._request("POST", self._gmail("/users/me/messages/send"), json=body)

    async def create_draft(self, raw: str) -> dict[str, Any]:
        return await self._request("POST", self._gmail("/users/me/drafts"), json={"message": {"raw": raw}})

    async def get_message(
        self,
        message_id: str,
        *,
        format: str = "metadata",
        metadata_headers: tuple[str, ...] = (),
    ) -> dict[str, Any]:
        params: list[tuple[str, str]] = [("format", format)]
        params.extend(("metadataHeaders", header) for header in metadata_headers)
        path = f"/users/me/messages/{quote(message_id, safe='')}"
        return await self._request("GET", self._gmail(path), params=params)

    async def list_messages(self, query: str, max_results: int) -> list[dict[str, Any]]:
        payload = await self._request(
            "GET",
            self._gmail("/users/me/messages"),
            params={"q": query, "maxResults": max_results},
        )
        return _items(payload, "messages")

    async def list_labels(self) -> list[dict[str, Any]]:
        payload = await self._request("GET", self._gmail("/users/me/labels"))
        return _items(payload, "labels")

    async def create_label(self, name: str) -> dict[str, Any]:
        return await self._request(
            "POST",
            self._gmail("/users/me/labels"),
            json={"name": name, "labelListVisibility": "labelShow", "messageListVisibility": "show"},
        )

    async def modify_message_labels(self, message_id: str, add_label_ids: list[str]) -> dict[str, Any]:
        return await self._request(
            "POST",
            self._gmail(f"/users/me/messages/{quote(message_id, safe='')}/modify"),
            json={"addLabelIds": add_label_ids},
        )

    # ------------------------------------------------------------------
    # Calendar
    # ------------------------------------------------------------------

    async def insert_event(self, event: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", self._events(), params={"sendUpdates": "all"}, json=event)

    async def get_event(self, event_id: str) -> dict[str, Any]:
        return await self._request("GET", self._events(event_id))

    async def update_event(self, event_id: str, event: dict[str, Any]) -> dict[str, Any]:
        return await self._request("PUT", self._events(event_id), params={"sendUpdates": "all"}, json=event)

    async def delete_event(self, event_id: str) -> None:
        await self._request("DELETE", self._events(event_id), params={"sendUpdates": "all"})

    async def list_events(self, time_min: str, time_max: str, max_results: int) -> list[dict[str, Any]]:
        payload = await self._request(
            "GET",
            self._events(),
            params={
                "timeMin": time_min,
                "timeMax": time_max,
                "maxResults": max_results,
                "singleEvents": "true",
                "orderBy": "startTime",
            },
        )
        return _items(payload, "items")

    async def query_free_busy(self, time_min: str, time_max: str, calendar_ids: list[str]) -> dict[str, Any]:
        payload = await self._request(
            "POST",
            f"{self.config.calendar_base_url.rstrip('/')}/freeBusy",
            json={"timeMin": time_min, "timeMax": time_max, "items": [{"id": item} for item in calendar_ids]},
        )
        return payload if isinstance(payload, dict) else {}

    # ------------------------------------------------------------------

    def _gmail(self, path: str) -> str:
        return f"{self.config.gmail_base_url.rstrip('/')}{path}"

    def _events(self, event_id: str | None = None) -> str:
        base = self.config.calendar_base_url.rstrip("/")
        calendar = quote(self.config.calendar_id, safe="")
        url = f"{base}/calendars/{calendar}/events"
        if event_id:
            url = f"{url}/{quote(event_id, safe='')}"
        return url

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.RequestError as exc:  # pragma: no cover - network errors
            raise GoogleApiError(f"Failed to contact Google: {exc}") from exc
        if response.status_code in (401, 403):
            raise GoogleAuthError(_error_message(response) or "Google rejected the access token", response.status_code)
        if response.status_code >= 400:
            detail = _error_message(response) or response.text
            raise GoogleApiError(f"Google API error {response.status_code}: {detail}", response.status_code)
        if not response.content:
            return {}
        if response.headers.get("content-type", "").startswith("application/json"):
            try:
                return response.json()
            except ValueError as exc:
                raise GoogleApiError(f"Google returned malformed JSON: {exc}", response.status_code) from exc
        return response.text


def _items(payload: Any, key: str) -> list[dict[str, Any]]:
    if not isinstance(payload, dict):
        return []
    items = payload.get(key) or []
    return [item for item in items if isinstance(item, dict)] if isinstance(items, list) else []


def _error_message(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        message = error.get("message")
        return str(message) if message else None
    if isinstance(error, str):
        return payload.get("error_description") or error
    return None


def header_value(message: dict[str, Any], name: str) -> str:
    """Return a Gmail header value (case-insensitive) or an empty string."""
    payload = message.get("payload") or {}
    for header in payload.get("headers") or []:
        if isinstance(header, dict) and str(header.get("name", "")).lower() == name.lower():
            return str(header.get("value") or "")
    return ""
