"""Tests for credential stores (herald/assistant/credentials.py)."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta

import pytest

from herald.assistant.credentials import (
    Credential,
    InMemoryCredentialStore,
    JsonFileCredentialStore,
    NotAuthorized,
)

pytestmark = pytest.mark.anyio


class TestCredential:
    """Serialization and expiry."""

    def test_round_trip(self):
        credential = Credential("tok", "refresh", datetime(2026, 1, 1, tzinfo=UTC), "me@example.com")
        assert Credential.from_dict(credential.to_dict()) == credential

    def test_missing_token(self):
        with pytest.raises(ValueError):
            Credential.from_dict({"access_token": "  "})

    def test_expired(self):
        assert Credential("t", expires_at=datetime.now(UTC) - timedelta(minutes=1)).expired is True
        assert Credential("t", expires_at=datetime.now(UTC) + timedelta(hours=1)).expired is False
        assert Credential("t").expired is False


class TestInMemoryCredentialStore:
    """Dictionary-backed store."""

    async def test_get_and_set(self, credential):
        store = InMemoryCredentialStore()
        await store.set_credential("user123", credential)
        assert await store.get_credential("user123") is credential

    async def test_unknown_user(self):
        with pytest.raises(NotAuthorized) as excinfo:
            await InMemoryCredentialStore().get_credential("ghost")
        assert excinfo.value.user_id == "ghost"


class TestJsonFileCredentialStore:
    """File-backed store."""

    async def test_persists_and_reloads(self, tmp_path, credential):
        path = tmp_path / "state" / "credentials.json"
        await JsonFileCredentialStore(path).set_credential("user123", credential)

        assert json.loads(path.read_text())["users"]["user123"]["access_token"] == "ya29.test-token"
        assert not path.with_suffix(".tmp").exists()
        assert await JsonFileCredentialStore(path).get_credential("user123") == credential

    async def test_missing_file(self, tmp_path):
        with pytest.raises(NotAuthorized):
            await JsonFileCredentialStore(tmp_path / "none.json").get_credential("user123")

    async def test_invalid_entry(self, tmp_path, mock_logger):
        path = tmp_path / "credentials.json"
        path.write_text(json.dumps({"users": {"user123": {"email": "x@y.com"}}}))

        with pytest.raises(NotAuthorized) as excinfo:
            await JsonFileCredentialStore(path, mock_logger).get_credential("user123")
        assert "access_token" in excinfo.value.reason
        mock_logger.warning.assert_called_once()

    async def test_corrupt_file(self, tmp_path, mock_logger):
        path = tmp_path / "credentials.json"
        path.write_text("{not json")

        with pytest.raises(NotAuthorized):
            await JsonFileCredentialStore(path, mock_logger).get_credential("user123")
        mock_logger.warning.assert_called_once()
