"""
HTTP tests for /api/keys and /api/usage.
"""

import datetime
import uuid

import pytest

from capycode.models.provider_key import ProviderKey
from capycode.services.key_validator import KeyCheck
from capycode.services.key_vault import decrypt_key, encrypt_key


def _stub_validator(monkeypatch, result: KeyCheck) -> list[tuple[str, str]]:
    calls: list[tuple[str, str]] = []

    async def fake_validate(provider, key, client=None):
        calls.append((provider, key))
        return result

    monkeypatch.setattr("capycode.routers.provider_keys.validate_provider_key", fake_validate)
    return calls


class TestValidateUnsavedKey:
    async def test_valid_key(self, client, monkeypatch, db_session):
        calls = _stub_validator(monkeypatch, KeyCheck(valid=True))

        response = await client.post(
            "/api/keys/validate", json={"provider": "openai", "key": "  sk-test-123  "}
        )

        assert response.json() == {"valid": True, "error": None, "is_quota": False, "hint": None}
        assert calls == [("openai", "sk-test-123")]
        assert db_session.added[0].kind == "key_validation"
        assert db_session.added[0].provider == "openai"

    async def test_quota_failure_carries_hint(self, client, monkeypatch):
        _stub_validator(
            monkeypatch, KeyCheck(valid=False, error="Quota exceeded", is_quota=True)
        )

        response = await client.post(
            "/api/keys/validate", json={"provider": "google", "key": "AIza-test"}
        )

        body = response.json()
        assert body["valid"] is False
        assert body["is_quota"] is True
        assert body["hint"].startswith("API quota exceeded.")

    async def test_unknown_provider_rejected(self, client):
        response = await client.post(
            "/api/keys/validate", json={"provider": "mistral", "key": "abc"}
        )

        assert response.status_code == 422


@pytest.fixture
def stored_key(auth) -> ProviderKey:
    return ProviderKey(
        id=uuid.uuid4(),
        user_id=auth.user_id,
        name="Work OpenAI",
        provider="openai",
        key_preview="sk-l...abcd",
        encrypted_key=encrypt_key("sk-live-0000abcd"),
        status="active",
        created_at=datetime.datetime(2026, 2, 1, tzinfo=datetime.timezone.utc),
    )


class TestStoredKeys:
    async def test_list(self, client, db_session, stored_key):
        db_session.results = [[stored_key]]

        response = await client.get("/api/keys")

        assert response.status_code == 200
        (key,) = response.json()
        assert key["id"] == str(stored_key.id)
        assert key["key_preview"] == "sk-l...abcd"
        assert "encrypted_key" not in key

    async def test_create_stores_only_ciphertext(self, client, auth, db_session):
        response = await client.post(
            "/api/keys",
            json={"name": "Personal", "provider": "anthropic", "key": " sk-ant-1234567890 "},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["key_preview"] == "sk-a...7890"
        assert body["status"] == "unknown"
        assert body["last_checked_at"] is None
        uuid.UUID(body["id"])
        assert "sk-ant-1234567890" not in response.text

        stored = db_session.added[0]
        assert stored.user_id == auth.user_id
        assert stored.encrypted_key != "sk-ant-1234567890"
        assert decrypt_key(stored.encrypted_key) == "sk-ant-1234567890"
        assert db_session.commits == 1

    async def test_create_rejects_short_key(self, client, db_session):
        response = await client.post(
            "/api/keys", json={"name": "Short", "provider": "openai", "key": "abc"}
        )

        assert response.status_code == 422
        assert db_session.added == []

    async def test_delete(self, client, db_session, stored_key):
        db_session.results = [[stored_key]]

        response = await client.delete(f"/api/keys/{stored_key.id}")

        assert response.status_code == 204
        assert db_session.deleted == [stored_key]
        assert db_session.commits == 1

    async def test_delete_foreign_key_is_404(self, client, db_session):
        db_session.results = [[]]

        response = await client.delete(f"/api/keys/{uuid.uuid4()}")

        assert response.status_code == 404
        assert db_session.deleted == []

    async def test_validate_persists_status_with_usage_event(
        self, client, monkeypatch, db_session, stored_key
    ):
        calls = _stub_validator(
            monkeypatch,
            KeyCheck(valid=False, error="Rate limit or quota exceeded", is_quota=True),
        )
        db_session.results = [[stored_key]]

        response = await client.post(f"/api/keys/{stored_key.id}/validate")

        assert response.status_code == 200
        assert response.json()["is_quota"] is True
        assert calls == [("openai", "sk-live-0000abcd")]
        assert stored_key.status == "quota_exceeded"
        assert stored_key.error_message == "Rate limit or quota exceeded"
        assert stored_key.last_checked_at is not None
        assert db_session.added[0].kind == "key_validation"
        assert db_session.commits == 1

    async def test_validate_success_clears_error(
        self, client, monkeypatch, db_session, stored_key
    ):
        stored_key.status = "error"
        stored_key.error_message = "Invalid API key"
        _stub_validator(monkeypatch, KeyCheck(valid=True))
        db_session.results = [[stored_key]]

        response = await client.post(f"/api/keys/{stored_key.id}/validate")

        assert response.json()["valid"] is True
        assert stored_key.status == "active"
        assert stored_key.error_message is None

    async def test_validate_foreign_key_is_404(self, client, monkeypatch, db_session):
        calls = _stub_validator(monkeypatch, KeyCheck(valid=True))
        db_session.results = [[]]

        response = await client.post(f"/api/keys/{uuid.uuid4()}/validate")

        assert response.status_code == 404
        assert calls == []


class TestUsageEvents:
    async def test_unknown_project_is_404(self, client, monkeypatch):
        async def no_project(session, project_id, user_id):
            return None

        monkeypatch.setattr("capycode.routers.usage.get_owned_project", no_project)

        response = await client.post(
            "/api/usage/events",
            json={"provider": "anthropic", "tokens": 1200, "project_id": str(uuid.uuid4())},
        )

        assert response.status_code == 404

    async def test_negative_tokens_rejected(self, client):
        response = await client.post("/api/usage/events", json={"tokens": -1})

        assert response.status_code == 422

    async def test_only_generation_events_accepted(self, client):
        response = await client.post("/api/usage/events", json={"kind": "sandbox", "tokens": 1})

        assert response.status_code == 422

    async def test_daily_days_bounds(self, client):
        response = await client.get("/api/usage/daily", params={"days": 0})

        assert response.status_code == 422
