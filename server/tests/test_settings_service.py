from __future__ import annotations

import asyncio
import importlib
from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest

from server.features.settings.errors import ConfigEntryValidationError
from server.features.settings.types import FROM_EMAIL_KEY, FROM_NAME_KEY, ConfigEntryCreate, ConfigEntryPatch

settings_service = importlib.import_module("server.features.settings.service")

NOW = datetime(2026, 4, 1, 12, 0, tzinfo=timezone.utc)
USER_ID = uuid4()


class _DummySession:
    pass


def _fake_env_settings(**overrides):
    base = {
        "email_from_address": "no-reply@example.com",
        "email_from_name": "Email Marketing App",
    }
    base.update(overrides)
    return SimpleNamespace(**base)


def _entry(**values):
    base = {
        "id": uuid4(),
        "key": "FROM_EMAIL",
        "value": "news@acme.test",
        "description": None,
        "created_at": NOW,
        "updated_at": NOW,
    }
    base.update(values)
    return SimpleNamespace(**base)


def test_default_sender_identity_from_env(monkeypatch):
    monkeypatch.setattr(settings_service, "get_settings", lambda: _fake_env_settings(email_from_name="Acme"))

    resolved = settings_service.default_sender_identity_from_env()

    assert resolved.from_email == "no-reply@example.com"
    assert resolved.from_name == "Acme"
    assert resolved.source == "environment_defaults"


def test_resolve_sender_identity_prefers_database_values(monkeypatch):
    monkeypatch.setattr(settings_service, "get_settings", lambda: _fake_env_settings())

    async def _fake_get_values(_session, *, user_id, keys):
        assert set(keys) == {FROM_EMAIL_KEY, FROM_NAME_KEY}
        return {FROM_EMAIL_KEY: " news@acme.test "}

    monkeypatch.setattr(settings_service.repo, "get_values", _fake_get_values)

    resolved = asyncio.run(settings_service.resolve_sender_identity(_DummySession(), user_id=USER_ID))

    assert resolved.from_email == "news@acme.test"
    assert resolved.from_name == "Email Marketing App"
    assert resolved.source == "database"


def test_resolve_sender_identity_falls_back_when_rows_missing(monkeypatch):
    monkeypatch.setattr(settings_service, "get_settings", lambda: _fake_env_settings())

    async def _fake_get_values(_session, *, user_id, keys):
        return {FROM_NAME_KEY: "   "}

    monkeypatch.setattr(settings_service.repo, "get_values", _fake_get_values)

    resolved = asyncio.run(settings_service.resolve_sender_identity(_DummySession(), user_id=USER_ID))

    assert resolved.source == "environment_defaults"
    assert resolved.from_email == "no-reply@example.com"


def test_create_config_entry_sanitizes_fields(monkeypatch):
    captured = {}

    async def _fake_create(_session, *, user_id, key, value, description):
        captured.update(key=key, value=value, description=description)
        return _entry(key=key, value=value, description=description)

    monkeypatch.setattr(settings_service.repo, "create_entry", _fake_create)

    response = asyncio.run(
        settings_service.create_config_entry(
            _DummySession(),
            user_id=USER_ID,
            payload=ConfigEntryCreate(key=" FROM_NAME ", value="Acme\x00 Store\r\n", description="  "),
        )
    )

    assert captured == {"key": "FROM_NAME", "value": "Acme Store", "description": None}
    assert response.key == "FROM_NAME"


def test_create_config_entry_rejects_bad_keys(monkeypatch):
    async def _unexpected(*args, **kwargs):
        raise AssertionError("repo should not be called")

    monkeypatch.setattr(settings_service.repo, "create_entry", _unexpected)

    with pytest.raises(ConfigEntryValidationError, match="key may only contain"):
        asyncio.run(
            settings_service.create_config_entry(
                _DummySession(),
                user_id=USER_ID,
                payload=ConfigEntryCreate(key="from email", value="x"),
            )
        )


def test_update_config_entry_noop_returns_current(monkeypatch):
    row = _entry()

    async def _fake_get(_session, *, user_id, entry_id):
        return row

    async def _unexpected(*args, **kwargs):
        raise AssertionError("repo.update_entry should not be called")

    monkeypatch.setattr(settings_service.repo, "get_entry", _fake_get)
    monkeypatch.setattr(settings_service.repo, "update_entry", _unexpected)

    response = asyncio.run(
        settings_service.update_config_entry(
            _DummySession(),
            user_id=USER_ID,
            entry_id=str(row.id),
            payload=ConfigEntryPatch(),
        )
    )

    assert response.value == "news@acme.test"


def test_update_config_entry_clears_description(monkeypatch):
    row = _entry(description="Sender address")
    captured = {}

    async def _fake_get(_session, *, user_id, entry_id):
        return row

    async def _fake_update(_session, *, row, value=None, description=None, clear_description=False):
        captured.update(value=value, description=description, clear_description=clear_description)
        row.description = None
        return row

    monkeypatch.setattr(settings_service.repo, "get_entry", _fake_get)
    monkeypatch.setattr(settings_service.repo, "update_entry", _fake_update)

    response = asyncio.run(
        settings_service.update_config_entry(
            _DummySession(),
            user_id=USER_ID,
            entry_id=row.id,
            payload=ConfigEntryPatch(description=None),
        )
    )

    assert captured == {"value": None, "description": None, "clear_description": True}
    assert response.description is None


def test_update_config_entry_rejects_invalid_id():
    with pytest.raises(ConfigEntryValidationError):
        asyncio.run(
            settings_service.update_config_entry(
                _DummySession(),
                user_id=USER_ID,
                entry_id="nope",
                payload=ConfigEntryPatch(value="x"),
            )
        )
