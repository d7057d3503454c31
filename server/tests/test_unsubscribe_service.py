from __future__ import annotations

import asyncio
import importlib
from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest

unsubscribe_service = importlib.import_module("server.features.unsubscribe.service")
from server.features.unsubscribe.errors import (
    UnsubscribeFailedError,
    UnsubscribeNotFoundError,
    UnsubscribeValidationError,
)

NOW = datetime(2026, 5, 1, 8, 0, tzinfo=timezone.utc)


class _DummySession:
    def __init__(self):
        self.rollbacks = 0

    async def rollback(self):
        self.rollbacks += 1


class _FakeRepo:
    def __init__(self, *, status="active", campaign_owner=None, fail=()):
        self.user_id = uuid4()
        self.contact = SimpleNamespace(id=uuid4(), user_id=self.user_id, email="ada@example.com", status=status)
        self.campaign = SimpleNamespace(
            id=uuid4(),
            user_id=campaign_owner or self.user_id,
            name="Spring sale",
        )
        self.fail = set(fail)
        self.calls: list[str] = []
        self.logs: list[dict] = []

    async def get_contact(self, _session, *, contact_id):
        return self.contact if contact_id == self.contact.id else None

    async def get_campaign(self, _session, *, campaign_id):
        return self.campaign if campaign_id == self.campaign.id else None

    async def mark_unsubscribed(self, _session, *, row, at):
        self.calls.append("mark_unsubscribed")
        if "mark_unsubscribed" in self.fail:
            raise RuntimeError("write failed")
        row.status = "unsubscribed"

    async def stamp_metrics(self, _session, *, contact_id, campaign_id, at):
        self.calls.append("stamp_metrics")
        if "stamp_metrics" in self.fail:
            raise RuntimeError("write failed")
        return 1

    async def create_log(self, _session, **values):
        self.calls.append("create_log")
        self.logs.append(values)


class _FakeContactsRepo:
    def __init__(self, repo: _FakeRepo):
        self.repo = repo

    async def remove_from_all_groups(self, _session, *, contact_id):
        self.repo.calls.append("remove_from_all_groups")
        if "remove_from_all_groups" in self.repo.fail:
            raise RuntimeError("write failed")
        return 2


def _patch(monkeypatch, repo: _FakeRepo) -> None:
    monkeypatch.setattr(unsubscribe_service, "repo", repo)
    monkeypatch.setattr(unsubscribe_service, "contacts_repo", _FakeContactsRepo(repo))


def _unsubscribe(repo: _FakeRepo, session=None, *, contact_id=None, campaign_id=None):
    return asyncio.run(
        unsubscribe_service.unsubscribe(
            session or _DummySession(),
            contact_id=contact_id or repo.contact.id,
            campaign_id=campaign_id or repo.campaign.id,
            clock=lambda: NOW,
        )
    )


def test_parse_link_ids():
    contact, campaign = uuid4(), uuid4()
    assert unsubscribe_service.parse_link_ids(str(contact), str(campaign)) == (contact, campaign)
    with pytest.raises(UnsubscribeValidationError, match="Missing"):
        unsubscribe_service.parse_link_ids(None, str(campaign))
    with pytest.raises(UnsubscribeValidationError, match="Invalid"):
        unsubscribe_service.parse_link_ids("abc", str(campaign))


def test_unsubscribe_runs_every_step_in_order(monkeypatch):
    repo = _FakeRepo()
    _patch(monkeypatch, repo)

    outcome = _unsubscribe(repo)

    assert outcome.status == "unsubscribed"
    assert outcome.email == "ada@example.com"
    assert outcome.campaign_name == "Spring sale"
    assert outcome.skipped_steps == ()
    assert repo.calls == ["mark_unsubscribed", "remove_from_all_groups", "stamp_metrics", "create_log"]
    assert repo.logs[0]["user_id"] == repo.user_id
    assert repo.logs[0]["email"] == "ada@example.com"
    assert repo.logs[0]["at"] == NOW


def test_secondary_step_failure_does_not_stop_the_rest(monkeypatch):
    repo = _FakeRepo(fail={"stamp_metrics"})
    _patch(monkeypatch, repo)
    session = _DummySession()

    outcome = _unsubscribe(repo, session)

    assert outcome.status == "unsubscribed"
    assert outcome.skipped_steps == ("stamp_metrics",)
    assert repo.calls[-1] == "create_log"
    assert session.rollbacks == 1


def test_status_change_failure_is_an_error(monkeypatch):
    repo = _FakeRepo(fail={"mark_unsubscribed"})
    _patch(monkeypatch, repo)
    session = _DummySession()

    with pytest.raises(UnsubscribeFailedError):
        _unsubscribe(repo, session)

    assert repo.calls == ["mark_unsubscribed"]
    assert session.rollbacks == 1


def test_already_unsubscribed_writes_nothing(monkeypatch):
    repo = _FakeRepo(status="unsubscribed")
    _patch(monkeypatch, repo)

    outcome = _unsubscribe(repo)

    assert outcome.status == "already-unsubscribed"
    assert outcome.email == "ada@example.com"
    assert repo.calls == []


def test_unknown_contact_or_foreign_campaign_is_not_found(monkeypatch):
    repo = _FakeRepo()
    _patch(monkeypatch, repo)

    with pytest.raises(UnsubscribeNotFoundError, match="Contact"):
        _unsubscribe(repo, contact_id=uuid4())
    with pytest.raises(UnsubscribeNotFoundError, match="Campaign"):
        _unsubscribe(repo, campaign_id=uuid4())

    foreign = _FakeRepo(campaign_owner=uuid4())
    _patch(monkeypatch, foreign)
    with pytest.raises(UnsubscribeNotFoundError, match="Campaign"):
        _unsubscribe(foreign)
    assert foreign.calls == []
