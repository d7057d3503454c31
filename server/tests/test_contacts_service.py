from __future__ import annotations

import asyncio
import importlib
from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest

contacts_service = importlib.import_module("server.features.contacts.service")
from server.features.contacts.errors import ContactConflictError, ContactValidationError
from server.features.contacts.types import ContactCreateInput, ContactUpdateInput

NOW = datetime(2026, 4, 1, 12, 0, tzinfo=timezone.utc)
USER_ID = uuid4()


class _DummySession:
    pass


class _FakeGroupsRepo:
    def __init__(self, names):
        self.names = names

    async def find_owned_group_ids(self, _session, *, user_id, group_ids):
        return {group_id for group_id in group_ids if group_id in self.names}


class _FakeRepo:
    def __init__(self, names):
        self.names = names
        self.rows = {}
        self.updates = []

    def _row(self, user_id, fields, group_ids):
        row = SimpleNamespace(id=uuid4(), user_id=user_id, created_at=NOW, updated_at=NOW, group_links=[], **fields)
        self._link(row, group_ids)
        self.rows[row.id] = row
        return row

    def _link(self, row, group_ids):
        row.group_links = [
            SimpleNamespace(group_id=group_id, group=SimpleNamespace(id=group_id, name=self.names[group_id]))
            for group_id in group_ids
        ]

    async def find_existing_emails(self, _session, *, user_id, emails):
        lowered = {email.lower() for email in emails}
        return {row.email for row in self.rows.values() if row.email in lowered}

    async def create_contact(self, _session, *, user_id, fields, group_ids):
        return self._row(user_id, fields, group_ids)

    async def create_contacts(self, _session, *, user_id, items):
        for fields, group_ids in items:
            self._row(user_id, fields, group_ids)
        return len(items)

    async def get_contact(self, _session, *, user_id, contact_id):
        return self.rows[contact_id]

    async def update_contact(self, _session, *, row, fields, group_ids):
        self.updates.append((fields, group_ids))
        for key, value in fields.items():
            setattr(row, key, value)
        if group_ids is not None:
            self._link(row, group_ids)
        return row


@pytest.fixture
def stores(monkeypatch):
    vip, newsletter = uuid4(), uuid4()
    names = {vip: "VIP", newsletter: "Newsletter"}
    repo = _FakeRepo(names)
    monkeypatch.setattr(contacts_service, "repo", repo)
    monkeypatch.setattr(contacts_service, "groups_repo", _FakeGroupsRepo(names))
    return repo, vip, newsletter


def _create(**values):
    payload = ContactCreateInput(**{"first_name": "Ada", "last_name": "Lovelace", **values})
    return asyncio.run(contacts_service.create_contact(_DummySession(), user_id=USER_ID, payload=payload))


def test_create_contact_normalizes_email_and_sorts_groups(stores):
    _repo, vip, newsletter = stores

    created = _create(email="Ada@Example.com", phone="  ", group_ids=[str(vip), str(newsletter)])

    assert created.email == "ada@example.com"
    assert created.phone is None
    assert created.status == "active"
    assert [group.name for group in created.groups] == ["Newsletter", "VIP"]


def test_create_contact_rejects_duplicates_and_unknown_groups(stores):
    _create(email="ada@example.com")

    with pytest.raises(ContactConflictError):
        _create(email="ADA@example.com")
    with pytest.raises(ContactValidationError, match="Unknown group ids"):
        _create(email="bob@example.com", group_ids=[str(uuid4())])
    with pytest.raises(ContactValidationError, match="Invalid group_id"):
        _create(email="bob@example.com", group_ids=["not-a-uuid"])


def test_update_contact_checks_email_conflicts_and_skips_empty_patches(stores):
    repo, vip, _newsletter = stores
    ada = _create(email="ada@example.com")
    _create(email="bob@example.com")

    def _update(**values):
        return asyncio.run(
            contacts_service.update_contact(
                _DummySession(),
                user_id=USER_ID,
                contact_id=ada.id,
                payload=ContactUpdateInput(**values),
            )
        )

    unchanged = _update()
    same_email = _update(email="ADA@example.com")
    with pytest.raises(ContactConflictError):
        _update(email="bob@example.com")
    moved = _update(status="unsubscribed", group_ids=[str(vip)])

    assert unchanged.email == "ada@example.com"
    assert same_email.email == "ada@example.com"
    assert repo.updates[0] == ({"email": "ada@example.com"}, None)
    assert moved.status == "unsubscribed"
    assert [group.name for group in moved.groups] == ["VIP"]


def test_import_contacts_skips_existing_and_repeated_emails(stores):
    repo, vip, _newsletter = stores
    _create(email="ada@example.com")

    result = asyncio.run(
        contacts_service.import_contacts(
            _DummySession(),
            user_id=USER_ID,
            contacts=[
                ContactCreateInput(email="ada@example.com", first_name="Ada", last_name="L"),
                ContactCreateInput(email="bob@example.com", first_name="Bob", last_name="B", group_ids=[str(vip)]),
                ContactCreateInput(email="BOB@example.com", first_name="Bob", last_name="B"),
                ContactCreateInput(
                    email="cy@example.com",
                    first_name="Cy",
                    last_name="C",
                    group_ids=[str(uuid4()), "junk"],
                ),
                ContactCreateInput(email="dee@example.com", first_name="\x00", last_name="D"),
            ],
        )
    )

    assert result.created == 2
    assert result.skipped == 3
    assert result.errors == [
        "row 4: unknown group ids were ignored",
        "row 5: first_name cannot be empty.",
    ]
    emails = sorted(row.email for row in repo.rows.values())
    assert emails == ["ada@example.com", "bob@example.com", "cy@example.com"]
