from __future__ import annotations

import importlib
from datetime import datetime, timezone
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

campaigns_api = importlib.import_module("server.features.campaigns.api")
from server.features.campaigns.errors import CampaignNotFoundError, CampaignValidationError
from server.features.campaigns.types import CampaignResponse, CampaignSendResult
from server.features.email.errors import EmailTransportError
from server.features.shared.dependencies import get_email_transport
from server.main import app

NOW = datetime(2026, 4, 1, 12, 0, tzinfo=timezone.utc)
USER_ID = uuid4()
AUTH = {"X-User-Id": str(USER_ID)}


class _DummySession:
    pass


class _CampaignStore:
    def __init__(self):
        self.items: dict[str, CampaignResponse] = {}

    async def create_campaign(self, _session, *, user_id, payload):
        item = CampaignResponse(
            id=str(uuid4()),
            name=payload.name,
            subject=payload.subject,
            content=payload.content,
            status=payload.status,
            scheduled_at=payload.scheduled_at,
            sent_at=None,
            groups=[{"id": group_id, "name": "Newsletter"} for group_id in payload.group_ids],
            created_at=NOW,
            updated_at=NOW,
        )
        self.items[item.id] = item
        return item

    async def list_campaigns(self, _session, *, user_id, q="", status=None, limit=50, offset=0):
        items = list(self.items.values())
        if status is not None:
            items = [item for item in items if item.status == status]
        return items[offset : offset + limit]

    async def get_campaign(self, _session, *, user_id, campaign_id):
        if str(campaign_id) not in self.items:
            raise CampaignNotFoundError(f"Campaign '{campaign_id}' was not found.")
        return self.items[str(campaign_id)]

    async def update_campaign(self, _session, *, user_id, campaign_id, payload):
        item = await self.get_campaign(_session, user_id=user_id, campaign_id=campaign_id)
        updated = item.model_copy(update=payload.model_dump(exclude_unset=True, exclude={"group_ids"}))
        self.items[item.id] = updated
        return updated

    async def delete_campaign(self, _session, *, user_id, campaign_id):
        await self.get_campaign(_session, user_id=user_id, campaign_id=campaign_id)
        self.items.pop(str(campaign_id))


@pytest.fixture
def store(monkeypatch):
    store = _CampaignStore()
    for name in ("create_campaign", "list_campaigns", "get_campaign", "update_campaign", "delete_campaign"):
        monkeypatch.setattr(campaigns_api, name, getattr(store, name))

    async def _override_db():
        yield _DummySession()

    app.dependency_overrides[campaigns_api.get_db_session] = _override_db
    app.dependency_overrides[get_email_transport] = lambda: object()
    yield store
    app.dependency_overrides.clear()


def test_campaign_crud(store):
    client = TestClient(app)
    group_id = str(uuid4())

    created = client.post(
        "/api/campaigns",
        json={"name": "Spring sale", "subject": "50% off", "content": "<p>Hi</p>", "group_ids": [group_id]},
        headers=AUTH,
    )
    assert created.status_code == 201
    campaign_id = created.json()["id"]
    assert created.json()["status"] == "draft"
    assert created.json()["groups"][0]["id"] == group_id

    listed = client.get("/api/campaigns", params={"status": "draft"}, headers=AUTH)
    assert [item["id"] for item in listed.json()] == [campaign_id]

    patched = client.patch(f"/api/campaigns/{campaign_id}", json={"subject": "Last chance"}, headers=AUTH)
    assert patched.status_code == 200
    assert patched.json()["subject"] == "Last chance"

    assert client.delete(f"/api/campaigns/{campaign_id}", headers=AUTH).status_code == 204
    assert client.get(f"/api/campaigns/{campaign_id}", headers=AUTH).status_code == 404


def test_campaign_input_validation(store):
    client = TestClient(app)

    no_groups = client.post(
        "/api/campaigns",
        json={"name": "Spring", "subject": "Sale", "content": "<p>Hi</p>", "group_ids": []},
        headers=AUTH,
    )
    bad_status = client.post(
        "/api/campaigns",
        json={"name": "Spring", "subject": "Sale", "content": "x", "status": "paused", "group_ids": ["g"]},
        headers=AUTH,
    )
    unauthenticated = client.get("/api/campaigns")

    assert no_groups.status_code == 422
    assert bad_status.status_code == 422
    assert unauthenticated.status_code == 401


def test_send_campaign_maps_results_and_errors(store, monkeypatch):
    outcomes = [
        CampaignSendResult(total_sent=2, total_failed=1, errors=["c@example.com: rejected"]),
        CampaignValidationError("No active contacts found in campaign groups."),
        EmailTransportError("Email transport is not configured."),
    ]
    calls = []

    async def _send(_session, *, user_id, campaign_id, transport, app_base_url):
        calls.append((user_id, campaign_id, app_base_url))
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(campaigns_api, "send_campaign", _send)
    client = TestClient(app)
    campaign_id = str(uuid4())

    sent = client.post(f"/api/campaigns/{campaign_id}/send", headers=AUTH)
    empty = client.post(f"/api/campaigns/{campaign_id}/send", headers=AUTH)
    failed = client.post(f"/api/campaigns/{campaign_id}/send", headers=AUTH)

    assert sent.status_code == 200
    assert sent.json() == {"total_sent": 2, "total_failed": 1, "errors": ["c@example.com: rejected"]}
    assert empty.status_code == 400
    assert failed.status_code == 502
    assert calls[0][0] == USER_ID
    assert calls[0][1] == campaign_id
