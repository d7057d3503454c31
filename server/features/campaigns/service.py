from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from server.db.models import Campaign
from server.features.email.templates import validate_email_content
from server.features.groups import repo as groups_repo
from server.features.groups.types import GroupSummary
from server.features.shared.ids import to_uuid
from server.features.shared.text_sanitize import log_sanitization_stats, sanitize_text

from . import repo
from .errors import CampaignValidationError
from .types import CampaignCreateInput, CampaignResponse, CampaignStatus, CampaignUpdateInput

logger = logging.getLogger(__name__)


def _parse_id(value: UUID | str, *, field_name: str) -> UUID:
    try:
        return to_uuid(value)
    except ValueError as exc:
        raise CampaignValidationError(f"Invalid {field_name}.") from exc


def _clean_line(value: str, *, field_name: str) -> str:
    normalized, stats = sanitize_text(value, strip=True)
    log_sanitization_stats(logger, location=f"campaigns.clean_line.{field_name}", stats=stats)
    if not normalized:
        raise CampaignValidationError(f"{field_name} cannot be empty.")
    return normalized


def _clean_content(value: str) -> str:
    normalized, stats = sanitize_text(value, strip=False)
    log_sanitization_stats(logger, location="campaigns.clean_content", stats=stats)
    errors = validate_email_content(normalized)
    if errors:
        raise CampaignValidationError(" ".join(errors))
    return normalized


def to_response(row: Campaign, groups: list[tuple[UUID, str]]) -> CampaignResponse:
    return CampaignResponse(
        id=str(row.id),
        name=row.name,
        subject=row.subject,
        content=row.content,
        status=row.status,
        scheduled_at=row.scheduled_at,
        sent_at=row.sent_at,
        groups=[GroupSummary(id=str(group_id), name=name) for group_id, name in groups],
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


async def _resolve_group_ids(session: AsyncSession, *, user_id: UUID, group_ids: list[str]) -> list[UUID]:
    parsed = list(dict.fromkeys(_parse_id(item, field_name="group_id") for item in group_ids))
    if not parsed:
        raise CampaignValidationError("Select at least one group.")
    owned = await groups_repo.find_owned_group_ids(session, user_id=user_id, group_ids=parsed)
    missing = [str(item) for item in parsed if item not in owned]
    if missing:
        raise CampaignValidationError(f"Unknown group ids: {', '.join(missing)}.")
    return parsed


async def _with_groups(session: AsyncSession, row: Campaign) -> CampaignResponse:
    groups = await repo.list_campaign_groups(session, campaign_ids=[row.id])
    return to_response(row, groups.get(row.id, []))


async def list_campaigns(
    session: AsyncSession,
    *,
    user_id: UUID,
    q: str = "",
    status: CampaignStatus | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[CampaignResponse]:
    rows = await repo.list_campaigns(
        session,
        user_id=user_id,
        q=q,
        status=status,
        limit=max(1, min(limit, 200)),
        offset=max(0, offset),
    )
    groups = await repo.list_campaign_groups(session, campaign_ids=[row.id for row in rows])
    return [to_response(row, groups.get(row.id, [])) for row in rows]


async def get_campaign(session: AsyncSession, *, user_id: UUID, campaign_id: UUID | str) -> CampaignResponse:
    row = await repo.get_campaign(
        session,
        user_id=user_id,
        campaign_id=_parse_id(campaign_id, field_name="campaign_id"),
    )
    return await _with_groups(session, row)


async def create_campaign(
    session: AsyncSession,
    *,
    user_id: UUID,
    payload: CampaignCreateInput,
) -> CampaignResponse:
    fields = {
        "name": _clean_line(payload.name, field_name="name"),
        "subject": _clean_line(payload.subject, field_name="subject"),
        "content": _clean_content(payload.content),
        "status": payload.status,
        "scheduled_at": payload.scheduled_at,
    }
    group_ids = await _resolve_group_ids(session, user_id=user_id, group_ids=payload.group_ids)
    row = await repo.create_campaign(session, user_id=user_id, fields=fields, group_ids=group_ids)
    return await _with_groups(session, row)


async def update_campaign(
    session: AsyncSession,
    *,
    user_id: UUID,
    campaign_id: UUID | str,
    payload: CampaignUpdateInput,
) -> CampaignResponse:
    row = await repo.get_campaign(
        session,
        user_id=user_id,
        campaign_id=_parse_id(campaign_id, field_name="campaign_id"),
    )
    patch_data = payload.model_dump(exclude_unset=True)
    fields: dict[str, Any] = {}
    for name in ("name", "subject"):
        if patch_data.get(name) is not None:
            fields[name] = _clean_line(patch_data[name], field_name=name)
    if patch_data.get("content") is not None:
        fields["content"] = _clean_content(patch_data["content"])
    if patch_data.get("status") is not None:
        fields["status"] = patch_data["status"]
    if "scheduled_at" in patch_data:
        fields["scheduled_at"] = patch_data["scheduled_at"]

    group_ids: list[UUID] | None = None
    if patch_data.get("group_ids") is not None:
        group_ids = await _resolve_group_ids(session, user_id=user_id, group_ids=patch_data["group_ids"])

    if fields or group_ids is not None:
        row = await repo.update_campaign(session, row=row, fields=fields, group_ids=group_ids)
    return await _with_groups(session, row)


async def delete_campaign(session: AsyncSession, *, user_id: UUID, campaign_id: UUID | str) -> None:
    row = await repo.get_campaign(
        session,
        user_id=user_id,
        campaign_id=_parse_id(campaign_id, field_name="campaign_id"),
    )
    await repo.delete_campaign(session, row=row)
