from __future__ import annotations

from datetime import datetime
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .. import repo
from ..events import message_row, parse_message_row
from ..types import InboxMessage
from .reconciler import ContactProfile


class DatabaseConversationSource:
    """Reads conversations straight from ``whatsapp_contacts``/``whatsapp_messages``."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        business_number: str,
    ) -> None:
        self._session_factory = session_factory
        self._business_number = business_number

    async def fetch_contacts(self, contact_ids: Sequence[str]) -> list[ContactProfile]:
        async with self._session_factory() as session:
            rows = await repo.list_contacts(session, wa_ids=contact_ids)
        return [ContactProfile(contact_id=row.wa_id, display_name=row.profile_name) for row in rows]

    async def fetch_last_message(self, contact_id: str) -> InboxMessage | None:
        async with self._session_factory() as session:
            row = await repo.get_last_message(session, contact_id=contact_id)
        if row is None:
            return None
        return parse_message_row(message_row(row), business_number=self._business_number)

    async def count_unread(
        self,
        contact_id: str,
        since: datetime | None,
        until: datetime,
    ) -> int:
        async with self._session_factory() as session:
            return await repo.count_inbound_since(
                session,
                contact_id=contact_id,
                since=since,
                until=until,
            )
