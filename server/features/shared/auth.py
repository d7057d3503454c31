from __future__ import annotations

from uuid import UUID

from fastapi import Header, HTTPException


async def get_current_user_id(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> UUID:
    """Tenant of the current session; console routes are closed without one."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated.")
    try:
        return UUID(x_user_id)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Not authenticated.") from exc
