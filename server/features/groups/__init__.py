from __future__ import annotations

from .errors import GroupNotFoundError, GroupValidationError, GroupsDomainError
from .service import (
    add_contact_to_group,
    create_group,
    delete_group,
    get_group,
    list_groups,
    remove_contact_from_group,
    update_group,
)
from .types import GroupCreateInput, GroupMembershipResponse, GroupResponse, GroupSummary, GroupUpdateInput

__all__ = [
    "GroupCreateInput",
    "GroupMembershipResponse",
    "GroupNotFoundError",
    "GroupResponse",
    "GroupSummary",
    "GroupUpdateInput",
    "GroupValidationError",
    "GroupsDomainError",
    "add_contact_to_group",
    "create_group",
    "delete_group",
    "get_group",
    "list_groups",
    "remove_contact_from_group",
    "update_group",
]
