from __future__ import annotations

from .errors import ContactConflictError, ContactNotFoundError, ContactValidationError, ContactsDomainError
from .service import (
    create_contact,
    delete_contact,
    get_contact,
    import_contacts,
    list_contacts,
    update_contact,
)
from .types import (
    ContactCreateInput,
    ContactImportInput,
    ContactImportResult,
    ContactResponse,
    ContactUpdateInput,
)

__all__ = [
    "ContactConflictError",
    "ContactCreateInput",
    "ContactImportInput",
    "ContactImportResult",
    "ContactNotFoundError",
    "ContactResponse",
    "ContactUpdateInput",
    "ContactValidationError",
    "ContactsDomainError",
    "create_contact",
    "delete_contact",
    "get_contact",
    "import_contacts",
    "list_contacts",
    "update_contact",
]
