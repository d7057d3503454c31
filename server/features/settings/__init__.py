from .errors import (
    ConfigEntryConflictError,
    ConfigEntryNotFoundError,
    ConfigEntryValidationError,
    SettingsDomainError,
)
from .service import (
    create_config_entry,
    default_sender_identity_from_env,
    delete_config_entry,
    list_config_entries,
    resolve_sender_identity,
    to_sender_identity_response,
    update_config_entry,
)
from .types import (
    ConfigEntryCreate,
    ConfigEntryPatch,
    ConfigEntryResponse,
    SenderIdentityResolved,
    SenderIdentityResponse,
)

__all__ = [
    "ConfigEntryConflictError",
    "ConfigEntryCreate",
    "ConfigEntryNotFoundError",
    "ConfigEntryPatch",
    "ConfigEntryResponse",
    "ConfigEntryValidationError",
    "SenderIdentityResolved",
    "SenderIdentityResponse",
    "SettingsDomainError",
    "create_config_entry",
    "default_sender_identity_from_env",
    "delete_config_entry",
    "list_config_entries",
    "resolve_sender_identity",
    "to_sender_identity_response",
    "update_config_entry",
]
