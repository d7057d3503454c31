from __future__ import annotations

from server.features.shared.errors import ConflictError, DomainError, NotFoundError, ValidationError


class SettingsDomainError(DomainError):
    """Base exception for tenant configuration."""


class ConfigEntryNotFoundError(SettingsDomainError, NotFoundError):
    pass


class ConfigEntryConflictError(SettingsDomainError, ConflictError):
    pass


class ConfigEntryValidationError(SettingsDomainError, ValidationError):
    pass
