"""
Error taxonomy for schedule materialization and meeting synchronization.

Every error carries a stable ``kind`` string so that sync failures can be
returned to callers (and persisted in the automation log) as plain values.
"""
from typing import Any


class ScheduleSyncError(Exception):
    """Base exception for the materialization/synchronization engine."""

    kind = "error"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(ScheduleSyncError):
    """A course template carries a malformed day, time or duration."""

    kind = "validation"


class NotFoundError(ScheduleSyncError):
    """Unknown occurrence, template or meeting record id."""

    kind = "not_found"


class ConflictError(ScheduleSyncError):
    """A second active meeting record was about to be created for one template."""

    kind = "conflict"


class ConfigurationError(ScheduleSyncError):
    """Meeting provider credentials or settings are missing."""

    kind = "configuration"


class ProviderError(ScheduleSyncError):
    """Base class for meeting provider (Zoom) failures."""

    kind = "provider"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, details=details)


class AuthError(ProviderError):
    """Token request rejected, or a call still unauthorized after one forced refresh."""

    kind = "auth"


class ExternalServiceError(ProviderError):
    """Transient failure: network error, 5xx or rate limit. Safe to retry."""

    kind = "external_service"


class ProviderRejectedError(ProviderError):
    """Permanent failure: the provider refused the request (4xx other than auth)."""

    kind = "provider_rejected"
