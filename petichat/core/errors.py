from __future__ import annotations

from typing import Any


class PetichatError(Exception):
    """Base error for PetiChat."""

    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(PetichatError):
    """Malformed caller input; recoverable and never a system fault."""


class NotFoundError(PetichatError):
    """Entity absent or outside the caller's tenant scope."""


class UnauthorizedError(PetichatError):
    """Missing or invalid credentials at the interactive boundary."""


class ConflictError(PetichatError):
    """Write rejected because the stored state moved on."""


class ProviderError(PetichatError):
    """AI provider call failed or returned structurally invalid output."""


class ProviderConfigError(ProviderError):
    """Missing or invalid AI provider configuration."""


class StaleActionError(PetichatError):
    """Pending inline action applied after its expiry or after being consumed."""


class JobError(PetichatError):
    """Background processor failure."""

    def __init__(self, message: str, *, retryable: bool = True, details: Any = None) -> None:
        super().__init__(message, details=details)
        self.retryable = retryable


class ServiceBusyError(PetichatError):
    """Capacity guard rejected the call."""
