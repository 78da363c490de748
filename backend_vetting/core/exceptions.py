"""
Application-level exceptions.

Every error the engine surfaces carries a machine-readable ``kind`` and a
human message so the API layer and the service envelope can report it
without inspecting exception types.

Run-level (escalate, nothing persisted):
    DataUnavailable, ProviderError, Timeout, InsufficientData
Check-level (downgraded to an ``error`` CheckResult by the runner):
    CheckExecutionError, MissingData
Lookup / input:
    NotFound, InvalidTokenId
"""

from __future__ import annotations

from typing import Any


class VettingError(Exception):
    """Base class for all engine errors."""

    kind = "VettingError"
    retryable = False

    def __init__(self, message: str, *, token_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.token_id = token_id

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class InvalidTokenId(VettingError):
    """Token identifier is empty or malformed."""

    kind = "InvalidTokenId"


class DataUnavailable(VettingError):
    """The provider does not know this token. Not retried."""

    kind = "DataUnavailable"


class ProviderError(VettingError):
    """Upstream call failed or returned malformed data. Caller may retry the run."""

    kind = "ProviderError"
    retryable = True

    def __init__(
        self,
        message: str,
        *,
        token_id: str | None = None,
        provider: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, token_id=token_id)
        self.provider = provider
        self.status_code = status_code


class Timeout(ProviderError):
    """Upstream call exceeded its bounded wait."""

    kind = "Timeout"


class InsufficientData(VettingError):
    """No check executed successfully, so no verdict can be trusted."""

    kind = "InsufficientData"


class NotFound(VettingError):
    """No stored verdict for this token."""

    kind = "NotFound"


class CheckExecutionError(VettingError):
    """A single check could not complete. Never escalates past the runner."""

    kind = "CheckExecutionError"

    def __init__(self, message: str, *, check: str | None = None, token_id: str | None = None) -> None:
        super().__init__(message, token_id=token_id)
        self.check = check


class MissingData(CheckExecutionError):
    """The snapshot lacks a field the check needs."""

    kind = "MissingData"
