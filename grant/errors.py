"""
Errors raised by the favorites and target-selection core.

Every failure carries a stable ``code`` so the CLI (and tests) can tell
kinds apart without parsing messages.
"""

from __future__ import annotations

from typing import Any, Optional


class GrantError(Exception):
    """Base class for all grant errors."""

    def __init__(
        self,
        message: str,
        code: str = "GRANT_ERROR",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class InvalidArguments(GrantError):
    """Raised for a bad flag/argument combination. Always detected locally."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, "INVALID_ARGUMENTS", details)


class MissingName(GrantError):
    """Raised when the non-interactive path is used without a favorite name."""

    def __init__(self, message: str = "favorite name is required"):
        super().__init__(message, "MISSING_NAME")


class AlreadyExists(GrantError):
    def __init__(self, name: str):
        super().__init__(f"favorite {name!r} already exists", "ALREADY_EXISTS", {"name": name})
        self.name = name


class NotFound(GrantError):
    def __init__(self, message: str, name: Optional[str] = None):
        super().__init__(message, "NOT_FOUND", {"name": name} if name is not None else None)
        self.name = name


class NoEligibleTargets(GrantError):
    def __init__(self, message: str = "no eligible targets or groups found"):
        super().__init__(message, "NO_ELIGIBLE_TARGETS")


class SelectionFailed(GrantError):
    def __init__(self, message: str = "selection failed"):
        super().__init__(message, "SELECTION_FAILED")


class PromptFailed(GrantError):
    def __init__(self, message: str = "failed to read favorite name"):
        super().__init__(message, "PROMPT_FAILED")


class NetworkFailure(GrantError):
    """Raised when a remote fetch fails. ``operation`` names the fetch."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        code: str = "NETWORK_FAILURE",
    ):
        super().__init__(message, code, {"operation": operation} if operation else None)
        self.operation = operation


class OperationCancelled(NetworkFailure):
    """Raised when the caller's context expired or was cancelled mid-fetch."""

    def __init__(self, message: str = "operation cancelled", operation: Optional[str] = None):
        super().__init__(message, operation, code="CANCELLED")


class PersistenceFailure(GrantError):
    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message, "PERSISTENCE_FAILURE", {"path": path} if path else None)
        self.path = path


__all__ = [
    "GrantError",
    "InvalidArguments",
    "MissingName",
    "AlreadyExists",
    "NotFound",
    "NoEligibleTargets",
    "SelectionFailed",
    "PromptFailed",
    "NetworkFailure",
    "OperationCancelled",
    "PersistenceFailure",
]
