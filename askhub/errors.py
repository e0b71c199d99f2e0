"""
Exception hierarchy for askhub.

- ValidationError : bad input shape/size; user-correctable, never retried.
- EmbeddingError  : the embedding provider failed for a whole call.
- StoreError      : a bulk write against the chunk store failed.

Degraded-continue and soft-fail paths never raise; they log and substitute a
conservative default instead.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class AskHubError(Exception):
    """Base exception for all askhub errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ValidationError(AskHubError, ValueError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = dict(details or {})
        if field:
            details["field"] = field
        self.field = field
        super().__init__(message, details)


class EmbeddingError(AskHubError):
    """Raised when embedding generation fails for the whole call."""


class StoreError(AskHubError):
    """Raised when the chunk store rejects a bulk write."""
