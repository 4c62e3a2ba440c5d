"""Exceptions raised by the reconciliation engine and its collaborators.

Row-level problems are never raised; they are collected as warnings on the
result. Only the classes below interrupt a call.
"""

from typing import Any, Optional


class ReconcilerError(Exception):
    """Base exception for all reconciliation errors."""
    status_code = 500

    def __init__(self, message: str = "An internal error occurred", payload: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.payload = payload

    def to_dict(self) -> dict:
        rv = dict(self.payload or ())
        rv["message"] = self.message
        rv["status"] = "error"
        return rv


class StructuralError(ReconcilerError, TypeError):
    """Raised when an input does not have the required top-level shape."""
    status_code = 422

    def __init__(self, argument: str, expected: str, received: Any):
        message = (
            f"'{argument}' must be {expected}, got {type(received).__name__}: "
            f"{_preview(received)}"
        )
        super().__init__(message, {"argument": argument, "expected": expected})
        self.argument = argument


class StaleCatalogError(ReconcilerError):
    """Raised when an optimistic save finds a different stored fingerprint."""
    status_code = 409

    def __init__(self, expected: Optional[str], actual: Optional[str]):
        message = f"Stored catalog fingerprint is {actual!r}, expected {expected!r}"
        super().__init__(message, {"expected": expected, "actual": actual})
        self.expected = expected
        self.actual = actual


class CatalogNotFoundError(ReconcilerError):
    """Raised when an operation needs a stored catalog and none exists."""
    status_code = 404

    def __init__(self, message: str = "No unified catalog has been stored yet"):
        super().__init__(message)


def _preview(value: Any, limit: int = 80) -> str:
    text = repr(value)
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text
