"""Domain error taxonomy.

Structural problems abort the request (4xx). Computation anomalies are not
errors: formula and costing code returns ``None``/``0`` instead of raising.
Sync problems are logged with the ``SyncWarning`` category and swallowed by
the synchronizer so the triggering save still commits.
"""

from typing import Any, Optional


class CateringError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message}


class ValidationError(CateringError):
    """Malformed or missing required values, with one entry per field."""
    status_code = 400

    def __init__(self, message: str, errors: Optional[list[dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "errors": self.errors}


class ConcurrencyConflict(CateringError):
    """Stale sheet version; the caller must refetch and retry."""
    status_code = 409

    def __init__(self, message: str = "Sheet has changed, please refresh.", current: Optional[dict] = None):
        super().__init__(message)
        self.current = current

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"detail": self.message}
        if self.current is not None:
            payload["sheet"] = self.current
        return payload


class NotFound(CateringError):
    status_code = 404


class SyncWarning(UserWarning):
    """Log category for cross-entity propagation failures."""
