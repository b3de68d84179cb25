"""
Error taxonomy for the play timer service.

Every error raised by the core carries a kind, a human readable message and
the HTTP status the API layer answers with. Extra keys (for instance the
duplicate flag) are merged into the JSON error body.
"""
from typing import Any, Dict, Optional


class ServiceError(Exception):
    kind = "error"
    status_code = 500

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, **self.extra}


class ValidationError(ServiceError):
    kind = "validation"
    status_code = 400


class NotFoundError(ServiceError):
    kind = "not_found"
    status_code = 404


class ConflictError(ServiceError):
    kind = "conflict"
    status_code = 400


class LockedError(ServiceError):
    kind = "locked"
    status_code = 429


class InternalError(ServiceError):
    kind = "internal"
    status_code = 500


class StoreError(Exception):
    """Raised by a storage backend when loading or saving fails."""
