"""
Error taxonomy for assignment management and access evaluation.

Every error carries the HTTP status the host layer answers with, so route
handlers never translate exceptions themselves.
"""
from typing import Any, Dict, Optional


class AccessControlError(Exception):
    """Base class for all errors raised by the access-control core."""

    status_code: int = 500
    code: str = "error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.code, "detail": self.message}
        if self.details:
            payload["context"] = self.details
        return payload


class ValidationError(AccessControlError):
    """Malformed input, rejected before any write."""

    status_code = 400
    code = "validation_error"


class NotFoundError(AccessControlError):
    """Referenced context entity, user, role or assignment does not exist."""

    status_code = 404
    code = "not_found"

    def __init__(self, kind: str, identifier: Optional[str] = None, message: Optional[str] = None) -> None:
        super().__init__(message or f"{kind} {identifier!r} not found", kind=kind, id=identifier)
        self.kind = kind
        self.identifier = identifier


class ConflictError(AccessControlError):
    """Duplicate active assignment or a uniqueness violation detected at commit."""

    status_code = 409
    code = "conflict"


class CrossTenantError(AccessControlError):
    """A grant would cross an organization boundary. Always denied, never coerced."""

    status_code = 403
    code = "cross_tenant"


class TransientError(AccessControlError):
    """Storage unavailable or serialization failure; safe to retry a bounded number of times."""

    status_code = 503
    code = "transient"
