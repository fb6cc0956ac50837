"""
API error taxonomy.

Every error raised by services maps onto one HTTP status and is rendered
by the handlers in app.main as:

    {"success": false, "error": {"message": "...", "code": 400}}
"""
from typing import Any, Dict, Optional


class ApiError(Exception):
    """Base class for errors that carry an HTTP status."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(ApiError):
    """Invalid transition, quantity or amount out of bounds, malformed request."""
    status_code = 400
    default_message = "Validation failed"


class NotFoundError(ApiError):
    """Entity missing or not owned by the requesting tenant."""
    status_code = 404
    default_message = "Resource not found"

    @classmethod
    def for_entity(cls, entity: str, entity_id: Any) -> "NotFoundError":
        return cls(f"{entity} not found: {entity_id}")


class ConflictError(ApiError):
    """Uniqueness violation."""
    status_code = 409
    default_message = "Resource already exists"


class InternalError(ApiError):
    """Storage or driver failure."""
    status_code = 500
    default_message = "Internal server error"
