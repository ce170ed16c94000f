"""Error Hierarchy: typed, categorized exceptions for every placefeed failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Client errors (400-level) carry the offending field or resource; server errors (500-level) never
      leak store internals in the message
    - to_response() produces the REST envelope used by api/error_handlers.py
    - ExternalStorageError is raised by the image storage client only; the listing catalogue
      converts it into delete diagnostics

Design Decisions:
    - Single hierarchy with PlaceFeedError base: one FastAPI handler catches all (ADR: uniform error shape)
    - ErrorContext as dataclass: listing/review identifiers travel with the error, not the log call
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    PERMISSION = "permission"
    CONFLICT = "conflict"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Identifiers and debug data attached to an error."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    listing_id: str | None = None
    review_id: str | None = None
    field: str | None = None
    debug_info: dict[str, Any] | None = None


class PlaceFeedError(Exception):
    """Base exception for all placefeed errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "listing_id": self.context.listing_id,
                    "review_id": self.context.review_id,
                    "field": self.context.field,
                },
            }
        }


# ─── Client Errors (400-level) ──────────────────────────────────

class FilterValidationError(PlaceFeedError):
    """Malformed filter combination or out-of-range input."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.field = field
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, ctx, 400,
        )
        self.field = field


class CursorError(PlaceFeedError):
    """Pagination cursor could not be decoded or does not fit the sort mode."""
    def __init__(self, message: str = "Invalid cursor", context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.field = "cursor"
        super().__init__(
            message, "INVALID_CURSOR", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, ctx, 400,
        )


class ResourceNotFoundError(PlaceFeedError):
    """Requested resource does not exist (or is soft-deleted)."""
    def __init__(
        self, resource_type: str, resource_id: str,
        context: ErrorContext | None = None, message: str | None = None,
    ):
        super().__init__(
            message or f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class PermissionDeniedError(PlaceFeedError):
    """Caller is neither the owner nor an admin."""
    def __init__(self, action: str, context: ErrorContext | None = None):
        super().__init__(
            f"Not allowed to {action}",
            "PERMISSION_DENIED", ErrorCategory.PERMISSION,
            ErrorSeverity.WARNING, context, 403,
        )
        self.action = action


# ─── Server Errors (500-level) ──────────────────────────────────

class ConsistencyError(PlaceFeedError):
    """Transaction aborted; nothing was persisted and the caller may retry."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "CONSISTENCY_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )


class DatabaseError(PlaceFeedError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class ExternalStorageError(PlaceFeedError):
    """Image host call failed."""
    def __init__(
        self, message: str, external_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Image storage error for '{external_id}': {message}",
            "EXTERNAL_STORAGE_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.WARNING, context, 502,
        )
        self.external_id = external_id
