"""
Custom exception classes for the application.
"""

from typing import Any, Dict, Optional

class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class StorageError(AppException):
    """Database operation failed for a reason other than a unique violation.

    The message is safe to show to clients; the backend detail is kept in
    ``details["db_error"]`` for logging and for CSV failure reasons.
    """

    def __init__(self, message: str = "Database operation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="DATABASE_ERROR",
            status_code=500,
            details=details
        )

class ConflictException(AppException):
    """Resource conflict exception."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="CONFLICT",
            status_code=409,
            details=details
        )

class DuplicateKeyError(ConflictException):
    """A uniqueness constraint rejected the write."""

    def __init__(
        self,
        message: str = "A record with the same unique value already exists",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message=message, details=details)
        self.error_code = "DUPLICATE_KEY"

class ValidationException(AppException):
    """Exception raised for validation errors."""
    def __init__(self, message: str, details: Dict = None):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
            details=details or {}
        )

class InvalidTableError(ValidationException):
    """Table name is not a currently discovered master table."""

    def __init__(self, table_name: Any):
        super().__init__(
            message=f"Invalid table: {table_name}",
            details={"table": table_name}
        )
        self.error_code = "INVALID_TABLE"

class InvalidIdError(ValidationException):
    """Row identifier is not a non-negative integer."""

    def __init__(self, raw_id: Any):
        super().__init__(
            message=f"Invalid id: {raw_id}",
            details={"id": raw_id}
        )
        self.error_code = "INVALID_ID"

class CsvParseError(ValidationException):
    """Uploaded file could not be read as CSV at all."""

    def __init__(self, message: str):
        super().__init__(message=message)
        self.error_code = "CSV_PARSE_ERROR"

class UnsupportedOperationError(AppException):
    """Operation does not apply to the table's shape."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="UNSUPPORTED_OPERATION",
            status_code=400,
            details=details
        )

class NotFoundError(AppException):
    """Exception raised when a resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        message = f"{resource_type} not found: {resource_id}"
        super().__init__(
            message=message,
            error_code="NOT_FOUND",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id}
        )
