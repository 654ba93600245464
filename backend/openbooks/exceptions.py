"""
OpenBooks Backend — Custom Exception Hierarchy
==============================================

What:  Application-specific exceptions for the error scenarios of the store.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by PhotoStore, the storage backends and the uploaders.

Exception Hierarchy:
    OpenBooksError (base)
    ├── ConfigurationError   → 500 (fatal at backend construction)
    ├── ValidationError      → 400 Bad Request
    ├── AuthorizationError   → 403 Forbidden
    ├── NotFoundError        → 404 Not Found
    ├── StoreNotReadyError   → 503 Service Unavailable
    └── FileStorageError     → 500 Internal Server Error

Transport errors raised by aiofiles, the Cosmos SDK or the Blob SDK are NOT
wrapped. They propagate unmodified to the catch-all handler.
"""

from typing import Any, Dict, Optional


class OpenBooksError(Exception):
    """
    Base exception for all OpenBooks application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ConfigurationError(OpenBooksError):
    """
    Raised when a backend is constructed without its connection parameters.

    Never retried. The process should not start serving with a backend that
    could not be built.
    """

    def __init__(
        self,
        message: str = "Missing required configuration",
        missing: Optional[list] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if missing:
            ctx["missing"] = list(missing)
        super().__init__(message=message, context=ctx)
        self.missing = list(missing or [])


class ValidationError(OpenBooksError):
    """
    Raised when client input fails validation.

    When:    Out-of-range rating, missing required field, disallowed role,
             empty or oversized upload.
    HTTP:    400 Bad Request

    Always raised before the aggregate is touched.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthorizationError(OpenBooksError):
    """
    Raised when the active user's role does not allow an action.

    HTTP:    403 Forbidden
    """

    def __init__(
        self,
        message: str = "You are not allowed to perform this action",
        required_roles: Optional[list] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if required_roles:
            ctx["required_roles"] = list(required_roles)
        super().__init__(message=message, context=ctx)


class NotFoundError(OpenBooksError):
    """
    Raised when a referenced user or post does not exist.

    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class StoreNotReadyError(OpenBooksError):
    """
    Raised when the aggregate has not finished loading.

    HTTP:    503 Service Unavailable (client may simply refresh)
    """

    def __init__(
        self,
        message: str = "DB not ready yet. Please refresh.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(OpenBooksError):
    """
    Raised when writing an uploaded image to local disk fails.

    HTTP:    500 Internal Server Error
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
