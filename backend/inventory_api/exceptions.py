"""
Product Inventory API — Custom Exception Hierarchy
=====================================================

What:  Application-specific exceptions for the different failure scenarios.
How:   Each exception carries a human-readable message, the underlying error
       string and an optional context dict. Global exception handlers
       (registered in main.py) turn them into `{message, error}` JSON bodies.
Who:   Raised by the connection manager and services; caught by global handlers.

Exception Hierarchy:
    InventoryError (base)
    ├── DatabaseConnectionError  → 500 (store unreachable or timed out)
    ├── QueryTimeoutError        → 500 (read exceeded its time budget)
    ├── NotFoundError            → 404 (id does not resolve)
    ├── InvalidInputError        → 400 (store-level rejection of a write)
    └── OperationError           → 500 (anything else an operation hits)
"""

from typing import Any, Dict, Optional


class InventoryError(Exception):
    """
    Base exception for all inventory application errors.

    Attributes:
        message:  User-facing description (returned in the API response)
        error:    Underlying error text (returned alongside the message)
        context:  Additional debug info (logged, NOT returned to the client)
    """

    status_code = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        error: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error = error
        self.context = context or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"message": self.message}
        if self.error is not None:
            body["error"] = self.error
        return body


class DatabaseConnectionError(InventoryError):
    """
    Raised when MongoDB cannot be reached.

    When:    The bootstrap ping fails, server selection times out, or a driver
             call fails with a connection-level error mid-request.
    HTTP:    500 Internal Server Error
    """

    def __init__(
        self,
        message: str = "Database connection error",
        error: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, error=error, context=context)


class QueryTimeoutError(InventoryError):
    """
    Raised when a read exceeds its time budget.

    When:    The count or page fetch of a list, or a get by id, runs longer
             than QUERY_TIMEOUT_SECONDS.
    HTTP:    500 Internal Server Error
    """

    def __init__(
        self,
        message: str = "Error fetching products",
        operation: str = "query",
        timeout: Optional[float] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        label = operation.capitalize()
        ctx = context or {}
        ctx["operation"] = operation
        if timeout is not None:
            ctx["timeout_seconds"] = timeout
        super().__init__(message=message, error=f"{label} timeout", context=ctx)
        self.operation = operation


class NotFoundError(InventoryError):
    """
    Raised when a requested resource does not exist.

    When:    GET/PUT/DELETE /api/products/{id} with an id that matches nothing.
    HTTP:    404 Not Found (body carries `message` only)
    """

    status_code = 404

    def __init__(
        self,
        resource: str = "Product",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=f"{resource} not found", context=ctx)


class InvalidInputError(InventoryError):
    """
    Raised when a write is rejected by the store-level schema.

    When:    Create without a name, negative price or stock, uncoercible
             values, unreadable JSON body.
    HTTP:    400 Bad Request
    """

    status_code = 400

    def __init__(
        self,
        message: str = "Invalid input",
        error: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, error=error, context=context)


class OperationError(InventoryError):
    """
    Raised when an operation fails for any other reason.

    When:    Malformed identifiers, driver errors that aren't connection
             failures, unexpected data in the store.
    HTTP:    500 Internal Server Error
    """
