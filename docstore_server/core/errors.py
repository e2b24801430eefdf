"""Error taxonomy shared by the session, the handlers and the dispatcher."""

from typing import Any


class DocstoreError(Exception):
    """Base class for every error the dispatcher knows how to render."""

    kind = "DocstoreError"

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class StoreConnectionError(DocstoreError, ConnectionError):
    """Raised when a connection cannot be established or fails its ping."""

    kind = "ConnectionError"

    def __init__(self, address: str, cause: BaseException | None = None):
        self.address = address
        self.cause = cause
        message = f"Failed to connect to {address}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message, {"address": address})


class NotConnectedError(DocstoreError):
    """Raised when an operation needs the connection and none is live."""

    kind = "NotConnectedError"

    def __init__(self, message: str = "Not connected to MongoDB"):
        super().__init__(message)


class ConcurrentConnectError(DocstoreError):
    """Raised when the handle is requested while a connect is in flight."""

    kind = "ConcurrentConnectError"

    def __init__(self, message: str = "A connection attempt is already in progress"):
        super().__init__(message)


class InvalidParametersError(DocstoreError):
    """Raised when a parameter bag does not match the operation's schema."""

    kind = "InvalidParametersError"

    def __init__(self, operation: str, violations: list[dict[str, Any]]):
        self.operation = operation
        self.violations = violations
        summary = "; ".join(f"{v['loc']}: {v['msg']}" for v in violations)
        super().__init__(
            f"Invalid parameters for '{operation}': {summary}",
            {"operation": operation, "violations": violations},
        )


class UnknownOperationError(DocstoreError):
    """Raised for operation names that are not registered."""

    kind = "UnknownOperationError"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Unknown tool '{operation}'", {"operation": operation})


class StoreOperationError(DocstoreError):
    """Raised when MongoDB rejects or fails a request after connecting."""

    kind = "StoreOperationError"

    def __init__(
        self,
        operation: str,
        target: str | None,
        cause: BaseException,
        details: dict | None = None,
    ):
        self.operation = operation
        self.target = target
        self.cause = cause
        where = f" on {target}" if target else ""
        merged = {"operation": operation, "target": target}
        merged.update(details or {})
        super().__init__(f"{operation} failed{where}: {cause}", merged)


class OperationTimeoutError(DocstoreError, TimeoutError):
    """Raised when a connect or an operation exceeds its deadline."""

    kind = "TimeoutError"

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(
            f"{operation} timed out after {timeout:g}s",
            {"operation": operation, "timeout": timeout},
        )


__all__ = [
    "DocstoreError",
    "StoreConnectionError",
    "NotConnectedError",
    "ConcurrentConnectError",
    "InvalidParametersError",
    "UnknownOperationError",
    "StoreOperationError",
    "OperationTimeoutError",
]
