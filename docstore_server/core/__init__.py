"""Core building blocks: errors, logging, serialization and the connection session."""

from docstore_server.core.errors import (
    ConcurrentConnectError,
    DocstoreError,
    InvalidParametersError,
    NotConnectedError,
    OperationTimeoutError,
    StoreConnectionError,
    StoreOperationError,
    UnknownOperationError,
)
from docstore_server.core.session import ConnectionSession, SessionState

__all__ = [
    "ConnectionSession",
    "SessionState",
    "DocstoreError",
    "StoreConnectionError",
    "NotConnectedError",
    "ConcurrentConnectError",
    "InvalidParametersError",
    "UnknownOperationError",
    "StoreOperationError",
    "OperationTimeoutError",
]
