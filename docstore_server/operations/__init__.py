"""Operation handlers.

Importing this package registers every handler in the default registry and
freezes it.
"""

from docstore_server.operations import admin, aggregation, documents
from docstore_server.operations.registry import (
    OperationDescriptor,
    OperationRegistry,
    registry,
)

registry.freeze()

__all__ = ["OperationDescriptor", "OperationRegistry", "registry"]
