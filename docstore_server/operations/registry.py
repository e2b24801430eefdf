"""Operation registry: name -> parameter schema -> handler."""

from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Awaitable, Callable, Iterator

from bson.errors import BSONError
from pymongo.errors import BulkWriteError, PyMongoError

from docstore_server.core.errors import (
    DocstoreError,
    StoreOperationError,
    UnknownOperationError,
)
from docstore_server.core.serialization import to_plain
from docstore_server.core.session import ConnectionSession
from docstore_server.models.params import (
    CollectionParams,
    DatabaseParams,
    OperationParams,
)
from docstore_server.models.results import OperationResult

Handler = Callable[[ConnectionSession, Any], Awaitable[OperationResult]]

# Exceptions that mean "the store (or its driver) rejected this request".
STORE_ERRORS = (PyMongoError, BSONError)


@dataclass(frozen=True)
class OperationDescriptor:
    """Static registration entry for one named operation."""

    name: str
    description: str
    params_model: type[OperationParams]
    handler: Handler
    requires_connection: bool = True
    tags: tuple[str, ...] = field(default_factory=tuple)

    @property
    def input_schema(self) -> dict[str, Any]:
        return self.params_model.model_json_schema()

    @property
    def required_params(self) -> list[str]:
        return list(self.input_schema.get("required", []))


def handle_store_errors(operation: str) -> Callable[[Handler], Handler]:
    """Wrap driver failures raised by a handler as StoreOperationError."""

    def decorator(func: Handler) -> Handler:
        @wraps(func)
        async def wrapper(session: ConnectionSession, params: Any) -> OperationResult:
            try:
                return await func(session, params)
            except DocstoreError:
                raise
            except BulkWriteError as e:
                # Partial counts are reported exactly as the store reported them.
                raise StoreOperationError(
                    operation, _target(params), e, {"partial": to_plain(e.details)}
                ) from e
            except STORE_ERRORS as e:
                raise StoreOperationError(operation, _target(params), e) from e

        return wrapper

    return decorator


def _target(params: Any) -> str | None:
    target = getattr(params, "target", None)
    return target() if callable(target) else None


class OperationRegistry:
    """Immutable-after-startup table of operation descriptors."""

    def __init__(self):
        self._operations: dict[str, OperationDescriptor] = {}
        self._frozen = False

    def register(self, descriptor: OperationDescriptor) -> OperationDescriptor:
        if self._frozen:
            raise RuntimeError("Operation registry is frozen")
        if descriptor.name in self._operations:
            raise ValueError(f"Operation '{descriptor.name}' is already registered")
        self._operations[descriptor.name] = descriptor
        return descriptor

    def operation(
        self,
        name: str,
        params_model: type[OperationParams],
        description: str | None = None,
        requires_connection: bool = True,
        tags: tuple[str, ...] = (),
    ) -> Callable[[Handler], Handler]:
        """Decorator registering a handler under ``name``.

        The description defaults to the first line of the handler docstring.
        """

        def decorator(func: Handler) -> Handler:
            doc = (func.__doc__ or "").strip().splitlines()
            self.register(
                OperationDescriptor(
                    name=name,
                    description=description or (doc[0] if doc else name),
                    params_model=params_model,
                    handler=handle_store_errors(name)(func),
                    requires_connection=requires_connection,
                    tags=tags,
                )
            )
            return func

        return decorator

    def get(self, name: str) -> OperationDescriptor:
        try:
            return self._operations[name]
        except KeyError:
            raise UnknownOperationError(name) from None

    def freeze(self) -> None:
        self._frozen = True

    def names(self) -> list[str]:
        return list(self._operations)

    def __contains__(self, name: object) -> bool:
        return name in self._operations

    def __iter__(self) -> Iterator[OperationDescriptor]:
        return iter(self._operations.values())

    def __len__(self) -> int:
        return len(self._operations)


registry = OperationRegistry()


def get_database(session: ConnectionSession, params: DatabaseParams):
    """Resolve the target database against the live handle for this call."""
    return session.handle_for()[params.db]


def get_collection(session: ConnectionSession, params: CollectionParams):
    """Resolve the target collection against the live handle for this call."""
    return session.handle_for()[params.db][params.collection]


def sort_pairs(sort: dict[str, int] | None) -> list[tuple[str, int]] | None:
    """Ordered (field, direction) pairs as the driver expects them."""
    return list(sort.items()) if sort else None


__all__ = [
    "OperationDescriptor",
    "OperationRegistry",
    "STORE_ERRORS",
    "get_collection",
    "get_database",
    "handle_store_errors",
    "registry",
    "sort_pairs",
]
