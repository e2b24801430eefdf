"""Dispatch front end: validate, connect, execute, report."""

import asyncio
from typing import Any

from pydantic import ValidationError

from docstore_server.core.errors import (
    DocstoreError,
    InvalidParametersError,
    OperationTimeoutError,
)
from docstore_server.core.logging import get_logger
from docstore_server.core.serialization import to_plain
from docstore_server.core.session import ConnectionSession
from docstore_server.models.config import ServerSettings
from docstore_server.models.params import OperationParams
from docstore_server.models.results import DispatchReply, OperationResult
from docstore_server.operations import OperationDescriptor, OperationRegistry, registry

logger = get_logger(__name__)


def violations_from(error: ValidationError) -> list[dict[str, str]]:
    """Flatten a pydantic ValidationError into ``{loc, msg}`` entries."""
    return [
        {
            "loc": ".".join(str(part) for part in item["loc"]) or "params",
            "msg": item["msg"],
        }
        for item in error.errors()
    ]


class Dispatcher:
    """Routes named calls through the shared session.

    ``dispatch`` never raises: every outcome becomes a :class:`DispatchReply`.
    """

    def __init__(
        self,
        session: ConnectionSession,
        operations: OperationRegistry = registry,
        settings: ServerSettings | None = None,
    ):
        self.session = session
        self.operations = operations
        self.settings = settings or ServerSettings()

    async def dispatch(
        self, name: str, arguments: dict[str, Any] | None = None
    ) -> DispatchReply:
        try:
            descriptor = self.operations.get(name)
            params = self.validate(descriptor, arguments)
            result = await self.execute(descriptor, params)
        except DocstoreError as e:
            logger.warning(f"{name} failed: {e.message}", kind=e.kind)
            return DispatchReply.failure(name, e.kind, e.message, to_plain(e.details))
        except Exception as e:
            logger.error(f"Tool execution failed: {e}", exc_info=True, operation=name)
            return DispatchReply.failure(
                name, "InternalError", f"Tool execution failed - {e}"
            )

        logger.info(f"{name}: {result.summary}")
        return DispatchReply.success(result)

    def validate(
        self, descriptor: OperationDescriptor, arguments: dict[str, Any] | None
    ) -> OperationParams:
        try:
            return descriptor.params_model.model_validate(arguments or {})
        except ValidationError as e:
            raise InvalidParametersError(descriptor.name, violations_from(e)) from e

    async def execute(
        self, descriptor: OperationDescriptor, params: OperationParams
    ) -> OperationResult:
        """Run the lazy-connect gate and the handler under the call's deadline."""
        timeout = params.timeout or self.settings.operation_timeout
        call = self._invoke(descriptor, params)
        if timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout)
        except OperationTimeoutError:
            raise
        except asyncio.TimeoutError as e:
            raise OperationTimeoutError(descriptor.name, timeout) from e

    async def _invoke(
        self, descriptor: OperationDescriptor, params: OperationParams
    ) -> OperationResult:
        if descriptor.requires_connection:
            await self.session.ensure_connected(getattr(params, "url", None))
        return await descriptor.handler(self.session, params)


__all__ = ["Dispatcher", "violations_from"]
