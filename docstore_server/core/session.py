"""Connection session: the single shared MongoDB client and its lifecycle.

State machine::

    DISCONNECTED --connect ok--> CONNECTED
    DISCONNECTED --connect fail--> DISCONNECTED
    CONNECTED --connect ok--> CONNECTED      (handle replaced, old one closed)
    CONNECTED --close--> CLOSED
    CLOSED --connect ok--> CONNECTED

CONNECTING only exists while an attempt is in flight. Attempts run as a
task so that concurrent callers can join the same attempt and share its
outcome; a caller that is cancelled does not cancel the attempt itself.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable

from motor.motor_asyncio import AsyncIOMotorClient

from docstore_server.core.errors import (
    ConcurrentConnectError,
    NotConnectedError,
    OperationTimeoutError,
    StoreConnectionError,
)
from docstore_server.core.serialization import redact_address
from docstore_server.models.config import DEFAULT_MONGODB_URL, ServerSettings

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], Any]


class SessionState(str, Enum):
    """Connection lifecycle states."""

    DISCONNECTED = "Disconnected"
    CONNECTING = "Connecting"
    CONNECTED = "Connected"
    CLOSED = "Closed"


def motor_client_factory(
    server_selection_timeout_ms: int = 10000, appname: str = "docstore-server"
) -> ClientFactory:
    """Build a factory that opens AsyncIOMotorClient instances."""

    def factory(address: str) -> AsyncIOMotorClient:
        return AsyncIOMotorClient(
            address,
            serverSelectionTimeoutMS=server_selection_timeout_ms,
            appname=appname,
        )

    return factory


class ConnectionSession:
    """Owns at most one live client for the whole process."""

    def __init__(
        self,
        default_address: str = DEFAULT_MONGODB_URL,
        client_factory: ClientFactory | None = None,
        connect_timeout: float | None = None,
    ):
        self.default_address = default_address
        self.connect_timeout = connect_timeout
        self._client_factory = client_factory or motor_client_factory()
        self._state = SessionState.DISCONNECTED
        self._handle: Any = None
        self._target_address: str | None = None
        self._lock = asyncio.Lock()
        self._pending: asyncio.Task | None = None

    @classmethod
    def from_settings(
        cls, settings: ServerSettings, client_factory: ClientFactory | None = None
    ) -> "ConnectionSession":
        return cls(
            default_address=settings.resolve_address(),
            client_factory=client_factory
            or motor_client_factory(
                settings.server_selection_timeout_ms, settings.server_name
            ),
            connect_timeout=settings.connect_timeout,
        )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def target_address(self) -> str | None:
        return self._target_address

    @property
    def is_connected(self) -> bool:
        return self._state is SessionState.CONNECTED and not self._in_flight()

    def describe(self) -> dict[str, str]:
        """Snapshot of the session that is safe to log or return to callers."""
        return {
            "state": self._state.value,
            "address": redact_address(self._target_address),
        }

    async def connect(self, address: str, timeout: float | None = None) -> Any:
        """Open a new connection to ``address`` and make it the live handle.

        Concurrent explicit connects are serialized: each waits for the
        attempt in flight to settle and then performs its own.

        Raises:
            StoreConnectionError: the client could not be created or pinged
            OperationTimeoutError: the ping did not answer within ``timeout``
        """
        async with self._lock:
            await self._settle_pending()
            task = self._start(address, timeout)
        return await asyncio.shield(task)

    async def ensure_connected(
        self, address: str | None = None, timeout: float | None = None
    ) -> Any:
        """Lazy-connect gate run before every handler.

        Connects to ``address`` (or the default address) only when the
        session has never connected or its last attempt failed. After an
        explicit close the caller has to reconnect explicitly.
        """
        if self.is_connected:
            if address and address != self._target_address:
                logger.warning(
                    f"Ignoring url override {redact_address(address)}; "
                    f"already connected to {redact_address(self._target_address)}"
                )
            return self._handle

        async with self._lock:
            task = self._pending if self._in_flight() else None
            if task is None:
                if self._state is SessionState.CONNECTED:
                    return self._handle
                if self._state is SessionState.CLOSED:
                    raise NotConnectedError(
                        "Connection was closed; call connect-to-mongo to reconnect"
                    )
                task = self._start(address or self.default_address, timeout)
        return await asyncio.shield(task)

    async def close(self) -> bool:
        """Close the live handle, if any. Returns whether a handle was closed.

        Serialized with explicit connects: a close issued after a connect
        closes the connection that connect opens.
        """
        async with self._lock:
            await self._settle_pending()
            if self._state is not SessionState.CONNECTED:
                return False

            handle = self._handle
            self._handle = None
            self._state = SessionState.CLOSED
            handle.close()
        logger.info(f"Closed connection to {redact_address(self._target_address)}")
        return True

    def handle_for(self) -> Any:
        """Return the live client for a single call.

        Raises:
            ConcurrentConnectError: a connect is in flight
            NotConnectedError: no live connection
        """
        if self._in_flight():
            raise ConcurrentConnectError()
        if self._state is not SessionState.CONNECTED:
            raise NotConnectedError()
        return self._handle

    def _in_flight(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def _start(self, address: str, timeout: float | None) -> asyncio.Task:
        self._state = SessionState.CONNECTING
        task = asyncio.get_running_loop().create_task(self._open(address, timeout))
        self._pending = task
        task.add_done_callback(self._clear_pending)
        return task

    def _clear_pending(self, task: asyncio.Task) -> None:
        if self._pending is task:
            self._pending = None
        # Mark the outcome retrieved; every waiter receives it through shield().
        if not task.cancelled():
            task.exception()

    async def _settle_pending(self) -> None:
        task = self._pending
        if task is not None:
            await asyncio.wait({task})

    async def _open(self, address: str, timeout: float | None) -> Any:
        timeout = timeout if timeout is not None else self.connect_timeout
        redacted = redact_address(address)
        logger.info(f"Connecting to {redacted}")

        client = None
        try:
            client = self._client_factory(address)
            ping = client.admin.command("ping")
            if timeout is not None:
                await asyncio.wait_for(ping, timeout)
            else:
                await ping
        except BaseException as e:
            if client is not None:
                client.close()
            self._drop_handle()
            if isinstance(e, asyncio.TimeoutError) and timeout is not None:
                logger.error(f"Connection to {redacted} timed out after {timeout:g}s")
                raise OperationTimeoutError("connect", timeout) from e
            if isinstance(e, Exception):
                logger.error(f"Connection to {redacted} failed: {e}")
                raise StoreConnectionError(redacted, e) from e
            raise

        previous = self._handle
        self._handle = client
        self._target_address = address
        self._state = SessionState.CONNECTED
        if previous is not None and previous is not client:
            previous.close()
        logger.info(f"Connected to {redacted}")
        return client

    def _drop_handle(self) -> None:
        previous = self._handle
        self._handle = None
        self._state = SessionState.DISCONNECTED
        if previous is not None:
            previous.close()


__all__ = [
    "ClientFactory",
    "ConnectionSession",
    "SessionState",
    "motor_client_factory",
]
