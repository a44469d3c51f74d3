import asyncio
from dataclasses import dataclass
import inspect
from typing import Any, Awaitable, Callable, Protocol, Union
import weakref

from mysql_extended.execution.driver import Driver
from mysql_extended.execution.observability import Instrumentation

# ==================================================
# Connection Management Types
# ==================================================

ConnectionAcquireHook = Callable[[], Union[Any, Awaitable[Any]]]
ConnectionReleaseHook = Callable[[Any], Union[None, Awaitable[None]]]
NewConnectionHook = Callable[[Any], Union[None, Awaitable[None]]]

# Release modes of a ConnectionHandle.
RELEASE = "release"
CLOSE = "close"


@dataclass(frozen=True)
class ConnectionSettings:
    """
    Connection source settings.

    `acquire_connection` / `release_connection` plug in an external pool.
    `on_new_connection` runs once per physical connection, before its first statement.
    """

    connect_timeout_seconds: float | None = None
    acquire_connection: ConnectionAcquireHook | None = None
    release_connection: ConnectionReleaseHook | None = None
    on_new_connection: NewConnectionHook | None = None


@dataclass(frozen=True)
class ConnectionHandle:
    """
    A raw driver connection plus how it must be disposed of.
    `release_mode` is None for a fixed connection, which is never released by the acquirer.
    """

    connection: Any
    connection_id: Any
    release_mode: str | None = None

    @property
    def pooled(self) -> bool:
        return self.release_mode is not None


class ConnectionProvider(Protocol):
    """
    Capability used by a QueryExecutor to get a connection for one statement.
    """

    @property
    def is_pool(self) -> bool: ...

    async def acquire(self) -> ConnectionHandle: ...

    async def release(self, handle: ConnectionHandle) -> None: ...


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


# ==================================================
# Connection Acquirer
# ==================================================


class ConnectionAcquirer:
    """
    Hands out connections from a fixed connection, a pool (acquire/release hooks),
    or the driver itself (one connection per operation, closed afterwards).
    """

    def __init__(
        self,
        *,
        driver: Driver,
        settings: ConnectionSettings,
        instrumentation: Instrumentation,
        connection: Any | None = None,
    ) -> None:
        self.driver = driver
        self.settings = settings
        self.instrumentation = instrumentation
        self._connection = connection
        self._fixed_handle: ConnectionHandle | None = None
        # on_new_connection outcome per physical connection, True once the hook succeeded.
        self._initialized: weakref.WeakKeyDictionary[Any, asyncio.Future[bool]] = (
            weakref.WeakKeyDictionary()
        )

    @property
    def is_pool(self) -> bool:
        return self._connection is None

    async def acquire(self) -> ConnectionHandle:
        return await self._acquire(source="acquirer")

    async def acquire_for_transaction(self) -> ConnectionHandle:
        """
        Acquires a connection that a transaction holds until it commits or rolls back.
        """
        return await self._acquire(source="transaction")

    async def release(self, handle: ConnectionHandle) -> None:
        """
        Releases a pool-sourced handle. Fixed handles are left untouched.
        """
        if handle.release_mode is None:
            return
        conn_label = str(handle.connection_id)
        if handle.release_mode == RELEASE:
            self.instrumentation.emit_event(
                "connection.release", source="acquirer", success=True, connection_id=conn_label
            )
            if self.settings.release_connection is not None:
                await _maybe_await(self.settings.release_connection(handle.connection))
                return
            await self.driver.close(handle.connection)
            return
        if handle.release_mode == CLOSE:
            self.instrumentation.emit_event(
                "connection.close", source="acquirer", success=True, connection_id=conn_label
            )
            await self.driver.close(handle.connection)

    async def _acquire(self, *, source: str) -> ConnectionHandle:
        if self._connection is not None:
            if self._fixed_handle is None:
                self._fixed_handle = ConnectionHandle(
                    connection=self._connection,
                    connection_id=self.driver.connection_id(self._connection),
                )
            handle = self._fixed_handle
        else:
            self.instrumentation.emit_event("connection.acquire.start", source=source, success=True)
            if self.settings.acquire_connection is not None:
                raw = await _maybe_await(self.settings.acquire_connection())
                mode = RELEASE
            else:
                raw = await self.driver.connect()
                mode = CLOSE
            handle = ConnectionHandle(
                connection=raw,
                connection_id=self.driver.connection_id(raw),
                release_mode=mode,
            )
            self.instrumentation.emit_event(
                "connection.acquire.end",
                source=source,
                success=True,
                connection_id=str(handle.connection_id),
            )

        try:
            await self._initialize(handle)
        except BaseException:
            await self.release(handle)
            raise
        return handle

    async def _initialize(self, handle: ConnectionHandle) -> None:
        hook = self.settings.on_new_connection
        if hook is None:
            return

        # A connection whose hook is still running is not handed out until it finishes.
        # A False result means the hook failed and the next acquirer runs it again.
        while True:
            pending = self._initialized.get(handle.connection)
            if pending is None:
                break
            if await asyncio.shield(pending):
                return

        done: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self._initialized[handle.connection] = done
        try:
            await _maybe_await(hook(handle.connection))
        except BaseException:
            self._initialized.pop(handle.connection, None)
            done.set_result(False)
            self.instrumentation.emit_event(
                "connection.init",
                source="acquirer",
                success=False,
                connection_id=str(handle.connection_id),
            )
            raise
        done.set_result(True)
        self.instrumentation.emit_event(
            "connection.init",
            source="acquirer",
            success=True,
            connection_id=str(handle.connection_id),
        )


# ==================================================
# Held Connection
# ==================================================


class HeldConnection:
    """
    Provider that always returns one handle and never releases it.
    Used by transactions, whose controller disposes of the handle when it terminates.
    """

    is_pool = False

    def __init__(self, handle: ConnectionHandle) -> None:
        self.handle = handle

    async def acquire(self) -> ConnectionHandle:
        return self.handle

    async def release(self, handle: ConnectionHandle) -> None:
        return None
