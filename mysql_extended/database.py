from dataclasses import replace
from typing import Any, Awaitable, Callable, Sequence, TypeVar

from mysql_extended.errors import (
    QueryValidationError,
    TransactionStateError,
    TransientExecutionError,
    normalize_execution_error,
)
from mysql_extended.execution.base import QueryExecutor
from mysql_extended.execution.connection import (
    ConnectionAcquireHook,
    ConnectionAcquirer,
    ConnectionReleaseHook,
    ConnectionSettings,
    HeldConnection,
    NewConnectionHook,
)
from mysql_extended.execution.driver import Driver, QueryResult
from mysql_extended.execution.mysql import MySqlDriver
from mysql_extended.execution.observability import Instrumentation, ObservabilitySettings, QueryHook
from mysql_extended.execution.retry import RetryPolicy, run_with_retry
from mysql_extended.execution.transaction import TransactionController, TransactionState
from mysql_extended.statement.builder import StatementBuilder
from mysql_extended.statement.statement import Condition, OrderBy, QueryOptions, Row, Statement

ResultT = TypeVar("ResultT")

# ==================================================
# Query Interface
# ==================================================


def _resolve_options(
    options: QueryOptions | None,
    order: OrderBy | None,
    limit: int | None,
    offset: int | None,
) -> QueryOptions | None:
    shortcuts = order is not None or limit is not None or offset is not None
    if options is not None:
        if shortcuts:
            raise QueryValidationError("Pass either options or order/limit/offset, not both.")
        return options
    if not shortcuts:
        return None
    return QueryOptions(order=order, limit=limit, offset=offset)


class QueryInterface:
    """
    Query operations available on a Database and on an open Transaction.
    Every call is forwarded to the QueryExecutor returned by `_get_executor`.
    """

    def _get_executor(self) -> QueryExecutor:
        raise NotImplementedError

    async def query(self, sql: str, params: Sequence[Any] | None = None) -> list[dict[str, Any]]:
        """
        Runs raw SQL with `?` placeholders and returns the fetched rows.
        """
        return await self._get_executor().query(sql, params)

    async def query_one(self, sql: str, params: Sequence[Any] | None = None) -> dict[str, Any]:
        """
        Runs raw SQL and returns its only row. Any other row count is an error.
        """
        return await self._get_executor().query_one(sql, params)

    async def select(
        self,
        table: str,
        condition: Condition | None = None,
        options: QueryOptions | None = None,
        *,
        columns: Sequence[str] | None = None,
        order: OrderBy | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Selects rows from `table`.

        `condition` maps columns to values (None means IS NULL, a list means IN).
        `columns` restricts the selected columns; by default every column is returned.
        """
        resolved = _resolve_options(options, order, limit, offset)
        return await self._get_executor().select(table, condition, resolved, columns=columns)

    async def select_one(
        self,
        table: str,
        condition: Condition | None = None,
        options: QueryOptions | None = None,
        *,
        columns: Sequence[str] | None = None,
        order: OrderBy | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> dict[str, Any]:
        resolved = _resolve_options(options, order, limit, offset)
        return await self._get_executor().select_one(table, condition, resolved, columns=columns)

    async def insert(self, table: str, rows: Row | Sequence[Row]) -> QueryResult:
        return await self._get_executor().insert(table, rows)

    async def upsert(self, table: str, rows: Row | Sequence[Row]) -> QueryResult:
        """
        Inserts rows, updating existing ones on a duplicate key.
        NULL values in `rows` never overwrite stored values.
        """
        return await self._get_executor().upsert(table, rows)

    async def update(
        self,
        table: str,
        data: Row,
        condition: Condition | None = None,
        options: QueryOptions | None = None,
        *,
        order: OrderBy | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> QueryResult | None:
        """
        Updates rows of `table`. Returns None without touching the database when `data` is empty.
        """
        resolved = _resolve_options(options, order, limit, offset)
        return await self._get_executor().update(table, data, condition, resolved)

    async def delete(
        self,
        table: str,
        condition: Condition | None = None,
        options: QueryOptions | None = None,
        *,
        order: OrderBy | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> QueryResult:
        resolved = _resolve_options(options, order, limit, offset)
        return await self._get_executor().delete(table, condition, resolved)

    async def get_last_insert_id(self) -> int:
        return await self._get_executor().get_last_insert_id()


# ==================================================
# Transaction
# ==================================================


class Transaction(QueryInterface):
    """
    An open transaction. All statements run on the one connection it holds.

    Can be used as an async context manager: a clean exit commits, an exception rolls back.
    """

    def __init__(self, executor: QueryExecutor, controller: TransactionController) -> None:
        self.executor = executor
        self.controller = controller

    @property
    def state(self) -> TransactionState:
        return self.controller.state

    @property
    def transaction_id(self) -> str | None:
        return self.controller.transaction_id

    def _get_executor(self) -> QueryExecutor:
        self.controller.ensure_active()
        return self.executor

    async def commit(self) -> None:
        await self.controller.commit()

    async def rollback(self) -> None:
        await self.controller.rollback()

    async def __aenter__(self) -> "Transaction":
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        _ = exc
        _ = tb
        if self.state is not TransactionState.BEGAN:
            return
        if exc_type is None:
            await self.commit()
        else:
            await self.rollback()


# ==================================================
# Database
# ==================================================


class Database(QueryInterface):
    """
    Entry point over a MySQL connection source.

    Exactly one source is used, in this order of precedence:
    - `connection`: a fixed connection, shared by every call and never released.
    - `acquire_connection` / `release_connection`: an external pool.
    - `connection_info` (or a custom `driver`): a new connection per call, closed afterwards.
    """

    def __init__(
        self,
        connection_info: str | dict[str, Any] | None = None,
        connection: Any | None = None,
        *,
        driver: Driver | None = None,
        builder: StatementBuilder | None = None,
        connect_timeout_seconds: float | None = None,
        acquire_connection: ConnectionAcquireHook | None = None,
        release_connection: ConnectionReleaseHook | None = None,
        on_new_connection: NewConnectionHook | None = None,
        on_query: QueryHook | None = None,
        observability_settings: ObservabilitySettings | None = None,
    ) -> None:
        if connection_info is None and connection is None and acquire_connection is None and driver is None:
            raise ValueError("Provide connection_info, connection, acquire_connection, or driver.")

        settings = observability_settings or ObservabilitySettings()
        if on_query is not None:
            settings = replace(settings, on_query=on_query)

        self.driver = driver or MySqlDriver(
            connection_info=connection_info,
            connect_timeout_seconds=connect_timeout_seconds,
        )
        self.builder = builder or StatementBuilder()
        self.observability_settings = settings
        self.instrumentation = Instrumentation(settings)
        self.connection_settings = ConnectionSettings(
            connect_timeout_seconds=connect_timeout_seconds,
            acquire_connection=acquire_connection,
            release_connection=release_connection,
            on_new_connection=on_new_connection,
        )
        self._acquirer = ConnectionAcquirer(
            driver=self.driver,
            settings=self.connection_settings,
            instrumentation=self.instrumentation,
            connection=connection,
        )
        self._executor = QueryExecutor(
            provider=self._acquirer,
            driver=self.driver,
            instrumentation=self.instrumentation,
            builder=self.builder,
        )
        self._closed = False

    @property
    def is_pool(self) -> bool:
        return self._acquirer.is_pool

    def _ensure_open(self) -> None:
        if self._closed:
            raise TransactionStateError("Database is closed.")

    def _get_executor(self) -> QueryExecutor:
        self._ensure_open()
        return self._executor

    # ==================================================
    # Transactions
    # ==================================================

    async def begin(self) -> Transaction:
        """
        Acquires a connection, sends BEGIN on it and returns the open transaction.
        """
        self._ensure_open()
        handle = await self._acquirer.acquire_for_transaction()
        executor = QueryExecutor(
            provider=HeldConnection(handle),
            driver=self.driver,
            instrumentation=self.instrumentation,
            builder=self.builder,
            transaction_id=self.instrumentation.next_id(),
        )
        controller = TransactionController(
            executor=executor,
            handle=handle,
            release=self._acquirer.release,
        )
        try:
            await controller.begin()
        except BaseException:
            await self._acquirer.release(handle)
            raise
        return Transaction(executor, controller)

    async def transaction(self, callback: Callable[[Transaction], Awaitable[ResultT]]) -> ResultT:
        """
        Runs `callback` inside a transaction: commits when it returns, rolls back when it raises.
        The callback's exception is re-raised unchanged.
        """
        tx = await self.begin()
        try:
            result = await callback(tx)
        except BaseException:
            # BaseException: a cancelled callback rolls back as well.
            if tx.state is TransactionState.BEGAN:
                await tx.rollback()
            raise
        await tx.commit()
        return result

    # ==================================================
    # Retry
    # ==================================================

    async def query_with_retry(
        self,
        sql: str,
        params: Sequence[Any] | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> list[dict[str, Any]]:
        """
        Like `query`, retrying transient driver failures (deadlocks, lock and connection timeouts).
        """
        executor = self._get_executor()
        statement = Statement(sql=sql, params=tuple(params or ()))
        policy = retry_policy or RetryPolicy()

        async def _attempt() -> list[dict[str, Any]]:
            result = await executor.run(statement)
            return result.rows

        return await run_with_retry(
            operation=_attempt,
            normalize_error=lambda exc: normalize_execution_error(
                dialect=self.instrumentation.dialect, operation="query", exc=exc
            ),
            policy=policy,
            on_retry=lambda normalized, attempt, delay: self.instrumentation.emit_event(
                "retry.scheduled",
                source="database",
                success=False,
                operation="query",
                retry_attempt=attempt,
                max_attempts=policy.max_attempts,
                backoff_ms=delay * 1000,
                error_type=type(normalized).__name__,
                retryable=isinstance(normalized, TransientExecutionError),
            ),
            on_giveup=lambda normalized, attempt: self.instrumentation.emit_event(
                "retry.giveup",
                source="database",
                success=False,
                operation="query",
                retry_attempt=attempt,
                max_attempts=policy.max_attempts,
                error_type=type(normalized).__name__,
                retryable=isinstance(normalized, TransientExecutionError),
            ),
        )

    # ==================================================
    # Lifecycle Controls
    # ==================================================

    async def close(self) -> None:
        """
        Marks the database closed. Connections owned by the caller (fixed connection, pool) stay open.
        """
        self._closed = True

    async def __aenter__(self) -> "Database":
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        _ = exc_type
        _ = exc
        _ = tb
        await self.close()
