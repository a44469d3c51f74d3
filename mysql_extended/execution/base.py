from typing import Any, Sequence

from mysql_extended.errors import QueryValidationError, ResourceConstraintError
from mysql_extended.execution.connection import ConnectionProvider
from mysql_extended.execution.driver import Driver, QueryResult
from mysql_extended.execution.observability import Instrumentation
from mysql_extended.statement.builder import StatementBuilder
from mysql_extended.statement.statement import Condition, QueryOptions, Row, Statement

# ==================================================
# Query Executor
# ==================================================

class QueryExecutor:
    """
    Runs statements on connections handed out by a ConnectionProvider.

    The same class serves plain database calls (pool-backed or fixed provider) and
    transactions (a provider holding one connection); only the provider differs.
    """

    def __init__(
        self,
        *,
        provider: ConnectionProvider,
        driver: Driver,
        instrumentation: Instrumentation,
        builder: StatementBuilder | None = None,
        transaction_id: str | None = None,
    ) -> None:
        self.provider = provider
        self.driver = driver
        self.instrumentation = instrumentation
        self.builder = builder or StatementBuilder()
        self.transaction_id = transaction_id

    @property
    def in_transaction(self) -> bool:
        return self.transaction_id is not None

    # ==================================================
    # Statement Execution
    # ==================================================

    async def run(self, statement: Statement, operation: str = "query") -> QueryResult:
        """
        Acquires a connection, sends one statement and releases the connection if it is pool-sourced.
        """
        handle = await self.provider.acquire()
        try:
            self.instrumentation.notify_query(statement.sql, statement.params, handle.connection_id)
            return await self.instrumentation.observe_query(
                source="transaction" if self.in_transaction else "database",
                operation=operation,
                sql=statement.sql,
                params=statement.params,
                connection_id=handle.connection_id,
                in_transaction=self.in_transaction,
                transaction_id=self.transaction_id,
                run=lambda: self.driver.run(handle.connection, statement.sql, statement.params),
            )
        finally:
            await self.provider.release(handle)

    # ==================================================
    # Query Operations
    # ==================================================

    async def query(self, sql: str, params: Sequence[Any] | None = None) -> list[dict[str, Any]]:
        result = await self.run(Statement(sql=sql, params=tuple(params or ())))
        return result.rows

    async def query_one(self, sql: str, params: Sequence[Any] | None = None) -> dict[str, Any]:
        rows = await self.query(sql, params)
        return _expect_one(rows, sql)

    async def select(
        self,
        table: str,
        condition: Condition | None = None,
        options: QueryOptions | None = None,
        *,
        columns: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        statement = self.builder.build_select(table, condition, options, columns=columns)
        result = await self.run(statement, operation="select")
        return result.rows

    async def select_one(
        self,
        table: str,
        condition: Condition | None = None,
        options: QueryOptions | None = None,
        *,
        columns: Sequence[str] | None = None,
    ) -> dict[str, Any]:
        statement = self.builder.build_select(table, condition, options, columns=columns)
        result = await self.run(statement, operation="select")
        return _expect_one(result.rows, statement.sql)

    async def insert(self, table: str, rows: Row | Sequence[Row], upsert: bool = False) -> QueryResult:
        statement = self.builder.build_insert(table, rows, upsert=upsert)
        return await self.run(statement, operation="upsert" if upsert else "insert")

    async def upsert(self, table: str, rows: Row | Sequence[Row]) -> QueryResult:
        return await self.insert(table, rows, upsert=True)

    async def update(
        self,
        table: str,
        data: Row,
        condition: Condition | None = None,
        options: QueryOptions | None = None,
    ) -> QueryResult | None:
        statement = self.builder.build_update(table, data, condition, options)
        if statement is None:
            return None
        return await self.run(statement, operation="update")

    async def delete(
        self,
        table: str,
        condition: Condition | None = None,
        options: QueryOptions | None = None,
    ) -> QueryResult:
        statement = self.builder.build_delete(table, condition, options)
        return await self.run(statement, operation="delete")

    async def get_last_insert_id(self) -> int:
        """
        Returns LAST_INSERT_ID() of the current connection.
        Not available on a pool: consecutive calls may land on different connections.
        """
        if self.provider.is_pool:
            raise ResourceConstraintError(
                "getLastInsertId is not predictable on pool connection, "
                "use a normal connection or transaction instead."
            )

        result = await self.run(Statement(sql="SELECT LAST_INSERT_ID() as id"), operation="last_insert_id")
        row = result.rows[0] if result.rows else None
        value = None if row is None else row.get("id")
        if value is None or str(value) == "0":
            raise ResourceConstraintError("No LAST_INSERT_ID found")
        return int(value)


def _expect_one(rows: list[dict[str, Any]], sql: str) -> dict[str, Any]:
    if len(rows) != 1 or not rows[0]:
        raise QueryValidationError(f"Expected one row, got {len(rows)} rows. Query: {sql}")
    return rows[0]
