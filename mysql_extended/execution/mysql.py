from typing import Any, Sequence
from urllib.parse import unquote, urlparse

from mysql_extended.errors import QueryValidationError
from mysql_extended.execution.driver import Driver, QueryResult

# ==================================================
# Placeholder Translation
# ==================================================

_QUOTES = {"'", '"', "`"}


def translate_placeholders(sql: str, params: Sequence[Any]) -> tuple[str, list[Any]]:
    """
    Rewrites `?` placeholders into the connector's `%s` style.
    A list or tuple bound to one placeholder expands into `%s, %s, ...` (an empty list becomes NULL).
    Placeholders inside quoted strings and quoted identifiers are left alone.
    """
    out: list[str] = []
    args: list[Any] = []
    index = 0
    quote: str | None = None
    i = 0
    while i < len(sql):
        char = sql[i]
        if quote is not None:
            out.append(char)
            if char == "\\" and quote != "`" and i + 1 < len(sql):
                out.append(sql[i + 1])
                i += 2
                continue
            if char == quote:
                quote = None
        elif char in _QUOTES:
            quote = char
            out.append(char)
        elif char == "?":
            if index >= len(params):
                raise QueryValidationError(
                    f"Statement has more placeholders than the {len(params)} bound values: {sql}"
                )
            value = params[index]
            index += 1
            if isinstance(value, (list, tuple)):
                if value:
                    out.append(", ".join("%s" for _ in value))
                    args.extend(value)
                else:
                    out.append("NULL")
            else:
                out.append("%s")
                args.append(value)
        else:
            out.append(char)
        i += 1

    if index != len(params):
        raise QueryValidationError(
            f"Statement has {index} placeholders but {len(params)} bound values: {sql}"
        )
    return "".join(out), args


# ==================================================
# MySQL Driver
# ==================================================


class MySqlDriver(Driver):
    """
    Driver binding for the asyncio API of the 'mysql-connector-python' library.
    """

    def __init__(
        self,
        connection_info: str | dict[str, Any] | None = None,
        connect_timeout_seconds: float | None = None,
    ) -> None:
        self.connection_info = connection_info
        self.connect_timeout_seconds = connect_timeout_seconds
        self._mysql_connector = None

    def _get_mysql_connector(self) -> Any:
        if self._mysql_connector is None:
            try:
                import importlib

                self._mysql_connector = importlib.import_module("mysql.connector.aio")
            except ImportError:
                raise ImportError(
                    "The 'mysql-connector-python' library is required for MySqlDriver. "
                    "Install it with 'pip install mysql-connector-python'."
                )
        return self._mysql_connector

    def _parse_connection_info(self) -> dict[str, Any]:
        if isinstance(self.connection_info, dict):
            return dict(self.connection_info)
        if not isinstance(self.connection_info, str):
            raise ValueError("connection_info must be a connection string or a dict.")

        parsed = urlparse(self.connection_info)
        if parsed.scheme not in {"mysql"}:
            raise ValueError("MySQL connection string must start with mysql://")

        config = {
            "user": unquote(parsed.username) if parsed.username else None,
            "password": unquote(parsed.password) if parsed.password else None,
            "host": parsed.hostname or "127.0.0.1",
            "port": parsed.port or 3306,
            "database": parsed.path.lstrip("/") if parsed.path else None,
        }
        return {key: value for key, value in config.items() if value is not None}

    async def connect(self) -> Any:
        mysql_connector = self._get_mysql_connector()
        kwargs = self._parse_connection_info()
        kwargs.setdefault("autocommit", True)
        if self.connect_timeout_seconds is not None:
            kwargs["connection_timeout"] = self.connect_timeout_seconds
        return await mysql_connector.connect(**kwargs)

    async def run(self, connection: Any, sql: str, params: Sequence[Any]) -> QueryResult:
        if params:
            operation, args = translate_placeholders(sql, params)
        else:
            operation, args = sql, None

        cursor = await connection.cursor(dictionary=True)
        try:
            await cursor.execute(operation, args)
            if cursor.description:
                rows = await cursor.fetchall()
                return QueryResult(rows=list(rows))
            return QueryResult(affected_rows=cursor.rowcount, last_insert_id=cursor.lastrowid)
        finally:
            await cursor.close()

    async def close(self, connection: Any) -> None:
        await connection.close()

    def connection_id(self, connection: Any) -> Any:
        connection_id = getattr(connection, "connection_id", None)
        if connection_id is None:
            return id(connection)
        return connection_id
