from typing import Any, Mapping, Sequence

from mysql_extended.errors import QueryValidationError
from mysql_extended.statement.statement import (
    ORDER_DIRECTIONS,
    Condition,
    Order,
    OrderBy,
    QueryOptions,
    Row,
    Statement,
)

# ==================================================
# MySQL Statement Builder
# ==================================================

class StatementBuilder:
    """
    Renders table operations into MySQL statements using `?` placeholders.
    Builders are pure: every call returns a fresh Statement and performs no I/O.
    """

    quote_char = "`"

    # --------------------------------------------------
    # Statements
    # --------------------------------------------------

    def build_select(
        self,
        table: str,
        condition: Condition | None = None,
        options: QueryOptions | None = None,
        *,
        columns: Sequence[str] | None = None,
    ) -> Statement:
        """
        Builds `SELECT <cols> FROM <table>` followed by WHERE, ORDER BY and LIMIT.
        `columns=None` selects every column. A zero limit renders no LIMIT clause.
        """
        params: list[Any] = []

        if columns is None:
            select_list = "*"
        else:
            if isinstance(columns, str) or not columns:
                raise QueryValidationError("columns must be a non-empty sequence of column names.")
            select_list = ", ".join(self.quote(c) for c in columns)

        sql = f"SELECT {select_list} FROM {self.quote(table)}"
        sql += self._compile_tail(params, condition, options)
        return Statement(sql=sql, params=tuple(params))

    def build_insert(
        self,
        table: str,
        rows: Row | Sequence[Row],
        upsert: bool = False,
    ) -> Statement:
        """
        Builds a single or multi-row INSERT. The column list is taken from the first row.
        With `upsert`, existing rows keep their stored value wherever the new value is NULL.
        """
        row_list = [rows] if isinstance(rows, Mapping) else list(rows)
        if not row_list:
            raise QueryValidationError("There must be at least one row to insert.")

        columns = list(row_list[0].keys())
        if not columns:
            raise QueryValidationError("Cannot insert a row without columns.")

        params: list[Any] = []
        for index, row in enumerate(row_list):
            if set(row.keys()) != set(columns):
                raise QueryValidationError(
                    f"Row {index} has columns {sorted(row.keys())}, expected {sorted(columns)}."
                )
            params.extend(row[column] for column in columns)

        quoted = [self.quote(c) for c in columns]
        placeholder = "(" + ", ".join("?" for _ in columns) + ")"
        values_sql = ", ".join(placeholder for _ in row_list)
        sql = f"INSERT INTO {self.quote(table)} ({', '.join(quoted)}) VALUES {values_sql}"

        if upsert:
            updates = ", ".join(f"{col} = COALESCE(VALUES({col}), {col})" for col in quoted)
            sql += f" ON DUPLICATE KEY UPDATE {updates}"

        return Statement(sql=sql, params=tuple(params))

    def build_update(
        self,
        table: str,
        data: Row,
        condition: Condition | None = None,
        options: QueryOptions | None = None,
    ) -> Statement | None:
        """
        Builds an UPDATE. Returns None when `data` is empty, meaning nothing should run.
        """
        if not data:
            return None
        self._reject_offset(options, "updates")

        params: list[Any] = []
        assignments = []
        for column, value in data.items():
            assignments.append(f"{self.quote(column)} = ?")
            params.append(value)

        sql = f"UPDATE {self.quote(table)} SET {', '.join(assignments)}"
        sql += self._compile_tail(params, condition, options)
        return Statement(sql=sql, params=tuple(params))

    def build_delete(
        self,
        table: str,
        condition: Condition | None = None,
        options: QueryOptions | None = None,
    ) -> Statement:
        """
        Builds a DELETE. MySQL has no `DELETE ... LIMIT n OFFSET m` form.
        """
        self._reject_offset(options, "deletes")

        params: list[Any] = []
        sql = f"DELETE FROM {self.quote(table)}"
        sql += self._compile_tail(params, condition, options)
        return Statement(sql=sql, params=tuple(params))

    # --------------------------------------------------
    # Clauses
    # --------------------------------------------------

    def quote(self, identifier: str) -> str:
        # Embedded quote characters are not escaped; identifiers must come from trusted code.
        return f"{self.quote_char}{identifier}{self.quote_char}"

    def compile_where(self, condition: Condition, params: list[Any]) -> str:
        """
        Compiles a condition mapping into a WHERE clause, appending bind values to `params`.
        NULL values become `IS NULL` and bind nothing; lists become a single `IN(?)` parameter.
        """
        clauses = []
        for column, value in condition.items():
            if value is None:
                clauses.append(f"{self.quote(column)} IS NULL")
            elif isinstance(value, (list, tuple)):
                clauses.append(f"{self.quote(column)} IN(?)")
                params.append(list(value))
            else:
                clauses.append(f"{self.quote(column)} = ?")
                params.append(value)
        return "WHERE " + " AND ".join(clauses)

    def compile_order(self, order: OrderBy) -> str:
        orderings = self._normalize_order(order)
        items = []
        for column, direction in orderings:
            normalized = str(direction).upper()
            if normalized not in ORDER_DIRECTIONS:
                raise QueryValidationError(f"Invalid order direction {direction!r} for column {column!r}.")
            items.append(f"{self.quote(column)} {normalized}")
        return "ORDER BY " + ", ".join(items)

    def compile_limit(self, params: list[Any], limit: int, offset: int | None = None) -> str:
        """
        Compiles LIMIT. A zero offset is the same as no offset.
        """
        self._check_non_negative("limit", limit)
        if offset is not None:
            self._check_non_negative("offset", offset)

        if offset:
            params.extend([offset, limit])
            return "LIMIT ?, ?"
        params.append(limit)
        return "LIMIT ?"

    def _compile_tail(
        self,
        params: list[Any],
        condition: Condition | None,
        options: QueryOptions | None,
    ) -> str:
        parts: list[str] = []
        if condition:
            parts.append(self.compile_where(condition, params))
        if options is not None:
            if options.order:
                parts.append(self.compile_order(options.order))
            # A zero limit means no limit.
            if options.limit is not None:
                self._check_non_negative("limit", options.limit)
            if options.limit:
                parts.append(self.compile_limit(params, options.limit, options.offset))
        return "".join(f" {part}" for part in parts)

    def _normalize_order(self, order: OrderBy) -> list[Order]:
        if not order:
            return []
        if isinstance(order[0], str):
            if len(order) != 2:
                raise QueryValidationError("An ordering must be a (column, direction) pair.")
            return [(order[0], order[1])]
        return [(column, direction) for column, direction in order]

    def _reject_offset(self, options: QueryOptions | None, statement_kind: str) -> None:
        if options is not None and options.offset:
            raise QueryValidationError(f"offset not supported on {statement_kind} using MySQL")

    def _check_non_negative(self, name: str, value: Any) -> None:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise QueryValidationError(f"{name} must be a non-negative integer, got {value!r}.")
