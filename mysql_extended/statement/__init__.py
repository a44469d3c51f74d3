from mysql_extended.statement.builder import StatementBuilder
from mysql_extended.statement.statement import (
    BindValue,
    Condition,
    Order,
    OrderBy,
    QueryOptions,
    Row,
    Statement,
)

__all__ = [
    "StatementBuilder",
    "Statement",
    "QueryOptions",
    "BindValue",
    "Condition",
    "Order",
    "OrderBy",
    "Row",
]
