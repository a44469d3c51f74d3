from dataclasses import dataclass
from typing import Any, Mapping, Sequence, Union

# ==================================================
# Value Types
# ==================================================

# Scalars are passed through to the driver untouched (str, int, Decimal, datetime, ...).
DataValue = Any
BindValue = Union[DataValue, list[DataValue], tuple[DataValue, ...]]
Row = Mapping[str, Any]
Condition = Mapping[str, BindValue]
Order = tuple[str, str]
OrderBy = Union[Order, Sequence[Order]]

ORDER_DIRECTIONS = frozenset({"ASC", "DESC"})


# ==================================================
# Statement
# ==================================================

@dataclass(frozen=True)
class Statement:
    """
    SQL text paired with its positional bind values.
    The order of `params` matches the order of `?` placeholders in `sql`.
    """
    sql: str
    params: tuple[Any, ...] = ()


# ==================================================
# Query Options
# ==================================================

@dataclass(frozen=True)
class QueryOptions:
    """
    Ordering and row window applied to SELECT, UPDATE and DELETE statements.
    """
    order: OrderBy | None = None
    limit: int | None = None
    offset: int | None = None
