from mysql_extended.execution.base import QueryExecutor
from mysql_extended.execution.connection import (
    ConnectionAcquirer,
    ConnectionHandle,
    ConnectionSettings,
    HeldConnection,
)
from mysql_extended.execution.driver import Driver, QueryResult
from mysql_extended.execution.mysql import MySqlDriver, translate_placeholders
from mysql_extended.execution.retry import RetryPolicy
from mysql_extended.execution.transaction import TransactionController, TransactionState
from mysql_extended.execution.observability import (
    ExecutionEvent,
    Instrumentation,
    ObservabilitySettings,
    QueryObservation,
    compose_event_observers,
    execution_event_to_dict,
    make_json_event_logger,
)

__all__ = [
    "QueryExecutor",
    "ConnectionAcquirer",
    "ConnectionHandle",
    "ConnectionSettings",
    "HeldConnection",
    "Driver",
    "QueryResult",
    "MySqlDriver",
    "translate_placeholders",
    "RetryPolicy",
    "TransactionController",
    "TransactionState",
    "ExecutionEvent",
    "Instrumentation",
    "ObservabilitySettings",
    "QueryObservation",
    "compose_event_observers",
    "execution_event_to_dict",
    "make_json_event_logger",
]
