from mysql_extended.database import Database, QueryInterface, Transaction
from mysql_extended.errors import (
    ConnectionTimeoutError,
    DeadlockError,
    ExecutionError,
    IntegrityConstraintError,
    LockTimeoutError,
    MySqlExtendedError,
    ProgrammingExecutionError,
    QueryValidationError,
    ResourceConstraintError,
    TransactionStateError,
    TransientExecutionError,
    normalize_execution_error,
)
from mysql_extended.execution import (
    ConnectionSettings,
    Driver,
    ExecutionEvent,
    MySqlDriver,
    ObservabilitySettings,
    QueryObservation,
    QueryResult,
    RetryPolicy,
    TransactionState,
    compose_event_observers,
    execution_event_to_dict,
    make_json_event_logger,
)
from mysql_extended.statement import QueryOptions, Statement, StatementBuilder

__version__ = "2.0.0"

__all__ = [
    "__version__",
    "Database",
    "Transaction",
    "QueryInterface",
    "TransactionState",
    "Statement",
    "StatementBuilder",
    "QueryOptions",
    "QueryResult",
    "Driver",
    "MySqlDriver",
    "ConnectionSettings",
    "ObservabilitySettings",
    "QueryObservation",
    "ExecutionEvent",
    "RetryPolicy",
    "compose_event_observers",
    "execution_event_to_dict",
    "make_json_event_logger",
    "MySqlExtendedError",
    "QueryValidationError",
    "TransactionStateError",
    "ResourceConstraintError",
    "ExecutionError",
    "TransientExecutionError",
    "DeadlockError",
    "LockTimeoutError",
    "ConnectionTimeoutError",
    "IntegrityConstraintError",
    "ProgrammingExecutionError",
    "normalize_execution_error",
]
