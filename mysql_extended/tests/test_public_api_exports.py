from mysql_extended import (
    __version__,
    Database,
    DeadlockError,
    MySqlDriver,
    ObservabilitySettings,
    QueryOptions,
    RetryPolicy,
    StatementBuilder,
    Transaction,
)
from mysql_extended.execution import QueryResult, TransactionState
from mysql_extended.statement import Statement as StatementFromPackage
from mysql_extended.statement.statement import Statement


def test_root_public_api_exports_are_importable() -> None:
    assert __version__
    assert Database is not None
    assert Transaction is not None
    assert MySqlDriver is not None
    assert StatementBuilder is not None
    assert RetryPolicy is not None
    assert ObservabilitySettings is not None
    assert QueryOptions is not None
    assert DeadlockError is not None


def test_statement_exports_include_statement() -> None:
    assert StatementFromPackage is Statement


def test_execution_exports_include_results_and_states() -> None:
    result = QueryResult(affected_rows=1)
    assert result.rows == []
    assert TransactionState.BEGAN.terminal is False
    assert TransactionState.COMMITTED.terminal is True
