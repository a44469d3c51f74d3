from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple


# ==================================================
# Usage Errors
# ==================================================


class MySqlExtendedError(Exception):
    """
    Base type for errors raised by this library (as opposed to the driver).
    """


class QueryValidationError(MySqlExtendedError, ValueError):
    """
    Raised when a structured call cannot be rendered or its result has the wrong shape.
    """


class TransactionStateError(MySqlExtendedError, RuntimeError):
    """
    Raised when a lifecycle operation is called out of order.
    """


class ResourceConstraintError(MySqlExtendedError):
    """
    Raised when an operation is not possible on the configured connection source.
    """



# ==================================================
# Normalized Execution Errors
# ==================================================


@dataclass(slots=True, frozen=True)
class ExecutionErrorDetails:
    """
    What the driver reported about a failed statement.
    `errno` is the MySQL server/client error number, `sqlstate` the five-character SQLSTATE.
    """

    dialect: str
    operation: str
    sqlstate: str | None
    errno: int | None
    original_message: str


class ExecutionError(MySqlExtendedError):
    """
    A driver exception mapped onto this library's taxonomy.
    The driver exception stays reachable as `original_exception` and as `__cause__`.
    """

    def __init__(self, details: ExecutionErrorDetails, original_exception: Exception) -> None:
        self.details = details
        self.original_exception = original_exception
        super().__init__(
            f"[{details.dialect}:{details.operation}] {type(self).__name__}: {details.original_message}"
        )


class TransientExecutionError(ExecutionError):
    """
    The statement may succeed if sent again (on a fresh connection for connection errors).
    """


class DeadlockError(TransientExecutionError):
    pass


class LockTimeoutError(TransientExecutionError):
    pass


class ConnectionTimeoutError(TransientExecutionError):
    pass


class IntegrityConstraintError(ExecutionError):
    pass


class ProgrammingExecutionError(ExecutionError):
    pass



class _Rule(NamedTuple):
    error_type: type[ExecutionError]
    errnos: frozenset[int]
    sqlstates: tuple[str, ...]  # exact values or class prefixes
    fragments: tuple[str, ...]  # lowercase message fragments


_RULES = (
    _Rule(DeadlockError, frozenset({1213}), ("40001",), ("deadlock",)),
    _Rule(LockTimeoutError, frozenset({1205}), (), ("lock wait timeout",)),
    _Rule(
        ConnectionTimeoutError,
        frozenset({2003, 2005, 2006, 2013, 4031}),
        ("08",),
        ("timed out", "lost connection", "server has gone away", "can't connect", "connection refused"),
    ),
    _Rule(
        IntegrityConstraintError,
        frozenset({1048, 1062, 1451, 1452, 3819}),
        ("23",),
        ("duplicate entry", "foreign key constraint"),
    ),
    _Rule(
        ProgrammingExecutionError,
        frozenset({1054, 1064, 1146}),
        ("42",),
        ("you have an error in your sql syntax", "unknown column"),
    ),
)


def _extract_errno(exc: Exception) -> int | None:
    errno = getattr(exc, "errno", None)
    if isinstance(errno, int) and errno > 0:
        return errno
    return None


def _extract_sqlstate(exc: Exception) -> str | None:
    sqlstate = getattr(exc, "sqlstate", None)
    if isinstance(sqlstate, str) and sqlstate:
        return sqlstate.upper()
    return None


def _classify(errno: int | None, sqlstate: str | None, message: str) -> type[ExecutionError]:
    if errno is not None:
        for rule in _RULES:
            if errno in rule.errnos:
                return rule.error_type
    if sqlstate is not None:
        for rule in _RULES:
            if sqlstate.startswith(rule.sqlstates):
                return rule.error_type
    for rule in _RULES:
        if any(fragment in message for fragment in rule.fragments):
            return rule.error_type
    return ExecutionError


def normalize_execution_error(
    *,
    dialect: str,
    operation: str,
    exc: Exception,
) -> ExecutionError:
    """
    Maps a mysql-connector exception (or any exception exposing `errno` / `sqlstate`)
    onto the ExecutionError taxonomy. The error number is the most precise signal,
    then the SQLSTATE, then the message text.
    """
    errno = _extract_errno(exc)
    sqlstate = _extract_sqlstate(exc)
    details = ExecutionErrorDetails(
        dialect=dialect,
        operation=operation,
        sqlstate=sqlstate,
        errno=errno,
        original_message=str(exc),
    )
    error_type = _classify(errno, sqlstate, str(exc).lower())
    return error_type(details, exc)
