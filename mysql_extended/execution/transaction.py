from enum import Enum
import time
from typing import Awaitable, Callable

from mysql_extended.errors import TransactionStateError
from mysql_extended.execution.base import QueryExecutor
from mysql_extended.execution.connection import ConnectionHandle
from mysql_extended.statement.statement import Statement

# ==================================================
# Transaction State
# ==================================================


class TransactionState(Enum):
    CREATED = "created"
    BEGAN = "began"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"

    @property
    def terminal(self) -> bool:
        return self in (TransactionState.COMMITTED, TransactionState.ROLLED_BACK)


_TERMINAL_ACTIONS = {
    TransactionState.COMMITTED: "COMMIT",
    TransactionState.ROLLED_BACK: "ROLLBACK",
}


# ==================================================
# Transaction Controller
# ==================================================


class TransactionController:
    """
    Begin-once / terminate-once state machine over the connection held by a transaction.

    The held connection is released through `release` as soon as the controller
    reaches a terminal state, whether or not the COMMIT/ROLLBACK statement succeeded.
    """

    def __init__(
        self,
        *,
        executor: QueryExecutor,
        handle: ConnectionHandle,
        release: Callable[[ConnectionHandle], Awaitable[None]],
    ) -> None:
        self.executor = executor
        self.handle = handle
        self._release = release
        self._state = TransactionState.CREATED
        self._started_at: float | None = None

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def transaction_id(self) -> str | None:
        return self.executor.transaction_id

    @property
    def last_action(self) -> str | None:
        return _TERMINAL_ACTIONS.get(self._state)

    async def begin(self) -> None:
        if self._state is not TransactionState.CREATED:
            raise TransactionStateError("Transaction has already began")

        await self.executor.run(Statement(sql="BEGIN"), operation="begin")
        self._state = TransactionState.BEGAN
        self._started_at = time.perf_counter()
        self.executor.instrumentation.emit_event(
            "txn.begin",
            source="transaction",
            success=True,
            transaction_id=self.transaction_id,
            connection_id=str(self.handle.connection_id),
        )

    async def commit(self) -> None:
        await self._terminate("COMMIT", TransactionState.COMMITTED)

    async def rollback(self) -> None:
        await self._terminate("ROLLBACK", TransactionState.ROLLED_BACK)

    def ensure_active(self) -> None:
        """
        Raises unless statements may still run inside this transaction.
        """
        if self._state.terminal:
            raise TransactionStateError(f"Transaction is finished. Already got {self.last_action}")
        if self._state is TransactionState.CREATED:
            raise TransactionStateError("Transaction has not begun")

    async def _terminate(self, action: str, target: TransactionState) -> None:
        if self._state.terminal:
            raise TransactionStateError(f"Cannot {action} transaction. Already got {self.last_action}")
        if self._state is TransactionState.CREATED:
            raise TransactionStateError(f"Cannot {action} transaction. Transaction has not begun")

        self._state = target
        error: Exception | None = None
        try:
            await self.executor.run(Statement(sql=action), operation=action.lower())
        except Exception as exc:
            error = exc
            raise
        finally:
            duration_ms = None if self._started_at is None else (time.perf_counter() - self._started_at) * 1000
            self.executor.instrumentation.emit_event(
                f"txn.{action.lower()}",
                source="transaction",
                success=error is None,
                transaction_id=self.transaction_id,
                connection_id=str(self.handle.connection_id),
                duration_ms=duration_ms,
                error_type=type(error).__name__ if error is not None else None,
                error_message=str(error) if error is not None else None,
            )
            await self._release(self.handle)
