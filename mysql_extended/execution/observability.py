from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
import json
import logging
import time
from typing import Any, Awaitable, Callable, Mapping, Sequence, TypeVar
from uuid import uuid4

T = TypeVar("T")

# ==================================================
# Observability Types
# ==================================================

QueryHook = Callable[[str, Sequence[Any], Any], None]
QueryObserveHook = Callable[["QueryObservation"], None]
EventObserveHook = Callable[["ExecutionEvent"], None]


@dataclass(frozen=True)
class ObservabilitySettings:
    """
    Hooks and observers attached to a Database and the transactions it opens.

    `on_query` is called with (sql, params, connection_id) right before every statement
    is sent, including BEGIN, COMMIT and ROLLBACK.
    """

    on_query: QueryHook | None = None
    query_observer: QueryObserveHook | None = None
    event_observer: EventObserveHook | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class QueryObservation:
    """
    One statement sent to MySQL, with its timing and outcome.
    `connection_id` is the server thread id of the connection it ran on.
    """

    dialect: str
    operation: str
    sql: str
    param_count: int
    duration_ms: float
    succeeded: bool
    in_transaction: bool
    connection_id: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    error_type: str | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class ExecutionEvent:
    """
    Lifecycle event handed to `event_observer`.
    `event` is a dotted name such as `connection.acquire.end`, `query.end` or `txn.commit`.
    """

    timestamp: str
    event: str
    dialect: str
    source: str
    success: bool
    metadata: Mapping[str, Any] = field(default_factory=dict)
    operation: str | None = None
    query_id: str | None = None
    transaction_id: str | None = None
    connection_id: str | None = None
    duration_ms: float | None = None
    retry_attempt: int | None = None
    max_attempts: int | None = None
    backoff_ms: float | None = None
    error_type: str | None = None
    error_message: str | None = None
    retryable: bool | None = None


def execution_event_to_dict(event: ExecutionEvent) -> dict[str, Any]:
    """
    Converts an ExecutionEvent into a JSON-safe dictionary (unset fields are kept as None).
    """
    payload = {f.name: getattr(event, f.name) for f in fields(event)}
    payload["metadata"] = dict(event.metadata)
    return payload


def make_json_event_logger(
    *,
    logger: logging.Logger,
    level: int = logging.INFO,
) -> EventObserveHook:
    """
    Returns an event observer writing each ExecutionEvent to `logger` as one compact JSON line.
    """

    def _log_event(event: ExecutionEvent) -> None:
        payload = execution_event_to_dict(event)
        logger.log(level, json.dumps(payload, separators=(",", ":"), sort_keys=True, default=str))

    return _log_event


def compose_event_observers(*observers: EventObserveHook) -> EventObserveHook:
    """
    Fans every event out to `observers`, in order.
    """

    def _composed(event: ExecutionEvent) -> None:
        for observer in observers:
            observer(event)

    return _composed


# ==================================================
# Instrumentation
# ==================================================


class Instrumentation:
    """
    Dispatches hooks and lifecycle events for one Database and the transactions it opens.
    """

    def __init__(self, settings: ObservabilitySettings | None = None, *, dialect: str = "mysql") -> None:
        self.settings = settings or ObservabilitySettings()
        self.dialect = dialect

    def next_id(self) -> str:
        return uuid4().hex

    def emit_event(self, event: str, *, source: str, success: bool, **kwargs: Any) -> None:
        if self.settings.event_observer is None:
            return

        payload = ExecutionEvent(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event=event,
            dialect=self.dialect,
            source=source,
            success=success,
            metadata=dict(self.settings.metadata),
            **kwargs,
        )
        self.settings.event_observer(payload)

    def notify_query(self, sql: str, params: Sequence[Any], connection_id: Any) -> None:
        if self.settings.on_query is not None:
            self.settings.on_query(sql, params, connection_id)

    async def observe_query(
        self,
        *,
        source: str,
        operation: str,
        sql: str,
        params: Sequence[Any],
        connection_id: Any,
        in_transaction: bool,
        transaction_id: str | None,
        run: Callable[[], Awaitable[T]],
    ) -> T:
        settings = self.settings
        if settings.query_observer is None and settings.event_observer is None:
            return await run()

        query_id = self.next_id()
        conn_label = None if connection_id is None else str(connection_id)
        self.emit_event(
            "query.start",
            source=source,
            success=True,
            operation=operation,
            query_id=query_id,
            transaction_id=transaction_id,
            connection_id=conn_label,
        )

        started = time.perf_counter()
        error: Exception | None = None
        try:
            return await run()
        except Exception as exc:
            error = exc
            raise
        finally:
            duration_ms = (time.perf_counter() - started) * 1000
            if settings.query_observer is not None:
                settings.query_observer(
                    QueryObservation(
                        dialect=self.dialect,
                        operation=operation,
                        sql=sql,
                        param_count=len(params),
                        duration_ms=duration_ms,
                        succeeded=error is None,
                        in_transaction=in_transaction,
                        connection_id=conn_label,
                        metadata=dict(settings.metadata),
                        error_type=type(error).__name__ if error is not None else None,
                        error_message=str(error) if error is not None else None,
                    )
                )
            self.emit_event(
                "query.end",
                source=source,
                success=error is None,
                operation=operation,
                query_id=query_id,
                transaction_id=transaction_id,
                connection_id=conn_label,
                duration_ms=duration_ms,
                error_type=type(error).__name__ if error is not None else None,
                error_message=str(error) if error is not None else None,
            )
