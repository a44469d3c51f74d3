from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Sequence

# ==================================================
# Driver Results
# ==================================================

@dataclass(frozen=True)
class QueryResult:
    """
    Outcome of one statement: the fetched rows, or the write counters for statements without a result set.
    """
    rows: list[dict[str, Any]] = field(default_factory=list)
    affected_rows: int | None = None
    last_insert_id: int | None = None


# ==================================================
# Driver Contract
# ==================================================

class Driver(ABC):
    """
    Capability consumed by the executor: open, run on and close raw driver connections.
    Pooling is not part of this contract; pools are plugged in through acquire/release hooks.
    """

    @abstractmethod
    async def connect(self) -> Any:
        """
        Opens a new physical connection.
        """
        pass

    @abstractmethod
    async def run(self, connection: Any, sql: str, params: Sequence[Any]) -> QueryResult:
        """
        Executes `sql` with `?` placeholders bound positionally to `params`.
        """
        pass

    @abstractmethod
    async def close(self, connection: Any) -> None:
        """
        Closes a connection opened by `connect`.
        """
        pass

    def connection_id(self, connection: Any) -> Any:
        """
        Returns a stable identity for a raw connection, used in hooks and events.
        """
        return id(connection)
