"""Database adapter abstract base class."""

import asyncio
import uuid
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Literal, TypeVar

from billing_core.conditions import Condition

Record = dict[str, Any]

T = TypeVar("T")

# Markers of the transactions the current task runs inside
_open_transactions: ContextVar[tuple[object, ...]] = ContextVar(
    "billing_open_transactions", default=()
)


@dataclass(frozen=True)
class SortBy:
    """Ordering for find_many."""

    field: str
    direction: Literal["asc", "desc"] = "asc"

    def __post_init__(self) -> None:
        if self.direction not in ("asc", "desc"):
            raise ValueError(f"Sort direction must be 'asc' or 'desc', got {self.direction!r}")


def generate_id(model: str) -> str:
    """Record id for a model, e.g. ``customer_3f2a...``."""
    return f"{model}_{uuid.uuid4().hex}"


class DatabaseAdapter(ABC):
    """Abstract interface for billing storage.

    Conditions arrive in canonical form (``Leaf``/``Group``); adapters
    translate them into their native filter and must keep the evaluation
    semantics of ``billing_core.conditions.evaluate``. An operator an adapter
    cannot honor is rejected with UnsupportedOperatorError.

    Implementations:
    - MemoryAdapter: in-process reference implementation
    - SQLiteAdapter: stdlib sqlite3 persistence
    """

    name: str = "adapter"

    @abstractmethod
    async def create(self, model: str, data: Record) -> Record:
        """Insert a record and return it as stored.

        An ``id`` is generated when the data has none.
        """
        ...

    @abstractmethod
    async def update(self, model: str, where: Condition, data: Record) -> Record | None:
        """Apply ``data`` to every matching record.

        Returns:
            The first updated record, or None when nothing matched
        """
        ...

    @abstractmethod
    async def find_one(self, model: str, where: Condition) -> Record | None:
        """At most one matching record."""
        ...

    @abstractmethod
    async def find_many(
        self,
        model: str,
        where: Condition | None = None,
        limit: int | None = None,
        offset: int = 0,
        sort_by: SortBy | None = None,
    ) -> list[Record]:
        """Matching records; no condition returns all of them."""
        ...

    @abstractmethod
    async def delete(self, model: str, where: Condition) -> int:
        """Delete every matching record and return how many were removed."""
        ...

    async def transaction(self, fn: Callable[["DatabaseAdapter"], Awaitable[T]]) -> T:
        """Run ``fn`` atomically with a transactional adapter.

        Adapters without transaction support keep this default.

        Raises:
            NotImplementedError: If the adapter has no transaction support
        """
        raise NotImplementedError(f"{self.name} adapter does not support transactions")

    @property
    def supports_transactions(self) -> bool:
        return type(self).transaction is not DatabaseAdapter.transaction

    async def close(self) -> None:
        """Release adapter resources."""
        return None


class LockedAdapter(DatabaseAdapter):
    """Base for adapters that serialize callers around one transaction lock.

    The current task's open transactions are tracked in a context variable,
    so only calls made from inside ``fn`` join a transaction. Every other
    task waits on the lock, for transactions and single operations alike,
    until the open transaction commits or rolls back.
    """

    def __init__(self) -> None:
        self._tx_lock = asyncio.Lock()
        self._tx_marker: object | None = None

    def in_transaction(self) -> bool:
        """Whether the calling task is inside this adapter's open transaction."""
        marker = self._tx_marker
        return marker is not None and any(m is marker for m in _open_transactions.get())

    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator[None]:
        """Hold the lock unless the calling task already owns the transaction."""
        if self.in_transaction():
            yield
            return
        async with self._tx_lock:
            yield

    async def transaction(self, fn: Callable[["DatabaseAdapter"], Awaitable[T]]) -> T:
        """Run ``fn`` atomically; nested calls from ``fn`` join the outer one."""
        if self.in_transaction():
            return await fn(self)
        async with self._tx_lock:
            marker = self._tx_marker = object()
            token = _open_transactions.set(_open_transactions.get() + (marker,))
            try:
                await self._begin()
                try:
                    result = await fn(self)
                except BaseException:
                    await self._rollback()
                    raise
                await self._commit()
                return result
            finally:
                self._tx_marker = None
                _open_transactions.reset(token)

    @abstractmethod
    async def _begin(self) -> None: ...

    @abstractmethod
    async def _commit(self) -> None: ...

    @abstractmethod
    async def _rollback(self) -> None: ...
