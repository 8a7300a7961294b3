"""Store client interface shared by every component.

Components never reach for a global client: they receive a
:class:`StoreClient` when constructed, so a test can hand them the in-memory
implementation instead of the HTTP one.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from ..core.models import Session
from ..errors import StoreError
from .realtime import RealtimeBroker

Row = dict[str, Any]


@dataclass(frozen=True)
class Filter:
    op: str  # eq | neq | in | not_null
    column: str
    value: Any = None


class Query:
    """Fluent description of one table request.

    Nothing is sent until :meth:`execute`, :meth:`maybe_single` or
    :meth:`single` is awaited.
    """

    def __init__(self, client: StoreClient, table: str) -> None:
        self.client = client
        self.table = table
        self.action = "select"
        self.columns = "*"
        self.filters: list[Filter] = []
        self.orders: list[tuple[str, bool]] = []
        self.row_limit: int | None = None
        self.payload: Row | list[Row] | None = None
        self.on_conflict: str | None = None

    # ------------------------------------------------------------------
    # Actions
    def select(self, columns: str = "*") -> Query:
        self.action = "select"
        self.columns = columns
        return self

    def insert(self, rows: Mapping[str, Any] | Iterable[Mapping[str, Any]]) -> Query:
        self.action = "insert"
        self.payload = _rows(rows)
        return self

    def upsert(
        self,
        rows: Mapping[str, Any] | Iterable[Mapping[str, Any]],
        on_conflict: str | None = None,
    ) -> Query:
        self.action = "upsert"
        self.payload = _rows(rows)
        self.on_conflict = on_conflict
        return self

    def update(self, values: Mapping[str, Any]) -> Query:
        self.action = "update"
        self.payload = dict(values)
        return self

    def delete(self) -> Query:
        self.action = "delete"
        return self

    # ------------------------------------------------------------------
    # Filters and modifiers
    def eq(self, column: str, value: Any) -> Query:
        self.filters.append(Filter("eq", column, value))
        return self

    def neq(self, column: str, value: Any) -> Query:
        self.filters.append(Filter("neq", column, value))
        return self

    def in_(self, column: str, values: Iterable[Any]) -> Query:
        self.filters.append(Filter("in", column, list(values)))
        return self

    def not_null(self, column: str) -> Query:
        self.filters.append(Filter("not_null", column))
        return self

    def order(self, column: str, ascending: bool = True) -> Query:
        self.orders.append((column, ascending))
        return self

    def limit(self, count: int) -> Query:
        self.row_limit = count
        return self

    # ------------------------------------------------------------------
    # Execution
    async def execute(self) -> list[Row]:
        return await self.client.execute(self)

    async def maybe_single(self) -> Row | None:
        """Return the only matching row, or ``None`` when there is none."""
        rows = await self.execute()
        if len(rows) > 1:
            raise StoreError(
                f"Expected at most one row from {self.table}, got {len(rows)}",
                code="PGRST116",
            )
        return rows[0] if rows else None

    async def single(self) -> Row:
        """Return exactly one row or raise :class:`StoreError`."""
        rows = await self.execute()
        if len(rows) != 1:
            raise StoreError(
                f"Expected one row from {self.table}, got {len(rows)}",
                code="PGRST116",
            )
        return rows[0]


def _rows(rows: Mapping[str, Any] | Iterable[Mapping[str, Any]]) -> Row | list[Row]:
    if isinstance(rows, Mapping):
        return dict(rows)
    return [dict(r) for r in rows]


class StoreClient(ABC):
    """Abstract access to the relational store, its procedures and blobs."""

    realtime: RealtimeBroker

    def table(self, name: str) -> Query:
        """Start a :class:`Query` against table ``name``."""
        return Query(self, name)

    @abstractmethod
    async def execute(self, query: Query) -> list[Row]:
        """Run ``query`` and return the affected or selected rows."""

    @abstractmethod
    async def rpc(self, name: str, params: Mapping[str, Any] | None = None) -> Any:
        """Invoke the remote procedure ``name``."""

    @abstractmethod
    async def upload(
        self,
        bucket: str,
        path: str,
        content: bytes,
        content_type: str = "application/octet-stream",
        upsert: bool = True,
    ) -> None:
        """Store ``content`` at ``path`` inside ``bucket``."""

    @abstractmethod
    def public_url(self, bucket: str, path: str) -> str:
        """Return the public URL of an uploaded object."""

    @abstractmethod
    async def get_session(self) -> Session | None:
        """Return the signed-in session, if any."""

    @abstractmethod
    async def sign_out(self) -> None:
        """End the current session."""
