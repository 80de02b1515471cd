"""Query builder and the data-store interface the services talk to.

The services never import a concrete store. They build a :class:`Query` and
hand it to whatever :class:`DataStore` they were constructed with, so the
hosted database client and :class:`~eventdesk.repos.memory.InMemoryStore`
are interchangeable.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Iterable, Protocol

Row = dict[str, Any]

OPERATORS = ("eq", "neq", "in", "gt", "gte", "lt", "lte")


@dataclass(frozen=True)
class Filter:
    column: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in OPERATORS:
            raise ValueError(f"unknown operator {self.op!r}")


@dataclass(frozen=True)
class AnyOf:
    """Logical OR over its filters."""

    filters: tuple[Filter, ...]


@dataclass(frozen=True)
class Order:
    column: str
    ascending: bool = True


@dataclass(frozen=True)
class Query:
    """An immutable select against one table.

    Every builder method returns a new query, so a partially built query can
    be shared between a page fetch and a count.
    """

    table: str
    filters: tuple[Filter | AnyOf, ...] = ()
    ordering: tuple[Order, ...] = ()
    offset: int | None = None
    limit: int | None = None
    expand: tuple[str, ...] = ()
    columns: tuple[str, ...] = ()

    def _with(self, item: Filter | AnyOf) -> Query:
        return replace(self, filters=self.filters + (item,))

    def eq(self, column: str, value: Any) -> Query:
        return self._with(Filter(column, "eq", value))

    def neq(self, column: str, value: Any) -> Query:
        return self._with(Filter(column, "neq", value))

    def in_(self, column: str, values: Iterable[Any]) -> Query:
        return self._with(Filter(column, "in", tuple(values)))

    def gt(self, column: str, value: Any) -> Query:
        return self._with(Filter(column, "gt", value))

    def gte(self, column: str, value: Any) -> Query:
        return self._with(Filter(column, "gte", value))

    def lt(self, column: str, value: Any) -> Query:
        return self._with(Filter(column, "lt", value))

    def lte(self, column: str, value: Any) -> Query:
        return self._with(Filter(column, "lte", value))

    def any_of(self, *filters: Filter) -> Query:
        return self._with(AnyOf(tuple(filters)))

    def order(self, column: str, ascending: bool = True) -> Query:
        return replace(self, ordering=self.ordering + (Order(column, ascending),))

    def range(self, start: int, end: int) -> Query:
        """Inclusive row range, ``range(0, 4)`` selects five rows."""
        return replace(self, offset=start, limit=end - start + 1)

    def select(self, *columns: str) -> Query:
        return replace(self, columns=tuple(columns))

    def with_related(self, *relations: str) -> Query:
        return replace(self, expand=self.expand + tuple(relations))


def table(name: str) -> Query:
    return Query(table=name)


class DataStore(Protocol):
    """What the services need from the relational store.

    Implementations raise :class:`~eventdesk.domain.errors.StoreError` on
    any I/O failure. Rows are plain JSON-like dicts; datetimes may come back
    as ISO-8601 strings.
    """

    async def select(self, query: Query) -> list[Row]: ...

    async def count(self, query: Query) -> int: ...

    async def insert(self, table: str, row: Row) -> Row: ...

    async def update(self, table: str, row_id: str, values: Row) -> Row: ...

    async def delete(self, query: Query) -> int: ...


def iso(value: datetime) -> str:
    """Serialize an aware instant the way rows store it."""
    return value.isoformat().replace("+00:00", "Z")
