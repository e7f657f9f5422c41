"""In-memory backend.

Keeps every table as a dict of plain entity dicts.  Useful for tests and
prototyping; each call returns deep copies so callers never share state with
the backend.
"""

from __future__ import annotations

import copy
import itertools
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from pycrudsync.exceptions import EntityNotFoundError
from pycrudsync.models.requests import (
    CreateProps,
    FindProps,
    ListProps,
    Pagination,
    RemoveProps,
    UpdateProps,
)

_logger = logging.getLogger(__name__)


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str):
        return isinstance(expected, str) and expected.lower() in actual.lower()
    try:
        return expected in actual
    except TypeError:
        return False


def _compare(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def _safe(actual: Any, expected: Any) -> bool:
        if actual is None:
            return False
        try:
            return op(actual, expected)
        except TypeError:
            return False

    return _safe


_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "$eq": lambda actual, expected: actual == expected,
    "$ne": lambda actual, expected: actual != expected,
    "$gt": _compare(lambda a, b: a > b),
    "$gte": _compare(lambda a, b: a >= b),
    "$lt": _compare(lambda a, b: a < b),
    "$lte": _compare(lambda a, b: a <= b),
    "$in": lambda actual, expected: actual in expected,
    "$nin": lambda actual, expected: actual not in expected,
    "$contains": _contains,
}


def matches(entity: Mapping[str, Any], filters: Mapping[str, Any] | None) -> bool:
    """Return True if *entity* satisfies every filter condition."""
    if not filters:
        return True
    for field_name, condition in filters.items():
        actual = entity.get(field_name)
        if isinstance(condition, Mapping):
            for op, expected in condition.items():
                if not _OPERATORS[op](actual, expected):
                    return False
        elif actual != condition:
            return False
    return True


class MemoryBackend:
    """Backend storing tables in process memory.

    Parameters
    ----------
    tables
        Optional initial content: ``{table: [entity, ...]}``.
    identity_field
        Key under which identities are stored.
    id_factory
        Produces a new identity for ``create``; defaults to a per-backend
        counter yielding ``"1"``, ``"2"``, ...
    """

    def __init__(
        self,
        tables: Mapping[str, Iterable[Mapping[str, Any]]] | None = None,
        *,
        identity_field: str = "id",
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._identity_field = identity_field
        self._tables: dict[str, dict[str, dict[str, Any]]] = {}
        counter = itertools.count(1)
        self._id_factory = id_factory or (lambda: str(next(counter)))
        for table, entities in (tables or {}).items():
            rows = self._table(table)
            for entity in entities:
                row = dict(entity)
                rows[str(row[identity_field])] = row

    def _table(self, table: str) -> dict[str, dict[str, Any]]:
        rows = self._tables.get(table)
        if rows is None:
            rows = {}
            self._tables[table] = rows
        return rows

    def _row(self, table: str, entity_id: str) -> dict[str, Any]:
        row = self._table(table).get(entity_id)
        if row is None:
            raise EntityNotFoundError(
                f"{table}/{entity_id} not found",
                table=table,
                entity_id=entity_id,
            )
        return row

    def _next_id(self, table: str) -> str:
        rows = self._table(table)
        new_id = self._id_factory()
        while new_id in rows:
            new_id = self._id_factory()
        return new_id

    def snapshot(self, table: str) -> list[dict[str, Any]]:
        """Return a copy of every row of *table* (test helper)."""
        return copy.deepcopy(list(self._table(table).values()))

    async def find(self, *, table: str, id: str) -> dict[str, Any]:
        request = FindProps(table=table, id=id)
        return copy.deepcopy(self._row(request.table, request.id))

    async def create(self, *, table: str, data: Any) -> dict[str, Any]:
        request = CreateProps(table=table, data=data)
        row = dict(request.data)
        row_id = row.get(self._identity_field)
        if not row_id:
            row_id = self._next_id(request.table)
        row[self._identity_field] = str(row_id)
        self._table(request.table)[row[self._identity_field]] = row
        _logger.debug("Created %s/%s", request.table, row[self._identity_field])
        return copy.deepcopy(row)

    async def update(self, *, table: str, id: str, data: Any) -> dict[str, Any]:
        request = UpdateProps(table=table, id=id, data=data)
        current = self._row(request.table, request.id)
        patch = {k: v for k, v in request.data.items() if k != self._identity_field}
        updated = {**current, **patch}
        self._table(request.table)[request.id] = updated
        return copy.deepcopy(updated)

    async def remove(self, *, table: str, id: str) -> dict[str, Any]:
        request = RemoveProps(table=table, id=id)
        row = self._row(request.table, request.id)
        del self._table(request.table)[request.id]
        _logger.debug("Removed %s/%s", request.table, request.id)
        return copy.deepcopy(row)

    async def list(
        self,
        *,
        table: str,
        filters: dict[str, Any] | None = None,
        pagination: Pagination | dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        request = ListProps(table=table, filters=filters, pagination=pagination)
        rows = [row for row in self._table(request.table).values() if matches(row, request.filters)]
        window = request.pagination
        if window is not None and window.limit is not None:
            rows = rows[window.offset : window.offset + window.limit]
        return copy.deepcopy(rows)
