"""Plain multi-table store provider (no backend involved)."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from pycrudsync.context import Scope, bind
from pycrudsync.index import IndexStore
from pycrudsync.observable import Observable, Unsubscribe


class TableStores(Observable, Mapping[str, IndexStore[Any]]):
    """Read-only mapping of table name to :class:`IndexStore`.

    Republishes whenever one of its stores changes.
    """

    def __init__(self, stores: Mapping[str, IndexStore[Any]]) -> None:
        super().__init__()
        self._stores = dict(stores)
        self._unsubscribers: list[Unsubscribe] = [store.subscribe(self._notify) for store in self._stores.values()]

    def __getitem__(self, table: str) -> IndexStore[Any]:
        return self._stores[table]

    def __iter__(self) -> Iterator[str]:
        return iter(self._stores)

    def __len__(self) -> int:
        return len(self._stores)

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self._clear_listeners()


def _use_store_provider(
    scope: Scope,
    *,
    identity_field: str = "id",
    **tables: Iterable[Any],
) -> TableStores:
    return TableStores(
        {
            table: IndexStore.from_entities(initial or (), identity_field=identity_field)
            for table, initial in tables.items()
        }
    )


StoreProvider, use_store = bind(_use_store_provider, name="Store")
