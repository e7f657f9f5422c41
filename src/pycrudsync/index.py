"""Keyed index store.

The index maps an entity's identity to the entity itself and keeps an
ordered list view (:attr:`IndexStore.array`) in sync with it.  Entities are
opaque: plain dicts, Pydantic models or any object exposing the identity
field as an attribute.  The store never mutates an entity; it only replaces
mapping entries.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import Any, Generic, TypeVar

from pycrudsync.exceptions import IdentityError
from pycrudsync.observable import Observable

T = TypeVar("T")


def identity_of(entity: Any, identity_field: str = "id") -> str | None:
    """Return the identity of *entity*, or ``None`` when it has none.

    Empty strings count as "no identity".
    """
    if entity is None:
        return None
    if isinstance(entity, Mapping):
        value = entity.get(identity_field)
    else:
        value = getattr(entity, identity_field, None)
    if value is None or value == "":
        return None
    return str(value)


class IndexStore(Observable, Generic[T]):
    """Mapping of identity to entity plus a derived ordered view.

    Iteration order of :attr:`array` follows the mapping's insertion order:
    overwriting an existing identity keeps its position, removing and
    re-adding it moves it to the end.
    """

    def __init__(
        self,
        initial: Mapping[str, T] | None = None,
        *,
        identity_field: str = "id",
    ) -> None:
        super().__init__()
        self._identity_field = identity_field
        self._index: dict[str, T] = dict(initial or {})
        self._array: list[T] = list(self._index.values())

    @classmethod
    def from_entities(cls, entities: Iterable[T], *, identity_field: str = "id") -> IndexStore[T]:
        store: IndexStore[T] = cls(identity_field=identity_field)
        store._index = {store._require_identity(entity): entity for entity in entities}
        store._array = list(store._index.values())
        return store

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def identity_field(self) -> str:
        return self._identity_field

    @property
    def index(self) -> Mapping[str, T]:
        """Read-only view of the current index."""
        return MappingProxyType(self._index)

    @property
    def array(self) -> list[T]:
        """All entities in index order (a fresh list on every access)."""
        return list(self._array)

    def get(self, identity: str, default: T | None = None) -> T | None:
        return self._index.get(identity, default)

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, identity: object) -> bool:
        return identity in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(self._index)

    def __repr__(self) -> str:
        return f"IndexStore(size={len(self._index)})"

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def identity_of(self, entity: Any) -> str | None:
        return identity_of(entity, self._identity_field)

    def _require_identity(self, entity: Any) -> str:
        identity = identity_of(entity, self._identity_field)
        if identity is None:
            raise IdentityError(
                f"Entity has no {self._identity_field!r} field: {entity!r}",
                identity_field=self._identity_field,
            )
        return identity

    def set(self, *entities: T) -> None:
        """Upsert each entity by identity; later arguments win on duplicates."""
        if not entities:
            return
        keyed = [(self._require_identity(entity), entity) for entity in entities]
        for identity, entity in keyed:
            self._index[identity] = entity
        self._changed()

    def remove(self, *entities: T) -> None:
        """Drop each entity's identity; absent identities are ignored."""
        identities = [self._require_identity(entity) for entity in entities]
        removed = False
        for identity in identities:
            if identity in self._index:
                del self._index[identity]
                removed = True
        if removed:
            self._changed()

    def replace(self, mapping: Mapping[str, T]) -> None:
        """Discard the current contents and install *mapping*."""
        self._index = dict(mapping)
        self._changed()

    def update(self, fn: Callable[[dict[str, T]], Mapping[str, T]]) -> None:
        """Replace the index with ``fn(copy_of_current_index)``."""
        self.replace(fn(dict(self._index)))

    def _changed(self) -> None:
        self._array = list(self._index.values())
        self._notify()
