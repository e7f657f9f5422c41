"""Table reconciliation layer.

A :class:`TableHandle` binds one :class:`~pycrudsync.index.IndexStore` to
five single-flight actions calling a shared backend for a fixed table name,
and merges every successful result back into the index:

==========  ===============================================================
create      upsert the result when it carries an identity
update      upsert the result when it carries an identity
remove      drop the result's identity when it carries one
list        replace the index (unfiltered) or upsert the entries (window)
find        no index change
==========  ===============================================================

:func:`database` builds the provider/accessor surface for a whole schema.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Callable, Iterable, Iterator, Mapping
from typing import Any

from pycrudsync.action import Action
from pycrudsync.backends.base import Backend
from pycrudsync.config import SyncConfig
from pycrudsync.context import Scope, bind
from pycrudsync.exceptions import UnknownTableError
from pycrudsync.fields import FieldsProvider, FieldsState, use_fields
from pycrudsync.forms import FormProvider, FormState, OnSubmit, use_form
from pycrudsync.index import IndexStore
from pycrudsync.models.schema import TableSchema
from pycrudsync.observable import Observable, Unsubscribe

_logger = logging.getLogger(__name__)

OPERATIONS = ("find", "create", "update", "remove", "list")


def _initial_mapping(
    initial: Mapping[str, Any] | Iterable[Any] | None,
    identity_field: str,
) -> dict[str, Any]:
    if initial is None:
        return {}
    if isinstance(initial, Mapping):
        return dict(initial)
    return dict(IndexStore.from_entities(initial, identity_field=identity_field).index)


class TableHandle(Observable):
    """Index plus find/create/update/remove/list actions for one table.

    The table name is fixed at construction and always injected into the
    backend call, overriding any ``table`` keyword given to ``trigger``.
    """

    def __init__(
        self,
        name: str,
        backend: Backend,
        *,
        initial: Mapping[str, Any] | Iterable[Any] | None = None,
        config: SyncConfig | None = None,
    ) -> None:
        super().__init__()
        self._name = name
        self._backend = backend
        self._config = config or SyncConfig()
        self._closed = False
        self.store: IndexStore[Any] = IndexStore(
            _initial_mapping(initial, self._config.identity_field),
            identity_field=self._config.identity_field,
        )

        self.find: Action[Any] = Action(self._find, name=f"{name}.find")
        self.create: Action[Any] = Action(self._create, name=f"{name}.create")
        self.update: Action[Any] = Action(self._update, name=f"{name}.update")
        self.remove: Action[Any] = Action(self._remove, name=f"{name}.remove")
        self.list: Action[list[Any]] = Action(self._list, name=f"{name}.list")

        self._unsubscribers: list[Unsubscribe] = [self.store.subscribe(self._notify)]
        for action in self.actions.values():
            self._unsubscribers.append(action.subscribe(self._notify))

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def index(self) -> Mapping[str, Any]:
        return self.store.index

    @property
    def array(self) -> list[Any]:
        return self.store.array

    @property
    def actions(self) -> dict[str, Action[Any]]:
        return {operation: getattr(self, operation) for operation in OPERATIONS}

    def __repr__(self) -> str:
        return f"TableHandle({self._name!r}, size={len(self.store)})"

    def close(self) -> None:
        """Unmount: in-flight results will no longer reach the index."""
        if self._closed:
            return
        self._closed = True
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        for action in self.actions.values():
            action.close()
        self._clear_listeners()
        _logger.debug("Table %s closed", self._name)

    # ------------------------------------------------------------------
    # Backend calls + reconciliation
    # ------------------------------------------------------------------

    def _call(self, props: dict[str, Any]) -> dict[str, Any]:
        return {**props, "table": self._name}

    def _has_identity(self, result: Any) -> bool:
        return self.store.identity_of(result) is not None

    async def _find(self, **props: Any) -> Any:
        return await self._backend.find(**self._call(props))

    async def _create(self, **props: Any) -> Any:
        result = await self._backend.create(**self._call(props))
        if not self._closed and self._has_identity(result):
            self.store.set(result)
        return result

    async def _update(self, **props: Any) -> Any:
        result = await self._backend.update(**self._call(props))
        if not self._closed and self._has_identity(result):
            self.store.set(result)
        return result

    async def _remove(self, **props: Any) -> Any:
        result = await self._backend.remove(**self._call(props))
        if not self._closed and self._has_identity(result):
            self.store.remove(result)
        return result

    async def _list(self, **props: Any) -> list[Any]:
        result = await self._backend.list(**self._call(props))
        if self._closed or not isinstance(result, list):
            return result
        entities = [entity for entity in result if self._has_identity(entity)]
        is_window = bool(props.get("filters")) or props.get("pagination") is not None
        if is_window and not self._config.resync_filtered_lists:
            self.store.set(*entities)
        else:
            self.store.replace({self.store.identity_of(entity): entity for entity in entities})
        return result


class Tables(Observable, Mapping[str, TableHandle]):
    """The value published by ``DatabaseProvider``: one handle per table."""

    def __init__(self, handles: Mapping[str, TableHandle]) -> None:
        super().__init__()
        self._handles = dict(handles)
        self._unsubscribers: list[Unsubscribe] = [h.subscribe(self._notify) for h in self._handles.values()]

    def __getitem__(self, table: str) -> TableHandle:
        try:
            return self._handles[table]
        except KeyError:
            raise UnknownTableError(table) from None

    def __getattr__(self, table: str) -> TableHandle:
        if table.startswith("_"):
            raise AttributeError(table)
        try:
            return self._handles[table]
        except KeyError:
            raise AttributeError(table) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._handles)

    def __len__(self) -> int:
        return len(self._handles)

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        for handle in self._handles.values():
            handle.close()
        self._clear_listeners()


class SingleState(Observable):
    """One entity of a table, read from the index or fetched via ``find``.

    ``single`` stays ``None`` until the entity is known.  Each instance
    fetches through its own single-flight ``find``, so two entities of one
    table can be fetched at the same time.
    """

    def __init__(self, handle: TableHandle, entity_id: str) -> None:
        super().__init__()
        self.id = entity_id
        self._handle = handle
        self._single = handle.index.get(entity_id)
        self._closed = False
        self.find: Action[Any] = Action(handle._find, name=f"{handle.name}.find[{entity_id}]")  # noqa: SLF001
        self._unsubscribe = self.find.subscribe(self._notify)
        self.pending: asyncio.Task[None] | None = None
        if self._single is None:
            self.pending = asyncio.get_running_loop().create_task(self._fetch())

    @property
    def single(self) -> Any:
        return self._single

    @property
    def ready(self) -> bool:
        return self._single is not None

    @property
    def loading(self) -> bool:
        return self.find.loading

    @property
    def error(self) -> BaseException | None:
        return self.find.error

    def set_single(self, entity: Any) -> None:
        self._single = entity
        self._notify()

    async def _fetch(self) -> None:
        try:
            entity = await self.find.trigger(id=self.id)
        except Exception:
            _logger.debug("Fetching %s/%s failed", self._handle.name, self.id, exc_info=True)
            return
        if entity is not None and not self._closed:
            self.set_single(entity)

    def close(self) -> None:
        self._closed = True
        self._unsubscribe()
        self.find.close()
        self._clear_listeners()


class FormView:
    """Fields and form state of one mounted form, read together."""

    def __init__(self, fields: FieldsState, form: FormState) -> None:
        self.fields_state = fields
        self.form = form

    @property
    def fields(self) -> dict[str, Any]:
        return self.fields_state.fields

    def set_field(self, name: str, value: Any) -> None:
        self.fields_state.set_field(name, value)

    def set_fields(self, fields: Mapping[str, Any]) -> None:
        self.fields_state.set_fields(fields)

    async def submit(self) -> Any:
        return await self.form.submit()

    @property
    def result(self) -> Any:
        return self.form.result

    @property
    def loading(self) -> bool:
        return self.form.loading

    @property
    def error(self) -> BaseException | None:
        return self.form.error


def use_form_view(scope: Scope) -> FormView:
    return FormView(use_fields(scope), use_form(scope))


class Database:
    """Provider/accessor surface for every table of a schema.

    Built by :func:`database`; see the module docstring for the
    reconciliation rules applied by each table.
    """

    def __init__(
        self,
        schema: Mapping[str, TableSchema],
        backend: Backend,
        *,
        config: SyncConfig | None = None,
    ) -> None:
        self.schema = dict(schema)
        self.backend = backend
        self.config = config or SyncConfig()
        self.DatabaseProvider, self.use_database = bind(self._use_database_provider, name="Database")
        self.SingleProvider, self.use_single = bind(self._use_single_provider, name="Single")

    def _require_table(self, name: str) -> str:
        if name not in self.schema:
            raise UnknownTableError(name)
        return name

    def table(
        self,
        name: str,
        initial: Mapping[str, Any] | Iterable[Any] | None = None,
    ) -> TableHandle:
        """Build a standalone handle for *name*."""
        return TableHandle(self._require_table(name), self.backend, initial=initial, config=self.config)

    def _use_database_provider(self, scope: Scope, **initial: Mapping[str, Any] | Iterable[Any]) -> Tables:
        for name in initial:
            self._require_table(name)
        return Tables({name: self.table(name, initial.get(name)) for name in self.schema})

    def use_table(self, scope: Scope, name: str) -> TableHandle:
        return self.use_database(scope)[name]

    def _use_single_provider(self, scope: Scope, *, table: str, id: str) -> SingleState:
        return SingleState(self.use_table(scope, table), id)

    # ------------------------------------------------------------------
    # Forms
    # ------------------------------------------------------------------

    @contextlib.asynccontextmanager
    async def _form(
        self,
        scope: Scope,
        defaults: Mapping[str, Any] | None,
        on_submit: OnSubmit,
    ) -> AsyncIterator[Scope]:
        async with FieldsProvider(scope, defaults=defaults or {}) as fields_scope:
            async with FormProvider(fields_scope, on_submit=on_submit) as form_scope:
                yield form_scope

    @staticmethod
    def _notify_success(on_success: Callable[[Any], None] | None, result: Any) -> None:
        if on_success is not None:
            on_success(result)

    def CreateForm(  # noqa: N802
        self,
        scope: Scope,
        *,
        table: str,
        defaults: Mapping[str, Any] | None = None,
        on_success: Callable[[Any], None] | None = None,
    ) -> contextlib.AbstractAsyncContextManager[Scope]:
        """Mount a form whose submit creates an entity from its fields."""
        handle = self.use_table(scope, table)

        async def _submit(fields: dict[str, Any]) -> Any:
            if handle.create.busy:
                return None
            result = await handle.create.trigger(data=fields)
            self._notify_success(on_success, result)
            return result

        return self._form(scope, defaults, _submit)

    def UpdateForm(  # noqa: N802
        self,
        scope: Scope,
        *,
        table: str,
        id: str,
        defaults: Mapping[str, Any] | None = None,
        on_success: Callable[[Any], None] | None = None,
    ) -> contextlib.AbstractAsyncContextManager[Scope]:
        """Mount a form whose submit updates entity *id* with its fields."""
        handle = self.use_table(scope, table)

        async def _submit(fields: dict[str, Any]) -> Any:
            if handle.update.busy:
                return None
            result = await handle.update.trigger(id=id, data=fields)
            self._notify_success(on_success, result)
            return result

        return self._form(scope, defaults, _submit)

    def FilterForm(  # noqa: N802
        self,
        scope: Scope,
        *,
        table: str,
        defaults: Mapping[str, Any] | None = None,
        on_success: Callable[[Any], None] | None = None,
    ) -> contextlib.AbstractAsyncContextManager[Scope]:
        """Mount a form whose fields (``filters``/``pagination``) drive ``list``."""
        handle = self.use_table(scope, table)

        async def _submit(fields: dict[str, Any]) -> Any:
            if handle.list.busy:
                return None
            result = await handle.list.trigger(**fields)
            self._notify_success(on_success, result)
            return result

        return self._form(scope, defaults, _submit)

    use_create_form = staticmethod(use_form_view)
    use_update_form = staticmethod(use_form_view)
    use_filters_form = staticmethod(use_form_view)


def database(
    schema: Mapping[str, TableSchema],
    backend: Backend,
    *,
    config: SyncConfig | None = None,
) -> Database:
    """Bind *schema* to *backend*."""
    return Database(schema, backend, config=config)
