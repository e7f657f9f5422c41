"""Scoped injection: turn a stateful factory into a provider/accessor pair.

:func:`bind` takes a *hook* ``hook(scope, **props) -> value`` and returns a
``(provider_factory, accessor)`` pair::

    StoreProvider, use_store = bind(make_store, name="Store")

    root = Scope()
    async with StoreProvider(root, users=[...]) as scope:
        store = use_store(scope)

Scopes form an explicit tree; there is no module-level registry, so
independent trees never see each other's providers.  An accessor resolves
the nearest mounted provider created by the *same* :func:`bind` call and
raises :class:`~pycrudsync.exceptions.MissingProviderError` when there is
none.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from pycrudsync.exceptions import CrudSyncError, MissingProviderError
from pycrudsync.observable import Listener, Observable, Unsubscribe

_logger = logging.getLogger(__name__)

V = TypeVar("V")

Hook = Callable[..., V]


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _hook_label(hook: Callable[..., Any]) -> str:
    """Derive a CamelCase label from a hook's function name."""
    raw = getattr(hook, "__name__", "Value")
    raw = raw.lstrip("_")
    for prefix in ("use_", "make_", "create_"):
        if raw.startswith(prefix):
            raw = raw[len(prefix) :]
            break
    for suffix in ("_provider", "_hook"):
        if raw.endswith(suffix):
            raw = raw[: -len(suffix)]
            break
    return "".join(part[:1].upper() + part[1:] for part in raw.split("_") if part) or "Value"


class Scope:
    """A node of the provider tree.

    The root is created by the application (``Scope()``); every mounted
    provider creates one child scope that its consumers receive.
    """

    def __init__(self, parent: Scope | None = None) -> None:
        self._parent = parent
        self._providers: dict[Binding[Any], Provider[Any]] = {}

    @property
    def parent(self) -> Scope | None:
        return self._parent

    def child(self) -> Scope:
        return Scope(self)

    def lookup(self, binding: Binding[V]) -> Provider[V] | None:
        """Return the nearest mounted provider for *binding*, if any."""
        scope: Scope | None = self
        while scope is not None:
            provider = scope._providers.get(binding)
            if provider is not None and provider.mounted:
                return provider
            scope = scope._parent
        return None

    def _register(self, binding: Binding[Any], provider: Provider[Any]) -> None:
        self._providers[binding] = provider

    def _unregister(self, binding: Binding[Any]) -> None:
        self._providers.pop(binding, None)


class Provider(Observable, Generic[V]):
    """A mounted (or mountable) instance of a bound hook.

    The hook runs once on :meth:`mount`.  When the value it returns is
    :class:`~pycrudsync.observable.Observable`, every change it reports is
    republished to the provider's own subscribers.  :meth:`unmount` discards
    the value and closes it when it has a ``close()`` method.
    """

    def __init__(self, binding: Binding[V], scope: Scope, props: dict[str, Any]) -> None:
        super().__init__()
        self._binding = binding
        self._parent_scope = scope
        self._props = props
        self._scope: Scope | None = None
        self._value: V | None = None
        self._unsubscribe_value: Unsubscribe | None = None
        self._mounted = False

    @property
    def binding(self) -> Binding[V]:
        return self._binding

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def scope(self) -> Scope:
        """The child scope consumers of this provider live in."""
        if self._scope is None:
            raise CrudSyncError(f"{self._binding.provider_name} is not mounted")
        return self._scope

    @property
    def value(self) -> V:
        if not self._mounted:
            raise CrudSyncError(f"{self._binding.provider_name} is not mounted")
        return self._value  # type: ignore[return-value]

    def mount(self) -> Scope:
        if self._mounted:
            return self.scope
        value = self._binding.hook(self._parent_scope, **self._props)
        scope = self._parent_scope.child()
        scope._register(self._binding, self)
        self._value = value
        self._scope = scope
        self._mounted = True
        if isinstance(value, Observable):
            self._unsubscribe_value = value.subscribe(self._notify)
        _logger.debug("%s mounted", self._binding.provider_name)
        return scope

    def unmount(self) -> None:
        if not self._mounted:
            return
        self._mounted = False
        if self._unsubscribe_value is not None:
            self._unsubscribe_value()
            self._unsubscribe_value = None
        close = getattr(self._value, "close", None)
        if callable(close):
            close()
        if self._scope is not None:
            self._scope._unregister(self._binding)
        self._scope = None
        self._value = None
        self._clear_listeners()
        _logger.debug("%s unmounted", self._binding.provider_name)

    def __enter__(self) -> Scope:
        return self.mount()

    def __exit__(self, *exc: Any) -> None:
        self.unmount()

    async def __aenter__(self) -> Scope:
        return self.mount()

    async def __aexit__(self, *exc: Any) -> None:
        self.unmount()


class Binding(Generic[V]):
    """Identity shared by the provider factory and accessor of one ``bind``."""

    def __init__(self, hook: Hook[V], name: str) -> None:
        self.hook = hook
        self.name = name
        self.provider_name = f"{name}Provider"
        self.accessor_name = f"use_{_snake_case(name)}"

    def __call__(self, scope: Scope, /, **props: Any) -> Provider[V]:
        return Provider(self, scope, props)

    def __repr__(self) -> str:
        return f"Binding({self.provider_name})"


class Accessor(Generic[V]):
    """Look up the nearest provider's value for one binding."""

    def __init__(self, binding: Binding[V]) -> None:
        self._binding = binding
        self.__name__ = binding.accessor_name

    def provider(self, scope: Scope) -> Provider[V]:
        provider = scope.lookup(self._binding)
        if provider is None:
            raise MissingProviderError(self._binding.accessor_name, self._binding.provider_name)
        return provider

    def __call__(self, scope: Scope) -> V:
        return self.provider(scope).value

    def subscribe(self, scope: Scope, listener: Listener) -> Unsubscribe:
        """Subscribe to republishes of the nearest provider."""
        return self.provider(scope).subscribe(listener)

    def __repr__(self) -> str:
        return f"Accessor({self._binding.accessor_name})"


def bind(hook: Hook[V], name: str | None = None) -> tuple[Binding[V], Accessor[V]]:
    """Create a ``(provider_factory, accessor)`` pair for *hook*.

    *name* defaults to a CamelCase label derived from the hook's name
    (``use_fields_provider`` -> ``"Fields"``) and determines the error
    message ``"use_fields must be used within a FieldsProvider"``.
    """
    binding: Binding[V] = Binding(hook, name or _hook_label(hook))
    return binding, Accessor(binding)
