"""Field and field-set state holders.

These hold editable values for a form; wiring them to actual input widgets
is left to the UI layer.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from pycrudsync.context import Scope, bind
from pycrudsync.observable import Observable


class FieldState(Observable):
    """A single editable value with an optional change handler."""

    def __init__(self, default_value: Any = None, handle: Callable[[Any], None] | None = None) -> None:
        super().__init__()
        self.default_value = default_value
        self.handle = handle
        self._value = default_value

    @property
    def value(self) -> Any:
        return self._value

    def set_value(self, value: Any) -> None:
        self._value = value
        self._notify()

    def change(self, value: Any) -> None:
        """Set the value and forward it to ``handle``."""
        self.set_value(value)
        if self.handle is not None:
            self.handle(value)

    def reset(self) -> None:
        self.set_value(self.default_value)

    def close(self) -> None:
        self._clear_listeners()


class FieldsState(Observable):
    """A mapping of field name to value, edited one key or many at a time."""

    def __init__(self, defaults: Mapping[str, Any] | None = None) -> None:
        super().__init__()
        self.defaults = dict(defaults or {})
        self._fields = dict(self.defaults)

    @property
    def fields(self) -> dict[str, Any]:
        return dict(self._fields)

    def get(self, name: str, default: Any = None) -> Any:
        return self._fields.get(name, default)

    def set_field(self, name: str, value: Any) -> None:
        self._fields[name] = value
        self._notify()

    def set_fields(self, fields: Mapping[str, Any]) -> None:
        """Replace every field at once."""
        self._fields = dict(fields)
        self._notify()

    def reset(self) -> None:
        self.set_fields(self.defaults)

    def close(self) -> None:
        self._clear_listeners()


def _use_field_provider(
    scope: Scope,
    *,
    default_value: Any = None,
    handle: Callable[[Any], None] | None = None,
) -> FieldState:
    return FieldState(default_value, handle)


def _use_fields_provider(scope: Scope, *, defaults: Mapping[str, Any] | None = None) -> FieldsState:
    return FieldsState(defaults)


FieldProvider, use_field = bind(_use_field_provider, name="Field")
FieldsProvider, use_fields = bind(_use_fields_provider, name="Fields")
