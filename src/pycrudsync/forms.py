"""Form state: submit the current fields through a single-flight action."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from pycrudsync.action import Action
from pycrudsync.context import Scope, bind
from pycrudsync.fields import FieldsState, use_fields
from pycrudsync.observable import Observable, Unsubscribe

OnSubmit = Callable[[dict[str, Any]], Awaitable[Any]]


class FormState(Observable):
    """Submission state bound to the nearest :class:`FieldsState`."""

    def __init__(self, fields: FieldsState, on_submit: OnSubmit | None = None) -> None:
        super().__init__()
        self.fields = fields
        self._on_submit = on_submit
        self._action: Action[Any] = Action(self._run, name="submit")
        self._unsubscribers: list[Unsubscribe] = [
            self._action.subscribe(self._notify),
            fields.subscribe(self._notify),
        ]

    @property
    def loading(self) -> bool:
        return self._action.loading

    @property
    def error(self) -> BaseException | None:
        return self._action.error

    @property
    def result(self) -> Any:
        return self._action.result

    async def _run(self) -> Any:
        assert self._on_submit is not None  # noqa: S101
        return await self._on_submit(self.fields.fields)

    async def submit(self) -> Any:
        """Submit the current field values.

        Returns ``None`` without doing anything when no ``on_submit`` was
        given or a submission is already running.
        """
        if self._on_submit is None:
            return None
        return await self._action.trigger()

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self._action.close()
        self._clear_listeners()


def _use_form_provider(scope: Scope, *, on_submit: OnSubmit | None = None) -> FormState:
    return FormState(use_fields(scope), on_submit)


FormProvider, use_form = bind(_use_form_provider, name="Form")
