"""Single-flight guard around one asynchronous operation.

An :class:`Action` tracks ``loading`` / ``error`` / ``result`` for the
operation it wraps and drops reentrant calls: a ``trigger`` issued while a
previous one is still awaiting the operation returns ``None`` without
invoking it again.  Nothing is queued.

The model is asyncio's cooperative scheduling: the in-flight flag is set before the
first ``await`` inside :meth:`Action.trigger`, so no lock is needed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pycrudsync.observable import Observable

_logger = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass(frozen=True, slots=True)
class ActionState(Generic[R]):
    """Snapshot of an action's lifecycle state."""

    loading: bool = False
    error: BaseException | None = None
    result: R | None = None


class Action(Observable, Generic[R]):
    """Single-flight wrapper around ``fn(**payload) -> Awaitable[R]``.

    Parameters
    ----------
    fn
        Async callable taking keyword arguments only.
    defaults
        Baseline payload merged into every trigger. Keyword arguments passed
        to :meth:`trigger` take precedence on key collision.
    on_success
        Called as ``on_success(result, props)`` after a successful call.
    auto_trigger
        Schedule one ``trigger()`` with the current defaults on the running
        event loop right away.
    name
        Label used in log messages.
    """

    def __init__(
        self,
        fn: Callable[..., Awaitable[R]],
        *,
        defaults: Mapping[str, Any] | None = None,
        on_success: Callable[[R, dict[str, Any]], None] | None = None,
        auto_trigger: bool = False,
        name: str | None = None,
    ) -> None:
        super().__init__()
        self._fn = fn
        self._defaults: dict[str, Any] = dict(defaults or {})
        self._on_success = on_success
        self._name = name or getattr(fn, "__name__", "action")
        self._state: ActionState[R] = ActionState()
        self._closed = False
        self._in_flight = False
        self.auto_task: asyncio.Task[None] | None = None
        if auto_trigger:
            self.auto_task = asyncio.get_running_loop().create_task(self._auto_trigger())

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> ActionState[R]:
        return self._state

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def error(self) -> BaseException | None:
        return self._state.error

    @property
    def result(self) -> R | None:
        return self._state.result

    @property
    def defaults(self) -> dict[str, Any]:
        return dict(self._defaults)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def busy(self) -> bool:
        """Whether a call is in flight, also after :meth:`close`."""
        return self._in_flight

    def set_defaults(self, defaults: Mapping[str, Any]) -> None:
        """Replace the defaults. Calls already in flight are unaffected."""
        self._defaults = dict(defaults)
        self._notify()

    def close(self) -> None:
        """Detach the action from its owner.

        Resolutions arriving afterwards are returned to their caller but no
        longer touch the state.
        """
        if self._closed:
            return
        self._closed = True
        self._clear_listeners()
        if self.auto_task is not None and not self.auto_task.done():
            _logger.debug("Action %s closed with auto-trigger still pending", self._name)

    def _set_state(self, state: ActionState[R]) -> None:
        if self._closed:
            return
        self._state = state
        self._notify()

    # ------------------------------------------------------------------
    # Trigger lifecycle
    # ------------------------------------------------------------------

    def _payload(self, props: Mapping[str, Any]) -> dict[str, Any]:
        return {**self._defaults, **props}

    async def trigger(self, **props: Any) -> R | None:
        """Run the operation once, unless it is already running.

        Returns the operation's result, or ``None`` when the call was
        dropped because a call is in flight.  Failures are recorded in
        :attr:`error` and re-raised.
        """
        if self._in_flight:
            _logger.debug("Action %s already loading; dropping trigger", self._name)
            return None

        payload = self._payload(props)
        self._in_flight = True
        try:
            self._set_state(ActionState(loading=True, error=None, result=self._state.result))
            try:
                result = await self._fn(**payload)
            except Exception as exc:
                _logger.debug("Action %s failed", self._name, exc_info=True)
                self._set_state(ActionState(loading=False, error=exc, result=self._state.result))
                raise
            except BaseException:
                # Cancelled: nothing failed, the call just never finished.
                _logger.debug("Action %s cancelled", self._name)
                self._set_state(ActionState(loading=False, error=self._state.error, result=self._state.result))
                raise
        finally:
            self._in_flight = False

        if self._closed:
            _logger.debug("Action %s resolved after close; state left untouched", self._name)
            return result

        self._set_state(ActionState(loading=False, error=None, result=result))
        if self._on_success is not None:
            self._on_success(result, dict(props))
        return result

    async def _auto_trigger(self) -> None:
        try:
            await self.trigger()
        except Exception:
            # Already recorded in ``error``; nobody awaits this task.
            _logger.debug("Auto-trigger of %s failed", self._name, exc_info=True)
