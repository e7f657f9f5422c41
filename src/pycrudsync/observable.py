"""Listener registry shared by every stateful object in pycrudsync.

Index stores, actions, table handles and providers all publish changes the
same way: a listener is a zero-argument callable, registered through
:meth:`Observable.subscribe` and invoked synchronously after each change.
Listeners read the new state from the object they subscribed to.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Callable

_logger = logging.getLogger(__name__)

Listener = Callable[[], None]
Unsubscribe = Callable[[], None]


class Observable:
    """Mixin providing ``subscribe`` / ``_notify``."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Unsubscribe:
        """Register *listener*; return a callable that removes it again."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        # Copy so listeners may unsubscribe while being notified.
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                _logger.debug("%s listener failed", type(self).__name__, exc_info=True)

    def _clear_listeners(self) -> None:
        self._listeners.clear()
