"""Structural backend interface consumed by table handles."""

from __future__ import annotations

from typing import Any, Protocol

from pycrudsync.models.requests import Pagination


class Backend(Protocol):
    """The five operations a table handle calls, always with ``table=``.

    Having a protocol here makes it easy to pass test doubles while keeping
    the bundled implementations (:class:`MemoryBackend`,
    :class:`RestBackend`) concrete.
    """

    async def find(self, *, table: str, id: str) -> Any: ...

    async def create(self, *, table: str, data: Any) -> Any: ...

    async def update(self, *, table: str, id: str, data: Any) -> Any: ...

    async def remove(self, *, table: str, id: str) -> Any: ...

    async def list(
        self,
        *,
        table: str,
        filters: dict[str, Any] | None = None,
        pagination: Pagination | dict[str, Any] | None = None,
    ) -> list[Any]: ...
