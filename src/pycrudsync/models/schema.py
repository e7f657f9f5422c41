"""Table shape descriptors.

A database is described as ``{table_name: TableSchema(readable, writable)}``
where both halves are Pydantic model classes.  They document the entity
shape (``readable``, as returned by the backend, including its identity)
and its writable projection.  The synchronization core never validates
against them; a backend or form layer may.
"""

from __future__ import annotations

from typing import NamedTuple

from pydantic import BaseModel


class TableSchema(NamedTuple):
    readable: type[BaseModel]
    writable: type[BaseModel]


DatabaseSchema = dict[str, TableSchema]
