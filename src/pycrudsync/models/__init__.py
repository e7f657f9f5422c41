"""Data models: backend request payloads and table shape descriptors."""

from pycrudsync.models.requests import (
    FILTER_OPERATORS,
    CreateProps,
    FindProps,
    ListProps,
    Pagination,
    RemoveProps,
    TableRequest,
    UpdateProps,
)
from pycrudsync.models.schema import DatabaseSchema, TableSchema

__all__ = [
    "CreateProps",
    "DatabaseSchema",
    "FILTER_OPERATORS",
    "FindProps",
    "ListProps",
    "Pagination",
    "RemoveProps",
    "TableRequest",
    "TableSchema",
    "UpdateProps",
]
