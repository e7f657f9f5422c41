"""Pydantic request models for the backend contract.

Every backend operation receives keyword arguments matching one of these
models plus the ``table`` name.  The bundled backends validate through them
before executing; the synchronization core passes payloads through untouched.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

#: Operators understood in :attr:`ListProps.filters` values, e.g.
#: ``{"age": {"$gte": 18}}``.  A bare value means equality.
FILTER_OPERATORS = frozenset({"$eq", "$ne", "$gt", "$gte", "$lt", "$lte", "$in", "$nin", "$contains"})


class TableRequest(BaseModel):
    """Request scoped to one table."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_default=True,
        str_strip_whitespace=True,
    )

    table: str

    @field_validator("table")
    @classmethod
    def _table_non_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("table must be non-empty")
        return value


class _IdRequest(TableRequest):
    id: str

    @field_validator("id")
    @classmethod
    def _id_non_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("id must be non-empty")
        return value


def _dump_data(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(exclude_unset=True)
    return value


class FindProps(_IdRequest):
    pass


class CreateProps(TableRequest):
    data: dict[str, Any]

    @field_validator("data", mode="before")
    @classmethod
    def _model_to_dict(cls, value: Any) -> Any:
        return _dump_data(value)


class UpdateProps(_IdRequest):
    data: dict[str, Any]

    @field_validator("data", mode="before")
    @classmethod
    def _model_to_dict(cls, value: Any) -> Any:
        return _dump_data(value)


class RemoveProps(_IdRequest):
    pass


class Pagination(BaseModel):
    """Page-based window over a list result (pages start at 1)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    limit: int | None = Field(default=None, ge=1)
    page: int = Field(default=1, ge=1)

    @property
    def offset(self) -> int:
        if self.limit is None:
            return 0
        return (self.page - 1) * self.limit


class ListProps(TableRequest):
    filters: dict[str, Any] | None = None
    pagination: Pagination | None = None

    @field_validator("filters")
    @classmethod
    def _known_operators(cls, value: dict[str, Any] | None) -> dict[str, Any] | None:
        if not value:
            return value
        for field_name, condition in value.items():
            if isinstance(condition, dict):
                unknown = [op for op in condition if op not in FILTER_OPERATORS]
                if unknown:
                    raise ValueError(f"Unknown filter operator(s) for {field_name!r}: {', '.join(unknown)}")
        return value
