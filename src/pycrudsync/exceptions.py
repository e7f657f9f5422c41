"""Custom exception hierarchy for pycrudsync."""

from __future__ import annotations


class CrudSyncError(Exception):
    """Base exception for all pycrudsync errors."""


class ConfigError(CrudSyncError):
    """Invalid or missing configuration."""


class MissingProviderError(CrudSyncError):
    """An accessor was called outside of any matching provider.

    This is a wiring defect, not a data condition, and is never caught
    internally.
    """

    def __init__(self, accessor: str, provider: str) -> None:
        self.accessor = accessor
        self.provider = provider
        super().__init__(f"{accessor} must be used within a {provider}")


class IdentityError(CrudSyncError, ValueError):
    """An entity without an identity was written to an index."""

    def __init__(self, message: str, *, identity_field: str = "id") -> None:
        self.identity_field = identity_field
        super().__init__(message)


class UnknownTableError(CrudSyncError, KeyError):
    """The requested table is not declared in the database schema."""

    def __init__(self, table: str) -> None:
        self.table = table
        super().__init__(table)

    def __str__(self) -> str:
        return f"Unknown table: {self.table!r}"


class BackendError(CrudSyncError):
    """Failure raised by one of the bundled backends."""

    def __init__(self, message: str, *, table: str = "") -> None:
        self.table = table
        super().__init__(message)


class EntityNotFoundError(BackendError):
    """No entity with the requested identity exists in the table."""

    def __init__(self, message: str, *, table: str = "", entity_id: str = "") -> None:
        self.entity_id = entity_id
        super().__init__(message, table=table)


class TransportError(BackendError):
    """HTTP-level failure (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
        table: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message, table=table)
