"""Configuration for pycrudsync."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pycrudsync.exceptions import ConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class SyncConfig:
    """Synchronization layer configuration.

    Parameters
    ----------
    identity_field : str
        Name of the attribute/key that carries an entity's identity.
        Defaults to ``"id"``.
    resync_filtered_lists : bool
        When ``False`` (default) only an unfiltered, unpaginated ``list``
        replaces the whole index; filtered or paginated lists upsert their
        entries.  When ``True`` every successful ``list`` replaces the index.
    base_url : str or None
        Base URL used by :class:`pycrudsync.backends.RestBackend`.
    request_timeout : float
        Total request timeout in seconds for the REST backend.
        ``0`` disables the timeout.
    """

    identity_field: str = "id"
    resync_filtered_lists: bool = False
    base_url: str | None = None
    request_timeout: float = 30.0

    def __post_init__(self) -> None:
        if not self.identity_field or not self.identity_field.strip():
            raise ConfigError("identity_field must be non-empty")
        if self.request_timeout < 0:
            raise ConfigError("request_timeout must be >= 0")

    @classmethod
    def from_env(cls, **overrides: Any) -> SyncConfig:
        """Create configuration from environment variables.

        Reads the optional ``CRUDSYNC_IDENTITY_FIELD``,
        ``CRUDSYNC_RESYNC_FILTERED_LISTS``, ``CRUDSYNC_BASE_URL`` and
        ``CRUDSYNC_REQUEST_TIMEOUT`` variables. Explicit keyword arguments
        override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        identity_field = env.get("CRUDSYNC_IDENTITY_FIELD")
        if identity_field is not None:
            config_kwargs["identity_field"] = identity_field.strip()

        base_url = env.get("CRUDSYNC_BASE_URL")
        if base_url is not None:
            config_kwargs["base_url"] = base_url.strip().rstrip("/")

        if "resync_filtered_lists" not in overrides:
            config_kwargs["resync_filtered_lists"] = _env_bool(
                env.get("CRUDSYNC_RESYNC_FILTERED_LISTS"),
                False,
            )

        # request_timeout is numeric, handle separately
        timeout_env = env.get("CRUDSYNC_REQUEST_TIMEOUT")
        if timeout_env is not None and "request_timeout" not in overrides:
            try:
                config_kwargs["request_timeout"] = float(timeout_env)
            except ValueError as exc:
                raise ConfigError(f"CRUDSYNC_REQUEST_TIMEOUT is not a number: {timeout_env!r}") from exc

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
