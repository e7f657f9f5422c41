"""Backend implementations of the find/create/update/remove/list contract."""

from pycrudsync.backends.base import Backend
from pycrudsync.backends.http import RestBackend
from pycrudsync.backends.memory import MemoryBackend

__all__ = ["Backend", "MemoryBackend", "RestBackend"]
