"""pycrudsync - keyed entity cache kept in sync with async CRUD backends."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pycrudsync")
except PackageNotFoundError:
    __version__ = "0+local"
from pycrudsync.action import Action, ActionState
from pycrudsync.backends import Backend, MemoryBackend, RestBackend
from pycrudsync.config import SyncConfig
from pycrudsync.context import Accessor, Binding, Provider, Scope, bind
from pycrudsync.crud import Database, FormView, SingleState, TableHandle, Tables, database
from pycrudsync.exceptions import (
    BackendError,
    ConfigError,
    CrudSyncError,
    EntityNotFoundError,
    IdentityError,
    MissingProviderError,
    TransportError,
    UnknownTableError,
)
from pycrudsync.fields import FieldProvider, FieldsProvider, FieldsState, FieldState, use_field, use_fields
from pycrudsync.forms import FormProvider, FormState, use_form
from pycrudsync.index import IndexStore, identity_of
from pycrudsync.models import (
    CreateProps,
    FindProps,
    ListProps,
    Pagination,
    RemoveProps,
    TableSchema,
    UpdateProps,
)
from pycrudsync.observable import Observable
from pycrudsync.store import StoreProvider, TableStores, use_store

__all__ = [
    "__version__",
    "Accessor",
    "Action",
    "ActionState",
    "Backend",
    "BackendError",
    "Binding",
    "ConfigError",
    "CreateProps",
    "CrudSyncError",
    "Database",
    "EntityNotFoundError",
    "FieldProvider",
    "FieldState",
    "FieldsProvider",
    "FieldsState",
    "FindProps",
    "FormProvider",
    "FormState",
    "FormView",
    "IdentityError",
    "IndexStore",
    "ListProps",
    "MemoryBackend",
    "MissingProviderError",
    "Observable",
    "Pagination",
    "Provider",
    "RemoveProps",
    "RestBackend",
    "Scope",
    "SingleState",
    "StoreProvider",
    "SyncConfig",
    "TableHandle",
    "TableSchema",
    "TableStores",
    "Tables",
    "TransportError",
    "UnknownTableError",
    "UpdateProps",
    "bind",
    "database",
    "identity_of",
    "use_field",
    "use_fields",
    "use_form",
    "use_store",
]
