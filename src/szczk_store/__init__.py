"""Szczk Cloud storage adapter exposed as a uniform object store."""

from szczk_store._backend import Backend
from szczk_store._capabilities import Capability, CapabilitySet
from szczk_store._config import BackendConfig, RegistryConfig, StoreProfile, SzczkConfig
from szczk_store._errors import (
    AuthError,
    AuthFailure,
    BackendUnavailable,
    Cancelled,
    InvalidContent,
    InvalidPath,
    InvalidResponse,
    NotAFile,
    NotAFolder,
    NotFound,
    NotSupported,
    RefreshError,
    RemoteError,
    ResponseError,
    SzczkStoreError,
    TransportError,
)
from szczk_store._models import Link, RemoteObject, UploadSession
from szczk_store._path import RemotePath
from szczk_store._registry import Registry
from szczk_store._store import Store
from szczk_store._token import TokenState

__version__ = "0.1.0"

__all__ = [
    # Core
    "Store",
    "Registry",
    "Backend",
    # Path & Models
    "RemotePath",
    "RemoteObject",
    "Link",
    "UploadSession",
    "TokenState",
    # Capabilities
    "Capability",
    "CapabilitySet",
    # Config
    "SzczkConfig",
    "BackendConfig",
    "StoreProfile",
    "RegistryConfig",
    # Errors
    "SzczkStoreError",
    "ResponseError",
    "AuthError",
    "RefreshError",
    "AuthFailure",
    "RemoteError",
    "InvalidResponse",
    "TransportError",
    "NotFound",
    "NotAFile",
    "NotAFolder",
    "InvalidPath",
    "InvalidContent",
    "NotSupported",
    "Cancelled",
    "BackendUnavailable",
    # Version
    "__version__",
]
