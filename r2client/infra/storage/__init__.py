"""Object storage layer for Cloudflare R2.

This module exposes the R2 client wrapper, the named registry of configured
clients, and the storage error taxonomy.
"""

from .client import (
    MAX_LIST_KEYS,
    EmptyFileError,
    ListPage,
    LocalFileError,
    ObjectInfo,
    OperationCancelledError,
    R2Config,
    StorageClient,
    StorageConfigurationError,
    StorageError,
    StorageNotFoundError,
    StorageTransportError,
    UploadVerificationError,
)
from .r2_client import R2StorageClient, detect_content_type
from .registry import StorageRegistry, get_registry, get_storage, register

__all__ = [
    "MAX_LIST_KEYS",
    "EmptyFileError",
    "ListPage",
    "LocalFileError",
    "ObjectInfo",
    "OperationCancelledError",
    "R2Config",
    "R2StorageClient",
    "StorageClient",
    "StorageConfigurationError",
    "StorageError",
    "StorageNotFoundError",
    "StorageRegistry",
    "StorageTransportError",
    "UploadVerificationError",
    "detect_content_type",
    "get_registry",
    "get_storage",
    "register",
]
