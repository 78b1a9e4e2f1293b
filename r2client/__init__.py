"""Thin client for Cloudflare R2 object storage."""

from r2client.infra.storage import (
    EmptyFileError,
    ListPage,
    LocalFileError,
    ObjectInfo,
    OperationCancelledError,
    R2Config,
    R2StorageClient,
    StorageConfigurationError,
    StorageError,
    StorageNotFoundError,
    StorageRegistry,
    StorageTransportError,
    UploadVerificationError,
    get_registry,
    get_storage,
    register,
)

__version__ = "0.1.0"

__all__ = [
    "EmptyFileError",
    "ListPage",
    "LocalFileError",
    "ObjectInfo",
    "OperationCancelledError",
    "R2Config",
    "R2StorageClient",
    "StorageConfigurationError",
    "StorageError",
    "StorageNotFoundError",
    "StorageRegistry",
    "StorageTransportError",
    "UploadVerificationError",
    "get_registry",
    "get_storage",
    "register",
]
