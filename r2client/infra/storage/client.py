"""Storage client protocol, value types and error taxonomy.

This module defines the interface the R2 wrapper exposes: metadata lookup,
paginated listing, verified uploads from local files, deletes and downloads
to local files.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

from r2client.common.config import (
    DEFAULT_ENDPOINT_DOMAIN,
    DEFAULT_REGION,
    DEFAULT_STORAGE_NAME,
)

if TYPE_CHECKING:
    from r2client.common.config import Settings

# Hard cap the store puts on a single ListObjectsV2 page
MAX_LIST_KEYS = 1000


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""


class StorageConfigurationError(StorageError):
    """Raised when a client cannot be built from the supplied configuration."""


class StorageNotFoundError(StorageError):
    """Raised when a storage name, bucket or object does not exist."""


class EmptyFileError(StorageError):
    """Raised when a zero-byte file is handed to upload."""


class UploadVerificationError(StorageError):
    """Raised when the stored object does not match the uploaded bytes."""


class LocalFileError(StorageError):
    """Raised when a local source or target file cannot be opened."""


class OperationCancelledError(StorageError):
    """Raised when a call is cancelled or runs past its deadline."""


class StorageTransportError(StorageError):
    """Raised for network or protocol failures reported by the store.

    The botocore exception is kept on ``original`` and as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        code: str | None = None,
        original: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.code = code
        self.original = original


@dataclass(frozen=True, slots=True)
class R2Config:
    """Connection settings for one R2 account."""

    account_id: str
    access_key_id: str
    secret_access_key: str = field(repr=False)
    name: str = DEFAULT_STORAGE_NAME
    endpoint_domain: str = DEFAULT_ENDPOINT_DOMAIN
    region: str = DEFAULT_REGION
    connect_timeout: float = 10.0
    read_timeout: float = 60.0
    max_pool_connections: int = 10
    multipart_threshold_mb: int = 8
    delete_on_verify_failure: bool = False
    enable_metrics: bool = True

    def __post_init__(self) -> None:
        if not self.name:
            object.__setattr__(self, "name", DEFAULT_STORAGE_NAME)

    @property
    def endpoint_url(self) -> str:
        return f"https://{self.account_id}.{self.endpoint_domain}"

    @classmethod
    def from_settings(cls, settings: "Settings", *, name: str | None = None) -> "R2Config":
        return cls(
            name=name or settings.R2_NAME or DEFAULT_STORAGE_NAME,
            account_id=settings.R2_ACCOUNT_ID or "",
            access_key_id=settings.R2_ACCESS_KEY_ID or "",
            secret_access_key=settings.R2_SECRET_ACCESS_KEY or "",
            endpoint_domain=settings.R2_ENDPOINT_DOMAIN,
            region=settings.R2_REGION,
            connect_timeout=settings.R2_CONNECT_TIMEOUT,
            read_timeout=settings.R2_READ_TIMEOUT,
            max_pool_connections=settings.R2_MAX_POOL_CONNECTIONS,
            multipart_threshold_mb=settings.R2_MULTIPART_THRESHOLD_MB,
            delete_on_verify_failure=settings.R2_DELETE_ON_VERIFY_FAILURE,
            enable_metrics=settings.ENABLE_METRICS,
        )


@dataclass(frozen=True, slots=True)
class ObjectInfo:
    """Metadata from a HEAD object request."""

    key: str
    size_bytes: int
    content_type: str | None
    etag: str | None
    last_modified: datetime | None = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ListPage:
    """One page of a key listing.

    ``next_token`` is an empty string once the listing is exhausted.
    """

    keys: list[str]
    next_token: str = ""

    @property
    def has_more(self) -> bool:
        return bool(self.next_token)


@dataclass(frozen=True, slots=True)
class CallOptions:
    """Per-call deadline and cancellation.

    Checked between requests and from transfer progress callbacks, never inside
    a single in-flight request.
    """

    timeout: float | None = None
    cancel: threading.Event | None = None
    deadline: float | None = field(default=None, init=False, compare=False)

    def __post_init__(self) -> None:
        if self.timeout is not None:
            if self.timeout <= 0:
                raise ValueError("timeout must be positive")
            object.__setattr__(self, "deadline", time.monotonic() + self.timeout)

    def check(self, operation: str) -> None:
        """Raise OperationCancelledError if the call should stop now."""
        if self.cancel is not None and self.cancel.is_set():
            raise OperationCancelledError(f"{operation} cancelled")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise OperationCancelledError(
                f"{operation} exceeded its {self.timeout:g}s deadline"
            )


class StorageClient(Protocol):
    """Protocol defining the interface for the object storage wrapper."""

    def info(
        self,
        bucket: str,
        key: str,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> ObjectInfo:
        """Get object metadata without downloading the content.

        Raises:
            StorageNotFoundError: If the bucket or object does not exist.
            StorageTransportError: If the store reports any other failure.
        """
        ...

    def list(
        self,
        bucket: str,
        prefix: str = "",
        limit: int = MAX_LIST_KEYS,
        token: str | None = None,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> ListPage:
        """List one page of keys under ``prefix``.

        ``limit`` above 1000 is capped at 1000. Pass ``ListPage.next_token``
        back as ``token`` to continue.
        """
        ...

    def upload(
        self,
        bucket: str,
        path: Any,
        key: str,
        content_type: str | None = None,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> ObjectInfo:
        """Upload a local file and verify the stored length.

        Raises:
            LocalFileError: If the file cannot be read.
            EmptyFileError: If the file is empty.
            UploadVerificationError: If the stored length differs.
        """
        ...

    def delete(
        self,
        bucket: str,
        key: str,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        """Delete an object. Missing keys are not an error at the store."""
        ...

    def download(
        self,
        bucket: str,
        key: str,
        target_path: Any,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        """Stream an object into ``target_path``, creating or truncating it.

        Raises:
            LocalFileError: If the target cannot be created.
        """
        ...
