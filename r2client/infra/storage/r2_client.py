"""Cloudflare R2 storage client implementation.

R2 speaks the S3 API, so this wraps a boto3 ``s3`` client pointed at the
account endpoint ``https://{account_id}.r2.cloudflarestorage.com``. Signing,
multipart transfers and retries stay with boto3/s3transfer; this layer adds
content-type detection, post-upload length verification, page size capping
and error classification.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

import io
import logging
import mimetypes
import os
import threading
from pathlib import Path
from typing import Any, Callable

import boto3
from boto3.exceptions import Boto3Error
from boto3.s3.transfer import TransferConfig
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from s3transfer.exceptions import RetriesExceededError

from r2client.infra.observability.metrics import track_operation
from r2client.infra.storage.client import (
    MAX_LIST_KEYS,
    CallOptions,
    EmptyFileError,
    ListPage,
    LocalFileError,
    ObjectInfo,
    OperationCancelledError,
    R2Config,
    StorageConfigurationError,
    StorageError,
    StorageNotFoundError,
    StorageTransportError,
    UploadVerificationError,
)

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
NOT_FOUND_CODES = frozenset({"NoSuchKey", "NoSuchBucket", "NotFound", "404"})
MEGABYTE = 1024 * 1024


def detect_content_type(path: str | os.PathLike[str]) -> str:
    """Guess a MIME type from the file name, defaulting to octet-stream."""
    content_type, _ = mimetypes.guess_type(str(path))
    return content_type or DEFAULT_CONTENT_TYPE


def map_client_error(error: ClientError, *, operation: str, target: str) -> StorageError:
    """Translate a botocore ClientError into a storage error.

    Missing keys and buckets become StorageNotFoundError; everything else is a
    StorageTransportError carrying the store's error code.
    """
    error_info = error.response.get("Error", {})
    code = str(error_info.get("Code", "Unknown"))
    message = error_info.get("Message") or str(error)
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")

    if code in NOT_FOUND_CODES or status == 404:
        return StorageNotFoundError(f"{target} not found ({code})")
    return StorageTransportError(
        f"{operation} {target} failed: {code}: {message}",
        operation=operation,
        code=code,
        original=error,
    )


class R2StorageClient:
    """R2 object storage client bound to one account and credential pair.

    Instances are safe to share between threads: the underlying boto3 client
    pools connections and holds no per-call state.
    """

    def __init__(self, config: R2Config) -> None:
        """Build the boto3 client for ``config``.

        Raises:
            StorageConfigurationError: If credentials are missing or botocore
                rejects the configuration.
        """
        self._config = config
        self._client = self._build_client(config)
        self._transfer_config = TransferConfig(
            multipart_threshold=config.multipart_threshold_mb * MEGABYTE,
            multipart_chunksize=config.multipart_threshold_mb * MEGABYTE,
            max_concurrency=config.max_pool_connections,
        )

    @staticmethod
    def _build_client(config: R2Config) -> Any:
        """Create a boto3 S3 client for the R2 account endpoint."""
        missing = [
            label
            for label, value in (
                ("account_id", config.account_id),
                ("access_key_id", config.access_key_id),
                ("secret_access_key", config.secret_access_key),
            )
            if not value
        ]
        if missing:
            raise StorageConfigurationError(
                f"R2 storage {config.name!r} is missing: {', '.join(missing)}"
            )

        botocore_config = Config(
            signature_version="s3v4",
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
            max_pool_connections=config.max_pool_connections,
            retries={"mode": "standard"},
        )
        try:
            return boto3.client(
                "s3",
                endpoint_url=config.endpoint_url,
                region_name=config.region,
                aws_access_key_id=config.access_key_id,
                aws_secret_access_key=config.secret_access_key,
                config=botocore_config,
            )
        except (BotoCoreError, ValueError) as exc:
            raise StorageConfigurationError(
                f"Failed to build R2 client {config.name!r}: {exc}"
            ) from exc

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def config(self) -> R2Config:
        return self._config

    @property
    def endpoint_url(self) -> str:
        return self._config.endpoint_url

    def __repr__(self) -> str:
        return f"R2StorageClient(name={self.name!r}, endpoint={self.endpoint_url!r})"

    def _call(
        self,
        operation: str,
        options: CallOptions,
        target: str,
        call: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        options.check(operation)
        try:
            return call(*args, **kwargs)
        except ClientError as exc:
            error = map_client_error(exc, operation=operation, target=target)
            self._log_failure(operation, target, error)
            raise error from exc
        except (BotoCoreError, Boto3Error, RetriesExceededError) as exc:
            error = StorageTransportError(
                f"{operation} {target} failed: {exc}",
                operation=operation,
                original=exc,
            )
            self._log_failure(operation, target, error)
            raise error from exc

    def _log_failure(self, operation: str, target: str, error: StorageError) -> None:
        logger.warning(
            "storage_error operation=%s target=%s error=%s",
            operation,
            target,
            error,
            extra={
                "extra": {
                    "storage": self.name,
                    "operation": operation,
                    "target": target,
                    "error_type": type(error).__name__,
                }
            },
        )

    @staticmethod
    def _progress_callback(
        options: CallOptions, operation: str
    ) -> Callable[[int], None] | None:
        if options.timeout is None and options.cancel is None:
            return None

        def _on_progress(_bytes_transferred: int) -> None:
            options.check(operation)

        return _on_progress

    def _head(
        self, bucket: str, key: str, options: CallOptions, operation: str
    ) -> ObjectInfo:
        response = self._call(
            operation,
            options,
            f"{bucket}/{key}",
            self._client.head_object,
            Bucket=bucket,
            Key=key,
        )
        size = response.get("ContentLength")
        return ObjectInfo(
            key=key,
            size_bytes=int(size) if size is not None else 0,
            content_type=response.get("ContentType"),
            etag=response.get("ETag"),
            last_modified=response.get("LastModified"),
            metadata=dict(response.get("Metadata") or {}),
        )

    def info(
        self,
        bucket: str,
        key: str,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> ObjectInfo:
        """Get object metadata without downloading the content.

        ``timeout`` is checked before the request is sent; a request already in
        flight is bounded only by ``read_timeout`` on each botocore retry.
        """
        options = CallOptions(timeout=timeout, cancel=cancel)
        with track_operation("info", enabled=self._config.enable_metrics):
            return self._head(bucket, key, options, "info")

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
        """List one page of keys, capping ``limit`` at 1000.

        ``timeout`` is checked before the request is sent; a request already in
        flight is bounded only by ``read_timeout`` on each botocore retry.
        """
        if limit < 1:
            raise ValueError("limit must be at least 1")
        options = CallOptions(timeout=timeout, cancel=cancel)
        params: dict[str, Any] = {
            "Bucket": bucket,
            "Prefix": prefix,
            "MaxKeys": min(int(limit), MAX_LIST_KEYS),
        }
        # Token comes from a previous page's NextContinuationToken
        if token:
            params["ContinuationToken"] = token

        with track_operation("list", enabled=self._config.enable_metrics):
            response = self._call(
                "list",
                options,
                f"{bucket}/{prefix}",
                self._client.list_objects_v2,
                **params,
            )

        keys = [str(item["Key"]) for item in response.get("Contents", [])]
        next_token = str(response.get("NextContinuationToken") or "")
        logger.debug(
            "listed %d keys from %s/%s (more=%s)", len(keys), bucket, prefix, bool(next_token)
        )
        return ListPage(keys=keys, next_token=next_token)

    @staticmethod
    def _read_source(path: str | os.PathLike[str]) -> bytes:
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            raise LocalFileError(f"Cannot read {path}: {exc}") from exc
        if not data:
            raise EmptyFileError(f"zero size file: {path}")
        return data

    def _discard_unverified(self, bucket: str, key: str) -> None:
        try:
            self._call(
                "delete",
                CallOptions(),
                f"{bucket}/{key}",
                self._client.delete_object,
                Bucket=bucket,
                Key=key,
            )
        except StorageError:
            # _call already logged it; the verification error is what the caller sees
            return
        logger.info("removed unverified upload %s/%s", bucket, key)

    def upload(
        self,
        bucket: str,
        path: str | os.PathLike[str],
        key: str,
        content_type: str | None = None,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> ObjectInfo:
        """Upload a local file and verify the stored length matches.

        The file is read fully into memory; empty files are rejected before
        any request is made. ``content_type`` overrides detection from the
        file name.

        Returns:
            Metadata of the verified object.

        Raises:
            LocalFileError: If the file cannot be read.
            EmptyFileError: If the file has no bytes.
            UploadVerificationError: If the stored length differs or the
                verification lookup fails.
        """
        options = CallOptions(timeout=timeout, cancel=cancel)
        target = f"{bucket}/{key}"
        with track_operation("upload", enabled=self._config.enable_metrics):
            data = self._read_source(path)
            resolved_type = content_type or detect_content_type(path)

            self._call(
                "upload",
                options,
                target,
                self._client.upload_fileobj,
                io.BytesIO(data),
                bucket,
                key,
                ExtraArgs={"ContentType": resolved_type},
                Callback=self._progress_callback(options, "upload"),
                Config=self._transfer_config,
            )

            try:
                head = self._head(bucket, key, options, "upload")
            except OperationCancelledError:
                raise
            except StorageError as exc:
                if self._config.delete_on_verify_failure:
                    self._discard_unverified(bucket, key)
                raise UploadVerificationError(
                    f"upload failed: cannot verify {target}: {exc}"
                ) from exc

            if head.size_bytes != len(data):
                if self._config.delete_on_verify_failure:
                    self._discard_unverified(bucket, key)
                raise UploadVerificationError(
                    f"upload failed: {target} stored {head.size_bytes} bytes, "
                    f"expected {len(data)}"
                )

        logger.info(
            "uploaded %s (%d bytes, %s)",
            target,
            len(data),
            resolved_type,
            extra={
                "extra": {
                    "storage": self.name,
                    "bucket": bucket,
                    "key": key,
                    "size_bytes": len(data),
                    "content_type": resolved_type,
                }
            },
        )
        return head

    def delete(
        self,
        bucket: str,
        key: str,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        """Delete an object from storage.

        ``timeout`` is checked before the request is sent; a request already in
        flight is bounded only by ``read_timeout`` on each botocore retry.
        """
        options = CallOptions(timeout=timeout, cancel=cancel)
        with track_operation("delete", enabled=self._config.enable_metrics):
            self._call(
                "delete",
                options,
                f"{bucket}/{key}",
                self._client.delete_object,
                Bucket=bucket,
                Key=key,
            )
        logger.info("deleted %s/%s", bucket, key)

    def download(
        self,
        bucket: str,
        key: str,
        target_path: str | os.PathLike[str],
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        """Stream an object into ``target_path``.

        The target is created or truncated before the transfer starts and is
        closed on every exit path. A failed transfer leaves the partial file
        in place.
        """
        options = CallOptions(timeout=timeout, cancel=cancel)
        with track_operation("download", enabled=self._config.enable_metrics):
            options.check("download")
            try:
                handle = open(target_path, "wb")
            except OSError as exc:
                raise LocalFileError(f"Cannot create {target_path}: {exc}") from exc

            with handle:
                self._call(
                    "download",
                    options,
                    f"{bucket}/{key}",
                    self._client.download_fileobj,
                    bucket,
                    key,
                    handle,
                    Callback=self._progress_callback(options, "download"),
                    Config=self._transfer_config,
                )
        logger.info("downloaded %s/%s to %s", bucket, key, target_path)
