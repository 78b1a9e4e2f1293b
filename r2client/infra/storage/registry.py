"""Named registry of configured R2 storage clients.

Registration builds a client and stores it under its configured name, so later
registrations under the same name replace the earlier handle. Lookups run
under a shared lock and may proceed in parallel.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Callable

from r2client.common.config import DEFAULT_STORAGE_NAME, get_settings
from r2client.common.locks import ReadWriteLock
from r2client.infra.storage.client import (
    R2Config,
    StorageConfigurationError,
    StorageNotFoundError,
)
from r2client.infra.storage.r2_client import R2StorageClient

logger = logging.getLogger(__name__)


class StorageRegistry:
    """Maps storage names to configured clients."""

    def __init__(
        self,
        *,
        client_factory: Callable[[R2Config], R2StorageClient] = R2StorageClient,
    ) -> None:
        self._client_factory = client_factory
        self._storages: dict[str, R2StorageClient] = {}
        self._lock = ReadWriteLock()

    def register(self, config: R2Config) -> R2StorageClient:
        """Build a client for ``config`` and store it under ``config.name``.

        Raises:
            StorageConfigurationError: If the client cannot be built. The
                registry is left unchanged in that case.
        """
        name = config.name
        storage = self._client_factory(config)

        with self._lock.write_locked():
            replaced = name in self._storages
            self._storages[name] = storage

        logger.info(
            "registered storage name=%s endpoint=%s replaced=%s",
            name,
            config.endpoint_url,
            replaced,
            extra={
                "extra": {
                    "storage": name,
                    "endpoint": config.endpoint_url,
                    "replaced": replaced,
                }
            },
        )
        return storage

    def resolve(self, name: str | None = None) -> R2StorageClient:
        """Return the client registered under ``name`` (default ``main``).

        Raises:
            StorageNotFoundError: If nothing is registered, or not under this name.
        """
        with self._lock.read_locked():
            if not self._storages:
                raise StorageNotFoundError("no storages available")

            storage_name = name or DEFAULT_STORAGE_NAME
            storage = self._storages.get(storage_name)
            if storage is None:
                raise StorageNotFoundError(f"storage {storage_name} not found")
            return storage

    def names(self) -> list[str]:
        with self._lock.read_locked():
            return sorted(self._storages)

    def __contains__(self, name: object) -> bool:
        with self._lock.read_locked():
            return name in self._storages

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._storages)


@lru_cache(maxsize=1)
def get_registry() -> StorageRegistry:
    return StorageRegistry()


def register(config: R2Config | None = None) -> R2StorageClient:
    """Register ``config`` (or one built from the environment) in the default registry."""
    if config is None:
        try:
            config = R2Config.from_settings(get_settings())
        except ValueError as exc:
            raise StorageConfigurationError(
                f"Invalid R2 settings in environment: {exc}"
            ) from exc
    return get_registry().register(config)


def get_storage(name: str | None = None) -> R2StorageClient:
    return get_registry().resolve(name)
