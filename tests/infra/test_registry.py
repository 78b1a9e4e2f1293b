"""Tests for the named storage registry."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

import pytest

from r2client.infra.storage.client import (
    R2Config,
    StorageConfigurationError,
    StorageNotFoundError,
)
from r2client.infra.storage.r2_client import R2StorageClient
from r2client.infra.storage.registry import (
    StorageRegistry,
    get_registry,
    get_storage,
    register,
)


def _config(name: str = "main", account_id: str = "acc") -> R2Config:
    return R2Config(
        name=name,
        account_id=account_id,
        access_key_id="key",
        secret_access_key="secret",
    )


@pytest.fixture
def registry():
    with patch.object(R2StorageClient, "_build_client", side_effect=lambda _: MagicMock()):
        yield StorageRegistry()


class TestResolve:
    def test_empty_registry(self, registry):
        with pytest.raises(StorageNotFoundError, match="no storages available"):
            registry.resolve()

    def test_unknown_name(self, registry):
        registry.register(_config())

        with pytest.raises(StorageNotFoundError, match="storage archive not found"):
            registry.resolve("archive")

    def test_default_name(self, registry):
        storage = registry.register(_config())

        assert registry.resolve() is storage
        assert registry.resolve("main") is storage

    def test_named_storages_are_independent(self, registry):
        main = registry.register(_config())
        archive = registry.register(_config("archive", "acc2"))

        assert registry.resolve("archive") is archive
        assert registry.resolve() is main
        assert registry.names() == ["archive", "main"]
        assert len(registry) == 2
        assert "archive" in registry


class TestRegister:
    def test_last_registration_wins(self, registry):
        first = registry.register(_config(account_id="one"))
        second = registry.register(_config(account_id="two"))

        assert first is not second
        assert registry.resolve() is second
        assert registry.resolve().endpoint_url == "https://two.r2.cloudflarestorage.com"
        assert len(registry) == 1

    def test_configuration_error_leaves_registry_unchanged(self):
        registry = StorageRegistry()
        bad = R2Config(account_id="", access_key_id="", secret_access_key="")

        with pytest.raises(StorageConfigurationError):
            registry.register(bad)

        assert len(registry) == 0

    def test_custom_client_factory(self):
        built: list[R2Config] = []

        def factory(config: R2Config):
            built.append(config)
            return MagicMock(name=config.name)

        registry = StorageRegistry(client_factory=factory)
        storage = registry.register(_config("x"))

        assert built == [_config("x")]
        assert registry.resolve("x") is storage


class TestConcurrency:
    def test_readers_do_not_block_each_other(self, registry):
        storage = registry.register(_config())
        # hold a shared lock from this thread; other readers must still get through
        registry._lock.acquire_read()
        try:
            with ThreadPoolExecutor(max_workers=8) as pool:
                results = list(pool.map(lambda _: registry.resolve(), range(64)))
        finally:
            registry._lock.release_read()

        assert all(result is storage for result in results)

    def test_registration_waits_for_readers(self, registry):
        registry.register(_config(account_id="one"))
        registry._lock.acquire_read()
        done = threading.Event()

        def writer():
            registry.register(_config(account_id="two"))
            done.set()

        thread = threading.Thread(target=writer)
        thread.start()
        try:
            assert not done.wait(0.2)
        finally:
            registry._lock.release_read()
        thread.join(timeout=5)

        assert done.is_set()
        assert registry.resolve().endpoint_url == "https://two.r2.cloudflarestorage.com"


class TestDefaultRegistry:
    def test_register_from_environment(self, monkeypatch):
        monkeypatch.setenv("R2_ACCOUNT_ID", "envacc")
        monkeypatch.setenv("R2_ACCESS_KEY_ID", "k")
        monkeypatch.setenv("R2_SECRET_ACCESS_KEY", "s")
        monkeypatch.setenv("R2_NAME", "primary")

        with patch.object(R2StorageClient, "_build_client", return_value=MagicMock()):
            storage = register()

        assert storage.name == "primary"
        assert storage.endpoint_url == "https://envacc.r2.cloudflarestorage.com"
        assert get_storage("primary") is storage

    def test_default_registry_is_shared(self):
        assert get_registry() is get_registry()

    def test_get_storage_without_registration(self):
        with pytest.raises(StorageNotFoundError, match="no storages available"):
            get_storage()

    @pytest.mark.parametrize(
        ("variable", "value"),
        [("R2_READ_TIMEOUT", "abc"), ("R2_MULTIPART_THRESHOLD_MB", "2")],
    )
    def test_invalid_environment_raises_configuration_error(self, monkeypatch, variable, value):
        monkeypatch.setenv("R2_ACCOUNT_ID", "envacc")
        monkeypatch.setenv("R2_ACCESS_KEY_ID", "k")
        monkeypatch.setenv("R2_SECRET_ACCESS_KEY", "s")
        monkeypatch.setenv(variable, value)

        with pytest.raises(StorageConfigurationError, match="Invalid R2 settings") as excinfo:
            register()

        assert isinstance(excinfo.value.__cause__, ValueError)
        assert len(get_registry()) == 0


class TestDefaultName:
    def test_empty_name_is_normalised(self, registry):
        storage = registry.register(_config(name=""))

        assert storage.name == "main"
        assert registry.resolve() is storage
        assert registry.names() == ["main"]
