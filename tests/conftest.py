from __future__ import annotations

import os

import pytest

from r2client.common.config import get_settings
from r2client.infra.storage.registry import get_registry


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Run every test without R2_* variables, away from any real .env file."""
    for name in list(os.environ):
        if name.startswith("R2_") or name in {"ENABLE_METRICS", "LOG_LEVEL", "LOG_JSON"}:
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()  # type: ignore[attr-defined]
    get_registry.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]
    get_registry.cache_clear()  # type: ignore[attr-defined]
