from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

ENV_FILE = Path(".env")

DEFAULT_STORAGE_NAME = "main"
DEFAULT_ENDPOINT_DOMAIN = "r2.cloudflarestorage.com"
# R2 ignores AWS regions but SigV4 still needs one
DEFAULT_REGION = "auto"


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


@dataclass
class Settings:
    R2_NAME: str = DEFAULT_STORAGE_NAME
    R2_ACCOUNT_ID: str | None = None
    R2_ACCESS_KEY_ID: str | None = None
    R2_SECRET_ACCESS_KEY: str | None = None
    R2_ENDPOINT_DOMAIN: str = DEFAULT_ENDPOINT_DOMAIN
    R2_REGION: str = DEFAULT_REGION
    R2_CONNECT_TIMEOUT: float = 10.0
    R2_READ_TIMEOUT: float = 60.0
    R2_MAX_POOL_CONNECTIONS: int = 10
    R2_MULTIPART_THRESHOLD_MB: int = 8
    R2_DELETE_ON_VERIFY_FAILURE: bool = False
    ENABLE_METRICS: bool = True
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    def __post_init__(self) -> None:
        if self.R2_CONNECT_TIMEOUT <= 0 or self.R2_READ_TIMEOUT <= 0:
            raise ValueError("R2_CONNECT_TIMEOUT and R2_READ_TIMEOUT must be positive.")
        if self.R2_MAX_POOL_CONNECTIONS < 1:
            raise ValueError("R2_MAX_POOL_CONNECTIONS must be at least 1.")
        if self.R2_MULTIPART_THRESHOLD_MB < 5:
            # S3 rejects multipart parts smaller than 5 MiB
            raise ValueError("R2_MULTIPART_THRESHOLD_MB must be at least 5.")

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        return cls(
            R2_NAME=os.environ.get("R2_NAME") or cls.R2_NAME,
            R2_ACCOUNT_ID=os.environ.get("R2_ACCOUNT_ID"),
            R2_ACCESS_KEY_ID=os.environ.get("R2_ACCESS_KEY_ID"),
            R2_SECRET_ACCESS_KEY=os.environ.get("R2_SECRET_ACCESS_KEY"),
            R2_ENDPOINT_DOMAIN=os.environ.get(
                "R2_ENDPOINT_DOMAIN", cls.R2_ENDPOINT_DOMAIN
            ),
            R2_REGION=os.environ.get("R2_REGION", cls.R2_REGION),
            R2_CONNECT_TIMEOUT=float(
                os.environ.get("R2_CONNECT_TIMEOUT", cls.R2_CONNECT_TIMEOUT)
            ),
            R2_READ_TIMEOUT=float(
                os.environ.get("R2_READ_TIMEOUT", cls.R2_READ_TIMEOUT)
            ),
            R2_MAX_POOL_CONNECTIONS=int(
                os.environ.get("R2_MAX_POOL_CONNECTIONS", cls.R2_MAX_POOL_CONNECTIONS)
            ),
            R2_MULTIPART_THRESHOLD_MB=int(
                os.environ.get(
                    "R2_MULTIPART_THRESHOLD_MB", cls.R2_MULTIPART_THRESHOLD_MB
                )
            ),
            R2_DELETE_ON_VERIFY_FAILURE=_as_bool(
                os.environ.get("R2_DELETE_ON_VERIFY_FAILURE"),
                cls.R2_DELETE_ON_VERIFY_FAILURE,
            ),
            ENABLE_METRICS=_as_bool(
                os.environ.get("ENABLE_METRICS"), cls.ENABLE_METRICS
            ),
            LOG_LEVEL=os.environ.get("LOG_LEVEL", cls.LOG_LEVEL).upper(),
            LOG_JSON=_as_bool(os.environ.get("LOG_JSON"), cls.LOG_JSON),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
