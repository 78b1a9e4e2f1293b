"""Round trip against a real R2 bucket.

Needs R2_ACCOUNT_ID, R2_ACCESS_KEY_ID, R2_SECRET_ACCESS_KEY and R2_TEST_BUCKET;
skipped otherwise.
"""

from __future__ import annotations

import os
import uuid

import pytest

from r2client.infra.storage.client import R2Config, StorageNotFoundError
from r2client.infra.storage.registry import StorageRegistry

# read at import time: the autouse fixture strips R2_* before each test runs
LIVE_ENV = {
    name: os.environ.get(name, "")
    for name in ("R2_ACCOUNT_ID", "R2_ACCESS_KEY_ID", "R2_SECRET_ACCESS_KEY", "R2_TEST_BUCKET")
}

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        not all(LIVE_ENV.values()), reason="R2 credentials not configured"
    ),
]


@pytest.fixture
def storage():
    registry = StorageRegistry()
    return registry.register(
        R2Config(
            account_id=LIVE_ENV["R2_ACCOUNT_ID"],
            access_key_id=LIVE_ENV["R2_ACCESS_KEY_ID"],
            secret_access_key=LIVE_ENV["R2_SECRET_ACCESS_KEY"],
        )
    )


def test_upload_list_download_delete(storage, tmp_path):
    bucket = LIVE_ENV["R2_TEST_BUCKET"]
    prefix = f"r2client-tests/{uuid.uuid4().hex}/"
    key = prefix + "hello.txt"
    source = tmp_path / "hello.txt"
    source.write_bytes(b"hello from r2client\n")

    info = storage.upload(bucket, source, key)
    try:
        assert info.size_bytes == source.stat().st_size
        assert info.content_type == "text/plain"

        page = storage.list(bucket, prefix, 10)
        assert page.keys == [key]
        assert page.next_token == ""

        target = tmp_path / "copy.txt"
        storage.download(bucket, key, target)
        assert target.read_bytes() == source.read_bytes()
    finally:
        storage.delete(bucket, key)

    with pytest.raises(StorageNotFoundError):
        storage.info(bucket, key)
