# tests/services/test_storage.py
import pytest

from waypost.platform import BlobStore, StorageError


@pytest.fixture
def store(tmp_path):
    return BlobStore(tmp_path, "http://test/")


@pytest.mark.asyncio
async def test_upload_and_download(store):
    await store.upload("avatars", "avatars/u-1.png", b"\x89PNG")

    assert await store.download("avatars", "avatars/u-1.png") == b"\x89PNG"
    assert (
        store.public_url("avatars", "avatars/u-1.png")
        == "http://test/storage/v1/object/public/avatars/avatars/u-1.png"
    )


@pytest.mark.asyncio
async def test_existing_object_is_not_overwritten(store):
    await store.upload("avatars", "a.png", b"one")

    with pytest.raises(StorageError, match="already exists"):
        await store.upload("avatars", "a.png", b"two")


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["../escape.png", "/abs.png", ""])
async def test_invalid_paths_rejected(store, path):
    with pytest.raises(StorageError):
        await store.upload("avatars", path, b"x")


@pytest.mark.asyncio
async def test_missing_object(store):
    with pytest.raises(StorageError, match="not found"):
        await store.download("avatars", "nope.png")


@pytest.mark.asyncio
@pytest.mark.parametrize("bucket", ["../x", "a/b", "..", ".", "a\\b", ""])
async def test_invalid_buckets_rejected(store, tmp_path, bucket):
    with pytest.raises(StorageError, match="Invalid bucket"):
        await store.upload(bucket, "a.png", b"x")
    with pytest.raises(StorageError, match="Invalid bucket"):
        store.public_url(bucket, "a.png")
    assert not (tmp_path.parent / "x" / "a.png").exists()
