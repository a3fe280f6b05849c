import asyncio
import errno
import os

import pytest

from be.storage import (
    BlobAlreadyExistsError,
    BlobStorageError,
    ResumeStorageError,
    ResumeStore,
    build_resume_storage_path,
    is_already_exists_error,
)

pytestmark = pytest.mark.unit

HASH = "a" * 64


def test_storage_path_is_content_addressed():
    assert build_resume_storage_path(HASH) == f"uploads/{HASH}.pdf"
    assert build_resume_storage_path(HASH, "/cvs/") == f"cvs/{HASH}.pdf"
    assert build_resume_storage_path(HASH, "") == f"uploads/{HASH}.pdf"


def test_public_url_is_derived_before_upload(resume_store):
    assert resume_store.public_url(HASH) == f"http://testserver/files/resumes/uploads/{HASH}.pdf"


def test_put_writes_once_then_reports_already_present(resume_store, blob_backend):
    first = asyncio.run(resume_store.put(HASH, b"%PDF one"))
    second = asyncio.run(resume_store.put(HASH, b"%PDF one"))

    assert first is True
    assert second is False
    stored = blob_backend.root / "uploads" / f"{HASH}.pdf"
    assert stored.read_bytes() == b"%PDF one"
    # No temp files left behind
    assert [p.name for p in stored.parent.iterdir()] == [f"{HASH}.pdf"]


def test_concurrent_puts_of_same_address_create_once(resume_store):
    async def scenario():
        return await asyncio.gather(*(resume_store.put(HASH, b"%PDF same") for _ in range(5)))

    results = asyncio.run(scenario())
    assert results.count(True) == 1
    assert results.count(False) == 4


def test_backend_rejects_paths_outside_bucket(blob_backend):
    with pytest.raises(BlobStorageError):
        asyncio.run(blob_backend.put("../escape.pdf", b"x", "application/pdf"))


class FailingBackend:
    def __init__(self, error):
        self.error = error

    async def put(self, path, data, content_type):
        raise self.error

    def public_url(self, path):
        return f"http://blobs/{path}"


def test_already_exists_from_backend_is_success():
    store = ResumeStore(FailingBackend(BlobAlreadyExistsError("exists")))
    assert asyncio.run(store.put(HASH, b"x")) is False


def test_other_backend_failures_raise_storage_error():
    store = ResumeStore(FailingBackend(BlobStorageError("bucket not found")))

    with pytest.raises(ResumeStorageError, match="Failed to upload resume to storage: bucket not found"):
        asyncio.run(store.put(HASH, b"x"))


class StorageApiError(Exception):
    def __init__(self, message, status=None):
        super().__init__(message)
        self.message = message
        self.status = status


@pytest.mark.parametrize(
    "error, expected",
    [
        (StorageApiError("conflict", status=409), True),
        (StorageApiError("The resource already exists"), True),
        (StorageApiError("Duplicate object"), True),
        (Exception({"statusCode": "409", "message": "x"}), True),
        (StorageApiError("Bucket not found", status=404), False),
        (Exception("timeout"), False),
        (None, False),
    ],
)
def test_already_exists_detection(error, expected):
    assert is_already_exists_error(error) is expected


def _refuse_hard_links(errno_code):
    def link(src, dst):
        raise OSError(errno_code, os.strerror(errno_code))
    return link


def test_local_backend_works_without_hard_links(resume_store, blob_backend, monkeypatch):
    monkeypatch.setattr("be.storage.os.link", _refuse_hard_links(errno.EPERM))

    first = asyncio.run(resume_store.put(HASH, b"%PDF on fat"))
    second = asyncio.run(resume_store.put(HASH, b"%PDF on fat"))

    assert (first, second) == (True, False)
    stored = blob_backend.root / "uploads" / f"{HASH}.pdf"
    assert stored.read_bytes() == b"%PDF on fat"
    assert [p.name for p in stored.parent.iterdir()] == [f"{HASH}.pdf"]


def test_other_link_failures_are_storage_errors(resume_store, monkeypatch):
    monkeypatch.setattr("be.storage.os.link", _refuse_hard_links(errno.EIO))

    with pytest.raises(ResumeStorageError):
        asyncio.run(resume_store.put(HASH, b"%PDF"))
