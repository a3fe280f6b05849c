"""Content-addressable resume storage.

Resume bytes are stored at ``<prefix>/<sha256>.pdf``. Identical bytes always
land on the same path, so "already exists" from a backend means the object
is already there and is treated as a successful put.
"""
from __future__ import annotations

import asyncio
import errno
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

from supabase import Client, create_client

from .config import StorageBackend, StorageSettings

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"

# Filesystems without hard links (FAT, some network and container mounts)
_NO_HARDLINK_ERRNOS = {errno.EPERM, errno.ENOTSUP, errno.EOPNOTSUPP, errno.ENOSYS, errno.EXDEV}


class BlobStorageError(Exception):
    """Raised by a blob backend when an upload fails."""
    pass


class BlobAlreadyExistsError(BlobStorageError):
    """Raised by a blob backend when the target path is already occupied."""
    pass


class ResumeStorageError(Exception):
    """Raised when a resume cannot be stored."""
    pass


class BlobBackend(Protocol):
    async def put(self, path: str, data: bytes, content_type: str) -> None: ...

    def public_url(self, path: str) -> str: ...


def build_resume_storage_path(resume_hash: str, prefix: str = "uploads") -> str:
    normalized_prefix = str(prefix or "uploads").strip("/") or "uploads"
    return f"{normalized_prefix}/{resume_hash}.pdf"


class LocalBlobBackend:
    """Filesystem backend.

    Writes go to a temp file that is hard-linked into place, so a path is
    either absent or fully written, and a second writer gets FileExistsError.
    """

    def __init__(self, root: str | Path, bucket: str, public_base_url: str) -> None:
        self.root = Path(root).resolve() / bucket
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root not in target.parents:
            raise BlobStorageError(f"Path escapes bucket root: {path}")
        return target

    def _write_exclusive(self, target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as tmp:
                tmp.write(data)
            try:
                os.link(tmp_name, target)
            except FileExistsError:
                raise
            except OSError as e:
                if e.errno not in _NO_HARDLINK_ERRNOS:
                    raise
                logger.warning(f"Hard links unsupported under {self.root} ({e}); using exclusive create")
                self._write_create_exclusive(target, data)
        finally:
            os.unlink(tmp_name)

    @staticmethod
    def _write_create_exclusive(target: Path, data: bytes) -> None:
        """O_EXCL create. A concurrent reader may see a partially written file."""
        with open(target, "xb") as blob:
            try:
                blob.write(data)
            except OSError:
                target.unlink(missing_ok=True)
                raise

    async def put(self, path: str, data: bytes, content_type: str) -> None:
        target = self._resolve(path)
        try:
            await asyncio.to_thread(self._write_exclusive, target, data)
        except FileExistsError as e:
            raise BlobAlreadyExistsError(f"The resource already exists: {path}") from e
        except OSError as e:
            raise BlobStorageError(str(e)) from e

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{self.bucket}/{path}"


def is_already_exists_error(error: Any) -> bool:
    """Recognize storage3 "already exists" failures across SDK versions."""
    if error is None:
        return False

    status = getattr(error, "status", None) or getattr(error, "status_code", None)
    message = str(getattr(error, "message", "") or "")
    if error.args and isinstance(error.args[0], dict):
        details = error.args[0]
        status = status or details.get("statusCode") or details.get("status")
        message = message or str(details.get("message", ""))
    message = (message or str(error)).lower()

    try:
        status_code = int(status) if status is not None else None
    except (TypeError, ValueError):
        status_code = None

    return status_code == 409 or "already exists" in message or "duplicate" in message


class SupabaseBlobBackend:
    """Supabase Storage backend (supabase-py)."""

    def __init__(self, client: Client, bucket: str) -> None:
        self.client = client
        self.bucket = bucket

    def _upload(self, path: str, data: bytes, content_type: str) -> None:
        self.client.storage.from_(self.bucket).upload(
            path,
            data,
            file_options={"content-type": content_type, "upsert": "false"},
        )

    async def put(self, path: str, data: bytes, content_type: str) -> None:
        try:
            await asyncio.to_thread(self._upload, path, data, content_type)
        except Exception as e:
            if is_already_exists_error(e):
                raise BlobAlreadyExistsError(str(e)) from e
            raise BlobStorageError(str(e)) from e

    def public_url(self, path: str) -> str:
        return self.client.storage.from_(self.bucket).get_public_url(path).rstrip("?")


class ResumeStore:
    """Content-addressable resume store on top of a blob backend."""

    def __init__(self, backend: BlobBackend, prefix: str = "uploads") -> None:
        self.backend = backend
        self.prefix = prefix

    def storage_path(self, address: str) -> str:
        return build_resume_storage_path(address, self.prefix)

    def public_url(self, address: str) -> str:
        return self.backend.public_url(self.storage_path(address))

    async def put(self, address: str, data: bytes) -> bool:
        """Upload ``data`` at its content address.

        Returns:
            True if the object was written, False if it was already present.

        Raises:
            ResumeStorageError: For any backend failure other than "already exists".
        """
        path = self.storage_path(address)
        try:
            await self.backend.put(path, data, PDF_CONTENT_TYPE)
        except BlobAlreadyExistsError:
            logger.info(f"Resume blob already present at {path}")
            return False
        except BlobStorageError as e:
            raise ResumeStorageError(f"Failed to upload resume to storage: {e}") from e
        return True


def build_blob_backend(storage: StorageSettings) -> BlobBackend:
    """Create the configured blob backend."""
    if storage.backend == StorageBackend.SUPABASE:
        if not storage.supabase_url or not storage.supabase_service_role_key:
            raise ValueError(
                "STORAGE_SUPABASE_URL and STORAGE_SUPABASE_SERVICE_ROLE_KEY are required "
                "for the supabase storage backend"
            )
        client = create_client(storage.supabase_url, storage.supabase_service_role_key)
        return SupabaseBlobBackend(client, storage.bucket)

    return LocalBlobBackend(storage.local_root, storage.bucket, storage.public_base_url)
