import json
import logging

import pytest

from be.config import IngestionSettings, StorageBackend, StorageSettings
from be.logging_config import JsonFormatter, build_formatter
from be.storage import LocalBlobBackend, build_blob_backend

pytestmark = pytest.mark.unit


def test_ingestion_settings_from_env(monkeypatch):
    monkeypatch.setenv("INGEST_MAX_FILES_PER_REQUEST", "0")
    monkeypatch.setenv("INGEST_BULK_UPLOAD_CONCURRENCY", "3")
    monkeypatch.setenv("INGEST_MAX_FILE_SIZE_MB", "2")

    ingestion = IngestionSettings()

    assert ingestion.max_files_per_request == 0
    assert ingestion.bulk_upload_concurrency == 3
    assert ingestion.max_file_size_bytes == 2 * 1024 * 1024


def test_concurrency_must_be_positive(monkeypatch):
    monkeypatch.setenv("INGEST_BULK_UPLOAD_CONCURRENCY", "0")
    with pytest.raises(ValueError):
        IngestionSettings()


def test_storage_prefix_slashes_stripped(monkeypatch):
    monkeypatch.setenv("STORAGE_PATH_PREFIX", "/cvs/")
    assert StorageSettings().path_prefix == "cvs"


def test_local_backend_is_default(tmp_path):
    storage = StorageSettings(local_root=str(tmp_path))
    backend = build_blob_backend(storage)

    assert isinstance(backend, LocalBlobBackend)
    assert backend.public_url("uploads/x.pdf") == "http://localhost:8000/files/resumes/uploads/x.pdf"


def test_supabase_backend_requires_credentials():
    storage = StorageSettings(backend=StorageBackend.SUPABASE, supabase_url=None, supabase_service_role_key=None)
    with pytest.raises(ValueError, match="STORAGE_SUPABASE_URL"):
        build_blob_backend(storage)


def test_json_formatter_emits_one_object_per_record():
    record = logging.LogRecord("be.test", logging.INFO, __file__, 1, "saved %s", ("cv.pdf",), None)
    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "be.test"
    assert payload["message"] == "saved cv.pdf"


def test_text_format_is_plain():
    assert not isinstance(build_formatter("text"), JsonFormatter)
