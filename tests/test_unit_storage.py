import io
from datetime import datetime, timezone
from unittest.mock import MagicMock

import boto3
import pytest
from boto3.exceptions import S3UploadFailedError
from botocore.stub import Stubber

from app.core.settings import settings
from app.services.checksum import EMPTY_SHA256, checksum_stream, compute_checksum
from app.services.storage import (
    MULTIPART_THRESHOLD,
    S3ObjectStorage,
    StorageError,
    build_object_key,
    public_location,
    sanitize_label,
)


def make_storage():
    client = boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    return S3ObjectStorage(bucket="releases", region="us-east-1", client=client), client


def test_checksum_is_deterministic_sha256():
    data = b"installer bytes" * 1000
    assert compute_checksum(data) == compute_checksum(data)
    assert len(compute_checksum(data)) == 64
    assert compute_checksum(data) != compute_checksum(data + b"!")


def test_checksum_of_empty_content_is_the_empty_digest():
    assert compute_checksum(b"") == EMPTY_SHA256


def test_sanitize_label_replaces_unsafe_characters():
    assert sanitize_label("1.2.0-beta") == "1.2.0-beta"
    assert sanitize_label("v1 2/3+rc") == "v1_2_3_rc"


def test_object_keys_differ_between_uploads_of_one_label():
    first = build_object_key("1.0.0", "setup.exe", datetime(2024, 1, 1, tzinfo=timezone.utc))
    second = build_object_key("1.0.0", "setup.exe", datetime(2024, 1, 1, 0, 0, 1, tzinfo=timezone.utc))
    assert first == "software/1.0.0-1704067200000-setup.exe"
    assert first != second


def test_public_location_prefers_cdn(monkeypatch):
    monkeypatch.setattr(settings, "cdn_domain", "dl.example.com")
    assert public_location("software/a.zip") == "https://dl.example.com/software/a.zip"

    monkeypatch.setattr(settings, "cdn_domain", None)
    monkeypatch.setattr(settings, "s3_bucket_name", "releases")
    monkeypatch.setattr(settings, "aws_region", "eu-west-1")
    assert public_location("software/a.zip") == "https://releases.s3.eu-west-1.amazonaws.com/software/a.zip"


def test_checksum_stream_matches_whole_content_hash():
    data = b"0123456789" * 1000
    digest, size = checksum_stream(io.BytesIO(data), chunk_size=64)
    assert digest == compute_checksum(data)
    assert size == len(data)
    assert checksum_stream(io.BytesIO(b"")) == (EMPTY_SHA256, 0)


def test_s3_put_streams_encrypted_attachment(monkeypatch):
    monkeypatch.setattr(settings, "cdn_domain", "dl.example.com")
    client = MagicMock()
    storage = S3ObjectStorage(bucket="releases", region="us-east-1", client=client)
    body = io.BytesIO(b"abc")

    location = storage.put("software/1.0.0-1-app.exe", body, "application/octet-stream", {"original-name": "app.exe"})

    assert location == "https://dl.example.com/software/1.0.0-1-app.exe"
    args, kwargs = client.upload_fileobj.call_args
    assert args == (body, "releases", "software/1.0.0-1-app.exe")
    assert kwargs["ExtraArgs"] == {
        "ContentType": "application/octet-stream",
        "ContentDisposition": 'attachment; filename="app.exe"',
        "Metadata": {"original-name": "app.exe"},
        "ServerSideEncryption": "AES256",
    }
    assert kwargs["Config"].multipart_threshold == MULTIPART_THRESHOLD
    client.put_object.assert_not_called()


def test_s3_put_failure_raises_storage_error():
    client = MagicMock()
    client.upload_fileobj.side_effect = S3UploadFailedError("Failed to upload: AccessDenied")
    storage = S3ObjectStorage(bucket="releases", region="us-east-1", client=client)
    with pytest.raises(StorageError):
        storage.put("software/x.zip", io.BytesIO(b"abc"), "application/octet-stream", {})


def test_s3_delete_reports_instead_of_raising():
    storage, client = make_storage()
    with Stubber(client) as stub:
        stub.add_response("delete_object", {}, {"Bucket": "releases", "Key": "software/x.zip"})
        stub.add_client_error("delete_object", service_error_code="AccessDenied", http_status_code=403)
        ok = storage.delete("software/x.zip")
        failed = storage.delete("software/x.zip")
    assert ok.ok is True
    assert failed.ok is False and failed.error


def test_s3_sign_produces_time_limited_url():
    storage, _ = make_storage()
    url = storage.sign("software/x.zip", 3600)
    assert "software/x.zip" in url
    assert "Expires" in url or "X-Amz-Expires=3600" in url
