"""Object storage gateway for release binaries.

Routes only see the ``ObjectStorage`` protocol; the S3 implementation is
built lazily from settings and handed out by the ``get_storage`` dependency,
which tests replace with an in-memory store.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import BinaryIO, Dict, Optional, Protocol

import boto3
from boto3.exceptions import S3UploadFailedError
from boto3.s3.transfer import TransferConfig
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.core.settings import settings


logger = logging.getLogger(__name__)

KEY_PREFIX = "software"

# Objects above the threshold go up as multipart uploads
MULTIPART_THRESHOLD = 100 * 1024 * 1024
MULTIPART_CHUNKSIZE = 50 * 1024 * 1024

_UNSAFE_LABEL_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


class StorageError(Exception):
    """Raised when the object store rejects an upload or a signing request."""


@dataclass(frozen=True)
class StorageResult:
    ok: bool
    error: Optional[str] = None


class ObjectStorage(Protocol):
    def put(self, key: str, fileobj: BinaryIO, content_type: str, metadata: Dict[str, str]) -> str:
        ...

    def delete(self, key: str) -> StorageResult:
        ...

    def sign(self, key: str, expires_in: int) -> str:
        ...


def sanitize_label(version_label: str) -> str:
    return _UNSAFE_LABEL_CHARS.sub("_", version_label)


def build_object_key(version_label: str, filename: str, now: Optional[datetime] = None) -> str:
    """Derive a collision-free key; repeated uploads of one label differ by timestamp."""
    now = now or datetime.now(tz=timezone.utc)
    millis = int(now.timestamp() * 1000)
    return f"{KEY_PREFIX}/{sanitize_label(version_label)}-{millis}-{filename}"


def public_location(key: str) -> str:
    if settings.cdn_domain:
        return f"https://{settings.cdn_domain}/{key}"
    return f"https://{settings.s3_bucket_name}.s3.{settings.aws_region}.amazonaws.com/{key}"


class S3ObjectStorage:
    def __init__(self, bucket: str, region: str, client=None):
        self.bucket = bucket
        self.region = region
        self._client = client

    @property
    def client(self):
        if self._client is None:
            s3_config = Config(
                region_name=self.region,
                retries={"max_attempts": settings.storage_max_attempts, "mode": "standard"},
            )
            self._client = boto3.client(
                "s3",
                aws_access_key_id=settings.aws_access_key_id,
                aws_secret_access_key=settings.aws_secret_access_key,
                config=s3_config,
            )
            logger.info("S3 client initialized for bucket %s (region: %s)", self.bucket, self.region)
        return self._client

    def put(self, key: str, fileobj: BinaryIO, content_type: str, metadata: Dict[str, str]) -> str:
        """Stream ``fileobj`` from its current position into the bucket."""
        original_name = metadata.get("original-name", key.rsplit("/", 1)[-1])
        transfer_config = TransferConfig(
            multipart_threshold=MULTIPART_THRESHOLD,
            multipart_chunksize=MULTIPART_CHUNKSIZE,
        )
        try:
            self.client.upload_fileobj(
                fileobj,
                self.bucket,
                key,
                ExtraArgs={
                    "ContentType": content_type,
                    "ContentDisposition": f'attachment; filename="{original_name}"',
                    "Metadata": metadata,
                    "ServerSideEncryption": "AES256",
                },
                Config=transfer_config,
            )
        except (BotoCoreError, ClientError, S3UploadFailedError) as e:
            logger.error("Failed to upload s3://%s/%s: %s", self.bucket, key, e)
            raise StorageError(str(e)) from e
        logger.info("Uploaded s3://%s/%s", self.bucket, key)
        return public_location(key)

    def delete(self, key: str) -> StorageResult:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            return StorageResult(ok=False, error=str(e))
        return StorageResult(ok=True)

    def sign(self, key: str, expires_in: int) -> str:
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Failed to presign s3://%s/%s: %s", self.bucket, key, e)
            raise StorageError(str(e)) from e


@lru_cache(maxsize=1)
def get_storage() -> ObjectStorage:
    return S3ObjectStorage(bucket=settings.s3_bucket_name, region=settings.aws_region)
