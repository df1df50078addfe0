"""Publishing a release binary: validate, hash, store, then register."""

import logging
import posixpath
from dataclasses import dataclass
from typing import BinaryIO, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.settings import settings
from app.models.software import SoftwareVersion
from app.services.checksum import checksum_stream
from app.services.storage import ObjectStorage, StorageError, build_object_key
from app.services.versions import NewVersion, create_version, label_exists, post_exists


logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/octet-stream"


@dataclass
class UploadRequest:
    filename: Optional[str]
    version_number: Optional[str]
    size: Optional[int] = None
    min_requirements: Optional[str] = None
    changelog: Optional[str] = None
    release_post_id: Optional[str] = None


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def file_extension(filename: str) -> str:
    return posixpath.splitext(filename)[1].lower()


def _check_size(size: int) -> None:
    if size > settings.max_upload_size:
        limit_gb = round(settings.max_upload_size / 1024 / 1024 / 1024)
        raise _bad_request(f"File too large. Maximum size is {limit_gb}GB")


def validate_upload(db: Session, upload: UploadRequest) -> Optional[int]:
    """Reject bad uploads before anything is stored. Returns the parsed post id."""
    if not upload.filename:
        raise _bad_request("No file uploaded")
    if not upload.version_number or not upload.version_number.strip():
        raise _bad_request("Version number is required")
    if file_extension(upload.filename) not in settings.allowed_upload_extensions:
        allowed = ", ".join(settings.allowed_upload_extensions)
        raise _bad_request(f"Only {allowed} files are allowed")
    if upload.size is not None:
        _check_size(upload.size)

    release_post_id = None
    if upload.release_post_id:
        try:
            release_post_id = int(upload.release_post_id)
        except ValueError:
            raise _bad_request("Invalid release post id")
        if not post_exists(db, release_post_id):
            raise _bad_request("Invalid release post")

    if label_exists(db, upload.version_number):
        raise _bad_request("Version already exists")
    return release_post_id


def publish_upload(
    db: Session,
    storage: ObjectStorage,
    upload: UploadRequest,
    fileobj: BinaryIO,
    uploaded_by: int,
) -> Tuple[SoftwareVersion, str]:
    release_post_id = validate_upload(db, upload)

    # clients may omit the part size, so measure what actually arrived
    checksum, size = checksum_stream(fileobj)
    _check_size(size)
    fileobj.seek(0)

    key = build_object_key(upload.version_number, upload.filename)
    metadata = {
        "original-name": upload.filename,
        "version": upload.version_number,
        "uploaded-by": str(uploaded_by),
        "checksum": checksum,
    }
    try:
        location = storage.put(key, fileobj, CONTENT_TYPE, metadata)
    except StorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to upload to storage. Please check the storage configuration.",
        )

    new_version = NewVersion(
        version_number=upload.version_number,
        download_url=location,
        storage_key=key,
        checksum=checksum,
        size_bytes=size,
        min_requirements=upload.min_requirements,
        changelog=upload.changelog,
        release_post_id=release_post_id,
    )
    try:
        version = create_version(db, new_version)
    except (HTTPException, IntegrityError) as e:
        # the object is orphaned if the row never lands
        result = storage.delete(key)
        if not result.ok:
            logger.warning("Could not remove orphaned object %s: %s", key, result.error)
        if isinstance(e, IntegrityError):
            raise _bad_request("Version already exists")
        raise
    logger.info("Published %s as %s (%d bytes, sha256=%s)", upload.filename, key, size, checksum)
    return version, key
