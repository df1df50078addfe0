"""Catalog of released software versions.

Every write keeps exactly one row flagged ``is_latest`` by flipping the flag
with a single conditional UPDATE inside the same transaction as the insert.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import func, update
from sqlalchemy.orm import Session, joinedload

from app.models.post import Post
from app.models.software import DownloadStatistic, SoftwareVersion
from app.schemas.software import SoftwareVersionCreate
from app.services.storage import ObjectStorage


logger = logging.getLogger(__name__)

_NUMERIC_REF = re.compile(r"^\d+$")
_MAX_ID = 2**63 - 1


@dataclass
class NewVersion:
    version_number: str
    download_url: str
    checksum: str
    size_bytes: int
    storage_key: Optional[str] = None
    min_requirements: Optional[str] = None
    changelog: Optional[str] = None
    release_post_id: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: SoftwareVersionCreate) -> "NewVersion":
        return cls(
            version_number=payload.version_number,
            download_url=payload.download_url,
            checksum=payload.checksum,
            size_bytes=payload.size_bytes,
            min_requirements=payload.min_requirements,
            changelog=payload.changelog,
            release_post_id=payload.release_post_id,
        )


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Version not found")


def get_by_id(db: Session, version_id: int) -> SoftwareVersion:
    version = db.query(SoftwareVersion).filter(SoftwareVersion.id == version_id).first()
    if not version:
        raise _not_found()
    return version


def get_by_label(db: Session, label: str) -> SoftwareVersion:
    version = db.query(SoftwareVersion).filter(SoftwareVersion.version_number == label).first()
    if not version:
        raise _not_found()
    return version


def resolve_version_ref(db: Session, ref: str) -> SoftwareVersion:
    """Resolve a surrogate id or a version label.

    All-digit references are ids, anything else is a label.
    """
    ref = (ref or "").strip()
    if not ref:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid version reference")
    if _NUMERIC_REF.match(ref):
        version_id = int(ref)
        if version_id > _MAX_ID:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid version reference")
        return get_by_id(db, version_id)
    return get_by_label(db, ref)


def label_exists(db: Session, label: str) -> bool:
    return db.query(SoftwareVersion.id).filter(SoftwareVersion.version_number == label).first() is not None


def post_exists(db: Session, post_id: int) -> bool:
    return db.query(Post.id).filter(Post.id == post_id).first() is not None


def _mark_only_latest(db: Session, version_id: int) -> None:
    db.execute(
        update(SoftwareVersion)
        .values(is_latest=(SoftwareVersion.id == version_id))
        .execution_options(synchronize_session=False)
    )


def create_version(db: Session, data: NewVersion) -> SoftwareVersion:
    if label_exists(db, data.version_number):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Version already exists")
    if data.release_post_id is not None and not post_exists(db, data.release_post_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid release post")

    version = SoftwareVersion(
        version_number=data.version_number,
        download_url=data.download_url,
        storage_key=data.storage_key,
        checksum=data.checksum,
        size_bytes=data.size_bytes,
        is_latest=True,
        min_requirements=data.min_requirements or None,
        changelog=data.changelog or None,
        release_post_id=data.release_post_id,
    )
    try:
        db.add(version)
        db.flush()  # assigns version.id
        _mark_only_latest(db, version.id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    # the bulk UPDATE bypasses the identity map
    db.expire_all()
    db.refresh(version)
    logger.info("Created version %s (id=%s) as latest", version.version_number, version.id)
    return version


def set_latest(db: Session, ref: str) -> SoftwareVersion:
    version = resolve_version_ref(db, ref)
    try:
        _mark_only_latest(db, version.id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.expire_all()
    db.refresh(version)
    logger.info("Version %s (id=%s) set as latest", version.version_number, version.id)
    return version


def delete_version(db: Session, storage: ObjectStorage, ref: str) -> SoftwareVersion:
    """Remove a version and its statistics, then best-effort remove the binary."""
    version = resolve_version_ref(db, ref)
    version_id, label, storage_key = version.id, version.version_number, version.storage_key

    try:
        removed_stats = (
            db.query(DownloadStatistic)
            .filter(DownloadStatistic.version_id == version_id)
            .delete(synchronize_session=False)
        )
        db.delete(version)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed to delete version %s (id=%s)", label, version_id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to delete version")
    logger.info("Deleted version %s (id=%s) and %d download record(s)", label, version_id, removed_stats)

    if storage_key:
        result = storage.delete(storage_key)
        if not result.ok:
            logger.warning("Version %s deleted but object %s was not removed: %s", label, storage_key, result.error)
    return version


def list_versions(db: Session) -> List[Tuple[SoftwareVersion, int]]:
    download_counts = (
        db.query(DownloadStatistic.version_id, func.count(DownloadStatistic.id).label("download_count"))
        .group_by(DownloadStatistic.version_id)
        .subquery()
    )
    rows = (
        db.query(SoftwareVersion, func.coalesce(download_counts.c.download_count, 0))
        .outerjoin(download_counts, download_counts.c.version_id == SoftwareVersion.id)
        .options(joinedload(SoftwareVersion.release_post))
        .order_by(SoftwareVersion.release_date.desc(), SoftwareVersion.id.desc())
        .all()
    )
    return [(version, int(count)) for version, count in rows]


def get_version_detail(db: Session, ref: str) -> SoftwareVersion:
    version = resolve_version_ref(db, ref)
    # touch relationships while the session is open
    _ = version.release_post, version.downloads
    return version
