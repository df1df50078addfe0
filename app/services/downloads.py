import logging
import posixpath
from dataclasses import dataclass
from typing import Mapping, Optional, Union
from urllib.parse import urlparse

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.core.settings import settings
from app.models.software import DownloadStatistic, SoftwareVersion
from app.schemas.software import DownloadResponse
from app.services.storage import ObjectStorage, StorageError
from app.services.versions import resolve_version_ref


logger = logging.getLogger(__name__)

# Checked in order, first substring hit wins
OS_SIGNATURES = (
    ("Windows", "Windows"),
    ("Mac", "MacOS"),
    ("Linux", "Linux"),
    ("Android", "Android"),
    ("iOS", "iOS"),
)

MAX_USER_AGENT_LENGTH = 512


@dataclass
class DownloadContext:
    user_id: Optional[int] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    country_code: Optional[str] = None


@dataclass(frozen=True)
class RecordResult:
    ok: bool
    error: Optional[str] = None


def detect_os(user_agent: Optional[str]) -> str:
    user_agent = user_agent or ""
    for needle, os_type in OS_SIGNATURES:
        if needle in user_agent:
            return os_type
    return "Unknown"


def client_ip(headers: Mapping[str, str], fallback: Optional[str] = None) -> Optional[str]:
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first[:45]
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()[:45]
    return fallback


def context_from_headers(
    headers: Mapping[str, str], peer: Optional[str], user_id: Optional[int]
) -> DownloadContext:
    return DownloadContext(
        user_id=user_id,
        ip_address=client_ip(headers, peer),
        user_agent=headers.get("user-agent"),
        country_code=headers.get("cf-ipcountry"),
    )


def record_download(db: Session, version: SoftwareVersion, context: DownloadContext) -> RecordResult:
    """Append one download event. Never raises."""
    user_agent = context.user_agent[:MAX_USER_AGENT_LENGTH] if context.user_agent else None
    try:
        db.add(
            DownloadStatistic(
                version_id=version.id,
                user_id=context.user_id,
                ip_address=context.ip_address,
                user_agent=user_agent,
                os_type=detect_os(context.user_agent),
                country_code=context.country_code,
            )
        )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.exception("Failed to record download of version %s", version.version_number)
        return RecordResult(ok=False, error=str(e))
    return RecordResult(ok=True)


def suggested_filename(version_number: str, location: str) -> str:
    path = urlparse(location).path or location
    _, ext = posixpath.splitext(path)
    return f"{settings.download_filename_prefix}-{version_number}{ext}"


def initiate_download(
    db: Session,
    storage: ObjectStorage,
    version_ref: Union[int, str],
    context: DownloadContext,
) -> DownloadResponse:
    version = resolve_version_ref(db, str(version_ref))
    # plain values survive a rollback inside record_download
    label, location, key, checksum = version.version_number, version.download_url, version.storage_key, version.checksum

    outcome = record_download(db, version, context)
    if not outcome.ok:
        logger.warning("Serving version %s without a statistics record", label)

    url, method = location, "direct"
    if settings.use_presigned_urls and key:
        try:
            url = storage.sign(key, settings.presigned_url_expiry_seconds)
        except StorageError:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to generate download link")
        method = "presigned"

    return DownloadResponse(
        download_url=url,
        checksum=checksum,
        file_name=suggested_filename(label, location),
        version_number=label,
        method=method,
    )
