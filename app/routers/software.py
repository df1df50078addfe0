import io
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models.user import User
from app.schemas.software import (
    DeleteVersionResponse,
    DownloadRequest,
    DownloadResponse,
    DownloadStatsResponse,
    SetLatestResponse,
    SoftwareVersionCreate,
    SoftwareVersionDetail,
    SoftwareVersionListItem,
    SoftwareVersionOut,
    UploadResponse,
)
from app.security.deps import get_optional_user, require_admin
from app.services import versions as registry
from app.services.downloads import context_from_headers, initiate_download
from app.services.stats import get_download_stats
from app.services.storage import ObjectStorage, get_storage
from app.services.uploads import UploadRequest, publish_upload


router = APIRouter()


@router.get("", response_model=List[SoftwareVersionListItem])
def list_versions(db: Session = Depends(get_db)) -> List[SoftwareVersionListItem]:
    items: List[SoftwareVersionListItem] = []
    for version, download_count in registry.list_versions(db):
        item = SoftwareVersionListItem.model_validate(version)
        item.download_count = download_count
        items.append(item)
    return items


@router.post("", response_model=SoftwareVersionOut, status_code=status.HTTP_201_CREATED)
def create_version(
    payload: SoftwareVersionCreate,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> SoftwareVersionOut:
    try:
        return registry.create_version(db, registry.NewVersion.from_payload(payload))
    except IntegrityError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Version already exists")


@router.post("/upload", response_model=UploadResponse)
def upload_version(
    file: Optional[UploadFile] = File(default=None),
    version_number: Optional[str] = Form(default=None, alias="versionNumber"),
    min_requirements: Optional[str] = Form(default=None, alias="minRequirements"),
    changelog: Optional[str] = Form(default=None),
    release_post_id: Optional[str] = Form(default=None, alias="releasePostId"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
) -> UploadResponse:
    upload = UploadRequest(
        filename=file.filename if file else None,
        version_number=version_number.strip() if version_number else None,
        size=file.size if file else None,
        min_requirements=min_requirements,
        changelog=changelog,
        release_post_id=release_post_id,
    )
    fileobj = file.file if file else io.BytesIO()
    version, key = publish_upload(db, storage, upload, fileobj, uploaded_by=admin.id)
    return UploadResponse(
        message="File uploaded successfully",
        version=SoftwareVersionOut.model_validate(version),
        s3_key=key,
        download_url=version.download_url,
    )


@router.get("/stats", response_model=DownloadStatsResponse)
def download_stats(_: User = Depends(require_admin), db: Session = Depends(get_db)) -> DownloadStatsResponse:
    return get_download_stats(db)


@router.post("/download", response_model=DownloadResponse)
def download(
    payload: DownloadRequest,
    request: Request,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
) -> DownloadResponse:
    context = context_from_headers(
        request.headers,
        peer=request.client.host if request.client else None,
        user_id=user.id if user else None,
    )
    return initiate_download(db, storage, payload.version_id, context)


@router.get("/{version_ref}", response_model=SoftwareVersionDetail)
def get_version(version_ref: str, db: Session = Depends(get_db)) -> SoftwareVersionDetail:
    return registry.get_version_detail(db, version_ref)


@router.delete("/{version_ref}", response_model=DeleteVersionResponse)
def delete_version(
    version_ref: str,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
) -> DeleteVersionResponse:
    deleted = registry.delete_version(db, storage, version_ref)
    return DeleteVersionResponse(message="Version deleted successfully", deleted_version=deleted.version_number)


@router.post("/{version_ref}/set-latest", response_model=SetLatestResponse)
def set_latest(
    version_ref: str,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> SetLatestResponse:
    version = registry.set_latest(db, version_ref)
    return SetLatestResponse(message="Version set as latest", version=SoftwareVersionOut.model_validate(version))
