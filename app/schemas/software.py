from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_serializer
from pydantic.alias_generators import to_camel


# Largest value a BIGINT column holds
MAX_SIZE_BYTES = 2**63 - 1


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class ReleasePostRef(CamelModel):
    id: int
    title: str
    slug: str


class SoftwareVersionCreate(CamelModel):
    version_number: str = Field(min_length=1, max_length=50)
    download_url: str = Field(min_length=1, max_length=1024)
    checksum: str = Field(min_length=1, max_length=128)
    # Accepts JSON numbers and decimal strings alike
    size_bytes: int = Field(ge=0, le=MAX_SIZE_BYTES)
    min_requirements: Optional[str] = None
    changelog: Optional[str] = None
    release_post_id: Optional[int] = None


class SoftwareVersionOut(CamelModel):
    id: int
    version_number: str
    download_url: str
    checksum: str
    size_bytes: int
    release_date: datetime
    is_latest: bool
    min_requirements: Optional[str] = None
    changelog: Optional[str] = None
    release_post_id: Optional[int] = None

    @field_serializer("size_bytes")
    def _size_as_string(self, value: int) -> str:
        # Sizes above 2**53 are not safe as JSON numbers for most clients
        return str(value)


class SoftwareVersionListItem(SoftwareVersionOut):
    download_count: int = 0
    release_post: Optional[ReleasePostRef] = None


class DownloadStatisticOut(CamelModel):
    id: int
    version_id: int
    user_id: Optional[int] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    os_type: str
    country_code: Optional[str] = None
    download_date: datetime


class SoftwareVersionDetail(SoftwareVersionOut):
    release_post: Optional[ReleasePostRef] = None
    downloads: List[DownloadStatisticOut] = []


class UploadResponse(CamelModel):
    message: str
    version: SoftwareVersionOut
    s3_key: str
    download_url: str


class SetLatestResponse(CamelModel):
    message: str
    version: SoftwareVersionOut


class DeleteVersionResponse(CamelModel):
    message: str
    deleted_version: str


class DownloadRequest(CamelModel):
    version_id: Union[int, str]


class DownloadResponse(CamelModel):
    download_url: str
    checksum: str
    file_name: Optional[str] = None
    version_number: Optional[str] = None
    method: Optional[str] = None


class DownloadStatsResponse(CamelModel):
    total_downloads: int
    downloads_today: int
    downloads_this_week: int
    downloads_this_month: int


class UserDashboardStats(CamelModel):
    total_downloads: int
