from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.db.session import Base
from app.models.common import utcnow


class SoftwareVersion(Base):
    __tablename__ = "software_versions"

    id = Column(Integer, primary_key=True)
    version_number = Column(String(50), unique=True, nullable=False, index=True)
    download_url = Column(String(1024), nullable=False)
    # Set only when the binary lives in our bucket; external URLs have no key
    storage_key = Column(String(512), nullable=True)
    checksum = Column(String(128), nullable=False)
    size_bytes = Column(BigInteger, nullable=False)
    release_date = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    is_latest = Column(Boolean, nullable=False, default=False, server_default="0")
    min_requirements = Column(Text, nullable=True)
    changelog = Column(Text, nullable=True)
    release_post_id = Column(Integer, ForeignKey("posts.id", ondelete="SET NULL"), nullable=True)

    release_post = relationship("Post")
    # No ORM cascade: statistics are removed explicitly before the version
    downloads = relationship("DownloadStatistic", back_populates="version", passive_deletes="all")


class DownloadStatistic(Base):
    __tablename__ = "download_statistics"

    id = Column(Integer, primary_key=True)
    version_id = Column(Integer, ForeignKey("software_versions.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(512), nullable=True)
    os_type = Column(String(20), nullable=False, default="Unknown")
    country_code = Column(String(8), nullable=True)
    download_date = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    version = relationship("SoftwareVersion", back_populates="downloads")
