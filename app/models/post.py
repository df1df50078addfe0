from sqlalchemy import Column, Integer, String, DateTime

from app.db.session import Base
from app.models.common import utcnow


class Post(Base):
    """Blog post a release can point at as its announcement."""

    __tablename__ = "posts"

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
