import logging

from fastapi import FastAPI
from sqlalchemy import text, inspect

from app.db.session import Base, engine

# registers every model on Base.metadata
from app.models import post, software, user  # noqa: F401


logger = logging.getLogger(__name__)


def register_startup(app: FastAPI) -> None:
    @app.on_event("startup")
    def _create_tables() -> None:
        Base.metadata.create_all(bind=engine)

        # Lightweight migration: add missing columns that we depend on
        with engine.begin() as conn:
            inspector = inspect(conn)
            if "download_statistics" in inspector.get_table_names():
                stat_columns = {col["name"] for col in inspector.get_columns("download_statistics")}
                if "country_code" not in stat_columns:
                    logger.info("Adding download_statistics.country_code column")
                    conn.execute(text("ALTER TABLE download_statistics ADD COLUMN country_code VARCHAR(8)"))
            if "software_versions" in inspector.get_table_names():
                version_columns = {col["name"] for col in inspector.get_columns("software_versions")}
                if "storage_key" not in version_columns:
                    logger.info("Adding software_versions.storage_key column")
                    conn.execute(text("ALTER TABLE software_versions ADD COLUMN storage_key VARCHAR(512)"))
