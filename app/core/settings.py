from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True, case_sensitive=False)

    # App
    app_name: str = "Release Portal API"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./app.db"

    # Security
    access_token_secret: str = "dev-access-secret-change-me"
    refresh_token_secret: str = "dev-refresh-secret-change-me"
    jwt_algorithm: str = "HS256"
    access_token_expires_minutes: int = 15
    refresh_token_expires_days: int = 7

    # Cookies
    refresh_cookie_name: str = "refresh_token"
    refresh_cookie_path: str = "/auth/refresh"
    refresh_cookie_secure: bool = False
    refresh_cookie_samesite: str = "lax"

    # Object storage
    aws_region: str = "us-east-1"
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    s3_bucket_name: str = "software-releases"
    cdn_domain: Optional[str] = None
    storage_max_attempts: int = 3

    # Releases
    max_upload_size: int = 5 * 1024 * 1024 * 1024  # 5GB, single PUT limit
    allowed_upload_extensions: List[str] = [".exe", ".msi", ".zip"]
    use_presigned_urls: bool = False
    presigned_url_expiry_seconds: int = 3600
    download_filename_prefix: str = "setup"


settings = Settings()
