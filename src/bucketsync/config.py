from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_region: str = "us-east-1"
    s3_endpoint_url: Optional[str] = None  # MinIO or other S3-compatible hosts
    database_url: str = "sqlite:///./bucketsync.db"
    sync_check_interval_seconds: int = 60
    sync_tolerance_minutes: int = 5
    history_limit: int = 5
    auto_sync_enabled: bool = True
    default_local_folder: str = str(Path.home() / "Documents")
    log_file: str = ""  # empty: console only

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
