"""
Application configuration.

Values are read from environment variables, after ``python-dotenv``
has loaded any ``.env`` file in the working directory.  Defaults are
suitable for local development with the in-memory storage backend.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "MemoryLane API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # JWT settings
    secret_key: str = os.getenv("SECRET_KEY", "temporary_dev_secret")
    algorithm: str = os.getenv("ALGORITHM", "HS256")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 30)))

    # "memory" keeps everything in process; "database" uses DATABASE_URL.
    storage_backend: str = os.getenv("STORAGE_BACKEND", "memory")
    database_url: str = os.getenv("DATABASE_URL", "")

    upload_dir: str = os.getenv("UPLOAD_DIR", "uploads")
    max_upload_bytes: int = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))
    max_upload_files: int = int(os.getenv("MAX_UPLOAD_FILES", "5"))
    # Prefix for uploaded file URLs; the request's base URL is used when empty.
    public_base_url: str = os.getenv("PUBLIC_BASE_URL", "")

    cors_origins: str = os.getenv("CORS_ORIGINS", "*")

    @property
    def cors_origin_list(self):
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
