from datetime import datetime, timezone
from functools import lru_cache
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from dotenv import load_dotenv
load_dotenv()


class Settings(BaseSettings):
	# App
	APP_NAME: str = "Listing API"
	APP_VERSION: str = "1.0.0"
	API_V1_PREFIX: str = "/api/v1"
	DEBUG: bool = False
	ENVIRONMENT: str = "development" # development, staging, production
	LOG_LEVEL: str = "INFO"
	# "semantic" maps each error code to its own status, "legacy" answers every error with 500
	ERROR_STATUS_MODE: Literal["semantic", "legacy"] = "semantic"

	# Server
	PORT: int = 8000
	WORKERS: int = 4

	# Document store
	DOCUMENT_STORE_BACKEND: Literal["sql", "memory"] = "sql"
	DATABASE_URL: str = "sqlite+aiosqlite:///./listings.db"
	DB_POOL_SIZE: int = 20
	DB_MAX_OVERFLOW: int = 40
	DB_POOL_PRE_PING: bool = True
	DB_ECHO: bool = False
	AUTO_CREATE_TABLES: bool = True
	TRANSACTION_MAX_ATTEMPTS: int = 5

	# Object storage
	OBJECT_STORE_BACKEND: Literal["s3", "memory"] = "memory"
	S3_ENDPOINT_URL: Optional[str] = None
	AWS_ACCESS_KEY_ID: Optional[str] = None
	AWS_SECRET_ACCESS_KEY: Optional[str] = None
	S3_BUCKET_NAME: str = "listing-photos"
	S3_REGION: str = "us-east-1"
	SIGNED_URL_EXPIRES_AT: datetime = datetime(2030, 12, 31, tzinfo=timezone.utc)
	EMIT_FINALIZE_EVENTS: bool = True
	MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10MB

	# Events
	EVENT_DISPATCH_MODE: Literal["local", "celery"] = "local"
	REDIS_URL: str = "redis://localhost:6379/0"
	FINALIZE_TASK_COUNTDOWN: int = 2

	# Thumbnails
	IMAGE_CONVERTER: Literal["pillow", "imagemagick"] = "pillow"
	IMAGEMAGICK_BINARY: str = "convert"
	THUMBNAIL_TMP_DIR: Optional[str] = None

	# Mail
	SMTP_HOST: str = "localhost"
	SMTP_PORT: int = 587
	SMTP_USERNAME: Optional[str] = None
	SMTP_PASSWORD: Optional[str] = None
	SMTP_USE_TLS: bool = True
	MAIL_FROM: str = "contacto@example.com"
	MAIL_TO: str = "ventas@example.com"

	# CORS
	CORS_ORIGINS: List[str] = ["*"]

	# Monitoring
	EXPOSE_METRICS: bool = True

	model_config = SettingsConfigDict(
		env_file=".env",
		env_file_encoding="utf-8",
		case_sensitive=True,
		extra="ignore",
	)


@lru_cache()
def get_settings() -> Settings:
	return Settings()


settings = get_settings()
