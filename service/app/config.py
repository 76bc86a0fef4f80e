from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Telegram
    bot_token: str
    webhook_secret: str = ""  # Optional: for webhook verification
    domain: str = ""  # Public base URL, webhook is registered only when set

    # Cloud storage backend
    cloud_storage_api_url: str = "http://localhost:7002"
    bot_api_key: str = ""
    http_timeout_seconds: float = 60.0

    # Server
    port: int = 3000

    # Environment
    environment: str = "development"

    # Upload policy (Telegram Bot API getFile limit)
    max_file_size_bytes: int = 20 * 1024 * 1024
    # Multipart upload through the backend instead of a presigned URL
    legacy_upload_enabled: bool = False

    # Bot behaviour
    dedup_capacity: int = 1000
    links_page_size: int = 5

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
