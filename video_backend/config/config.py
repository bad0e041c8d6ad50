from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    HOST: str = "0.0.0.0"
    PORT: int = 8080
    LOG_LEVEL: str = "INFO"

    UPLOAD_DIR: str = "uploads"
    PART_INDEX_WIDTH: int = 5

    FFPROBE_PATH: str = "ffprobe"
    PROBE_TIMEOUT: float = 30.0

    MAX_FILESIZE: int = 4 * 1024 * 1024 * 1024  # 4GB
    MAX_CHUNK_SIZE: int = 20 * 1024 * 1024  # 20MB
    CHUNK_TTL: int = 86400  # 1 day in seconds
    MERGING_CHUNK_SIZE: int = 5 * 1024 * 1024  # 5MB blocks when merging parts

    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379

    ALLOW_ORIGINS: List[str] = ["http://localhost:5173"]
    # requests other than /api/upload carry no file body
    MAX_CONTENT_LENGTH: int = 1024 * 1024
    MULTIPART_OVERHEAD: int = 1024 * 1024


settings = Settings()
