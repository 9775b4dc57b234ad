from pydantic import Field, field_validator, ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path
from typing import Optional, Any, List

env_path = Path(__file__).parent / ".env"

class Settings(BaseSettings):
    DB_USER: str = "user"
    DB_PASSWORD: str = "password"
    DB_SERVER: str = "localhost"
    DB_NAME: str = "nursing_archive"
    DATABASE_URL: Optional[str] = Field(default=None, validate_default=True)

    NAS_HOST: str = "0.0.0.0"
    NAS_PORT: int = 8003
    LOG_LEVEL: str = "INFO"

    UPLOAD_PATH: Path = Path("./uploads/nursing-archive")
    MAX_FILE_SIZE_MB: int = 50
    MAX_FILES_PER_UPLOAD: int = 10
    ALLOWED_MIME_TYPES: List[str] = [
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "image/jpeg",
        "image/png",
        "text/plain",
    ]

    SCAN_SERVICE_URL: Optional[str] = None
    SCAN_TIMEOUT_SECONDS: float = 10.0

    SEED_DEFAULT_CATEGORIES: bool = True

    model_config = SettingsConfigDict(env_file=env_path, env_file_encoding='utf-8', extra='ignore')

    @field_validator('DATABASE_URL', mode='before')
    @classmethod
    def assemble_database_url(cls, v: Optional[str], info: ValidationInfo) -> Any:
        if isinstance(v, str) and v:
            return v

        user = info.data.get('DB_USER', "user")
        password = info.data.get('DB_PASSWORD', "password")
        server = info.data.get('DB_SERVER', "localhost")
        name = info.data.get('DB_NAME', "nursing_archive")
        return f"postgresql+asyncpg://{user}:{password}@{server}/{name}"

    @property
    def max_file_size_bytes(self) -> int:
        return self.MAX_FILE_SIZE_MB * 1024 * 1024

settings = Settings()
