from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AnyHttpUrl, Field

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost",
    "http://127.0.0.1",
    "http://localhost:5173",
    "http://localhost:3000",
]

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="allow",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    server_name: str = Field(default="PopUI", validation_alias="POPUI_SERVER_NAME")
    host: str = Field(default="127.0.0.1", validation_alias="HOST")
    port: int = Field(default=3001, validation_alias="PORT")

    # --- Backing store (shared with the upload endpoints) ---
    uploads_dir: str = Field(default="data/uploads", validation_alias="UPLOADS_DIR")
    surface_suffix: str = Field(default=".tsx", validation_alias="SURFACE_SUFFIX")
    max_upload_bytes: int = Field(default=50 * 1024 * 1024, validation_alias="MAX_UPLOAD_BYTES")

    # --- Renderer ---
    renderer_url: AnyHttpUrl = Field(default="http://localhost:3210", validation_alias="RENDERER_URL")
    renderer_timeout: float = Field(default=10.0, validation_alias="RENDERER_TIMEOUT")
    # Extra attempts for idempotent renderer calls (GET, PUT)
    renderer_retries: int = Field(default=2, validation_alias="RENDERER_RETRIES")

    # --- SSE transport ---
    sse_heartbeat_interval: float = Field(default=15.0, validation_alias="SSE_HEARTBEAT_INTERVAL")
    # Route messages without a usable session id to the first open session
    session_fallback_enabled: bool = Field(default=True, validation_alias="SESSION_FALLBACK_ENABLED")

    # --- CORS ---
    cors_allowed_origins: str = Field(default=",".join(DEFAULT_ALLOWED_ORIGINS), validation_alias="CORS_ALLOWED_ORIGINS")

    # --- Logging ---
    log_dir: str = Field(default="logs", validation_alias="LOG_DIR")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    file_logging_enabled: bool = Field(default=True, validation_alias="FILE_LOGGING_ENABLED")

@lru_cache
def get_settings() -> Settings:
    return Settings()
