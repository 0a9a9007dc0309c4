from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    debug_logging: bool = Field(default=False, alias="READER_DEBUG_LOGGING")
    log_level: str = Field(default="INFO", alias="READER_LOG_LEVEL")

    restore_debounce_ms: int = Field(default=300, ge=0, alias="READER_RESTORE_DEBOUNCE_MS")
    restore_retry_delay_s: float = Field(default=1.0, ge=0, alias="READER_RESTORE_RETRY_DELAY_S")

    store_path: str = Field(default="enhanced-reader-highlights.json", alias="READER_STORE_PATH")

    inline_stylesheets: bool = Field(default=True, alias="READER_INLINE_STYLESHEETS")
    remove_scripts: bool = Field(default=True, alias="READER_REMOVE_SCRIPTS")
    strip_blob_urls: bool = Field(default=True, alias="READER_STRIP_BLOB_URLS")
    fetch_timeout_s: float = Field(default=10.0, gt=0, alias="READER_FETCH_TIMEOUT_S")

    search_result_limit: int = Field(default=100, ge=1, alias="READER_SEARCH_RESULT_LIMIT")

    @property
    def restore_debounce_s(self) -> float:
        return self.restore_debounce_ms / 1000.0


def load_settings() -> Settings:
    return Settings()
