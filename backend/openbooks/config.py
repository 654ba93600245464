"""
OpenBooks Backend — Application Configuration
=============================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by every module that needs configuration values.
When:  Loaded once at module import time; validated before app starts.

Provider switches:
    DB_PROVIDER       file | cosmos       (default: file)
    STORAGE_PROVIDER  local | azureblob   (default: local)

Connection parameters for the Cosmos and Blob providers are optional here.
The backends themselves raise ConfigurationError at construction when the
selected provider is missing what it needs.
"""

from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes are grouped by concern for readability.
    """

    # ── Providers ─────────────────────────────────────────────────────────
    db_provider: str = Field(default="file")
    storage_provider: str = Field(default="local")

    @field_validator("db_provider")
    @classmethod
    def validate_db_provider(cls, v: str) -> str:
        """Only the JSON file and Cosmos DB backends exist."""
        lower = v.strip().lower()
        if lower not in {"file", "cosmos"}:
            raise ValueError(f"Invalid db_provider '{v}'. Must be 'file' or 'cosmos'")
        return lower

    @field_validator("storage_provider")
    @classmethod
    def validate_storage_provider(cls, v: str) -> str:
        """Only local disk and Azure Blob uploads exist."""
        lower = v.strip().lower()
        if lower not in {"local", "azureblob"}:
            raise ValueError(
                f"Invalid storage_provider '{v}'. Must be 'local' or 'azureblob'"
            )
        return lower

    # ── JSON File Backend ─────────────────────────────────────────────────
    # The document lives at <data_dir>/db.json
    data_dir: str = Field(default="./data")

    @property
    def db_file(self) -> Path:
        return Path(self.data_dir) / "db.json"

    # ── Cosmos DB Backend ─────────────────────────────────────────────────
    # Either the connection string, or endpoint + key.
    cosmos_connection_string: Optional[str] = Field(default=None)
    cosmos_endpoint: Optional[str] = Field(default=None)
    cosmos_key: Optional[str] = Field(default=None)
    cosmos_db_name: str = Field(default="openbooksdb")
    cosmos_container: str = Field(default="openbooks")

    # ── Uploads ───────────────────────────────────────────────────────────
    upload_dir: str = Field(default="./uploads")
    azure_storage_connection_string: Optional[str] = Field(default=None)
    azure_blob_container: str = Field(default="openbooks-media")

    # 6MB, same ceiling for both upload providers
    max_upload_size: int = Field(default=6 * 1024 * 1024, ge=1024, le=52_428_800)

    # ── Startup Readiness ─────────────────────────────────────────────────
    # Requests arriving before the aggregate is loaded are held for at most
    # ready_wait_attempts * ready_wait_interval seconds, then rejected (503).
    ready_wait_attempts: int = Field(default=50, ge=0, le=1000)
    ready_wait_interval: float = Field(default=0.02, gt=0, le=5)

    # ── CORS ──────────────────────────────────────────────────────────────
    cors_origins: str = Field(default="*")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=3000, ge=1024, le=65535)

    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


settings = Settings()
