"""
Configuration management using Pydantic Settings
"""
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# config.py is at: backend/testpilot/core/config.py
# Project root is: backend/testpilot/core/../../../
_current_file = Path(__file__).resolve()
_backend_dir = _current_file.parent.parent.parent
_project_root = _backend_dir.parent
ENV_FILE = _project_root / ".env"
# Fallback: try in backend/ directory if not found in project root
if not ENV_FILE.exists():
    ENV_FILE = _backend_dir / ".env"
if ENV_FILE.exists():
    load_dotenv(ENV_FILE, override=False)


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "TestPilot Guard"
    environment: Optional[str] = Field(
        default=None,
        description="Target environment for test runs: 'staging' or 'production'"
    )
    environment_fallback: str = Field(
        default="staging",
        description="Environment used when ENVIRONMENT holds an unknown value"
    )
    allowed_origins: str = Field(
        default="http://localhost:8000",
        description="Allowed CORS origins (comma-separated)"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_module_levels: Optional[str] = Field(
        default=None,
        description='Module-specific log levels (JSON string, e.g., {"testpilot.api": "DEBUG"})'
    )
    log_format: str = Field(
        default="json",
        description="Log format: 'json' for structured logging, 'text' for plain text"
    )
    log_file_enabled: bool = Field(default=False, description="Enable file logging")
    log_file_path: str = Field(
        default="logs/testpilot.log",
        description="Path to log file (relative to project root)"
    )
    log_file_retention: int = Field(
        default=14,
        ge=1,
        description="Number of days to keep log files"
    )
    log_sensitive_data: bool = Field(
        default=False,
        description="Enable logging of sensitive data (card numbers, tokens) - NOT RECOMMENDED"
    )
    log_sqlalchemy: bool = Field(default=False, description="Enable SQLAlchemy query logging")

    # Database
    database_url: str = Field(
        default="sqlite:///./testpilot.db",
        description="SQLAlchemy database URL (used by the database quota backend)"
    )

    # Expensive path limits
    quota_backend: str = Field(
        default="memory",
        description="Quota storage: 'memory' (process-local) or 'database' (persisted)"
    )
    expensive_daily_limit: int = Field(
        default=50,
        ge=1,
        description="Maximum live checks per calendar day"
    )
    freshness_window_seconds: int = Field(
        default=300,
        ge=0,
        description="Age below which a cached live-check result is reused"
    )
    health_check_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="HTTP timeout for the live subscription page check"
    )

    @field_validator("quota_backend", "log_format", mode="before")
    @classmethod
    def normalize_choice(cls, v):
        """Lower-case enumerated string options"""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("quota_backend")
    @classmethod
    def validate_quota_backend(cls, v: str) -> str:
        if v not in ("memory", "database"):
            raise ValueError("quota_backend must be 'memory' or 'database'")
        return v

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
