"""Environment-based application settings."""

from __future__ import annotations

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Reads from .env file and ``DOC_DOCTOR_*`` environment variables."""

    # Logging
    log_level: str = "INFO"

    # Decoding
    strict: bool = False

    # Calculation config layers
    user_config_path: Path = (
        Path.home() / ".config" / "doc-doctor" / "config.yaml"
    )
    project_config_name: str = ".doc-doctor.yaml"

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_level(cls, v: object) -> object:
        if isinstance(v, str):
            v = v.strip().upper()
            if v not in _LOG_LEVELS:
                raise ValueError(
                    f"log_level must be one of {', '.join(_LOG_LEVELS)}"
                )
        return v

    def project_config_path(self, project_root: Path) -> Path:
        return project_root / self.project_config_name

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "DOC_DOCTOR_",
        "extra": "ignore",
    }
