# src/config/settings.py — v2
"""Typed configuration loaded from environment / .env via pydantic-settings.

Single source of truth for batch defaults, output write policy and logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from docflow.logging.handlers import parse_size


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Batch / job pool ===
    batch_max_concurrency: int = 4
    batch_default_format: Literal["text", "json", "csv", "html", "markdown"] = "text"
    batch_default_operation: str = "file_info"
    batch_timeout_seconds: float | None = None

    # Base directory for relative file paths handed to batch_analyze
    package_directory: str = ""

    # === Workflow ===
    write_policy: Literal["idempotent", "overwrite"] = "idempotent"
    report_format: Literal["markdown", "json"] = "markdown"

    # Extra operations: comma-separated "module.attr" or "name=module.attr"
    operation_modules: str = ""

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("log_retention")
    @classmethod
    def validate_log_retention(cls, v: int) -> int:
        if v < 0:
            raise ValueError("log_retention must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.batch_timeout_seconds is not None and self.batch_timeout_seconds <= 0:
            errors.append("BATCH_TIMEOUT_SECONDS must be > 0 when set")

        try:
            parse_size(self.log_rotation)
        except ValueError as exc:
            errors.append(f"LOG_ROTATION: {exc}")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def operation_modules_list(self) -> list[str]:
        """Parse comma-separated operation import paths."""
        return [m.strip() for m in self.operation_modules.split(",") if m.strip()]

    @property
    def package_directory_path(self) -> Path | None:
        """Return the package directory as a Path, or None when unset."""
        if not self.package_directory.strip():
            return None
        return Path(self.package_directory).expanduser()


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-run config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
