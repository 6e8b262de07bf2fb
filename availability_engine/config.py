"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.exceptions import InputError
from .domain.slot_calculator import SlotCalculator
from .domain.timezones import TimezoneOffset


class StoreConfig(BaseModel):
    """Where appointments, providers and services are read from."""
    backend: Literal["memory", "http"] = "memory"
    data_file: Optional[Path] = None
    base_url: Optional[str] = None
    api_token: Optional[str] = None
    timeout_seconds: float = 10

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        """Ensure the request timeout is positive."""
        if value <= 0:
            raise ValueError("timeout_seconds must be greater than zero")
        return value

    @model_validator(mode="after")
    def validate_backend_settings(self) -> "StoreConfig":
        """Ensure the http backend knows where to connect."""
        if self.backend == "http" and not self.base_url:
            raise ValueError("base_url is required for the http store backend")
        return self


class EngineConfig(BaseModel):
    """Application configuration."""
    book_advance_timeout: int = 30  # minutes
    flexible_step_minutes: int = 5
    multi_attendant_step_minutes: int = 15
    default_timezone: str = "+00:00"
    log_level: str = "WARNING"
    store: StoreConfig = Field(default_factory=StoreConfig)

    @field_validator("book_advance_timeout")
    @classmethod
    def validate_lead_time(cls, value: int) -> int:
        """Ensure the lead time is not negative."""
        if value < 0:
            raise ValueError("book_advance_timeout must not be negative")
        return value

    @field_validator("flexible_step_minutes", "multi_attendant_step_minutes")
    @classmethod
    def validate_step(cls, value: int) -> int:
        """Ensure slot steps are positive."""
        if value <= 0:
            raise ValueError("Slot step must be greater than zero")
        return value

    @field_validator("default_timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the default timezone is a valid offset string."""
        try:
            return str(TimezoneOffset.parse(value))
        except InputError as exc:
            raise ValueError(str(exc)) from exc

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    def build_slot_calculator(self) -> SlotCalculator:
        """Create a calculator using the configured steps and lead time."""
        return SlotCalculator(
            flexible_step_minutes=self.flexible_step_minutes,
            multi_attendant_step_minutes=self.multi_attendant_step_minutes,
            book_advance_timeout=self.book_advance_timeout,
        )

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "EngineConfig":
        """
        Load configuration from YAML file.

        A relative ``store.data_file`` is resolved against the directory of
        the config file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            EngineConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        config = cls(**data)

        data_file = config.store.data_file
        if data_file is not None and not data_file.is_absolute():
            config.store.data_file = config_path.parent / data_file

        return config


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
