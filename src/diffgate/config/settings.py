"""
Pydantic Settings Configuration
===============================

Type-safe configuration for the approval gate.
Validates all configuration values at startup and fails fast with clear error messages.
"""

from typing import Optional
from pathlib import Path
from importlib import metadata

from pydantic import BaseModel, Field, field_validator, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource
import yaml

from diffgate.core.exceptions import ConfigurationError


def _project_version() -> str:
    """Resolve the project version from package metadata."""
    try:
        return metadata.version("diffgate")
    except metadata.PackageNotFoundError:
        return "0.0.0-dev"


class MailboxConfig(BaseModel):
    """Mailbox polling configuration"""
    poll_interval: float = Field(0.1, gt=0, le=5, description="Seconds between checks for a response artifact")

    model_config = ConfigDict(extra='allow')


class ApprovalConfig(BaseModel):
    """Approval handshake configuration"""
    timeout_seconds: float = Field(60.0, gt=0, le=3600, description="Deadline for a reviewer decision")
    fingerprint_length: int = Field(16, ge=8, le=64, description="Hex characters kept from the change digest")
    sweep_stale_on_start: bool = Field(True, description="Remove abandoned mailbox artifacts when the server starts")

    model_config = ConfigDict(extra='allow')


class LoggingConfig(BaseModel):
    """Logging configuration"""
    level: str = Field("INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    format: str = Field("json", description="Log format (json, text)")
    output_file: Optional[Path] = Field(None, description="Log file path (stderr when unset)")

    @field_validator('level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level"""
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(sorted(valid_levels))}")
        return v_upper

    @field_validator('format')
    @classmethod
    def validate_format(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in {'json', 'text'}:
            raise ValueError("Log format must be 'json' or 'text'")
        return v_lower

    model_config = ConfigDict(extra='allow')


class Settings(BaseSettings):
    """
    Main application settings with type validation.

    Configuration is loaded from:
    1. Environment variables with DIFFGATE_ prefix (highest priority)
    2. YAML config file (if provided)
    3. Default values (fallback)

    The environment wins over the YAML file so that one shared config file
    can serve several editor sessions, each isolated by its own
    DIFFGATE_MAILBOX_DIR.

    Environment variable mapping uses double-underscore nesting:
      DIFFGATE_MAILBOX_DIR
      DIFFGATE_APPROVAL__TIMEOUT_SECONDS
      DIFFGATE_LOGGING__LEVEL
    """

    mailbox_dir: Optional[Path] = Field(None, description="Per-session mailbox directory override")
    mailbox: MailboxConfig = Field(default_factory=MailboxConfig)
    approval: ApprovalConfig = Field(default_factory=ApprovalConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    project_name: str = Field("diffgate", description="Project name")
    version: str = Field(default_factory=_project_version, description="Project version")

    model_config = ConfigDict(
        env_prefix='DIFFGATE_',
        env_nested_delimiter='__',
        extra='allow',
        validate_assignment=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> "Settings":
        """
        Load settings from a YAML file.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Settings instance with validated configuration

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If configuration is invalid
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables only."""
        return cls()

    def resolved_mailbox_dir(self) -> Path:
        """Mailbox directory after applying the override / per-user fallback."""
        from diffgate.approval.mailbox import resolve_mailbox_dir

        return resolve_mailbox_dir(self.mailbox_dir)


def load_settings(config_path: Optional[str | Path] = None) -> Settings:
    """
    Load and validate application settings.

    Args:
        config_path: Optional path to YAML config file

    Returns:
        Validated Settings instance

    Raises:
        ConfigurationError: If the file is missing or the configuration is invalid
    """
    try:
        if config_path:
            return Settings.from_yaml(config_path)
        return Settings.from_env()
    except FileNotFoundError as e:
        raise ConfigurationError(str(e)) from e
    except (PydanticValidationError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Configuration validation failed:\n{e}") from e


__all__ = [
    'Settings',
    'MailboxConfig',
    'ApprovalConfig',
    'LoggingConfig',
    'load_settings',
]
