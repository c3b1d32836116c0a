"""Configuration management using pydantic-settings."""

import warnings
from pathlib import Path
from typing import Any, Literal, Tuple, Type

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from streamkeeper.exceptions import ConfigurationError

_YAML_SECTIONS: dict[str, dict[str, str]] = {
    "query": {
        "stop_timeout_seconds": "stop_timeout_seconds",
        "stop_poll_interval_seconds": "stop_poll_interval_seconds",
        "default_trigger_interval": "default_trigger_interval",
    },
    "checkpoint": {
        "min_batches_to_retain": "min_batches_to_retain",
    },
    "progress": {
        "history_size": "progress_history_size",
        "store_path": "progress_store_path",
        "flush_count": "progress_flush_count",
        "falling_behind_factor": "falling_behind_factor",
        "stall_intervals": "stall_intervals",
    },
    "logging": {
        "level": "log_level",
        "format": "log_format",
    },
}


def default_config_path() -> Path:
    return Path.home() / ".streamkeeper" / "config.yaml"


def load_yaml_config(config_path: Path | None = None) -> dict[str, Any]:
    """
    Load configuration from YAML file.

    The file mirrors the settings layout with one mapping per section
    (``query``, ``checkpoint``, ``progress``, ``logging``); unknown sections
    and keys are ignored.

    Args:
        config_path: Config file given explicitly; defaults to
            ~/.streamkeeper/config.yaml

    Returns:
        Dictionary of configuration values (flattened from nested YAML)

    Raises:
        ConfigurationError: If an explicitly given file cannot be parsed. A
            broken default file only produces a warning.
    """
    explicit = config_path is not None
    path = config_path if explicit else default_config_path()

    if not path.exists():
        return {}

    try:
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        if not isinstance(yaml_data, dict):
            raise ValueError("top level must be a mapping")
    except (OSError, yaml.YAMLError, ValueError) as e:
        if explicit:
            raise ConfigurationError(
                f"Failed to load config from {path}: {e}", path=str(path)
            ) from e
        warnings.warn(f"Failed to load config from {path}: {e}")
        return {}

    flattened = {}
    for section, keys in _YAML_SECTIONS.items():
        values = yaml_data.get(section)
        if not isinstance(values, dict):
            continue
        for yaml_key, field_name in keys.items():
            if yaml_key in values:
                flattened[field_name] = values[yaml_key]

    return flattened


_config_path: Path | None = None


class YamlSettingsSource(PydanticBaseSettingsSource):
    """
    Custom settings source that loads configuration from YAML file.

    This allows YAML config to be loaded with proper priority in the settings chain.
    """

    def get_field_value(self, field: Any, field_name: str) -> Tuple[Any, str, bool]:
        """Not used since we override __call__."""
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        return load_yaml_config(_config_path)


class Settings(BaseSettings):
    """
    streamkeeper configuration settings.

    Configuration priority (highest to lowest):
    1. Environment variables (e.g., STOP_TIMEOUT_SECONDS=120)
    2. YAML configuration file (~/.streamkeeper/config.yaml)
    3. Default values defined in this class
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    stop_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="How long to wait for a running micro-batch before stopping",
    )
    stop_poll_interval_seconds: float = Field(
        default=0.5,
        gt=0,
        description="Poll interval while waiting for a micro-batch to finish",
    )
    default_trigger_interval: str = Field(
        default="0 seconds",
        description="Trigger interval assumed when a query does not report one",
    )

    min_batches_to_retain: int = Field(
        default=100,
        ge=1,
        description="Committed batches kept by checkpoint purge",
    )

    progress_history_size: int = Field(
        default=1000,
        ge=1,
        description="Progress records kept in memory per tracker",
    )
    progress_store_path: Path = Field(
        default=Path("~/.streamkeeper/progress"),
        description="Directory for Parquet progress history",
    )
    progress_flush_count: int = Field(
        default=100,
        ge=1,
        description="Progress records buffered before writing a Parquet file",
    )
    falling_behind_factor: float = Field(
        default=1.5,
        ge=1.0,
        description="Input/processed rate ratio that marks a query as falling behind",
    )
    stall_intervals: int = Field(
        default=10,
        ge=1,
        description="Trigger intervals without an executed batch before a query is stalled",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="text", description="Log format"
    )

    @field_validator("progress_store_path")
    @classmethod
    def validate_paths(cls, v: Path) -> Path:
        """Ensure paths are absolute."""
        if not v.is_absolute():
            v = v.expanduser().resolve()
        return v

    @field_validator("default_trigger_interval")
    @classmethod
    def validate_trigger_interval(cls, v: str) -> str:
        """Reject trigger intervals that cannot be parsed."""
        from streamkeeper.trigger import parse_interval

        parse_interval(v)
        return v

    @property
    def default_trigger_seconds(self) -> float:
        """Get the default trigger interval in seconds."""
        from streamkeeper.trigger import parse_interval

        return parse_interval(self.default_trigger_interval)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """
        Customize settings sources priority.

        Priority order (highest to lowest):
        1. Explicit kwargs (init_settings) - for testing and programmatic config
        2. Environment variables
        3. YAML configuration file
        4. .env file
        5. Field defaults
        """
        return (
            init_settings,
            env_settings,
            YamlSettingsSource(settings_cls),
            dotenv_settings,
        )


_settings: Settings | None = None


def get_settings(config_path: Path | None = None, reload: bool = False) -> Settings:
    """
    Get global settings instance.

    Configuration loading order (highest to lowest priority):
    1. Environment variables
    2. YAML configuration file (~/.streamkeeper/config.yaml)
    3. .env file
    4. Default values defined in Settings class

    Args:
        config_path: Optional path to YAML config file (defaults to ~/.streamkeeper/config.yaml)
        reload: If True, force reload settings (useful for testing)

    Returns:
        Settings instance with merged configuration

    Raises:
        ConfigurationError: If the config file or a setting is invalid
    """
    global _settings, _config_path
    if _settings is None or reload:
        _config_path = config_path
        try:
            _settings = Settings()
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
    return _settings


def reset_settings() -> None:
    """Reset settings singleton (useful for testing)."""
    global _settings
    _settings = None
