"""Configuration management for edfplus."""

import logging
import os
import tomllib

from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator

from edfplus.constants import (
    CONFIG_ENV_VAR,
    DEFAULT_ANNOTATION_SAMPLES,
    DEFAULT_CONFIG_DIR,
    DEFAULT_CONFIG_FILE,
    DEFAULT_LOG_BACKUP_COUNT,
    DEFAULT_LOG_DIR,
    DEFAULT_VERSION,
)

logger = logging.getLogger(__name__)

SectionT = TypeVar("SectionT", bound=BaseModel)


class WriterDefaults(BaseModel):
    """Defaults applied when building headers for new files."""

    annotation_samples_per_record: int = Field(
        default=DEFAULT_ANNOTATION_SAMPLES,
        gt=0,
        description="Size of the EDF Annotations channel in samples (2 bytes each)",
    )
    version: str = Field(
        default=DEFAULT_VERSION, max_length=8, description="Header version field"
    )


class LoggingSettings(BaseModel):
    """The [logging] table: rotating log file options."""

    enabled: bool = Field(default=True, description="Write a rotating log file")
    level: str = Field(default="DEBUG", description="Log file level")
    log_dir: Path = Field(default=DEFAULT_LOG_DIR, description="Directory for edfplus.log")
    max_size_mb: float = Field(default=10, gt=0, description="Rotate after this many MB")
    backup_count: int = Field(default=DEFAULT_LOG_BACKUP_COUNT, ge=0)

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level '{value}'")
        return level


def get_config_path() -> Path:
    """
    Get the path to the configuration file.

    Returns:
        $EDFPLUS_CONFIG if set, otherwise ~/.edfplus/config.toml
    """
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILE


def load_config() -> dict[str, Any]:
    """
    Load configuration from TOML file.

    Returns:
        Configuration dictionary. Returns empty dict if file doesn't exist
        or is corrupted.
    """
    config_path = get_config_path()

    if not config_path.exists():
        return {}

    try:
        with open(config_path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Failed to load config from {config_path}: {e}")
        logger.warning("Treating config as empty. Fix or delete the file to resolve.")
        return {}


def _load_section(name: str, model: type[SectionT]) -> SectionT:
    """Validate one config table, falling back to the model defaults."""
    section = load_config().get(name, {})
    if not isinstance(section, dict):
        logger.warning(f"Config [{name}] must be a table; using defaults")
        return model()

    try:
        return model(**section)
    except ValidationError as e:
        logger.warning(f"Invalid [{name}] config, using defaults: {e}")
        return model()


def get_writer_defaults() -> WriterDefaults:
    """
    Get writer defaults from the [writer] table of the config file.

    Invalid values are reported and replaced by the built-in defaults.
    """
    return _load_section("writer", WriterDefaults)


def get_logging_settings() -> LoggingSettings:
    """Get log file settings from the [logging] table of the config file."""
    return _load_section("logging", LoggingSettings)
