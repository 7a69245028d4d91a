"""
Configuration loader for VibeSnap.

This module provides user configuration management with:
- A TOML configuration file (default ~/.vibesnap/config.toml)
- Schema validation through pydantic
- Typed get/set of individual keys for the `config` command
- A closed, typed bag for keys the schema does not know
"""

import os
from pathlib import Path
from typing import Optional, Dict, Any, Union
from datetime import datetime
import toml
from pydantic import (
    BaseModel,
    Field,
    field_validator,
    model_validator,
    ValidationError,
    ConfigDict,
    StrictBool,
    StrictInt,
    StrictFloat,
    StrictStr,
)

from .logging import get_logger
from .errors import ConfigurationError


logger = get_logger("vibesnap.config")

CONFIG_ENV_VAR = "VIBESNAP_CONFIG"

# Values stored under unknown keys. bool comes first so True is not read as 1.
ExtraValue = Union[StrictBool, StrictInt, StrictFloat, StrictStr]


class VibeConfig(BaseModel):
    """User-level VibeSnap configuration."""
    user: str = "anonymous"
    auto_note_format: str = "Auto-snap by {user} at {timestamp}"
    show_progress: bool = False
    default_track: str = "main"
    watch_interval_minutes: int = 5
    watch_enabled: bool = False
    extra: Dict[str, ExtraValue] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def collect_extra(cls, data: Any) -> Any:
        """Move keys the schema does not know into ``extra``."""
        if not isinstance(data, dict):
            return data
        known = set(cls.model_fields)
        data = dict(data)
        extra = dict(data.pop("extra", None) or {})
        for key in [k for k in data if k not in known]:
            extra[key] = data.pop(key)
        data["extra"] = extra
        return data

    @field_validator("watch_interval_minutes")
    @classmethod
    def validate_interval(cls, v):
        if v < 1:
            raise ValueError("watch_interval_minutes must be at least 1")
        return v

    @field_validator("default_track")
    @classmethod
    def validate_default_track(cls, v):
        if not v or any(ch.isspace() for ch in v):
            raise ValueError(f"Invalid track name: {v!r}")
        return v

    def format_auto_note(self, now: Optional[datetime] = None) -> str:
        """Expand the ``{user}`` and ``{timestamp}`` tokens of the note template."""
        stamp = (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
        return self.auto_note_format.replace("{user}", self.user).replace("{timestamp}", stamp)

    def should_show_progress(self, cli_flag: bool = False) -> bool:
        return cli_flag or self.show_progress

    def to_toml_dict(self) -> Dict[str, Any]:
        """Flatten ``extra`` back to top-level keys, as written on disk."""
        data = self.model_dump(exclude={"extra"})
        data.update(self.extra)
        return data


def default_config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".vibesnap" / "config.toml"


def _coerce_extra(value: str) -> ExtraValue:
    """Convert a command-line string to bool, int, float or str."""
    lowered = value.lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return value


class ConfigLoader:
    """Reads and writes the VibeSnap configuration file."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else default_config_path()

    def load(self) -> VibeConfig:
        """
        Load configuration.

        A missing file yields the defaults; an unreadable or invalid file
        raises ConfigurationError.
        """
        if not self.path.exists():
            return VibeConfig()

        try:
            data = toml.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, toml.TomlDecodeError) as e:
            raise ConfigurationError(f"Could not read {self.path}: {e}") from e

        try:
            config = VibeConfig(**data)
        except ValidationError as e:
            errors = []
            for error in e.errors():
                field = ".".join(str(x) for x in error["loc"])
                errors.append(f"{field}: {error['msg']}")
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}"
            ) from e

        logger.debug("configuration_loaded", path=str(self.path))
        return config

    def save(self, config: VibeConfig) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(toml.dumps(config.to_toml_dict()), encoding="utf-8")
        logger.debug("configuration_saved", path=str(self.path))

    def get(self, key: str) -> Any:
        config = self.load()
        if key in VibeConfig.model_fields and key != "extra":
            return getattr(config, key)
        if key in config.extra:
            return config.extra[key]
        raise ConfigurationError(f"Unknown configuration key: {key}")

    def set(self, key: str, value: str) -> VibeConfig:
        """
        Set a key from its string form and persist.

        Known keys are validated against the schema; unknown keys are stored
        in ``extra`` as bool, int, float or string.
        """
        config = self.load()
        data = config.model_dump()
        if key in VibeConfig.model_fields and key != "extra":
            data[key] = value
        else:
            data["extra"][key] = _coerce_extra(value)

        try:
            config = VibeConfig(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid value for {key}: {value}") from e

        self.save(config)
        return config

    def reset(self) -> VibeConfig:
        config = VibeConfig()
        self.save(config)
        return config


def load_config(path: Optional[Path] = None) -> VibeConfig:
    """Load configuration from ``path`` or the default location."""
    return ConfigLoader(path).load()


__all__ = [
    'VibeConfig',
    'ConfigLoader',
    'ExtraValue',
    'default_config_path',
    'load_config',
]
