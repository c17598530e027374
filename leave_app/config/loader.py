"""Configuration loader with layered parameter precedence."""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .defaults import (
    DirectoryParams,
    LeaveAppConfig,
    LoggingParams,
    MessageParams,
    SchedulerParams,
    StoreParams,
    TimeParams,
    get_default_config,
)

# Environment variable -> (section, key, converter)
ENV_OVERRIDES: dict[str, tuple[str, str, Any]] = {
    "LEAVE_GUILD_ID": ("directory", "guild_id", str),
    "LEAVE_MARKER_ROLE_ID": ("directory", "marker_role_id", str),
    "LEAVE_API_BASE_URL": ("directory", "api_base_url", str),
    "LEAVE_TIMEZONE": ("time", "timezone", str),
    "LEAVE_DB_PATH": ("store", "db_path", str),
    "LEAVE_SWEEP_INTERVAL": ("scheduler", "sweep_interval_seconds", float),
    "LEAVE_BATCH_SIZE": ("scheduler", "batch_size", int),
    "LEAVE_LOG_LEVEL": ("logging", "level", str),
}

SECTION_TYPES = {
    "scheduler": SchedulerParams,
    "directory": DirectoryParams,
    "time": TimeParams,
    "store": StoreParams,
    "messages": MessageParams,
    "logging": LoggingParams,
}


@dataclass(frozen=True)
class ConfigLoader:
    """Manages configuration loading with layered precedence."""

    config_path: Path
    defaults: LeaveAppConfig
    environ: Mapping[str, str] = field(default_factory=lambda: os.environ)

    @classmethod
    def create(
        cls,
        config_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None
    ) -> "ConfigLoader":
        """Create a ConfigLoader instance."""
        if config_path is None:
            config_path = Path(
                os.environ.get("LEAVE_CONFIG",
                               Path(__file__).parent.parent.parent / "config" / "leave.yaml")
            )

        return cls(
            config_path=Path(config_path),
            defaults=get_default_config(),
            environ=os.environ if environ is None else environ,
        )

    def load_file_config(self) -> dict[str, Any]:
        """Load overrides from the YAML file, if present."""
        if not self.config_path.exists():
            return {}

        with open(self.config_path) as f:
            file_config = yaml.safe_load(f)

        return file_config or {}

    def load_env_config(self) -> dict[str, Any]:
        """Collect overrides from ``LEAVE_*`` environment variables."""
        config: dict[str, Any] = {}
        for name, (section, key, convert) in ENV_OVERRIDES.items():
            raw = self.environ.get(name)
            if raw is None or raw == "":
                continue
            try:
                value = convert(raw)
            except ValueError:
                # Left as text so the validator reports it
                value = raw
            config.setdefault(section, {})[key] = value
        return config

    def merge_config(self, overrides: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """
        Merge configuration layers.

        Priority order:
        1. Explicit overrides (highest priority)
        2. Environment variables
        3. YAML config file
        4. Defaults (lowest priority)
        """
        config = self._dataclass_to_dict(self.defaults)
        config = self._deep_merge(config, self.load_file_config())
        config = self._deep_merge(config, self.load_env_config())

        if overrides:
            config = self._deep_merge(config, overrides)

        return config

    def build(self, overrides: Optional[dict[str, Any]] = None) -> LeaveAppConfig:
        """Merge all layers and build a typed configuration."""
        return config_from_dict(self.merge_config(overrides))

    def get_token(self, config: LeaveAppConfig) -> Optional[str]:
        """Read the bot token from the environment variable named in config."""
        return self.environ.get(config.directory.token_env)

    def _dataclass_to_dict(self, obj: Any) -> dict[str, Any]:
        """Convert nested dataclasses to dictionary."""
        if hasattr(obj, '__dataclass_fields__'):
            result = {}
            for field_name in obj.__dataclass_fields__:
                value = getattr(obj, field_name)
                if hasattr(value, '__dataclass_fields__'):
                    result[field_name] = self._dataclass_to_dict(value)
                else:
                    result[field_name] = value
            return result
        return obj  # type: ignore[no-any-return]

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result


def config_from_dict(config: dict[str, Any]) -> LeaveAppConfig:
    """Build a ``LeaveAppConfig`` from a merged dict, ignoring unknown keys."""
    sections = {}
    for name, section_type in SECTION_TYPES.items():
        values = config.get(name) or {}
        known = {f.name for f in fields(section_type)}
        sections[name] = section_type(**{k: v for k, v in values.items() if k in known})
    return LeaveAppConfig(**sections)
