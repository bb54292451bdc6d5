"""
Configuration management for docversion.

Handles loading and managing configuration from files and environment
variables.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .core.exceptions import ValidationError


logger = logging.getLogger(__name__)

STORAGE_BACKENDS = ("memory", "file")


@dataclass
class VersioningConfig:
    """Business rules applied by the versioning service."""

    retention_limit: int = 100
    max_write_attempts: int = 3

    # Metadata bounds
    max_metadata_entries: int = 64
    max_metadata_key_length: int = 128
    max_metadata_value_length: int = 4096

    def validate(self) -> None:
        """Raise ValidationError when any setting is out of range."""
        for name in (
            "retention_limit",
            "max_write_attempts",
            "max_metadata_entries",
            "max_metadata_key_length",
            "max_metadata_value_length",
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValidationError(
                    f"{name} must be a positive integer",
                    details={"setting": name, "value": value},
                )


@dataclass
class StorageConfig:
    """Which persistence backend the CLI should open."""

    backend: str = "file"
    path: Path = field(default_factory=lambda: Path(".docversion"))


@dataclass
class DocVersionConfig:
    """Main configuration for docversion."""

    versioning: VersioningConfig = field(default_factory=VersioningConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    log_level: str = "WARNING"


def _parse_int(name: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be an integer", details={"value": value}) from e


def _section(override: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = override.get(name) or {}
    if not isinstance(section, dict):
        raise ValidationError(
            f"Config section '{name}' must be a mapping",
            details={"type": type(section).__name__},
        )
    return section


class ConfigManager:
    """Manages docversion configuration from multiple sources."""

    ENV_PREFIX = "DOCVERSION_"

    def __init__(self, config_file: Optional[Path] = None):
        self.config_dir = Path.home() / ".docversion"
        self.config_file = config_file or self.config_dir / "config.yaml"
        self._config: Optional[DocVersionConfig] = None

    def load_config(self) -> DocVersionConfig:
        """Load configuration from all sources."""
        if self._config:
            return self._config

        # Start with defaults
        config = DocVersionConfig()

        # Load from file if it exists
        if self.config_file.exists():
            config = self._merge_configs(config, self._load_from_file())

        # Override with environment variables
        config = self._merge_configs(config, self._load_from_env())

        config.versioning.validate()
        self._config = config
        return config

    def _load_from_file(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        try:
            with open(self.config_file, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not load config file {self.config_file}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring config file {self.config_file}: top level is not a mapping")
            return {}
        return data

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        env_config: Dict[str, Any] = {}

        for setting in (
            "retention_limit",
            "max_write_attempts",
            "max_metadata_entries",
            "max_metadata_key_length",
            "max_metadata_value_length",
        ):
            value = os.getenv(f"{self.ENV_PREFIX}{setting.upper()}")
            if value:
                env_config.setdefault("versioning", {})[setting] = _parse_int(setting, value)

        backend = os.getenv(f"{self.ENV_PREFIX}STORAGE_BACKEND")
        if backend:
            env_config.setdefault("storage", {})["backend"] = backend.lower()

        path = os.getenv(f"{self.ENV_PREFIX}STORAGE_PATH")
        if path:
            env_config.setdefault("storage", {})["path"] = path

        log_level = os.getenv(f"{self.ENV_PREFIX}LOG_LEVEL")
        if log_level:
            env_config["log_level"] = log_level.upper()

        return env_config

    def _merge_configs(self, base: DocVersionConfig, override: Dict[str, Any]) -> DocVersionConfig:
        """Merge an override dictionary into a config."""
        versioning = _section(override, "versioning")
        for key, value in versioning.items():
            if not hasattr(base.versioning, key):
                logger.warning(f"Ignoring unknown versioning setting: {key}")
                continue
            setattr(base.versioning, key, _parse_int(key, value))

        storage = _section(override, "storage")
        if "backend" in storage:
            backend = str(storage["backend"]).lower()
            if backend not in STORAGE_BACKENDS:
                raise ValidationError(
                    f"Unknown storage backend: {backend}",
                    details={"allowed": list(STORAGE_BACKENDS)},
                )
            base.storage.backend = backend
        if "path" in storage:
            base.storage.path = Path(storage["path"]).expanduser()

        if "log_level" in override:
            base.log_level = str(override["log_level"]).upper()

        return base

    def save_config(self, config: DocVersionConfig) -> None:
        """Save configuration to file."""
        self.config_file.parent.mkdir(parents=True, exist_ok=True)

        config_dict = {
            "versioning": {
                "retention_limit": config.versioning.retention_limit,
                "max_write_attempts": config.versioning.max_write_attempts,
                "max_metadata_entries": config.versioning.max_metadata_entries,
                "max_metadata_key_length": config.versioning.max_metadata_key_length,
                "max_metadata_value_length": config.versioning.max_metadata_value_length,
            },
            "storage": {
                "backend": config.storage.backend,
                "path": str(config.storage.path),
            },
            "log_level": config.log_level,
        }

        with open(self.config_file, "w") as f:
            yaml.dump(config_dict, f, default_flow_style=False, indent=2)
        self._config = config

    def create_default_config(self) -> None:
        """Create a default configuration file."""
        self.save_config(DocVersionConfig())
        logger.info(f"Created default configuration at {self.config_file}")

    def get_config_info(self) -> Dict[str, Any]:
        """Get information about current configuration."""
        config = self.load_config()

        return {
            "config_file": str(self.config_file),
            "config_exists": self.config_file.exists(),
            "retention_limit": config.versioning.retention_limit,
            "max_write_attempts": config.versioning.max_write_attempts,
            "storage_backend": config.storage.backend,
            "storage_path": str(config.storage.path),
            "log_level": config.log_level,
        }
