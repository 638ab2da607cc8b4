"""Configuration management for Bounding Box Editor."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

# Default configuration file path
DEFAULT_CONFIG_PATH = Path("config.yaml")


@dataclass
class AppConfig:
    """
    Application configuration settings.

    Stores annotation import/export preferences.
    """

    default_import_directory: str = ""
    default_export_directory: str = ""
    default_import_format: str = "pascal_voc"  # pascal_voc, yolo, json, csv
    default_export_format: str = "pascal_voc"
    auto_detect_format: bool = True  # Detect the format when importing
    max_io_workers: int = 0  # Worker threads per operation (0 = CPU count)
    max_recent_paths: int = 10  # Number of recent paths to remember (0-20, 0 = disabled)
    recent_paths: list[str] = field(default_factory=list)  # List of recently used annotation paths

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary for serialization."""
        return {
            "defaultImportDirectory": self.default_import_directory,
            "defaultExportDirectory": self.default_export_directory,
            "defaultImportFormat": self.default_import_format,
            "defaultExportFormat": self.default_export_format,
            "autoDetectFormat": self.auto_detect_format,
            "maxIoWorkers": self.max_io_workers,
            "maxRecentPaths": self.max_recent_paths,
            "recentPaths": self.recent_paths,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AppConfig:
        """Create config from dictionary."""
        return cls(
            default_import_directory=data.get("defaultImportDirectory", ""),
            default_export_directory=data.get("defaultExportDirectory", ""),
            default_import_format=data.get("defaultImportFormat", "pascal_voc"),
            default_export_format=data.get("defaultExportFormat", "pascal_voc"),
            auto_detect_format=data.get("autoDetectFormat", True),
            max_io_workers=data.get("maxIoWorkers", 0),
            max_recent_paths=data.get("maxRecentPaths", 10),
            recent_paths=data.get("recentPaths", []),
        )


class ConfigManager:
    """
    Manager for loading and saving application configuration.

    Handles YAML serialization and provides a clean interface
    for configuration access.
    """

    def __init__(self, config_path: Path = DEFAULT_CONFIG_PATH) -> None:
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
        """
        self.config_path = Path(config_path)
        self._config: Optional[AppConfig] = None

    @property
    def config(self) -> AppConfig:
        """Get the current configuration, loading if necessary."""
        if self._config is None:
            self._config = self.load()
        return self._config

    def load(self) -> AppConfig:
        """
        Load configuration from file.

        Returns:
            AppConfig instance with loaded or default values
        """
        if not self.config_path.exists():
            logger.info(f"Config file not found at {self.config_path}, using defaults")
            return AppConfig()

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Error parsing config file: {e}")
            return AppConfig()
        except OSError as e:
            logger.error(f"Error loading config: {e}")
            return AppConfig()

        if not isinstance(data, dict):
            logger.error(f"Invalid config file {self.config_path}, using defaults")
            return AppConfig()

        logger.info(f"Loaded configuration from {self.config_path}")
        return AppConfig.from_dict(data)

    def save(self, config: Optional[AppConfig] = None) -> bool:
        """
        Save configuration to file.

        Args:
            config: Configuration to save, or use current config

        Returns:
            True if save was successful
        """
        if config is not None:
            self._config = config

        if self._config is None:
            logger.warning("No configuration to save")
            return False

        try:
            with open(self.config_path, "w", encoding="utf-8") as f:
                yaml.dump(self._config.to_dict(), f, default_flow_style=False)
            logger.info(f"Saved configuration to {self.config_path}")
            return True
        except OSError as e:
            logger.error(f"Error saving config: {e}")
            return False

    def update(self, **kwargs: Any) -> None:
        """
        Update configuration with new values.

        Args:
            **kwargs: Key-value pairs to update
        """
        config = self.config
        for key, value in kwargs.items():
            if hasattr(config, key):
                setattr(config, key, value)
            else:
                logger.warning(f"Unknown config key: {key}")
        self.save()

    def add_recent_path(self, path: str) -> None:
        """
        Move a path to the front of the recent paths list.

        The list is truncated to `max_recent_paths` entries.

        Args:
            path: Annotation file or directory that was used
        """
        config = self.config
        if config.max_recent_paths <= 0:
            return

        recent = [p for p in config.recent_paths if p != path]
        recent.insert(0, path)
        config.recent_paths = recent[:config.max_recent_paths]
        self.save()
