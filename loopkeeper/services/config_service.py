"""Configuration loading and migration service.

Handles loading config.yaml and migrating the flat camelCase keys of the old
shell monitor's config.json to the nested schema.
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from loopkeeper.models.config import AppConfig

logger = logging.getLogger(__name__)

# Legacy flat key -> (section, field)
LEGACY_KEYS = {
    "maxLogSize": ("log_sync", "max_log_size_bytes"),
    "logDir": ("log_sync", "log_dir"),
    "logsToKeep": ("log_sync", "retain_count"),
    "maxCaptureLines": ("log_sync", "max_sample_lines"),
    "checkInterval": ("interval", "tick_interval_seconds"),
}


class ConfigService:
    """Service for loading and managing application configuration.

    Handles:
    - Loading config from config.yaml
    - Validating against Pydantic schema
    - Migrating from legacy formats
    - Saving updated config
    """

    def __init__(self, config_path: str | Path = "config.yaml"):
        """Initialize the config service.

        Args:
            config_path: Path to the config file.
        """
        self.config_path = Path(config_path)
        self._config: AppConfig | None = None

    def load(self) -> AppConfig:
        """Load and validate configuration.

        Returns:
            Validated AppConfig instance.
        """
        if not self.config_path.exists():
            logger.info(f"Config file not found at {self.config_path}, using defaults")
            self._config = AppConfig()
            return self._config

        try:
            with open(self.config_path) as f:
                raw_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Error reading config file: {e}, using defaults")
            self._config = AppConfig()
            return self._config

        if not isinstance(raw_config, dict):
            logger.warning("Config file is not a mapping, using defaults")
            self._config = AppConfig()
            return self._config

        migrated = self._migrate_config(raw_config)

        try:
            self._config = AppConfig(**migrated)
        except Exception as e:
            logger.warning(f"Config validation error: {e}, using defaults")
            self._config = AppConfig()

        return self._config

    def get_config(self) -> AppConfig:
        """Get the current configuration.

        Loads from disk if not already loaded.
        """
        if self._config is None:
            return self.load()
        return self._config

    def set_config(self, config: AppConfig) -> None:
        """Replace the cached configuration."""
        self._config = config

    def reload(self) -> AppConfig:
        """Force reload configuration from disk."""
        self._config = None
        return self.load()

    def save(self, config: AppConfig | None = None) -> bool:
        """Save configuration to disk.

        Args:
            config: Config to save. Uses current config if not provided.

        Returns:
            True if save succeeded.
        """
        config = config or self._config
        if config is None:
            return False

        try:
            config_dict = config.model_dump(mode="json")
            if self.config_path.parent != Path(""):
                self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w") as f:
                yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)
            return True
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error saving config: {e}")
            return False

    def _migrate_config(self, raw: dict[str, Any]) -> dict[str, Any]:
        """Migrate legacy config format to the nested schema.

        Handles:
        - Flat camelCase keys from the shell monitor (maxLogSize, ...)
        - sessionName as a single session entry
        - Plain strings in the sessions list
        - Nested keys already in the new schema (kept, and win over legacy keys)

        Args:
            raw: Raw config dictionary from YAML.

        Returns:
            Migrated config dictionary.
        """
        migrated: dict[str, Any] = {}

        for key, (section, field) in LEGACY_KEYS.items():
            if key in raw:
                migrated.setdefault(section, {})[field] = raw[key]
                logger.info(f"Migrated legacy config key {key} -> {section}.{field}")

        for section in ("log_sync", "interval", "signals"):
            if isinstance(raw.get(section), dict):
                migrated.setdefault(section, {}).update(raw[section])

        sessions: list[dict[str, Any]] = []
        for entry in raw.get("sessions") or []:
            if isinstance(entry, str):
                sessions.append({"name": entry})
            elif isinstance(entry, dict):
                sessions.append(entry)
            else:
                logger.warning(f"Ignoring invalid session entry: {entry!r}")
        if "sessionName" in raw and not any(s.get("name") == raw["sessionName"] for s in sessions):
            sessions.append({"name": raw["sessionName"], "autostart": True})
        if sessions:
            migrated["sessions"] = sessions

        for key in ("host", "port", "debug"):
            if key in raw:
                migrated[key] = raw[key]

        return migrated


# Module-level singleton
_config_service: ConfigService | None = None


def get_config_service(config_path: str | Path = "config.yaml") -> ConfigService:
    """Get the global config service instance.

    Args:
        config_path: Path to config file (only used on first call).

    Returns:
        ConfigService singleton.
    """
    global _config_service
    if _config_service is None:
        _config_service = ConfigService(config_path)
    return _config_service


def reset_config_service() -> None:
    """Reset the global config service (for testing)."""
    global _config_service
    _config_service = None
