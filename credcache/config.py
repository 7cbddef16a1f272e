"""Configuration management for credcache."""

import logging
import os
from pathlib import Path
from typing import Optional, Dict, Any

import click
import yaml

from .errors import StorageUnavailable

_log = logging.getLogger(__name__)

APP_NAME = "credcache"
ROOT_ENV_VAR = "CREDCACHE_ROOT"

DEFAULT_CONFIG: Dict[str, Any] = {
    "storage": {
        "root": "",
    },
    "logging": {
        "level": "WARNING",
    },
}


def default_app_dir() -> Path:
    """Per-user application data directory for this platform."""
    return Path(click.get_app_dir(APP_NAME))


class ConfigManager:
    """Manage credcache configuration from YAML."""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path or default_app_dir() / "config.yaml").expanduser()
        self.data = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration, writing the defaults on first use."""
        if not self.config_path.exists():
            self._create_default_config()
        return self._read_yaml()

    def _read_yaml(self) -> Dict[str, Any]:
        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                content = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            _log.warning("Error reading config %s: %s", self.config_path, e)
            return {}
        if not isinstance(content, dict):
            return {}
        return content

    def _create_default_config(self) -> None:
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w", encoding="utf-8") as f:
                yaml.dump(DEFAULT_CONFIG, f, default_flow_style=False)
        except OSError as e:
            # Read-only home directories still get the built-in defaults.
            _log.warning("Could not write default config %s: %s", self.config_path, e)

    def _resolve_env_var(self, value: str) -> str:
        """Resolve environment variable references like ${VAR_NAME}."""
        if not value.startswith("${") or not value.endswith("}"):
            return value

        var_name = value[2:-1]
        return os.getenv(var_name, "")

    def _section(self, name: str) -> Dict[str, Any]:
        """Config section merged over its defaults."""
        section = self.data.get(name)
        if not isinstance(section, dict):
            return dict(DEFAULT_CONFIG[name])
        return {**DEFAULT_CONFIG[name], **section}

    def get_storage_root(self, override: Optional[str] = None) -> Path:
        """Resolve the directory that holds token.dat.

        Precedence: ``override`` (the --root option), $CREDCACHE_ROOT,
        ``storage.root`` from the config file, then the platform app dir.
        """
        for candidate in (
            override,
            os.getenv(ROOT_ENV_VAR),
            self._resolve_env_var(str(self._section("storage").get("root") or "")),
        ):
            if candidate:
                return Path(candidate).expanduser()

        try:
            return default_app_dir()
        except (OSError, RuntimeError) as e:
            raise StorageUnavailable(f"Cannot resolve application data directory: {e}") from e

    def get_log_level(self) -> int:
        """Configured logging level, falling back to WARNING."""
        name = str(self._section("logging").get("level", "WARNING")).upper()
        level = logging.getLevelName(name)
        return level if isinstance(level, int) else logging.WARNING

    def set_storage_root(self, root: str) -> None:
        """Persist a new ``storage.root``. An empty string restores the default."""
        if not isinstance(self.data.get("storage"), dict):
            self.data["storage"] = {}
        self.data["storage"]["root"] = root
        self.save()

    def save(self) -> None:
        """Save configuration to file."""
        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.dump(self.data, f, default_flow_style=False)
