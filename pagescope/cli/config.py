"""Configuration loading for the pagescope CLI with precedence handling.

Configuration sources, highest precedence first:
CLI flags > environment variables > config file > defaults
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from ..errors import ConfigurationError
from ..models.run import RunConfig


class ConfigurationLoader:
    """Loads and merges run configuration from multiple sources."""

    # Environment variable prefix
    ENV_PREFIX = "PAGESCOPE_"

    # Default configuration file names (searched in order)
    DEFAULT_CONFIG_FILES = [
        "pagescope.yaml",
        "pagescope.yml",
        ".pagescope.yaml",
        ".pagescope.yml",
        "pagescope.json",
        ".pagescope.json",
    ]

    BOOLEAN_KEYS = ("verbose", "silent", "strict", "browser.headless")

    def __init__(self):
        self.loaded_sources: List[str] = []

    def load_configuration(
        self,
        config_file: Optional[Path] = None,
        cli_overrides: Optional[Dict[str, Any]] = None,
        search_paths: Optional[List[Path]] = None,
    ) -> RunConfig:
        """Load configuration with proper precedence.

        Precedence (highest to lowest):
        1. CLI overrides (flags)
        2. Environment variables
        3. Specified config file, or else an auto-discovered one
        4. Defaults

        Args:
            config_file: Explicitly specified config file
            cli_overrides: CLI flag overrides
            search_paths: Paths to search for config files

        Returns:
            Merged run configuration

        Raises:
            ConfigurationError: Unreadable config file or invalid values
        """
        self.loaded_sources = ["defaults"]
        config_data: Dict[str, Any] = {}

        if config_file:
            if not config_file.exists():
                raise ConfigurationError(f"Configuration file not found: {config_file}")
            config_data = self._merge_config(config_data, self._load_config_file(config_file))
            self.loaded_sources.append(f"config file: {config_file}")
        else:
            discovered = self._discover_config_file(search_paths or [Path.cwd()])
            if discovered is not None:
                path, file_config = discovered
                config_data = self._merge_config(config_data, file_config)
                self.loaded_sources.append(f"auto-discovered: {path}")

        env_config = self._load_environment_variables()
        if env_config:
            config_data = self._merge_config(config_data, env_config)
            self.loaded_sources.append("environment variables")

        if cli_overrides:
            config_data = self._merge_config(config_data, cli_overrides)
            self.loaded_sources.append("CLI flags")

        try:
            return RunConfig(**config_data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def _discover_config_file(self, search_paths: List[Path]) -> Optional[tuple]:
        """Find the first default config file in search paths."""
        for search_path in search_paths:
            for config_filename in self.DEFAULT_CONFIG_FILES:
                config_path = search_path / config_filename
                if config_path.is_file():
                    return config_path, self._load_config_file(config_path)
        return None

    def _load_config_file(self, config_path: Path) -> Dict[str, Any]:
        """Load configuration from a YAML or JSON file."""
        suffix = config_path.suffix.lower()
        if suffix not in (".yaml", ".yml", ".json"):
            raise ConfigurationError(f"Unsupported config file format: {config_path.suffix}")

        try:
            content = config_path.read_text(encoding="utf-8")
            if suffix == ".json":
                data = json.loads(content)
            else:
                data = yaml.safe_load(content) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file {config_path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in config file {config_path}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Error loading config file {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {config_path} must contain a mapping")
        return data

    def _load_environment_variables(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        config: Dict[str, Any] = {}

        env_mapping = {
            f"{self.ENV_PREFIX}URL": "url",
            f"{self.ENV_PREFIX}FORMAT": "format",
            f"{self.ENV_PREFIX}VIEWPORT": "viewport",
            f"{self.ENV_PREFIX}VERBOSE": "verbose",
            f"{self.ENV_PREFIX}SILENT": "silent",
            f"{self.ENV_PREFIX}TIMEOUT": "timeout",
            f"{self.ENV_PREFIX}MODULES": "modules",
            f"{self.ENV_PREFIX}MODULES_DIR": "modules_dir",
            f"{self.ENV_PREFIX}STRICT": "strict",
            f"{self.ENV_PREFIX}ENGINE": "browser.engine",
            f"{self.ENV_PREFIX}HEADLESS": "browser.headless",
            f"{self.ENV_PREFIX}USER_AGENT": "browser.user_agent",
        }

        for env_var, config_path in env_mapping.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                self._set_nested_value(config, config_path, self._convert_env_value(env_value, config_path))

        return config

    def _convert_env_value(self, value: str, config_path: str) -> Any:
        """Convert environment variable string to appropriate type."""
        if config_path in self.BOOLEAN_KEYS:
            return value.lower() in ("true", "1", "yes", "on")

        if config_path == "modules_dir":
            return Path(value) if value else None

        # timeout and viewport keep their lenient string parsing
        return value

    def _set_nested_value(self, config: Dict[str, Any], path: str, value: Any) -> None:
        """Set a nested configuration value using dot notation."""
        keys = path.split(".")
        current = config

        for key in keys[:-1]:
            current = current.setdefault(key, {})

        current[keys[-1]] = value

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Merge configuration dictionaries, with override taking precedence."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value

        return result


def load_configuration(
    config_file: Optional[Path] = None,
    cli_overrides: Optional[Dict[str, Any]] = None,
    search_paths: Optional[List[Path]] = None,
) -> RunConfig:
    """Convenience function to load configuration.

    Args:
        config_file: Path to configuration file
        cli_overrides: CLI flag overrides
        search_paths: Paths to search for config files

    Returns:
        Loaded and merged configuration
    """
    return ConfigurationLoader().load_configuration(config_file, cli_overrides, search_paths)


def print_configuration(config: RunConfig, format: str = "yaml") -> str:
    """Render the effective configuration for debugging.

    Args:
        config: Configuration to print
        format: Output format (yaml, json)
    """
    config_dict = config.model_dump(mode="json")

    if format.lower() == "json":
        return json.dumps(config_dict, indent=2, default=str)
    return yaml.safe_dump(config_dict, default_flow_style=False, sort_keys=True)
