"""
Configuration for the receipt extraction pipeline.

Settings come from the bundled settings.yaml. A second YAML file, passed
explicitly or named by the RECEIPT_EXTRACTION_CONFIG environment variable,
is layered on top of it section by section, so an override file only needs
the keys it changes. Components read values through get_config() and let
their constructor arguments win over whatever is configured here.

Author: ML Engineering Team
"""

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

CONFIG_ENV_VAR = "RECEIPT_EXTRACTION_CONFIG"
BUNDLED_SETTINGS = Path(__file__).parent / "settings.yaml"
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration root must be a mapping: {path}")
    return data


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively overlay ``override`` on a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigurationManager:
    """
    Process-wide settings, loaded once.

    The first instantiation decides which override file (if any) is used;
    later calls return the same instance until reset() is called.

    Attributes:
        config_path: Override file in effect, or the bundled settings.

    Example:
        >>> ConfigurationManager().get("scheduler.batch_size")
        5
    """

    _instance: Optional['ConfigurationManager'] = None

    def __new__(cls, config_path: Optional[Union[str, Path]] = None) -> 'ConfigurationManager':
        if cls._instance is None:
            instance = super().__new__(cls)
            instance._initialized = False
            cls._instance = instance
        return cls._instance

    def __init__(self, config_path: Optional[Union[str, Path]] = None) -> None:
        """
        Args:
            config_path: YAML file layered over the bundled settings.
                Falls back to the RECEIPT_EXTRACTION_CONFIG variable.

        Raises:
            FileNotFoundError: If the override file does not exist.
        """
        if self._initialized:
            return

        config_path = config_path or os.environ.get(CONFIG_ENV_VAR)
        self.config_path = Path(config_path) if config_path else BUNDLED_SETTINGS
        self._config: Dict[str, Any] = {}
        self._load_config()
        self._initialized = True

    def _load_config(self) -> None:
        config = _read_yaml(BUNDLED_SETTINGS)
        if self.config_path != BUNDLED_SETTINGS:
            config = _merge(config, _read_yaml(self.config_path))

        # Relative storage and preview locations are anchored at the project root
        for key, value in (config.get('paths') or {}).items():
            if value and not Path(value).is_absolute():
                config['paths'][key] = str(PROJECT_ROOT / value)

        self._config = config

    def get(self, key: str, default: Any = None) -> Any:
        """
        Look up a dotted key such as ``"ai.timeout_seconds"``.

        Returns ``default`` when any segment is missing.
        """
        value: Any = self._config
        for part in key.split('.'):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return value

    def get_all(self) -> Dict[str, Any]:
        return copy.deepcopy(self._config)

    def reload(self) -> None:
        """Re-read the settings files."""
        self._load_config()

    @classmethod
    def reset(cls) -> None:
        """Forget the loaded settings; the next access reloads them."""
        cls._instance = None


def get_config(key: str, default: Any = None) -> Any:
    """Shortcut for ``ConfigurationManager().get(key, default)``."""
    return ConfigurationManager().get(key, default)


__all__ = ['ConfigurationManager', 'get_config']
