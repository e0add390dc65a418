"""Configuration management for gateway sessions.

Provides a ConfigManager class that loads, updates, and persists session
configuration in a YAML file, falling back to sensible defaults.
"""
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from storage.file_store import YAMLFileStore

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    "gateway": {
        # packet worker tasks; packets for one server always share a worker
        "workers": 4,
        "queue_size": 256,
        "log_unknown_packets": False,
    },
    "cache": {
        "message_capacity": 1000,
        # in seconds; default 12 hours, 0 disables age-based eviction
        "message_max_age_seconds": 12 * 60 * 60,
        "sweep_interval_seconds": 60,
    },
    "logging": {
        "level": "INFO",
    },
}


def merge_config(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``overrides`` over ``base`` one section deep.

    Sections that are dicts on both sides are merged key by key; anything
    else in ``overrides`` replaces the base value. Neither input is modified.
    """
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key].update(copy.deepcopy(value))
        else:
            merged[key] = copy.deepcopy(value)
    return merged


@dataclass
class ConfigManager:
    """Manages session configuration with YAML file persistence.

    Attributes:
        path: Path to the YAML configuration file
    """
    path: str
    _store: YAMLFileStore = field(init=False)
    _config: Dict[str, Any] = field(init=False, default_factory=dict)

    def __post_init__(self) -> None:
        self._store = YAMLFileStore(self.path)

    def load(self) -> Dict[str, Any]:
        """Load configuration from file, creating defaults if needed."""
        if not self._store.exists():
            logger.info("Config file %s not found, creating default config", self.path)
            return self._reset()

        data = self._store.read()
        if data is None:
            # an empty file is as good as no overrides
            data = {}
        if not isinstance(data, dict):
            logger.warning("Config file %s malformed, resetting to defaults", self.path)
            return self._reset()

        self._config = merge_config(DEFAULT_CONFIG, data)
        return self._config

    def _reset(self) -> Dict[str, Any]:
        self._config = copy.deepcopy(DEFAULT_CONFIG)
        self._store.write(self._config)
        return self._config

    def get(self) -> Dict[str, Any]:
        """Get the current configuration dictionary."""
        return self._config

    def section(self, name: str) -> Dict[str, Any]:
        return self._config.get(name) or copy.deepcopy(DEFAULT_CONFIG.get(name, {}))

    def update(self, new_config: Dict[str, Any]) -> None:
        """Merge ``new_config`` into the current configuration and persist it.

        Args:
            new_config: Sections or values to change
        """
        self._config = merge_config(self._config or DEFAULT_CONFIG, new_config)
        self._store.write(self._config)
        logger.info("Config updated and saved to %s", self.path)
