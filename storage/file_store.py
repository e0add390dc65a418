"""YAML file persistence for configuration.

Reads are tolerant (a missing file reads as None, a malformed one is logged
and reads as None too); writes go through a temporary file and an atomic
rename so a crash never leaves a half-written file behind.
"""
import logging
import os
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)


class YAMLFileStore:
    """One YAML document on disk.

    Attributes:
        path: Path to the YAML file
    """
    def __init__(self, path: str) -> None:
        self.path = path

    def exists(self) -> bool:
        return os.path.isfile(self.path)

    def read(self) -> Optional[Any]:
        """Parse the file.

        Returns:
            The parsed document, or None if the file is missing or not valid YAML
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return yaml.safe_load(f)
        except FileNotFoundError:
            return None
        except yaml.YAMLError:
            logger.warning("Invalid YAML in %s", self.path, exc_info=True)
            return None

    def write(self, data: Dict[str, Any]) -> None:
        """Replace the file's contents with ``data``."""
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        tmp_path = self.path + ".tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
        os.replace(tmp_path, self.path)
