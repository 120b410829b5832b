"""Persistence for the API key shown in the log viewer."""

import json
import os
import threading
from pathlib import Path

from daylog.utils.logging import get_logger

logger = get_logger(__name__)


class ApiKeyStore:
    """
    Keeps a single API key in a small JSON file (mode 0600).

    Attributes:
        path: Location of the JSON file
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def load(self) -> str:
        """
        Read the stored key.

        Returns:
            The key, or an empty string if none has been saved or the file is
            unreadable
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return ""
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Failed to read API key file", path=str(self.path), error=str(e))
            return ""

        if not isinstance(data, dict):
            return ""
        return str(data.get("api_key", ""))

    def save(self, api_key: str) -> None:
        """
        Replace the stored key.

        Raises:
            OSError: If the file cannot be written
        """
        payload = json.dumps({"api_key": api_key}, indent=2)

        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)

        logger.info("Saved API key", path=str(self.path))
