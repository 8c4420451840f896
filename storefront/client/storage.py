"""JSON file persistence for the durable part of the client state"""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Union

logger = logging.getLogger(__name__)


class StateStorage:
    """
    Key/value snapshot stored as one JSON object on disk.

    Writes go to a temp file in the same directory and are moved over the
    old file, so a crash never leaves a half-written snapshot behind.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Dict[str, Any]:
        """Read the snapshot; missing or unreadable storage loads as empty"""
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as e:
            logger.warning(f"[SESSION] Ignoring unreadable client state at {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"[SESSION] Ignoring client state at {self.path}: not an object")
            return {}
        return data

    def save(self, data: Dict[str, Any]):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix=".state-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def clear(self):
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
