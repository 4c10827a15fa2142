"""
Persisted database configs — one JSON file, name → DatabaseConfig.
Reconnected at startup by DatabaseManager.connect_persisted().
"""
import json
import logging
import os
from typing import Optional

from pydantic import ValidationError

from models.connection import DatabaseConfig, DatabaseEntry

logger = logging.getLogger(__name__)


class ConfigStore:
    def __init__(self, path: Optional[str]):
        # None disables persistence
        self.path = path

    def _read(self) -> dict[str, dict]:
        if not self.path or not os.path.exists(self.path):
            return {}
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read config store %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, dict]) -> None:
        if not self.path:
            return
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(data, f, indent=2)

    def entries(self) -> list[DatabaseEntry]:
        entries = []
        for name, raw in self._read().items():
            try:
                entries.append(DatabaseEntry(name=name, config=DatabaseConfig.model_validate(raw)))
            except ValidationError as e:
                logger.warning("Ignoring invalid stored config '%s': %s", name, e)
        return entries

    def save(self, name: str, config: DatabaseConfig) -> None:
        data = self._read()
        data[name] = config.model_dump()
        self._write(data)
        logger.debug("Persisted config for '%s'", name)

    def remove(self, name: str) -> bool:
        data = self._read()
        if name not in data:
            return False
        del data[name]
        self._write(data)
        return True
