"""
Key-value persistence for owned content.

The planner only needs get/put against a single fixed record, so any durable
store with those two operations will do. Records are plain JSON-serializable
dicts.
"""

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union


class PersistenceError(Exception):
    """Base error for the ownership persistence layer."""


class PersistenceUnavailable(PersistenceError):
    """The backing store could not be opened or read."""


class PersistenceWriteFailed(PersistenceError):
    """A record could not be written to the backing store."""


Record = Dict[str, Any]


class KeyValueStore(ABC):
    """Durable store keyed by record identifier."""

    @abstractmethod
    def get(self, key: str) -> Optional[Record]:
        """Return the record for key, or None if it has never been written."""

    @abstractmethod
    def put(self, key: str, record: Record) -> None:
        """Overwrite the record for key."""


class JsonFileStore(KeyValueStore):
    """Stores each record as <directory>/<key>.json."""

    def __init__(self, directory: Union[str, Path] = "./data/store"):
        self.directory = Path(directory)

    def _path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[Record]:
        """
        Read a record.

        Args:
            key: Record identifier.

        Returns:
            The stored dict, or None if no file exists for the key.

        Raises:
            PersistenceUnavailable: If the file cannot be read or parsed.
        """
        path = self._path_for(key)
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                record = json.load(f)
        except (OSError, ValueError) as e:
            # ValueError covers bad JSON and bad UTF-8
            raise PersistenceUnavailable(f"Cannot read {path}: {e}") from e

        if not isinstance(record, dict):
            raise PersistenceUnavailable(f"Unexpected record in {path}")
        return record

    def put(self, key: str, record: Record) -> None:
        """
        Write a record, replacing any previous version atomically.

        Args:
            key: Record identifier.
            record: JSON-serializable dict.

        Raises:
            PersistenceWriteFailed: If the directory or file cannot be written.
        """
        path = self._path_for(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(record, f, indent=2)
                os.replace(temp_path, path)
            except BaseException:
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceWriteFailed(f"Cannot write {path}: {e}") from e


class MemoryStore(KeyValueStore):
    """In-process store; contents are lost when the process exits."""

    def __init__(self):
        self._records: Dict[str, Record] = {}

    def get(self, key: str) -> Optional[Record]:
        record = self._records.get(key)
        return json.loads(json.dumps(record)) if record is not None else None

    def put(self, key: str, record: Record) -> None:
        self._records[key] = json.loads(json.dumps(record))
