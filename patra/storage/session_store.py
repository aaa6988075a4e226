# patra/storage/session_store.py

import json
import os
import threading
from collections.abc import MutableMapping
from typing import Any, Dict, Iterator

from patra.config import SESSION_BACKEND, SESSION_FILE


class MemorySessionStore(MutableMapping):
    """Process-local credential storage, one per console session."""

    def __init__(self, initial: Dict[str, Any] | None = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = value

    def __delitem__(self, key: str) -> None:
        del self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)


class FileSessionStore(MutableMapping):
    """
    JSON-file credential storage that survives restarts.

    - Thread-safe
    - Crash-safe (temp file + replace)
    """

    def __init__(self, path: str = SESSION_FILE):
        self.path = path
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, Any]) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f)
        os.replace(tmp_path, self.path)

    def __getitem__(self, key: str) -> Any:
        with self._lock:
            return self._load()[key]

    def __setitem__(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._save(data)

    def __delitem__(self, key: str) -> None:
        with self._lock:
            data = self._load()
            del data[key]
            self._save(data)

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._load()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._load())


def open_session_store(backend: str = SESSION_BACKEND, path: str = SESSION_FILE) -> MutableMapping:
    """Credential store for one console session."""
    if backend == "file":
        return FileSessionStore(path)
    if backend == "memory":
        return MemorySessionStore()
    raise ValueError(f"Unknown session backend '{backend}'")
