"""Device-scoped key-value stores used for staging results and attempt markers."""

from __future__ import annotations

import json
from pathlib import Path
from threading import Lock
from typing import Any, Protocol
from urllib.parse import quote

from chapter_quiz.constants.storage_constants import STAGE_KEY_SEPARATOR


class LocalStage(Protocol):
    def put(self, key: str, payload: dict[str, Any]) -> None: ...

    def get(self, key: str) -> dict[str, Any] | None: ...

    def delete(self, key: str) -> None: ...

    def keys(self, prefix: str = "") -> list[str]: ...


class InMemoryStage:
    """Volatile stage; lost when the process exits."""

    def __init__(self) -> None:
        self._entries: dict[str, dict[str, Any]] = {}
        self._lock = Lock()

    def put(self, key: str, payload: dict[str, Any]) -> None:
        with self._lock:
            self._entries[key] = dict(payload)

    def get(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            payload = self._entries.get(key)
            return dict(payload) if payload is not None else None

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return sorted(key for key in self._entries if key.startswith(prefix))


class FileStage:
    """Durable stage storing one JSON document per key inside a device directory.

    Survives a process restart; clearing the directory clears the device.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory).resolve()
        self._directory.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()

    def put(self, key: str, payload: dict[str, Any]) -> None:
        document = json.dumps({"key": key, "payload": payload}, ensure_ascii=False)
        path = self._path_for(key)
        temp_path = path.with_suffix(".tmp")
        with self._lock:
            temp_path.write_text(document, encoding="utf-8")
            temp_path.replace(path)

    def get(self, key: str) -> dict[str, Any] | None:
        path = self._path_for(key)
        with self._lock:
            if not path.exists():
                return None
            document = json.loads(path.read_text(encoding="utf-8"))
        if document.get("key") != key:
            return None
        return document["payload"]

    def delete(self, key: str) -> None:
        with self._lock:
            self._path_for(key).unlink(missing_ok=True)

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            stored = [
                json.loads(path.read_text(encoding="utf-8"))["key"]
                for path in self._directory.glob("*.json")
            ]
        return sorted(key for key in stored if key.startswith(prefix))

    def _path_for(self, key: str) -> Path:
        return self._directory / f"{quote(key, safe='')}.json"


def stage_key(prefix: str, phone: str, chapter_id: str) -> str:
    """Build the participant+chapter key used by every stage entry."""
    return STAGE_KEY_SEPARATOR.join((prefix, phone, chapter_id))
