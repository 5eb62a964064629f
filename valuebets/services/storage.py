# valuebets/services/storage.py
from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple
from urllib.parse import quote

from ..core.errors import MalformedCache

log = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """String-valued key/value backing store (local-storage style)."""

    def get(self, key: str) -> Optional[str]: ...
    def set(self, key: str, value: str, ttl: Optional[float] = None) -> None: ...
    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Process-local store for tests and single-worker dev runs."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._data: Dict[str, Tuple[Optional[float], str]] = {}

    def get(self, key: str) -> Optional[str]:
        item = self._data.get(key)
        if item is None:
            return None
        exp, val = item
        if exp is not None and exp < self._clock():
            self._data.pop(key, None)
            return None
        return val

    def set(self, key: str, value: str, ttl: Optional[float] = None) -> None:
        exp = self._clock() + ttl if ttl else None
        self._data[key] = (exp, value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class JsonFileStore:
    """
    One file per key under `root`. Each file holds {"expires_at": float|null, "value": str}.
    Writes go through a temp file + rename so a reader never sees half a file.
    """

    def __init__(self, root: str | os.PathLike[str], clock: Callable[[], float] = time.time):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self._clock = clock

    def _path(self, key: str) -> Path:
        return self.root / f"{quote(key, safe='')}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            doc = json.loads(raw)
            exp, val = doc.get("expires_at"), doc["value"]
        except (ValueError, KeyError, AttributeError):
            log.warning("dropping unreadable store file %s", path.name)
            path.unlink(missing_ok=True)
            return None
        if exp is not None and exp < self._clock():
            path.unlink(missing_ok=True)
            return None
        return val

    def set(self, key: str, value: str, ttl: Optional[float] = None) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        doc = {"expires_at": self._clock() + ttl if ttl else None, "value": value}
        tmp.write_text(json.dumps(doc), encoding="utf-8")
        os.replace(tmp, path)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class DateScopedCache:
    """
    Sorted pick lists stored per calendar date under `<prefix><date>`.
    Entries that no longer decode to a JSON array are discarded on read.
    """

    def __init__(self, store: KeyValueStore, prefix: str = "valueBetsLocked_"):
        self.store = store
        self.prefix = prefix

    def key(self, date: str) -> str:
        return f"{self.prefix}{date}"

    def _decode(self, key: str, raw: str) -> List[Dict[str, Any]]:
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise MalformedCache(key, str(e)) from e
        if not isinstance(data, list):
            raise MalformedCache(key, f"expected a JSON array, got {type(data).__name__}")
        return data

    def load(self, date: str) -> Optional[List[Dict[str, Any]]]:
        key = self.key(date)
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return self._decode(key, raw)
        except MalformedCache as e:
            log.warning("%s; discarding", e)
            self.store.delete(key)
            return None

    def save(self, date: str, bets: List[Dict[str, Any]]) -> None:
        self.store.set(self.key(date), json.dumps(bets))
