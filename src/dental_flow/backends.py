"""In-process session backends for development and tests.

  - ``MemorySessionBackend``: dict in the current process
  - ``FileSessionBackend``: one JSON document per session under a directory

The PostgreSQL backend for deployments lives in
``dental_flow_db.backend.DatabaseSessionBackend``.
"""

from __future__ import annotations

import asyncio
import copy
import hashlib
import json
import logging
import weakref
from pathlib import Path
from typing import Any

from dental_flow.interfaces import SessionBackend

logger = logging.getLogger(__name__)


class MemorySessionBackend(SessionBackend):
    """Keeps records in a dict keyed by ``(session_id, key)``.

    Values are deep-copied on the way in and out so callers never share
    state with the backend.
    """

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], dict[str, Any]] = {}

    async def get(self, session_id: str, key: str) -> dict[str, Any] | None:
        value = self._records.get((session_id, key))
        return copy.deepcopy(value) if value is not None else None

    async def set(self, session_id: str, key: str, value: dict[str, Any]) -> None:
        self._records[(session_id, key)] = copy.deepcopy(value)

    async def delete(self, session_id: str, key: str) -> None:
        self._records.pop((session_id, key), None)

    def __contains__(self, item: tuple[str, str]) -> bool:
        return item in self._records

    def __len__(self) -> int:
        return len(self._records)


class FileSessionBackend(SessionBackend):
    """Stores each session as ``<sha256(session_id)>.json`` in *directory*.

    The document maps keys to records.  File I/O runs in a worker thread.
    Writes to one session file are serialized by a per-session lock, which
    holds within one process only.
    """

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)
        # Entries vanish once no coroutine holds or waits on the lock.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    def _path(self, session_id: str) -> Path:
        digest = hashlib.sha256(session_id.encode("utf-8")).hexdigest()
        return self._dir / f"{digest}.json"

    def _read(self, session_id: str) -> dict[str, Any]:
        path = self._path(session_id)
        if not path.exists():
            return {}
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)

    def _write(self, session_id: str, document: dict[str, Any]) -> None:
        path = self._path(session_id)
        if not document:
            path.unlink(missing_ok=True)
            return
        tmp = path.with_suffix(".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(document, f)
        tmp.replace(path)

    async def get(self, session_id: str, key: str) -> dict[str, Any] | None:
        document = await asyncio.to_thread(self._read, session_id)
        return document.get(key)

    async def set(self, session_id: str, key: str, value: dict[str, Any]) -> None:
        def _update() -> None:
            document = self._read(session_id)
            document[key] = value
            self._write(session_id, document)

        async with self._lock(session_id):
            await asyncio.to_thread(_update)

    async def delete(self, session_id: str, key: str) -> None:
        def _remove() -> None:
            document = self._read(session_id)
            if document.pop(key, None) is not None:
                self._write(session_id, document)

        async with self._lock(session_id):
            await asyncio.to_thread(_remove)
