"""Entity storage sharded round-robin over SQLite database files."""

from __future__ import annotations

import os
import shutil
import sqlite3
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from akkonstore.index import QueryEngine
from akkonstore.monitor import LogLevel, SystemMonitor

MIN_FREE_BYTES = 100 * 1024 * 1024


@dataclass
class DbEntity:
    uuid: str = ""        # SHA-256 hex string
    identifier: str = ""  # SHA-256 hex string
    pwk: str = ""         # SHA-256 hex string


def _database_path(info: Any) -> str:
    if isinstance(info, (str, os.PathLike)):
        return os.fspath(info)
    return os.fspath(info.file_pos)


class DataStorage:
    """Writes entities to shard databases in turn and reads identifiers back."""

    def __init__(
        self,
        monitor: SystemMonitor | None = None,
        base_dir: str | Path | None = None,
    ) -> None:
        self._monitor = monitor
        self._base_dir = Path(base_dir) if base_dir is not None else None
        self._shards: list[tuple[str, sqlite3.Connection]] = []
        self._next = 0
        self._lock = threading.Lock()

    def _log(self, level: LogLevel, message: str, tracker_id: str = "SYSTEM") -> None:
        if self._monitor is not None:
            self._monitor.log(level, message, tracker_id)

    @property
    def shard_count(self) -> int:
        return len(self._shards)

    def initialize(self, databases: Mapping[int, Any] | Iterable[Any]) -> None:
        """Open every database (a path or an object with ``file_pos``) as a shard."""
        items = databases.values() if isinstance(databases, Mapping) else databases
        for info in items:
            path = _database_path(info)
            try:
                conn = sqlite3.connect(path, isolation_level=None, check_same_thread=False)
            except sqlite3.Error:
                self._log(LogLevel.ERROR, "DataStorage failed to open: " + path)
                continue
            try:
                conn.execute("PRAGMA journal_mode=WAL;")
                conn.execute("PRAGMA synchronous=NORMAL;")
                conn.execute(
                    "CREATE TABLE IF NOT EXISTS information (uuid TEXT, identifier TEXT, pwk TEXT);"
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_identifier ON information (identifier);"
                )
                conn.execute("CREATE INDEX IF NOT EXISTS idx_uuid ON information (uuid);")
            except sqlite3.Error:
                conn.close()
                self._log(LogLevel.ERROR, "DataStorage failed to open: " + path)
                continue
            with self._lock:
                self._shards.append((path, conn))

    def _space_ok(self, tracker_id: str) -> bool:
        db_dir = self._base_dir if self._base_dir is not None else Path.cwd() / "db"
        try:
            if db_dir.exists() and shutil.disk_usage(db_dir).free < MIN_FREE_BYTES:
                self._log(
                    LogLevel.ERROR,
                    "Write rejected: Disk space below 100MB guardrail.",
                    tracker_id,
                )
                return False
        except OSError as exc:
            self._log(LogLevel.WARNING, f"Failed to check disk space: {exc}", tracker_id)
        return True

    def insert_entity(self, entity: DbEntity, tracker_id: str = "SYSTEM") -> bool:
        """Store ``entity`` in the next shard; return whether it was written."""
        with self._lock:
            if not self._shards:
                return False
            # An identifier may come without a pwk, but a uuid never without an identifier.
            if entity.uuid and not entity.identifier:
                self._log(
                    LogLevel.ERROR,
                    "Write rejected: UUID cannot exist without an identifier.",
                    tracker_id,
                )
                return False
            if not self._space_ok(tracker_id):
                return False

            index = self._next
            path, conn = self._shards[index]
            self._log(
                LogLevel.DEBUG,
                f"Inserting entity. Target index: {index}, File: {path}",
                tracker_id,
            )
            self._next = (index + 1) % len(self._shards)
            try:
                conn.execute(
                    "INSERT INTO information (uuid, identifier, pwk) VALUES (?, ?, ?);",
                    (entity.uuid, entity.identifier, entity.pwk),
                )
            except sqlite3.Error as exc:
                self._log(LogLevel.ERROR, f"DataStorage insert failed: {exc}", tracker_id)
                return False
            return True

    def load_all_identifiers(self, engine: QueryEngine) -> int:
        """Insert every stored identifier into ``engine``; return how many were loaded."""
        count = 0
        with self._lock:
            shards = list(self._shards)
        for _, conn in shards:
            try:
                rows = conn.execute("SELECT identifier FROM information;").fetchall()
            except sqlite3.Error:
                continue
            for (identifier,) in rows:
                if identifier is not None:
                    engine.insert(identifier)
                    count += 1
        return count

    def close(self) -> None:
        with self._lock:
            for _, conn in self._shards:
                conn.close()
            self._shards.clear()
            self._next = 0

    def __enter__(self) -> DataStorage:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()