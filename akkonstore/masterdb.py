"""Master catalogue of shard databases and periodic server metrics."""

from __future__ import annotations

import sqlite3
import sys
import threading
import time
from contextlib import closing
from dataclasses import dataclass
from pathlib import Path

from akkonstore.utils import current_timestamp, generate_uuid

MASTER_FILE = "master.db"
SHARD_SUFFIX = ".db"
_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_CREATE_DATABASES = (
    "CREATE TABLE IF NOT EXISTS databases ("
    "id INTEGER PRIMARY KEY AUTOINCREMENT,"
    "uuid TEXT UNIQUE NOT NULL,"
    "creation_date TEXT NOT NULL,"
    "file_path TEXT NOT NULL,"
    "status TEXT DEFAULT 'active');"
)
_CREATE_METRICS = (
    "CREATE TABLE IF NOT EXISTS metrics ("
    "id INTEGER PRIMARY KEY AUTOINCREMENT,"
    "timestamp TEXT NOT NULL,"
    "ram_allocated INTEGER NOT NULL,"
    "ram_runtime INTEGER NOT NULL,"
    "ram_request INTEGER NOT NULL,"
    "ram_capacity INTEGER NOT NULL,"
    "disk_space INTEGER NOT NULL,"
    "reliability INTEGER NOT NULL,"
    "total_queries INTEGER NOT NULL"
    ");"
)
_CREATE_METADATA = (
    "CREATE TABLE IF NOT EXISTS metadata "
    "(uuid TEXT PRIMARY KEY, creation_date TEXT, file_path TEXT);"
)
_CREATE_INFORMATION = (
    "CREATE TABLE IF NOT EXISTS information (uuid TEXT, identifier TEXT, pwk TEXT);"
)


@dataclass
class DatabaseInfo:
    uuid: str = ""
    creation_date: str = ""
    file_pos: str = ""
    status: str = ""


def _error(message: str) -> None:
    print(f"[ERROR] {message}", file=sys.stderr, flush=True)


def _info(message: str) -> None:
    print(f"[INFO] {message}", flush=True)


def _create_shard(path: Path, uuid: str, creation_date: str, replace: bool) -> None:
    """Create a shard file holding its metadata row and an empty information table."""
    verb = "INSERT OR REPLACE" if replace else "INSERT"
    with closing(sqlite3.connect(str(path), isolation_level=None)) as conn:
        try:
            conn.execute(_CREATE_METADATA)
        except sqlite3.Error as exc:
            _error(f"SQL error: {exc}")
        try:
            conn.execute(_CREATE_INFORMATION)
        except sqlite3.Error:
            pass
        try:
            conn.execute(
                f"{verb} INTO metadata VALUES (?, ?, ?);",
                (uuid, creation_date, str(path)),
            )
        except sqlite3.Error as exc:
            _error(f"SQL error: {exc}")


def _read_metadata(path: Path) -> tuple[str, str]:
    """Return (uuid, creation_date) stored in a shard, or empty strings."""
    uri = f"{path.resolve().as_uri()}?mode=ro"
    try:
        with closing(sqlite3.connect(uri, uri=True)) as conn:
            row = conn.execute(
                "SELECT uuid, creation_date FROM metadata LIMIT 1;"
            ).fetchone()
    except sqlite3.Error:
        return "", ""
    if row is None:
        return "", ""
    uuid, created = row
    return (uuid or ""), (created or "")


class MasterDB:
    """The ``master.db`` catalogue in a database directory.

    It records every shard database (uuid, creation date, path, status)
    and a time series of server metrics.
    """

    def __init__(self, db_dir: str | Path) -> None:
        self._db_dir = Path(db_dir)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self.ensure_open()

    @property
    def db_dir(self) -> Path:
        return self._db_dir

    def is_open(self) -> bool:
        with self._lock:
            return self._conn is not None

    def ensure_open(self) -> bool:
        """Open the catalogue and create its tables; return whether it is open."""
        with self._lock:
            if self._conn is not None:
                return True
            path = self._db_dir / MASTER_FILE
            conn: sqlite3.Connection | None = None
            try:
                conn = sqlite3.connect(
                    str(path), isolation_level=None, check_same_thread=False
                )
                conn.execute("PRAGMA journal_mode=WAL;")
                conn.execute("PRAGMA synchronous=NORMAL;")
                conn.execute(_CREATE_DATABASES)
                conn.execute(_CREATE_METRICS)
            except sqlite3.Error as exc:
                _error(f"Can't open master database: {exc}")
                if conn is not None:
                    conn.close()
                return False
            try:
                # Older catalogues labelled imported databases 'external'.
                conn.execute(
                    "UPDATE databases SET status='unmapped' WHERE status='external';"
                )
            except sqlite3.Error as exc:
                _error(f"SQL migration error: {exc}")
            self._conn = conn
            return True

    def _connection(self) -> sqlite3.Connection:
        if not self.ensure_open():
            raise sqlite3.OperationalError(
                f"master database is not open: {self._db_dir / MASTER_FILE}"
            )
        assert self._conn is not None
        return self._conn

    def register_database(self, info: DatabaseInfo) -> None:
        """Record a shard; a uuid that is already registered is left as it is."""
        with self._lock:
            self._connection().execute(
                "INSERT OR IGNORE INTO databases (uuid, creation_date, file_path, status) "
                "VALUES (?, ?, ?, ?);",
                (info.uuid, info.creation_date, info.file_pos, info.status or "active"),
            )

    def load_existing(self) -> dict[int, DatabaseInfo]:
        """Return every registered shard, numbered from 1 in registration order."""
        with self._lock:
            rows = self._connection().execute(
                "SELECT id, uuid, creation_date, file_path, status FROM databases ORDER BY id;"
            ).fetchall()
        return {
            index: DatabaseInfo(uuid, created, path, status)
            for index, (_, uuid, created, path, status) in enumerate(rows, start=1)
        }

    def get_missing(self, existing: dict[int, DatabaseInfo]) -> list[DatabaseInfo]:
        """Return the shards whose files no longer exist."""
        missing = []
        for info in existing.values():
            if not Path(info.file_pos).exists():
                print(f"[WARN] Database not found: {info.uuid} at {info.file_pos}", flush=True)
                missing.append(info)
        return missing

    def recreate_missing(self, missing: list[DatabaseInfo]) -> None:
        """Recreate each missing shard as an empty ``<uuid>.db`` in the directory."""
        with self._lock:
            for info in missing:
                _info(f"Recreating: {info.uuid}")
                path = self._db_dir / f"{info.uuid}{SHARD_SUFFIX}"
                try:
                    _create_shard(path, info.uuid, info.creation_date, replace=True)
                except sqlite3.Error as exc:
                    _error(f"Can't open database: {exc}")

    def scan_and_import_unmapped(self) -> list[DatabaseInfo]:
        """Register ``.db`` files in the directory that the catalogue lacks.

        They are recorded with status ``unmapped``. The uuid and creation
        date come from the file's metadata, else from its name and mtime.
        Returns what was imported.
        """
        imported = []
        with self._lock:
            conn = self._connection()
            mapped = {
                row[0]
                for row in conn.execute("SELECT file_path FROM databases;")
                if row[0] is not None
            }
            for path in sorted(self._db_dir.iterdir()):
                if not path.is_file() or path.name == MASTER_FILE:
                    continue
                if path.suffix != SHARD_SUFFIX:
                    continue
                full = str(path)
                if full in mapped:
                    continue

                uuid, created = _read_metadata(path)
                if not uuid:
                    uuid = path.stem
                if not created:
                    created = time.strftime(
                        _TIMESTAMP_FORMAT, time.localtime(path.stat().st_mtime)
                    )
                info = DatabaseInfo(uuid, created, full, "unmapped")
                try:
                    conn.execute(
                        "INSERT INTO databases (uuid, creation_date, file_path, status) "
                        "VALUES (?, ?, ?, 'unmapped');",
                        (uuid, created, full),
                    )
                except sqlite3.Error as exc:
                    _error(f"Failed to import external DB {full}: {exc}")
                    continue
                _info(f"Imported unmapped DB: {full} as uuid={uuid}")
                imported.append(info)
        return imported

    def create_new_database(self) -> DatabaseInfo:
        """Create a fresh shard with a new uuid, register it and return it."""
        with self._lock:
            info = DatabaseInfo(uuid=generate_uuid(), creation_date=current_timestamp())
            path = self._db_dir / f"{info.uuid}{SHARD_SUFFIX}"
            _create_shard(path, info.uuid, info.creation_date, replace=False)
            info.file_pos = str(path)
            info.status = "active"
            self.register_database(info)
            return info

    def insert_metrics(
        self,
        timestamp: str,
        ram_allocated: int,
        ram_runtime: int,
        ram_request: int,
        ram_capacity: int,
        disk_space: int,
        reliability: int,
        total_queries: int,
    ) -> None:
        with self._lock:
            self._connection().execute(
                "INSERT INTO metrics (timestamp, ram_allocated, ram_runtime, ram_request, "
                "ram_capacity, disk_space, reliability, total_queries) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?);",
                (
                    timestamp,
                    int(ram_allocated),
                    int(ram_runtime),
                    int(ram_request),
                    int(ram_capacity),
                    int(disk_space),
                    int(reliability),
                    int(total_queries),
                ),
            )

    def last_total_queries(self) -> int:
        """Return the query total of the latest metrics row, or 0."""
        with self._lock:
            row = self._connection().execute(
                "SELECT total_queries FROM metrics ORDER BY id DESC LIMIT 1;"
            ).fetchone()
        return int(row[0]) if row is not None else 0

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> MasterDB:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()