"""Small helpers for database construction: ids, timestamps, paths."""

from __future__ import annotations

import time
import uuid
from pathlib import Path

_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def generate_uuid() -> str:
    """Return a random version-4 UUID in its canonical 36-character form."""
    return str(uuid.uuid4())


def current_timestamp() -> str:
    """Return the local time as ``YYYY-MM-DD HH:MM:SS``."""
    return time.strftime(_TIMESTAMP_FORMAT, time.localtime())


def escape_sql_string(text: str) -> str:
    """Double every single quote so the text can sit inside an SQL literal."""
    return text.replace("'", "''")


def ensure_db_directory(base: str | Path | None = None) -> Path:
    """Create ``<base>/db`` if missing (base defaults to the working directory)."""
    root = Path.cwd() if base is None else Path(base)
    db_dir = root / "db"
    if not db_dir.exists():
        db_dir.mkdir()
        print(f"[INFO] Created DB directory: {db_dir}", flush=True)
    return db_dir


def normalize_path(path: str) -> str:
    """Turn backslashes into slashes and normalise the path lexically.

    Redundant separators and ``.`` elements are dropped and ``name/..``
    pairs collapse; a trailing separator is kept where the last element
    was removed, except after a remaining ``..``.
    """
    text = path.replace("\\", "/")
    if not text:
        return ""
    absolute = text.startswith("/")
    stack: list[str] = []
    trailing = False
    for part in text.split("/"):
        if not part:
            continue
        if part == ".":
            trailing = True
        elif part == "..":
            if stack and stack[-1] != "..":
                stack.pop()
                trailing = True
            elif absolute and not stack:
                trailing = False
            else:
                stack.append("..")
                trailing = False
        else:
            stack.append(part)
            trailing = False
    if text.endswith("/"):
        trailing = True
    if stack and stack[-1] == "..":
        trailing = False

    body = "/".join(stack)
    if not body:
        return "/" if absolute else "."
    if trailing:
        body += "/"
    return "/" + body if absolute else body