"""REST endpoints for inserting and querying identifiers."""

from __future__ import annotations

import shutil
import threading
from collections.abc import Callable
from pathlib import Path

from akkonstore.arena import ArenaExhaustedError
from akkonstore.hashing import sha256
from akkonstore.index import QueryEngine, QueryResult
from akkonstore.memory import MemoryManager, RuntimeDomain
from akkonstore.monitor import LogLevel, SystemMonitor
from akkonstore.storage import DataStorage, DbEntity

HASH_LENGTH = 64
MIN_FREE_BYTES = 100 * 1024 * 1024
RUNTIME_BYTES_PER_INSERT = 256
REQUEST_BLOCK = 64

_API_PREFIX = "/api/"
_SHORT_INSERT_LENGTH = len(_API_PREFIX) + 2 * HASH_LENGTH
_SHORT_EXISTS_LENGTH = len(_API_PREFIX) + HASH_LENGTH
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
_HTTP_METHODS = frozenset({"GET", "POST", "PUT", "DELETE", "PATCH", "HEAD"})

OPTIONS_RESPONSE = (
    "HTTP/1.1 204 No Content\r\n"
    "Access-Control-Allow-Origin: *\r\n"
    "Access-Control-Allow-Methods: POST, GET, OPTIONS\r\n"
    "Access-Control-Allow-Headers: Content-Type\r\n"
    "Connection: close\r\n\r\n"
)

_JSON_ESCAPES = {'"': '\\"', "\\": "\\\\", "\n": "\\n", "\r": "\\r", "\t": "\\t"}


def extract_json_string(text: str, field: str) -> str:
    """Return the string value of ``field`` in flat JSON text, or ``""``."""
    pos = text.find(f'"{field}":"')
    if pos == -1:
        pos = text.find(f'"{field}": "')
    if pos == -1:
        return ""
    start = text.find('"', pos + len(field) + 3)
    if start == -1:
        return ""
    end = text.find('"', start + 1)
    if end == -1:
        return ""
    return text[start + 1:end]


def extract_json_array(text: str, field: str) -> list[str]:
    """Return the quoted strings of the array value of ``field``."""
    field_pos = text.find(f'"{field}"')
    if field_pos == -1:
        return []
    open_bracket = text.find("[", field_pos)
    if open_bracket == -1:
        return []
    close_bracket = text.find("]", open_bracket)
    if close_bracket == -1:
        return []
    items = []
    for element in text[open_bracket + 1:close_bracket].split(","):
        start = element.find('"')
        if start == -1:
            continue
        end = element.find('"', start + 1)
        if end != -1:
            items.append(element[start + 1:end])
    return items


def extract_query_string(path: str, field: str) -> str:
    """Return the value of ``field=`` up to the next ``&`` or space, or ``""``."""
    match = field + "="
    pos = path.find(match)
    if pos == -1:
        return ""
    end = path.find("&", pos)
    if end == -1:
        end = path.find(" ", pos)
    if end == -1:
        return ""
    return path[pos + len(match):end]


def escape_json_string(text: str) -> str:
    """Escape quotes, backslashes, newlines, carriage returns and tabs."""
    return "".join(_JSON_ESCAPES.get(ch, ch) for ch in text)


def result_label(result: QueryResult) -> str:
    """Return the wire name of a query result."""
    return result.name


def http_response(status: str, body: str) -> str:
    """Build a closing JSON response with CORS and content length headers."""
    return (
        f"HTTP/1.1 {status}\r\n"
        "Access-Control-Allow-Origin: *\r\n"
        "Content-Type: application/json\r\n"
        f"Content-Length: {len(body.encode('utf-8'))}\r\n"
        "Connection: close\r\n\r\n"
        f"{body}"
    )


def _is_hex(text: str) -> bool:
    return all(ch in _HEX_DIGITS for ch in text)


def _is_http_request(request: str) -> bool:
    parts = request.split(None, 1)
    return bool(parts) and parts[0] in _HTTP_METHODS


def _default_free_space() -> int:
    db_dir = Path.cwd() / "db"
    return shutil.disk_usage(db_dir if db_dir.exists() else Path.cwd()).free


class RestApi:
    """Answers the insert, create and exists endpoints and batch lookups.

    ``free_space`` returns the free bytes available for database writes;
    inserts are refused with 507 when it reports less than 100 MB.
    ``lifetime_base`` holds the query count carried over from earlier runs.
    """

    def __init__(
        self,
        engine: QueryEngine,
        storage: DataStorage | None = None,
        memory: MemoryManager | None = None,
        monitor: SystemMonitor | None = None,
        free_space: Callable[[], int] | None = None,
    ) -> None:
        self._engine = engine
        self._storage = storage
        self._memory = memory
        self._monitor = monitor
        self._free_space = free_space or _default_free_space
        self._lock = threading.Lock()
        self._reboot_queries = 0
        self.lifetime_base = 0

    @property
    def reboot_queries(self) -> int:
        with self._lock:
            return self._reboot_queries

    def total_queries(self) -> int:
        """Queries from earlier runs plus those answered since start-up."""
        with self._lock:
            return self.lifetime_base + self._reboot_queries

    def _count_query(self) -> None:
        with self._lock:
            self._reboot_queries += 1

    def _debug(self, message: str, tracker_id: str) -> None:
        if self._monitor is not None and self._monitor.debug:
            self._monitor.log(LogLevel.DEBUG, message, tracker_id)

    def _allocate(self, domain: RuntimeDomain, size: int) -> None:
        if self._memory is None:
            return
        try:
            self._memory.domain(domain).allocate(size)
        except ArenaExhaustedError:
            pass

    def _low_space(self) -> bool:
        try:
            return self._free_space() < MIN_FREE_BYTES
        except OSError:
            return False

    def handle(self, request: str, tracker_id: str = "SYSTEM") -> str | None:
        """Return the response to ``request``, or None if no endpoint here answers it."""
        size = -(-len(request) // REQUEST_BLOCK) * REQUEST_BLOCK
        self._allocate(RuntimeDomain.REQUEST, size)

        if request.startswith("OPTIONS "):
            return OPTIONS_RESPONSE
        if not _is_http_request(request):
            return None

        tokens = request.split(None, 2)
        method = tokens[0]
        path = tokens[1] if len(tokens) > 1 else ""
        clean_path = path.split("?", 1)[0]
        is_api = clean_path.startswith(_API_PREFIX) and _is_hex(clean_path[len(_API_PREFIX):])
        short_insert = method == "POST" and is_api and len(clean_path) == _SHORT_INSERT_LENGTH
        short_exists = method == "GET" and is_api and len(clean_path) == _SHORT_EXISTS_LENGTH

        if "POST /api/v1/insert" in request or "POST /api/v1/create" in request or short_insert:
            if short_insert:
                start = len(_API_PREFIX)
                identifier = clean_path[start:start + HASH_LENGTH]
                pwk = clean_path[start + HASH_LENGTH:start + 2 * HASH_LENGTH]
            else:
                identifier = extract_json_string(request, "identifier")
                pwk = extract_json_string(request, "pwk")
            return self._insert(identifier, pwk, tracker_id)

        if "GET /api/v1/exists" in request or short_exists:
            if short_exists:
                identifier = clean_path[len(_API_PREFIX):]
            else:
                identifier = extract_query_string(request, "identifier")
            return self._exists(identifier, tracker_id)

        return None

    def _insert(self, identifier: str, pwk: str, tracker_id: str) -> str:
        self._count_query()
        if len(identifier) != HASH_LENGTH or len(pwk) != HASH_LENGTH:
            return http_response(
                "400 Bad Request",
                '{"error":"invalid fields or size limits (must be 64 char hashes)"}',
            )
        if self._low_space():
            return http_response("507 Insufficient Storage", '{"error":"insufficient storage"}')
        if self._engine.query(identifier) is QueryResult.DEFINITELY_YES:
            return http_response("409 Conflict", '{"error":"duplicate identifier"}')

        self._engine.insert(identifier)
        if self._storage is not None:
            entity = DbEntity(uuid=sha256(identifier + pwk), identifier=identifier, pwk=pwk)
            self._storage.insert_entity(entity, tracker_id)
        self._allocate(RuntimeDomain.RUNTIME, RUNTIME_BYTES_PER_INSERT)
        self._debug("API Inserted identifier: " + identifier, tracker_id)
        return http_response("200 OK", '{"status":"success"}')

    def _exists(self, identifier: str, tracker_id: str) -> str:
        self._count_query()
        if len(identifier) != HASH_LENGTH:
            return http_response(
                "400 Bad Request",
                '{"error":"invalid identifier size (must be 64 char hash)"}',
            )
        label = result_label(self._engine.query(identifier))
        self._debug(f"API Queried identifier: {identifier} -> {label}", tracker_id)
        return http_response("200 OK", f'{{"result":"{label}"}}')

    def handle_batch(self, payload: str) -> str | None:
        """Answer an ``exists_batch`` message, or return None for any other action."""
        if extract_json_string(payload, "action") != "exists_batch":
            return None
        batch_id = extract_json_string(payload, "batch_id")
        entries = []
        for identifier in extract_json_array(payload, "identifiers"):
            if len(identifier) != HASH_LENGTH:
                continue
            self._count_query()
            label = result_label(self._engine.query(identifier))
            entries.append(f'"{identifier}":"{label}"')
        results = "{" + ",".join(entries) + "}"
        return (
            '{"action":"exists_batch_response", "batch_id":"'
            + batch_id
            + '", "results":'
            + results
            + "}"
        )