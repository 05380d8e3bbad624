"""Process logging with level filtering, listeners and a log-file watchdog."""

from __future__ import annotations

import codecs
import enum
import os
import sys
import threading
import time
from collections.abc import Callable
from typing import TextIO

DEFAULT_LOG_FILE = "akkon_server.log"
_READ_CHUNK = 1023


class LogLevel(enum.Enum):
    INFO = 0
    WARNING = 1
    ERROR = 2
    DEBUG = 3


LogCallback = Callable[[LogLevel, str], None]


class SystemMonitor:
    """Formats and emits log lines.

    Outside debug mode only ERROR lines are emitted. Lines go to the
    watchdog once it runs, otherwise to ``stream`` (standard output by
    default), and every emitted line is handed to the callback.
    """

    def __init__(self, debug: bool = False, stream: TextIO | None = None) -> None:
        self.debug = debug
        self._stream = stream
        self._callback: LogCallback | None = None
        self._lock = threading.Lock()
        self._write_fd: int | None = None
        self._watchdog: threading.Thread | None = None

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def set_callback(self, callback: LogCallback | None) -> None:
        with self._lock:
            self._callback = callback

    def format_line(self, level: LogLevel, message: str, tracker_id: str = "SYSTEM") -> str:
        stamp = time.ctime(time.time())
        return f"[{stamp}] [{level.name}] [{tracker_id}] {message}\n"

    def log(self, level: LogLevel, message: str, tracker_id: str = "SYSTEM") -> str | None:
        """Emit a line and return it, or return None when the level is filtered out."""
        if not self.debug and level is not LogLevel.ERROR:
            return None
        line = self.format_line(level, message, tracker_id)
        with self._lock:
            if self._write_fd is not None:
                os.write(self._write_fd, line.encode("utf-8"))
            else:
                out = self.stream
                out.write(line)
                out.flush()
            if self._callback is not None:
                self._callback(level, line)
        return line

    def start_watchdog(self, log_path: str | os.PathLike[str] = DEFAULT_LOG_FILE) -> None:
        """Route all further lines through a watchdog that appends them to ``log_path``."""
        with self._lock:
            if self._write_fd is not None:
                return
            read_fd, write_fd = os.pipe()
            self._watchdog = threading.Thread(
                target=run_watchdog,
                args=(read_fd, os.getpid(), log_path, self._stream),
                name="akkon-watchdog",
                daemon=True,
            )
            self._watchdog.start()
            self._write_fd = write_fd

    def close(self) -> None:
        """Stop the watchdog, if any, after it has drained every line."""
        with self._lock:
            write_fd, self._write_fd = self._write_fd, None
            watchdog, self._watchdog = self._watchdog, None
        if write_fd is not None:
            os.close(write_fd)
        if watchdog is not None:
            watchdog.join()


def _process_alive(pid: int) -> bool:
    if os.name == "nt":
        return True
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def run_watchdog(
    read_fd: int,
    main_pid: int,
    log_path: str | os.PathLike[str] = DEFAULT_LOG_FILE,
    stream: TextIO | None = None,
) -> None:
    """Copy everything read from ``read_fd`` to the log file and ``stream``.

    Stops when the pipe is closed or the watched process is gone, and
    closes ``read_fd`` before returning.
    """
    out = stream if stream is not None else sys.stdout
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    with open(log_path, "a", encoding="utf-8") as log_file:

        def emit(text: str) -> None:
            if not text:
                return
            log_file.write(text)
            log_file.flush()
            out.write(text)
            out.flush()

        emit(f"--- Watchdog Started (Monitoring PID {main_pid}) ---\n")
        try:
            while True:
                chunk = os.read(read_fd, _READ_CHUNK)
                if not chunk:
                    emit(decoder.decode(b"", final=True))
                    break
                emit(decoder.decode(chunk))
                if not _process_alive(main_pid):
                    emit("--- Main process exited ---\n")
                    break
        finally:
            os.close(read_fd)
        emit("--- Watchdog Exiting ---\n")