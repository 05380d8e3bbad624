"""Disk, drive and memory health scoring."""

from __future__ import annotations

import shutil
import subprocess
import sys
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from akkonstore.monitor import LogLevel, SystemMonitor

MB = 1024 * 1024
LOCKDOWN_DISK_BYTES = 50 * MB
LOW_DISK_BYTES = 200 * MB
SMART_CHECK_INTERVAL = 300.0

SmartCheck = Callable[[], "tuple[bool, str]"]


@dataclass(frozen=True)
class HealthStats:
    available_disk_bytes: int
    reliability_score: int  # 0-100


def score_health(
    available_disk_bytes: int,
    ram_allocated: int = 0,
    ram_capacity: int = 0,
    smart_ok: bool = True,
) -> int:
    """Return the 0-100 reliability score for the given readings."""
    score = 100
    if not smart_ok:
        score -= 50
    if available_disk_bytes < LOCKDOWN_DISK_BYTES:
        score = 0
    elif available_disk_bytes < LOW_DISK_BYTES:
        score -= 30
    if ram_capacity > 0:
        usage = ram_allocated / ram_capacity
        if usage >= 0.99:
            score -= 80
        elif usage >= 0.95:
            score -= 40
        elif usage >= 0.90:
            score -= 20
    return max(score, 0)


def _free_bytes(path: Path) -> int:
    return shutil.disk_usage(path).free


def _default_smart_check() -> tuple[bool, str]:
    if sys.platform != "darwin":
        return True, ""
    try:
        result = subprocess.run(
            ["diskutil", "info", "/"], capture_output=True, text=True, timeout=10, check=False
        )
    except (OSError, subprocess.SubprocessError):
        return True, ""
    report = "".join(line + "\n" for line in result.stdout.splitlines() if "SMART" in line)
    if report and "Verified" not in report:
        return False, report
    return True, ""


class HealthMonitor:
    """Checks free space in the database directory, drive health and RAM use.

    The drive health check is cached for five minutes. When free space
    drops below 50 MB, ``lockdown_requested`` is set.
    """

    def __init__(
        self,
        db_dir: str | Path | None = None,
        monitor: SystemMonitor | None = None,
        disk_usage: Callable[[Path], int] | None = None,
        smart_check: SmartCheck | None = None,
    ) -> None:
        self._db_dir = Path(db_dir) if db_dir is not None else Path.cwd() / "db"
        self._monitor = monitor
        self._disk_usage = disk_usage or _free_bytes
        self._smart_check = smart_check or _default_smart_check
        self._last_smart: float | None = None
        self._smart_ok = True
        self._smart_error = ""
        self.lockdown_requested = False

    def _log(self, level: LogLevel, message: str) -> None:
        if self._monitor is not None:
            self._monitor.log(level, message)

    def _refresh_smart(self) -> None:
        now = time.monotonic()
        if self._last_smart is None or now - self._last_smart > SMART_CHECK_INTERVAL:
            self._last_smart = now
            self._smart_ok, self._smart_error = self._smart_check()

    def check_health(self, ram_allocated: int = 0, ram_capacity: int = 0) -> HealthStats:
        available = 0
        try:
            self._db_dir.mkdir(exist_ok=True)
            available = int(self._disk_usage(self._db_dir))
            self._refresh_smart()

            if not self._smart_ok:
                self._log(
                    LogLevel.WARNING,
                    "S.M.A.R.T. Health Check failed or drive is failing: " + self._smart_error,
                )
            if available < LOCKDOWN_DISK_BYTES:
                self.lockdown_requested = True
                self._log(
                    LogLevel.ERROR,
                    "Disk space extremely low (<50MB)! Triggering IMMEDIATE lockdown.",
                )
            if ram_capacity > 0:
                usage = ram_allocated / ram_capacity
                if usage >= 0.99:
                    self._log(LogLevel.WARNING, "RAM usage extremely high! (>99% of capacity)")
                elif usage >= 0.95:
                    self._log(LogLevel.WARNING, "RAM usage high! (>95% of capacity)")
                elif usage >= 0.90:
                    self._log(LogLevel.WARNING, "RAM usage elevated! (>90% of capacity)")

            score = score_health(available, ram_allocated, ram_capacity, self._smart_ok)
        except OSError as exc:
            self._log(LogLevel.ERROR, f"Disk health check failed: {exc}")
            score = 0
        return HealthStats(available_disk_bytes=available, reliability_score=score)