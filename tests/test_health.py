import io

import pytest

from akkonstore.health import (
    LOCKDOWN_DISK_BYTES,
    LOW_DISK_BYTES,
    HealthMonitor,
    score_health,
)
from akkonstore.monitor import LogLevel, SystemMonitor

PLENTY = 10 * 1024 * 1024 * 1024


def test_healthy_system_scores_full():
    assert score_health(PLENTY, 0, 0, True) == 100


def test_disk_below_lockdown_scores_zero():
    assert score_health(LOCKDOWN_DISK_BYTES - 1, 0, 0, True) == 0


def test_smart_failure_halves_score():
    assert score_health(PLENTY, 0, 0, False) == 50


def test_low_disk_penalty():
    assert score_health(LOW_DISK_BYTES - 1) == 70


@pytest.mark.parametrize("allocated", [0, 50, 89, 90, 94, 95, 98, 99, 100])
def test_score_bounds_and_monotonic_in_ram(allocated):
    current = score_health(PLENTY, allocated, 100, True)
    more = score_health(PLENTY, min(allocated + 5, 100), 100, True)
    assert 0 <= current <= 100
    assert more <= current


def test_score_never_negative():
    assert score_health(LOW_DISK_BYTES - 1, 100, 100, False) == 0


def test_zero_capacity_ignores_ram():
    assert score_health(PLENTY, 10**9, 0) == score_health(PLENTY)


def test_check_health_reports_disk(tmp_path):
    db_dir = tmp_path / "db"
    health = HealthMonitor(db_dir, None, lambda path: PLENTY, lambda: (True, ""))
    stats = health.check_health()
    assert stats.available_disk_bytes == PLENTY
    assert stats.reliability_score == 100
    assert db_dir.is_dir()
    assert health.lockdown_requested is False


def test_check_health_low_disk_requests_lockdown(tmp_path):
    received = []
    monitor = SystemMonitor(debug=False, stream=io.StringIO())
    monitor.set_callback(lambda level, line: received.append((level, line)))
    health = HealthMonitor(tmp_path / "db", monitor, lambda path: 1024, lambda: (True, ""))
    stats = health.check_health()
    assert stats.reliability_score == 0
    assert health.lockdown_requested is True
    assert any(level is LogLevel.ERROR and "IMMEDIATE lockdown" in line for level, line in received)


def test_check_health_failed_disk_query(tmp_path):
    def broken(path):
        raise OSError("no device")

    monitor = SystemMonitor(debug=False, stream=io.StringIO())
    health = HealthMonitor(tmp_path / "db", monitor, broken, lambda: (True, ""))
    stats = health.check_health()
    assert stats.reliability_score == 0
    assert stats.available_disk_bytes == 0


def test_smart_result_is_cached(tmp_path):
    calls = []

    def smart():
        calls.append(1)
        return False, "failing"

    health = HealthMonitor(tmp_path / "db", None, lambda path: PLENTY, smart)
    first = health.check_health()
    second = health.check_health()
    assert len(calls) == 1
    assert first == second
    assert first.reliability_score == score_health(PLENTY, smart_ok=False)


def test_ram_warning_logged(tmp_path):
    received = []
    monitor = SystemMonitor(debug=True, stream=io.StringIO())
    monitor.set_callback(lambda level, line: received.append((level, line)))
    health = HealthMonitor(tmp_path / "db", monitor, lambda path: PLENTY, lambda: (True, ""))
    stats = health.check_health(ram_allocated=100, ram_capacity=100)
    assert stats.reliability_score == score_health(PLENTY, 100, 100)
    assert any("RAM usage extremely high" in line for _, line in received)