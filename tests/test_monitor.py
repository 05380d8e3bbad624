import io
import os
import re

from akkonstore.monitor import LogLevel, SystemMonitor, run_watchdog

LINE_RE = re.compile(
    r"^\[\w{3} \w{3} [ \d]\d \d\d:\d\d:\d\d \d{4}\] \[(\w+)\] \[([\w]+)\] (.*)\n$"
)


def test_format_line_layout():
    monitor = SystemMonitor(debug=True, stream=io.StringIO())
    line = monitor.format_line(LogLevel.WARNING, "hello", "TRK_000001")
    match = LINE_RE.match(line)
    assert match is not None
    assert match.group(1) == "WARNING"
    assert match.group(2) == "TRK_000001"
    assert match.group(3) == "hello"


def test_default_tracker_is_system():
    monitor = SystemMonitor(debug=True, stream=io.StringIO())
    line = monitor.format_line(LogLevel.INFO, "x")
    assert "[SYSTEM]" in line


def test_non_error_filtered_outside_debug():
    out = io.StringIO()
    monitor = SystemMonitor(debug=False, stream=out)
    assert monitor.log(LogLevel.INFO, "quiet") is None
    assert monitor.log(LogLevel.DEBUG, "quiet") is None
    assert out.getvalue() == ""


def test_error_passes_outside_debug():
    out = io.StringIO()
    monitor = SystemMonitor(debug=False, stream=out)
    line = monitor.log(LogLevel.ERROR, "broken")
    assert line is not None
    assert out.getvalue() == line
    assert "[ERROR]" in line and line.endswith("broken\n")


def test_debug_mode_emits_everything():
    out = io.StringIO()
    monitor = SystemMonitor(debug=True, stream=out)
    for level in LogLevel:
        monitor.log(level, f"msg-{level.name}")
    text = out.getvalue()
    for level in LogLevel:
        assert f"[{level.name}]" in text


def test_callback_receives_level_and_line():
    received = []
    monitor = SystemMonitor(debug=True, stream=io.StringIO())
    monitor.set_callback(lambda level, line: received.append((level, line)))
    line = monitor.log(LogLevel.WARNING, "disk", "TRK_00000A")
    assert received == [(LogLevel.WARNING, line)]
    monitor.set_callback(None)
    monitor.log(LogLevel.WARNING, "again")
    assert len(received) == 1


def test_run_watchdog_copies_pipe(tmp_path):
    log_path = tmp_path / "server.log"
    out = io.StringIO()
    read_fd, write_fd = os.pipe()
    os.write(write_fd, "first line\nsecond ü\n".encode("utf-8"))
    os.close(write_fd)
    run_watchdog(read_fd, os.getpid(), log_path, out)
    content = log_path.read_text(encoding="utf-8")
    assert content.startswith(f"--- Watchdog Started (Monitoring PID {os.getpid()}) ---\n")
    assert "first line\nsecond ü\n" in content
    assert content.endswith("--- Watchdog Exiting ---\n")
    assert out.getvalue() == content


def test_run_watchdog_appends(tmp_path):
    log_path = tmp_path / "server.log"
    log_path.write_text("earlier\n", encoding="utf-8")
    read_fd, write_fd = os.pipe()
    os.close(write_fd)
    run_watchdog(read_fd, os.getpid(), log_path, io.StringIO())
    assert log_path.read_text(encoding="utf-8").startswith("earlier\n--- Watchdog Started")


def test_monitor_watchdog_writes_log_file(tmp_path):
    log_path = tmp_path / "akkon.log"
    out = io.StringIO()
    monitor = SystemMonitor(debug=True, stream=out)
    monitor.start_watchdog(log_path)
    line = monitor.log(LogLevel.INFO, "through the pipe")
    monitor.close()
    content = log_path.read_text(encoding="utf-8")
    assert line in content
    assert content.endswith("--- Watchdog Exiting ---\n")
    assert out.getvalue() == content


def test_after_close_logs_go_to_stream(tmp_path):
    out = io.StringIO()
    monitor = SystemMonitor(debug=True, stream=out)
    monitor.start_watchdog(tmp_path / "w.log")
    monitor.close()
    before = out.getvalue()
    line = monitor.log(LogLevel.INFO, "direct")
    assert out.getvalue() == before + line