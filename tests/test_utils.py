import re
from datetime import datetime

import pytest

from akkonstore.utils import (
    current_timestamp,
    ensure_db_directory,
    escape_sql_string,
    generate_uuid,
    normalize_path,
)

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$"
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("folder1\\folder2/folder3", "folder1/folder2/folder3"),
        ("a/b/../c", "a/c"),
        ("a\\\\b\\\\c", "a/b/c"),
        ("C:\\Windows\\System32\\drivers/etc", "C:/Windows/System32/drivers/etc"),
    ],
)
def test_normalize_path_from_compatibility_suite(raw, expected):
    assert normalize_path(raw) == expected


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("", ""),
        ("a/..", "."),
        ("foo/./bar/..", "foo/"),
        ("foo/.///bar/../", "foo/"),
        ("../a", "../a"),
        ("../", ".."),
        ("/../x", "/x"),
        ("/", "/"),
    ],
)
def test_normalize_path_lexical_rules(raw, expected):
    assert normalize_path(raw) == expected


def test_escape_sql_string_doubles_quotes():
    assert escape_sql_string("O'Brien") == "O''Brien"
    assert escape_sql_string("''") == "''''"
    assert escape_sql_string("plain") == "plain"


def test_generate_uuid_shape_and_uniqueness():
    ids = {generate_uuid() for _ in range(50)}
    assert len(ids) == 50
    assert all(UUID_PATTERN.match(value) for value in ids)


def test_current_timestamp_format():
    stamp = current_timestamp()
    parsed = datetime.strptime(stamp, "%Y-%m-%d %H:%M:%S")
    assert parsed.strftime("%Y-%m-%d %H:%M:%S") == stamp


def test_ensure_db_directory_creates_once(tmp_path, capsys):
    first = ensure_db_directory(tmp_path)
    assert first == tmp_path / "db"
    assert first.is_dir()
    assert "Created DB directory" in capsys.readouterr().out

    second = ensure_db_directory(tmp_path)
    assert second == first
    assert capsys.readouterr().out == ""


def test_ensure_db_directory_defaults_to_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert ensure_db_directory() == tmp_path / "db"
    assert (tmp_path / "db").is_dir()