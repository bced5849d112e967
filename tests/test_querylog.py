"""Test query logging — daily JSONL files with retention cleanup."""

import json
from datetime import UTC, datetime, timedelta

from datafrost.querylog import cleanup_old_logs, log_query


def test_log_query_creates_file(datafrost_home):
    """log_query creates a daily JSONL file and appends an entry."""
    log_query(sql="SELECT 1", connection_id=3, db_type="sqlite", row_count=1)

    log_files = list((datafrost_home / "logs").glob("*.jsonl"))
    assert len(log_files) == 1

    today = datetime.now(UTC).strftime("%Y-%m-%d")
    assert log_files[0].name == f"{today}.jsonl"

    entry = json.loads(log_files[0].read_text().strip())
    assert entry["sql"] == "SELECT 1"
    assert entry["connection_id"] == 3
    assert entry["db_type"] == "sqlite"
    assert entry["row_count"] == 1
    assert entry["rejected"] is False
    assert entry["error"] is None
    assert "ts" in entry


def test_log_query_appends_to_existing(datafrost_home):
    """Multiple log calls append to the same daily file."""
    log_query(sql="SELECT 1")
    log_query(table="users", rejected=False, duration_ms=12.5)

    lines = next((datafrost_home / "logs").glob("*.jsonl")).read_text().strip().split("\n")
    assert len(lines) == 2
    assert json.loads(lines[0])["sql"] == "SELECT 1"
    second = json.loads(lines[1])
    assert second["sql"] is None
    assert second["table"] == "users"
    assert second["duration_ms"] == 12.5


def test_log_query_rejected(datafrost_home):
    log_query(sql="DROP TABLE t", rejected=True, error="only SELECT and WITH queries are allowed")
    entry = json.loads(next((datafrost_home / "logs").glob("*.jsonl")).read_text())
    assert entry["rejected"] is True
    assert entry["error"].startswith("only SELECT")


def test_cleanup_deletes_old_files(datafrost_home):
    """Files older than retention_days are deleted."""
    log_dir = datafrost_home / "logs"
    log_dir.mkdir(parents=True)

    old_date = (datetime.now(UTC) - timedelta(days=40)).strftime("%Y-%m-%d")
    (log_dir / f"{old_date}.jsonl").write_text('{"sql":"old"}\n')

    recent_date = (datetime.now(UTC) - timedelta(days=5)).strftime("%Y-%m-%d")
    (log_dir / f"{recent_date}.jsonl").write_text('{"sql":"recent"}\n')

    (log_dir / "notes.jsonl").write_text("{}\n")

    deleted = cleanup_old_logs(retention_days=30)

    assert deleted == 1
    assert not (log_dir / f"{old_date}.jsonl").exists()
    assert (log_dir / f"{recent_date}.jsonl").exists()
    assert (log_dir / "notes.jsonl").exists()


def test_cleanup_no_directory():
    """Cleanup is a no-op when log directory doesn't exist."""
    assert cleanup_old_logs() == 0
