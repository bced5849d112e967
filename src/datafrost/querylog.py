"""Query logging — daily JSONL files, with automatic retention cleanup."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

from datafrost.config import log_dir

DEFAULT_RETENTION_DAYS = 30


def _today_file() -> Path:
    """Return today's log file path."""
    today = datetime.now(UTC).strftime("%Y-%m-%d")
    return log_dir() / f"{today}.jsonl"


def log_query(
    *,
    sql: str | None = None,
    table: str | None = None,
    connection_id: int | None = None,
    db_type: str | None = None,
    rejected: bool = False,
    error: str | None = None,
    row_count: int | None = None,
    duration_ms: float | None = None,
) -> None:
    """Append a query log entry to today's JSONL file."""
    entry = {
        "ts": datetime.now(UTC).isoformat(),
        "connection_id": connection_id,
        "db_type": db_type,
        "sql": sql,
        "table": table,
        "rejected": rejected,
        "error": error,
        "row_count": row_count,
        "duration_ms": duration_ms,
    }

    log_file = _today_file()
    log_file.parent.mkdir(parents=True, exist_ok=True)
    with open(log_file, "a") as f:
        f.write(json.dumps(entry, default=str) + "\n")


def cleanup_old_logs(*, retention_days: int = DEFAULT_RETENTION_DAYS) -> int:
    """Delete log files older than retention_days. Returns count of deleted files."""
    cutoff = datetime.now(UTC) - timedelta(days=retention_days)
    deleted = 0

    directory = log_dir()
    if not directory.exists():
        return 0

    for log_file in directory.glob("*.jsonl"):
        try:
            file_date = datetime.strptime(log_file.stem, "%Y-%m-%d").replace(tzinfo=UTC)
        except ValueError:
            continue
        if file_date < cutoff:
            log_file.unlink()
            deleted += 1

    return deleted
