"""Saved connections — the app's own SQLite database under ~/.datafrost."""

from __future__ import annotations

import contextlib
import json
import os
import re
import sqlite3
import stat
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from datafrost.adapters._base import InvalidCredentialShape
from datafrost.config import config_db_path

_SCHEMA = """
CREATE TABLE IF NOT EXISTS connections (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    type TEXT NOT NULL,
    credentials TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS app_state (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

_SECRET_KEYS = frozenset(
    {"password", "token", "credentials", "private_key_pem", "private_key_passphrase"}
)
_URL_PASSWORD = re.compile(r"(://[^:/@]+:)([^@]+)(@)")
_MASK = "****"


@dataclass
class ConnectionRecord:
    id: int
    name: str
    type: str
    credentials: dict[str, Any]
    created_at: str
    updated_at: str

    def to_dict(self, *, mask_secrets: bool = True) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "credentials": mask_credentials(self.credentials)
            if mask_secrets
            else dict(self.credentials),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


def serialize_credentials(credentials: Mapping[str, Any]) -> str:
    try:
        return json.dumps(dict(credentials))
    except (TypeError, ValueError) as e:
        raise InvalidCredentialShape(f"failed to serialize credentials: {e}") from e


def deserialize_credentials(data: str) -> dict[str, Any]:
    try:
        credentials = json.loads(data)
    except json.JSONDecodeError as e:
        raise InvalidCredentialShape(f"failed to deserialize credentials: {e}") from e
    if not isinstance(credentials, dict):
        raise InvalidCredentialShape("stored credentials are not a JSON object")
    return credentials


def mask_credentials(credentials: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of credentials with secrets replaced, for display."""
    masked: dict[str, Any] = {}
    for key, value in credentials.items():
        if key in _SECRET_KEYS and value:
            masked[key] = _MASK
        elif key == "url" and isinstance(value, str):
            masked[key] = _URL_PASSWORD.sub(rf"\g<1>{_MASK}\g<3>", value)
        else:
            masked[key] = value
    return masked


@contextlib.contextmanager
def _connect() -> Iterator[sqlite3.Connection]:
    path = config_db_path()
    is_new = not path.exists()
    path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
    conn = sqlite3.connect(path)
    try:
        if is_new:
            os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)  # 0600, credentials live here
        conn.executescript(_SCHEMA)
        with conn:
            yield conn
    finally:
        conn.close()


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _record(row: tuple) -> ConnectionRecord:
    conn_id, name, db_type, credentials, created_at, updated_at = row
    return ConnectionRecord(
        id=conn_id,
        name=name,
        type=db_type,
        credentials=deserialize_credentials(credentials),
        created_at=created_at,
        updated_at=updated_at,
    )


_SELECT = "SELECT id, name, type, credentials, created_at, updated_at FROM connections"


def save_connection(name: str, db_type: str, credentials: Mapping[str, Any]) -> int:
    """Store a new connection. Returns its id."""
    now = _now()
    with _connect() as conn:
        cur = conn.execute(
            "INSERT INTO connections (name, type, credentials, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (name, db_type, serialize_credentials(credentials), now, now),
        )
        return int(cur.lastrowid)


def get_connection(connection_id: int) -> ConnectionRecord | None:
    """Look up a connection by id. Returns None if not found."""
    with _connect() as conn:
        row = conn.execute(f"{_SELECT} WHERE id = ?", (connection_id,)).fetchone()
    return _record(row) if row else None


def list_connections() -> list[ConnectionRecord]:
    """All connections, newest first."""
    with _connect() as conn:
        rows = conn.execute(f"{_SELECT} ORDER BY created_at DESC, id DESC").fetchall()
    return [_record(r) for r in rows]


def update_connection(
    connection_id: int,
    *,
    name: str | None = None,
    db_type: str | None = None,
    credentials: Mapping[str, Any] | None = None,
) -> bool:
    """Change the given fields. Returns True if updated, False if not found.

    Callers holding an AdapterCache must invalidate the id afterwards.
    """
    assignments = ["updated_at = ?"]
    params: list[Any] = [_now()]
    if name is not None:
        assignments.append("name = ?")
        params.append(name)
    if db_type is not None:
        assignments.append("type = ?")
        params.append(db_type)
    if credentials is not None:
        assignments.append("credentials = ?")
        params.append(serialize_credentials(credentials))
    params.append(connection_id)

    with _connect() as conn:
        cur = conn.execute(
            f"UPDATE connections SET {', '.join(assignments)} WHERE id = ?", params
        )
        return cur.rowcount > 0


def remove_connection(connection_id: int) -> bool:
    """Remove a connection. Returns True if removed, False if not found."""
    with _connect() as conn:
        cur = conn.execute("DELETE FROM connections WHERE id = ?", (connection_id,))
        if cur.rowcount and _last_connected(conn) == connection_id:
            conn.execute("DELETE FROM app_state WHERE key = 'last_connected_id'")
        return cur.rowcount > 0


def set_last_connected(connection_id: int) -> None:
    with _connect() as conn:
        conn.execute(
            "INSERT INTO app_state (key, value) VALUES ('last_connected_id', ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (str(connection_id),),
        )


def get_last_connected() -> int | None:
    """Id of the most recently used connection, if any."""
    with _connect() as conn:
        return _last_connected(conn)


def _last_connected(conn: sqlite3.Connection) -> int | None:
    row = conn.execute("SELECT value FROM app_state WHERE key = 'last_connected_id'").fetchone()
    if row is None:
        return None
    try:
        return int(row[0])
    except ValueError:
        return None
