"""Turso adapter — remote libSQL databases through the libsql driver."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import libsql

from datafrost.adapters._base import ConnectionFailed, DatabaseType
from datafrost.adapters._credentials import TursoCredentials, parse_credentials
from datafrost.adapters.sqlite import SQLiteFamilyAdapter


class TursoAdapter(SQLiteFamilyAdapter):
    """Turso/libSQL over the network. Same SQL surface as SQLite."""

    async def connect(self, credentials: Mapping[str, Any]) -> None:
        creds = parse_credentials(DatabaseType.TURSO, credentials)
        assert isinstance(creds, TursoCredentials)
        try:
            self._conn = libsql.connect(creds.url, auth_token=creds.token)
        except Exception as e:
            raise ConnectionFailed(f"failed to open turso connection: {e}") from e

    def db_type(self) -> DatabaseType:
        return DatabaseType.TURSO
