"""Typed credentials — the stored JSON map is validated once, here, per backend."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from datafrost.adapters._base import (
    DatabaseType,
    InvalidCredentialShape,
    MissingCredentialField,
)

DEFAULT_POSTGRES_PORT = 5432
DEFAULT_SSL_MODE = "prefer"


@dataclass(frozen=True)
class SQLiteCredentials:
    path: str


@dataclass(frozen=True)
class TursoCredentials:
    url: str
    token: str = ""


@dataclass(frozen=True)
class PostgresCredentials:
    url: str | None = None
    host: str | None = None
    port: int = DEFAULT_POSTGRES_PORT
    database: str | None = None
    username: str | None = None
    password: str | None = None
    ssl_mode: str = DEFAULT_SSL_MODE


@dataclass(frozen=True)
class BigQueryCredentials:
    project_id: str
    dataset: str
    service_account_info: dict[str, Any]


@dataclass(frozen=True)
class SnowflakeCredentials:
    account: str
    user: str
    mode: str = "browser"  # "browser" | "private_key"
    private_key_pem: str | None = None
    private_key_passphrase: str | None = None
    warehouse: str | None = None
    database: str | None = None
    schema: str | None = None
    role: str | None = None


Credentials = (
    SQLiteCredentials
    | TursoCredentials
    | PostgresCredentials
    | BigQueryCredentials
    | SnowflakeCredentials
)


def _optional_str(raw: Mapping[str, Any], key: str, *, strip: bool = True) -> str | None:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidCredentialShape(f"{key} must be a string, got {type(value).__name__}")
    if strip:
        value = value.strip()
    return value or None


def _required_str(raw: Mapping[str, Any], key: str) -> str:
    value = _optional_str(raw, key)
    if value is None:
        raise MissingCredentialField(key)
    return value


def _port(raw: Mapping[str, Any]) -> int:
    value = raw.get("port")
    if value is None or value == "":
        return DEFAULT_POSTGRES_PORT
    # JSON numbers may arrive as floats; bool is an int subclass and never a port.
    if isinstance(value, bool):
        raise InvalidCredentialShape("port must be a number")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise InvalidCredentialShape(f"port must be a number, got {value!r}")


def _parse_sqlite(raw: Mapping[str, Any]) -> SQLiteCredentials:
    return SQLiteCredentials(path=_required_str(raw, "path"))


def _parse_turso(raw: Mapping[str, Any]) -> TursoCredentials:
    return TursoCredentials(url=_required_str(raw, "url"), token=_optional_str(raw, "token") or "")


def _parse_postgres(raw: Mapping[str, Any]) -> PostgresCredentials:
    mode = _optional_str(raw, "mode")
    if mode == "url":
        return PostgresCredentials(url=_required_str(raw, "url"))
    return PostgresCredentials(
        host=_required_str(raw, "host"),
        port=_port(raw),
        database=_required_str(raw, "database"),
        username=_required_str(raw, "username"),
        password=_optional_str(raw, "password", strip=False),
        ssl_mode=_optional_str(raw, "ssl_mode") or DEFAULT_SSL_MODE,
    )


def _parse_bigquery(raw: Mapping[str, Any]) -> BigQueryCredentials:
    project_id = _required_str(raw, "project_id")
    dataset = _required_str(raw, "dataset")

    creds = raw.get("credentials")
    if creds is None or (isinstance(creds, str) and not creds.strip()):
        raise MissingCredentialField("credentials")
    if isinstance(creds, str):
        try:
            creds = json.loads(creds)
        except json.JSONDecodeError as e:
            raise InvalidCredentialShape(f"credentials are not valid JSON: {e}") from e
    if not isinstance(creds, dict):
        raise InvalidCredentialShape("credentials must be a service account JSON object")

    return BigQueryCredentials(project_id=project_id, dataset=dataset, service_account_info=creds)


_SNOWFLAKE_MODES = {"browser", "private_key"}


def _parse_snowflake(raw: Mapping[str, Any]) -> SnowflakeCredentials:
    account = _required_str(raw, "account")
    user = _required_str(raw, "user")
    mode = _optional_str(raw, "mode") or "browser"
    if mode not in _SNOWFLAKE_MODES:
        raise InvalidCredentialShape(f"unknown snowflake mode: {mode}")

    pem = None
    passphrase = None
    if mode == "private_key":
        pem = _required_str(raw, "private_key_pem")
        passphrase = _optional_str(raw, "private_key_passphrase", strip=False)

    return SnowflakeCredentials(
        account=account,
        user=user,
        mode=mode,
        private_key_pem=pem,
        private_key_passphrase=passphrase,
        warehouse=_optional_str(raw, "warehouse"),
        database=_optional_str(raw, "database"),
        schema=_optional_str(raw, "schema"),
        role=_optional_str(raw, "role"),
    )


_PARSERS = {
    DatabaseType.SQLITE: _parse_sqlite,
    DatabaseType.TURSO: _parse_turso,
    DatabaseType.POSTGRES: _parse_postgres,
    DatabaseType.BIGQUERY: _parse_bigquery,
    DatabaseType.SNOWFLAKE: _parse_snowflake,
}


def parse_credentials(db_type: DatabaseType, raw: Mapping[str, Any]) -> Credentials:
    """Validate a stored credential map for db_type.

    Raises MissingCredentialField for absent/blank required keys and
    InvalidCredentialShape for values of the wrong type or form.
    """
    if not isinstance(raw, Mapping):
        raise InvalidCredentialShape("credentials must be a JSON object")
    return _PARSERS[db_type](raw)
