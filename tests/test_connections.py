"""Test the saved-connection store (SQLite config DB under DATAFROST_HOME)."""

from __future__ import annotations

import stat

import pytest

from datafrost.adapters._base import InvalidCredentialShape
from datafrost.connections import (
    deserialize_credentials,
    get_connection,
    get_last_connected,
    list_connections,
    mask_credentials,
    remove_connection,
    save_connection,
    serialize_credentials,
    set_last_connected,
    update_connection,
)


def test_save_and_get(datafrost_home):
    conn_id = save_connection("local", "sqlite", {"path": "/tmp/app.db"})
    record = get_connection(conn_id)
    assert record is not None
    assert record.id == conn_id
    assert record.name == "local"
    assert record.type == "sqlite"
    assert record.credentials == {"path": "/tmp/app.db"}
    assert record.created_at == record.updated_at
    assert (datafrost_home / "datafrost.db").exists()


def test_config_db_is_private(datafrost_home):
    save_connection("local", "sqlite", {"path": "x"})
    mode = (datafrost_home / "datafrost.db").stat().st_mode
    assert stat.S_IMODE(mode) == 0o600


def test_get_missing_returns_none():
    assert get_connection(999) is None


def test_list_newest_first():
    first = save_connection("a", "sqlite", {"path": "a"})
    second = save_connection("b", "sqlite", {"path": "b"})
    assert [r.id for r in list_connections()] == [second, first]


def test_update_connection():
    conn_id = save_connection("pg", "postgres", {"mode": "url", "url": "postgres://old"})
    assert update_connection(conn_id, credentials={"mode": "url", "url": "postgres://new"})
    record = get_connection(conn_id)
    assert record is not None
    assert record.name == "pg"
    assert record.credentials["url"] == "postgres://new"
    assert update_connection(12345, name="x") is False


def test_remove_connection():
    conn_id = save_connection("a", "sqlite", {"path": "a"})
    assert remove_connection(conn_id)
    assert get_connection(conn_id) is None
    assert remove_connection(conn_id) is False


def test_last_connected_tracks_removal():
    assert get_last_connected() is None
    keep = save_connection("a", "sqlite", {"path": "a"})
    drop = save_connection("b", "sqlite", {"path": "b"})
    set_last_connected(keep)
    set_last_connected(drop)
    assert get_last_connected() == drop
    remove_connection(drop)
    assert get_last_connected() is None


def test_credentials_round_trip_preserves_types():
    creds = {"host": "db", "port": 5432, "nested": {"a": [1, 2]}}
    assert deserialize_credentials(serialize_credentials(creds)) == creds


@pytest.mark.parametrize("data", ["{broken", "[1, 2]", '"text"'])
def test_deserialize_rejects_non_objects(data):
    with pytest.raises(InvalidCredentialShape):
        deserialize_credentials(data)


def test_serialize_rejects_unencodable():
    with pytest.raises(InvalidCredentialShape):
        serialize_credentials({"x": object()})


def test_mask_credentials():
    masked = mask_credentials(
        {
            "url": "postgres://me:s3cret@db:5432/app",
            "password": "pw",
            "token": "",
            "private_key_pem": "-----BEGIN",
            "host": "db",
        }
    )
    assert masked == {
        "url": "postgres://me:****@db:5432/app",
        "password": "****",
        "token": "",
        "private_key_pem": "****",
        "host": "db",
    }


def test_record_to_dict_masks_by_default():
    conn_id = save_connection("t", "turso", {"url": "libsql://x", "token": "abc"})
    record = get_connection(conn_id)
    assert record is not None
    assert record.to_dict()["credentials"] == {"url": "libsql://x", "token": "****"}
    assert record.to_dict(mask_secrets=False)["credentials"]["token"] == "abc"
