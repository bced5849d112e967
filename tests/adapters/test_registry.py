"""Test the adapter registry: lookup, metadata, lazy loading and test_connection."""

from __future__ import annotations

import asyncio
import sys

import pytest

from datafrost.adapters._base import (
    AdapterError,
    AdapterInfo,
    DatabaseType,
    UnknownAdapterType,
    Unreachable,
)
from datafrost.adapters._registry import (
    _ADAPTER_MAP,
    _EXTRAS,
    AdapterRegistry,
    default_registry,
    load_adapter_class,
)
from datafrost.adapters.sqlite import SQLiteAdapter


class _FakeAdapter:
    """Records lifecycle calls; ping fails when fail_ping is set."""

    instances: list[_FakeAdapter] = []

    def __init__(self, *, fail_connect: bool = False, fail_ping: bool = False) -> None:
        self.fail_connect = fail_connect
        self.fail_ping = fail_ping
        self.events: list[str] = []
        _FakeAdapter.instances.append(self)

    async def connect(self, credentials):
        self.events.append("connect")
        if self.fail_connect:
            raise AdapterError("refused")

    async def ping(self):
        self.events.append("ping")
        if self.fail_ping:
            raise Unreachable("no route")

    async def close(self):
        self.events.append("close")


_INFO = AdapterInfo(type="x", name="X", description="fake backend")


def test_unknown_type():
    with pytest.raises(UnknownAdapterType, match="unknown adapter type: nope"):
        default_registry().get_adapter("nope")
    with pytest.raises(UnknownAdapterType):
        default_registry().get_adapter_info("nope")


def test_register_and_construct_fresh_instances():
    registry = AdapterRegistry()
    registry.register(_INFO, _FakeAdapter)
    first = registry.get_adapter("x")
    second = registry.get_adapter("x")
    assert isinstance(first, _FakeAdapter)
    assert first is not second
    assert first.events == []
    assert registry.get_adapter_info("x") is _INFO


def test_register_overwrites():
    registry = AdapterRegistry()
    registry.register(_INFO, _FakeAdapter)
    replacement = AdapterInfo(type="x", name="X2", description="newer")
    registry.register(replacement, SQLiteAdapter)
    assert isinstance(registry.get_adapter("x"), SQLiteAdapter)
    assert registry.list_adapters() == [replacement]


def test_default_registry_lists_every_backend():
    infos = default_registry().list_adapters()
    assert {i.type for i in infos} == {t.value for t in DatabaseType}


def test_accepts_enum_and_tag():
    registry = default_registry()
    assert isinstance(registry.get_adapter(DatabaseType.SQLITE), SQLiteAdapter)
    assert isinstance(registry.get_adapter("sqlite"), SQLiteAdapter)


def test_metadata_shapes():
    registry = default_registry()
    bq = registry.get_adapter_info("bigquery").to_dict()
    assert bq["ui_config"]["supports_file"] is True
    assert bq["ui_config"]["file_types"] == [".json"]
    assert [f["key"] for f in bq["ui_config"]["fields"]] == ["project_id", "dataset", "credentials"]

    pg = registry.get_adapter_info("postgres").to_dict()
    assert [m["key"] for m in pg["ui_config"]["modes"]] == ["url", "fields"]

    sf = registry.get_adapter_info("snowflake").to_dict()
    modes = {m["key"]: [f["key"] for f in m["fields"]] for m in sf["ui_config"]["modes"]}
    assert modes["private_key"][:3] == ["account", "user", "private_key_pem"]
    assert "private_key_pem" not in modes["browser"]


def test_missing_driver_has_install_hint(monkeypatch):
    monkeypatch.delitem(sys.modules, "datafrost.adapters.turso", raising=False)
    monkeypatch.setitem(sys.modules, "libsql", None)
    with pytest.raises(AdapterError, match=r"pip install 'datafrost\[turso\]'"):
        load_adapter_class(DatabaseType.TURSO)


def test_every_driver_backend_has_an_extra():
    for db_type in _ADAPTER_MAP:
        if db_type is not DatabaseType.SQLITE:
            assert db_type in _EXTRAS


class TestTestConnection:
    def _registry(self, **kwargs) -> AdapterRegistry:
        _FakeAdapter.instances.clear()
        registry = AdapterRegistry()
        registry.register(_INFO, lambda: _FakeAdapter(**kwargs))
        return registry

    def test_success_closes(self):
        asyncio.run(self._registry().test_connection("x", {}))
        assert _FakeAdapter.instances[0].events == ["connect", "ping", "close"]

    def test_connect_failure_still_closes(self):
        with pytest.raises(AdapterError, match="refused"):
            asyncio.run(self._registry(fail_connect=True).test_connection("x", {}))
        assert _FakeAdapter.instances[0].events == ["connect", "close"]

    def test_ping_failure_still_closes(self):
        with pytest.raises(Unreachable):
            asyncio.run(self._registry(fail_ping=True).test_connection("x", {}))
        assert _FakeAdapter.instances[0].events == ["connect", "ping", "close"]

    def test_real_sqlite(self, sqlite_path):
        asyncio.run(default_registry().test_connection("sqlite", {"path": sqlite_path}))
