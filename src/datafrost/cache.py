"""Live adapter per saved connection id, shared by every caller."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from datafrost.adapters._base import DatabaseAdapter, DatabaseType
from datafrost.adapters._registry import AdapterRegistry, default_registry

logger = logging.getLogger(__name__)


class AdapterCache:
    """Connection-id keyed cache of connected adapters.

    One lock guards the whole map and is held while a missing adapter connects,
    so concurrent callers for the same id trigger exactly one connect. The price
    is that a slow connect also delays lookups for other ids.

    On a hit the type and credentials arguments are ignored: callers must
    invalidate an id after changing its stored credentials.
    """

    def __init__(self, registry: AdapterRegistry | None = None) -> None:
        self._registry = registry or default_registry()
        self._entries: dict[int, DatabaseAdapter] = {}
        self._lock = asyncio.Lock()

    @property
    def registry(self) -> AdapterRegistry:
        return self._registry

    def __contains__(self, connection_id: int) -> bool:
        return connection_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    async def get(
        self,
        connection_id: int,
        adapter_type: str | DatabaseType,
        credentials: Mapping[str, Any],
    ) -> DatabaseAdapter:
        """Return the cached adapter, constructing and connecting it on a miss.

        A failed connect leaves no entry and propagates the error.
        """
        async with self._lock:
            adapter = self._entries.get(connection_id)
            if adapter is not None:
                logger.debug("adapter cache hit for connection %s", connection_id)
                return adapter

            logger.debug("adapter cache miss for connection %s, connecting", connection_id)
            adapter = self._registry.get_adapter(adapter_type)
            await adapter.connect(credentials)
            self._entries[connection_id] = adapter
            return adapter

    async def invalidate(self, connection_id: int) -> None:
        """Close and drop the adapter for connection_id. Unknown ids are a no-op."""
        async with self._lock:
            adapter = self._entries.pop(connection_id, None)
            if adapter is not None:
                logger.debug("closing cached adapter for connection %s", connection_id)
                await adapter.close()

    async def close(self) -> None:
        """Close every cached adapter and empty the cache."""
        async with self._lock:
            entries, self._entries = self._entries, {}
            for connection_id, adapter in entries.items():
                logger.debug("closing cached adapter for connection %s", connection_id)
                await adapter.close()
