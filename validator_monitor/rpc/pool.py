"""Per-endpoint RPC clients shared behind a lock."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog

from .client import NodeClient

logger = structlog.get_logger(__name__)


class GuardedClient:
    """One node client with at most one call in flight.

    Hold the lock only around a single call::

        async with guarded.acquire() as client:
            block = await client.fetch_latest_block()
    """

    def __init__(self, client: Any):
        self._client = client
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[Any]:
        async with self._lock:
            yield self._client

    async def aclose(self) -> None:
        async with self._lock:
            close = getattr(self._client, "aclose", None)
            if close is not None:
                await close()


class ClientPool:
    """Maps each configured endpoint to its ``GuardedClient``."""

    def __init__(self, clients: dict[str, GuardedClient] | None = None):
        self._clients: dict[str, GuardedClient] = dict(clients or {})

    @classmethod
    def for_endpoints(cls, endpoints: dict[str, float]) -> ClientPool:
        """Build a pool from ``{endpoint: request_timeout}``."""
        pool = cls()
        for endpoint, timeout in endpoints.items():
            logger.info(f"this tool will connect to {endpoint}", endpoint=endpoint)
            pool.add(endpoint, NodeClient(endpoint, timeout=timeout))
        return pool

    def add(self, endpoint: str, client: Any) -> GuardedClient:
        guarded = GuardedClient(client)
        self._clients[endpoint] = guarded
        return guarded

    def get(self, endpoint: str) -> GuardedClient:
        try:
            return self._clients[endpoint]
        except KeyError:
            raise KeyError(f"no RPC client registered for endpoint {endpoint}") from None

    async def aclose(self) -> None:
        for guarded in self._clients.values():
            await guarded.aclose()
