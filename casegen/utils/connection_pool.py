"""
Shared HTTP clients for generation service requests.

Content fetches fan out to one request per selected file, so every request
made with the same connection settings goes through one keep-alive
``httpx.AsyncClient``. Everything that shapes a request on the wire (base
URL, headers, timeout, HTTP/2, connection limit) is part of the pool key:
two services that differ in any of them never share a client.

Example:
    >>> key = PoolKey.create("https://api.example.com", headers={"Authorization": "Bearer A"})
    >>> pool = get_pool(key)
    >>> response = await pool.post("/api/files", json={"repoUrl": "https://github.com/u/r"})
    >>> await close_all_pools()
"""

import asyncio
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

log = structlog.get_logger(__name__)

# Idle keep-alive connections are dropped after this many seconds
KEEPALIVE_EXPIRY = 30.0


@dataclass(frozen=True)
class PoolKey:
    """Connection settings that identify a shared client."""

    base_url: str
    headers: tuple[tuple[str, str], ...] = ()
    timeout: float = 60.0
    max_connections: int = 10
    http2: bool = False

    @classmethod
    def create(
        cls,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 60.0,
        max_connections: int = 10,
        http2: bool = False,
    ) -> "PoolKey":
        """Build a key, normalizing the URL and header names."""
        # Header names are case-insensitive on the wire
        normalized = tuple(sorted((name.lower(), value) for name, value in (headers or {}).items()))
        return cls(
            base_url=base_url.rstrip("/"),
            headers=normalized,
            timeout=timeout,
            max_connections=max_connections,
            http2=http2,
        )


class HTTPConnectionPool:
    """Keep-alive client for one set of connection settings.

    The client is opened on the first request and can be closed and
    reopened; a closed pool opens a fresh client on its next request.
    """

    def __init__(self, key: PoolKey) -> None:
        self.key = key
        self._client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._client is not None

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        """POST ``path`` relative to the key's base URL."""
        client = self._client or await self._open()
        return await client.post(path, **kwargs)

    async def close(self) -> None:
        async with self._lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None
                log.info("http_client_closed", base_url=self.key.base_url)

    async def _open(self) -> httpx.AsyncClient:
        async with self._lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.key.base_url,
                    headers=dict(self.key.headers),
                    timeout=self.key.timeout,
                    http2=self.key.http2,
                    limits=httpx.Limits(
                        max_connections=self.key.max_connections,
                        max_keepalive_connections=self.key.max_connections,
                        keepalive_expiry=KEEPALIVE_EXPIRY,
                    ),
                )
                log.info(
                    "http_client_opened",
                    base_url=self.key.base_url,
                    max_connections=self.key.max_connections,
                    http2=self.key.http2,
                )
            return self._client


_pools: dict[PoolKey, HTTPConnectionPool] = {}


def get_pool(key: PoolKey) -> HTTPConnectionPool:
    """Return the shared pool for ``key``, creating it on first use."""
    pool = _pools.get(key)
    if pool is None:
        pool = _pools[key] = HTTPConnectionPool(key)
        log.debug("connection_pool_created", base_url=key.base_url, pools=len(_pools))
    return pool


async def close_all_pools() -> None:
    """Close every shared client and forget the pools."""
    pools = list(_pools.values())
    _pools.clear()
    for pool in pools:
        await pool.close()
    log.info("all_connection_pools_closed", count=len(pools))
