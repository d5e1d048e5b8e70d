"""Persistent cache for the branding logo.

The logo is fetched once, converted to a ``data:`` URI and stored under a
fixed key. Cached values never expire; changing the key is the only way to
invalidate them.
"""

import base64
import logging
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

import httpx

from showmethemoney.config import CACHE_DIR, FETCH_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Key-value stores
# ---------------------------------------------------------------------------

class KeyValueStore(Protocol):
    """Minimal string get/set store."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryStore:
    """In-process store, mainly for tests and short-lived hosts."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class FileStore:
    """One text file per key under *directory*.

    ``set`` raises ``OSError`` when the value cannot be written (disk full,
    read-only directory); ``get`` treats unreadable entries as missing.
    """

    def __init__(self, directory: Path = CACHE_DIR) -> None:
        self.directory = directory

    def _path_for(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}.txt"

    def get(self, key: str) -> str | None:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Failed to read cache entry %s: %s", path, e)
            return None

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path_for(key)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(value, encoding="utf-8")
        tmp_path.replace(path)


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

def to_data_url(content: bytes, content_type: str) -> str:
    """Encode *content* as a self-contained ``data:`` URI."""
    mime = content_type.split(";", 1)[0].strip() or "application/octet-stream"
    b64 = base64.b64encode(content).decode()
    return f"data:{mime};base64,{b64}"


class AssetCache:
    """Get-or-fetch-and-persist for a single binary asset.

    Args:
        store: Backing key-value store.
        transport: Optional httpx transport (used to stub the network in tests).
        timeout: Fetch timeout in seconds.
    """

    def __init__(
        self,
        store: KeyValueStore,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = FETCH_TIMEOUT_SECONDS,
    ) -> None:
        self.store = store
        self.transport = transport
        self.timeout = timeout

    async def _fetch(self, source_url: str) -> str:
        async with httpx.AsyncClient(
            timeout=self.timeout,
            transport=self.transport,
            follow_redirects=True,
        ) as client:
            response = await client.get(source_url)
            response.raise_for_status()

        content_type = response.headers.get("content-type", "image/png")
        return to_data_url(response.content, content_type)

    async def get_or_fetch(self, key: str, source_url: str) -> str | None:
        """Return the cached value for *key*, fetching *source_url* on a miss.

        Returns None when the asset is not cached and cannot be fetched.
        A fetched value is returned even if persisting it fails.
        """
        cached = self.store.get(key)
        if cached:
            logger.debug("Asset cache hit for %s", key)
            return cached

        if not source_url:
            logger.debug("Asset %s not cached and no source URL configured", key)
            return None

        try:
            value = await self._fetch(source_url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Failed to fetch asset %s from %s: %s", key, source_url, e)
            return None

        try:
            self.store.set(key, value)
            logger.info("Cached asset %s (%d chars)", key, len(value))
        except OSError as e:
            logger.warning("Failed to persist asset %s, using in-memory copy: %s", key, e)

        return value
