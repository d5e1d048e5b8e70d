"""Tests for the logo asset cache."""

import base64

import httpx
import pytest

from showmethemoney.asset_cache import AssetCache, FileStore, MemoryStore, to_data_url

LOGO_URL = "https://assets.example.test/twqr-logo.png"
PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"


class CountingTransport(httpx.MockTransport):
    """Mock transport that records how many requests it served."""

    def __init__(self, status_code: int = 200, content: bytes = PNG_BYTES):
        self.calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            self.calls += 1
            return httpx.Response(status_code, content=content, headers={"content-type": "image/png"})

        super().__init__(handler)


class FailingStore(MemoryStore):
    """Store whose writes always fail, like a full quota."""

    def set(self, key: str, value: str) -> None:
        raise OSError("quota exceeded")


class TestToDataUrl:
    def test_encodes_with_mime(self):
        url = to_data_url(b"abc", "image/png; charset=binary")
        assert url == "data:image/png;base64," + base64.b64encode(b"abc").decode()

    def test_missing_mime(self):
        assert to_data_url(b"", "").startswith("data:application/octet-stream;base64,")


class TestAssetCache:
    @pytest.mark.asyncio
    async def test_cache_hit_skips_network(self, memory_store):
        """A stored value is returned without fetching."""
        memory_store.set("twqr-logo", "data:image/png;base64,AAAA")
        transport = CountingTransport()
        cache = AssetCache(memory_store, transport=transport)

        assert await cache.get_or_fetch("twqr-logo", LOGO_URL) == "data:image/png;base64,AAAA"
        assert transport.calls == 0

    @pytest.mark.asyncio
    async def test_miss_fetches_and_persists(self, memory_store):
        """The first call fetches and stores; later calls hit the store."""
        transport = CountingTransport()
        cache = AssetCache(memory_store, transport=transport)

        first = await cache.get_or_fetch("twqr-logo", LOGO_URL)
        second = await cache.get_or_fetch("twqr-logo", LOGO_URL)

        assert first == to_data_url(PNG_BYTES, "image/png")
        assert second == first
        assert memory_store.get("twqr-logo") == first
        assert transport.calls == 1

    @pytest.mark.asyncio
    async def test_http_error_returns_none(self, memory_store):
        """A failed fetch degrades to no logo and caches nothing."""
        cache = AssetCache(memory_store, transport=CountingTransport(status_code=404))

        assert await cache.get_or_fetch("twqr-logo", LOGO_URL) is None
        assert memory_store.get("twqr-logo") is None

    @pytest.mark.asyncio
    async def test_connection_error_returns_none(self, memory_store):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("offline", request=request)

        cache = AssetCache(memory_store, transport=httpx.MockTransport(handler))
        assert await cache.get_or_fetch("twqr-logo", LOGO_URL) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("source_url", ["http://[::1", "https://exa mple.com/\x00logo.png"])
    async def test_malformed_url_returns_none(self, memory_store, source_url):
        """A URL httpx refuses to parse degrades to no logo."""
        transport = CountingTransport()
        cache = AssetCache(memory_store, transport=transport)

        assert await cache.get_or_fetch("twqr-logo", source_url) is None
        assert memory_store.get("twqr-logo") is None
        assert transport.calls == 0

    @pytest.mark.asyncio
    async def test_persist_failure_still_returns_value(self):
        """Storage errors are non-fatal."""
        cache = AssetCache(FailingStore(), transport=CountingTransport())
        assert await cache.get_or_fetch("twqr-logo", LOGO_URL) == to_data_url(PNG_BYTES, "image/png")

    @pytest.mark.asyncio
    async def test_no_source_url(self, memory_store):
        """Without a URL only the cache is consulted."""
        cache = AssetCache(memory_store, transport=CountingTransport())
        assert await cache.get_or_fetch("twqr-logo", "") is None


class TestFileStore:
    def test_round_trip(self, tmp_path):
        store = FileStore(tmp_path / "cache")
        assert store.get("twqr-logo") is None

        store.set("twqr-logo", "data:image/png;base64,AAAA")
        assert store.get("twqr-logo") == "data:image/png;base64,AAAA"
        assert FileStore(tmp_path / "cache").get("twqr-logo") == "data:image/png;base64,AAAA"

    def test_keys_stay_inside_directory(self, tmp_path):
        store = FileStore(tmp_path)
        store.set("../escape/key", "value")
        assert store.get("../escape/key") == "value"
        assert [p.parent for p in tmp_path.iterdir()] == [tmp_path]

    def test_set_overwrites(self, tmp_path):
        store = FileStore(tmp_path)
        store.set("k", "one")
        store.set("k", "two")
        assert store.get("k") == "two"
