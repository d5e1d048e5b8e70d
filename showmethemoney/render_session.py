"""End-to-end rendering for callers that own the transfer form state.

``build_transfer_image`` runs encode → logo lookup → render for one request.
``RenderSession`` is for callers that re-render on every field edit:
overlapping renders are allowed, but only the result of the most recently
submitted request is ever applied.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from itertools import count

from showmethemoney.asset_cache import AssetCache, FileStore
from showmethemoney.config import INCLUDE_TIMESTAMP, LOGO_CACHE_KEY, LOGO_URL
from showmethemoney.qr_canvas import QrCanvasRenderer
from showmethemoney.twqr_payload import TransferRequest, encode

logger = logging.getLogger(__name__)


async def build_transfer_image(
    request: TransferRequest,
    renderer: QrCanvasRenderer | None = None,
    asset_cache: AssetCache | None = None,
    logo_url: str = LOGO_URL,
    logo_key: str = LOGO_CACHE_KEY,
    include_timestamp: bool = INCLUDE_TIMESTAMP,
    now: datetime | None = None,
) -> str:
    """Render *request* to a PNG ``data:`` URI, or ``""`` if it is incomplete."""
    if not request.is_complete:
        logger.debug("Skipping render: bank code and account id are required")
        return ""

    renderer = renderer or QrCanvasRenderer()
    asset_cache = asset_cache or AssetCache(FileStore())

    wire_payload = encode(request, include_timestamp=include_timestamp, now=now)
    logo_asset = await asset_cache.get_or_fetch(logo_key, logo_url)
    return await renderer.render(wire_payload, request, logo_asset)


@dataclass
class RenderSession:
    """Tracks outstanding renders with a monotonically increasing token.

    Each :meth:`submit` takes a new token. When a render resolves, its result
    is applied only if no newer request has been submitted meanwhile.
    """

    renderer: QrCanvasRenderer = field(default_factory=QrCanvasRenderer)
    asset_cache: AssetCache = field(default_factory=lambda: AssetCache(FileStore()))
    logo_url: str = LOGO_URL
    logo_key: str = LOGO_CACHE_KEY
    include_timestamp: bool = INCLUDE_TIMESTAMP

    latest: str = field(default="", init=False)
    _tokens: count = field(default_factory=lambda: count(1), init=False, repr=False)
    _current: int = field(default=0, init=False, repr=False)

    def next_token(self) -> int:
        self._current = next(self._tokens)
        return self._current

    def is_current(self, token: int) -> bool:
        return token == self._current

    async def submit(self, request: TransferRequest) -> str | None:
        """Render *request*; return the artifact, or None if it went stale."""
        token = self.next_token()
        artifact = await build_transfer_image(
            request,
            renderer=self.renderer,
            asset_cache=self.asset_cache,
            logo_url=self.logo_url,
            logo_key=self.logo_key,
            include_timestamp=self.include_timestamp,
        )
        if not self.is_current(token):
            logger.debug("Discarding stale render %d (latest is %d)", token, self._current)
            return None

        self.latest = artifact
        return artifact
