"""Composite TWQR image renderer.

Lays out, top to bottom on a white canvas:

1. payee name (bold, centered), when given
2. the QR code, with the TWQR logo on a rounded white plate at its center
3. ``(bank code) account`` info line (monospace, centered)
4. ``NT$ amount`` line (bold, accent colour), when an amount is given

and exports the result as a PNG ``data:`` URI. Any failure yields an empty
string; a missing or broken logo only drops the badge.
"""

import asyncio
import base64
import binascii
import io
import logging
from dataclasses import dataclass
from decimal import MAX_EMAX, MAX_PREC, ROUND_HALF_UP, Decimal, localcontext
from functools import lru_cache
from pathlib import Path
from typing import Callable

from PIL import Image, ImageDraw, ImageFont

from showmethemoney.config import FONT_MONO, FONT_MONO_BOLD, FONT_SANS_BOLD
from showmethemoney.qrcode_gen import generate_qr_data_url
from showmethemoney.twqr_payload import TransferRequest, parse_amount

logger = logging.getLogger(__name__)

# Layout (pixels)
QR_WIDTH = 400
PADDING = 40
NAME_HEIGHT = 40
NAME_GAP = 20
NAME_FONT_SIZE = 32
INFO_GAP = 40
INFO_FONT_SIZE = 26
AMOUNT_GAP = 20
AMOUNT_FONT_SIZE = 32
AMOUNT_SPACING = 4
BOTTOM_PADDING = 40

LOGO_RATIO = 0.2
LOGO_PLATE_RATIO = 1.25
LOGO_PLATE_RADIUS = 12

# Colours
BACKGROUND_COLOR = "#ffffff"
QR_DARK = "#000000"
QR_LIGHT = "#ffffff"
TEXT_COLOR = "#333333"
ACCENT_COLOR = "#f97316"

CURRENCY_SYMBOL = "NT$"
AMOUNT_FRACTION_STEP = Decimal("0.001")

MatrixGenerator = Callable[..., str]


# ---------------------------------------------------------------------------
# Fonts
# ---------------------------------------------------------------------------

# CJK-capable fonts first: payee names are usually Chinese
_SANS_BOLD_CANDIDATES = (
    "/usr/share/fonts/opentype/noto/NotoSansCJK-Bold.ttc",
    "/usr/share/fonts/noto-cjk/NotoSansCJK-Bold.ttc",
    "/usr/share/fonts/google-noto-cjk/NotoSansCJK-Bold.ttc",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "/usr/share/fonts/TTF/DejaVuSans-Bold.ttf",
    "/System/Library/Fonts/PingFang.ttc",
    "C:/Windows/Fonts/msjhbd.ttc",
)

_MONO_CANDIDATES = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationMono-Regular.ttf",
    "/usr/share/fonts/TTF/DejaVuSansMono.ttf",
    "/System/Library/Fonts/Menlo.ttc",
    "C:/Windows/Fonts/consola.ttf",
)

_MONO_BOLD_CANDIDATES = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSansMono-Bold.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationMono-Bold.ttf",
    "/usr/share/fonts/TTF/DejaVuSansMono-Bold.ttf",
    "C:/Windows/Fonts/consolab.ttf",
)

FontType = ImageFont.FreeTypeFont | ImageFont.ImageFont


@lru_cache(maxsize=16)
def _get_font(candidates: tuple[str, ...], size: int) -> FontType:
    """Get the first loadable font at the given pixel size, with fallback to default."""
    for path in candidates:
        if not Path(path).exists():
            continue
        try:
            return ImageFont.truetype(path, size)
        except OSError:
            logger.debug("Font %s could not be loaded", path)
    return ImageFont.load_default(size=size)


def _with_override(override: Path | None, candidates: tuple[str, ...]) -> tuple[str, ...]:
    return (str(override), *candidates) if override else candidates


@dataclass(frozen=True)
class FontSet:
    name: FontType
    info: FontType
    amount: FontType

    @classmethod
    def default(cls) -> "FontSet":
        return cls(
            name=_get_font(_with_override(FONT_SANS_BOLD, _SANS_BOLD_CANDIDATES), NAME_FONT_SIZE),
            info=_get_font(_with_override(FONT_MONO, _MONO_CANDIDATES), INFO_FONT_SIZE),
            amount=_get_font(_with_override(FONT_MONO_BOLD, _MONO_BOLD_CANDIDATES), AMOUNT_FONT_SIZE),
        )


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CanvasLayout:
    """Canvas size and the top edge of every block. Absent blocks are None."""

    width: int
    height: int
    code_width: int
    code_height: int
    name_y: int | None
    code_y: int
    info_y: int
    amount_y: int | None


def compute_layout(code_width: int, code_height: int, has_name: bool, has_amount: bool) -> CanvasLayout:
    """Compute block positions from the code size and which blocks are present."""
    y = PADDING

    name_y = None
    if has_name:
        name_y = y
        y += NAME_HEIGHT + NAME_GAP

    code_y = y
    y += code_height + INFO_GAP

    info_y = y
    y += INFO_FONT_SIZE

    amount_y = None
    if has_amount:
        y += AMOUNT_GAP
        amount_y = y
        y += AMOUNT_FONT_SIZE

    return CanvasLayout(
        width=code_width + PADDING * 2,
        height=y + BOTTOM_PADDING,
        code_width=code_width,
        code_height=code_height,
        name_y=name_y,
        code_y=code_y,
        info_y=info_y,
        amount_y=amount_y,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def format_account(account_id: str) -> str:
    """Group the account id in blocks of four: ``1234 5678 90``."""
    return " ".join(account_id[i:i + 4] for i in range(0, len(account_id), 4)).strip()


def format_info_line(request: TransferRequest) -> str:
    return f"({request.bank_code}) {format_account(request.account_id)}"


def format_amount(amount: Decimal) -> str:
    """Digit-grouped amount with at most three fraction digits.

    Integral values drop their fractional part.
    """
    with localcontext() as ctx:
        ctx.prec = MAX_PREC
        ctx.Emax = MAX_EMAX
        amount = amount.quantize(AMOUNT_FRACTION_STEP, rounding=ROUND_HALF_UP)
        if amount == amount.to_integral_value():
            amount = amount.quantize(Decimal(1))
        else:
            amount = amount.normalize()
    return f"{amount:,}"


def artifact_filename(request: TransferRequest) -> str:
    """Suggested file name for downloading or sharing the rendered image."""
    return f"twqr-{request.bank_code}-{request.account_id}.png"


def decode_data_url(data_url: str) -> bytes:
    """Return the payload of a base64 ``data:`` URI.

    Raises:
        ValueError: If *data_url* is not a base64 data URI.
    """
    header, sep, payload = data_url.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        raise ValueError(f"Not a base64 data URI: {data_url[:40]!r}")
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e


def load_image(data_url: str) -> Image.Image:
    """Decode a ``data:`` URI into a fully loaded PIL image."""
    img = Image.open(io.BytesIO(decode_data_url(data_url)))
    img.load()
    return img


def image_to_data_url(img: Image.Image) -> str:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    b64 = base64.b64encode(buf.getvalue()).decode()
    return f"data:image/png;base64,{b64}"


def _load_logo(logo_asset: str | None) -> Image.Image | None:
    if not logo_asset:
        return None
    try:
        return load_image(logo_asset).convert("RGBA")
    except (ValueError, OSError) as e:
        logger.warning("Logo could not be decoded, rendering without it: %s", e)
        return None


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------

class QrCanvasRenderer:
    """Compose the final TWQR image.

    Args:
        matrix_generator: Callable producing a QR ``data:`` URI, called as
            ``matrix_generator(text, width=..., margin=..., error_correction=..., dark=..., light=...)``.
        fonts: Fonts for the text blocks (system fonts by default).
    """

    def __init__(
        self,
        matrix_generator: MatrixGenerator = generate_qr_data_url,
        fonts: FontSet | None = None,
    ) -> None:
        self.matrix_generator = matrix_generator
        self._fonts = fonts

    @property
    def fonts(self) -> FontSet:
        if self._fonts is None:
            self._fonts = FontSet.default()
        return self._fonts

    async def render(
        self,
        wire_payload: str,
        request: TransferRequest,
        logo_asset: str | None = None,
    ) -> str:
        """Render *wire_payload* and *request* into a PNG ``data:`` URI.

        Returns an empty string if any stage fails.
        """
        try:
            qr_data_url = await asyncio.to_thread(
                self.matrix_generator,
                wire_payload,
                width=QR_WIDTH,
                margin=0,
                error_correction="H",
                dark=QR_DARK,
                light=QR_LIGHT,
            )
            code_img = await asyncio.to_thread(load_image, qr_data_url)
            logo = await asyncio.to_thread(_load_logo, logo_asset)
            canvas = await asyncio.to_thread(self._compose, code_img.convert("RGB"), logo, request)
            return image_to_data_url(canvas)
        except Exception:
            logger.exception("Failed to render QR canvas for bank %s", request.bank_code)
            return ""

    def _compose(
        self,
        code_img: Image.Image,
        logo: Image.Image | None,
        request: TransferRequest,
    ) -> Image.Image:
        name = request.payee_name or ""
        amount = parse_amount(request.amount)
        code_width, code_height = code_img.size
        if code_width != code_height:
            logger.warning("QR image is not square: %dx%d", code_width, code_height)

        layout = compute_layout(code_width, code_height, bool(name), amount is not None)
        fonts = self.fonts
        center_x = layout.width / 2

        canvas = Image.new("RGB", (layout.width, layout.height), BACKGROUND_COLOR)
        draw = ImageDraw.Draw(canvas)

        if layout.name_y is not None:
            draw.text((center_x, layout.name_y), name, fill=TEXT_COLOR, font=fonts.name, anchor="mt")

        canvas.paste(code_img, (PADDING, layout.code_y))

        if logo is not None:
            self._draw_logo(canvas, draw, logo, layout)

        draw.text(
            (center_x, layout.info_y),
            format_info_line(request),
            fill=TEXT_COLOR,
            font=fonts.info,
            anchor="mt",
        )

        if layout.amount_y is not None and amount is not None:
            # symbol and value are measured separately and centered as one block
            value = format_amount(amount)
            symbol_width = draw.textlength(CURRENCY_SYMBOL, font=fonts.amount)
            value_width = draw.textlength(value, font=fonts.amount)
            start_x = (layout.width - (symbol_width + AMOUNT_SPACING + value_width)) / 2

            draw.text((start_x, layout.amount_y), CURRENCY_SYMBOL, fill=ACCENT_COLOR, font=fonts.amount, anchor="lt")
            draw.text(
                (start_x + symbol_width + AMOUNT_SPACING, layout.amount_y),
                value,
                fill=ACCENT_COLOR,
                font=fonts.amount,
                anchor="lt",
            )

        return canvas

    @staticmethod
    def _draw_logo(
        canvas: Image.Image,
        draw: ImageDraw.ImageDraw,
        logo: Image.Image,
        layout: CanvasLayout,
    ) -> None:
        logo_size = round(layout.code_width * LOGO_RATIO)
        plate_size = round(logo_size * LOGO_PLATE_RATIO)
        if logo_size <= 0:
            return

        plate_x = PADDING + (layout.code_width - plate_size) // 2
        plate_y = layout.code_y + (layout.code_height - plate_size) // 2
        draw.rounded_rectangle(
            (plate_x, plate_y, plate_x + plate_size - 1, plate_y + plate_size - 1),
            radius=LOGO_PLATE_RADIUS,
            fill=BACKGROUND_COLOR,
        )

        logo_x = PADDING + (layout.code_width - logo_size) // 2
        logo_y = layout.code_y + (layout.code_height - logo_size) // 2
        badge = logo.resize((logo_size, logo_size), Image.LANCZOS)
        canvas.paste(badge, (logo_x, logo_y), badge)


_default_renderer = QrCanvasRenderer()


async def render(wire_payload: str, request: TransferRequest, logo_asset: str | None = None) -> str:
    """Render with the default QR generator and system fonts."""
    return await _default_renderer.render(wire_payload, request, logo_asset)
