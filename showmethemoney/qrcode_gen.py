"""QR code generation for TWQR payloads."""

import base64
import io

import qrcode  # type: ignore[import-untyped]
from PIL import Image

ERROR_CORRECTION_LEVELS = {
    "L": qrcode.constants.ERROR_CORRECT_L,
    "M": qrcode.constants.ERROR_CORRECT_M,
    "Q": qrcode.constants.ERROR_CORRECT_Q,
    "H": qrcode.constants.ERROR_CORRECT_H,
}


def generate_qr_image(
    data: str,
    width: int = 400,
    margin: int = 0,
    error_correction: str = "H",
    dark: str = "#000000",
    light: str = "#ffffff",
) -> Image.Image:
    """Render *data* as a square QR image exactly *width* pixels wide.

    The matrix is drawn at one pixel per module and scaled up with
    nearest-neighbour resampling so modules stay crisp at any width.
    """
    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECTION_LEVELS[error_correction.upper()],
        box_size=1,
        border=margin,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color=dark, back_color=light).get_image().convert("RGB")
    return img.resize((width, width), Image.NEAREST)


def generate_qr_data_url(
    data: str,
    width: int = 400,
    margin: int = 0,
    error_correction: str = "H",
    dark: str = "#000000",
    light: str = "#ffffff",
) -> str:
    """Generate a QR code as a ``data:image/png;base64,...`` string."""
    img = generate_qr_image(data, width, margin, error_correction, dark, light)
    buf = io.BytesIO()
    img.save(buf, format="PNG")

    b64 = base64.b64encode(buf.getvalue()).decode()
    return f"data:image/png;base64,{b64}"
