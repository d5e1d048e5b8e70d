"""Shared fixtures for the test suite."""

import base64
import io

import pytest
from PIL import Image

from showmethemoney.asset_cache import MemoryStore
from showmethemoney.bank_directory import BankDirectory, BankRecord

LOGO_COLOR = (220, 20, 60)


@pytest.fixture
def logo_data_url() -> str:
    """A solid-colour 64x64 PNG logo as a data URI."""
    img = Image.new("RGBA", (64, 64), LOGO_COLOR + (255,))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode()


@pytest.fixture
def logo_color() -> tuple[int, int, int]:
    return LOGO_COLOR


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def sample_directory() -> BankDirectory:
    """Small directory deliberately not stored in code order."""
    return BankDirectory.from_records([
        BankRecord("822", "中國信託商業銀行", "CTBC Bank", ("中信",)),
        BankRecord("004", "臺灣銀行", "Bank of Taiwan", ("台銀",)),
        BankRecord("812", "台新國際商業銀行", "Taishin International Bank", ("Richart",)),
        BankRecord("700", "中華郵政", "Chunghwa Post", ("郵局",)),
        BankRecord("050", "臺灣中小企業銀行", "Taiwan Business Bank"),
    ])
