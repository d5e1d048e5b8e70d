"""Application configuration loaded from environment variables."""

import os
from pathlib import Path

from dotenv import load_dotenv

ENV_PATH = Path(__file__).resolve().parent / ".env"
load_dotenv(ENV_PATH)


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_path(name: str) -> Path | None:
    value = os.getenv(name, "").strip()
    return Path(value) if value else None


# Paths
PACKAGE_DIR = Path(__file__).resolve().parent
BASE_DIR = PACKAGE_DIR.parent
BANKS_DATA_PATH: Path = _env_path("BANKS_DATA_PATH") or PACKAGE_DIR / "data" / "banks.json"
CACHE_DIR: Path = _env_path("CACHE_DIR") or BASE_DIR / ".cache"

# Branding logo
LOGO_URL: str = os.getenv("LOGO_URL", "")
LOGO_CACHE_KEY: str = os.getenv("LOGO_CACHE_KEY", "twqr-logo")
FETCH_TIMEOUT_SECONDS: float = float(os.getenv("FETCH_TIMEOUT_SECONDS", "10"))

# Payload
INCLUDE_TIMESTAMP: bool = _env_flag("INCLUDE_TIMESTAMP")

# Fonts (optional overrides, system fonts are searched otherwise)
FONT_SANS_BOLD: Path | None = _env_path("FONT_SANS_BOLD")
FONT_MONO: Path | None = _env_path("FONT_MONO")
FONT_MONO_BOLD: Path | None = _env_path("FONT_MONO_BOLD")

# Logging
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
