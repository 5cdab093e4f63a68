"""
tracker_config.py — Configuration for the play-count tracker.
Loads credentials from .env and defines constants.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from dotenv import load_dotenv

# ── Load environment ──────────────────────────────────────────────
load_dotenv(Path(__file__).parent / ".env")

# ── Google Sheet ──────────────────────────────────────────────────
SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

TAB_CONFIG = "Config"
TAB_VIEWS = "Views"
TAB_DEBUG = "Debug"

URL_HEADER = "URL"
ERROR_VALUE = "ERROR"
TAIPEI_TZ = "Asia/Taipei"

# ── Target normalisation ──────────────────────────────────────────
MOBILE_HOST = "m.tiktok.com"
CANONICAL_HOST = "www.tiktok.com"
LOCALE_PARAM = "lang=en"

# ── Browser ───────────────────────────────────────────────────────
DEFAULT_ENGINES = "chromium,firefox,webkit"
STEALTH_ARGS = ("--disable-blink-features=AutomationControlled",)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
LOCALE = "en-US"
ACCEPT_LANGUAGE = "en-US,en;q=0.9,ja;q=0.8"
VIEWPORT = {"width": 1366, "height": 900}

NAV_TIMEOUT_MS = 60_000
NAV_WAIT_UNTIL = "domcontentloaded"
SETTLE_MS = 1500
SCROLL_PX = 600
CONSENT_CLICK_TIMEOUT_MS = 3000

# Tried in order; the first match is clicked.
CONSENT_SELECTORS = [
    'button:has-text("Accept all")',
    'button:has-text("Allow all")',
    'button:has-text("I agree")',
    'button:has-text("同意する")',
    'button:has-text("同意")',
    'button:has-text("接受全部")',
    '[data-e2e="cookie-banner-accept-button"]',
]

# ── Throttling ────────────────────────────────────────────────────
DELAY_MIN_SECONDS = 1.2
DELAY_MAX_SECONDS = 2.0

# ── Logging ───────────────────────────────────────────────────────
LOG_DIR = Path(os.getenv("TRACKER_LOG_DIR", str(Path(__file__).parent / "logs")))


class ConfigError(Exception):
    """Raised when required settings are missing or malformed."""


@dataclass(frozen=True)
class Settings:
    spreadsheet_id: str
    service_account_info: dict[str, Any] | None = None
    service_account_file: str | None = None
    headless: bool = True
    engines: tuple[str, ...] = field(default_factory=lambda: tuple(DEFAULT_ENGINES.split(",")))


def _parse_bool(value: str) -> bool:
    return value.strip().lower() not in ("0", "false", "no", "off", "")


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """
    Build Settings from the environment.
    Inline service-account JSON wins over a key file path.
    """
    env = os.environ if env is None else env

    spreadsheet_id = env.get("SHEET_ID", "").strip()
    if not spreadsheet_id:
        raise ConfigError("SHEET_ID is not set.")

    info = None
    key_file = None
    raw_json = env.get("GOOGLE_SERVICE_ACCOUNT_JSON", "").strip()
    if raw_json:
        try:
            info = json.loads(raw_json)
        except json.JSONDecodeError as e:
            raise ConfigError(f"GOOGLE_SERVICE_ACCOUNT_JSON is not valid JSON: {e}") from e
        if not isinstance(info, dict):
            raise ConfigError("GOOGLE_SERVICE_ACCOUNT_JSON must be a JSON object.")
    else:
        key_file = (env.get("GOOGLE_SVC_JSON") or env.get("SERVICE_ACCOUNT_FILE") or "").strip()
        if not key_file:
            raise ConfigError(
                "No credentials: set GOOGLE_SERVICE_ACCOUNT_JSON, GOOGLE_SVC_JSON or SERVICE_ACCOUNT_FILE."
            )
        if not os.path.isfile(key_file):
            raise ConfigError(f"Service account file not found: {key_file}")

    engines = tuple(
        e.strip().lower()
        for e in env.get("TRACKER_ENGINES", DEFAULT_ENGINES).split(",")
        if e.strip()
    )
    if not engines:
        raise ConfigError("TRACKER_ENGINES must name at least one engine.")

    return Settings(
        spreadsheet_id=spreadsheet_id,
        service_account_info=info,
        service_account_file=key_file,
        headless=_parse_bool(env.get("HEADLESS", "true")),
        engines=engines,
    )
