"""
count_utils.py — Normalisation helpers for targets and counts.
Pure functions: URL canonicalisation, "12.3K"-style count parsing,
deep search over parsed JSON, Taipei dates and sheet column letters.
"""

import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable
from urllib.parse import urlsplit, urlunsplit
from zoneinfo import ZoneInfo

import tracker_config

_SUFFIXED_RE = re.compile(r"([0-9]+(?:\.[0-9]+)?)([KM])")
_DIGITS_RE = re.compile(r"[0-9]+")
PLAY_COUNT_KEY_RE = re.compile(r"play_?count(v2)?", re.IGNORECASE)

_MULTIPLIERS = {"K": 1_000, "M": 1_000_000}


@dataclass(frozen=True)
class Target:
    raw_url: str
    url: str
    id_hint: str


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def normalize_count(value: Any) -> int | None:
    """
    Convert a loosely-typed count into a non-negative int.
    Accepts ints, floats and strings like "1,234", "12.3K", "2M".
    Returns None for anything else.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        if not math.isfinite(value) or value < 0:
            return None
        return _round_half_up(value)
    if not isinstance(value, str):
        return None

    text = value.strip().upper().replace(",", "")
    match = _SUFFIXED_RE.fullmatch(text)
    if match:
        return _round_half_up(float(match.group(1)) * _MULTIPLIERS[match.group(2)])
    if _DIGITS_RE.fullmatch(text):
        return int(text, 10)
    return None


def canonicalize_url(url: str) -> str:
    """
    Rewrite the mobile host and force the locale parameter.
    Any existing value of that parameter is replaced, so the result is stable.
    """
    url = (url or "").strip()
    if not url:
        return url
    try:
        parts = urlsplit(url)
    except ValueError:
        return url

    netloc = parts.netloc
    if netloc.lower() == tracker_config.MOBILE_HOST:
        netloc = tracker_config.CANONICAL_HOST

    param_name = tracker_config.LOCALE_PARAM.partition("=")[0]
    kept = [p for p in parts.query.split("&") if p and p.partition("=")[0] != param_name]
    query = "&".join(kept + [tracker_config.LOCALE_PARAM])
    return urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


def extract_id_hint(url: str) -> str:
    """Last non-empty path segment, with any query stripped."""
    try:
        path = urlsplit((url or "").strip()).path
    except ValueError:
        return ""
    segments = [s for s in path.split("/") if s]
    if not segments:
        return ""
    return segments[-1].split("?")[0]


def normalize_target(raw_url: str) -> Target:
    url = canonicalize_url(raw_url)
    return Target(raw_url=raw_url, url=url, id_hint=extract_id_hint(url))


def deep_find(node: Any, predicate: Callable[[str, Any], Any]) -> Any:
    """
    Depth-first scan of a parsed JSON tree.
    Calls predicate(key, value) for every object member; the first
    non-None return value is returned and the scan stops.
    Sibling order is not guaranteed.
    """
    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, dict):
            for key, value in current.items():
                found = predicate(str(key), value)
                if found is not None:
                    return found
                if isinstance(value, (dict, list)):
                    stack.append(value)
        elif isinstance(current, list):
            stack.extend(item for item in current if isinstance(item, (dict, list)))
    return None


def play_count_predicate(key: str, value: Any) -> int | None:
    if PLAY_COUNT_KEY_RE.fullmatch(key):
        return normalize_count(value)
    return None


def today_in_taipei(now: datetime | None = None) -> str:
    """Return the Taipei civil date (YYYY-MM-DD) of `now` (default: current time)."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tracker_config.TAIPEI_TZ)).strftime("%Y-%m-%d")


def column_letter(n: int) -> str:
    """1-based column number to A1 letters (1 → A, 27 → AA)."""
    if n < 1:
        raise ValueError(f"column number must be >= 1, got {n}")
    letters = ""
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters
