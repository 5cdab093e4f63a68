"""
page_extractor.py — One browser-engine attempt at reading a play count.
Navigates, dismisses the cookie banner, waits for hydration, then pulls
the count out of the embedded SIGI_STATE / __NEXT_DATA__ JSON.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any

from playwright.sync_api import Error as PlaywrightError

import count_utils
import tracker_config
from count_utils import Target

logger = logging.getLogger(__name__)

SUCCESS = "success"
NAVIGATION_ERROR = "navigationError"
NO_DATA = "noData"
LOOKUP_ERROR = "lookupError"
EXCEPTION = "exception"

_LOCATE_SCRIPT = """() => {
  const text = (sel) => {
    const el = document.querySelector(sel);
    return el ? el.textContent : null;
  };
  const root = document.documentElement;
  return {
    sigi: text('#SIGI_STATE'),
    next: text('#__NEXT_DATA__'),
    length: root ? root.outerHTML.length : 0,
  };
}"""


@dataclass
class ExtractionAttempt:
    engine: str
    outcome: str
    reason: str
    status: int | None = None
    page_length: int | None = None
    count: int | None = None

    @property
    def ok(self) -> bool:
        return self.outcome == SUCCESS


@dataclass
class LocatedJson:
    sigi_state: Any = None
    next_data: Any = None
    page_length: int | None = None

    @property
    def found(self) -> bool:
        return self.sigi_state is not None or self.next_data is not None

    def structures(self) -> list:
        return [s for s in (self.sigi_state, self.next_data) if s is not None]


def _parse_blob(text: Any, name: str) -> Any:
    if not isinstance(text, str) or not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.debug("Could not parse %s: %s", name, e)
        return None


def locate_json(page) -> LocatedJson:
    """Find and parse the embedded data blobs on a rendered page."""
    raw = page.evaluate(_LOCATE_SCRIPT) or {}
    located = LocatedJson(
        sigi_state=_parse_blob(raw.get("sigi"), "SIGI_STATE"),
        next_data=_parse_blob(raw.get("next"), "__NEXT_DATA__"),
    )
    if not located.found:
        length = raw.get("length")
        located.page_length = length if isinstance(length, int) else None
    return located


def _item_module_count(data: Any, id_hint: str) -> int | None:
    if not isinstance(data, dict):
        return None
    items = data.get("ItemModule")
    if not isinstance(items, dict) or not items:
        return None
    if id_hint.isascii() and id_hint.isdigit() and id_hint in items:
        key = id_hint
    else:
        key = next(iter(items))
    entry = items.get(key)
    if not isinstance(entry, dict):
        return None
    stats = entry.get("stats")
    if not isinstance(stats, dict):
        return None
    return count_utils.normalize_count(stats.get("playCount"))


def extract_count(located: LocatedJson, id_hint: str) -> int | None:
    """
    Resolve the play count from located JSON.
    ItemModule lookup first, then a deep search for any playCount-like key.
    """
    structures = located.structures()
    for data in structures:
        count = _item_module_count(data, id_hint)
        if count is not None:
            return count
    for data in structures:
        count = count_utils.deep_find(data, count_utils.play_count_predicate)
        if count is not None:
            return count
    return None


def dismiss_consent(page) -> bool:
    """Click the first cookie-consent button found. Best-effort."""
    for selector in tracker_config.CONSENT_SELECTORS:
        try:
            button = page.query_selector(selector)
        except PlaywrightError as e:
            logger.debug("Consent selector %s failed: %s", selector, e)
            continue
        if not button:
            continue
        try:
            button.click(timeout=tracker_config.CONSENT_CLICK_TIMEOUT_MS)
            logger.debug("Dismissed consent banner via %s", selector)
            return True
        except PlaywrightError as e:
            logger.debug("Consent click via %s failed: %s", selector, e)
        return False
    return False


def _context_options() -> dict:
    return {
        "locale": tracker_config.LOCALE,
        "user_agent": tracker_config.USER_AGENT,
        "extra_http_headers": {"Accept-Language": tracker_config.ACCEPT_LANGUAGE},
        "viewport": dict(tracker_config.VIEWPORT),
        "timezone_id": tracker_config.TAIPEI_TZ,
    }


def _read_page(engine_name: str, page, target: Target) -> ExtractionAttempt:
    try:
        response = page.goto(
            target.url,
            wait_until=tracker_config.NAV_WAIT_UNTIL,
            timeout=tracker_config.NAV_TIMEOUT_MS,
        )
    except PlaywrightError as e:
        return ExtractionAttempt(engine_name, NAVIGATION_ERROR, f"navigation: {e}")

    status = response.status if response is not None else None
    if status is not None and status >= 400:
        return ExtractionAttempt(engine_name, NAVIGATION_ERROR, f"HTTP {status}", status=status)

    dismiss_consent(page)
    nudge_scroll(page)
    page.wait_for_timeout(tracker_config.SETTLE_MS)

    located = locate_json(page)
    if not located.found:
        return ExtractionAttempt(
            engine_name, NO_DATA, "no SIGI_STATE / __NEXT_DATA__",
            status=status, page_length=located.page_length,
        )

    count = extract_count(located, target.id_hint)
    if count is None:
        return ExtractionAttempt(engine_name, LOOKUP_ERROR, "playCount not found", status=status)
    return ExtractionAttempt(engine_name, SUCCESS, "OK", status=status, count=count)


def nudge_scroll(page) -> bool:
    """Scroll a little to trigger lazy state. Best-effort."""
    try:
        page.mouse.wheel(0, tracker_config.SCROLL_PX)
        return True
    except PlaywrightError as e:
        logger.debug("Scroll failed: %s", e)
        return False


def _close_quietly(resource, what: str) -> None:
    if resource is None:
        return
    try:
        resource.close()
    except Exception as e:
        logger.warning("Failed to close %s: %s", what, e)


def run_attempt(engine, target: Target, browser_type, headless: bool = True) -> ExtractionAttempt:
    """
    Run one isolated attempt: fresh browser + context, torn down on exit.
    Never raises; faults come back as an `exception` outcome.
    """
    browser = None
    context = None
    try:
        browser = browser_type.launch(headless=headless, args=list(engine.launch_args))
        context = browser.new_context(**_context_options())
        page = context.new_page()
        return _read_page(engine.name, page, target)
    except Exception as e:
        logger.debug("Attempt on %s failed for %s", engine.name, target.url, exc_info=True)
        return ExtractionAttempt(engine.name, EXCEPTION, f"exception: {e}")
    finally:
        try:
            _close_quietly(context, "browser context")
        finally:
            _close_quietly(browser, "browser")
