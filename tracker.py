#!/usr/bin/env python3
"""
tracker.py — Daily play-count run.
Reads target URLs from the Config tab, measures each one through the
engine fallback chain, then writes today's column in Views and any
failures to Debug.

Usage:
    python tracker.py                 # Full run
    python tracker.py --dry-run       # Fetch only, write nothing
    python tracker.py --limit 3       # First 3 targets only
"""

import argparse
import json
import logging
import sys
import time
from datetime import datetime, timezone
from typing import Callable

from playwright.sync_api import sync_playwright

import count_utils
import engines
import page_extractor
import tracker_config
import views_sheets
from tracker_config import ConfigError, Settings

logger = logging.getLogger("tracker")
json_logger = logging.getLogger("tracker.json")


def setup_logging() -> None:
    """Console + dated log file, plus a JSONL file for structured events."""
    tracker_config.LOG_DIR.mkdir(parents=True, exist_ok=True)
    log_filename = f"tracker_{datetime.now(timezone.utc).strftime('%Y%m%d')}.log"
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(tracker_config.LOG_DIR / log_filename, encoding="utf-8"),
        ],
    )
    json_path = tracker_config.LOG_DIR / log_filename.replace(".log", "_structured.jsonl")
    for handler in list(json_logger.handlers):
        json_logger.removeHandler(handler)
        handler.close()
    json_handler = logging.FileHandler(json_path, encoding="utf-8")
    json_handler.setFormatter(logging.Formatter("%(message)s"))
    json_logger.addHandler(json_handler)
    json_logger.setLevel(logging.INFO)
    json_logger.propagate = False


def log_event(event_type: str, **kwargs):
    """Write a structured JSON log entry."""
    entry = {
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
        "event": event_type,
        **kwargs,
    }
    json_logger.info(json.dumps(entry, ensure_ascii=False))


def _report(result: engines.TargetResult) -> None:
    if result.ok:
        logger.info("✅ %s -> %s (%s)", result.target.url, result.value, result.engine)
    else:
        logger.info("❌ %s -> %s", result.target.url, result.reason)
    log_event(
        "target_result",
        target=result.target.url,
        value=result.value,
        engine=result.engine,
        reason=result.reason,
        status=result.status,
        page_length=result.page_length,
    )


def run(
    settings: Settings,
    sheets,
    attempt_fn: engines.AttemptFn,
    started_at: datetime | None = None,
    dry_run: bool = False,
    limit: int | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> list[engines.TargetResult]:
    """
    One full pass: read targets, fetch every one, then commit.
    Views and Debug are only written after all targets were attempted.
    """
    started_at = started_at or datetime.now(timezone.utc)
    date_str = count_utils.today_in_taipei(started_at)
    engine_list = engines.build_engines(settings.engines)

    urls = views_sheets.read_config_urls(sheets, settings.spreadsheet_id)
    if limit is not None:
        urls = urls[:limit]
    if not urls:
        logger.warning("No URLs in '%s'!A2:A. Add target URLs and re-run.", tracker_config.TAB_CONFIG)
        return []

    targets = [count_utils.normalize_target(u) for u in urls]
    logger.info(
        "Tracking %d targets for %s with engines: %s",
        len(targets), date_str, ", ".join(e.name for e in engine_list),
    )
    results = engines.fetch_all(targets, engine_list, attempt_fn, sleep=sleep, on_result=_report)

    ok = sum(1 for r in results if r.ok)
    if dry_run:
        logger.info("Dry run: %d/%d succeeded, nothing written.", ok, len(results))
        return results

    _, col_index = views_sheets.ensure_views_header(sheets, settings.spreadsheet_id, date_str)
    existing_rows = views_sheets.read_existing_rows(sheets, settings.spreadsheet_id)
    updated, appended = views_sheets.upsert_views(
        sheets, settings.spreadsheet_id, results, col_index, existing_rows,
    )
    debug_count = views_sheets.append_debug(
        sheets, settings.spreadsheet_id, views_sheets.build_debug_rows(results),
    )

    logger.info("✅ Update complete: %s (%d ok, %d failed)", date_str, ok, len(results) - ok)
    log_event(
        "run_complete",
        date=date_str,
        ok=ok,
        failed=len(results) - ok,
        cells_updated=updated,
        rows_appended=appended,
        debug_rows=debug_count,
    )
    return results


def _playwright_attempt_fn(playwright, settings: Settings) -> engines.AttemptFn:
    def attempt(engine: engines.Engine, target: count_utils.Target):
        browser_type = getattr(playwright, engine.browser)
        return page_extractor.run_attempt(engine, target, browser_type, headless=settings.headless)
    return attempt


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Play-count tracker — record today's play counts into Google Sheets",
    )
    parser.add_argument("--dry-run", action="store_true", help="Fetch but don't write to sheet")
    parser.add_argument("--limit", type=int, default=None, help="Only process the first N targets")
    args = parser.parse_args(argv)

    setup_logging()
    started_at = datetime.now(timezone.utc)

    try:
        settings = tracker_config.load_settings()
        sheets = views_sheets.get_service(settings)

        with sync_playwright() as p:
            run(
                settings,
                sheets,
                _playwright_attempt_fn(p, settings),
                started_at=started_at,
                dry_run=args.dry_run,
                limit=args.limit,
            )
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        log_event("run_aborted", error=str(e))
        return 1
    except Exception as e:
        logger.exception("FATAL: run aborted")
        log_event("run_aborted", error=str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
