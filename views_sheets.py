"""
views_sheets.py — Google Sheets operations for the play-count tracker.
Reads target URLs from Config, maintains the dated Views grid
(header + upsert) and appends failure rows to Debug.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build

import count_utils
import tracker_config
from tracker_config import Settings

logger = logging.getLogger(__name__)


def get_service(settings: Settings):
    """Authenticate and return a Sheets API spreadsheets resource."""
    if settings.service_account_info:
        creds = Credentials.from_service_account_info(
            settings.service_account_info,
            scopes=tracker_config.SHEETS_SCOPES,
        )
    else:
        creds = Credentials.from_service_account_file(
            settings.service_account_file,
            scopes=tracker_config.SHEETS_SCOPES,
        )
    service = build("sheets", "v4", credentials=creds, cache_discovery=False)
    return service.spreadsheets()


# ── Tab management ────────────────────────────────────────────────

def _get_existing_tabs(sheets, spreadsheet_id: str) -> list[str]:
    """Return list of existing tab names in the spreadsheet."""
    meta = sheets.get(spreadsheetId=spreadsheet_id).execute()
    return [s["properties"]["title"] for s in meta.get("sheets", [])]


def ensure_tab_exists(sheets, spreadsheet_id: str, tab_name: str) -> bool:
    """
    Create the tab if missing.
    Returns True if the tab was newly created.
    """
    if tab_name in _get_existing_tabs(sheets, spreadsheet_id):
        return False
    sheets.batchUpdate(
        spreadsheetId=spreadsheet_id,
        body={"requests": [{"addSheet": {"properties": {"title": tab_name}}}]},
    ).execute()
    logger.info("Created tab: %s", tab_name)
    return True


# ── Config source ─────────────────────────────────────────────────

def read_config_urls(sheets, spreadsheet_id: str) -> list[str]:
    """Return the non-blank URLs in Config!A2:A, in sheet order."""
    ensure_tab_exists(sheets, spreadsheet_id, tracker_config.TAB_CONFIG)
    result = sheets.values().get(
        spreadsheetId=spreadsheet_id,
        range=f"'{tracker_config.TAB_CONFIG}'!A2:A",
        valueRenderOption="UNFORMATTED_VALUE",
    ).execute()
    urls = []
    for row in result.get("values", []):
        cell = str(row[0]).strip() if row else ""
        if cell:
            urls.append(cell)
    return urls


# ── Views header ──────────────────────────────────────────────────

def merge_header(header: list[Any], date_str: str) -> tuple[list[str], int, bool]:
    """
    Pin column A to "URL" and make sure `date_str` has a column.
    Dates are only ever appended. Returns (header, col_index, changed).
    """
    merged = [str(h) for h in header]
    changed = False
    if not merged:
        merged = [tracker_config.URL_HEADER]
        changed = True
    elif merged[0] != tracker_config.URL_HEADER:
        merged[0] = tracker_config.URL_HEADER
        changed = True

    if date_str in merged[1:]:
        return merged, merged.index(date_str, 1), changed
    merged.append(date_str)
    return merged, len(merged) - 1, True


def ensure_views_header(sheets, spreadsheet_id: str, date_str: str) -> tuple[list[str], int]:
    """Read row 1 of Views, append today's date if needed, return (header, col_index)."""
    ensure_tab_exists(sheets, spreadsheet_id, tracker_config.TAB_VIEWS)
    result = sheets.values().get(
        spreadsheetId=spreadsheet_id,
        range=f"'{tracker_config.TAB_VIEWS}'!1:1",
    ).execute()
    rows = result.get("values", [])
    header, col_index, changed = merge_header(rows[0] if rows else [], date_str)
    if changed:
        sheets.values().update(
            spreadsheetId=spreadsheet_id,
            range=f"'{tracker_config.TAB_VIEWS}'!A1",
            valueInputOption="RAW",
            body={"values": [header]},
        ).execute()
        logger.info("Views header now has %d columns (%s at %s).",
                    len(header), date_str, count_utils.column_letter(col_index + 1))
    return header, col_index


def read_existing_rows(sheets, spreadsheet_id: str) -> list[list[Any]]:
    """Return Views rows from row 2 down (column A is all the merge needs)."""
    result = sheets.values().get(
        spreadsheetId=spreadsheet_id,
        range=f"'{tracker_config.TAB_VIEWS}'!A2:A",
    ).execute()
    return result.get("values", [])


# ── Upsert ────────────────────────────────────────────────────────

def plan_upsert(
    results: list,
    col_index: int,
    existing_rows: list[list[Any]],
) -> tuple[list[dict], list[list[Any]]]:
    """
    Split results into single-cell updates and new rows.
    Known URLs get one cell written at today's column; unknown URLs get
    a new row padded with blanks up to that column.
    """
    row_by_url: dict[str, int] = {}
    for i, row in enumerate(existing_rows, start=2):
        key = str(row[0]).strip() if row else ""
        if key:
            row_by_url.setdefault(count_utils.canonicalize_url(key), i)

    col = count_utils.column_letter(col_index + 1)
    updates: list[dict] = []
    appends: list[list[Any]] = []
    pending: dict[str, int] = {}

    for result in results:
        url = result.target.url
        value = result.value
        sheet_row = row_by_url.get(url)
        if sheet_row is not None:
            updates.append({
                "range": f"'{tracker_config.TAB_VIEWS}'!{col}{sheet_row}",
                "values": [[value]],
            })
        elif url in pending:
            appends[pending[url]][col_index] = value
        else:
            row = [url] + [""] * (col_index - 1) + [value]
            pending[url] = len(appends)
            appends.append(row)
    return updates, appends


def upsert_views(
    sheets,
    spreadsheet_id: str,
    results: list,
    col_index: int,
    existing_rows: list[list[Any]],
) -> tuple[int, int]:
    """Write today's values: one batch of cell updates, then one batch append."""
    updates, appends = plan_upsert(results, col_index, existing_rows)

    if updates:
        sheets.values().batchUpdate(
            spreadsheetId=spreadsheet_id,
            body={"valueInputOption": "RAW", "data": updates},
        ).execute()
    if appends:
        sheets.values().append(
            spreadsheetId=spreadsheet_id,
            range=f"'{tracker_config.TAB_VIEWS}'!A:A",
            valueInputOption="RAW",
            insertDataOption="INSERT_ROWS",
            body={"values": appends},
        ).execute()
    logger.info("Views upsert: %d cells updated, %d rows appended.", len(updates), len(appends))
    return len(updates), len(appends)


# ── Debug ─────────────────────────────────────────────────────────

def _blank_if_none(value: Any) -> Any:
    return "" if value is None else value


def build_debug_rows(results: list, now: datetime | None = None) -> list[list[Any]]:
    """One row per failed result: [timestamp, target, engine, status, pageLength, reason]."""
    now = now or datetime.now(timezone.utc)
    stamp = now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return [
        [
            stamp,
            r.target.url,
            r.engine,
            _blank_if_none(r.status),
            _blank_if_none(r.page_length),
            r.reason,
        ]
        for r in results
        if not r.ok
    ]


def append_debug(sheets, spreadsheet_id: str, rows: list[list[Any]]) -> int:
    """Append debug rows to the Debug tab. Never reads existing rows."""
    if not rows:
        return 0
    ensure_tab_exists(sheets, spreadsheet_id, tracker_config.TAB_DEBUG)
    sheets.values().append(
        spreadsheetId=spreadsheet_id,
        range=f"'{tracker_config.TAB_DEBUG}'!A:A",
        valueInputOption="RAW",
        insertDataOption="INSERT_ROWS",
        body={"values": rows},
    ).execute()
    logger.info("Appended %d debug rows.", len(rows))
    return len(rows)
