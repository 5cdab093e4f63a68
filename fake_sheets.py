"""
fake_sheets.py — In-memory stand-in for the Sheets API spreadsheets resource.
Supports the calls the tracker makes; used by the tests only.
"""

import copy
import re

_CELL_RE = re.compile(r"^([A-Z]+)?(\d+)?$")


def _col_index(letters: str) -> int:
    n = 0
    for ch in letters:
        n = n * 26 + (ord(ch) - ord("A") + 1)
    return n - 1


def _parse_cell(ref: str) -> tuple[int | None, int | None]:
    match = _CELL_RE.match(ref)
    if not match:
        raise ValueError(f"Unsupported cell reference: {ref}")
    letters, digits = match.groups()
    return (_col_index(letters) if letters else None, int(digits) if digits else None)


def _split(range_: str) -> tuple[str, str]:
    tab, _, a1 = range_.partition("!")
    return tab.strip("'"), a1


class _Request:
    def __init__(self, fn):
        self._fn = fn

    def execute(self):
        return self._fn()


class FakeSheets:
    def __init__(self, tabs: dict | None = None):
        self.tabs = {name: copy.deepcopy(rows) for name, rows in (tabs or {}).items()}
        self.calls: list[tuple] = []

    def get(self, spreadsheetId):
        return _Request(lambda: {"sheets": [{"properties": {"title": t}} for t in self.tabs]})

    def batchUpdate(self, spreadsheetId, body):
        def run():
            for req in body["requests"]:
                title = req["addSheet"]["properties"]["title"]
                self.tabs.setdefault(title, [])
                self.calls.append(("addSheet", title))
            return {}
        return _Request(run)

    def values(self):
        return _FakeValues(self)

    def writes(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ("update", "batchUpdate", "append", "addSheet")]


class _FakeValues:
    def __init__(self, parent: FakeSheets):
        self._parent = parent

    def _grid(self, tab: str) -> list[list]:
        return self._parent.tabs[tab]

    def _write(self, range_: str, values: list[list]) -> None:
        tab, a1 = _split(range_)
        col, row = _parse_cell(a1.partition(":")[0])
        col = col or 0
        row = row or 1
        grid = self._grid(tab)
        for offset, new_row in enumerate(values):
            r = row - 1 + offset
            while len(grid) <= r:
                grid.append([])
            target = grid[r]
            while len(target) < col + len(new_row):
                target.append("")
            for i, value in enumerate(new_row):
                target[col + i] = value

    def get(self, spreadsheetId, range, **kwargs):
        def run():
            tab, a1 = _split(range)
            grid = self._grid(tab)
            start, _, end = a1.partition(":")
            start_col, start_row = _parse_cell(start)
            end_col, end_row = _parse_cell(end or start)
            first = (start_row or 1) - 1
            last = end_row if end_row is not None else len(grid)
            lo = start_col or 0
            hi = end_col + 1 if end_col is not None else None
            out = []
            for row in grid[first:last]:
                cells = list(row[lo:hi])
                while cells and cells[-1] == "":
                    cells.pop()
                out.append(cells)
            while out and not out[-1]:
                out.pop()
            self._parent.calls.append(("get", range))
            return {"values": out} if out else {}
        return _Request(run)

    def update(self, spreadsheetId, range, valueInputOption, body):
        def run():
            self._write(range, body["values"])
            self._parent.calls.append(("update", range))
            return {}
        return _Request(run)

    def batchUpdate(self, spreadsheetId, body):
        def run():
            for item in body["data"]:
                self._write(item["range"], item["values"])
            self._parent.calls.append(("batchUpdate", len(body["data"])))
            return {}
        return _Request(run)

    def append(self, spreadsheetId, range, valueInputOption, insertDataOption, body):
        def run():
            tab, _ = _split(range)
            self._grid(tab).extend(copy.deepcopy(body["values"]))
            self._parent.calls.append(("append", tab, len(body["values"])))
            return {}
        return _Request(run)
