"""
Turns an uploaded POS export (CSV, xlsx or legacy xls) into raw text rows.

extract_rows(path) returns list[dict[str, str]]: one {header: cell text} per
data row, header row excluded, fully blank rows dropped. No numeric parsing
happens here; quantity / amount cells are handed to parse_number() verbatim.

For spreadsheets the cell text that a user would see is preferred over the
stored numeric value: tills often export locale-formatted strings such as
"2.990,80" that only survive as text, and numeric cells are rendered through
their number format (12.3456 under "0.00" is read as "12.35").
"""

import io
import logging
import os
import re
from datetime import date, datetime, time
from typing import Any, Optional

import openpyxl
import pandas as pd
import xlrd

logger = logging.getLogger(__name__)


class UnsupportedFileError(ValueError):
    """Raised when the uploaded file is neither CSV nor a readable spreadsheet."""


# =============================================================================
# Format detection
# =============================================================================

def detect_format(path: str) -> str:
    # Detect real format by magic bytes: tills sometimes save XLSX as .csv
    with open(path, "rb") as fh:
        magic = fh.read(4)
    if magic[:2] == b"PK":          # ZIP container → xlsx
        return "xlsx"
    if magic[:2] == b"\xd0\xcf":    # BIFF container → legacy xls
        return "xls"

    suffix = os.path.splitext(path)[1].lower()
    if suffix in (".xlsx", ".xlsm"):
        return "xlsx"
    if suffix == ".xls":
        return "xls"
    return "csv"


def extract_rows(path: str) -> list[dict[str, str]]:
    fmt = detect_format(path)
    if fmt == "xlsx":
        rows = _extract_xlsx(path)
    elif fmt == "xls":
        rows = _extract_xls(path)
    else:
        rows = _frame_to_rows(_read_csv(path))
    logger.info("Extracted %d row(s) from %s (%s)", len(rows), os.path.basename(path), fmt)
    return rows


# =============================================================================
# CSV (pandas)
# =============================================================================

def _read_csv(path: str) -> pd.DataFrame:
    # Plain CSV: try common encodings in order
    for enc in ("utf-8-sig", "utf-8", "latin-1"):
        try:
            return pd.read_csv(path, dtype=str, encoding=enc, keep_default_na=False)
        except UnicodeDecodeError:
            continue
        except pd.errors.EmptyDataError:
            return pd.DataFrame()
    raise UnsupportedFileError(
        f"Could not decode {os.path.basename(path)} (tried utf-8-sig, utf-8, latin-1)"
    )


def _frame_to_rows(df: pd.DataFrame) -> list[dict[str, str]]:
    headers = _headers(df.columns)
    df = df.where(pd.notna(df), None)
    rows = []
    for record in df.itertuples(index=False, name=None):
        row = {h: _plain_text(v) for h, v in zip(headers, record)}
        if any(row.values()):
            rows.append(row)
    return rows


def _headers(columns) -> list[str]:
    headers = []
    for idx, col in enumerate(columns, start=1):
        name = "" if col is None else str(col).strip()
        if not name or name.lower().startswith("unnamed:"):
            name = f"Column{idx}"
        headers.append(name)
    return headers


def _plain_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


# =============================================================================
# xlsx (openpyxl)
# =============================================================================

def _extract_xlsx(path: str) -> list[dict[str, str]]:
    # Load from memory: openpyxl rejects paths whose extension is not .xlsx,
    # and tills sometimes name workbooks .csv
    with open(path, "rb") as fh:
        content = fh.read()
    try:
        formulas = openpyxl.load_workbook(io.BytesIO(content), data_only=False, read_only=True)
        cached = openpyxl.load_workbook(io.BytesIO(content), data_only=True, read_only=True)
    except Exception as exc:
        raise UnsupportedFileError(f"Could not open workbook {os.path.basename(path)}: {exc}") from exc

    try:
        if not formulas.worksheets:
            return []
        sheet = formulas.worksheets[0]
        cached_rows = cached.worksheets[0].iter_rows()
        rows: list[dict[str, str]] = []
        headers: list[str] = []
        for row_number, cells in enumerate(sheet.iter_rows(), start=1):
            cached_cells = next(cached_rows, ())
            if row_number == 1:
                headers = _headers(c.value for c in cells)
                continue
            row: dict[str, str] = {}
            for idx, cell in enumerate(cells):
                cached_value = cached_cells[idx].value if idx < len(cached_cells) else None
                text = cell_text(cell.value, cached_value, getattr(cell, "number_format", None))
                if text == "":
                    continue
                header = headers[idx] if idx < len(headers) else f"Column{idx + 1}"
                row[header] = text
            if row:
                rows.append(row)
        return rows
    finally:
        formulas.close()
        cached.close()


# =============================================================================
# Legacy xls (xlrd)
# =============================================================================

def _extract_xls(path: str) -> list[dict[str, str]]:
    try:
        book = xlrd.open_workbook(path, formatting_info=True)
    except xlrd.XLRDError as exc:
        raise UnsupportedFileError(f"Could not open workbook {os.path.basename(path)}: {exc}") from exc

    try:
        if book.nsheets == 0:
            return []
        sheet = book.sheet_by_index(0)
        rows: list[dict[str, str]] = []
        headers: list[str] = []
        for row_number in range(sheet.nrows):
            cells = sheet.row(row_number)
            if row_number == 0:
                headers = _headers(_xls_cell_text(book, c) or None for c in cells)
                continue
            row: dict[str, str] = {}
            for idx, cell in enumerate(cells):
                text = _xls_cell_text(book, cell)
                if text == "":
                    continue
                header = headers[idx] if idx < len(headers) else f"Column{idx + 1}"
                row[header] = text
            if row:
                rows.append(row)
        return rows
    finally:
        book.release_resources()


def _xls_cell_text(book, cell) -> str:
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR):
        return ""
    if cell.ctype == xlrd.XL_CELL_TEXT:
        return cell.value.strip()
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return _value_text(bool(cell.value))
    if cell.ctype == xlrd.XL_CELL_DATE:
        return _value_text(xlrd.xldate_as_datetime(cell.value, book.datemode))
    return _value_text(cell.value, _xls_number_format(book, cell.xf_index))


def _xls_number_format(book, xf_index: Optional[int]) -> Optional[str]:
    if xf_index is None or xf_index >= len(book.xf_list):
        return None
    fmt = book.format_map.get(book.xf_list[xf_index].format_key)
    return fmt.format_str if fmt is not None else None


# =============================================================================
# Cell text
# =============================================================================

def cell_text(value: Any, cached_value: Any = None, number_format: Optional[str] = None) -> str:
    """
    Text for one spreadsheet cell, in order of preference:
      1. display text: the cell is stored as text (e.g. "2.990,80")
      2. a number rendered through the cell's number format ("0.00", "#,##0.00")
      3. the stringified underlying value (numbers, dates, booleans)
    Formula cells use their cached result, rendered the same way.
    """
    if isinstance(value, str):
        if not value.startswith("="):
            return value.strip()
        value = cached_value
    return _value_text(value, number_format)


# Quoted literals, [colour]/[$£-809] blocks and escaped characters carry no digits
_FORMAT_LITERALS = re.compile(r'"[^"]*"|\[[^\]]*\]|\\.|_.|\*.')
_FORMAT_DECIMALS = re.compile(r"\.([0#?]+)")
_FORMAT_GROUPING = re.compile(r"[0#?],[0#?]")


def format_number(value: float, number_format: Optional[str]) -> Optional[str]:
    """
    Render value the way a spreadsheet shows it under number_format.
    None when the format is General, a percentage, scientific, or has no
    digit placeholders; the caller then falls back to the raw value.
    """
    if not number_format or number_format.strip().lower() == "general":
        return None
    section = _FORMAT_LITERALS.sub("", number_format.split(";")[0])
    if "%" in section or "e+" in section.lower() or "e-" in section.lower():
        return None
    if not re.search(r"[0#?]", section):
        return None
    match = _FORMAT_DECIMALS.search(section)
    decimals = len(match.group(1)) if match else 0
    grouping = "," if _FORMAT_GROUPING.search(section) else ""
    return f"{value:{grouping}.{decimals}f}"


def _value_text(value: Any, number_format: Optional[str] = None) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, datetime):
        return value.date().isoformat() if value.time() == time(0) else value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)):
        formatted = format_number(value, number_format)
        if formatted is not None:
            return formatted
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()
