"""
Minimal .xlsx reader for the ONS source workbooks (no external engine needed).

An .xlsx file is a zip of XML parts.  Ingestion only needs the sheet names
and the cell text of each sheet, so every sheet comes back as a list of
rows, each row a list of strings padded so that column ``j`` of the sheet
is index ``j`` of the list.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from io import BytesIO
from pathlib import Path
from typing import Dict, List, Optional
from zipfile import ZipFile

import requests

logger = logging.getLogger(__name__)

Rows = List[List[str]]

# ---------------------------------------------------------------------------
# OOXML part names and namespaces
# ---------------------------------------------------------------------------

SHEET_NS = "{http://schemas.openxmlformats.org/spreadsheetml/2006/main}"
PACKAGE_REL_NS = "{http://schemas.openxmlformats.org/package/2006/relationships}"
OFFICE_REL_ID = "{http://schemas.openxmlformats.org/officeDocument/2006/relationships}id"

WORKBOOK_PART = "xl/workbook.xml"
WORKBOOK_RELS_PART = "xl/_rels/workbook.xml.rels"
SHARED_STRINGS_PART = "xl/sharedStrings.xml"


def open_workbook_source(source: str | Path) -> BytesIO | Path:
    """
    Return a file-like object (for URLs) or Path (for local files) for a workbook.

    Raises
    ------
    FileNotFoundError
        If ``source`` is a local path that does not exist.
    requests.HTTPError
        If a URL cannot be downloaded.
    """
    location = str(source)
    if location.lower().startswith(("http://", "https://")):
        logger.info("Downloading workbook %s", location)
        response = requests.get(location, timeout=30)
        response.raise_for_status()
        return BytesIO(response.content)

    path = Path(source)
    if not path.exists():
        raise FileNotFoundError(f"Workbook not found at {path}")
    return path


def column_index(cell_ref: str) -> int:
    """Zero-based column of a cell reference: ``"A1" -> 0``, ``"AB3" -> 27``."""
    number = 0
    for letter in (ch.upper() for ch in cell_ref if ch.isalpha()):
        number = number * 26 + ord(letter) - ord("A") + 1
    return number - 1


def _text_of(element: ET.Element) -> str:
    """Concatenate every ``<t>`` run under ``element`` (rich text has several)."""
    return "".join(t.text or "" for t in element.iter(f"{SHEET_NS}t"))


def _shared_strings(zf: ZipFile) -> List[str]:
    if SHARED_STRINGS_PART not in zf.namelist():
        return []
    root = ET.fromstring(zf.read(SHARED_STRINGS_PART))
    return [_text_of(item) for item in root.iter(f"{SHEET_NS}si")]


def _worksheet_parts(zf: ZipFile) -> Dict[str, str]:
    """Sheet name -> worksheet part, in workbook order."""
    rels = ET.fromstring(zf.read(WORKBOOK_RELS_PART))
    targets = {
        rel.get("Id"): rel.get("Target", "").lstrip("/")
        for rel in rels.iter(f"{PACKAGE_REL_NS}Relationship")
    }

    workbook = ET.fromstring(zf.read(WORKBOOK_PART))
    parts: Dict[str, str] = {}
    for sheet in workbook.iter(f"{SHEET_NS}sheet"):
        target = targets[sheet.get(OFFICE_REL_ID)]
        parts[sheet.get("name")] = target if target.startswith("xl/") else f"xl/{target}"
    return parts


def _cell_text(cell: ET.Element, shared: List[str]) -> str:
    kind = cell.get("t")
    if kind == "inlineStr":
        return _text_of(cell)

    raw: Optional[str] = cell.findtext(f"{SHEET_NS}v")
    if raw is None:
        return ""
    if kind == "s":
        try:
            return shared[int(raw)]
        except (IndexError, ValueError):
            logger.debug("Unresolvable shared string index %r", raw)
    return raw


def _sheet_rows(zf: ZipFile, part: str, shared: List[str]) -> Rows:
    rows: Rows = []
    for row in ET.fromstring(zf.read(part)).iter(f"{SHEET_NS}row"):
        values: Dict[int, str] = {}
        col = 0
        for cell in row.iter(f"{SHEET_NS}c"):
            # A cell without a reference sits right after the previous one
            ref = cell.get("r")
            col = column_index(ref) if ref else col
            values[col] = _cell_text(cell, shared)
            col += 1
        if values:
            padded = [""] * (max(values) + 1)
            for idx, text in values.items():
                padded[idx] = text
            rows.append(padded)
    return rows


def read_workbook(source: str | Path) -> Dict[str, Rows]:
    """
    Read every sheet of a workbook into rows of strings.

    Parameters
    ----------
    source : str | Path
        Local path or HTTP(S) URL of the ``.xlsx`` file.

    Returns
    -------
    Dict[str, Rows]
        Sheet name -> rows, in workbook order.  Empty rows are dropped.
    """
    with ZipFile(open_workbook_source(source)) as zf:
        shared = _shared_strings(zf)
        sheets = {
            name: _sheet_rows(zf, part, shared)
            for name, part in _worksheet_parts(zf).items()
        }
    logger.info("Read %d sheets from %s: %s", len(sheets), source, ", ".join(sheets))
    return sheets
