"""
Pytest configuration and shared fixtures for name age estimator tests.
"""

import json
from pathlib import Path
from typing import Dict, List
from xml.sax.saxutils import escape
from zipfile import ZipFile

import pytest

from name_age import data_manager

MAX_AGE = 100


def flat_table(years, probability: float = 1.0, ages: int = MAX_AGE + 1) -> Dict[str, List[float]]:
    """Survival table giving the same probability at every age for each year."""
    return {str(year): [probability] * ages for year in years}


@pytest.fixture(autouse=True)
def _clear_lookup_cache():
    data_manager.clear_cache()
    yield
    data_manager.clear_cache()


@pytest.fixture
def scenario_births() -> Dict[int, int]:
    """Birth series used by the worked example (1996/2000/2004)."""
    return {1996: 100, 2000: 200, 2004: 100}


@pytest.fixture
def certain_survival() -> Dict[str, List[float]]:
    """Everybody survives, for every year 1990-2025."""
    return flat_table(range(1990, 2026), 1.0)


@pytest.fixture
def lookup_dir(tmp_path: Path) -> Path:
    """A data directory holding small boys/girls names and life tables."""
    boys = {
        "Oliver": {"1996": 100, "2000": 200, "2004": 100},
        "Jack": {"1996": 50},
        "Alex": {"2010": 30},
    }
    girls = {
        "Olivia": {"2000": 300, "2010": 100},
        "Alex": {"2012": 20},
        "Rose": {"1990": 10},
    }
    files = {
        "baby-names-boys.json": boys,
        "baby-names-girls.json": girls,
        "life-tables-male.json": flat_table(range(1990, 2026), 1.0),
        "life-tables-female.json": flat_table(range(1990, 2026), 0.5),
    }
    for filename, payload in files.items():
        (tmp_path / filename).write_text(json.dumps(payload), encoding="utf-8")
    return tmp_path


def _col_letters(idx: int) -> str:
    letters = ""
    idx += 1
    while idx:
        idx, rem = divmod(idx - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def _cell(ref: str, value) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return f'<c r="{ref}"><v>{value}</v></c>'
    return f'<c r="{ref}" t="inlineStr"><is><t>{escape(str(value))}</t></is></c>'


def write_xlsx(path: Path, sheets: Dict[str, List[list]]) -> Path:
    """Write a minimal .xlsx with inline strings (enough for the workbook reader)."""
    main_ns = "http://schemas.openxmlformats.org/spreadsheetml/2006/main"
    rel_ns = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
    pkg_ns = "http://schemas.openxmlformats.org/package/2006/relationships"

    sheet_entries = []
    rel_entries = []
    with ZipFile(path, "w") as zf:
        for i, (name, rows) in enumerate(sheets.items(), start=1):
            sheet_entries.append(f'<sheet name="{escape(name)}" sheetId="{i}" r:id="rId{i}"/>')
            rel_entries.append(
                f'<Relationship Id="rId{i}" Type="{rel_ns}/worksheet" '
                f'Target="worksheets/sheet{i}.xml"/>'
            )
            xml_rows = []
            for r, row in enumerate(rows, start=1):
                cells = "".join(
                    _cell(f"{_col_letters(c)}{r}", value)
                    for c, value in enumerate(row)
                    if value is not None and value != ""
                )
                xml_rows.append(f'<row r="{r}">{cells}</row>')
            zf.writestr(
                f"xl/worksheets/sheet{i}.xml",
                f'<worksheet xmlns="{main_ns}"><sheetData>{"".join(xml_rows)}</sheetData></worksheet>',
            )
        zf.writestr(
            "xl/workbook.xml",
            f'<workbook xmlns="{main_ns}" xmlns:r="{rel_ns}"><sheets>{"".join(sheet_entries)}</sheets></workbook>',
        )
        zf.writestr(
            "xl/_rels/workbook.xml.rels",
            f'<Relationships xmlns="{pkg_ns}">{"".join(rel_entries)}</Relationships>',
        )
    return path


@pytest.fixture
def make_table():
    """Factory for flat survival tables."""
    return flat_table


@pytest.fixture
def xlsx_writer():
    """Factory writing minimal workbooks: ``xlsx_writer(path, {sheet: rows})``."""
    return write_xlsx
