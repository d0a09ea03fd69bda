"""Convert ONS source workbooks into the JSON lookup tables.

Outputs, written to the data directory:

* ``baby-names-boys.json`` / ``baby-names-girls.json``:
  ``{name: {"YYYY": count}}``
* ``life-tables-male.json`` / ``life-tables-female.json``:
  ``{"YYYY": [p_age0, ..., p_age100]}``

Life tables fall back to a simplified mortality model when no workbook is
available.  Historical decade rankings (1904–1994) are optionally turned
into estimated yearly counts and merged under the measured series.  The
extension from the last ranked decade up to the first measured year uses an
explicit fade-out policy (:func:`fade_out`); it lives here and is not part
of the estimator's survival fallback chain.

Run as ``python -m name_age.ingest --help``.
"""

from __future__ import annotations

import argparse
import json
import logging
import math
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from .config import (
    BABY_NAMES_FILES,
    CURRENT_YEAR,
    FADE_OUT_BOUNDARY_YEAR,
    FADE_OUT_MAX_DROP,
    HISTORICAL_DECADES,
    HISTORICAL_START_YEAR,
    HISTORICAL_WORKBOOK,
    LIFE_EXPECTANCY,
    LIFE_TABLES_FILES,
    LIFE_TABLES_WORKBOOK,
    LX_RADIX,
    MAX_AGE,
    MAX_HISTORICAL_RANK,
    MIN_TOTAL_OCCURRENCES,
    NAME_SHEETS,
    NAMES_WORKBOOK,
    RANK_BASE_BIRTHS,
    RANK_DECAY,
    START_YEAR,
    SUPPRESSED_MARKERS,
)
from .estimator import round_half_up
from .workbook import Rows, read_workbook

logger = logging.getLogger(__name__)

NameCounts = Dict[str, Dict[str, int]]
LifeTable = Dict[str, List[float]]

# Accepted header spellings for long-format life tables (compared lower-case)
YEAR_HEADERS: List[str] = ["year", "birth year", "cohort"]
AGE_HEADERS: List[str] = ["age", "x"]
LX_HEADERS: List[str] = ["lx", "lx (survivors)", "survivors"]

HEADER_SEARCH_ROWS: int = 10


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def find_header_row(rows: Rows, first_cell: str) -> Optional[int]:
    """Index of the first row (within the top rows) starting with ``first_cell``."""
    target = first_cell.lower()
    for i, row in enumerate(rows[:HEADER_SEARCH_ROWS]):
        if row and str(row[0]).strip().lower() == target:
            return i
    return None


def parse_count(raw: Any) -> int:
    """Parse a published count; suppressed, blank or invalid cells give 0."""
    text = str(raw if raw is not None else "").strip().replace(",", "")
    if not text or text in SUPPRESSED_MARKERS:
        return 0
    try:
        value = float(text)
    except ValueError:
        return 0
    if not math.isfinite(value) or value <= 0:
        return 0
    return int(value)


def write_json_atomic(data: Any, path: Path) -> None:
    """Write JSON atomically.

    The payload is first written to a temporary file in the same directory
    and then renamed to the final location, so an interrupted run never
    leaves a truncated lookup table behind.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    tmp_path.replace(path)
    logger.info("Saved %s (%.2f KB)", path.name, path.stat().st_size / 1024)


# ---------------------------------------------------------------------------
# Baby names
# ---------------------------------------------------------------------------


def parse_baby_names_rows(rows: Rows) -> NameCounts:
    """Parse a wide ONS names sheet into ``{name: {"YYYY": count}}``.

    The header row is the first row whose first cell is ``Name``; every
    header of the form ``"YYYY Count"`` marks a year column.  Suppressed
    cells (``[x]``, ``[z]``) and blanks are skipped, and names without any
    positive count are dropped.
    """
    header_idx = find_header_row(rows, "Name")
    if header_idx is None:
        logger.warning("Could not find a 'Name' header row; no names parsed")
        return {}

    headers = pd.Series(rows[header_idx], dtype="object").astype(str)
    years = headers.str.extract(r"(\d{4})\s+Count", expand=False)
    year_columns = {int(i): year for i, year in years.dropna().items()}
    logger.info("Found data for years: %s", ", ".join(sorted(year_columns.values())))

    name_data: NameCounts = {}
    for row in rows[header_idx + 1 :]:
        name = str(row[0]).strip() if row else ""
        if not name:
            continue
        counts = {
            year: parse_count(row[col])
            for col, year in year_columns.items()
            if col < len(row)
        }
        counts = {year: count for year, count in counts.items() if count > 0}
        if counts:
            # Later rows for the same name add years rather than replace them
            name_data.setdefault(name, {}).update(counts)

    logger.info("Processed %d unique names", len(name_data))
    return name_data


def filter_rare_names(data: NameCounts, min_total: int = MIN_TOTAL_OCCURRENCES) -> NameCounts:
    """Drop names whose total count across all years is below ``min_total``."""
    kept = {name: years for name, years in data.items() if sum(years.values()) >= min_total}
    dropped = len(data) - len(kept)
    if dropped:
        logger.info("Filtered out %d rare names (< %d total occurrences)", dropped, min_total)
    return kept


# ---------------------------------------------------------------------------
# Life tables
# ---------------------------------------------------------------------------


def _pick_column(columns: Iterable[str], candidates: Sequence[str]) -> Optional[str]:
    lookup = {str(col).strip().lower(): col for col in columns}
    return next((lookup[c] for c in candidates if c in lookup), None)


def fill_missing_ages(survival: Dict[int, float], max_age: int = MAX_AGE) -> List[float]:
    """Complete a sparse age -> probability mapping for ages 0..max_age.

    A missing age 0 is taken as full survival; any other missing age
    declines by 0.001 from the age before it (never below 0).
    """
    ages: List[float] = []
    for age in range(max_age + 1):
        if age in survival:
            ages.append(survival[age])
        elif age == 0:
            ages.append(1.0)
        else:
            ages.append(max(0.0, ages[age - 1] - 0.001))
    return ages


def parse_life_table_rows(
    rows: Rows,
    *,
    start_year: int = START_YEAR,
    end_year: int = CURRENT_YEAR,
    max_age: int = MAX_AGE,
) -> LifeTable:
    """Parse a long-format life table sheet into ``{"YYYY": [p_age0, ...]}``.

    Expects one row per (birth year, age) with an ``lx`` survivors column
    per 100,000 births.  Rows outside ``start_year..end_year`` are ignored.
    """
    header_idx = next(
        (
            i
            for i, row in enumerate(rows[:HEADER_SEARCH_ROWS])
            if _pick_column(row, AGE_HEADERS) is not None
        ),
        None,
    )
    if header_idx is None:
        raise KeyError(f"Missing expected columns: age ({AGE_HEADERS})")

    header = rows[header_idx]
    body = [row + [""] * (len(header) - len(row)) for row in rows[header_idx + 1 :]]
    df = pd.DataFrame([row[: len(header)] for row in body], columns=header)

    columns = {
        "year": _pick_column(df.columns, YEAR_HEADERS),
        "age": _pick_column(df.columns, AGE_HEADERS),
        "lx": _pick_column(df.columns, LX_HEADERS),
    }
    missing = [key for key, col in columns.items() if col is None]
    if missing:
        raise KeyError(f"Missing expected columns: {missing}")

    table = df[list(columns.values())].copy()
    table.columns = list(columns)
    table = table.apply(pd.to_numeric, errors="coerce").dropna()
    in_range = table["year"].between(start_year, end_year) & table["age"].between(0, max_age)
    table = table[in_range].copy()
    table["survival"] = (table["lx"] / LX_RADIX).clip(0.0, 1.0)
    table = table.astype({"year": int, "age": int})

    life_table: LifeTable = {}
    for year, group in table.groupby("year"):
        survival = dict(zip(group["age"], group["survival"]))
        life_table[str(year)] = fill_missing_ages(survival, max_age)

    logger.info("Processed %d years of life tables", len(life_table))
    return life_table


def simplified_survival(age: int, life_expectancy: float) -> float:
    """Survival probability under the simplified mortality model."""
    if age == 0:
        survival = 0.995
    elif age < 10:
        survival = 0.995 - age * 0.0001
    else:
        survival = math.exp(-((age / life_expectancy) ** 4))
    return max(0.0, min(1.0, survival))


def generate_simplified_life_tables(
    start_year: int = START_YEAR,
    end_year: int = CURRENT_YEAR,
    max_age: int = MAX_AGE,
) -> Dict[str, LifeTable]:
    """Approximate life tables per gender when ONS tables are unavailable.

    Ages 0–9 carry near-flat infant/childhood survival; from age 10 survival
    follows ``exp(-(age / life_expectancy) ** 4)`` with gender-specific life
    expectancy.  Every birth year gets the same curve.
    """
    tables: Dict[str, LifeTable] = {}
    for gender, life_expectancy in LIFE_EXPECTANCY.items():
        curve = [simplified_survival(age, life_expectancy) for age in range(max_age + 1)]
        tables[gender] = {str(year): list(curve) for year in range(start_year, end_year + 1)}
        logger.info("Generated %d years of %s life tables", end_year - start_year + 1, gender)
    return tables


def life_tables_from_workbook(sheets: Dict[str, Rows], **kwargs: Any) -> Dict[str, LifeTable]:
    """Find and parse one life table sheet per gender."""
    tables: Dict[str, LifeTable] = {}
    for gender, table_number in (("male", 1), ("female", 2)):
        candidates = [
            f"{gender}s",
            gender.capitalize(),
            f"{gender} cohort",
            gender.upper(),
            f"Table {table_number}",
        ]
        sheet_name = next((name for name in candidates if name in sheets), None)
        if sheet_name is None:
            logger.warning("Could not find %s life table sheet in %s", gender, list(sheets))
            continue
        logger.info("Found %s life tables in sheet %s", gender, sheet_name)
        tables[gender] = parse_life_table_rows(sheets[sheet_name], **kwargs)
    return tables


# ---------------------------------------------------------------------------
# Historical rankings
# ---------------------------------------------------------------------------


def estimate_births_from_rank(rank: int) -> int:
    """Rough birth count for a top-100 rank (exponential decay from rank 1).

    Rank 1 maps to ~48,000 births, rank 100 to ~550.  Ranks outside
    1..100 give 0.
    """
    if rank < 1 or rank > MAX_HISTORICAL_RANK:
        return 0
    return round_half_up(RANK_BASE_BIRTHS * math.exp(-RANK_DECAY * rank))


def interpolate(year: int, start: int, end: int, start_births: int, end_births: int) -> int:
    """Linear interpolation of births between two ranked decades."""
    if year == start:
        return start_births
    if year == end:
        return end_births
    ratio = (year - start) / (end - start)
    return round_half_up(start_births + ratio * (end_births - start_births))


def fade_out(
    last_births: int,
    last_decade: int,
    year: int,
    *,
    boundary_year: int = FADE_OUT_BOUNDARY_YEAR,
    max_drop: float = FADE_OUT_MAX_DROP,
) -> int:
    """Extrapolate past the last ranked decade toward the measured series.

    Counts decline linearly from ``last_births`` at ``last_decade`` by up to
    ``max_drop`` (30%) as ``year`` approaches ``boundary_year``, so the
    estimates do not jump sharply where measured data begins.
    """
    ratio = 1 - ((year - last_decade) / (boundary_year - last_decade)) * max_drop
    return round_half_up(last_births * ratio)


def parse_historical_rows(
    rows: Rows, decades: Sequence[int] = HISTORICAL_DECADES
) -> Dict[int, Dict[str, int]]:
    """Parse a decade ranking sheet into ``{decade: {name: rank}}``."""
    header_idx = find_header_row(rows, "Rank")
    if header_idx is None:
        logger.warning("Could not find a 'Rank' header row; no rankings parsed")
        return {}

    decade_columns: Dict[int, int] = {}
    for col, raw in enumerate(rows[header_idx][1:], start=1):
        try:
            year = int(float(str(raw).strip()))
        except (OverflowError, ValueError):
            continue
        if year in decades:
            decade_columns[year] = col
    logger.info("Found decades: %s", ", ".join(str(d) for d in sorted(decade_columns)))

    rankings: Dict[int, Dict[str, int]] = {decade: {} for decade in decades}
    for row in rows[header_idx + 1 : header_idx + 1 + MAX_HISTORICAL_RANK]:
        try:
            rank = int(float(str(row[0]).strip()))
        except (IndexError, OverflowError, ValueError):
            continue
        if rank < 1 or rank > MAX_HISTORICAL_RANK:
            continue
        for decade, col in decade_columns.items():
            name = str(row[col]).strip() if col < len(row) else ""
            if name:
                rankings[decade][name] = rank
    return rankings


def expand_historical_counts(
    rankings: Dict[int, Dict[str, int]],
    *,
    start_year: int = HISTORICAL_START_YEAR,
    boundary_year: int = FADE_OUT_BOUNDARY_YEAR,
) -> Dict[str, Dict[int, int]]:
    """Turn decade rankings into yearly estimated counts per name.

    Known decades are converted with :func:`estimate_births_from_rank`,
    years between decades are interpolated, the first decade's count is
    carried back to ``start_year``, and years after the last decade up to
    ``boundary_year - 1`` use :func:`fade_out`.
    """
    counts: Dict[str, Dict[int, int]] = {}
    for decade, ranks in rankings.items():
        for name, rank in ranks.items():
            counts.setdefault(name, {})[int(decade)] = estimate_births_from_rank(rank)

    for name, years in counts.items():
        decades = sorted(years)
        for start, end in zip(decades, decades[1:]):
            for year in range(start + 1, end):
                years[year] = interpolate(year, start, end, years[start], years[end])

        first = decades[0]
        for year in range(start_year, first):
            years[year] = years[first]

        last = decades[-1]
        for year in range(last + 1, boundary_year):
            years[year] = fade_out(years[last], last, year, boundary_year=boundary_year)

    logger.info("Estimated yearly counts for %d historical names", len(counts))
    return counts


def merge_with_modern(
    historical: Dict[str, Dict[Any, int]], modern: Dict[str, Dict[Any, int]]
) -> NameCounts:
    """Combine historical estimates with measured counts (measured wins)."""
    merged: NameCounts = {
        name: {str(year): int(count) for year, count in years.items()}
        for name, years in historical.items()
    }
    for name, years in modern.items():
        target = merged.setdefault(name, {})
        for year, count in years.items():
            target[str(year)] = int(count)

    both = sum(
        1
        for years in merged.values()
        if years and min(map(int, years)) < FADE_OUT_BOUNDARY_YEAR <= max(map(int, years))
    )
    logger.info("Merged %d names (%d with historical and measured data)", len(merged), both)
    return merged


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


def run_ingest(
    raw_dir: Path,
    out_dir: Path,
    *,
    names_workbook: Optional[str] = None,
    life_tables_workbook: Optional[str] = None,
    historical_workbook: Optional[str] = None,
    min_total: int = MIN_TOTAL_OCCURRENCES,
) -> Dict[str, Path]:
    """Build every lookup table and return the paths written.

    Workbook arguments may be file names relative to ``raw_dir``, absolute
    paths or URLs.  Raises ``FileNotFoundError`` if the names workbook is
    missing; a missing life tables workbook falls back to simplified
    tables and a missing historical workbook is skipped.
    """
    def _locate(source: Optional[str], default: str) -> str:
        value = source or default
        if value.lower().startswith(("http://", "https://")) or Path(value).is_absolute():
            return value
        return str(raw_dir / value)

    written: Dict[str, Path] = {}

    # 1. Baby names (required)
    names_sheets = read_workbook(_locate(names_workbook, NAMES_WORKBOOK))
    names: Dict[str, NameCounts] = {}
    for sheet_name, gender in NAME_SHEETS.items():
        if sheet_name not in names_sheets:
            logger.warning("Sheet %s not found in names workbook", sheet_name)
            continue
        names[gender] = filter_rare_names(parse_baby_names_rows(names_sheets[sheet_name]), min_total)

    if not names:
        raise ValueError("No baby names sheets could be processed.")

    # 2. Historical rankings (optional)
    historical_source = _locate(historical_workbook, HISTORICAL_WORKBOOK)
    try:
        historical_sheets = read_workbook(historical_source)
    except FileNotFoundError:
        logger.info("No historical rankings at %s; keeping measured years only", historical_source)
    else:
        for sheet_name, gender in NAME_SHEETS.items():
            if sheet_name not in historical_sheets:
                continue
            estimates = expand_historical_counts(parse_historical_rows(historical_sheets[sheet_name]))
            names[gender] = merge_with_modern(estimates, names.get(gender, {}))

    for gender, data in names.items():
        path = out_dir / BABY_NAMES_FILES[gender]
        write_json_atomic(data, path)
        written[f"baby_names_{gender}"] = path

    # 3. Life tables (simplified model when unavailable)
    life_source = _locate(life_tables_workbook, LIFE_TABLES_WORKBOOK)
    try:
        life_tables = life_tables_from_workbook(read_workbook(life_source))
    except FileNotFoundError:
        logger.warning("No life tables workbook at %s", life_source)
        life_tables = {}

    if not life_tables:
        logger.warning("Using simplified mortality model; results are approximate")
        life_tables = generate_simplified_life_tables()

    for gender, table in life_tables.items():
        path = out_dir / LIFE_TABLES_FILES[gender]
        write_json_atomic(table, path)
        written[f"life_tables_{gender}"] = path

    return written


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    repo_root = Path(__file__).resolve().parent.parent
    parser = argparse.ArgumentParser(
        description=(
            "Convert ONS baby names and life table workbooks into the JSON "
            "lookup tables used by the name age estimator."
        )
    )
    parser.add_argument(
        "--raw-dir",
        type=Path,
        default=repo_root / "data" / "raw",
        help="Directory holding the downloaded workbooks (default: data/raw).",
    )
    parser.add_argument(
        "--out-dir",
        type=Path,
        default=repo_root / "data",
        help="Directory for the JSON lookup tables (default: data).",
    )
    parser.add_argument(
        "--names-workbook",
        default=None,
        help=f"Names workbook file, path or URL (default: {NAMES_WORKBOOK}).",
    )
    parser.add_argument(
        "--life-tables-workbook",
        default=None,
        help=f"Life tables workbook file, path or URL (default: {LIFE_TABLES_WORKBOOK}).",
    )
    parser.add_argument(
        "--historical-workbook",
        default=None,
        help=f"Historical rankings workbook file, path or URL (default: {HISTORICAL_WORKBOOK}).",
    )
    parser.add_argument(
        "--min-total",
        type=int,
        default=MIN_TOTAL_OCCURRENCES,
        help=f"Drop names with fewer total births (default: {MIN_TOTAL_OCCURRENCES}).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    args = parse_args(argv)
    try:
        written = run_ingest(
            args.raw_dir,
            args.out_dir,
            names_workbook=args.names_workbook,
            life_tables_workbook=args.life_tables_workbook,
            historical_workbook=args.historical_workbook,
            min_total=args.min_total,
        )
    except (FileNotFoundError, KeyError, ValueError) as exc:
        logger.error("Ingestion failed: %s", exc)
        return 1

    logger.info("Wrote %d lookup tables to %s", len(written), args.out_dir)
    return 0


if __name__ == "__main__":
    sys.exit(main())
