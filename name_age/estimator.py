"""Distribution estimator: birth counts and survival tables to living estimates.

For one name and gender this module combines:

* A birth-count series, mapping birth year to the number of babies given
  the name that year.  Years may be sparse; a missing year means the year
  was not measured, not that nobody was born.
* A survival table, mapping birth year to a sequence of survival
  probabilities indexed by age.

The primary entry point is :func:`estimate_distribution`, which returns one
row per birth year with the estimated number of people still alive.  The
survival probability for each cohort is resolved by an ordered list of
resolver strategies (:data:`SURVIVAL_RESOLVERS`): exact lookup, then the
most recent other year defining the age, then a linear approximation.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from .config import CURRENT_YEAR, LINEAR_HAZARD_PER_YEAR

# Module‑level logger
logger = logging.getLogger(__name__)

DISTRIBUTION_COLUMNS: List[str] = [
    "year",
    "births",
    "living",
    "age",
    "survival_probability",
    "survival_source",
]

_DISTRIBUTION_DTYPES: Dict[str, str] = {
    "year": "int64",
    "births": "int64",
    "living": "int64",
    "age": "int64",
    "survival_probability": "float64",
    "survival_source": "object",
}

SurvivalResolver = Callable[[pd.DataFrame, int, int], Optional[float]]

# Bounds of the int64 columns; values outside them are treated as invalid
INT64_MIN: int = -(2**63)
INT64_MAX: int = 2**63 - 1


# ---------------------------------------------------------------------------
# Input coercion
# ---------------------------------------------------------------------------


def _to_year(key: Any) -> Optional[int]:
    """Parse a year key such as ``1996`` or ``"1996"``; ``None`` if invalid."""
    try:
        value = float(str(key).strip())
    except ValueError:
        return None
    if not math.isfinite(value) or not value.is_integer():
        return None
    year = int(value)
    return year if INT64_MIN <= year <= INT64_MAX else None


def _to_count(value: Any) -> int:
    """Coerce a birth count to a non-negative integer (invalid -> 0)."""
    if isinstance(value, bool):
        return 0
    try:
        count = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(count) or count <= 0:
        return 0
    count = int(count)
    return count if count <= INT64_MAX else 0


def _to_probability(value: Any) -> float:
    """Coerce a survival probability into [0, 1]; undefined values become NaN."""
    if value is None or isinstance(value, bool):
        return math.nan
    try:
        probability = float(value)
    except (TypeError, ValueError):
        return math.nan
    if not math.isfinite(probability):
        return math.nan
    return min(max(probability, 0.0), 1.0)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def normalize_birth_series(series: Optional[Mapping[Any, Any]]) -> pd.Series:
    """Turn a raw year -> count mapping into a sorted integer Series.

    Keys that are not integral years are dropped and invalid or negative
    counts are treated as zero.  When the same year appears twice (for
    example ``1996`` and ``"1996"``) the last value wins.  Years without
    births are removed.

    Returns
    -------
    pd.Series
        Birth counts indexed by integer year, ascending, all positive.
    """
    records: Dict[int, int] = {}
    if series is not None:
        for key, value in series.items():
            year = _to_year(key)
            if year is None:
                logger.debug("Skipping birth count with invalid year key %r", key)
                continue
            records[year] = _to_count(value)

    births = pd.Series(records, dtype="int64", name="births").sort_index()
    births.index.name = "year"
    return births[births > 0]


def normalize_survival_table(
    table: Optional[Mapping[Any, Sequence[Any]]],
) -> pd.DataFrame:
    """Turn a raw year -> probabilities mapping into a year x age frame.

    Rows are birth years (ascending), columns are ages starting at 0.
    Probabilities are clamped into [0, 1]; missing, null or non-finite
    values are stored as NaN so resolvers treat them as undefined.
    """
    rows: Dict[int, List[float]] = {}
    if table is not None:
        for key, probabilities in table.items():
            year = _to_year(key)
            if year is None or probabilities is None or isinstance(probabilities, (str, bytes)):
                continue
            try:
                rows[year] = [_to_probability(p) for p in probabilities]
            except TypeError:
                logger.debug("Skipping survival table for %r: not a sequence", key)

    if not rows:
        return pd.DataFrame(dtype="float64")

    width = max(len(values) for values in rows.values())
    padded = [values + [math.nan] * (width - len(values)) for values in rows.values()]
    frame = pd.DataFrame(padded, index=list(rows), columns=range(width), dtype="float64")
    frame.index.name = "year"
    return frame.sort_index()


# ---------------------------------------------------------------------------
# Survival probability resolvers
# ---------------------------------------------------------------------------


def resolve_exact(table: pd.DataFrame, year: int, age: int) -> Optional[float]:
    """Probability from the cohort's own life table, if it defines ``age``."""
    if year not in table.index or age not in table.columns:
        return None
    value = table.at[year, age]
    if pd.isna(value):
        return None
    return float(value)


def resolve_cross_year(table: pd.DataFrame, year: int, age: int) -> Optional[float]:
    """Probability at ``age`` from the most recent year whose table defines it."""
    if age not in table.columns:
        return None
    defined = table[age].dropna()
    if defined.empty:
        return None
    return float(defined.sort_index(ascending=False).iloc[0])


def resolve_linear(table: pd.DataFrame, year: int, age: int) -> Optional[float]:
    """Crude approximation used only when no table defines ``age``."""
    return min(1.0, max(0.0, 1.0 - age * LINEAR_HAZARD_PER_YEAR))


# Tried in order; the first resolver returning a value wins.
SURVIVAL_RESOLVERS: Tuple[Tuple[str, SurvivalResolver], ...] = (
    ("exact", resolve_exact),
    ("cross_year", resolve_cross_year),
    ("linear", resolve_linear),
)


def resolve_survival_probability(
    table: pd.DataFrame,
    year: int,
    age: int,
    resolvers: Sequence[Tuple[str, SurvivalResolver]] = SURVIVAL_RESOLVERS,
) -> Tuple[float, str]:
    """Return ``(probability, resolver_name)`` for a cohort at ``age``.

    If every supplied resolver declines, the linear approximation is used.
    """
    for source, resolver in resolvers:
        probability = resolver(table, year, age)
        if probability is not None:
            return probability, source
    return resolve_linear(table, year, age), "linear"


# ---------------------------------------------------------------------------
# Estimation
# ---------------------------------------------------------------------------


def empty_distribution() -> pd.DataFrame:
    """A distribution frame with the expected columns and no rows."""
    return pd.DataFrame(
        {col: pd.Series(dtype=dtype) for col, dtype in _DISTRIBUTION_DTYPES.items()}
    )


def estimate_distribution(
    birth_series: Optional[Mapping[Any, Any]],
    survival_table: Optional[Mapping[Any, Sequence[Any]]],
    current_year: int = CURRENT_YEAR,
    *,
    resolvers: Sequence[Tuple[str, SurvivalResolver]] = SURVIVAL_RESOLVERS,
) -> pd.DataFrame:
    """Estimate how many people born each year are still alive.

    Parameters
    ----------
    birth_series : Mapping
        Birth year (int or year string) -> birth count for one name/gender.
    survival_table : Mapping
        Birth year -> survival probabilities indexed by age.  An empty
        mapping is valid and leaves every cohort to the linear fallback.
    current_year : int, optional
        Reference year for ages; defaults to ``config.CURRENT_YEAR``.
    resolvers : sequence of (name, resolver), optional
        Survival probability strategies, tried in order.

    Returns
    -------
    pd.DataFrame
        One row per birth year with births, ascending by year, with columns
        ``year``, ``births``, ``living``, ``age``, ``survival_probability``
        and ``survival_source``.  Missing inputs give an empty frame.
    """
    if birth_series is None or survival_table is None:
        return empty_distribution()

    births = normalize_birth_series(birth_series)
    if births.empty:
        return empty_distribution()

    table = normalize_survival_table(survival_table)
    current_year = int(current_year)

    records: List[Dict[str, Any]] = []
    for year, count in births.items():
        age = current_year - int(year)
        if age < 0:
            logger.debug("Skipping birth year %s: after reference year %s", year, current_year)
            continue
        if age > INT64_MAX:
            logger.debug("Skipping birth year %s: age %s out of range", year, age)
            continue

        probability, source = resolve_survival_probability(table, int(year), age, resolvers)
        living = min(max(round_half_up(int(count) * probability), 0), int(count))
        records.append(
            {
                "year": int(year),
                "births": int(count),
                "living": living,
                "age": age,
                "survival_probability": probability,
                "survival_source": source,
            }
        )

    if not records:
        return empty_distribution()

    distribution = pd.DataFrame.from_records(records, columns=DISTRIBUTION_COLUMNS)
    fallbacks = int((distribution["survival_source"] != "exact").sum())
    if fallbacks:
        logger.debug(
            "Resolved %d of %d cohorts without an exact life table entry",
            fallbacks,
            len(distribution),
        )
    return distribution.astype(_DISTRIBUTION_DTYPES)
