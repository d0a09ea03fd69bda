"""Summary statistics over an estimated age distribution.

Every function accepts the frame returned by
:func:`name_age.estimator.estimate_distribution` (or any sequence of
records with ``year``, ``births``, ``living`` and ``age``), may be given an
empty or missing distribution, and returns zero-valued results instead of
raising.

Median and percentile ages are located on the cumulative-from-oldest
curve: cohorts are walked from the oldest age to the youngest while
accumulating ``living``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, Optional, Union

import pandas as pd

from .config import DEFAULT_PERCENTILES

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["year", "births", "living", "age"]

Distribution = Union[pd.DataFrame, Iterable[Dict[str, Any]], None]


@dataclass(frozen=True)
class PeakBirthYear:
    year: int = 0
    births: int = 0


@dataclass(frozen=True)
class AgeRange:
    lower: int = 0
    upper: int = 0


@dataclass(frozen=True)
class YearRange:
    earliest: int = 0
    latest: int = 0


@dataclass(frozen=True)
class SummaryStats:
    """Headline numbers for one name/gender distribution."""

    total_living: int = 0
    median_age: int = 0
    peak_birth_year: PeakBirthYear = field(default_factory=PeakBirthYear)
    age_range: AgeRange = field(default_factory=AgeRange)
    year_range: YearRange = field(default_factory=YearRange)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _as_frame(distribution: Distribution) -> pd.DataFrame:
    """Return the distribution as a year-ordered frame (empty if unusable)."""
    if distribution is None:
        return pd.DataFrame(columns=REQUIRED_COLUMNS)
    frame = (
        distribution
        if isinstance(distribution, pd.DataFrame)
        else pd.DataFrame(list(distribution))
    )
    if frame.empty:
        return pd.DataFrame(columns=REQUIRED_COLUMNS)

    missing = [col for col in REQUIRED_COLUMNS if col not in frame.columns]
    if missing:
        logger.warning("Distribution missing columns %s; treating as empty", missing)
        return pd.DataFrame(columns=REQUIRED_COLUMNS)

    frame = frame.assign(
        **{col: pd.to_numeric(frame[col], errors="coerce") for col in REQUIRED_COLUMNS}
    )
    frame = frame.replace([math.inf, -math.inf], math.nan).dropna(subset=["year", "age"])
    return frame.sort_values("year", kind="mergesort").reset_index(drop=True)


def _oldest_first(frame: pd.DataFrame) -> pd.DataFrame:
    """Rows ordered by age descending with a running ``cumulative`` living sum."""
    ordered = frame.sort_values("age", ascending=False, kind="mergesort")
    return ordered.assign(cumulative=ordered["living"].cumsum())


# ---------------------------------------------------------------------------
# Derivations
# ---------------------------------------------------------------------------


def total_living(distribution: Distribution) -> int:
    """Sum of living estimates across all cohorts."""
    frame = _as_frame(distribution)
    if frame.empty:
        return 0
    return int(frame["living"].sum())


def peak_birth_year(distribution: Distribution) -> PeakBirthYear:
    """Cohort with the most births; ties go to the earliest year."""
    frame = _as_frame(distribution)
    if frame.empty or not frame["births"].notna().any():
        return PeakBirthYear()
    peak = frame.loc[frame["births"].idxmax()]
    return PeakBirthYear(year=int(peak["year"]), births=int(peak["births"]))


def median_age(distribution: Distribution) -> int:
    """Age at which the cumulative-from-oldest living count reaches half.

    Returns 0 when nobody is estimated alive.  If rounding ever keeps the
    running sum below the half-way mark, the age of the largest living
    cohort is returned instead.
    """
    frame = _as_frame(distribution)
    total = total_living(frame)
    if total == 0:
        return 0

    half = total / 2
    walk = _oldest_first(frame)
    reached = walk[walk["cumulative"] >= half]
    if not reached.empty:
        return int(reached["age"].iloc[0])

    return int(frame.loc[frame["living"].idxmax(), "age"])


def age_range(
    distribution: Distribution,
    lower_percentile: float = DEFAULT_PERCENTILES[0],
    upper_percentile: float = DEFAULT_PERCENTILES[1],
) -> AgeRange:
    """Ages bounding the ``lower``–``upper`` percentile band of the living.

    Both bounds are thresholds on the cumulative-from-oldest curve: the
    ``upper`` (older) age is where it first reaches
    ``total - total * upper_percentile / 100``, the ``lower`` (younger) age
    is where it first reaches ``total - total * lower_percentile / 100``.
    A bound that is never reached is reported as 0.
    """
    frame = _as_frame(distribution)
    total = total_living(frame)
    if total == 0:
        return AgeRange()

    upper_threshold = total - total * (upper_percentile / 100)
    lower_threshold = total - total * (lower_percentile / 100)

    lower: Optional[int] = None
    upper: Optional[int] = None
    walk = _oldest_first(frame)
    for age, cumulative in zip(walk["age"], walk["cumulative"]):
        if upper is None and cumulative >= upper_threshold:
            upper = int(age)
        if lower is None and cumulative >= lower_threshold:
            lower = int(age)
        if lower is not None and upper is not None:
            break

    return AgeRange(
        lower=0 if lower is None else lower,
        upper=0 if upper is None else upper,
    )


def year_coverage(distribution: Distribution) -> YearRange:
    """Earliest and latest birth years present."""
    frame = _as_frame(distribution)
    if frame.empty:
        return YearRange()
    return YearRange(
        earliest=int(frame["year"].iloc[0]),
        latest=int(frame["year"].iloc[-1]),
    )


def summarize(distribution: Distribution) -> SummaryStats:
    """Compute all summary statistics with the default 10th/90th band."""
    frame = _as_frame(distribution)
    return SummaryStats(
        total_living=total_living(frame),
        median_age=median_age(frame),
        peak_birth_year=peak_birth_year(frame),
        age_range=age_range(frame, *DEFAULT_PERCENTILES),
        year_range=year_coverage(frame),
    )
