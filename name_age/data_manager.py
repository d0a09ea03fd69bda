"""Data manager for loading and caching the JSON lookup tables.

This module resolves where the processed lookup tables live, loads them
once per location and keeps them in memory, and offers the name lookups
the front end needs (exact/case-insensitive match, autocomplete, gender
suggestion).  It uses ``logging`` instead of printing directly to stdout.

The data directory is taken from the ``NAME_AGE_DATA_DIR`` environment
variable when set (a local path or an HTTP(S) base URL), otherwise the
``data`` folder at the repository root.
"""

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
import requests

from .config import (
    BABY_NAMES_FILES,
    CURRENT_YEAR,
    DATA_DIR_ENV,
    Gender,
    LIFE_TABLES_FILES,
    MAX_NAME_LENGTH,
)
from .estimator import estimate_distribution
from .statistics import SummaryStats, summarize

logger = logging.getLogger(__name__)

BabyNames = Dict[str, Dict[str, int]]
LifeTables = Dict[str, List[float]]


class DataLoadError(Exception):
    """A lookup table could not be read or parsed."""


class NameNotFoundError(LookupError):
    """The requested name has no birth records for the requested gender."""

    def __init__(self, name: str, gender: str, other_gender: Optional[str] = None):
        self.name = name
        self.gender = gender
        self.other_gender = other_gender
        if other_gender:
            message = (
                f'"{name}" was not found in {gender} names, but exists in '
                f"{other_gender} names. Try switching the gender selector."
            )
        else:
            message = (
                f'"{name}" was not found in the dataset. Please check the spelling '
                "or try a different name. Note: Very rare names may not be included "
                "in the data."
            )
        super().__init__(message)


# ---------------------------------------------------------------------------
# Location
# ---------------------------------------------------------------------------


def resolve_data_dir() -> str:
    """Select the location of the lookup tables.

    The lookup order is:

    1. The ``NAME_AGE_DATA_DIR`` environment variable, if set.  HTTP(S)
       URLs are kept as-is; paths are expanded to absolute paths.
    2. A ``data`` folder at the repository root.
    """
    env = os.getenv(DATA_DIR_ENV)
    if env:
        if env.lower().startswith(("http://", "https://")):
            return env.rstrip("/")
        return str(Path(env).expanduser().resolve())
    # Repo root /data (two levels up from this file)
    return str(Path(__file__).resolve().parent.parent / "data")


def _join(base: Any, filename: str) -> str:
    base = str(base)
    if base.lower().startswith(("http://", "https://")):
        return f"{base}/{filename}"
    return str(Path(base) / filename)


def _check_gender(gender: str) -> None:
    if gender not in BABY_NAMES_FILES:
        raise ValueError(f"Unknown gender {gender!r}; expected one of {list(BABY_NAMES_FILES)}.")


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


@lru_cache(maxsize=8)
def _load_json(location: str) -> Any:
    """Read one JSON lookup table from disk or over HTTP (cached per location)."""
    logger.info("Loading lookup table %s", location)
    try:
        if location.lower().startswith(("http://", "https://")):
            response = requests.get(location, timeout=30)
            response.raise_for_status()
            return response.json()
        with open(location, encoding="utf-8") as fh:
            return json.load(fh)
    except (OSError, ValueError, requests.RequestException) as exc:
        logger.error("Error loading lookup table %s: %s", location, exc)
        raise DataLoadError(
            f"Could not load {location}. Please ensure data files have been "
            "processed (python -m name_age.ingest)."
        ) from exc


def load_baby_names(gender: Gender, data_dir: Optional[str] = None) -> BabyNames:
    """Birth counts per name for one gender: ``{name: {"YYYY": count}}``."""
    _check_gender(gender)
    return _load_json(_join(data_dir or resolve_data_dir(), BABY_NAMES_FILES[gender]))


def load_life_tables(gender: Gender, data_dir: Optional[str] = None) -> LifeTables:
    """Survival probabilities per birth year for one gender."""
    _check_gender(gender)
    return _load_json(_join(data_dir or resolve_data_dir(), LIFE_TABLES_FILES[gender]))


def load_all_data(gender: Gender, data_dir: Optional[str] = None) -> Dict[str, Any]:
    """Both lookup tables for ``gender`` as ``{"baby_names", "life_tables"}``."""
    return {
        "baby_names": load_baby_names(gender, data_dir),
        "life_tables": load_life_tables(gender, data_dir),
    }


def clear_cache() -> None:
    """Forget every loaded lookup table (e.g. after re-running ingestion)."""
    _load_json.cache_clear()


# ---------------------------------------------------------------------------
# Name lookup
# ---------------------------------------------------------------------------


def normalize_name(name: Any) -> str:
    return name.strip() if isinstance(name, str) else ""


def is_valid_name(name: Any) -> bool:
    """Non-empty after trimming and no longer than ``MAX_NAME_LENGTH``."""
    return 0 < len(normalize_name(name)) <= MAX_NAME_LENGTH


def _matching_key(name: Any, baby_names: Optional[BabyNames]) -> Optional[str]:
    normalized = normalize_name(name)
    if not normalized or not baby_names:
        return None
    if normalized in baby_names:
        return normalized
    lower = normalized.lower()
    return next((key for key in baby_names if key.lower() == lower), None)


def name_exists(name: Any, baby_names: Optional[BabyNames]) -> bool:
    """True if ``name`` is present (exact match first, then case-insensitive)."""
    return _matching_key(name, baby_names) is not None


def get_name_data(name: Any, baby_names: Optional[BabyNames]) -> Optional[Dict[str, int]]:
    """Year -> count series for ``name``, or ``None`` when absent."""
    key = _matching_key(name, baby_names)
    return None if key is None else baby_names[key]


def all_names(baby_names: Optional[BabyNames], limit: Optional[int] = 1000) -> List[str]:
    """Alphabetical list of names, truncated to ``limit`` when given."""
    if not baby_names:
        return []
    names = sorted(baby_names)
    return names[:limit] if limit else names


def search_names(query: Any, baby_names: Optional[BabyNames], limit: int = 20) -> List[str]:
    """Autocomplete: names starting with ``query``, then names containing it."""
    normalized = normalize_name(query).lower()
    if not normalized or not baby_names:
        return []

    names = pd.Series(list(baby_names), dtype="object")
    lowered = names.str.lower()
    starts = lowered.str.startswith(normalized)
    starts_with = names[starts].tolist()
    if len(starts_with) >= limit:
        return sorted(starts_with[:limit])

    contains = names[lowered.str.contains(normalized, regex=False) & ~starts].tolist()
    return sorted((starts_with + contains)[:limit])


def suggest_gender(
    name: Any, boys: Optional[BabyNames], girls: Optional[BabyNames]
) -> Optional[str]:
    """``"male"``, ``"female"`` or ``"both"`` by exact key presence; else ``None``."""
    normalized = normalize_name(name)
    in_boys = bool(boys) and normalized in boys
    in_girls = bool(girls) and normalized in girls
    if in_boys and in_girls:
        return "both"
    if in_boys:
        return "male"
    if in_girls:
        return "female"
    return None


# ---------------------------------------------------------------------------
# Estimation entry point
# ---------------------------------------------------------------------------


def estimate_for_name(
    name: str,
    gender: Gender,
    current_year: int = CURRENT_YEAR,
    data_dir: Optional[str] = None,
) -> Tuple[pd.DataFrame, SummaryStats]:
    """
    Load the lookup tables for ``gender`` and estimate ``name``'s age profile.

    Parameters
    ----------
    name : str
        Name to look up (trimmed, case-insensitive fallback).
    gender : {"male", "female"}
        Which birth records and life tables to use.
    current_year : int, optional
        Reference year for ages.
    data_dir : str, optional
        Override for the lookup table location.

    Returns
    -------
    Tuple[pd.DataFrame, SummaryStats]
        The distribution from :func:`estimate_distribution` and its summary.

    Raises
    ------
    NameNotFoundError
        If ``name`` has no records for ``gender``.  ``other_gender`` is set
        when the name exists for the opposite gender.
    """
    data = load_all_data(gender, data_dir)
    series = get_name_data(name, data["baby_names"])

    if series is None:
        other = "female" if gender == "male" else "male"
        try:
            other_names = load_baby_names(other, data_dir)
        except DataLoadError as exc:
            logger.warning("Could not check %s names for %r: %s", other, name, exc)
            other_names = {}
        hint = other if name_exists(name, other_names) else None
        raise NameNotFoundError(normalize_name(name), gender, other_gender=hint)

    distribution = estimate_distribution(series, data["life_tables"], current_year)
    stats = summarize(distribution)
    logger.info(
        "Estimated %s (%s): %d living, median age %d",
        normalize_name(name),
        gender,
        stats.total_living,
        stats.median_age,
    )
    return distribution, stats
