"""
Configuration constants for the name age estimator.
"""

from typing import Dict, List, Literal, Tuple

Gender = Literal["male", "female"]

# ======================================================
#  ESTIMATION CONSTANTS
# ======================================================
# Reference year for ages; fixed so results are reproducible.
CURRENT_YEAR: int = 2025

# ONS baby names coverage for England & Wales starts here
START_YEAR: int = 1996

# Survival fallback when no life table defines an age: max(0, 1 - age * h)
LINEAR_HAZARD_PER_YEAR: float = 0.012

DEFAULT_PERCENTILES: Tuple[int, int] = (10, 90)

# ======================================================
#  LIFE TABLES
# ======================================================
MAX_AGE: int = 100
# lx columns are survivors per 100,000 births
LX_RADIX: int = 100_000

LIFE_EXPECTANCY: Dict[str, int] = {
    "male": 79,
    "female": 83,
}

# ======================================================
#  BABY NAMES
# ======================================================
MIN_TOTAL_OCCURRENCES: int = 50
SUPPRESSED_MARKERS: List[str] = ["[x]", "[z]"]

# Workbook sheet -> gender (ONS publishes girls in Table_1, boys in Table_2)
NAME_SHEETS: Dict[str, str] = {
    "Table_1": "female",
    "Table_2": "male",
}

# ======================================================
#  HISTORICAL RANKINGS
# ======================================================
HISTORICAL_DECADES: List[int] = [1904, 1914, 1924, 1934, 1944, 1954, 1964, 1974, 1984, 1994]
HISTORICAL_START_YEAR: int = 1904
MAX_HISTORICAL_RANK: int = 100

# Rank -> births model: round(RANK_BASE_BIRTHS * exp(-RANK_DECAY * rank))
RANK_BASE_BIRTHS: int = 50_000
RANK_DECAY: float = 0.045

# Fade-out between the last ranked decade and the first measured year
FADE_OUT_BOUNDARY_YEAR: int = 1996
FADE_OUT_MAX_DROP: float = 0.3

# ======================================================
#  DATA FILES
# ======================================================
DATA_DIR_ENV: str = "NAME_AGE_DATA_DIR"

BABY_NAMES_FILES: Dict[str, str] = {
    "male": "baby-names-boys.json",
    "female": "baby-names-girls.json",
}

LIFE_TABLES_FILES: Dict[str, str] = {
    "male": "life-tables-male.json",
    "female": "life-tables-female.json",
}

# Raw workbooks expected under the raw directory by the ingest CLI
NAMES_WORKBOOK: str = "baby-names-1996-2024.xlsx"
LIFE_TABLES_WORKBOOK: str = "life-tables.xlsx"
HISTORICAL_WORKBOOK: str = "historical-names-1904-2024.xlsx"

# ======================================================
#  UI DEFAULTS
# ======================================================
GENDER_OPTIONS: List[Tuple[str, str]] = [
    ("Male", "male"),
    ("Female", "female"),
]

DEFAULT_GENDER: str = "male"
MAX_NAME_LENGTH: int = 50
SUGGESTION_LIMIT: int = 10

GENDER_COLORS: Dict[str, Dict[str, str]] = {
    "male": {"primary": "#3b82f6", "secondary": "#dbeafe", "line": "#1e40af"},
    "female": {"primary": "#ec4899", "secondary": "#fce7f3", "line": "#9d174d"},
}
