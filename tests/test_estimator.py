"""
Tests for the living-age distribution estimator.
"""

import math

import pandas as pd
import pytest

from name_age.estimator import (
    DISTRIBUTION_COLUMNS,
    estimate_distribution,
    normalize_birth_series,
    normalize_survival_table,
    resolve_exact,
    resolve_linear,
    resolve_survival_probability,
    round_half_up,
)


def test_worked_example(scenario_births, certain_survival):
    """Full survival keeps every birth; ages follow the reference year."""
    df = estimate_distribution(scenario_births, certain_survival, 2025)

    assert list(df.columns) == DISTRIBUTION_COLUMNS
    assert df["year"].tolist() == [1996, 2000, 2004]
    assert df["age"].tolist() == [29, 25, 21]
    assert df["births"].tolist() == [100, 200, 100]
    assert df["living"].tolist() == [100, 200, 100]
    assert set(df["survival_source"]) == {"exact"}


def test_year_string_keys(certain_survival):
    df = estimate_distribution({"1996": 10, "2000": 20}, certain_survival, 2025)
    assert df["year"].tolist() == [1996, 2000]
    assert df["living"].sum() == 30


def test_output_sorted_by_year(certain_survival):
    df = estimate_distribution({2004: 1, 1996: 2, 2000: 3}, certain_survival, 2025)
    assert df["year"].is_monotonic_increasing


def test_partial_survival_rounds():
    df = estimate_distribution({2000: 1000}, {"2000": [0.9] * 101}, 2025)
    assert df["living"].iloc[0] == 900
    assert df["survival_probability"].iloc[0] == pytest.approx(0.9)


def test_half_rounds_up():
    df = estimate_distribution({2000: 5}, {"2000": [0.5] * 101}, 2025)
    assert df["living"].iloc[0] == 3


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.4999) == 2
    assert round_half_up(0) == 0


# ---------------------------------------------------------------------------
# Fallback chain
# ---------------------------------------------------------------------------


def test_cross_year_uses_most_recent_defining_year():
    """A missing cohort borrows the age from the newest table that has it."""
    table = {"1999": [0.4] * 101, "2001": [0.6] * 101}
    df = estimate_distribution({1990: 1000}, table, 2025)

    assert df["survival_source"].iloc[0] == "cross_year"
    assert df["living"].iloc[0] == 600


def test_cross_year_when_own_table_is_too_short():
    table = {"1990": [1.0] * 10, "2000": [0.8] * 101}
    df = estimate_distribution({1990: 100}, table, 2025)

    assert df["age"].iloc[0] == 35
    assert df["survival_source"].iloc[0] == "cross_year"
    assert df["living"].iloc[0] == 80


def test_linear_fallback_when_no_table_defines_age():
    table = {"2000": [0.9] * 10}
    df = estimate_distribution({1990: 1000}, table, 2025)

    assert df["survival_source"].iloc[0] == "linear"
    assert df["survival_probability"].iloc[0] == pytest.approx(1 - 35 * 0.012)
    assert df["living"].iloc[0] == 580


def test_empty_table_uses_linear_fallback():
    df = estimate_distribution({2025: 10, 1925: 10}, {}, 2025)

    by_age = df.set_index("age")
    assert by_age.loc[0, "living"] == 10
    assert by_age.loc[100, "living"] == 0
    assert set(df["survival_source"]) == {"linear"}


def test_linear_boundaries():
    empty = pd.DataFrame(dtype="float64")
    assert resolve_linear(empty, 2025, 0) == 1.0
    assert resolve_linear(empty, 1925, 100) == 0.0
    assert resolve_linear(empty, 1900, 125) == 0.0
    assert resolve_linear(empty, 1975, 50) == pytest.approx(0.4)


def test_undefined_probability_moves_to_next_resolver():
    table = {"2000": [float("nan")] * 101, "1999": [0.5] * 101}
    df = estimate_distribution({2000: 100}, table, 2025)

    assert df["survival_source"].iloc[0] == "cross_year"
    assert df["living"].iloc[0] == 50


def test_null_probability_moves_to_next_resolver():
    table = {"2000": [None] * 101}
    df = estimate_distribution({2000: 100}, table, 2025)

    assert df["survival_source"].iloc[0] == "linear"
    assert df["living"].iloc[0] == round_half_up(100 * (1 - 25 * 0.012))


def test_out_of_range_probabilities_are_clamped():
    high = estimate_distribution({2000: 100}, {"2000": [1.5] * 101}, 2025)
    low = estimate_distribution({2000: 100}, {"2000": [-0.5] * 101}, 2025)

    assert high["living"].iloc[0] == 100
    assert low["living"].iloc[0] == 0


def test_custom_resolvers_fall_back_to_linear():
    table = normalize_survival_table({"2000": [0.9] * 101})
    probability, source = resolve_survival_probability(
        table, 1990, 35, resolvers=[("exact", resolve_exact)]
    )
    assert source == "linear"
    assert probability == pytest.approx(0.58)


# ---------------------------------------------------------------------------
# Invalid input
# ---------------------------------------------------------------------------


def test_none_inputs_give_empty_distribution(scenario_births, certain_survival):
    for births, table in ((None, certain_survival), (scenario_births, None), (None, None)):
        df = estimate_distribution(births, table, 2025)
        assert df.empty
        assert list(df.columns) == DISTRIBUTION_COLUMNS


def test_empty_birth_series(certain_survival):
    assert estimate_distribution({}, certain_survival, 2025).empty


def test_malformed_counts_and_keys_are_skipped(certain_survival):
    births = {
        "abc": 5,
        1996: -3,
        1997: "x",
        1998: float("nan"),
        1999: "12",
        2000: None,
        "2001.5": 7,
    }
    df = estimate_distribution(births, certain_survival, 2025)

    assert df["year"].tolist() == [1999]
    assert df["births"].tolist() == [12]


def test_out_of_range_counts_and_years_are_skipped(certain_survival):
    """Values that do not fit the integer columns are treated as invalid."""
    births = {2000: 1e20, "-1e20": 5, 10**30: 5, 2001: "1e400", 2002: 7}
    df = estimate_distribution(births, certain_survival, 2025)

    assert df["year"].tolist() == [2002]
    assert df["births"].tolist() == [7]
    assert estimate_distribution({2000: 1e20}, {"2000": [1.0] * 101}, 2025).empty
    assert estimate_distribution({"-1e20": 5}, {}, 2025).empty


def test_ages_beyond_integer_range_are_skipped():
    df = estimate_distribution({-(2**63): 5, 2000: 10}, {}, 2025)
    assert df["year"].tolist() == [2000]


def test_boolean_counts_are_ignored(certain_survival):
    df = estimate_distribution({1999: True, 2000: False, 2001: 3}, certain_survival, 2025)
    assert df["year"].tolist() == [2001]


def test_future_years_are_skipped(certain_survival):
    df = estimate_distribution({2030: 50, 2000: 10}, certain_survival, 2025)
    assert df["year"].tolist() == [2000]


def test_only_future_years_gives_empty(certain_survival):
    assert estimate_distribution({2030: 50}, certain_survival, 2025).empty


def test_duplicate_year_keys_last_wins():
    births = normalize_birth_series({1996: 10, "1996": 20})
    assert births.to_dict() == {1996: 20}


def test_normalize_survival_table_pads_short_rows():
    table = normalize_survival_table({"2000": [1.0, 0.9], "1999": [1.0]})

    assert table.index.tolist() == [1999, 2000]
    assert table.columns.tolist() == [0, 1]
    assert math.isnan(table.at[1999, 1])
    assert table.at[2000, 1] == pytest.approx(0.9)


def test_normalize_survival_table_skips_bad_entries():
    table = normalize_survival_table({"abc": [1.0], "2000": "oops", "2001": None, "2002": [0.7]})
    assert table.index.tolist() == [2002]


# ---------------------------------------------------------------------------
# Invariants
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("probability", [0.0, 0.25, 0.5, 0.987, 1.0])
def test_living_bounded_by_births(probability, make_table):
    births = {year: (year * 7) % 913 + 1 for year in range(1925, 2026)}
    table = make_table(range(1925, 2026), probability)
    df = estimate_distribution(births, table, 2025)

    assert (df["living"] >= 0).all()
    assert (df["living"] <= df["births"]).all()
    assert (df["age"] == 2025 - df["year"]).all()
    assert len(df) == len(births)


def test_current_year_shifts_ages(scenario_births, certain_survival):
    df = estimate_distribution(scenario_births, certain_survival, 2030)
    assert df["age"].tolist() == [34, 30, 26]
