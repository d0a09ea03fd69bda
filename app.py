import pandas as pd
from shiny import reactive, render
from shiny.express import input, ui
from shinywidgets import render_plotly

# Import organized modules
from name_age.config import DEFAULT_GENDER, GENDER_OPTIONS, SUGGESTION_LIMIT
from name_age.data_manager import (
    DataLoadError,
    NameNotFoundError,
    estimate_for_name,
    is_valid_name,
    load_baby_names,
    search_names,
)
from name_age.formatting import format_number, format_year_range
from name_age.plotting import create_age_distribution_plot

# Helpers for UI mapping
GENDER_CHOICES = {value: label for label, value in GENDER_OPTIONS}

# ======================================================
#  REACTIVE STATE
# ======================================================
# Name submitted with the search button; estimates follow it and the gender.
searched_name = reactive.Value("")


@reactive.calc
def baby_names():
    try:
        return load_baby_names(input.gender())
    except DataLoadError:
        return {}


@reactive.calc
def estimate():
    """Distribution, stats and an error message for the searched name."""
    name = searched_name.get()
    if not name:
        return pd.DataFrame(), None, None
    try:
        distribution, stats = estimate_for_name(name, input.gender())
    except (NameNotFoundError, DataLoadError) as exc:
        return pd.DataFrame(), None, str(exc)
    return distribution, stats, None


@reactive.effect
@reactive.event(input.search)
def _submit_search():
    name = input.name().strip()
    if is_valid_name(name):
        searched_name.set(name)


@reactive.effect
@reactive.event(input.name)
def _update_suggestions():
    matches = search_names(input.name(), baby_names(), limit=SUGGESTION_LIMIT)
    ui.update_selectize("suggestion", choices=matches, selected=None)


@reactive.effect
@reactive.event(input.suggestion)
def _pick_suggestion():
    choice = input.suggestion()
    if choice:
        ui.update_text("name", value=choice)
        searched_name.set(choice)


# ======================================================
#  UI LAYOUT
# ======================================================
ui.page_opts(
    title="How old is everyone with this name?",
    fillable=False,
    full_width=True,
    lang="en",
)

with ui.sidebar(open="always", position="left"):
    ui.input_text("name", "First name", placeholder="Enter a name...")
    ui.input_selectize("suggestion", "Suggestions", choices=[], selected=None)
    ui.input_radio_buttons("gender", "Gender", GENDER_CHOICES, selected=DEFAULT_GENDER)
    ui.input_action_button("search", "Search", class_="btn-primary mt-3")


@render.ui
def error_message():
    _distribution, _stats, error = estimate()
    if error is None:
        return None
    return ui.div(error, class_="alert alert-warning")


with ui.layout_columns(col_widths=[3, 3, 3, 3]):
    with ui.value_box():
        "Estimated Living"

        @render.text
        def total_living_box():
            _distribution, stats, _error = estimate()
            return format_number(stats.total_living) if stats else "–"

        @render.text
        def total_living_note():
            name = searched_name.get()
            return f"people named {name} in England & Wales" if name else ""

    with ui.value_box():
        "Median Age"

        @render.text
        def median_age_box():
            _distribution, stats, _error = estimate()
            return f"{stats.median_age} years" if stats else "–"

        "typical age of someone with this name"

    with ui.value_box():
        "Most Popular Year"

        @render.text
        def peak_year_box():
            _distribution, stats, _error = estimate()
            return str(stats.peak_birth_year.year) if stats else "–"

        @render.text
        def peak_year_note():
            _distribution, stats, _error = estimate()
            if not stats:
                return ""
            return f"{format_number(stats.peak_birth_year.births)} births that year"

    with ui.value_box():
        "Age Range"

        @render.text
        def age_range_box():
            _distribution, stats, _error = estimate()
            if not stats:
                return "–"
            return f"{stats.age_range.lower}-{stats.age_range.upper} years"

        "10th to 90th percentile"


with ui.div(style="display:flex; justify-content:center;"):

    @render_plotly
    def age_plot():
        distribution, _stats, _error = estimate()
        if distribution.empty:
            return None
        return create_age_distribution_plot(
            distribution, searched_name.get(), input.gender()
        )


@render.text
def coverage_note():
    _distribution, stats, _error = estimate()
    if not stats:
        return ""
    coverage = format_year_range(stats.year_range.earliest, stats.year_range.latest)
    return f"Data coverage: {coverage} • Source: Office for National Statistics (ONS)"
