import pandas as pd
import plotly.graph_objects as go

from .config import GENDER_COLORS


# ============================================================
# Configuration / constants
# ============================================================

BIRTHS_LINE_COLOR = "#000000"
LIVING_FILL_OPACITY = 0.3

HOVER_TEMPLATE = (
    "<b>Year %{x}</b><br>"
    "Births: %{customdata[0]:,}<br>"
    "Est. Living: %{customdata[1]:,}<br>"
    "Current Age: %{customdata[2]} years<extra></extra>"
)


# ============================================================
# Helper functions
# ============================================================


def _hex_to_rgba(hex_color: str, alpha: float) -> str:
    """
    Convert ``#rrggbb`` into an ``rgba(...)`` string with the given alpha.
    """
    value = hex_color.lstrip("#")
    r, g, b = (int(value[i : i + 2], 16) for i in (0, 2, 4))
    return f"rgba({r},{g},{b},{alpha})"


def gender_palette(gender: str | None) -> dict[str, str]:
    """
    Colors for a gender; anything other than "female" uses the male palette.
    """
    return GENDER_COLORS["female" if gender == "female" else "male"]


# ============================================================
# Main plotting function
# ============================================================


def create_age_distribution_plot(
    distribution: pd.DataFrame,
    name: str,
    gender: str | None = None,
    *,
    height: int = 450,
) -> go.Figure:
    """
    Plot births per year against the estimated living population.

    Parameters
    ----------
    distribution : pd.DataFrame
        Output of ``estimate_distribution`` with columns 'year', 'births',
        'living' and 'age'.
    name : str
        Name shown in the title.
    gender : str | None, default None
        "male" or "female"; selects the fill color.
    height : int, default 450
        Figure height in pixels.

    Returns
    -------
    go.Figure
        Shaded area for estimated living people, black line for births.
        An empty distribution gives an empty figure.
    """
    if distribution is None or distribution.empty:
        return go.Figure()

    df = distribution.sort_values("year")
    palette = gender_palette(gender)
    customdata = list(zip(df["births"], df["living"], df["age"]))

    fig = go.Figure()

    # Estimated living population (shaded)
    fig.add_trace(
        go.Scatter(
            x=df["year"],
            y=df["living"],
            mode="lines",
            name="Estimated Living",
            line=dict(width=0, color=palette["primary"], shape="spline"),
            fill="tozeroy",
            fillcolor=_hex_to_rgba(palette["primary"], LIVING_FILL_OPACITY),
            customdata=customdata,
            hovertemplate=HOVER_TEMPLATE,
        )
    )

    # Births per year (black line)
    fig.add_trace(
        go.Scatter(
            x=df["year"],
            y=df["births"],
            mode="lines",
            name="Births per Year",
            line=dict(width=2, color=BIRTHS_LINE_COLOR, shape="spline"),
            customdata=customdata,
            hovertemplate=HOVER_TEMPLATE,
        )
    )

    fig.update_xaxes(title_text="Birth Year", showgrid=True, gridcolor="#e5e7eb")
    fig.update_yaxes(
        title_text="Population",
        tickformat="~s",
        rangemode="tozero",
        showgrid=True,
        gridcolor="#e5e7eb",
    )
    fig.update_layout(
        title=dict(text=f"<b>Age Distribution: {name}</b>", x=0.5),
        height=height,
        hovermode="x unified",
        legend=dict(
            orientation="h",
            x=0.5,
            y=-0.2,
            xanchor="center",
            yanchor="top",
        ),
        margin=dict(t=80, l=60, r=30, b=80),
        plot_bgcolor="#ffffff",
    )

    return fig
