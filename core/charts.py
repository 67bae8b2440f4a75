from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()

PALETTE = ["#2563eb", "#10b981", "#f59e0b", "#ef4444", "#8b5cf6", "#ec4899", "#14b8a6", "#f97316"]


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _frame(records: Sequence[Dict[str, Any]] | pd.DataFrame) -> pd.DataFrame:
    if isinstance(records, pd.DataFrame):
        return records
    return pd.DataFrame(list(records))


def bar_chart(
    records: Sequence[Dict[str, Any]] | pd.DataFrame,
    *,
    category: str = "name",
    value: str = "value",
    title: str = "",
    horizontal: bool = False,
    color: str = PALETTE[0],
    height: int = 260,
) -> Optional[Dict[str, Any]]:
    df = _frame(records)
    if df.empty:
        return None
    hover = alt.selection_point(fields=[category], on="mouseover", empty="all")
    cat = alt.Y(f"{category}:N", sort=None, title=None) if horizontal else alt.X(f"{category}:N", sort=None, title=None)
    val = alt.X(f"{value}:Q", title=None) if horizontal else alt.Y(f"{value}:Q", title=None, axis=alt.Axis(gridDash=[4, 4], domain=False, ticks=False))
    chart = (
        alt.Chart(df)
        .mark_bar(color=color, cornerRadiusEnd=3)
        .encode(
            x=val if horizontal else cat,
            y=cat if horizontal else val,
            opacity=alt.condition(hover, alt.value(1), alt.value(0.5)),
            tooltip=[category, alt.Tooltip(f"{value}:Q", format=",")],
        )
        .add_params(hover)
        .properties(height=height, title=title)
    )
    return to_vega_spec(chart)


def grouped_bar_chart(
    records: Sequence[Dict[str, Any]] | pd.DataFrame,
    *,
    category: str = "name",
    series: Sequence[str] = ("present", "absent"),
    labels: Optional[Dict[str, str]] = None,
    title: str = "",
    stacked: bool = False,
    height: int = 280,
) -> Optional[Dict[str, Any]]:
    df = _frame(records)
    if df.empty:
        return None
    long = df.melt(id_vars=[category], value_vars=list(series), var_name="series", value_name="count")
    if labels:
        long["series"] = long["series"].map(lambda s: labels.get(s, s))
    encoding: Dict[str, Any] = {
        "x": alt.X(f"{category}:N", sort=None, title=None),
        "y": alt.Y("count:Q", title=None, stack="zero" if stacked else None),
        "color": alt.Color("series:N", scale=alt.Scale(range=PALETTE), title=None),
        "tooltip": [category, "series", alt.Tooltip("count:Q", format=",")],
    }
    if not stacked:
        encoding["xOffset"] = "series:N"
    chart = alt.Chart(long).mark_bar().encode(**encoding).properties(height=height, title=title)
    return to_vega_spec(chart)


def line_chart(
    records: Sequence[Dict[str, Any]] | pd.DataFrame,
    *,
    x: str = "name",
    y: str = "value",
    title: str = "",
    y_format: str = ",.2f",
    height: int = 260,
) -> Optional[Dict[str, Any]]:
    df = _frame(records)
    if df.empty:
        return None
    hover = alt.selection_point(fields=[x], on="mouseover", empty="all")
    chart = (
        alt.Chart(df)
        .mark_line(point={"filled": True, "size": 60})
        .encode(
            x=alt.X(f"{x}:N", sort=None, title=None, axis=alt.Axis(grid=False)),
            y=alt.Y(f"{y}:Q", title=None, axis=alt.Axis(gridDash=[4, 4], domain=False, ticks=False)),
            tooltip=[x, alt.Tooltip(f"{y}:Q", format=y_format)],
        )
        .add_params(hover)
        .properties(height=height, title=title)
    )
    return to_vega_spec(chart)


def pie_chart(
    records: Sequence[Dict[str, Any]] | pd.DataFrame,
    *,
    category: str = "name",
    value: str = "value",
    title: str = "",
    height: int = 240,
) -> Optional[Dict[str, Any]]:
    df = _frame(records)
    if df.empty or float(df[value].sum()) == 0:
        return None
    chart = (
        alt.Chart(df)
        .mark_arc(innerRadius=50)
        .encode(
            theta=alt.Theta(f"{value}:Q"),
            color=alt.Color(f"{category}:N", scale=alt.Scale(range=PALETTE), title=None),
            tooltip=[category, alt.Tooltip(f"{value}:Q", format=",")],
        )
        .properties(height=height, title=title)
    )
    return to_vega_spec(chart)


def compact(charts: Dict[str, Optional[Dict[str, Any]]]) -> Dict[str, Dict[str, Any]]:
    return {k: v for k, v in charts.items() if v is not None}
