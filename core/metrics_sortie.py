from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

import altair as alt
import pandas as pd

from core.aggregate import sum_by
from core.charts import PALETTE, bar_chart, compact, pie_chart, to_vega_spec
from core.data import NormalizedTable, parse_int
from core.filters import DashboardFilters, apply_filters, category_predicates
from core.presentation import as_records, as_series

FILTER_FIELDS = ("year", "month", "department", "contract")
FEMALE = ("M", "m")
MALE = ("H", "h")
TOP_DEPARTMENTS = 8


def _first_present(totals: Dict[str, int], keys) -> int:
    for key in keys:
        if totals.get(key):
            return int(totals[key])
    return 0


def filter_options(df: pd.DataFrame) -> Dict[str, List[str]]:
    if df.empty:
        return {field: [] for field in FILTER_FIELDS}
    years = sorted({v for v in df["year"] if v}, key=lambda v: parse_int(v), reverse=True)
    months = sorted({v for v in df["month"] if v}, key=lambda v: parse_int(v))
    return {
        "year": years,
        "month": months,
        "department": sorted({v for v in df["department"] if v}),
        "contract": sorted({v for v in df["contract"] if v}),
    }


def monthly_by_qz(df: pd.DataFrame, year_label: str = "") -> List[Dict[str, Any]]:
    """Twelve months, each with one count per QZ present in that month."""
    suffix = f"/{year_label}" if year_label else ""
    rows: List[Dict[str, Any]] = []
    for n in range(1, 13):
        month_df = df[df["month"].map(parse_int) == n] if not df.empty else df
        entry: Dict[str, Any] = {"month": n, "name": f"Mois {n}{suffix}"}
        if not month_df.empty:
            for qz, count in zip(month_df["qz"], month_df["count"]):
                entry[qz] = entry.get(qz, 0) + int(count)
        rows.append(entry)
    return rows


def _monthly_chart(rows: List[Dict[str, Any]], qzs: List[str]):
    frame = pd.DataFrame(rows)
    present = [q for q in qzs if q in frame.columns]
    if not present:
        return None
    long = frame.melt(id_vars=["month", "name"], value_vars=present, var_name="qz", value_name="count")
    long = long.dropna(subset=["count"])
    if long.empty:
        return None
    chart = (
        alt.Chart(long)
        .mark_bar()
        .encode(
            x=alt.X("name:N", sort=[r["name"] for r in rows], title=None),
            y=alt.Y("count:Q", stack="zero", title=None),
            color=alt.Color("qz:N", scale=alt.Scale(range=PALETTE), title="QZ"),
            tooltip=["name", "qz", alt.Tooltip("count:Q", format=",")],
        )
        .properties(height=300, title="Sorties par mois et QZ")
    )
    return to_vega_spec(chart)


def compute_sortie(filters: DashboardFilters, table: NormalizedTable) -> Dict[str, Any]:
    df = apply_filters(table.frame, category_predicates(filters, FILTER_FIELDS))

    total = int(df["count"].sum()) if not df.empty else 0
    by_qz = sum_by(df, "qz", "count")
    by_sex = sum_by(df, "sex", "count")
    by_contract = sum_by(df, "contract", "count")
    by_department = sum_by(df, "department", "count")

    sex_totals = dict(zip(by_sex["name"], by_sex["value"])) if not by_sex.empty else {}
    qzs = sorted(by_qz["name"].tolist()) if not by_qz.empty else []
    years = filters.values("year")
    months = monthly_by_qz(df, years[0] if len(years) == 1 else "")
    departments = as_series(by_department, top_n=TOP_DEPARTMENTS)
    sexes = as_records(by_sex)

    return {
        "filters": asdict(filters),
        "kpis": {
            "total_exits": total,
            "female": _first_present(sex_totals, FEMALE),
            "male": _first_present(sex_totals, MALE),
            "contract_types": int(len(by_contract)),
            "qz_count": len(qzs),
        },
        "options": filter_options(table.frame),
        "qzs": qzs,
        "by_month": months,
        "by_department": departments,
        "by_sex": sexes,
        "by_contract": as_series(by_contract),
        "records": as_records(df),
        "charts": compact(
            {
                "months": _monthly_chart(months, qzs),
                "departments": bar_chart(departments, title="Sorties par département", horizontal=True),
                "sex": pie_chart(sexes, title="Répartition par sexe"),
            }
        ),
        "data_quality": table.data_quality(),
    }
