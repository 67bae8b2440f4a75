from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

import pandas as pd

from core.aggregate import sum_by
from core.charts import bar_chart, compact, pie_chart
from core.data import NormalizedTable, parse_int
from core.filters import DashboardFilters, apply_filters, category_predicates
from core.presentation import as_records, as_series, format_date_dmy, month_axis

FILTER_FIELDS = ("department", "source", "month", "sector")
TEMPORARY_MARKERS = ("Oui", "OUI")
TOP_DEPARTMENTS = 8


def _options(df: pd.DataFrame, column: str) -> List[str]:
    if df.empty:
        return []
    return sorted({v for v in df[column].tolist() if v})


def _month_totals(df: pd.DataFrame) -> Dict[int, int]:
    """Recruits per month number.

    Month cells are read as integers, so a zero-padded "01" counts toward
    month 1 just like "1". Non-numeric month cells are left out.
    """
    totals: Dict[int, int] = {}
    for month, count in zip(df["month"], df["count"]):
        text = str(month).strip()
        if text.isdigit():
            n = parse_int(text)
            totals[n] = totals.get(n, 0) + int(count)
    return totals


def filtered_records(filters: DashboardFilters, table: NormalizedTable) -> pd.DataFrame:
    return apply_filters(table.frame, category_predicates(filters, FILTER_FIELDS))


def compute_recruitment(filters: DashboardFilters, table: NormalizedTable) -> Dict[str, Any]:
    df = filtered_records(filters, table)

    total = int(df["count"].sum()) if not df.empty else 0
    by_department = sum_by(df, "department", "count")
    by_source = sum_by(df, "source", "count")
    by_sector = sum_by(df, "sector", "count")
    by_interim = sum_by(df, "interim", "count")

    interim = dict(zip(by_interim["name"], by_interim["value"])) if not by_interim.empty else {}
    temporary = 0
    for marker in TEMPORARY_MARKERS:
        if interim.get(marker):
            temporary = int(interim[marker])
            break

    departments = as_series(by_department, top_n=TOP_DEPARTMENTS)
    sources = as_series(by_source)
    sectors = as_series(by_sector)
    interims = as_records(by_interim)
    months = month_axis(_month_totals(df))
    records = df.assign(date_display=df["date"].map(format_date_dmy))

    return {
        "filters": asdict(filters),
        "kpis": {
            "total_recruits": total,
            "departments": int(len(by_department)),
            "sources": int(len(by_source)),
            "interim_types": int(len(by_interim)),
            "temporary": temporary,
            "permanent": total - temporary,
        },
        "options": {field: _options(table.frame, field) for field in FILTER_FIELDS},
        "by_department": departments,
        "by_source": sources,
        "by_sector": sectors,
        "by_interim": interims,
        "by_month": months,
        "records": as_records(records),
        "charts": compact(
            {
                "departments": bar_chart(departments, title="Recrutements par département", horizontal=True),
                "sources": pie_chart(sources, title="Sources de recrutement"),
                "sectors": bar_chart(sectors, title="Recrutements par secteur"),
                "interim": pie_chart(interims, title="Intérim"),
                "months": bar_chart(months, title="Recrutements par mois") if total else None,
            }
        ),
        "data_quality": table.data_quality(),
    }
