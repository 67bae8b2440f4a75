from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

import pandas as pd

from core.charts import compact, grouped_bar_chart, line_chart
from core.data import NormalizedTable, parse_int
from core.filters import DashboardFilters, apply_filters, category_predicates
from core.presentation import as_records, format_month_fr
from core.rates import average_workforce, period_average_workforce, turnover_rate

FILTER_FIELDS = ("month", "group", "contract")
HIGH_RATE = 15.0
MEDIUM_RATE = 8.0


def rate_level(rate: float) -> str:
    if rate > HIGH_RATE:
        return "high"
    if rate > MEDIUM_RATE:
        return "medium"
    return "low"


def monthly_turnover(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """One entry per month, in numeric month order.

    The average workforce of a month is the sum of its records' own
    ``(started + ended) / 2`` averages.
    """
    if df.empty:
        return []
    months: List[Dict[str, Any]] = []
    for month, rows in df.groupby("month", sort=False):
        avg = period_average_workforce(zip(rows["started"], rows["ended"]))
        finished = int(rows["finished"].sum())
        rate = turnover_rate(finished, avg)
        months.append(
            {
                "month": month,
                "label": format_month_fr(month),
                "total_started": int(rows["started"].sum()),
                "total_finished": finished,
                "average_workforce": avg,
                "turnover_rate": rate,
                "level": rate_level(rate),
                "records": int(len(rows)),
            }
        )
    return sorted(months, key=lambda m: parse_int(m["month"]))


def detail_rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for rec in as_records(df):
        avg = average_workforce(rec["started"], rec["ended"])
        rate = turnover_rate(rec["finished"], avg)
        rows.append(
            {
                **rec,
                "label": format_month_fr(rec["month"]),
                "average_workforce": avg,
                "turnover_rate": rate,
                "level": rate_level(rate),
                "high": rate > HIGH_RATE,
            }
        )
    return rows


def filter_options(df: pd.DataFrame) -> Dict[str, List[str]]:
    if df.empty:
        return {field: [] for field in FILTER_FIELDS}
    return {
        "month": sorted({v for v in df["month"] if v}, key=parse_int),
        "group": sorted({v for v in df["group"] if v}),
        "contract": sorted({v for v in df["contract"] if v}),
    }


def compute_turnover(filters: DashboardFilters, table: NormalizedTable) -> Dict[str, Any]:
    df = apply_filters(table.frame, category_predicates(filters, FILTER_FIELDS))
    months = monthly_turnover(df)

    started = int(df["started"].sum()) if not df.empty else 0
    finished = int(df["finished"].sum()) if not df.empty else 0
    avg = period_average_workforce(zip(df["started"], df["ended"])) if not df.empty else 0.0
    trend = [{"name": m["label"], "value": m["turnover_rate"]} for m in months]

    return {
        "filters": asdict(filters),
        "kpis": {
            "total_started": started,
            "total_finished": finished,
            "average_workforce": avg,
            "turnover_rate": turnover_rate(finished, avg),
            "months": len(months),
        },
        "options": filter_options(table.frame),
        "monthly": months,
        "details": detail_rows(df),
        "charts": compact(
            {
                "trend": line_chart(trend, title="Taux de turnover (%)"),
                "flows": grouped_bar_chart(
                    [{"name": m["label"], "started": m["total_started"], "finished": m["total_finished"]} for m in months],
                    series=("started", "finished"),
                    labels={"started": "Début de mois", "finished": "Sorties"},
                    title="Effectifs et sorties par mois",
                ),
            }
        ),
        "data_quality": table.data_quality(),
    }
