from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional

import pandas as pd

from core.aggregate import classify_attendance
from core.charts import compact, pie_chart
from core.data import NormalizedTable, round_half_up
from core.filters import DashboardFilters
from core.rates import percentage


def attendance_summary(table: Optional[NormalizedTable]) -> Optional[Dict[str, Any]]:
    if table is None:
        return None
    status = table.frame["attendance"].map(classify_attendance) if not table.frame.empty else pd.Series(dtype=object)
    present = int((status == "present").sum())
    absent = int((status == "absent").sum())
    total = present + absent
    return {
        "total_present": present,
        "total_absent": absent,
        "attendance_rate": int(percentage(present, total, 0)),
        "absence_rate": int(percentage(absent, total, 0)),
    }


def workforce_summary(table: Optional[NormalizedTable]) -> Optional[Dict[str, Any]]:
    if table is None:
        return None
    df = table.frame
    if df.empty:
        return {"total_departments": 0, "average_age": 0, "total_men": 0, "total_women": 0, "total_workers": 0}

    ages = pd.to_numeric(df["age"], errors="coerce")
    ages = ages[ages > 0]
    total = int(len(df))
    men = int((df["sex"] == "H").sum())
    return {
        "total_departments": int(df.loc[df["department"] != "", "department"].nunique()),
        "average_age": int(round_half_up(ages.mean(), 0)) if not ages.empty else 0,
        "total_men": men,
        # Women are whatever is not recorded as "H".
        "total_women": max(0, total - men),
        "total_workers": total,
    }


def compute_overview(
    filters: DashboardFilters,
    attendance: Optional[NormalizedTable] = None,
    workforce: Optional[NormalizedTable] = None,
) -> Dict[str, Any]:
    att = attendance_summary(attendance)
    wf = workforce_summary(workforce)

    charts: Dict[str, Any] = {}
    if att is not None:
        charts["attendance"] = pie_chart(
            [{"name": "Présents", "value": att["total_present"]}, {"name": "Absents", "value": att["total_absent"]}],
            title="Présence du jour",
        )
    if wf is not None:
        charts["gender"] = pie_chart(
            [{"name": "Hommes", "value": wf["total_men"]}, {"name": "Femmes", "value": wf["total_women"]}],
            title="Répartition H/F",
        )

    return {
        "filters": asdict(filters),
        "attendance": att,
        "workforce": wf,
        "charts": compact(charts),
        "data_quality": [t.data_quality() for t in (attendance, workforce) if t is not None],
    }
