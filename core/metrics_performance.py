from __future__ import annotations

from collections import Counter
from dataclasses import asdict
from typing import Any, Dict, List, Optional

import pandas as pd

from core.charts import bar_chart, compact, grouped_bar_chart
from core.data import NormalizedTable
from core.filters import DashboardFilters, Predicate, apply_filters, contains, one_of
from core.presentation import as_records, month_key, paginate, ranked
from core.rates import percentage

NO_DEPARTMENT = "(Sans département)"
LOW_HOURS = 8
DRILLDOWN_DATES = 10


def _main_predicates(filters: DashboardFilters, *, with_search: bool = True) -> List[Optional[Predicate]]:
    preds = [one_of("date", filters.values("date")), one_of("department", filters.values("department"))]
    if with_search:
        preds.append(contains(["group"], filters.search))
    return preds


def _group_hours(workers: pd.DataFrame) -> pd.DataFrame:
    """Hours per group (only positive entries summed), department first seen, sorted by name."""
    if workers.empty:
        return pd.DataFrame(columns=["name", "hours", "department"])
    positive = workers["hours"].where(workers["hours"] > 0, 0.0)
    out = (
        workers.assign(positive=positive)
        .groupby("group", sort=False)
        .agg(hours=("positive", "sum"), department=("department", "first"))
        .reset_index()
        .rename(columns={"group": "name"})
    )
    return out.sort_values("name", kind="mergesort").reset_index(drop=True)


def group_workload(workers: pd.DataFrame) -> pd.DataFrame:
    """Attendance entries (hours > 0) per group and the average per distinct date."""
    worked = workers[workers["hours"] > 0] if not workers.empty else workers
    if worked.empty:
        return pd.DataFrame(columns=["name", "worker_count", "avg_daily_workload"])
    out = worked.groupby("group", sort=False).agg(worker_count=("code", "size"), days=("date", "nunique")).reset_index()
    out["avg_daily_workload"] = [c / d if d else 0.0 for c, d in zip(out["worker_count"], out["days"])]
    return out.rename(columns={"group": "name"})[["name", "worker_count", "avg_daily_workload"]]


def filtered_groups(filters: DashboardFilters, workers: pd.DataFrame) -> pd.DataFrame:
    narrowed = bool(filters.values("date") or filters.values("department"))
    if narrowed:
        scoped = apply_filters(workers, _main_predicates(filters, with_search=False))
        groups = _group_hours(scoped[scoped["hours"] > 0])
    else:
        groups = _group_hours(workers)

    workload = group_workload(workers)
    groups = groups.merge(workload, on="name", how="left")
    groups["worker_count"] = groups["worker_count"].fillna(0).astype(int)
    groups["avg_daily_workload"] = groups["avg_daily_workload"].fillna(0.0)
    if groups.empty:
        return groups
    return apply_filters(groups, [contains(["name"], filters.search)]).reset_index(drop=True)


def department_stats(scoped: pd.DataFrame) -> Dict[str, Any]:
    worked = scoped[scoped["hours"] > 0] if not scoped.empty else scoped
    total_hours = float(worked["hours"].sum()) if not worked.empty else 0.0
    if worked.empty:
        return {"departments": [], "total_hours": 0.0}
    dept = worked["department"].where(worked["department"] != "", NO_DEPARTMENT)
    out = (
        worked.assign(dept=dept)
        .groupby("dept", sort=False)
        .agg(hours=("hours", "sum"), count=("hours", "size"))
        .reset_index()
        .rename(columns={"dept": "name"})
    )
    out["percentage"] = [percentage(h, total_hours, 1) for h in out["hours"]]
    out = ranked(out, "hours")
    return {"departments": as_records(out[["name", "hours", "percentage", "count"]]), "total_hours": total_hours}


def low_hours(scoped: pd.DataFrame) -> Dict[str, Any]:
    worked = scoped[scoped["hours"] > 0] if not scoped.empty else scoped
    total = int(len(worked))
    count = int((worked["hours"] < LOW_HOURS).sum()) if total else 0
    return {"count": count, "total": total, "percentage": percentage(count, total, 1)}


def ag_distribution(scoped: pd.DataFrame) -> Dict[str, Any]:
    if scoped.empty:
        return {"total_count": 0, "distribution": []}
    ag = scoped["ag"].astype(str).str.strip()
    numeric = pd.to_numeric(ag, errors="coerce")
    valid = ag[(ag != "") & (numeric > 0)]
    if valid.empty:
        return {"total_count": 0, "distribution": []}
    counts = pd.DataFrame(list(Counter(valid.tolist()).items()), columns=["value", "count"])
    counts["order"] = pd.to_numeric(counts["value"], errors="coerce")
    counts = counts.sort_values("order", kind="mergesort")
    return {"total_count": int(len(valid)), "distribution": as_records(counts[["value", "count"]])}


def dates_by_month(workers: pd.DataFrame) -> List[Dict[str, Any]]:
    if workers.empty:
        return []
    by_month: Dict[str, List[str]] = {}
    for date in workers["date"].drop_duplicates().tolist():
        by_month.setdefault(month_key(date), []).append(date)
    return [
        {"month": key, "label": "Autres dates" if key == "Invalid" else key, "dates": sorted(dates)}
        for key, dates in sorted(by_month.items(), key=lambda kv: (kv[0] == "Invalid", kv[0]))
    ]


def group_detail(filters: DashboardFilters, workers: pd.DataFrame, group: str) -> Dict[str, Any]:
    members = workers[workers["group"] == group] if not workers.empty else workers
    roster_size = int(members["code"].nunique()) if not members.empty else 0
    last_dates = sorted(members["date"].unique().tolist())[-DRILLDOWN_DATES:] if not members.empty else []

    attendance = []
    for date in last_dates:
        day = members[members["date"] == date]
        attendance.append({"date": date, "present": int((day["hours"] > 0).sum()), "total": roster_size})

    shown = members[members["hours"] > 0] if not members.empty else members
    shown = apply_filters(
        shown,
        [
            one_of("date", filters.selected_dates),
            contains(["name"], filters.record_search),
            contains(["code"], filters.record_code_search),
        ],
    )
    return {
        "group": group,
        "attendance_by_date": attendance,
        "workers": as_records(shown[["date", "code", "name", "hours", "department", "ag"]]) if not shown.empty else [],
        "dates_by_month": dates_by_month(members),
        "charts": compact(
            {
                "attendance": grouped_bar_chart(
                    attendance,
                    category="date",
                    series=("present", "total"),
                    labels={"present": "Présents", "total": "Total"},
                    title=f"Présence - {group}",
                )
            }
        ),
    }


def compute_performance(filters: DashboardFilters, table: NormalizedTable) -> Dict[str, Any]:
    workers = table.frame
    scoped = apply_filters(workers, _main_predicates(filters))

    groups = filtered_groups(filters, workers)
    group_rows = as_records(groups)
    departments = department_stats(scoped)
    ag = ag_distribution(scoped)

    all_departments = sorted({d for d in workers["department"].tolist() if d}) if not workers.empty else []

    return {
        "filters": asdict(filters),
        "totals": {
            "workers": int(workers["code"].nunique()) if not workers.empty else 0,
            "groups": int(workers["group"].nunique()) if not workers.empty else 0,
            "total_hours": departments["total_hours"],
        },
        "groups": paginate(group_rows, filters.page, filters.page_size),
        "department_stats": departments,
        "low_hours": low_hours(scoped),
        "ag": ag,
        "departments": all_departments,
        "dates_by_month": dates_by_month(workers),
        "group_detail": group_detail(filters, workers, filters.selected_group) if filters.selected_group else None,
        "charts": compact(
            {
                "departments": bar_chart(departments["departments"], value="hours", title="Heures par département", horizontal=True),
                "ag": bar_chart(ag["distribution"], category="value", value="count", title="Distribution AG"),
            }
        ),
        "data_quality": table.data_quality(),
    }


def export_groups(filters: DashboardFilters, table: NormalizedTable) -> pd.DataFrame:
    return filtered_groups(filters, table.frame)
