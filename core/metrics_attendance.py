from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict, List

import pandas as pd

from core.aggregate import tally
from core.charts import bar_chart, compact, grouped_bar_chart
from core.data import NormalizedTable
from core.filters import DashboardFilters, apply_filters, contains, one_of
from core.presentation import as_records, paginate, ranked
from core.rates import percentage

logger = logging.getLogger(__name__)

KEYS = ("group", "contract", "category")
STAT_COLUMNS = ["name", "total", "present", "absent", "present_rate"]
EXPORT_HEADERS = {
    "name": "Groupe",
    "total": "Total Travailleurs",
    "present": "Présents",
    "absent": "Absents",
    "present_rate": "Taux Présence (%)",
}


def _with_rate(stats: pd.DataFrame) -> pd.DataFrame:
    if stats.empty:
        return stats.assign(present_rate=pd.Series(dtype="int64"))
    stats = stats.copy()
    stats["present_rate"] = [int(percentage(p, t, 0)) for p, t in zip(stats["present"], stats["total"])]
    return ranked(stats, "total")


def _public(stats: pd.DataFrame) -> pd.DataFrame:
    return stats[STAT_COLUMNS] if not stats.empty else pd.DataFrame(columns=STAT_COLUMNS)


def _by_status(stats: pd.DataFrame, status: str) -> pd.DataFrame:
    if stats.empty or status == "all":
        return stats
    if status == "present":
        return stats[stats["present_rate"] > 0]
    return stats[stats["present_rate"] == 0]


def scoped_rows(filters: DashboardFilters, table: NormalizedTable) -> pd.DataFrame:
    """Rows in the selected category that carry at least one grouping key."""
    df = apply_filters(table.frame, [one_of("category", filters.values("category"))])
    if df.empty:
        return df
    keyed = pd.Series(False, index=df.index)
    for key in KEYS:
        keyed |= df[key] != ""
    return df[keyed]


def attendance_stats(filters: DashboardFilters, table: NormalizedTable) -> Dict[str, pd.DataFrame]:
    df = scoped_rows(filters, table)
    return {key: _with_rate(tally(df, key)) for key in KEYS}


def filtered_groups(filters: DashboardFilters, groups: pd.DataFrame) -> pd.DataFrame:
    groups = apply_filters(groups, [contains(["name"], filters.search)]) if not groups.empty else groups
    return _by_status(groups, filters.status)


def group_records(filters: DashboardFilters, table: NormalizedTable, group: str) -> List[Dict[str, str]]:
    """Roster of one group; every row with a code and a name, category filter ignored."""
    df = table.frame
    if df.empty:
        return []
    rows = df[(df["group"] == group) & (df["code"] != "") & (df["name"] != "")]
    records = pd.DataFrame(
        {
            "code": rows["code"],
            "name": rows["name"],
            "status": rows["attendance"].map(lambda c: "P" if c == "T" else "A"),
        }
    )
    if filters.record_status == "present":
        records = records[records["status"] == "P"]
    elif filters.record_status == "absent":
        records = records[records["status"] == "A"]
    records = apply_filters(records, [contains(["code", "name"], filters.record_search)])
    return as_records(records)


def export_groups(filters: DashboardFilters, table: NormalizedTable) -> pd.DataFrame:
    groups = filtered_groups(filters, attendance_stats(filters, table)["group"])
    return groups[list(EXPORT_HEADERS)].rename(columns=EXPORT_HEADERS)


def compute_attendance(filters: DashboardFilters, table: NormalizedTable) -> Dict[str, Any]:
    scoped = scoped_rows(filters, table)
    stats = {key: _with_rate(tally(scoped, key)) for key in KEYS}
    groups, contracts, categories = stats["group"], stats["contract"], stats["category"]

    present = int(groups["present"].sum()) if not groups.empty else 0
    absent = int(groups["absent"].sum()) if not groups.empty else 0
    workers = present + absent
    unclassified = int(groups["unclassified"].sum()) if not groups.empty else 0
    if unclassified:
        logger.info("attendance: %d rows with neither T nor I", unclassified)

    group_rows = as_records(_public(filtered_groups(filters, groups)))
    contract_rows = as_records(_public(_by_status(contracts, filters.contract_status)))

    all_categories = sorted({c for c in table.frame["category"].tolist() if c}) if not table.frame.empty else []

    drilldown = None
    if filters.selected_group:
        drilldown = {
            "group": filters.selected_group,
            "records": group_records(filters, table, filters.selected_group),
        }

    charts = compact(
        {
            "categories": grouped_bar_chart(
                as_records(categories),
                series=("present", "absent"),
                labels={"present": "Présents", "absent": "Absents"},
                title="Présence par catégorie",
            ),
            "groups": bar_chart(
                as_records(ranked(groups, "total", top_n=filters.top_n)) if not groups.empty else [],
                value="present_rate",
                title="Taux de présence par groupe (%)",
            ),
            "contracts": grouped_bar_chart(
                contract_rows,
                series=("present", "absent"),
                labels={"present": "Présents", "absent": "Absents"},
                title="Présence par contrat",
            ),
        }
    )

    return {
        "filters": asdict(filters),
        "overall": {
            "present": present,
            "absent": absent,
            "total_workers": workers,
            "attendance_rate": int(percentage(present, workers, 0)),
            "absence_rate": int(percentage(absent, workers, 0)),
        },
        "group_stats": as_records(_public(groups)),
        "contract_stats": as_records(_public(contracts)),
        "category_stats": as_records(_public(categories)),
        "categories": all_categories,
        "groups": paginate(group_rows, filters.page, filters.page_size),
        "contracts": paginate(contract_rows, filters.contract_page, filters.page_size),
        "group_detail": drilldown,
        "charts": charts,
        "data_quality": {
            **table.data_quality(),
            "unclassified": unclassified,
            "unkeyed": int(len(apply_filters(table.frame, [one_of("category", filters.values("category"))])) - len(scoped)),
        },
    }
