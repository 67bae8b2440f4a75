"""Sector (farm) workforce analytics over individual worker records.

Worker records come from the caller as dicts. Both the canonical keys below
and the field names used by the farm registry (``nom``, ``dateEntree``,
``fermeId``...) are accepted.
"""
from __future__ import annotations

import math
from dataclasses import asdict
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from core.aggregate import AGE_BUCKETS, bucket_for_age
from core.charts import bar_chart, compact, line_chart, pie_chart
from core.data import parse_int, round_half_up
from core.filters import DashboardFilters, active_between, apply_filters, one_of, to_date, to_dates
from core.presentation import SHORT_FRENCH_MONTHS, as_records, ranked
from core.rates import percentage

WORKER_COLUMNS = [
    "id",
    "name",
    "farm_id",
    "entry_date",
    "exit_date",
    "status",
    "sex",
    "birth_date",
    "exit_reason",
    "supervisor_id",
]
FIELD_ALIASES = {
    "nom": "name",
    "fermeId": "farm_id",
    "dateEntree": "entry_date",
    "dateSortie": "exit_date",
    "statut": "status",
    "sexe": "sex",
    "dateNaissance": "birth_date",
    "motif": "exit_reason",
    "supervisorId": "supervisor_id",
}
UNASSIGNED = "Unassigned"
TOP_SUPERVISORS = 10
TOP_EXIT_REASONS = 10
DEFAULT_RANGE_MONTHS = 6


def workers_frame(records: Iterable[Dict[str, Any]]) -> pd.DataFrame:
    rows = []
    for rec in records:
        if not isinstance(rec, dict):
            continue
        row = {FIELD_ALIASES.get(k, k): v for k, v in rec.items()}
        rows.append({col: ("" if row.get(col) is None else str(row.get(col)).strip()) for col in WORKER_COLUMNS})
    return pd.DataFrame(rows, columns=WORKER_COLUMNS)


def default_range(today: date) -> tuple[pd.Timestamp, pd.Timestamp]:
    end = pd.Timestamp(today)
    return end - pd.DateOffset(months=DEFAULT_RANGE_MONTHS), end


def _birth_year(value: str) -> Optional[int]:
    head = (value or "").split("-")[0].strip()
    year = parse_int(head) if head else 0
    return year or None


def _ages(df: pd.DataFrame, today: date) -> List[int]:
    years = [_birth_year(v) for v in df["birth_date"]] if not df.empty else []
    return [today.year - y for y in years if y is not None]


def average_age(df: pd.DataFrame, today: date) -> int:
    # Divided by every worker, including those without a birth date.
    if df.empty:
        return 0
    return int(round_half_up(sum(_ages(df, today)) / len(df), 0))


def period_turnover(df: pd.DataFrame, start: pd.Timestamp, end: pd.Timestamp) -> float:
    if df.empty:
        return 0.0
    exits = to_dates(df["exit_date"])
    left = int(((exits >= start) & (exits <= end)).sum())
    return percentage(left, len(df), 2)


def supervisor_distribution(df: pd.DataFrame, supervisors: Dict[str, str]) -> List[Dict[str, Any]]:
    if df.empty:
        return []
    ids = df["supervisor_id"].where(df["supervisor_id"] != "", UNASSIGNED)
    counts = ids.groupby(ids, sort=False).size()
    out = pd.DataFrame(
        {
            "name": [UNASSIGNED if i == UNASSIGNED else supervisors.get(i, i) for i in counts.index],
            "value": counts.values,
        }
    )
    return as_records(ranked(out, top_n=TOP_SUPERVISORS))


def gender_distribution(df: pd.DataFrame) -> List[Dict[str, Any]]:
    if df.empty:
        return []
    lowered = df["sex"].str.lower()
    labels = lowered.map(lambda s: "Male" if s == "homme" else "Female" if s == "femme" else "Unknown")
    counts = labels.groupby(labels, sort=False).size()
    return [{"name": k, "value": int(v)} for k, v in counts.items()]


def age_groups(df: pd.DataFrame, today: date) -> List[Dict[str, Any]]:
    counts = {b: 0 for b in AGE_BUCKETS}
    for age in _ages(df, today):
        counts[bucket_for_age(age)] += 1
    return [{"name": b, "value": counts[b]} for b in AGE_BUCKETS]


def exit_reasons(df: pd.DataFrame) -> List[Dict[str, Any]]:
    if df.empty:
        return []
    gone = df[(df["exit_date"] != "") & (df["exit_reason"] != "")]
    if gone.empty:
        return []
    counts = gone.groupby("exit_reason", sort=False).size().reset_index()
    counts.columns = ["reason", "count"]
    return as_records(ranked(counts, "count", top_n=TOP_EXIT_REASONS))


def _month_rate(entry: pd.Series, exit_: pd.Series, month: pd.Period) -> Dict[str, int]:
    start = month.start_time.normalize()
    end = month.end_time.normalize()
    active = (entry <= end) & (exit_.isna() | (exit_ >= start))
    departures = exit_.notna() & (exit_ >= start) & (exit_ <= end)
    return {"total": int(active.sum()), "departures": int(departures.sum())}


def monthly_turnover(df: pd.DataFrame, start: pd.Timestamp, end: pd.Timestamp) -> List[Dict[str, Any]]:
    """Departures over active workers for each calendar month in ``start..end``."""
    if start > end:
        return []
    entry = to_dates(df["entry_date"]) if not df.empty else pd.Series(dtype="datetime64[ns]")
    exit_ = to_dates(df["exit_date"]) if not df.empty else pd.Series(dtype="datetime64[ns]")
    out = []
    for month in pd.period_range(start.to_period("M"), end.to_period("M"), freq="M"):
        counts = _month_rate(entry, exit_, month)
        out.append({"month": str(month), "turnover": percentage(counts["departures"], counts["total"], 2), **counts})
    return out


def yearly_turnover(df: pd.DataFrame, year: int) -> List[Dict[str, Any]]:
    entry = to_dates(df["entry_date"]) if not df.empty else pd.Series(dtype="datetime64[ns]")
    exit_ = to_dates(df["exit_date"]) if not df.empty else pd.Series(dtype="datetime64[ns]")
    out = []
    for idx, month in enumerate(pd.period_range(f"{year}-01", f"{year}-12", freq="M")):
        counts = _month_rate(entry, exit_, month)
        out.append({"month": SHORT_FRENCH_MONTHS[idx], "turnover": percentage(counts["departures"], counts["total"], 2), **counts})
    return out


def available_years(df: pd.DataFrame) -> List[int]:
    if df.empty:
        return []
    years = set()
    for col in ("entry_date", "exit_date"):
        dates = to_dates(df[col]).dropna()
        years.update(int(y) for y in dates.dt.year.unique())
    return sorted(years, reverse=True)


def days_worked(entry: pd.Timestamp, exit_: Optional[pd.Timestamp], today: date) -> int:
    end = exit_ if exit_ is not None and not pd.isna(exit_) else pd.Timestamp(today)
    return math.ceil(abs((end - entry).total_seconds()) / 86400)


def farm_overview(farms: List[Dict[str, Any]], df: pd.DataFrame, today: date) -> List[Dict[str, Any]]:
    out = []
    for farm in farms:
        farm_id = str(farm.get("id", ""))
        members = df[df["farm_id"] == farm_id] if not df.empty else df
        entries = to_dates(members["entry_date"]) if not members.empty else pd.Series(dtype="datetime64[ns]")
        exits = to_dates(members["exit_date"]) if not members.empty else pd.Series(dtype="datetime64[ns]")
        periods = [days_worked(e, x, today) for e, x in zip(entries, exits) if not pd.isna(e)]
        out.append(
            {
                "id": farm_id,
                "name": farm.get("name") or farm.get("nom") or farm_id,
                "total_workers": int(len(members)),
                "active_workers": int((members["status"] == "actif").sum()) if not members.empty else 0,
                "average_period_days": int(round_half_up(sum(periods) / len(periods), 0)) if periods else 0,
            }
        )
    return out


def compute_sector(
    filters: DashboardFilters,
    workers: Iterable[Dict[str, Any]],
    *,
    farms: Optional[List[Dict[str, Any]]] = None,
    supervisors: Optional[Dict[str, str]] = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    today = today or date.today()
    supervisors = supervisors or {}
    farms = farms or []

    all_workers = workers_frame(workers)
    start, end = to_date(filters.date_from), to_date(filters.date_to)
    if start is None or end is None:
        default_start, default_end = default_range(today)
        start = start if start is not None else default_start
        end = end if end is not None else default_end

    in_farms = apply_filters(all_workers, [one_of("farm_id", filters.values("farm"))])
    in_range = apply_filters(in_farms, [active_between("entry_date", "exit_date", start, end)])

    if filters.year:
        turnover_series = yearly_turnover(in_farms, filters.year)
    else:
        turnover_series = monthly_turnover(in_range, start, end)

    supervisor_rows = supervisor_distribution(in_range, supervisors)
    genders = gender_distribution(in_range)
    ages = age_groups(in_range, today)

    return {
        "filters": asdict(filters),
        "range": {"start": start.date().isoformat(), "end": end.date().isoformat()},
        "kpis": {
            "workers": int(len(in_range)),
            "average_age": average_age(in_range, today),
            "turnover_rate": period_turnover(in_range, start, end),
            "farms": len({f for f in in_farms["farm_id"] if f}) if not in_farms.empty else 0,
        },
        "supervisors": supervisor_rows,
        "gender": genders,
        "age_groups": ages,
        "exit_reasons": exit_reasons(in_range),
        "turnover": turnover_series,
        "available_years": available_years(in_farms),
        "farms": farm_overview(farms, all_workers, today),
        "charts": compact(
            {
                "supervisors": bar_chart(supervisor_rows, title="Travailleurs par superviseur", horizontal=True),
                "gender": pie_chart(genders, title="Genre"),
                "ages": bar_chart(ages, title="Âge"),
                "turnover": line_chart(turnover_series, x="month", y="turnover", title="Turnover mensuel (%)"),
            }
        ),
    }
