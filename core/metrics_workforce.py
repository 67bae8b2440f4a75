from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

import pandas as pd

from core.aggregate import age_distribution
from core.charts import bar_chart, compact, pie_chart
from core.data import NormalizedTable
from core.filters import DashboardFilters, apply_filters, category_predicates
from core.presentation import as_records, ranked
from core.rates import percentage

FILTER_FIELDS = ("department", "contract")
PREFERRED_CONTRACTS = [
    "AGRI SUPPORT",
    "BEST PROFIL",
    "AGRI STRATEGIE",
    "PROXAGRI",
    "INDEFINIDO",
    "FARM LABOR",
    "AGRICONOMIE",
]
TARGET_DEPARTMENTS = ["campo", "almacen", "estructora"]


def order_contracts(contracts: List[str]) -> List[str]:
    known = set(contracts)
    head = [c for c in PREFERRED_CONTRACTS if c in known]
    return head + sorted(c for c in known if c not in PREFERRED_CONTRACTS)


def _gender_flags(df: pd.DataFrame) -> pd.DataFrame:
    # Any non-empty sex other than "H" is counted as a woman.
    return df.assign(
        men=(df["sex"] == "H").astype(int),
        women=((df["sex"] != "H") & (df["sex"] != "")).astype(int),
    )


def department_stats(df: pd.DataFrame) -> List[Dict[str, Any]]:
    if df.empty:
        return []
    flagged = _gender_flags(df)
    out: List[Dict[str, Any]] = []
    for dept, rows in flagged.groupby("department", sort=True):
        per_contract = (
            rows.groupby("contract", sort=False)
            .agg(total=("men", "size"), men=("men", "sum"), women=("women", "sum"))
            .to_dict(orient="index")
        )
        out.append(
            {
                "name": dept,
                "total_workers": int(len(rows)),
                "men": int(rows["men"].sum()),
                "women": int(rows["women"].sum()),
                "contracts": {str(k): {kk: int(vv) for kk, vv in v.items()} for k, v in per_contract.items()},
            }
        )
    return out


def contract_distribution(df: pd.DataFrame, contracts: List[str]) -> List[Dict[str, Any]]:
    total = int(len(df))
    counts = df["contract"].value_counts().to_dict() if not df.empty else {}
    rows = pd.DataFrame(
        [{"name": c, "value": int(counts.get(c, 0)), "percentage": percentage(counts.get(c, 0), total, 1)} for c in sorted(contracts)],
        columns=["name", "value", "percentage"],
    )
    return as_records(ranked(rows, "value"))


def gender_focus(departments: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    out = []
    for key in TARGET_DEPARTMENTS:
        dept = next((d for d in departments if key in d["name"].lower()), None)
        men = dept["men"] if dept else 0
        women = dept["women"] if dept else 0
        out.append(
            {
                "key": key,
                "label": dept["name"] if dept else key.capitalize(),
                "men": men,
                "women": women,
                "data": [{"name": "H", "value": men}, {"name": "F", "value": women}],
            }
        )
    return out


def compute_workforce(filters: DashboardFilters, table: NormalizedTable) -> Dict[str, Any]:
    frame = apply_filters(table.frame, category_predicates(filters, FILTER_FIELDS))

    # Ages are bucketed before the department requirement; a blank age counts as 0.
    ages = age_distribution([a if a != "" else 0 for a in frame["age"]]) if not frame.empty else age_distribution([])
    staffed = frame[frame["department"] != ""] if not frame.empty else frame

    departments = department_stats(staffed)
    contracts = order_contracts(staffed["contract"].unique().tolist()) if not staffed.empty else []
    total_workers = sum(d["total_workers"] for d in departments)
    total_women = sum(d["women"] for d in departments)
    distribution = contract_distribution(staffed, contracts)

    return {
        "filters": asdict(filters),
        "kpis": {
            "total_workers": total_workers,
            "total_men": total_workers - total_women,
            "total_women": total_women,
            "departments": len(departments),
            "contracts": len(contracts),
        },
        "departments": departments,
        "contracts": contracts,
        "contract_distribution": distribution,
        "age_buckets": ages,
        "gender_focus": gender_focus(departments),
        "charts": compact(
            {
                "contracts": pie_chart(distribution, title="Répartition par contrat"),
                "ages": bar_chart(ages, title="Répartition par âge"),
            }
        ),
        "data_quality": {**table.data_quality(), "without_department": int(len(frame) - len(staffed))},
    }
