from __future__ import annotations

import math
import re
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

FRENCH_MONTHS = [
    "Janvier", "Février", "Mars", "Avril", "Mai", "Juin",
    "Juillet", "Août", "Septembre", "Octobre", "Novembre", "Décembre",
]
SHORT_FRENCH_MONTHS = ["Jan", "Fév", "Mar", "Avr", "Mai", "Juin", "Juil", "Août", "Sep", "Oct", "Nov", "Déc"]

_YEAR_MONTH = re.compile(r"^(\d{4})-(\d{1,2})$")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_LETTERS = re.compile(r"[A-Za-zÀ-ÿ]")


def ranked(df: pd.DataFrame, by: str = "value", *, ascending: bool = False, top_n: Optional[int] = None) -> pd.DataFrame:
    """Sort on ``by`` keeping encounter order for ties, then optionally truncate."""
    if df.empty:
        return df
    out = df.sort_values(by, ascending=ascending, kind="mergesort")
    if top_n is not None:
        out = out.head(top_n)
    return out.reset_index(drop=True)


def as_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    if df is None or df.empty:
        return []
    return df.to_dict(orient="records")


def as_series(df: pd.DataFrame, by: str = "value", *, ascending: bool = False, top_n: Optional[int] = None) -> List[Dict[str, Any]]:
    return as_records(ranked(df, by, ascending=ascending, top_n=top_n))


def paginate(items: Sequence[Any], page: int = 1, page_size: int = 10) -> Dict[str, Any]:
    total = len(items)
    pages = max(1, math.ceil(total / page_size)) if page_size > 0 else 1
    page = max(1, min(page, pages))
    start = (page - 1) * page_size
    return {
        "items": list(items[start : start + page_size]),
        "page": page,
        "page_size": page_size,
        "total_items": total,
        "total_pages": pages,
    }


def month_axis(values: Dict[int, Any], *, label: str = "Mois {n}", fill: Any = 0) -> List[Dict[str, Any]]:
    """Months 1..12 with missing months filled."""
    return [{"month": n, "name": label.format(n=n), "value": values.get(n, fill)} for n in range(1, 13)]


def format_month_fr(value: object) -> str:
    raw = str(value or "").strip()
    if not raw:
        return ""
    m = _YEAR_MONTH.match(raw)
    if m and 1 <= int(m.group(2)) <= 12:
        return f"{FRENCH_MONTHS[int(m.group(2)) - 1]} {m.group(1)}"
    m = _ISO_DATE.match(raw)
    if m and 1 <= int(m.group(2)) <= 12:
        return f"{FRENCH_MONTHS[int(m.group(2)) - 1]} {m.group(1)}"
    if _LETTERS.search(raw):
        return raw
    return f"Mois {raw}"


def format_date_dmy(value: object) -> str:
    raw = str(value or "").strip()
    m = _ISO_DATE.match(raw)
    if not m:
        return raw
    return f"{m.group(3)}-{m.group(2)}-{m.group(1)}"


def month_key(value: object) -> str:
    """``YYYY-MM`` of a date cell, or "Invalid"."""
    ts = pd.to_datetime(value, errors="coerce")
    if pd.isna(ts):
        return "Invalid"
    return f"{ts.year:04d}-{ts.month:02d}"
