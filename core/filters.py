from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import pandas as pd

ALL_SENTINELS = {"", "all", "tous", "toutes"}
STATUS_VALUES = {"all", "present", "absent"}

Predicate = Callable[[pd.DataFrame], pd.Series]


@dataclass(frozen=True)
class DashboardFilters:
    # Category filters keyed by record field; an empty list means "no constraint".
    selected: Dict[str, List[str]] = field(default_factory=dict)
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    search: str = ""
    status: str = "all"
    contract_status: str = "all"
    selected_group: Optional[str] = None
    selected_dates: List[str] = field(default_factory=list)
    record_status: str = "all"
    record_search: str = ""
    record_code_search: str = ""
    year: Optional[int] = None
    top_n: int = 10
    page: int = 1
    contract_page: int = 1
    page_size: int = 10

    def values(self, name: str) -> List[str]:
        return list(self.selected.get(name, []))


def is_inactive(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().lower() in ALL_SENTINELS
    if isinstance(value, (list, tuple, set)):
        return all(is_inactive(v) for v in value)
    return False


def _as_str_list(values: object) -> List[str]:
    if values is None:
        return []
    if isinstance(values, (str, int, float)):
        values = [values]
    out: List[str] = []
    for v in values:  # type: ignore[union-attr]
        if v is None:
            continue
        s = str(v).strip()
        if s and not is_inactive(s):
            out.append(s)
    return out


def _as_int(value: object, default: int) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except Exception:
        return default


def _status(value: object) -> str:
    s = str(value or "all").strip().lower()
    return s if s in STATUS_VALUES else "all"


def _optional_text(value: object) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def normalize_filters(raw: Optional[dict]) -> DashboardFilters:
    raw = raw or {}

    selected: Dict[str, List[str]] = {}
    for key, values in (raw.get("selected") or {}).items():
        cleaned = _as_str_list(values)
        if cleaned:
            selected[str(key)] = cleaned

    top_n = max(1, min(200, _as_int(raw.get("top_n", 10), 10)))
    page_size = max(1, min(200, _as_int(raw.get("page_size", 10), 10)))
    year = _as_int(raw.get("year"), 0) or None

    return DashboardFilters(
        selected=selected,
        date_from=_optional_text(raw.get("date_from")),
        date_to=_optional_text(raw.get("date_to")),
        search=(raw.get("search") or "").strip(),
        status=_status(raw.get("status")),
        contract_status=_status(raw.get("contract_status")),
        selected_group=_optional_text(raw.get("selected_group")),
        selected_dates=_as_str_list(raw.get("selected_dates")),
        record_status=_status(raw.get("record_status")),
        record_search=(raw.get("record_search") or "").strip(),
        record_code_search=(raw.get("record_code_search") or "").strip(),
        year=year,
        top_n=top_n,
        page=max(1, _as_int(raw.get("page", 1), 1)),
        contract_page=max(1, _as_int(raw.get("contract_page", 1), 1)),
        page_size=page_size,
    )


def one_of(column: str, values: Iterable[str]) -> Optional[Predicate]:
    wanted = _as_str_list(list(values))
    if not wanted:
        return None
    allowed = set(wanted)
    return lambda df: df[column].astype(str).isin(allowed)


def contains(columns: Sequence[str], query: str) -> Optional[Predicate]:
    q = (query or "").strip().lower()
    if not q:
        return None

    def _match(df: pd.DataFrame) -> pd.Series:
        mask = pd.Series(False, index=df.index)
        for col in columns:
            mask |= df[col].astype(str).str.lower().str.contains(q, regex=False, na=False)
        return mask

    return _match


def to_dates(series: pd.Series) -> pd.Series:
    parsed = pd.to_datetime(series.astype("object").where(series.astype(str).str.strip() != "", None), errors="coerce", utc=True, format="mixed")
    return parsed.dt.tz_localize(None)


def to_date(value: object) -> Optional[pd.Timestamp]:
    if value is None or value == "":
        return None
    ts = pd.to_datetime(value, errors="coerce", utc=True)
    if pd.isna(ts):
        return None
    return ts.tz_localize(None)


def in_range(column: str, start: object = None, end: object = None) -> Optional[Predicate]:
    lo, hi = to_date(start), to_date(end)
    if lo is None and hi is None:
        return None

    def _match(df: pd.DataFrame) -> pd.Series:
        dates = to_dates(df[column])
        mask = dates.notna()
        if lo is not None:
            mask &= dates >= lo
        if hi is not None:
            mask &= dates <= hi
        return mask

    return _match


def active_between(entry_column: str, exit_column: str, start: object = None, end: object = None) -> Optional[Predicate]:
    """Interval overlap: entered on or before ``end`` and not gone before ``start``.

    A missing exit date is an open interval and always satisfies the lower bound.
    """
    lo, hi = to_date(start), to_date(end)
    if lo is None and hi is None:
        return None

    def _match(df: pd.DataFrame) -> pd.Series:
        entry = to_dates(df[entry_column])
        exit_ = to_dates(df[exit_column])
        mask = pd.Series(True, index=df.index)
        if hi is not None:
            mask &= entry.notna() & (entry <= hi)
        if lo is not None:
            mask &= exit_.isna() | (exit_ >= lo)
        return mask

    return _match


def apply_filters(df: pd.DataFrame, predicates: Iterable[Optional[Predicate]]) -> pd.DataFrame:
    """Keep rows where every active predicate holds. Order does not matter."""
    mask = pd.Series(True, index=df.index)
    for predicate in predicates:
        if predicate is None:
            continue
        mask &= predicate(df).reindex(df.index, fill_value=False).astype(bool)
    return df[mask]


def category_predicates(filters: DashboardFilters, fields: Sequence[str]) -> List[Optional[Predicate]]:
    return [one_of(name, filters.values(name)) for name in fields]
