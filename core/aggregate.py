from __future__ import annotations

import logging
import math
import re
from typing import Dict, Iterable, List, Optional

import pandas as pd

logger = logging.getLogger(__name__)

AGE_BUCKETS = ["<20", "20-29", "30-39", "40-49", ">50"]

_LT = re.compile(r"^<\s*(\d{1,3})$")
_GT = re.compile(r"^>\s*(\d{1,3})$")
_RANGE = re.compile(r"^(\d{1,3})\s*[-–]\s*(\d{1,3})$")
_PLAIN = re.compile(r"^(\d{1,3})$")
_ANY = re.compile(r"(\d{1,3})")

TALLY_COLUMNS = ["name", "total", "present", "absent", "unclassified"]


def classify_attendance(code: object) -> Optional[str]:
    """"T" is present, "I" is absent, anything else is neither."""
    c = str(code or "").strip().upper()
    if c == "T":
        return "present"
    if c == "I":
        return "absent"
    return None


def bucket_for_age(age: float) -> str:
    if age < 20:
        return "<20"
    if age < 30:
        return "20-29"
    if age < 40:
        return "30-39"
    if age < 50:
        return "40-49"
    return ">50"


def age_bucket(value: object) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if math.isnan(value):
            return None
        return bucket_for_age(value)

    raw = str(value).strip()
    if not raw:
        return None

    m = _LT.match(raw)
    if m:
        # "<25" names no fixed bucket.
        return "<20" if int(m.group(1)) <= 20 else None
    m = _GT.match(raw)
    if m:
        return ">50" if int(m.group(1)) >= 50 else None

    m = _RANGE.match(raw)
    if m:
        low, high = int(m.group(1)), int(m.group(2))
        if high < 20 or low < 20:
            return "<20"
        if 20 <= low and high <= 29:
            return "20-29"
        if 30 <= low and high <= 39:
            return "30-39"
        if 40 <= low and high <= 49:
            return "40-49"
        if low >= 50:
            return ">50"

    m = _PLAIN.match(raw) or _ANY.search(raw)
    if m:
        return bucket_for_age(int(m.group(1)))
    return None


def age_distribution(values: Iterable[object]) -> List[Dict[str, object]]:
    counts = {name: 0 for name in AGE_BUCKETS}
    for value in values:
        bucket = age_bucket(value)
        if bucket is not None:
            counts[bucket] += 1
    return [{"name": name, "value": counts[name]} for name in AGE_BUCKETS]


def _keyed(df: pd.DataFrame, key: str) -> pd.DataFrame:
    if df.empty:
        return df
    return df[df[key].astype(str).str.strip() != ""]


def tally(df: pd.DataFrame, key: str, code_column: str = "attendance") -> pd.DataFrame:
    """Per-key attendance counters in first-occurrence order.

    Every row counts towards ``total``; rows whose code is neither present nor
    absent are reported under ``unclassified``.
    """
    keyed = _keyed(df, key)
    if keyed.empty:
        return pd.DataFrame(columns=TALLY_COLUMNS)

    status = keyed[code_column].map(classify_attendance)
    work = pd.DataFrame(
        {
            "name": keyed[key].astype(str),
            "present": (status == "present").astype(int),
            "absent": (status == "absent").astype(int),
            "unclassified": status.isna().astype(int),
        }
    )
    out = (
        work.groupby("name", sort=False)
        .agg(total=("present", "size"), present=("present", "sum"), absent=("absent", "sum"), unclassified=("unclassified", "sum"))
        .reset_index()
    )
    unclassified = int(out["unclassified"].sum())
    if unclassified:
        logger.debug("tally by %s: %d unclassified rows", key, unclassified)
    return out[TALLY_COLUMNS]


def sum_by(df: pd.DataFrame, key: str, value: str) -> pd.DataFrame:
    keyed = _keyed(df, key)
    if keyed.empty:
        return pd.DataFrame(columns=["name", "value"])
    out = keyed.groupby(keyed[key].astype(str), sort=False)[value].sum().reset_index()
    out.columns = ["name", "value"]
    return out


def count_by(df: pd.DataFrame, key: str) -> pd.DataFrame:
    keyed = _keyed(df, key)
    if keyed.empty:
        return pd.DataFrame(columns=["name", "value"])
    out = keyed.groupby(keyed[key].astype(str), sort=False).size().reset_index()
    out.columns = ["name", "value"]
    return out
