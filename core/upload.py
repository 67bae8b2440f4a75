from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from core.presentation import FRENCH_MONTHS

BATCH_SIZE = 50
TURNOVER_FORM_FIELDS = ("mois", "baja", "group", "contrat", "effectif1", "effectif2")


def _now_iso(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.isoformat().replace("+00:00", "Z")


def clear_sheet_payload(script_url: str, *, now: Optional[datetime] = None) -> Dict[str, Any]:
    return {"googleScriptUrl": script_url, "action": "clearSheet", "timestamp": _now_iso(now)}


def upload_batches(
    script_url: str,
    headers: Sequence[Any],
    rows: Sequence[Sequence[Any]],
    *,
    batch_size: int = BATCH_SIZE,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Split a sheet into ``uploadData`` payloads.

    Only the first batch carries the header row. An empty sheet produces no
    batch at all.
    """
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")
    total = math.ceil(len(rows) / batch_size)
    stamp = _now_iso(now)
    out: List[Dict[str, Any]] = []
    for i in range(total):
        payload: Dict[str, Any] = {
            "googleScriptUrl": script_url,
            "action": "uploadData",
            "data": [list(r) for r in rows[i * batch_size:(i + 1) * batch_size]],
            "isBatch": True,
            "batchNumber": i,
            "totalBatches": total,
            "timestamp": stamp,
        }
        if i == 0:
            payload["headers"] = list(headers)
        out.append(payload)
    return out


def format_form_month(value: str) -> str:
    """``2024-03`` -> ``Mars 2, 2024``; the sheet expects a parseable date string."""
    if not value:
        return ""
    year, _, month = value.partition("-")
    if not (year.isdigit() and month.isdigit() and 1 <= int(month) <= 12):
        raise ValueError(f"Invalid month value: {value!r}")
    return f"{FRENCH_MONTHS[int(month) - 1]} 2, {year}"


def turnover_form_payload(script_url: str, form: Dict[str, Any]) -> Dict[str, Any]:
    missing = [k for k in TURNOVER_FORM_FIELDS if not str(form.get(k) or "").strip()]
    if missing:
        raise ValueError("Veuillez remplir tous les champs")
    return {
        "googleScriptUrl": script_url,
        "action": "submitForm",
        "mois": format_form_month(str(form["mois"])),
        "baja": form["baja"],
        "groupe": form["group"],
        "contrat": form["contrat"],
        "effectif1": form["effectif1"],
        "effectif2": form["effectif2"],
    }
