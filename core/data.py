from __future__ import annotations

import logging
import math
import re
from collections import Counter
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from core.errors import MalformedTableError
from core.schema import SourceSchema

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_LEADING_FLOAT = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

WORKFORCE_FALLBACK: List[List[Any]] = [
    [
        "codigo", "matricula", "nombre", "nif", "sexo", "edad", "telefono", "contrato", "centro", "grupo",
        "encargado", "departamento", "puesto", "fechaAlta", "fechaBaja", "transportista", "prH1", "prH2", "prAS", "baja",
    ],
    [1, "M001", "Juan Perez", "NIF1", "H", 30, "", "Fijo", "C1", "G1", "", "Campo", "Puesto A", "", "", "", "", 0, 0, ""],
    [2, "M002", "Maria Lopez", "NIF2", "F", 28, "", "Temporal", "C1", "G1", "", "Almacen", "Puesto B", "", "", "", "", 0, 0, ""],
    [3, "M003", "Ana Gomez", "NIF3", "F", 35, "", "Fijo", "C1", "G1", "", "Estructora", "Puesto C", "", "", "", "", 0, 0, ""],
]


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def cell_text(value: object) -> str:
    if value is None or isinstance(value, (list, dict)):
        return ""
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def parse_int(value: object) -> int:
    """Leading integer of a cell, 0 when there is none ("12 pers" -> 12)."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return 0 if math.isnan(value) or math.isinf(value) else int(value)
    m = _LEADING_INT.match(cell_text(value))
    return int(m.group(1)) if m else 0


def parse_float(value: object) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        out = float(value)
        return 0.0 if math.isnan(out) or math.isinf(out) else out
    m = _LEADING_FLOAT.match(cell_text(value))
    return float(m.group(1)) if m else 0.0


def validate_table(payload: object) -> List[Any]:
    if not isinstance(payload, list) or not payload:
        raise MalformedTableError("Expected array with at least one row")
    return payload


@dataclass
class NormalizedTable:
    schema: SourceSchema
    frame: pd.DataFrame
    total_rows: int = 0
    skipped: Dict[str, int] = field(default_factory=dict)

    @property
    def skipped_total(self) -> int:
        return sum(self.skipped.values())

    def data_quality(self) -> Dict[str, Any]:
        return {
            "source": self.schema.name,
            "rows": self.total_rows,
            "kept": int(len(self.frame)),
            "skipped": dict(self.skipped),
        }


def _normalize_row(row: Sequence[Any], schema: SourceSchema) -> Dict[str, Any]:
    record: Dict[str, Any] = {}
    size = len(row)
    for name, idx in schema.columns.items():
        value = row[idx] if idx < size else None
        if name in schema.integers:
            record[name] = parse_int(value)
        elif name in schema.floats:
            record[name] = parse_float(value)
        else:
            text = cell_text(value)
            record[name] = text.upper() if name in schema.upper else text
    return record


def normalize_table(raw: object, schema: SourceSchema) -> NormalizedTable:
    """Turn a raw Record Table into a typed frame, one column per schema field.

    The header row is dropped. Rows that are not lists, are too short, or miss
    a required field are counted per reason and left out; nothing raises for a
    single bad row.
    """
    rows = validate_table(raw)
    skipped: Counter = Counter()
    records: List[Dict[str, Any]] = []

    for row in rows[1:]:
        if not isinstance(row, (list, tuple)):
            skipped["not_a_row"] += 1
            continue
        if len(row) < schema.min_length:
            skipped["too_short"] += 1
            continue
        record = _normalize_row(row, schema)
        if any(not record[f] for f in schema.required):
            skipped["missing_key"] += 1
            continue
        records.append(record)

    frame = pd.DataFrame.from_records(records, columns=schema.fields)
    for col in schema.integers:
        frame[col] = frame[col].astype("int64")
    for col in schema.floats:
        frame[col] = frame[col].astype("float64")

    table = NormalizedTable(schema=schema, frame=frame, total_rows=len(rows) - 1, skipped=dict(skipped))
    if table.skipped_total:
        logger.info(
            "%s: kept %d of %d rows (%s)",
            schema.name,
            len(frame),
            table.total_rows,
            ", ".join(f"{k}={v}" for k, v in sorted(skipped.items())),
            extra={"source": schema.name, "skipped": dict(skipped)},
        )
    return table
