from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple


@dataclass(frozen=True)
class SourceSchema:
    """Declared column map for one positional Record Table.

    Fields not listed in ``integers`` or ``floats`` are trimmed text. A row is
    kept only when it is a list with at least ``min_length`` cells and every
    ``required`` field is non-empty.
    """

    name: str
    columns: Dict[str, int]
    integers: Tuple[str, ...] = ()
    floats: Tuple[str, ...] = ()
    upper: Tuple[str, ...] = ()
    required: Tuple[str, ...] = ()
    min_length: int = 0

    def __post_init__(self) -> None:
        unknown = [f for f in (*self.integers, *self.floats, *self.upper, *self.required) if f not in self.columns]
        if unknown:
            raise ValueError(f"{self.name}: fields {unknown} are not in the column map")
        positions = list(self.columns.values())
        if len(positions) != len(set(positions)):
            raise ValueError(f"{self.name}: duplicate column positions")

    @property
    def fields(self) -> List[str]:
        return list(self.columns)


ATTENDANCE = SourceSchema(
    name="attendance",
    columns={"code": 2, "name": 3, "attendance": 10, "group": 31, "contract": 34, "category": 36},
    upper=("attendance",),
)

PERFORMANCE = SourceSchema(
    name="performance",
    columns={"date": 0, "code": 2, "name": 3, "group": 31, "department": 36, "hours": 40, "ag": 41},
    floats=("hours",),
    required=("code", "name", "date", "group"),
)

RECRUITMENT = SourceSchema(
    name="recruitment",
    columns={
        "date": 0,
        "week": 1,
        "qz": 2,
        "month": 3,
        "department": 4,
        "sector": 5,
        "source": 6,
        "interim": 7,
        "count": 8,
    },
    integers=("count",),
    required=("date", "department", "source"),
    min_length=9,
)

SORTIE = SourceSchema(
    name="sortie",
    columns={"qz": 0, "month": 1, "year": 2, "sex": 3, "contract": 4, "department": 5, "count": 6},
    integers=("count",),
    required=("qz", "month", "year", "department"),
    min_length=7,
)

TURNOVER = SourceSchema(
    name="turnover",
    columns={"month": 0, "finished": 1, "group": 2, "contract": 3, "started": 4, "ended": 5},
    integers=("finished", "started", "ended"),
    required=("month", "group", "contract"),
    min_length=6,
)

WORKFORCE = SourceSchema(
    name="workforce",
    columns={
        "code": 0,
        "registration": 1,
        "name": 2,
        "nif": 3,
        "sex": 4,
        "age": 5,
        "phone": 6,
        "contract": 7,
        "center": 8,
        "group": 9,
        "supervisor": 10,
        "department": 11,
        "position": 12,
        "hired": 13,
        "left": 14,
        "carrier": 15,
        "pr_h1": 16,
        "pr_h2": 17,
        "pr_as": 18,
        "exit": 19,
    },
)

SCHEMAS: Dict[str, SourceSchema] = {
    s.name: s for s in (ATTENDANCE, PERFORMANCE, RECRUITMENT, SORTIE, TURNOVER, WORKFORCE)
}
