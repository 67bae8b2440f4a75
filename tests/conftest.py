"""
conftest.py: Shared pytest fixtures for the HR dashboard test suite.

No network access is needed: upstream spreadsheets are replaced with in-memory
Record Tables and, for the HTTP layers, ``httpx.MockTransport``.

Import-path bootstrapping:
    The repository root is inserted into sys.path so that ``core.*`` and
    ``api.*`` imports resolve regardless of where pytest is invoked.
"""

import os
import sys

import pytest

_ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _ROOT_DIR not in sys.path:
    sys.path.insert(0, _ROOT_DIR)


# ---------------------------------------------------------------------------
# Record Table builders
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def make_row():
    """
    Build one positional row for a schema from field values.

    Cells not named are left as "". The row is as long as the schema's widest
    column (or ``min_length``), so it always passes the length check.
    """
    def _make(schema, **values):
        width = max(max(schema.columns.values()) + 1, schema.min_length)
        row = [""] * width
        for name, value in values.items():
            row[schema.columns[name]] = value
        return row

    return _make


@pytest.fixture(scope="session")
def make_table(make_row):
    """Header row followed by one positional row per dict."""
    def _make(schema, records):
        header = [f"col{i}" for i in range(len(make_row(schema)))]
        return [header] + [make_row(schema, **rec) for rec in records]

    return _make


@pytest.fixture
def no_filters():
    from core.filters import normalize_filters
    return normalize_filters({})


# ---------------------------------------------------------------------------
# Source tables
# ---------------------------------------------------------------------------

@pytest.fixture
def attendance_table(make_table):
    """
    Six attendance rows over two groups and two categories.

    G1: T, T, I   (OUVRIER)  -> present 2, absent 1
    G2: I, X      (CADRE)    -> absent 1, one unclassified
    plus one row without any grouping key.
    """
    from core.data import normalize_table
    from core.schema import ATTENDANCE

    raw = make_table(
        ATTENDANCE,
        [
            {"code": "C1", "name": "Ali", "attendance": "t", "group": "G1", "contract": "AGRI", "category": "OUVRIER"},
            {"code": "C2", "name": "Badr", "attendance": "T", "group": "G1", "contract": "AGRI", "category": "OUVRIER"},
            {"code": "C3", "name": "Chama", "attendance": "I", "group": "G1", "contract": "BEST", "category": "OUVRIER"},
            {"code": "C4", "name": "Driss", "attendance": "I", "group": "G2", "contract": "BEST", "category": "CADRE"},
            {"code": "C5", "name": "Elias", "attendance": "X", "group": "G2", "contract": "BEST", "category": "CADRE"},
            {"code": "C6", "name": "Fadwa", "attendance": "T"},
        ],
    )
    return normalize_table(raw, ATTENDANCE)


@pytest.fixture
def turnover_table(make_table):
    from core.data import normalize_table
    from core.schema import TURNOVER

    raw = make_table(
        TURNOVER,
        [
            {"month": "2024-01", "finished": 2, "group": "G1", "contract": "AGRI", "started": 10, "ended": 8},
            {"month": "2024-01", "finished": 1, "group": "G2", "contract": "BEST", "started": 20, "ended": 19},
            {"month": "2024-02", "finished": 4, "group": "G1", "contract": "AGRI", "started": 8, "ended": 6},
        ],
    )
    return normalize_table(raw, TURNOVER)
