"""
test_sortie.py: Exits (sorties) page payload.
"""

import pytest

from core.data import normalize_table
from core.filters import normalize_filters
from core.metrics_sortie import compute_sortie, monthly_by_qz
from core.schema import SORTIE


@pytest.fixture
def sortie_table(make_table):
    raw = make_table(
        SORTIE,
        [
            {"qz": "QZ1", "month": "1", "year": "2024", "sex": "M", "contract": "AGRI", "department": "Campo", "count": 2},
            {"qz": "QZ2", "month": "1", "year": "2024", "sex": "H", "contract": "BEST", "department": "Almacen", "count": 1},
            {"qz": "QZ1", "month": "3", "year": "2024", "sex": "H", "contract": "AGRI", "department": "Campo", "count": 4},
            {"qz": "QZ1", "month": "2", "year": "2023", "sex": "m", "contract": "AGRI", "department": "Campo", "count": 1},
        ],
    )
    return normalize_table(raw, SORTIE)


class TestSortiePage:

    def test_kpis(self, sortie_table, no_filters):
        kpis = compute_sortie(no_filters, sortie_table)["kpis"]
        assert kpis["total_exits"] == 8
        # First matching sex label wins.
        assert kpis["female"] == 2
        assert kpis["male"] == 5
        assert kpis["contract_types"] == 2
        assert kpis["qz_count"] == 2

    def test_filter_options(self, sortie_table, no_filters):
        options = compute_sortie(no_filters, sortie_table)["options"]
        assert options["year"] == ["2024", "2023"]
        assert options["month"] == ["1", "2", "3"]
        assert options["department"] == ["Almacen", "Campo"]

    def test_year_filter_labels_months(self, sortie_table):
        data = compute_sortie(normalize_filters({"selected": {"year": ["2024"]}}), sortie_table)
        assert data["kpis"]["total_exits"] == 7
        months = data["by_month"]
        assert months[0] == {"month": 1, "name": "Mois 1/2024", "QZ1": 2, "QZ2": 1}
        assert months[1] == {"month": 2, "name": "Mois 2/2024"}
        assert months[2]["QZ1"] == 4

    def test_departments_ranked(self, sortie_table, no_filters):
        assert compute_sortie(no_filters, sortie_table)["by_department"][0] == {"name": "Campo", "value": 7}

    def test_monthly_by_qz_empty(self):
        rows = monthly_by_qz(normalize_table([["h"]], SORTIE).frame)
        assert [r["name"] for r in rows][:2] == ["Mois 1", "Mois 2"]
        assert len(rows) == 12
