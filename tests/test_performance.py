"""
test_performance.py: Performance (hours) page payload.
"""

import pytest

from core.data import normalize_table
from core.filters import normalize_filters
from core.metrics_performance import compute_performance, export_groups
from core.schema import PERFORMANCE


@pytest.fixture
def performance_table(make_table):
    """
    G1 (Campo): Ali 9h + 8h, Badr 6h over two dates.
    G2: Chama 0h (no department) then 7.5h (Almacen), Driss 2h (no department).
    One row without a group is dropped by the normalizer.
    """
    raw = make_table(
        PERFORMANCE,
        [
            {"date": "2024-01-01", "code": "C1", "name": "Ali", "group": "G1", "department": "Campo", "hours": 9, "ag": "2"},
            {"date": "2024-01-01", "code": "C2", "name": "Badr", "group": "G1", "department": "Campo", "hours": "6", "ag": "1"},
            {"date": "2024-01-02", "code": "C1", "name": "Ali", "group": "G1", "department": "Campo", "hours": 8, "ag": "2"},
            {"date": "2024-01-01", "code": "C3", "name": "Chama", "group": "G2", "department": "", "hours": 0, "ag": ""},
            {"date": "2024-01-02", "code": "C3", "name": "Chama", "group": "G2", "department": "Almacen", "hours": "7.5", "ag": "10"},
            {"date": "2024-01-02", "code": "C4", "name": "Driss", "group": "G2", "department": "", "hours": 2, "ag": "x"},
            {"date": "2024-01-02", "code": "C5", "name": "Elias", "group": "", "department": "Campo", "hours": 5},
        ],
    )
    return normalize_table(raw, PERFORMANCE)


class TestPerformancePage:

    def test_required_fields(self, performance_table):
        assert len(performance_table.frame) == 6
        assert performance_table.skipped == {"missing_key": 1}

    def test_totals(self, performance_table, no_filters):
        totals = compute_performance(no_filters, performance_table)["totals"]
        assert totals["workers"] == 4
        assert totals["groups"] == 2
        assert totals["total_hours"] == pytest.approx(32.5)

    def test_groups_sorted_by_name_with_workload(self, performance_table, no_filters):
        items = compute_performance(no_filters, performance_table)["groups"]["items"]
        assert [g["name"] for g in items] == ["G1", "G2"]
        g1, g2 = items
        assert g1["hours"] == pytest.approx(23.0)
        assert g1["worker_count"] == 3
        assert g1["avg_daily_workload"] == pytest.approx(1.5)
        assert g2["avg_daily_workload"] == pytest.approx(2.0)

    def test_department_filter_recomputes_groups(self, performance_table):
        data = compute_performance(normalize_filters({"selected": {"department": ["Campo"]}}), performance_table)
        assert [g["name"] for g in data["groups"]["items"]] == ["G1"]

    def test_group_search(self, performance_table):
        data = compute_performance(normalize_filters({"search": "g2"}), performance_table)
        assert [g["name"] for g in data["groups"]["items"]] == ["G2"]

    def test_department_stats(self, performance_table, no_filters):
        depts = compute_performance(no_filters, performance_table)["department_stats"]["departments"]
        assert [(d["name"], d["percentage"]) for d in depts] == [
            ("Campo", 70.8),
            ("Almacen", 23.1),
            ("(Sans département)", 6.2),
        ]

    def test_low_hours(self, performance_table, no_filters):
        low = compute_performance(no_filters, performance_table)["low_hours"]
        assert low == {"count": 3, "total": 5, "percentage": 60.0}

    def test_ag_distribution_sorted_numerically(self, performance_table, no_filters):
        ag = compute_performance(no_filters, performance_table)["ag"]
        assert ag["total_count"] == 4
        assert ag["distribution"] == [
            {"value": "1", "count": 1},
            {"value": "2", "count": 2},
            {"value": "10", "count": 1},
        ]

    def test_dates_by_month(self, performance_table, no_filters):
        months = compute_performance(no_filters, performance_table)["dates_by_month"]
        assert months == [{"month": "2024-01", "label": "2024-01", "dates": ["2024-01-01", "2024-01-02"]}]


class TestPerformanceDrillDown:

    def test_attendance_by_date(self, performance_table):
        detail = compute_performance(normalize_filters({"selected_group": "G1"}), performance_table)["group_detail"]
        assert detail["attendance_by_date"] == [
            {"date": "2024-01-01", "present": 2, "total": 2},
            {"date": "2024-01-02", "present": 1, "total": 2},
        ]
        assert len(detail["workers"]) == 3

    def test_worker_filters(self, performance_table):
        f = normalize_filters({"selected_group": "G1", "selected_dates": ["2024-01-02"]})
        workers = compute_performance(f, performance_table)["group_detail"]["workers"]
        assert [(w["code"], w["date"]) for w in workers] == [("C1", "2024-01-02")]

        f = normalize_filters({"selected_group": "G1", "record_code_search": "c2"})
        workers = compute_performance(f, performance_table)["group_detail"]["workers"]
        assert [w["name"] for w in workers] == ["Badr"]

    def test_export(self, performance_table, no_filters):
        frame = export_groups(no_filters, performance_table)
        assert frame["name"].tolist() == ["G1", "G2"]
