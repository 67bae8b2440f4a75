"""
test_sector.py: Farm sector analytics over individual worker records.

``today`` is injected so that ages, the default six-month window and the days
worked are deterministic.
"""

from datetime import date

import pandas as pd
import pytest

from core.filters import normalize_filters
from core.metrics_sector import compute_sector, days_worked, monthly_turnover, workers_frame

TODAY = date(2024, 6, 15)


@pytest.fixture
def workers():
    return [
        {"id": "W1", "name": "Ali", "farm_id": "F1", "entry_date": "2023-01-10", "exit_date": "", "status": "actif",
         "sex": "homme", "birth_date": "1990-05-01", "supervisor_id": "S1"},
        {"id": "W2", "name": "Badra", "farm_id": "F1", "entry_date": "2024-02-01", "exit_date": "2024-04-20", "status": "inactif",
         "sex": "Femme", "birth_date": "2000-01-01", "exit_reason": "Fin contrat", "supervisor_id": "S1"},
        {"id": "W3", "name": "Chama", "farm_id": "F2", "entry_date": "2024-03-01", "exit_date": None, "status": "actif",
         "sex": "", "birth_date": "", "supervisor_id": ""},
        {"id": "W4", "name": "Driss", "farm_id": "F2", "entry_date": "2022-01-01", "exit_date": "2023-06-30", "status": "inactif",
         "sex": "homme", "birth_date": "1980-01-01", "exit_reason": "Démission", "supervisor_id": "S2"},
    ]


@pytest.fixture
def farms():
    return [{"id": "F1", "name": "Ferme Nord"}, {"id": "F2", "nom": "Ferme Sud"}]


class TestSectorDefaults:

    def test_default_six_month_window(self, workers):
        data = compute_sector(normalize_filters({}), workers, today=TODAY)
        assert data["range"] == {"start": "2023-12-15", "end": "2024-06-15"}
        # W4 left before the window opened.
        assert data["kpis"]["workers"] == 3

    def test_average_age_divides_by_all_workers(self, workers):
        data = compute_sector(normalize_filters({}), workers, today=TODAY)
        assert data["kpis"]["average_age"] == 19  # (34 + 24) / 3

    def test_period_turnover(self, workers):
        data = compute_sector(normalize_filters({}), workers, today=TODAY)
        assert data["kpis"]["turnover_rate"] == 33.33

    def test_supervisors_named_and_unassigned(self, workers):
        data = compute_sector(normalize_filters({}), workers, supervisors={"S1": "Sam"}, today=TODAY)
        assert data["supervisors"] == [{"name": "Sam", "value": 2}, {"name": "Unassigned", "value": 1}]

    def test_gender_labels(self, workers):
        data = compute_sector(normalize_filters({}), workers, today=TODAY)
        assert data["gender"] == [
            {"name": "Male", "value": 1},
            {"name": "Female", "value": 1},
            {"name": "Unknown", "value": 1},
        ]

    def test_age_groups_and_exit_reasons(self, workers):
        data = compute_sector(normalize_filters({}), workers, today=TODAY)
        ages = {a["name"]: a["value"] for a in data["age_groups"]}
        assert ages["20-29"] == 1 and ages["30-39"] == 1
        assert data["exit_reasons"] == [{"reason": "Fin contrat", "count": 1}]

    def test_available_years(self, workers):
        data = compute_sector(normalize_filters({}), workers, today=TODAY)
        assert data["available_years"] == [2024, 2023, 2022]


class TestSectorFilters:

    def test_farm_filter(self, workers):
        data = compute_sector(normalize_filters({"selected": {"farm": ["F2"]}}), workers, today=TODAY)
        assert data["kpis"]["workers"] == 1
        assert data["kpis"]["farms"] == 1

    def test_explicit_range(self, workers):
        f = normalize_filters({"date_from": "2024-05-01", "date_to": "2024-05-31"})
        data = compute_sector(f, workers, today=TODAY)
        assert data["kpis"]["workers"] == 2
        assert [m["month"] for m in data["turnover"]] == ["2024-05"]

    def test_yearly_view(self, workers):
        data = compute_sector(normalize_filters({"year": 2024}), workers, today=TODAY)
        months = data["turnover"]
        assert len(months) == 12
        assert months[0]["month"] == "Jan"
        april = months[3]
        assert (april["total"], april["departures"], april["turnover"]) == (3, 1, 33.33)


class TestSectorHelpers:

    def test_monthly_turnover_includes_end_month(self, workers):
        df = workers_frame(workers)
        rows = monthly_turnover(df, pd.Timestamp("2024-01-31"), pd.Timestamp("2024-03-01"))
        assert [r["month"] for r in rows] == ["2024-01", "2024-02", "2024-03"]

    def test_french_field_names_accepted(self):
        df = workers_frame([{"nom": "X", "fermeId": "F9", "dateEntree": "2024-01-01", "sexe": "femme"}])
        assert df.iloc[0]["farm_id"] == "F9"
        assert df.iloc[0]["sex"] == "femme"
        assert df.iloc[0]["exit_date"] == ""

    def test_days_worked(self):
        assert days_worked(pd.Timestamp("2024-01-01"), pd.Timestamp("2024-01-31"), TODAY) == 30
        assert days_worked(pd.Timestamp("2024-06-01"), None, TODAY) == 14

    def test_farm_overview(self, workers, farms):
        data = compute_sector(normalize_filters({}), workers, farms=farms, today=TODAY)
        overview = {f["id"]: f for f in data["farms"]}
        assert overview["F1"]["name"] == "Ferme Nord"
        assert overview["F2"]["name"] == "Ferme Sud"
        assert (overview["F1"]["total_workers"], overview["F1"]["active_workers"]) == (2, 1)

    def test_no_workers(self):
        data = compute_sector(normalize_filters({}), [], today=TODAY)
        assert data["kpis"]["workers"] == 0
        assert data["kpis"]["turnover_rate"] == 0
        assert data["supervisors"] == []
