"""
test_filters.py: Filter normalization and predicate composition.

Tests cover:
  - normalize_filters: "all" sentinels, clamping, status values
  - one_of / contains / in_range / active_between predicates
  - apply_filters: conjunction is order-independent, empty filters keep everything
"""

import itertools

import pandas as pd
import pytest

from core.filters import (
    DashboardFilters,
    active_between,
    apply_filters,
    category_predicates,
    contains,
    in_range,
    is_inactive,
    normalize_filters,
    one_of,
)

# An inactive filter is None and must not change the result in any position.
PREDICATES = {
    "group": one_of("group", ["G1", "G2"]),
    "contract": one_of("contract", ["AGRI"]),
    "name": contains(["name"], "a"),
    "inactive": one_of("group", ["all"]),
    "date": in_range("date", "2024-01-01", "2024-02-28"),
    "active": active_between("entry", "exit", "2024-01-01", "2024-12-31"),
}


@pytest.fixture
def people():
    return pd.DataFrame(
        {
            "group": ["G1", "G2", "G1", "G3"],
            "contract": ["AGRI", "AGRI", "BEST", "BEST"],
            "name": ["Ali", "Badr", "chama", "Driss"],
            "date": ["2024-01-05", "2024-02-10", "", "2024-03-01"],
            "entry": ["2023-01-01", "2024-02-01", "2024-05-01", ""],
            "exit": ["", "2024-02-15", "", ""],
        }
    )


class TestNormalizeFilters:

    def test_empty_input_gives_defaults(self):
        assert normalize_filters(None) == DashboardFilters()

    @pytest.mark.parametrize("sentinel", ["all", "ALL", "Tous", "toutes", "", None])
    def test_sentinels_are_inactive(self, sentinel):
        f = normalize_filters({"selected": {"group": [sentinel]}})
        assert f.values("group") == []

    def test_scalar_selection_becomes_list(self):
        f = normalize_filters({"selected": {"group": "G1", "year": 2024}})
        assert f.values("group") == ["G1"]
        assert f.values("year") == ["2024"]

    def test_clamping_and_status(self):
        f = normalize_filters({"top_n": 999, "page_size": 0, "page": -3, "status": "bogus", "year": "x"})
        assert f.top_n == 200
        assert f.page_size == 1
        assert f.page == 1
        assert f.status == "all"
        assert f.year is None

    def test_is_inactive(self):
        assert is_inactive(["all", ""])
        assert not is_inactive(["G1"])
        assert not is_inactive(0)


class TestPredicates:

    def test_one_of_inactive_returns_none(self):
        assert one_of("group", []) is None
        assert one_of("group", ["all"]) is None

    def test_contains_is_case_insensitive_and_literal(self, people):
        out = apply_filters(people, [contains(["name"], "CHA")])
        assert out["name"].tolist() == ["chama"]
        assert apply_filters(people, [contains(["name"], ".*")]).empty

    def test_in_range_bounds_inclusive(self, people):
        out = apply_filters(people, [in_range("date", "2024-01-05", "2024-02-10")])
        assert out["name"].tolist() == ["Ali", "Badr"]

    def test_active_between_open_exit(self, people):
        out = apply_filters(people, [active_between("entry", "exit", "2024-03-01", "2024-04-30")])
        # Badr left before the range, chama starts after it, Driss has no entry.
        assert out["name"].tolist() == ["Ali"]


class TestApplyFilters:

    @pytest.mark.parametrize(
        "names",
        [subset for size in range(1, len(PREDICATES) + 1) for subset in itertools.combinations(PREDICATES, size)],
        ids=lambda names: "+".join(names),
    )
    def test_every_ordering_gives_the_same_rows(self, people, names):
        predicates = [PREDICATES[n] for n in names]
        results = [apply_filters(people, list(order)) for order in itertools.permutations(predicates)]
        for result in results[1:]:
            pd.testing.assert_frame_equal(result, results[0])

    def test_sentinel_selection_builds_no_predicate(self):
        assert PREDICATES["inactive"] is None

    def test_conjunction(self, people):
        out = apply_filters(people, [one_of("group", ["G1", "G2"]), one_of("contract", ["AGRI"]), contains(["name"], "a")])
        assert out["name"].tolist() == ["Ali", "Badr"]

    def test_empty_selection_equals_no_filters(self, people):
        empty = normalize_filters({"selected": {"group": [], "contract": ["all"]}})
        out = apply_filters(people, category_predicates(empty, ["group", "contract"]))
        pd.testing.assert_frame_equal(out, people)

    def test_no_match_gives_empty_frame(self, people):
        assert apply_filters(people, [one_of("group", ["nope"])]).empty
