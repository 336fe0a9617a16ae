"""
Unit Tests for date/year partitioning
"""
from datetime import date

import pytest

from app.modules.works.partitioning import (
    filter_date_range,
    lookback_years,
    merge_across_years,
    resolve_partitions_for_range,
    resolve_year,
    year_of,
)


TODAY = date(2026, 3, 15)


class TestYearOf:
    def test_valid_date(self):
        assert year_of("2024-12-31", today=TODAY) == 2024

    @pytest.mark.parametrize("value", ["", None, "garbage", "2024-02-30"])
    def test_unparsable_falls_back_to_current_year(self, value):
        assert year_of(value, today=TODAY) == 2026


class TestResolveYear:
    def test_explicit_year(self):
        assert resolve_year(2023, today=TODAY) == 2023

    def test_default_is_current_year(self):
        assert resolve_year(None, today=TODAY) == 2026


class TestResolvePartitionsForRange:
    def test_same_year(self):
        assert resolve_partitions_for_range("2025-01-01", "2025-12-31") == {2025}

    def test_spanning_years(self):
        assert resolve_partitions_for_range("2023-12-30", "2025-01-02") == {2023, 2024, 2025}

    def test_inverted_range_is_empty(self):
        assert resolve_partitions_for_range("2025-06-02", "2025-06-01") == set()

    def test_unparsable_bound_uses_current_year(self):
        assert resolve_partitions_for_range("2025-06-01", "soon", today=TODAY) == {2025, 2026}


class TestMergeAndFilter:
    def test_merge_is_union_of_buckets(self):
        merged = merge_across_years([
            {"2024-12-31": ["a"]},
            {"2025-01-01": ["b"], "2025-01-02": []},
        ])

        assert merged == {"2024-12-31": ["a"], "2025-01-01": ["b"], "2025-01-02": []}

    def test_merge_of_nothing(self):
        assert merge_across_years([]) == {}

    def test_filter_is_inclusive(self):
        partition = {"2025-01-01": ["a"], "2025-01-15": ["b"], "2025-02-01": ["c"]}

        assert filter_date_range(partition, "2025-01-01", "2025-01-15") == {
            "2025-01-01": ["a"],
            "2025-01-15": ["b"],
        }


class TestLookbackYears:
    def test_oldest_first(self):
        assert lookback_years(2025, 2) == [2023, 2024, 2025]

    def test_no_lookback(self):
        assert lookback_years(2025, 0) == [2025]

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            lookback_years(2025, -1)
