"""
Unit Tests for the cross-date lookup engine
"""
import pytest

from app.modules.works.lookup import MatchField, SearchScope, WorkLookup, most_recent_match
from app.schemas.work import WorkItem


@pytest.fixture
def partitions(make_work):
    def bucket(date, *overrides):
        return [WorkItem.model_validate(make_work(date=date, **fields)) for fields in overrides]

    return {
        2024: {
            "2024-11-03": bucket("2024-11-03", {"id": "old", "number": "P-100", "reference": "R1"}),
        },
        2025: {
            "2025-03-01": bucket("2025-03-01", {"id": "mar", "number": "p-100", "reference": "R2"}),
            "2025-01-10": bucket(
                "2025-01-10",
                {"id": "jan-first", "number": "P-200", "reference": "R3"},
                {"id": "jan-second", "number": "P-200", "reference": "R4"},
            ),
            "2025-02-01": [],
        },
    }


class TestMostRecentMatch:
    """Test most_recent_match"""

    def test_greatest_date_wins(self, partitions):
        match = most_recent_match([partitions[2024], partitions[2025]], MatchField.NUMBER, "P-100")

        assert match.id == "mar"

    def test_case_insensitive(self, partitions):
        match = most_recent_match([partitions[2025]], MatchField.REFERENCE, "r2")

        assert match.id == "mar"

    def test_first_in_bucket_wins(self, partitions):
        match = most_recent_match([partitions[2025]], MatchField.NUMBER, "p-200")

        assert match.id == "jan-first"

    def test_no_partial_match(self, partitions):
        assert most_recent_match([partitions[2025]], MatchField.NUMBER, "P-1") is None

    def test_stored_whitespace_matches_exact_value(self, make_work):
        work = WorkItem.model_validate(make_work(date="2025-04-01", reference="REF-1 "))

        match = most_recent_match([{"2025-04-01": [work]}], MatchField.REFERENCE, "ref-1 ")

        assert match is work

    def test_padded_value_does_not_match_trimmed_field(self, make_work):
        work = WorkItem.model_validate(make_work(date="2025-04-01", number="42"))

        assert most_recent_match([{"2025-04-01": [work]}], MatchField.NUMBER, " 42 ") is None

    def test_empty_value(self, partitions):
        assert most_recent_match([partitions[2025]], MatchField.NUMBER, "  ") is None

    def test_no_partitions(self):
        assert most_recent_match([], MatchField.NUMBER, "P-100") is None


class TestSearchScope:
    def test_years(self):
        assert SearchScope(year=2025, lookback_years=1).years() == [2024, 2025]

    def test_negative_lookback_rejected(self):
        with pytest.raises(ValueError):
            SearchScope(year=2025, lookback_years=-1)


class TestWorkLookup:
    """Test WorkLookup over a loader"""

    @pytest.fixture
    def lookup(self, partitions):
        loaded = []

        async def loader(year):
            loaded.append(year)
            return partitions.get(year, {})

        engine = WorkLookup(loader)
        engine.loaded = loaded
        return engine

    @pytest.mark.asyncio
    async def test_scope_limits_years(self, lookup):
        match = await lookup.find_most_recent_by_reference("R1", SearchScope(year=2025))

        assert match is None
        assert lookup.loaded == [2025]

    @pytest.mark.asyncio
    async def test_lookback_reaches_previous_year(self, lookup):
        match = await lookup.find_most_recent_by_reference("r1", SearchScope(year=2025, lookback_years=1))

        assert match.id == "old"
        assert lookup.loaded == [2024, 2025]

    @pytest.mark.asyncio
    async def test_by_number(self, lookup):
        match = await lookup.find_most_recent_by_number("P-100", SearchScope(year=2025, lookback_years=1))

        assert match.id == "mar"

    @pytest.mark.asyncio
    async def test_blank_value_loads_nothing(self, lookup):
        assert await lookup.find_most_recent_by_number("", SearchScope(year=2025)) is None
        assert lookup.loaded == []
