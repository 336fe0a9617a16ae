"""
Unit Tests for WorkService
"""
import pytest

from app.core.exceptions import WorkNotFoundError
from app.modules.works.lookup import MatchField
from app.modules.works.service import WorkService
from app.schemas.work import WorkItem


@pytest.fixture
def service(store) -> WorkService:
    return WorkService(store)


def _items(make_work, date, *overrides):
    return [WorkItem.model_validate(make_work(date=date, **fields)) for fields in overrides]


class TestWorkService:
    """Test WorkService"""

    @pytest.mark.asyncio
    async def test_empty_save_does_not_write(self, service, store):
        assert await service.save_partition(2025, {}) == {}
        assert not store.partition_path(2025).exists()

    @pytest.mark.asyncio
    async def test_delete_returns_removed_item(self, service, make_work):
        bucket = _items(make_work, "2025-01-01", {"id": "a"}, {"id": "b"})
        await service.save_partition(2025, {"2025-01-01": bucket})

        removed = await service.delete_work(2025, "b")

        assert removed.id == "b"
        assert [w.id for w in (await service.get_partition(2025))["2025-01-01"]] == ["a"]

    @pytest.mark.asyncio
    async def test_delete_missing_raises(self, service):
        with pytest.raises(WorkNotFoundError) as exc_info:
            await service.delete_work(2025, "nope")

        assert exc_info.value.details["year"] == 2025

    @pytest.mark.asyncio
    async def test_dates_with_works_sorted_non_empty(self, service, make_work):
        await service.save_partition(2025, {
            "2025-03-01": _items(make_work, "2025-03-01", {}),
            "2025-01-01": _items(make_work, "2025-01-01", {}),
            "2025-02-01": [],
        })

        assert await service.get_dates_with_works(2025) == ["2025-01-01", "2025-03-01"]

    @pytest.mark.asyncio
    async def test_lookup_lookback_is_capped(self, service, make_work):
        await service.save_partition(2020, {"2020-05-01": _items(make_work, "2020-05-01", {"number": "9"})})

        assert await service.lookup(MatchField.NUMBER, "9", 2025, lookback=50) is None
        assert (await service.lookup(MatchField.NUMBER, "9", 2022, lookback=2)).number == "9"

    @pytest.mark.asyncio
    async def test_summary_filters_range(self, service, make_work):
        await service.save_partition(2025, {
            "2025-01-01": _items(make_work, "2025-01-01", {"status": "Completed"}),
            "2025-02-01": _items(make_work, "2025-02-01", {"status": "Pending"}),
        })

        summary = await service.summarize("2025-01-15", "2025-12-31")

        assert summary["years"] == [2025]
        assert summary["total_works"] == 1
        assert summary["by_status"]["Pending"] == 1
