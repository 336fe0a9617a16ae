"""
Work Service - operations behind the /works routes
Partition reads and writes go through the RecordStore; everything else
here is pure date/year logic from the sibling modules.
"""

from typing import Any, Dict, List, Optional

from app.core.config import settings
from app.core.exceptions import WorkNotFoundError
from app.core.logging_config import logger
from app.modules.storage.record_store import RecordStore, get_record_store
from app.modules.works.lookup import MatchField, SearchScope, WorkLookup
from app.modules.works.partitioning import (
    filter_date_range,
    merge_across_years,
    resolve_partitions_for_range,
)
from app.modules.works.summary import summarize_works
from app.schemas.work import WorkItem, YearPartition


class WorkService:
    """
    Work item management over year partitions

    - get/save operate on one year at a time
    - delete removes a single item by id from one year
    - lookup and summary may read several years
    """

    def __init__(self, store: RecordStore):
        self.store = store
        self._lookup = WorkLookup(store.load)

    # ========== Partition Operations ==========

    async def get_partition(self, year: int) -> YearPartition:
        return await self.store.load(year)

    async def save_partition(self, year: int, partial: YearPartition) -> YearPartition:
        """Bucket-level merge of ``partial`` into the stored year"""
        if not partial:
            logger.debug(f"Empty save for {year}, nothing to write")
            return await self.store.load(year)
        return await self.store.save(year, partial)

    async def delete_work(self, year: int, work_id: str) -> WorkItem:
        """
        Remove the first item with ``work_id`` from the year partition.

        Raises WorkNotFoundError (and leaves the file untouched) when no
        bucket holds that id.
        """
        removed: List[WorkItem] = []

        def remove(partition: YearPartition) -> bool:
            for items in partition.values():
                for index, item in enumerate(items):
                    if item.id == work_id:
                        removed.append(items.pop(index))
                        return True
            return False

        if not await self.store.update(year, remove):
            raise WorkNotFoundError(work_id, year)

        logger.info(f"Deleted work {work_id} from {removed[0].date}")
        return removed[0]

    async def get_dates_with_works(self, year: int) -> List[str]:
        partition = await self.store.load(year)
        return sorted(date_key for date_key, items in partition.items() if items)

    # ========== Cross-date Operations ==========

    async def lookup(self, field: MatchField, value: str, year: int,
                     lookback: Optional[int] = None) -> Optional[WorkItem]:
        if lookback is None:
            lookback = settings.LOOKUP_LOOKBACK_YEARS
        scope = SearchScope(year=year, lookback_years=min(lookback, settings.MAX_LOOKUP_LOOKBACK_YEARS))
        return await self._lookup.find_most_recent(field, value, scope)

    async def summarize(self, start_date: str, end_date: str) -> Dict[str, Any]:
        """Statistics over [start_date, end_date], reading every year it spans"""
        years = sorted(resolve_partitions_for_range(start_date, end_date))
        partitions = [await self.store.load(year) for year in years]
        in_range = filter_date_range(merge_across_years(partitions), start_date, end_date)

        return {
            "start": start_date,
            "end": end_date,
            "years": years,
            **summarize_works(in_range),
        }


def get_work_service() -> WorkService:
    """FastAPI dependency"""
    return WorkService(get_record_store())
