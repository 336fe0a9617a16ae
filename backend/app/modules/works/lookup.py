"""
Cross-date lookup for auto-fill

Finds the most recently dated work item whose number or reference equals
the typed value (case-insensitive, whole value). The scan is bounded to
the requested year plus a short look-back window, one partition load per
year.
"""
import enum
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, List, Optional

from app.core.logging_config import logger
from app.modules.works.partitioning import lookback_years
from app.schemas.work import WorkItem, YearPartition


PartitionLoader = Callable[[int], Awaitable[YearPartition]]


class MatchField(str, enum.Enum):
    NUMBER = "number"
    REFERENCE = "reference"


@dataclass(frozen=True)
class SearchScope:
    """Years scanned by a lookup: ``year`` and ``lookback_years`` before it"""
    year: int
    lookback_years: int = 0

    def __post_init__(self):
        if self.lookback_years < 0:
            raise ValueError("lookback_years must be >= 0")

    def years(self) -> List[int]:
        return lookback_years(self.year, self.lookback_years)


def most_recent_match(partitions: Iterable[YearPartition], field: MatchField,
                      value: str) -> Optional[WorkItem]:
    """
    Most recent item whose ``field`` equals ``value`` ignoring case.

    The greatest date key wins. Within that date the first matching item
    in bucket order is returned; ties are stable only as long as the
    stored bucket order is.
    """
    if not value.strip():
        return None
    needle = value.lower()

    best: Optional[WorkItem] = None
    best_date = ""
    for partition in partitions:
        for date_key, items in partition.items():
            found = next(
                (item for item in items if getattr(item, field.value).lower() == needle),
                None,
            )
            if found is not None and (best is None or date_key > best_date):
                best = found
                best_date = date_key
    return best


class WorkLookup:
    """
    Lookup engine over any partition loader.

    The server plugs in ``RecordStore.load``; the works client plugs in
    its cached HTTP fetch, so auto-fill keeps working in degraded mode.
    """

    def __init__(self, loader: PartitionLoader):
        self._load = loader

    async def find_most_recent(self, field: MatchField, value: str,
                               scope: SearchScope) -> Optional[WorkItem]:
        if not value or not value.strip():
            return None

        partitions = []
        for year in scope.years():
            partitions.append(await self._load(year))

        match = most_recent_match(partitions, field, value)
        logger.debug(
            f"Lookup {field.value}={value!r} over {scope.years()}: "
            f"{'found ' + match.id if match else 'no match'}"
        )
        return match

    async def find_most_recent_by_number(self, number: str,
                                         scope: SearchScope) -> Optional[WorkItem]:
        return await self.find_most_recent(MatchField.NUMBER, number, scope)

    async def find_most_recent_by_reference(self, reference: str,
                                            scope: SearchScope) -> Optional[WorkItem]:
        return await self.find_most_recent(MatchField.REFERENCE, reference, scope)
