"""
Date/year partitioning

Pure helpers mapping dates to year partitions and stitching several
partitions back into one view. No I/O happens here.
"""
from datetime import date, datetime
from typing import Iterable, List, Optional, Set

from app.schemas.work import DATE_FORMAT, YearPartition, is_valid_date_key


def current_year(today: Optional[date] = None) -> int:
    return (today or date.today()).year


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse a YYYY-MM-DD string, None when it is not one"""
    if not is_valid_date_key(value):
        return None
    return datetime.strptime(value, DATE_FORMAT).date()


def year_of(date_string: Optional[str], today: Optional[date] = None) -> int:
    """
    Year partition a date belongs to.

    Unparsable input falls back to the current calendar year; this only
    decides which partition a malformed date is read from or written to.
    """
    parsed = parse_date(date_string)
    if parsed is None:
        return current_year(today)
    return parsed.year


def resolve_year(year: Optional[int], today: Optional[date] = None) -> int:
    """Explicit year if given, otherwise the current calendar year"""
    if year is None:
        return current_year(today)
    return year


def resolve_partitions_for_range(start_date: str, end_date: str,
                                 today: Optional[date] = None) -> Set[int]:
    """
    Every year whose partition may hold dates in [start_date, end_date].

    Same-year ranges resolve to a single year. An inverted range holds no
    dates and resolves to an empty set.
    """
    start = parse_date(start_date)
    end = parse_date(end_date)
    if start is not None and end is not None and start > end:
        return set()

    start_year = start.year if start else current_year(today)
    end_year = end.year if end else current_year(today)
    if start_year == end_year:
        return {start_year}
    if start_year > end_year:
        return set()
    return set(range(start_year, end_year + 1))


def merge_across_years(partitions: Iterable[YearPartition]) -> YearPartition:
    """
    Union of date buckets across partitions.

    Distinct years never share a date key; on a collision the later
    partition wins.
    """
    merged: YearPartition = {}
    for partition in partitions:
        merged.update(partition)
    return merged


def filter_date_range(partition: YearPartition, start_date: str, end_date: str) -> YearPartition:
    """Buckets whose date key lies in [start_date, end_date] (inclusive)"""
    return {
        date_key: items
        for date_key, items in partition.items()
        if start_date <= date_key <= end_date
    }


def lookback_years(year: int, lookback: int) -> List[int]:
    """``year`` and the ``lookback`` years before it, oldest first"""
    if lookback < 0:
        raise ValueError("lookback must be >= 0")
    return list(range(year - lookback, year + 1))
