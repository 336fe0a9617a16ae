"""
Work statistics over a date range
"""
from collections import Counter
from typing import Any, Dict

from app.schemas.work import WorkStatus, YearPartition


def summarize_works(partition: YearPartition) -> Dict[str, Any]:
    """
    Counts per status and department for the given buckets.

    ``total_works`` leaves out items on hold, matching the summary page;
    ``dates`` counts buckets that hold at least one item.
    """
    by_status: Counter = Counter()
    by_department: Counter = Counter()
    dates = 0

    for items in partition.values():
        if items:
            dates += 1
        for item in items:
            by_status[item.status] += 1
            by_department[item.department] += 1

    total = sum(count for status, count in by_status.items() if status != WorkStatus.ON_HOLD.value)

    for status in WorkStatus:
        by_status.setdefault(status.value, 0)

    return {
        "total_works": total,
        "dates": dates,
        "by_status": dict(by_status),
        "by_department": dict(by_department),
    }
