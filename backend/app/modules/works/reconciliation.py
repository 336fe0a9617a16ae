"""
Duplicate reconciliation

Two work items are duplicates when number, reference, description,
department, status, remarks and date are all equal; the id is ignored.
"""
from typing import List, NamedTuple, Sequence

from app.schemas.work import WorkItem


class Reconciliation(NamedTuple):
    deduplicated: List[WorkItem]
    removed_count: int


def reconcile(existing_items: Sequence[WorkItem],
              incoming_items: Sequence[WorkItem]) -> Reconciliation:
    """
    Drop duplicates from ``existing_items + incoming_items``.

    Existing items come first, so the first occurrence of a duplicate
    (usually the stored one) is the one kept. Relative order of kept
    items is preserved and
    ``len(deduplicated) + removed_count == len(existing) + len(incoming)``.

    Callers editing an item must remove its old version from
    ``existing_items`` before calling, otherwise an unchanged edit would
    be dropped as a duplicate of itself.
    """
    seen = set()
    kept: List[WorkItem] = []
    removed = 0

    for item in [*existing_items, *incoming_items]:
        key = item.duplicate_key()
        if key in seen:
            removed += 1
            continue
        seen.add(key)
        kept.append(item)

    return Reconciliation(deduplicated=kept, removed_count=removed)
