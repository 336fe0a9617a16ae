# Work items module

from app.modules.works.lookup import MatchField, SearchScope, WorkLookup, most_recent_match
from app.modules.works.partitioning import (
    filter_date_range,
    lookback_years,
    merge_across_years,
    resolve_partitions_for_range,
    resolve_year,
    year_of,
)
from app.modules.works.reconciliation import Reconciliation, reconcile
from app.modules.works.summary import summarize_works

__all__ = [
    # Partitioning
    "year_of",
    "resolve_year",
    "resolve_partitions_for_range",
    "merge_across_years",
    "filter_date_range",
    "lookback_years",
    # Reconciliation
    "Reconciliation",
    "reconcile",
    # Lookup
    "MatchField",
    "SearchScope",
    "WorkLookup",
    "most_recent_match",
    # Summary
    "summarize_works",
]
