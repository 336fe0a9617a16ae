"""
Import Legacy Data Script
=========================
Splits the old single-file store (one ``data.json`` keyed by date, all
years mixed) into one partition file per year under DATA_DIR.

Run with: python -m app.scripts.import_legacy_data path/to/data.json [--dry-run]

Buckets already present in a partition are merged with the imported ones
through duplicate reconciliation, so running the import twice does not
double the data. Items that fail validation are skipped and counted.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, NamedTuple, Tuple

from pydantic import ValidationError

from app.core.logging_config import logger
from app.modules.storage.record_store import RecordStore, ensure_data_dir, get_record_store
from app.modules.works.partitioning import year_of
from app.modules.works.reconciliation import reconcile
from app.schemas.work import WorkItem, YearPartition, is_valid_date_key


class ImportReport(NamedTuple):
    years: Dict[int, int]
    imported: int
    duplicates: int
    skipped: int


def split_by_year(legacy: Dict[str, Any]) -> Tuple[Dict[int, YearPartition], int]:
    """Group legacy buckets by year; returns the partitions and the number of skipped items"""
    partitions: Dict[int, YearPartition] = {}
    skipped = 0

    for date_key, bucket in legacy.items():
        if not is_valid_date_key(date_key) or not isinstance(bucket, list):
            logger.warning(f"Skipping invalid legacy bucket '{date_key}'")
            skipped += len(bucket) if isinstance(bucket, list) else 1
            continue

        items = []
        for raw in bucket:
            if isinstance(raw, dict):
                raw = {**raw, "date": raw.get("date") or date_key}
            try:
                item = WorkItem.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Skipping invalid work item under '{date_key}': {e.error_count()} error(s)")
                skipped += 1
                continue
            if item.date != date_key:
                item = item.model_copy(update={"date": date_key})
            items.append(item)

        partitions.setdefault(year_of(date_key), {})[date_key] = items

    return partitions, skipped


async def import_legacy_data(source: Path, store: RecordStore, dry_run: bool = False) -> ImportReport:
    legacy = json.loads(source.read_text(encoding="utf-8"))
    if not isinstance(legacy, dict):
        raise ValueError(f"{source} does not hold an object keyed by date")

    partitions, skipped = split_by_year(legacy)
    years: Dict[int, int] = {}
    imported = 0
    duplicates = 0

    for year in sorted(partitions):
        incoming = partitions[year]
        counts = {"kept": 0, "removed": 0}

        def merge(partition: YearPartition) -> bool:
            for date_key, items in incoming.items():
                result = reconcile(partition.get(date_key, []), items)
                partition[date_key] = result.deduplicated
                counts["removed"] += result.removed_count
                counts["kept"] += len(items) - result.removed_count
            return True

        if dry_run:
            merge(await store.load(year))
        else:
            await store.update(year, merge)

        years[year] = counts["kept"]
        imported += counts["kept"]
        duplicates += counts["removed"]
        logger.info(
            f"{'[dry-run] ' if dry_run else ''}Year {year}: {counts['kept']} imported, "
            f"{counts['removed']} duplicate(s) dropped, {len(incoming)} date(s)"
        )

    return ImportReport(years=years, imported=imported, duplicates=duplicates, skipped=skipped)


async def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Split a legacy data.json into per-year partitions")
    parser.add_argument("source", type=Path, help="Legacy data.json")
    parser.add_argument("--dry-run", action="store_true", help="Report without writing")
    args = parser.parse_args(argv)

    if not args.source.is_file():
        logger.error(f"Legacy file not found: {args.source}")
        return 1
    if not ensure_data_dir():
        logger.error("Data directory is not available")
        return 1

    try:
        report = await import_legacy_data(args.source, get_record_store(), dry_run=args.dry_run)
    except ValueError as e:
        logger.error(f"Cannot import {args.source}: {e}")
        return 1
    logger.info(
        f"Import finished: {report.imported} imported, {report.duplicates} duplicate(s), "
        f"{report.skipped} skipped across {len(report.years)} year(s)"
    )
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
