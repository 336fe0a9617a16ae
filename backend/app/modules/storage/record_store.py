"""
Record Store - one JSON file per year of work items

LAYOUT:
    <DATA_DIR>/works_2025.json   {"2025-06-01": [WorkItem, ...], ...}
    <DATA_DIR>/works_2026.json

RULES:
    - A missing file is an empty partition, not an error
    - An unreachable DATA_DIR (missing mount, permission, disk error)
      raises StorageUnavailableError
    - A file that does not parse is MalformedContent: reads treat it as
      empty, the next changing write moves it aside and starts afresh
    - save() merges at date-bucket granularity: buckets sent replace the
      stored ones, other dates are left alone
    - Writes go to a temp file first and are swapped in with os.replace,
      so a failed write leaves the previous file intact
    - Writing one year never touches another year's file
"""

import asyncio
import json
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, Optional

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from app.core.config import settings
from app.core.exceptions import MalformedContentError, StorageUnavailableError
from app.core.logging_config import logger
from app.schemas.work import WorkItem, YearPartition, is_valid_date_key, partition_to_json


PartitionMutator = Callable[[YearPartition], bool]


class RecordStore:
    """
    Durable storage of year partitions.

    Reads and writes are awaitable file operations. When
    ``serialize_writes`` is on, read-modify-write cycles on the same year
    run one at a time inside this process; concurrent writers in other
    processes still race at file level (last replace wins).
    """

    def __init__(self,
                 data_dir: Path,
                 file_pattern: str = "works_{year}.json",
                 serialize_writes: bool = True):
        self.data_dir = Path(data_dir)
        self.file_pattern = file_pattern
        self.serialize_writes = serialize_writes
        self._locks: Dict[int, asyncio.Lock] = {}

    def partition_path(self, year: int) -> Path:
        return self.data_dir / self.file_pattern.format(year=year)

    @asynccontextmanager
    async def lock(self, year: int) -> AsyncIterator[None]:
        """Per-year write serialization (no-op when disabled)"""
        if not self.serialize_writes:
            yield
            return
        lock = self._locks.setdefault(year, asyncio.Lock())
        async with lock:
            yield

    # ==================== READ ====================

    async def read(self, year: int) -> YearPartition:
        """
        Strict read.

        Raises StorageUnavailableError when the medium is unreachable and
        MalformedContentError when the file does not hold a JSON object.
        """
        await self._ensure_reachable()

        path = self.partition_path(year)
        start = time.perf_counter()
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                raw = await f.read()
        except FileNotFoundError:
            return {}
        except UnicodeDecodeError as e:
            raise MalformedContentError(year, f"not UTF-8 text ({e.reason})")
        except OSError as e:
            logger.error(f"Cannot read partition {year} at {path}: {e}")
            raise StorageUnavailableError(f"Cannot read partition {year}", path=str(path)) from e

        partition = self._parse(year, raw)
        logger.log_storage_event(
            "read", year,
            dates=len(partition),
            items=sum(len(items) for items in partition.values()),
            duration_ms=(time.perf_counter() - start) * 1000,
        )
        return partition

    async def load(self, year: int) -> YearPartition:
        """Read a partition; malformed content is logged and treated as empty"""
        try:
            return await self.read(year)
        except MalformedContentError as e:
            logger.warning(f"{e.message} - serving an empty partition", extra={"event_type": "malformed_partition"})
            return {}

    def _parse(self, year: int, raw: str) -> YearPartition:
        if not raw.strip():
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedContentError(year, f"invalid JSON at line {e.lineno}")

        if not isinstance(data, dict):
            raise MalformedContentError(year, f"top level is {type(data).__name__}, expected object")

        partition: YearPartition = {}
        for date_key, bucket in data.items():
            if not is_valid_date_key(date_key) or not isinstance(bucket, list):
                logger.warning(f"Partition {year}: skipping invalid bucket '{date_key}'")
                continue
            items = []
            for raw_item in bucket:
                try:
                    items.append(WorkItem.model_validate(raw_item))
                except ValidationError as e:
                    logger.warning(
                        f"Partition {year}: dropping invalid work item under '{date_key}': "
                        f"{e.error_count()} error(s)"
                    )
            partition[date_key] = items
        return partition

    # ==================== WRITE ====================

    async def update(self, year: int, mutator: PartitionMutator) -> bool:
        """
        Run one read-modify-write cycle on a partition.

        ``mutator`` edits the loaded partition in place and returns True
        when something changed; only then is the file rewritten. A
        malformed file is moved aside only on that write, so a cycle that
        changes nothing leaves it in place.
        """
        async with self.lock(year):
            malformed = False
            try:
                partition = await self.read(year)
            except MalformedContentError as e:
                logger.warning(f"{e.message} - treating it as empty")
                malformed = True
                partition = {}

            changed = mutator(partition)
            if changed:
                if malformed:
                    await self._quarantine(year)
                await self._write(year, partition)
            return changed

    async def save(self, year: int, partial: YearPartition) -> YearPartition:
        """
        Merge ``partial`` into the stored partition and persist it.

        Buckets present in ``partial`` replace the stored buckets for the
        same dates wholesale; all other dates keep their stored content.
        Returns the merged partition.
        """
        merged: YearPartition = {}

        def merge(partition: YearPartition) -> bool:
            partition.update(partial)
            merged.update(partition)
            return True

        await self.update(year, merge)
        return merged

    async def _write(self, year: int, partition: YearPartition) -> None:
        path = self.partition_path(year)
        tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.tmp")
        content = json.dumps(partition_to_json(partition), indent=2, ensure_ascii=False)

        start = time.perf_counter()
        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(content)
                await f.flush()
            await aiofiles.os.replace(tmp_path, path)
        except OSError as e:
            logger.error(f"Cannot write partition {year} at {path}: {e}")
            await self._discard(tmp_path)
            raise StorageUnavailableError(f"Cannot write partition {year}", path=str(path)) from e

        logger.log_storage_event(
            "write", year,
            dates=len(partition),
            items=sum(len(items) for items in partition.values()),
            duration_ms=(time.perf_counter() - start) * 1000,
        )

    async def _quarantine(self, year: int) -> None:
        """Move a malformed partition file aside so it is not silently lost"""
        path = self.partition_path(year)
        target = path.with_name(f"{path.name}.corrupt-{datetime.utcnow().strftime('%Y%m%d%H%M%S')}")
        try:
            await aiofiles.os.replace(path, target)
            logger.warning(f"Malformed partition {year} moved to {target}")
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageUnavailableError(f"Cannot move malformed partition {year}", path=str(path)) from e

    async def _discard(self, tmp_path: Path) -> None:
        try:
            await aiofiles.os.remove(tmp_path)
        except OSError:
            pass

    # ==================== HEALTH ====================

    async def _ensure_reachable(self) -> None:
        if not await aiofiles.os.path.isdir(self.data_dir):
            logger.error(f"Data directory {self.data_dir} is not reachable")
            raise StorageUnavailableError(
                "Data directory is not reachable",
                path=str(self.data_dir),
            )

    async def check_health(self) -> Dict[str, Any]:
        """Reachability and writability of the data directory"""
        start = time.time()
        try:
            await self._ensure_reachable()
            marker = self.data_dir / f".health-{uuid.uuid4().hex[:8]}"
            async with aiofiles.open(marker, "w") as f:
                await f.write("ok")
            await aiofiles.os.remove(marker)
        except (StorageUnavailableError, OSError) as e:
            return {
                "status": "unhealthy",
                "latency_ms": round((time.time() - start) * 1000, 2),
                "path": str(self.data_dir),
                "error": str(e),
            }
        return {
            "status": "healthy",
            "latency_ms": round((time.time() - start) * 1000, 2),
            "path": str(self.data_dir),
        }


# ==================== SINGLETON ====================

_record_store: Optional[RecordStore] = None


def get_record_store() -> RecordStore:
    """Get the global record store"""
    global _record_store

    if _record_store is None:
        _record_store = RecordStore(
            data_dir=settings.DATA_PATH,
            file_pattern=settings.DATA_FILE_PATTERN,
            serialize_writes=settings.SERIALIZE_PARTITION_WRITES,
        )
        logger.info(f"RecordStore initialized at {_record_store.data_dir}")

    return _record_store


def ensure_data_dir() -> bool:
    """Create DATA_DIR at startup when allowed; report whether it exists"""
    data_path = settings.DATA_PATH
    if settings.CREATE_DATA_DIR:
        try:
            data_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create data directory {data_path}: {e}")
            return False
    return data_path.is_dir()
