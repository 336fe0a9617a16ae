"""
Local fallback copy of year partitions for the works client.

The client stores every partition it reads and every bucket it writes
here. When the server answers 503 or cannot be reached, reads are served
from this copy so the UI stays usable. Cache writes are best-effort: a
failure is logged and never hides the original error from the caller.
"""

import json
import uuid
from pathlib import Path
from typing import Optional, Union

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from app.core.logging_config import logger
from app.schemas.work import YearPartition, partition_to_json, work_item_list_adapter


class FallbackCache:
    """One JSON file per year under ``cache_dir``"""

    def __init__(self, cache_dir: Union[str, Path]):
        self.cache_dir = Path(cache_dir)

    def _path(self, year: int) -> Path:
        return self.cache_dir / f"works_{year}.json"

    async def get(self, year: int) -> Optional[YearPartition]:
        """Cached partition, or None when nothing usable is stored"""
        try:
            async with aiofiles.open(self._path(year), "r", encoding="utf-8") as f:
                raw = await f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"[FallbackCache] Cannot read cached partition {year}: {e}")
            return None

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("top level is not an object")
            return {
                date_key: work_item_list_adapter.validate_python(items)
                for date_key, items in data.items()
            }
        except (ValueError, ValidationError) as e:
            logger.warning(f"[FallbackCache] Ignoring unreadable cached partition {year}: {e}")
            return None

    async def put(self, year: int, partition: YearPartition) -> bool:
        """Replace the cached partition; False when the write failed"""
        path = self._path(year)
        tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.tmp")
        try:
            await aiofiles.os.makedirs(self.cache_dir, exist_ok=True)
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(partition_to_json(partition), ensure_ascii=False))
            await aiofiles.os.replace(tmp_path, path)
        except OSError as e:
            logger.warning(f"[FallbackCache] Cannot store partition {year}: {e}")
            return False
        return True

    async def merge(self, year: int, buckets: YearPartition) -> bool:
        """Apply written buckets to the cached partition (bucket-level replace)"""
        partition = await self.get(year) or {}
        partition.update(buckets)
        return await self.put(year, partition)

    async def remove_work(self, year: int, work_id: str) -> bool:
        partition = await self.get(year)
        if partition is None:
            return False
        for items in partition.values():
            for index, item in enumerate(items):
                if item.id == work_id:
                    items.pop(index)
                    return await self.put(year, partition)
        return False

    async def clear(self, year: int) -> None:
        try:
            await aiofiles.os.remove(self._path(year))
        except FileNotFoundError:
            pass

