"""
Works API client

Async client for the /works routes. Reads fetch whole year
partitions; writes follow GET-mutate-POST and send only the date buckets
they touched, so a concurrent save of another date is not overwritten.

Usage:
    async with WorksClient("http://localhost:5000", cache=FallbackCache("cache")) as client:
        result = await client.create_work({"number": "12", ...})
        match = await client.find_most_recent_by_number("12")
"""

from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Union

import httpx
from pydantic import ValidationError

from app.core.config import settings
from app.core.exceptions import (
    ApiError,
    AuthenticationError,
    InvalidInputError,
    InvalidTokenError,
    ServerUnreachableError,
    StorageUnavailableError,
    WorkNotFoundError,
)
from app.core.logging_config import logger
from app.modules.works.lookup import SearchScope, WorkLookup
from app.modules.works.partitioning import resolve_year, year_of
from app.modules.works.reconciliation import reconcile
from app.schemas.work import WorkItem, YearPartition, partition_to_json, work_item_list_adapter
from app.utils.fallback_cache import FallbackCache


WorkInput = Union[WorkItem, Dict[str, Any]]


class WriteResult(NamedTuple):
    """Items of the call that ended up stored, and how many duplicates were dropped"""
    works: List[WorkItem]
    removed_count: int


class WorksClient:
    """Async client for the /works routes"""

    def __init__(self,
                 base_url: str = "http://localhost:5000",
                 token: Optional[str] = None,
                 cache: Optional[FallbackCache] = None,
                 timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self.base_url = base_url
        self.cache = cache
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self._lookup = WorkLookup(self._fetch_partition)

    async def __aenter__(self) -> "WorksClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ==================== TRANSPORT ====================

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            logger.warning(f"[WorksClient] {method} {path} failed: {type(e).__name__}")
            raise ServerUnreachableError(self.base_url, type(e).__name__) from e

        if response.is_success:
            return response
        raise self._error_from(response)

    def _error_from(self, response: httpx.Response) -> Exception:
        try:
            error = response.json().get("error", {})
        except (ValueError, AttributeError):
            error = {}
        message = error.get("message") or response.reason_phrase or "Request failed"
        details = error.get("details") or {}

        status_code = response.status_code
        if status_code == 503:
            return StorageUnavailableError(message)
        if status_code == 400:
            return InvalidInputError(message, field=details.get("field"), errors=details.get("errors"))
        if status_code == 401:
            return AuthenticationError(message)
        if status_code == 403:
            return InvalidTokenError(message)
        return ApiError(status_code, message, code=error.get("code", "API_ERROR"))

    # ==================== READS ====================

    async def _fetch_partition(self, year: int) -> YearPartition:
        """GET one year, falling back to the cached copy when storage is down"""
        try:
            response = await self._request("GET", "/works", params={"year": year})
        except StorageUnavailableError as e:
            cached = await self.cache.get(year) if self.cache else None
            if cached is None:
                raise
            logger.warning(f"[WorksClient] Serving cached partition {year}: {e.message}")
            return cached

        data = response.json()
        if not isinstance(data, dict):
            raise ApiError(response.status_code, "Unexpected partition payload")
        try:
            partition = {
                date_key: work_item_list_adapter.validate_python(items)
                for date_key, items in data.items()
            }
        except ValidationError as e:
            raise ApiError(response.status_code, f"Unexpected partition payload: {e.error_count()} error(s)")

        if self.cache:
            await self.cache.put(year, partition)
        return partition

    async def get_all_works_by_year(self, year: Optional[int] = None) -> YearPartition:
        return await self._fetch_partition(resolve_year(year))

    async def get_works_by_date(self, date: str) -> List[WorkItem]:
        partition = await self._fetch_partition(year_of(date))
        return partition.get(date, [])

    async def get_dates_with_works(self, year: Optional[int] = None) -> List[str]:
        partition = await self._fetch_partition(resolve_year(year))
        return sorted(date_key for date_key, items in partition.items() if items)

    async def find_most_recent_by_number(self, number: str, year: Optional[int] = None,
                                         lookback: Optional[int] = None) -> Optional[WorkItem]:
        return await self._lookup.find_most_recent_by_number(number, self._scope(year, lookback))

    async def find_most_recent_by_reference(self, reference: str, year: Optional[int] = None,
                                            lookback: Optional[int] = None) -> Optional[WorkItem]:
        return await self._lookup.find_most_recent_by_reference(reference, self._scope(year, lookback))

    def _scope(self, year: Optional[int], lookback: Optional[int]) -> SearchScope:
        if lookback is None:
            lookback = settings.LOOKUP_LOOKBACK_YEARS
        return SearchScope(
            year=resolve_year(year),
            lookback_years=min(lookback, settings.MAX_LOOKUP_LOOKBACK_YEARS),
        )

    # ==================== WRITES ====================

    async def _save_buckets(self, year: int, buckets: YearPartition) -> None:
        """POST only the touched buckets; the cache is updated either way"""
        try:
            await self._request("POST", "/works", params={"year": year}, json=partition_to_json(buckets))
        finally:
            if self.cache:
                await self.cache.merge(year, buckets)

    async def create_work(self, work: WorkInput) -> WriteResult:
        """Add one item to its date bucket; an exact duplicate is not stored twice"""
        item = _as_work_item(work)
        year = year_of(item.date)
        partition = await self._fetch_partition(year)

        result = reconcile(partition.get(item.date, []), [item])
        await self._save_buckets(year, {item.date: result.deduplicated})
        return WriteResult(_kept(result.deduplicated, [item]), result.removed_count)

    async def update_work(self, work_id: str, work: WorkInput,
                          year: Optional[int] = None) -> WriteResult:
        """
        Replace the item ``work_id`` with ``work``.

        ``year`` is the partition currently holding the item (defaults to
        the year of the new date). A changed date moves the item to the
        new bucket, and to the new year's partition when the year changes;
        that move is two separate saves and is not atomic. The new year is
        written first, so a failure part way leaves a duplicate rather than
        losing the item.
        """
        new_item = _as_work_item(work).model_copy(update={"id": work_id})
        old_year = resolve_year(year) if year is not None else year_of(new_item.date)
        partition = await self._fetch_partition(old_year)

        old_date, index = _locate(partition, work_id)
        if old_date is None:
            raise WorkNotFoundError(work_id, old_year)

        remaining = [w for i, w in enumerate(partition[old_date]) if i != index]
        new_year = year_of(new_item.date)

        if new_item.date == old_date:
            if any(new_item.is_duplicate_of(other) for other in remaining):
                await self._save_buckets(old_year, {old_date: remaining})
                return WriteResult([], 1)
            remaining.insert(index, new_item)
            await self._save_buckets(old_year, {old_date: remaining})
            return WriteResult([new_item], 0)

        if new_year == old_year:
            result = reconcile(partition.get(new_item.date, []), [new_item])
            await self._save_buckets(old_year, {old_date: remaining, new_item.date: result.deduplicated})
            return WriteResult(_kept(result.deduplicated, [new_item]), result.removed_count)

        target = await self._fetch_partition(new_year)
        result = reconcile(target.get(new_item.date, []), [new_item])
        await self._save_buckets(new_year, {new_item.date: result.deduplicated})
        await self._save_buckets(old_year, {old_date: remaining})
        logger.info(f"[WorksClient] Moved work {work_id} from {old_date} to {new_item.date}")
        return WriteResult(_kept(result.deduplicated, [new_item]), result.removed_count)

    async def delete_work(self, work_id: str, year: Optional[int] = None) -> None:
        year = resolve_year(year)
        try:
            await self._request("DELETE", f"/works/{work_id}", params={"year": year})
        except ApiError as e:
            if e.status_code == 404:
                raise WorkNotFoundError(work_id, year) from e
            raise
        if self.cache:
            await self.cache.remove_work(year, work_id)

    async def bulk_create_works(self, works: Iterable[WorkInput]) -> WriteResult:
        """
        Add many items in one GET-mutate-POST per year touched.

        Duplicates are dropped against stored items and within the batch.
        """
        by_year: Dict[int, Dict[str, List[WorkItem]]] = {}
        for work in works:
            item = _as_work_item(work)
            by_year.setdefault(year_of(item.date), {}).setdefault(item.date, []).append(item)

        kept: List[WorkItem] = []
        removed = 0
        for year in sorted(by_year):
            partition = await self._fetch_partition(year)
            buckets: YearPartition = {}
            for date_key, incoming in by_year[year].items():
                result = reconcile(partition.get(date_key, []), incoming)
                buckets[date_key] = result.deduplicated
                kept.extend(_kept(result.deduplicated, incoming))
                removed += result.removed_count
            await self._save_buckets(year, buckets)
            logger.info(f"[WorksClient] Bulk saved {len(buckets)} date bucket(s) into {year}")

        return WriteResult(kept, removed)


def _as_work_item(work: WorkInput) -> WorkItem:
    if isinstance(work, WorkItem):
        return work
    try:
        return WorkItem.model_validate(work)
    except ValidationError as e:
        raise InvalidInputError(
            "Invalid work item",
            errors=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()],
        )


def _locate(partition: YearPartition, work_id: str):
    for date_key, items in partition.items():
        for index, item in enumerate(items):
            if item.id == work_id:
                return date_key, index
    return None, -1


def _kept(bucket: List[WorkItem], incoming: List[WorkItem]) -> List[WorkItem]:
    stored = {id(item) for item in bucket}
    return [item for item in incoming if id(item) in stored]
