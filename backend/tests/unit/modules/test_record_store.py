"""
Unit Tests for the Record Store
Tests for: load/save semantics, failure classification, atomic writes
"""
import asyncio
import json
from pathlib import Path

import aiofiles.os
import pytest

from app.core.exceptions import MalformedContentError, StorageUnavailableError
from app.modules.storage.record_store import RecordStore
from app.schemas.work import WorkItem


def _bucket(make_work, date, count=1):
    return [WorkItem.model_validate(make_work(date=date)) for _ in range(count)]


def _read_file(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


class TestLoad:
    """Test reading partitions"""

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, store):
        assert await store.load(2025) == {}
        assert not store.partition_path(2025).exists()

    @pytest.mark.asyncio
    async def test_missing_directory_is_unavailable(self, tmp_path):
        store = RecordStore(tmp_path / "not-mounted")

        with pytest.raises(StorageUnavailableError):
            await store.load(2025)

    @pytest.mark.asyncio
    async def test_reads_stored_items(self, store, make_work):
        work = make_work(date="2025-06-01")
        store.partition_path(2025).write_text(json.dumps({"2025-06-01": [work]}), encoding="utf-8")

        partition = await store.load(2025)

        assert partition["2025-06-01"][0].id == work["id"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["{not json", "[1, 2]", "\"text\""])
    async def test_malformed_file_loads_as_empty(self, store, content):
        store.partition_path(2025).write_text(content, encoding="utf-8")

        assert await store.load(2025) == {}

    @pytest.mark.asyncio
    async def test_malformed_file_raises_on_strict_read(self, store):
        store.partition_path(2025).write_text("{not json", encoding="utf-8")

        with pytest.raises(MalformedContentError):
            await store.read(2025)

    @pytest.mark.asyncio
    async def test_empty_file_is_empty_partition(self, store):
        store.partition_path(2025).write_text("", encoding="utf-8")

        assert await store.read(2025) == {}

    @pytest.mark.asyncio
    async def test_invalid_items_and_buckets_dropped(self, store, make_work):
        good = make_work(date="2025-06-01")
        store.partition_path(2025).write_text(json.dumps({
            "2025-06-01": [good, {"number": "only"}],
            "not-a-date": [good],
            "2025-06-02": "not a list",
        }), encoding="utf-8")

        partition = await store.load(2025)

        assert list(partition) == ["2025-06-01"]
        assert [w.id for w in partition["2025-06-01"]] == [good["id"]]


class TestSave:
    """Test bucket-level merge on save"""

    @pytest.mark.asyncio
    async def test_creates_partition_file(self, store, make_work):
        bucket = _bucket(make_work, "2025-06-01")

        merged = await store.save(2025, {"2025-06-01": bucket})

        assert merged == {"2025-06-01": bucket}
        assert _read_file(store.partition_path(2025))["2025-06-01"][0]["id"] == bucket[0].id

    @pytest.mark.asyncio
    async def test_unrelated_dates_untouched(self, store, make_work):
        first = _bucket(make_work, "2025-06-01", 2)
        second = _bucket(make_work, "2025-06-02")
        await store.save(2025, {"2025-06-01": first})

        await store.save(2025, {"2025-06-02": second})

        stored = await store.load(2025)
        assert stored["2025-06-01"] == first
        assert stored["2025-06-02"] == second

    @pytest.mark.asyncio
    async def test_sent_bucket_replaces_stored_bucket(self, store, make_work):
        await store.save(2025, {"2025-06-01": _bucket(make_work, "2025-06-01", 3)})
        replacement = _bucket(make_work, "2025-06-01")

        await store.save(2025, {"2025-06-01": replacement})

        assert (await store.load(2025))["2025-06-01"] == replacement

    @pytest.mark.asyncio
    async def test_empty_bucket_kept(self, store, make_work):
        await store.save(2025, {"2025-06-01": _bucket(make_work, "2025-06-01")})

        await store.save(2025, {"2025-06-01": []})

        assert _read_file(store.partition_path(2025)) == {"2025-06-01": []}

    @pytest.mark.asyncio
    async def test_years_are_isolated(self, store, make_work):
        await store.save(2024, {"2024-12-31": _bucket(make_work, "2024-12-31")})
        before = store.partition_path(2024).read_bytes()

        await store.save(2025, {"2025-01-01": _bucket(make_work, "2025-01-01")})

        assert store.partition_path(2024).read_bytes() == before

    @pytest.mark.asyncio
    async def test_file_is_indented_utf8(self, store, make_work):
        bucket = [WorkItem.model_validate(make_work(date="2025-06-01", description="Vérification pompe"))]

        await store.save(2025, {"2025-06-01": bucket})

        text = store.partition_path(2025).read_text(encoding="utf-8")
        assert "Vérification pompe" in text
        assert text.startswith("{\n  ")

    @pytest.mark.asyncio
    async def test_no_temp_files_left(self, store, data_dir, make_work):
        await store.save(2025, {"2025-06-01": _bucket(make_work, "2025-06-01")})

        assert [p.name for p in data_dir.iterdir()] == ["works_2025.json"]

    @pytest.mark.asyncio
    async def test_malformed_file_quarantined_then_replaced(self, store, data_dir, make_work):
        store.partition_path(2025).write_text("{broken", encoding="utf-8")
        bucket = _bucket(make_work, "2025-06-01")

        await store.save(2025, {"2025-06-01": bucket})

        names = sorted(p.name for p in data_dir.iterdir())
        assert "works_2025.json" in names
        assert any(name.startswith("works_2025.json.corrupt-") for name in names)
        assert list(_read_file(store.partition_path(2025))) == ["2025-06-01"]

    @pytest.mark.asyncio
    async def test_save_to_missing_directory_is_unavailable(self, tmp_path, make_work):
        store = RecordStore(tmp_path / "gone")

        with pytest.raises(StorageUnavailableError):
            await store.save(2025, {"2025-06-01": _bucket(make_work, "2025-06-01")})

    @pytest.mark.asyncio
    async def test_failed_replace_keeps_previous_file(self, store, data_dir, make_work, monkeypatch):
        await store.save(2025, {"2025-06-01": _bucket(make_work, "2025-06-01")})
        before = store.partition_path(2025).read_bytes()

        async def failing_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(aiofiles.os, "replace", failing_replace)

        with pytest.raises(StorageUnavailableError):
            await store.save(2025, {"2025-06-02": _bucket(make_work, "2025-06-02")})

        assert store.partition_path(2025).read_bytes() == before
        assert [p.name for p in data_dir.iterdir()] == ["works_2025.json"]

    @pytest.mark.asyncio
    async def test_concurrent_saves_of_different_dates_both_land(self, store, make_work):
        first = _bucket(make_work, "2025-06-01")
        second = _bucket(make_work, "2025-06-02")

        await asyncio.gather(
            store.save(2025, {"2025-06-01": first}),
            store.save(2025, {"2025-06-02": second}),
        )

        stored = await store.load(2025)
        assert stored["2025-06-01"] == first
        assert stored["2025-06-02"] == second


class TestUpdate:
    @pytest.mark.asyncio
    async def test_unchanged_partition_not_written(self, store):
        changed = await store.update(2025, lambda partition: False)

        assert changed is False
        assert not store.partition_path(2025).exists()

    @pytest.mark.asyncio
    async def test_unchanged_malformed_file_not_quarantined(self, store, data_dir):
        store.partition_path(2025).write_text("[1, 2]", encoding="utf-8")

        assert await store.update(2025, lambda partition: False) is False
        assert [p.name for p in data_dir.iterdir()] == ["works_2025.json"]


class TestHealth:
    @pytest.mark.asyncio
    async def test_healthy(self, store):
        result = await store.check_health()

        assert result["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_unhealthy_when_missing(self, tmp_path):
        result = await RecordStore(tmp_path / "missing").check_health()

        assert result["status"] == "unhealthy"
