"""
Unit Tests for health endpoints
"""
import pytest
from httpx import AsyncClient

from app.api.v1.endpoints import health
from app.modules.storage.record_store import RecordStore


class TestHealth:
    @pytest.mark.asyncio
    async def test_simple_health(self, client: AsyncClient):
        response = await client.get('/health')

        assert response.status_code == 200
        assert response.json()['status'] == 'healthy'

    @pytest.mark.asyncio
    async def test_liveness(self, client: AsyncClient):
        response = await client.get('/health/live')

        assert response.json()['status'] == 'alive'

    @pytest.mark.asyncio
    async def test_ready(self, client: AsyncClient, store, monkeypatch):
        async def database_ok():
            return {'status': 'healthy', 'tables_ready': True}

        monkeypatch.setattr(health, 'get_record_store', lambda: store)
        monkeypatch.setattr(health, 'check_database', database_ok)

        response = await client.get('/health/ready')

        assert response.status_code == 200
        assert response.json()['checks']['storage']['status'] == 'healthy'

    @pytest.mark.asyncio
    async def test_not_ready_without_data_dir(self, client: AsyncClient, tmp_path, monkeypatch):
        async def database_ok():
            return {'status': 'healthy', 'tables_ready': True}

        monkeypatch.setattr(health, 'get_record_store', lambda: RecordStore(tmp_path / 'missing'))
        monkeypatch.setattr(health, 'check_database', database_ok)

        response = await client.get('/health/ready')

        assert response.status_code == 503
        assert response.json()['status'] == 'not_ready'

    @pytest.mark.asyncio
    async def test_request_id_header(self, client: AsyncClient):
        response = await client.get('/health', headers={'X-Request-ID': 'abc123'})

        assert response.headers['X-Request-ID'] == 'abc123'
        assert response.headers['X-Content-Type-Options'] == 'nosniff'
