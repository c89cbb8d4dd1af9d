import importlib
from datetime import datetime, timezone

import pytest

import charamsukh.main


@pytest.mark.asyncio
async def test_health(client):
    res = await client.get('/api/health')
    assert res.status_code == 200
    body = res.json()
    assert body['success'] is True
    assert body['status'] == 'OK'
    assert body['databaseConnected'] is True
    stamp = datetime.fromisoformat(body['timestamp'])
    assert stamp.tzinfo is not None
    assert abs((datetime.now(timezone.utc) - stamp).total_seconds()) < 60


@pytest.mark.asyncio
async def test_unknown_route_uses_error_envelope(client):
    res = await client.get('/api/nowhere')
    assert res.status_code == 404
    assert res.json() == {'success': False, 'message': 'Route not found'}


@pytest.mark.asyncio
async def test_health_reports_lost_database(app, client):
    await app.state.db.close()
    res = await client.get('/api/health')
    assert res.status_code == 200
    assert res.json()['databaseConnected'] is False


def test_importing_main_builds_nothing(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    module = importlib.reload(charamsukh.main)
    assert not hasattr(module, 'app')
    assert not (tmp_path / 'uploads').exists()
