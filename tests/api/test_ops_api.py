import pytest


@pytest.mark.asyncio
async def test_health(api_client):
	resp = await api_client.get("/health")
	assert resp.status_code == 200
	assert resp.json() == {"ok": True}


@pytest.mark.asyncio
async def test_metrics_exposes_discovery_counters(api_client):
	resp = await api_client.get("/metrics")
	assert resp.status_code == 200
	assert "taalmeet_nearby_fetches" in resp.text
	assert "taalmeet_location_pushes" in resp.text
