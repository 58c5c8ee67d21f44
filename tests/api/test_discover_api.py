import pytest

from taalmeet.settings import settings

HEADERS = {"X-User-Id": "u1"}

NEARBY = [
	{
		"userId": "anna",
		"displayName": "Anna",
		"distanceKm": 0.8,
		"isOnline": True,
		"matchScore": 92,
		"languages": [{"language": "Spanish", "role": "teaching"}],
		"lat": 52.075,
		"lng": 4.305,
	},
	{"id": "bas", "display_name": "Bas", "distance": 4.0, "is_online": False, "match_score": 40},
	{"id": "cor", "name": "Cor", "distance": 30.0, "isOnline": True},
]


@pytest.mark.asyncio
async def test_nearby_view_filters_and_reports_online_nearby(api_client, fake_backend):
	fake_backend.queue("GET", "/partners/nearby", NEARBY)

	resp = await api_client.get("/discover/nearby", params={"max_distance_km": 5}, headers=HEADERS)

	assert resp.status_code == 200
	body = resp.json()
	assert body["status"] == "ok"
	assert [p["id"] for p in body["partners"]] == ["anna", "bas"]
	assert [p["id"] for p in body["online_nearby"]] == ["anna"]
	assert body["stats"]["total"] == 2
	assert body["stats"]["high_match"] == 1
	assert body["filters_active"] is True
	assert resp.headers.get("X-Request-Id")


@pytest.mark.asyncio
async def test_nearby_view_search_and_sort(api_client, fake_backend):
	fake_backend.queue("GET", "/partners/nearby", NEARBY)

	resp = await api_client.get("/discover/nearby", params={"q": "spa"}, headers=HEADERS)
	assert [p["id"] for p in resp.json()["partners"]] == ["anna"]

	resp = await api_client.get("/discover/nearby", params={"sort": "distance"}, headers=HEADERS)
	assert [p["id"] for p in resp.json()["partners"]] == ["anna", "bas", "cor"]
	assert len(fake_backend.calls("GET", "/partners/nearby")) == 1


@pytest.mark.asyncio
async def test_nearby_view_scores_partners_for_the_viewer(api_client, fake_backend):
	fake_backend.queue("GET", "/partners/nearby", NEARBY)

	resp = await api_client.get(
		"/discover/nearby",
		params={"learning": "Spanish", "teaching": "Dutch", "sort": "match"},
		headers=HEADERS,
	)

	scores = {p["id"]: p["match_score"] for p in resp.json()["partners"]}
	assert scores == {"anna": 92, "bas": 40, "cor": 0}


@pytest.mark.asyncio
async def test_nearby_view_reports_network_failure_as_error(api_client, fake_backend):
	fake_backend.queue("GET", "/partners/nearby", 503)

	resp = await api_client.get("/discover/nearby", headers=HEADERS)

	assert resp.status_code == 200
	body = resp.json()
	assert body["status"] == "error"
	assert body["partners"] == []
	assert body["error"].startswith("Unable to load nearby partners")
	assert len(fake_backend.calls("GET", "/partners/nearby")) == 1 + settings.query_max_retries


@pytest.mark.asyncio
async def test_nearby_view_reports_empty_result(api_client, fake_backend):
	fake_backend.queue("GET", "/partners/nearby", [])

	body = (await api_client.get("/discover/nearby", headers=HEADERS)).json()

	assert body["status"] == "empty"
	assert body["error"] is None
	assert body["filters_active"] is False


@pytest.mark.asyncio
async def test_missing_user_is_rejected(api_client, fake_backend):
	resp = await api_client.get("/discover/nearby")
	assert resp.status_code == 401
	body = resp.json()
	assert body["detail"] == "missing_user"
	assert "request_id" in body


@pytest.mark.asyncio
async def test_header_only_auth_is_refused_outside_dev(api_client, fake_backend):
	settings.environment = "production"
	resp = await api_client.get("/discover/nearby", headers=HEADERS)
	assert resp.status_code == 401
	assert resp.json()["detail"] == "invalid_token"

	fake_backend.queue("GET", "/partners/nearby", [])
	resp = await api_client.get(
		"/discover/nearby",
		headers={**HEADERS, "Authorization": "Bearer provider-token"},
	)
	assert resp.status_code == 200
	[request] = fake_backend.calls("GET", "/partners/nearby")
	assert request.headers["Authorization"] == "Bearer provider-token"


@pytest.mark.asyncio
async def test_invalid_query_is_a_validation_error(api_client, fake_backend):
	resp = await api_client.get("/discover/nearby", params={"availability": "sometimes"}, headers=HEADERS)
	assert resp.status_code == 422
	body = resp.json()
	assert body["detail"] == "validation_error"
	assert body["errors"]


@pytest.mark.asyncio
async def test_validation_error_omits_field_detail_in_production(api_client, fake_backend):
	settings.environment = "production"
	resp = await api_client.get(
		"/discover/nearby",
		params={"availability": "sometimes"},
		headers={**HEADERS, "Authorization": "Bearer provider-token"},
	)
	assert resp.status_code == 422
	body = resp.json()
	assert body["detail"] == "validation_error"
	assert "errors" not in body
	assert "request_id" in body


@pytest.mark.asyncio
async def test_feed_view_merges_sections_first_wins(api_client, fake_backend):
	fake_backend.queue(
		"GET",
		"/discover/feed",
		{
			"recommendedUsers": [{"id": "a", "distance": 1.0, "isOnline": False}],
			"activeUsers": [{"id": "a", "distance": 1.0, "isOnline": True}, {"id": "b", "distance": 1.5, "isOnline": True}],
			"newUsers": [{"id": "c", "distance": 80.0}, {"id": "d", "distance": 2.0}],
			"sessions": [],
		},
	)

	resp = await api_client.get("/discover/feed", params={"radius_km": 10}, headers=HEADERS)

	body = resp.json()
	assert body["status"] == "ok"
	assert [p["id"] for p in body["partners"]] == ["a", "b", "d"]
	assert [p["id"] for p in body["online_nearby"]] == ["b"]
	[request] = fake_backend.calls("GET", "/discover/feed")
	assert request.url.params["limit"] == "50"


@pytest.mark.asyncio
async def test_feed_view_failure_is_error(api_client, fake_backend):
	fake_backend.queue("GET", "/discover/feed", 500)

	body = (await api_client.get("/discover/feed", headers=HEADERS)).json()

	assert body["status"] == "error"
	assert body["error"] == "Something went wrong. Please try again."
	assert len(fake_backend.calls("GET", "/discover/feed")) == 1


@pytest.mark.asyncio
async def test_feed_view_treats_null_sections_as_empty(api_client, fake_backend):
	fake_backend.queue(
		"GET",
		"/discover/feed",
		{"recommendedUsers": None, "activeUsers": [{"id": "a", "distance": 1.0}], "newUsers": None, "sessions": None},
	)

	resp = await api_client.get("/discover/feed", headers=HEADERS)

	assert resp.status_code == 200
	body = resp.json()
	assert body["status"] == "ok"
	assert [p["id"] for p in body["partners"]] == ["a"]


@pytest.mark.asyncio
async def test_feed_view_malformed_section_is_error(api_client, fake_backend):
	fake_backend.queue("GET", "/discover/feed", {"recommendedUsers": "oops", "activeUsers": []})

	resp = await api_client.get("/discover/feed", headers=HEADERS)

	assert resp.status_code == 200
	body = resp.json()
	assert body["status"] == "error"
	assert body["error"] == "Something went wrong. Please try again."


@pytest.mark.asyncio
async def test_map_view_clusters_around_given_position(api_client, fake_backend):
	fake_backend.queue(
		"GET",
		"/partners/nearby",
		[
			{"id": "a", "distance": 0.1, "lat": 52.0705, "lng": 4.3007},
			{"id": "b", "distance": 0.2, "lat": 52.0706, "lng": 4.3008},
			{"id": "c", "distance": 20.0, "lat": 52.25, "lng": 4.3007},
		],
	)

	resp = await api_client.get(
		"/discover/map",
		params={"lat": 52.0705, "lng": 4.3007, "radius_km": 25},
		headers=HEADERS,
	)

	body = resp.json()
	assert body["status"] == "ok"
	assert body["origin"] == {"lat": 52.0705, "lng": 4.3007, "degraded": False}
	by_kind = {m["kind"]: m for m in body["markers"]}
	assert by_kind["cluster"]["count"] == 2
	assert sorted(by_kind["cluster"]["partner_ids"]) == ["a", "b"]
	assert by_kind["marker"]["partner_ids"] == ["c"]


@pytest.mark.asyncio
async def test_map_view_without_position_uses_default(api_client, fake_backend):
	fake_backend.queue("GET", "/partners/nearby", [])

	body = (await api_client.get("/discover/map", headers=HEADERS)).json()

	assert body["status"] == "empty"
	assert body["origin"] == {"lat": settings.default_lat, "lng": settings.default_lng, "degraded": True}
	assert body["markers"] == []
	assert body["radius_presets"] == [5.0, 10.0, 25.0, 50.0]


@pytest.mark.asyncio
async def test_map_view_rejects_bad_coordinates(api_client, fake_backend):
	resp = await api_client.get("/discover/map", params={"lat": 95, "lng": 4.0}, headers=HEADERS)
	assert resp.status_code == 400
	body = resp.json()
	assert body["detail"] == "validation_error"
	assert "latitude" in body["message"]
	assert fake_backend.requests == []
