from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import exc as sa_exc

from app.errors import LocationSyncError, StoreTimeout
from app.location_sync import SyncResult
from app.main import app
from app.routes import get_cache, get_db
from app.search import SearchPage, SortMode, TailorMatch
from conftest import scalar_result


@pytest.fixture
def fake_cache():
    cache = MagicMock()
    cache.lookup = AsyncMock(return_value=("tailor_search:v0:key", None))
    cache.store = AsyncMock()
    cache.invalidate = AsyncMock()
    return cache


@pytest.fixture
def client(mock_session, fake_cache):
    async def _db():
        yield mock_session

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_cache] = lambda: fake_cache
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestSearchEndpoint:
    def test_coordinates_search_reports_distance(self, client, make_tailor, fake_cache):
        tailor = make_tailor(1, latitude=12.97, longitude=77.59)
        page = SearchPage(items=[TailorMatch(tailor, 0.12345)], total=1)

        with patch("app.routes.search_tailors", AsyncMock(return_value=page)) as search:
            r = client.get(
                "/tailors",
                params={"latitude": 12.97, "longitude": 77.59, "maxDistanceKm": 1, "skill": ["ALTERATIONS"]},
            )

        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        assert body["sortBy"] == "distance"
        assert body["data"][0]["id"] == 1
        assert body["data"][0]["distanceKm"] == 0.123
        assert body["pagination"] == {"page": 1, "limit": 12, "total": 1, "totalPages": 1}

        query = search.await_args.args[1]
        assert query.max_distance_km == 1
        assert query.skills == ("ALTERATIONS",)
        fake_cache.store.assert_awaited_once()

    def test_tailor_without_point_has_null_distance(self, client, make_tailor):
        page = SearchPage(items=[TailorMatch(make_tailor(2), None)], total=1)

        with patch("app.routes.search_tailors", AsyncMock(return_value=page)):
            r = client.get("/tailors", params={"referenceZone": "MG_ROAD"})

        item = r.json()["data"][0]
        assert "distanceKm" in item
        assert item["distanceKm"] is None

    def test_no_reference_omits_distance_and_reports_recency(self, client, make_tailor):
        page = SearchPage(items=[TailorMatch(make_tailor(3), None)], total=1)

        with patch("app.routes.search_tailors", AsyncMock(return_value=page)):
            r = client.get("/tailors", params={"skill": "HEMMING", "sortBy": "distance"})

        body = r.json()
        assert body["sortBy"] == "recency"
        assert "distanceKm" not in body["data"][0]
        assert "createdAt" in body["data"][0]

    @pytest.mark.parametrize(
        "params, expected",
        [
            ({"skills": "HEMMING"}, ("HEMMING",)),
            ({"skills": ["HEMMING", "EMBROIDERY"]}, ("HEMMING", "EMBROIDERY")),
            ({"skill": "HEMMING", "skills": ["EMBROIDERY", "HEMMING"]}, ("HEMMING", "EMBROIDERY")),
        ],
    )
    def test_plural_skills_parameter_filters(self, client, params, expected):
        page = SearchPage(items=[], total=0)

        with patch("app.routes.search_tailors", AsyncMock(return_value=page)) as search:
            r = client.get("/tailors", params={**params, "maxDistanceKm": 5})

        assert r.status_code == 200
        assert search.await_args.args[1].skills == expected

    def test_unknown_plural_skill_is_rejected(self, client):
        with patch("app.routes.search_tailors", AsyncMock()) as search:
            r = client.get("/tailors", params={"skills": "KNITTING"})

        assert r.status_code == 422
        search.assert_not_awaited()

    def test_unknown_zone_is_an_empty_success(self, client, mock_session):
        r = client.get("/tailors", params={"referenceZone": "ATLANTIS", "maxDistanceKm": 5})

        assert r.status_code == 200
        assert r.json()["data"] == []
        assert r.json()["pagination"]["total"] == 0
        mock_session.execute.assert_not_awaited()

    def test_cached_response_short_circuits(self, client, fake_cache):
        fake_cache.lookup.return_value = ("key", {"success": True, "data": [], "cached": True})

        with patch("app.routes.search_tailors", AsyncMock()) as search:
            r = client.get("/tailors")

        assert r.json()["cached"] is True
        search.assert_not_awaited()

    @pytest.mark.parametrize(
        "params",
        [
            {"latitude": 12.97, "longitude": 77.59, "maxDistanceKm": -2},
            {"latitude": 12.97},
            {"referenceZone": "MG_ROAD", "latitude": 12.97, "longitude": 77.59},
            {"skill": "KNITTING"},
            {"sortBy": "closest"},
            {"minExperience": 9, "maxExperience": 3},
        ],
    )
    def test_malformed_queries_are_rejected(self, client, params):
        with patch("app.routes.search_tailors", AsyncMock()) as search:
            r = client.get("/tailors", params=params)

        assert r.status_code == 422
        search.assert_not_awaited()

    def test_store_timeout_is_retryable(self, client):
        with patch("app.routes.search_tailors", AsyncMock(side_effect=StoreTimeout("statement timeout"))):
            r = client.get("/tailors", params={"referenceZone": "MG_ROAD"})

        assert r.status_code == 503
        assert r.headers["Retry-After"] == "1"


class TestTailorWrites:
    def test_register_derives_point_and_invalidates_cache(self, client, mock_session, fake_cache):
        added = []
        mock_session.execute.return_value = scalar_result(None)
        mock_session.add = MagicMock(side_effect=added.append)
        mock_session.flush = AsyncMock(side_effect=lambda: setattr(added[0], "id", 42))

        with patch("app.routes.sync_location_points", AsyncMock(return_value=SyncResult(1))) as sync:
            r = client.post(
                "/tailors",
                json={
                    "email": "new@example.com",
                    "skills": ["HEMMING"],
                    "location": "MG_ROAD",
                    "latitude": 12.97,
                    "longitude": 77.59,
                },
            )

        assert r.status_code == 201
        assert r.json()["id"] == 42
        assert added[0].skills == ["HEMMING"]
        assert sync.await_args.kwargs == {"tailor_ids": [42], "commit": False}
        mock_session.commit.assert_awaited_once()
        fake_cache.invalidate.assert_awaited_once()

    def test_register_duplicate_email(self, client, mock_session, make_tailor):
        mock_session.execute.return_value = scalar_result(make_tailor(1))

        r = client.post("/tailors", json={"email": "tailor1@example.com"})

        assert r.status_code == 400

    def test_register_losing_a_duplicate_email_race(self, client, mock_session, fake_cache):
        mock_session.execute.return_value = scalar_result(None)
        mock_session.add = MagicMock()
        mock_session.flush = AsyncMock(
            side_effect=sa_exc.IntegrityError("INSERT", {}, Exception("duplicate key value"))
        )

        with patch("app.routes.sync_location_points", AsyncMock()) as sync:
            r = client.post("/tailors", json={"email": "racer@example.com"})

        assert r.status_code == 400
        assert r.json()["detail"] == "Tailor already exists"
        mock_session.rollback.assert_awaited_once()
        sync.assert_not_awaited()
        fake_cache.invalidate.assert_not_awaited()

    def test_location_update_invalidates_and_rederives(self, client, mock_session, make_tailor, fake_cache):
        tailor = make_tailor(5, latitude=12.0, longitude=77.0)
        tailor.location_point = "POINT"
        mock_session.execute.return_value = scalar_result(tailor)

        with patch("app.routes.sync_location_points", AsyncMock(return_value=SyncResult(1))) as sync:
            r = client.put("/tailors/5/location", json={"latitude": 12.97, "longitude": 77.59})

        assert r.status_code == 200
        assert tailor.latitude == 12.97
        assert tailor.longitude == 77.59
        assert tailor.location_point is None
        assert sync.await_args.kwargs == {"tailor_ids": [5], "commit": False}
        fake_cache.invalidate.assert_awaited_once()

    def test_location_update_unknown_tailor(self, client, mock_session):
        mock_session.execute.return_value = scalar_result(None)

        r = client.put("/tailors/99/location", json={"latitude": 1.0, "longitude": 1.0})

        assert r.status_code == 404

    def test_location_update_rejects_out_of_range(self, client):
        r = client.put("/tailors/1/location", json={"latitude": 95.0, "longitude": 1.0})

        assert r.status_code == 422


class TestSyncEndpoint:
    def test_returns_count_and_warnings(self, client, fake_cache):
        result = SyncResult(updated_count=2, warnings=["could not enable postgis extension"])

        with patch("app.routes.sync_location_points", AsyncMock(return_value=result)):
            r = client.post("/tailors/locations/sync")

        assert r.status_code == 200
        assert r.json() == {"updatedCount": 2, "warnings": ["could not enable postgis extension"]}
        fake_cache.invalidate.assert_awaited_once()

    def test_nothing_to_do_keeps_cache(self, client, fake_cache):
        with patch("app.routes.sync_location_points", AsyncMock(return_value=SyncResult(0))):
            r = client.post("/tailors/locations/sync")

        assert r.json()["updatedCount"] == 0
        fake_cache.invalidate.assert_not_awaited()

    def test_data_failure_is_500(self, client):
        with patch("app.routes.sync_location_points", AsyncMock(side_effect=LocationSyncError("bad coordinate"))):
            r = client.post("/tailors/locations/sync")

        assert r.status_code == 500
        assert "bad coordinate" in r.json()["detail"]

    def test_timeout_is_503(self, client):
        with patch("app.routes.sync_location_points", AsyncMock(side_effect=StoreTimeout("timeout"))):
            r = client.post("/tailors/locations/sync")

        assert r.status_code == 503


def test_health(client):
    r = client.get("/health")

    assert r.status_code == 200
    assert r.json()["service"] == "tailor-service"


def test_sort_modes_are_exposed():
    assert {m.value for m in SortMode} == {"distance", "recency", "experience", "rating"}
