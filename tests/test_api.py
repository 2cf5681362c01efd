import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

import app.config as config_module
from app.api.handlers import install_exception_handlers
from app.api.routes import router
from app.config import ConnectionSettings, PlexConfig, RadarrConfig, Settings, SonarrConfig, init_config_store
from app.services.registry import init_registry

from conftest import PLEX, RADARR, SONARR, add_plex_library, plex_container


@pytest.fixture()
def api(memory_db, transport, monkeypatch):
    monkeypatch.setattr(config_module, "settings", Settings())
    store = init_config_store("api-test-config")
    init_registry(store, config_module.settings, transport=transport)

    application = FastAPI()
    application.include_router(router)
    install_exception_handlers(application)
    return TestClient(application, raise_server_exceptions=False)


def _configure(api, **sections):
    connections = ConnectionSettings(**sections)
    response = api.put("/api/config", json=connections.model_dump(by_alias=True))
    assert response.status_code == 200
    return response.json()


def test_config_starts_empty_then_saves(api):
    response = api.get("/api/config")
    assert response.status_code == 200
    assert response.json()["configured"]["plex"] is False

    body = _configure(api, plex=PlexConfig(host="nas.local", token="pt"))

    assert body["configured"]["plex"] is True
    assert body["settings"]["plex"]["host"] == "nas.local"
    assert body["version"] == 2


def test_search_returns_items_and_library_flag(api, backend):
    _configure(api, plex=PlexConfig(token="pt"), radarr=RadarrConfig(api_key="rk"))
    movie = {"ratingKey": "12", "type": "movie", "title": "The Matrix", "year": 1999}
    add_plex_library(backend, movies=[movie])
    backend.add("GET", RADARR, "/api/v3/movie/lookup", [{"title": "The Matrix", "tmdbId": 603, "year": 1999}])

    response = api.get("/api/search", params={"q": "Matrix", "scope": "library"})

    assert response.status_code == 200
    body = response.json()
    assert len(body["items"]) == 2
    radarr_item = next(i for i in body["items"] if i["source_origins"] == ["radarr"])
    assert radarr_item["in_library"] is True
    assert radarr_item["ids"] == {"tmdb": 603}
    assert body["failures"] == []


def test_search_rejects_unknown_scope(api):
    response = api.get("/api/search", params={"q": "Matrix", "scope": "everything"})

    assert response.status_code == 400


def test_search_reports_failed_source(api, backend):
    _configure(api, sonarr=SonarrConfig(api_key="sk"))
    backend.add("GET", SONARR, "/api/v3/series/lookup", {}, status=500)

    response = api.get("/api/search", params={"q": "Severance"})

    assert response.status_code == 200
    assert response.json()["failures"] == [{"source": "sonarr", "message": "Internal Server Error", "status": 500}]


def test_download_without_sonarr_is_a_conflict(api):
    response = api.post("/api/episodes/42/download")

    assert response.status_code == 409
    assert response.json()["service"] == "sonarr"


def test_download_episode_route(api, backend):
    _configure(api, sonarr=SonarrConfig(api_key="sk"))
    backend.add("GET", SONARR, "/api/v3/episode/42", {"id": 42, "monitored": False})
    backend.add("PUT", SONARR, "/api/v3/episode/42", {"id": 42, "monitored": True})
    backend.add("POST", SONARR, "/api/v3/command", {"id": 1})

    response = api.post("/api/episodes/42/download")

    assert response.status_code == 200
    assert response.json()["outcome"] == "queued"
    assert response.json()["queued_ids"] == [42]


def test_profiles_upstream_failure_is_bad_gateway(api, backend):
    _configure(api, radarr=RadarrConfig(api_key="rk"))
    backend.add("GET", RADARR, "/api/v3/qualityprofile", {}, status=401)

    response = api.get("/api/radarr/profiles")

    assert response.status_code == 502
    assert response.json()["status"] == 401


def test_media_detail_not_found(api):
    _configure(api, plex=PlexConfig(token="pt"))

    response = api.get("/api/media/999")

    assert response.status_code == 404


def test_stream_url_prefers_direct_part(api, backend):
    _configure(api, plex=PlexConfig(token="pt"))
    backend.add("GET", PLEX, "/library/metadata/12", plex_container({
        "ratingKey": "12", "type": "movie", "title": "The Matrix",
        "Media": [{"Part": [{"id": 77, "key": "/library/parts/77/1234/file.mkv"}]}],
    }))

    response = api.get("/api/media/12/stream")

    assert response.status_code == 200
    assert response.json()["url"] == "http://localhost:32400/library/parts/77/1234/file.mkv?X-Plex-Token=pt"


def test_unknown_library_kind(api):
    assert api.get("/api/library/music").status_code == 404
