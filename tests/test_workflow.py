import asyncio

import httpx
import pytest

from app.config import AcquisitionConfig
from app.core.errors import ConfigIncomplete
from app.core.models import UnifiedMediaItem, MediaKind, Source
from app.core.workflow import DownloadOrchestrator, UnitOutcome, UnitState

from conftest import RADARR, SONARR

EPISODE_42 = {
    "id": 42,
    "seriesId": 7,
    "seasonNumber": 1,
    "episodeNumber": 3,
    "title": "Third",
    "hasFile": False,
    "monitored": False,
}


def _run(coro):
    return asyncio.run(coro)


@pytest.fixture()
def orchestrator(clients):
    return DownloadOrchestrator(clients.sonarr, clients.radarr, AcquisitionConfig())


def _writes(backend, netloc):
    return [(m, path, body) for m, path, body in backend.calls_to(netloc) if m in ("PUT", "POST")]


def _season_episodes(*has_files):
    return [
        {"id": 100 + n, "seriesId": 7, "seasonNumber": 2, "episodeNumber": n, "hasFile": has_file, "monitored": False}
        for n, has_file in enumerate(has_files, start=1)
    ] + [{"id": 11, "seriesId": 7, "seasonNumber": 1, "episodeNumber": 1, "hasFile": False}]


def _episode_echo(request):
    return httpx.Response(200, json={"id": int(request.url.path.rsplit("/", 1)[-1]), "monitored": False, "seasonNumber": 2})


def test_download_episode_puts_full_record_then_searches(backend, orchestrator):
    backend.add("GET", SONARR, "/api/v3/episode/42", EPISODE_42)
    backend.add("PUT", SONARR, "/api/v3/episode/42", {**EPISODE_42, "monitored": True}, status=202)
    backend.add("POST", SONARR, "/api/v3/command", {"id": 1, "name": "EpisodeSearch"}, status=201)

    result = _run(orchestrator.download_episode(42))

    assert result.outcome == UnitOutcome.QUEUED
    assert result.queued_ids == [42]
    assert _writes(backend, SONARR) == [
        ("PUT", "/api/v3/episode/42", {**EPISODE_42, "monitored": True}),
        ("POST", "/api/v3/command", {"name": "EpisodeSearch", "episodeIds": [42]}),
    ]


def test_download_episode_put_failure_never_searches(backend, orchestrator):
    backend.add("GET", SONARR, "/api/v3/episode/42", EPISODE_42)
    backend.add("PUT", SONARR, "/api/v3/episode/42", {"message": "boom"}, status=500)

    result = _run(orchestrator.download_episode(42))

    assert result.outcome == UnitOutcome.FAILED
    assert result.units[0].state == UnitState.MISSING
    assert "500" in result.units[0].error
    assert [m for m, _, _ in _writes(backend, SONARR)] == ["PUT"]


def test_download_episode_search_failure_stops_at_monitoring(backend, orchestrator):
    backend.add("GET", SONARR, "/api/v3/episode/42", EPISODE_42)
    backend.add("PUT", SONARR, "/api/v3/episode/42", {**EPISODE_42, "monitored": True})
    backend.add("POST", SONARR, "/api/v3/command", {}, status=503)

    result = _run(orchestrator.download_episode(42))

    assert result.outcome == UnitOutcome.FAILED
    assert result.units[0].state == UnitState.MONITORING_REQUESTED
    assert result.failed_ids == [42]


def test_download_unknown_episode(backend, orchestrator):
    result = _run(orchestrator.download_episode(42))

    assert result.outcome == UnitOutcome.FAILED
    assert _writes(backend, SONARR) == []


def test_season_with_all_files_is_a_no_op(backend, orchestrator):
    backend.add("GET", SONARR, "/api/v3/episode", _season_episodes(True, True, True))

    result = _run(orchestrator.download_season(7, 2))

    assert result.outcome == UnitOutcome.SKIPPED
    assert result.units == []
    assert _writes(backend, SONARR) == []


def test_season_monitor_failure_skips_episode_searches(backend, orchestrator):
    backend.add("GET", SONARR, "/api/v3/episode", _season_episodes(True, False, False))
    backend.add("GET", SONARR, "/api/v3/series/7", {"id": 7, "seasons": [{"seasonNumber": 2, "monitored": False}]})
    backend.add("PUT", SONARR, "/api/v3/series/7", {"message": "boom"}, status=500)

    result = _run(orchestrator.download_season(7, 2))

    assert result.outcome == UnitOutcome.FAILED
    assert result.failed_ids == [102, 103]
    assert [(m, path) for m, path, _ in _writes(backend, SONARR)] == [("PUT", "/api/v3/series/7")]


def test_season_download_monitors_then_queues_missing_episodes(backend, orchestrator):
    backend.add("GET", SONARR, "/api/v3/episode", _season_episodes(True, False, False))
    backend.add("GET", SONARR, "/api/v3/series/7", {
        "id": 7,
        "title": "Show",
        "seasons": [{"seasonNumber": 1, "monitored": False}, {"seasonNumber": 2, "monitored": False}],
    })
    backend.add("PUT", SONARR, "/api/v3/series/7", {"id": 7})
    for episode_id in (102, 103):
        backend.add("GET", SONARR, f"/api/v3/episode/{episode_id}", handler=_episode_echo)
        backend.add("PUT", SONARR, f"/api/v3/episode/{episode_id}", {"id": episode_id})
    backend.add("POST", SONARR, "/api/v3/command", {"id": 1})

    result = _run(orchestrator.download_season(7, 2))

    assert result.outcome == UnitOutcome.QUEUED
    assert result.queued_ids == [102, 103]
    writes = _writes(backend, SONARR)
    assert writes[0] == ("PUT", "/api/v3/series/7", {
        "id": 7,
        "title": "Show",
        "seasons": [{"seasonNumber": 1, "monitored": False}, {"seasonNumber": 2, "monitored": True}],
    })
    assert [(m, path) for m, path, _ in writes[1:]] == [
        ("PUT", "/api/v3/episode/102"),
        ("POST", "/api/v3/command"),
        ("PUT", "/api/v3/episode/103"),
        ("POST", "/api/v3/command"),
    ]


def test_season_download_partial_failure(backend, orchestrator):
    backend.add("GET", SONARR, "/api/v3/episode", _season_episodes(False, False))
    backend.add("GET", SONARR, "/api/v3/series/7", {"id": 7, "seasons": [{"seasonNumber": 2, "monitored": True}]})
    backend.add("PUT", SONARR, "/api/v3/series/7", {"id": 7})
    backend.add("GET", SONARR, "/api/v3/episode/101", handler=_episode_echo)
    backend.add("PUT", SONARR, "/api/v3/episode/101", {"id": 101})
    backend.add("GET", SONARR, "/api/v3/episode/102", {}, status=500)
    backend.add("POST", SONARR, "/api/v3/command", {"id": 1})

    result = _run(orchestrator.download_season(7, 2))

    assert result.outcome == UnitOutcome.PARTIALLY_FAILED
    assert result.queued_ids == [101]
    assert result.failed_ids == [102]
    assert "1/2" in result.detail


def test_download_movie_already_downloaded(backend, orchestrator):
    backend.add("GET", RADARR, "/api/v3/movie/5", {"id": 5, "title": "Heat", "hasFile": True})

    result = _run(orchestrator.download_movie(5))

    assert result.outcome == UnitOutcome.SKIPPED
    assert _writes(backend, RADARR) == []


def test_download_movie_monitors_then_searches(backend, orchestrator):
    backend.add("GET", RADARR, "/api/v3/movie/5", {"id": 5, "title": "Heat", "hasFile": False, "monitored": False})
    backend.add("PUT", RADARR, "/api/v3/movie/5", {"id": 5})
    backend.add("POST", RADARR, "/api/v3/command", {"id": 1})

    result = _run(orchestrator.download_movie(5))

    assert result.outcome == UnitOutcome.QUEUED
    assert _writes(backend, RADARR) == [
        ("PUT", "/api/v3/movie/5", {"id": 5, "title": "Heat", "hasFile": False, "monitored": True}),
        ("POST", "/api/v3/command", {"name": "MoviesSearch", "movieIds": [5]}),
    ]


def test_download_item_requires_acquisition_origin(backend, orchestrator):
    tmdb_only = UnifiedMediaItem(identity="603", title="The Matrix", media_kind=MediaKind.MOVIE,
                                 source_origins={Source.TMDB}, tmdb_id=603)

    result = _run(orchestrator.download_item(tmdb_only))

    assert result.outcome == UnitOutcome.FAILED
    assert backend.calls == []


def test_missing_sonarr_raises_config_incomplete():
    orchestrator = DownloadOrchestrator(sonarr=None)

    with pytest.raises(ConfigIncomplete):
        _run(orchestrator.download_episode(42))


def test_add_movie_uses_first_profile_and_root_folder(backend, orchestrator):
    backend.add("GET", RADARR, "/api/v3/movie/lookup", [{"title": "Heat", "tmdbId": 949, "year": 1995}])
    backend.add("GET", RADARR, "/api/v3/qualityprofile", [{"id": 4, "name": "HD-1080p"}, {"id": 6, "name": "4K"}])
    backend.add("GET", RADARR, "/api/v3/rootfolder", [{"id": 1, "path": "/movies"}])
    backend.add("POST", RADARR, "/api/v3/movie", {"id": 12, "title": "Heat", "tmdbId": 949, "monitored": True})

    result = _run(orchestrator.add_movie(949))

    assert result.outcome == UnitOutcome.QUEUED
    assert result.item.acquisition_id == 12
    (_, _, payload), = _writes(backend, RADARR)
    assert payload["qualityProfileId"] == 4
    assert payload["rootFolderPath"] == "/movies"
    assert payload["minimumAvailability"] == "released"
    assert payload["addOptions"] == {"searchForMovie": True}


def test_add_series_already_present_is_skipped(backend, orchestrator):
    backend.add("GET", SONARR, "/api/v3/series/lookup", [{"id": 3, "title": "Severance", "tvdbId": 371980}])

    result = _run(orchestrator.add_series(371980))

    assert result.outcome == UnitOutcome.SKIPPED
    assert result.item.acquisition_id == 3
    assert _writes(backend, SONARR) == []
