# Media Hub test fixtures
from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from app.config import (  # noqa: E402
    AppConfig,
    ConnectionSettings,
    PlexConfig,
    RadarrConfig,
    Settings,
    SonarrConfig,
    TmdbConfig,
)
from app.db.database import init_db  # noqa: E402
from app.services.registry import ClientBundle, build_clients  # noqa: E402

PLEX = "localhost:32400"
SONARR = "localhost:8989"
RADARR = "localhost:7878"
TMDB = "api.themoviedb.org"

Handler = Callable[[httpx.Request], httpx.Response]
Reply = Union[Handler, Tuple[int, Any]]


class FakeBackend:
    """Routes requests by (method, netloc, path) and records every call."""

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str, str], Reply] = {}
        self.calls: List[Tuple[str, str, str, Optional[Any]]] = []

    def add(self, method: str, netloc: str, path: str, json_body: Any = None, status: int = 200,
            handler: Optional[Handler] = None) -> None:
        self.routes[(method, netloc, path)] = handler or (status, json_body)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        netloc = request.url.netloc.decode("ascii")
        body = json.loads(request.content) if request.content else None
        self.calls.append((request.method, netloc, request.url.path, body))
        reply = self.routes.get((request.method, netloc, request.url.path))
        if reply is None:
            return httpx.Response(404, json={"error": "not found"})
        if callable(reply):
            return reply(request)
        status, payload = reply
        return httpx.Response(status, json=payload)

    def calls_to(self, netloc: str, method: Optional[str] = None) -> List[Tuple[str, str, Optional[Any]]]:
        return [
            (m, path, body) for m, n, path, body in self.calls
            if n == netloc and (method is None or m == method)
        ]


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def transport(backend: FakeBackend) -> httpx.MockTransport:
    return httpx.MockTransport(backend)


@pytest.fixture()
def settings() -> Settings:
    return Settings(tmdb=TmdbConfig(api_key=""), app=AppConfig(data_dir="/tmp/media-hub-tests"))


@pytest.fixture()
def connections() -> ConnectionSettings:
    return ConnectionSettings(
        plex=PlexConfig(token="plex-token"),
        sonarr=SonarrConfig(api_key="sonarr-key"),
        radarr=RadarrConfig(api_key="radarr-key"),
    )


@pytest.fixture()
def clients(connections: ConnectionSettings, settings: Settings, transport: httpx.MockTransport) -> ClientBundle:
    return build_clients(connections, settings, version=1, transport=transport)


@pytest.fixture()
def memory_db() -> None:
    init_db(db_url="sqlite://")


def plex_container(*metadata: Dict[str, Any], key: str = "Metadata") -> Dict[str, Any]:
    return {"MediaContainer": {"size": len(metadata), key: list(metadata)}}


def add_plex_library(backend: FakeBackend, movies: List[Dict[str, Any]], shows: Optional[List[Dict[str, Any]]] = None) -> None:
    backend.add("GET", PLEX, "/library/sections", plex_container(
        {"key": "1", "title": "Movies", "type": "movie"},
        {"key": "2", "title": "TV Shows", "type": "show"},
        {"key": "3", "title": "Music", "type": "artist"},
        key="Directory",
    ))
    backend.add("GET", PLEX, "/library/sections/1/all", plex_container(*movies))
    backend.add("GET", PLEX, "/library/sections/2/all", plex_container(*(shows or [])))
