"""API routes."""
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List, Optional
import logging

from app.api.models import (
    SourceFailureResponse, EpisodeUnitResponse, SeasonResponse, MediaItemResponse,
    SearchResponse, LibraryResponse, SectionResponse, DetailResponse, HomeResponse,
    StreamResponse, QueueEntryResponse, QueueResponse, UnitProgressResponse,
    WorkflowResponse, AddSeriesRequest, AddMovieRequest, ProfilesResponse,
    DiagnosticsResponse, ConfigResponse,
)
from app.config import ConfigStore, ConnectionSettings, get_config_store, get_settings
from app.core.aggregator import MediaAggregator, SEARCH_SCOPES
from app.core.errors import SourceFailure
from app.core.models import UnifiedMediaItem, MediaKind, QueueEntry
from app.core.workflow import DownloadOrchestrator, WorkflowResult
from app.services.registry import ClientBundle, get_clients, get_registry

logger = logging.getLogger(__name__)
router = APIRouter()

LIBRARY_KINDS = {"movies": MediaKind.MOVIE, "shows": MediaKind.SHOW}
ACQUISITION_SERVICES = ("sonarr", "radarr")


def _failures(failures: List[SourceFailure]) -> List[SourceFailureResponse]:
    return [SourceFailureResponse(source=f.source, message=f.message, status=f.status) for f in failures]


def _item(item: UnifiedMediaItem) -> MediaItemResponse:
    return MediaItemResponse(
        identity=item.identity,
        title=item.title,
        year=item.year,
        media_kind=item.media_kind.value,
        source_origins=sorted(s.value for s in item.source_origins),
        ids=item.external_ids(),
        plex_rating_key=item.plex_rating_key,
        acquisition_id=item.acquisition_id,
        overview=item.overview,
        poster=item.poster,
        backdrop=item.backdrop,
        rating=item.rating,
        genres=item.genres,
        monitored=item.monitored,
        has_file=item.has_file,
        in_library=item.in_library,
        can_monitor=item.can_monitor(),
        seasons=[
            SeasonResponse(
                season_number=season.season_number,
                title=season.title,
                monitored=season.monitored,
                plex_rating_key=season.plex_rating_key,
                episodes=[
                    EpisodeUnitResponse(
                        season_number=unit.season_number,
                        episode_number=unit.episode_number,
                        title=unit.title,
                        episode_id=unit.episode_id,
                        plex_rating_key=unit.plex_rating_key,
                        has_file=unit.has_file,
                        monitored=unit.monitored,
                        downloading=unit.downloading,
                    )
                    for unit in season.units
                ],
            )
            for season in item.seasons
        ],
        meta=item.metadata,
    )


def _queue_entry(entry: QueueEntry) -> QueueEntryResponse:
    return QueueEntryResponse(
        source=entry.source.value,
        queue_id=entry.queue_id,
        title=entry.title,
        status=entry.status,
        progress=entry.progress,
        size=entry.size,
        sizeleft=entry.sizeleft,
        estimated_completion_time=entry.estimated_completion_time,
        series_id=entry.series_id,
        movie_id=entry.movie_id,
        episode_id=entry.episode_id,
        season_number=entry.season_number,
        episode_number=entry.episode_number,
    )


def _workflow(result: WorkflowResult) -> WorkflowResponse:
    return WorkflowResponse(
        outcome=result.outcome.value,
        detail=result.detail,
        queued_ids=result.queued_ids,
        failed_ids=result.failed_ids,
        units=[UnitProgressResponse(unit_id=u.unit_id, state=u.state.value, error=u.error) for u in result.units],
        item=_item(result.item) if result.item else None,
    )


def get_orchestrator(clients: ClientBundle = Depends(get_clients)) -> DownloadOrchestrator:
    return DownloadOrchestrator(clients.sonarr, clients.radarr, get_settings().acquisition)


@router.get("/api/config", response_model=ConfigResponse)
async def read_config(
    store: ConfigStore = Depends(get_config_store),
    clients: ClientBundle = Depends(get_clients),
):
    """Paramètres de connexion actuels (tels que stockés)."""
    connections = store.load()
    return ConfigResponse(
        settings=connections.model_dump(by_alias=True),
        configured=clients.configured(),
        version=clients.version,
    )


@router.put("/api/config", response_model=ConfigResponse)
async def save_config(
    connections: ConnectionSettings,
    store: ConfigStore = Depends(get_config_store),
):
    """Remplace entièrement les paramètres et reconstruit les clients."""
    store.save(connections)
    clients = get_registry().current
    return ConfigResponse(
        settings=store.load().model_dump(by_alias=True),
        configured=clients.configured(),
        version=clients.version,
    )


@router.get("/api/diagnostics", response_model=DiagnosticsResponse)
async def diagnostics(clients: ClientBundle = Depends(get_clients)):
    """Vérifie les connexions aux APIs."""
    results = await MediaAggregator(clients).diagnostics()
    return DiagnosticsResponse(**results)


@router.get("/api/home", response_model=HomeResponse)
async def home(clients: ClientBundle = Depends(get_clients)):
    outcome = await MediaAggregator(clients).home()
    return HomeResponse(
        configured=outcome.configured,
        recently_added=[_item(i) for i in outcome.recently_added],
        on_deck=[_item(i) for i in outcome.on_deck],
        failures=_failures(outcome.failures),
    )


@router.get("/api/libraries", response_model=List[SectionResponse])
async def libraries(clients: ClientBundle = Depends(get_clients)):
    """Bibliothèques Plex."""
    plex = clients.require("plex")
    sections = await plex.list_sections()
    return [
        SectionResponse(id=str(s.get("key")), title=s.get("title", ""), type=s.get("type", ""))
        for s in sections
    ]


@router.get("/api/library/{kind}", response_model=LibraryResponse)
async def library(kind: str, clients: ClientBundle = Depends(get_clients)):
    if kind not in LIBRARY_KINDS:
        raise HTTPException(status_code=404, detail=f"Unknown library kind: {kind}")
    outcome = await MediaAggregator(clients).library(LIBRARY_KINDS[kind])
    return LibraryResponse(items=[_item(i) for i in outcome.items], failures=_failures(outcome.failures))


@router.get("/api/search", response_model=SearchResponse)
async def search(
    q: str = Query("", description="Search terms"),
    scope: str = Query("acquisition"),
    clients: ClientBundle = Depends(get_clients),
):
    """Recherche unifiée sur toutes les sources configurées."""
    if scope not in SEARCH_SCOPES:
        raise HTTPException(status_code=400, detail=f"scope must be one of {', '.join(SEARCH_SCOPES)}")
    outcome = await MediaAggregator(clients).search(q, scope)
    return SearchResponse(
        query=q,
        scope=scope,
        items=[_item(i) for i in outcome.items],
        failures=_failures(outcome.failures),
    )


@router.get("/api/media/{rating_key}", response_model=DetailResponse)
async def media_detail(rating_key: str, clients: ClientBundle = Depends(get_clients)):
    """Détail réconcilié d'un item Plex."""
    clients.require("plex")
    outcome = await MediaAggregator(clients).detail(rating_key)
    if outcome.item is None:
        if outcome.failures:
            raise HTTPException(status_code=502, detail=outcome.failures[0].message)
        raise HTTPException(status_code=404, detail="Media not found")
    return DetailResponse(
        item=_item(outcome.item),
        counterpart=_item(outcome.counterpart) if outcome.counterpart else None,
        failures=_failures(outcome.failures),
    )


@router.get("/api/media/{rating_key}/stream", response_model=StreamResponse)
async def media_stream(rating_key: str, clients: ClientBundle = Depends(get_clients)):
    """URL de lecture (fichier direct, sinon transcodeur)."""
    plex = clients.require("plex")
    metadata = await plex.detail(rating_key)
    if metadata is None:
        raise HTTPException(status_code=404, detail="Media not found")
    return StreamResponse(rating_key=rating_key, title=metadata.get("title", ""), url=plex.stream_url(metadata))


@router.get("/api/queue", response_model=QueueResponse)
async def queue(clients: ClientBundle = Depends(get_clients)):
    outcome = await MediaAggregator(clients).queue()
    return QueueResponse(entries=[_queue_entry(e) for e in outcome.entries], failures=_failures(outcome.failures))


@router.get("/api/{service}/profiles", response_model=ProfilesResponse)
async def profiles(service: str, clients: ClientBundle = Depends(get_clients)):
    """Profils qualité et dossiers racine d'un service *arr."""
    if service not in ACQUISITION_SERVICES:
        raise HTTPException(status_code=404, detail=f"Unknown service: {service}")
    client = clients.require(service)
    return ProfilesResponse(
        quality_profiles=[{"id": p.get("id"), "name": p.get("name")} for p in await client.quality_profiles()],
        root_folders=[
            {"id": f.get("id"), "path": f.get("path"), "freeSpace": f.get("freeSpace")}
            for f in await client.root_folders()
        ],
    )


@router.post("/api/episodes/{episode_id}/download", response_model=WorkflowResponse)
async def download_episode(episode_id: int, orchestrator: DownloadOrchestrator = Depends(get_orchestrator)):
    result = await orchestrator.download_episode(episode_id)
    return _workflow(result)


@router.post("/api/series/{series_id}/seasons/{season_number}/download", response_model=WorkflowResponse)
async def download_season(
    series_id: int,
    season_number: int,
    orchestrator: DownloadOrchestrator = Depends(get_orchestrator),
):
    """Monitor la saison puis lance la recherche des épisodes manquants."""
    result = await orchestrator.download_season(series_id, season_number)
    return _workflow(result)


@router.post("/api/movies/{movie_id}/download", response_model=WorkflowResponse)
async def download_movie(movie_id: int, orchestrator: DownloadOrchestrator = Depends(get_orchestrator)):
    result = await orchestrator.download_movie(movie_id)
    return _workflow(result)


@router.post("/api/series", response_model=WorkflowResponse)
async def add_series(request: AddSeriesRequest, orchestrator: DownloadOrchestrator = Depends(get_orchestrator)):
    result = await orchestrator.add_series(request.tvdb_id, monitored=request.monitored, search=request.search)
    return _workflow(result)


@router.post("/api/movies", response_model=WorkflowResponse)
async def add_movie(request: AddMovieRequest, orchestrator: DownloadOrchestrator = Depends(get_orchestrator)):
    result = await orchestrator.add_movie(request.tmdb_id, monitored=request.monitored, search=request.search)
    return _workflow(result)
