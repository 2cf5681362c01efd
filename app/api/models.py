"""Pydantic models for API requests/responses."""
from pydantic import BaseModel
from typing import Optional, List, Dict, Any


class SourceFailureResponse(BaseModel):
    source: str
    message: str
    status: Optional[int] = None


class EpisodeUnitResponse(BaseModel):
    season_number: int
    episode_number: int
    title: Optional[str]
    episode_id: Optional[int]
    plex_rating_key: Optional[str]
    has_file: bool
    monitored: bool
    downloading: bool


class SeasonResponse(BaseModel):
    season_number: int
    title: Optional[str]
    monitored: bool
    plex_rating_key: Optional[str]
    episodes: List[EpisodeUnitResponse]


class MediaItemResponse(BaseModel):
    identity: str
    title: str
    year: Optional[int]
    media_kind: str
    source_origins: List[str]
    ids: Dict[str, Any]
    plex_rating_key: Optional[str]
    acquisition_id: Optional[int]
    overview: Optional[str]
    poster: Optional[str]
    backdrop: Optional[str]
    rating: Optional[float]
    genres: List[str]
    monitored: Optional[bool]
    has_file: Optional[bool]
    in_library: bool
    can_monitor: bool
    seasons: List[SeasonResponse] = []
    meta: Dict[str, Any] = {}


class SearchResponse(BaseModel):
    query: str
    scope: str
    items: List[MediaItemResponse]
    failures: List[SourceFailureResponse]


class LibraryResponse(BaseModel):
    items: List[MediaItemResponse]
    failures: List[SourceFailureResponse]


class SectionResponse(BaseModel):
    id: str
    title: str
    type: str


class DetailResponse(BaseModel):
    item: MediaItemResponse
    counterpart: Optional[MediaItemResponse] = None
    failures: List[SourceFailureResponse]


class HomeResponse(BaseModel):
    configured: Dict[str, bool]
    recently_added: List[MediaItemResponse]
    on_deck: List[MediaItemResponse]
    failures: List[SourceFailureResponse]


class StreamResponse(BaseModel):
    rating_key: str
    title: str
    url: str


class QueueEntryResponse(BaseModel):
    source: str
    queue_id: Optional[int]
    title: str
    status: Optional[str]
    progress: float
    size: float
    sizeleft: float
    estimated_completion_time: Optional[str]
    series_id: Optional[int] = None
    movie_id: Optional[int] = None
    episode_id: Optional[int] = None
    season_number: Optional[int] = None
    episode_number: Optional[int] = None


class QueueResponse(BaseModel):
    entries: List[QueueEntryResponse]
    failures: List[SourceFailureResponse]


class UnitProgressResponse(BaseModel):
    unit_id: int
    state: str
    error: Optional[str]


class WorkflowResponse(BaseModel):
    outcome: str
    detail: str
    queued_ids: List[int]
    failed_ids: List[int]
    units: List[UnitProgressResponse]
    item: Optional[MediaItemResponse] = None


class AddSeriesRequest(BaseModel):
    tvdb_id: int
    monitored: bool = True
    search: bool = True


class AddMovieRequest(BaseModel):
    tmdb_id: int
    monitored: bool = True
    search: bool = True


class ProfilesResponse(BaseModel):
    quality_profiles: List[Dict[str, Any]]
    root_folders: List[Dict[str, Any]]


class DiagnosticsResponse(BaseModel):
    plex: Dict[str, Any]
    sonarr: Dict[str, Any]
    radarr: Dict[str, Any]
    tmdb: Dict[str, Any]


class ConfigResponse(BaseModel):
    settings: Dict[str, Any]
    configured: Dict[str, bool]
    version: int
