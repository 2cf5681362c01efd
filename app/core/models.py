"""Core business models."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any, Set


class Source(str, Enum):
    """Backends that can contribute to a unified item."""
    PLEX = "plex"
    SONARR = "sonarr"
    RADARR = "radarr"
    TMDB = "tmdb"


class MediaKind(str, Enum):
    MOVIE = "movie"
    SHOW = "show"
    EPISODE = "episode"


def acquisition_source_for(kind: MediaKind) -> Source:
    """Movies go to Radarr, shows and episodes to Sonarr."""
    return Source.RADARR if kind == MediaKind.MOVIE else Source.SONARR


@dataclass
class SeasonEpisodeUnit:
    """Un épisode réconcilié entre Plex et Sonarr."""
    season_number: int
    episode_number: int
    title: Optional[str] = None

    episode_id: Optional[int] = None  # Sonarr
    plex_rating_key: Optional[str] = None

    # Owned by Sonarr
    has_file: bool = False
    monitored: bool = False
    downloading: bool = False


@dataclass
class SeasonGroup:
    season_number: int
    monitored: bool = False
    title: Optional[str] = None
    plex_rating_key: Optional[str] = None
    units: List[SeasonEpisodeUnit] = field(default_factory=list)

    def missing_units(self) -> List[SeasonEpisodeUnit]:
        """Episodes Sonarr knows about but has no file for."""
        return [u for u in self.units if u.episode_id is not None and not u.has_file]


@dataclass
class UnifiedMediaItem:
    """Item média unifié (film/série/épisode), tagué par source."""
    identity: str
    title: str
    media_kind: MediaKind
    year: Optional[int] = None
    source_origins: Set[Source] = field(default_factory=set)

    # IDs
    tmdb_id: Optional[int] = None
    tvdb_id: Optional[int] = None
    imdb_id: Optional[str] = None
    plex_rating_key: Optional[str] = None
    acquisition_id: Optional[int] = None  # Sonarr series id / Radarr movie id

    # Presentation
    overview: Optional[str] = None
    poster: Optional[str] = None
    backdrop: Optional[str] = None
    rating: Optional[float] = None
    genres: List[str] = field(default_factory=list)
    popularity: float = 0.0

    # Acquisition state
    monitored: Optional[bool] = None
    has_file: Optional[bool] = None
    in_library: bool = False

    seasons: List[SeasonGroup] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def external_ids(self) -> Dict[str, Any]:
        """Cross-reference ids that are actually known."""
        ids = {"tmdb": self.tmdb_id, "tvdb": self.tvdb_id, "imdb": self.imdb_id}
        return {k: v for k, v in ids.items() if v}

    def acquisition_source(self) -> Source:
        return acquisition_source_for(self.media_kind)

    def can_monitor(self) -> bool:
        """Only items known to their acquisition service can be monitored."""
        return (
            self.acquisition_source() in self.source_origins
            and self.acquisition_id is not None
        )


@dataclass
class QueueEntry:
    """Téléchargement en cours dans Sonarr ou Radarr."""
    source: Source
    queue_id: Optional[int]
    title: str
    status: Optional[str] = None
    size: float = 0.0
    sizeleft: float = 0.0
    estimated_completion_time: Optional[str] = None
    series_id: Optional[int] = None
    movie_id: Optional[int] = None
    episode_id: Optional[int] = None
    season_number: Optional[int] = None
    episode_number: Optional[int] = None

    @property
    def progress(self) -> float:
        if not self.size:
            return 0.0
        return round((self.size - self.sizeleft) / self.size * 100, 1)
