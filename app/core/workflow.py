"""Orchestration des téléchargements: monitor puis recherche, par épisode/saison/film."""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict, Any, Optional

from app.config import AcquisitionConfig
from app.core.errors import ConfigIncomplete, RequestFailed
from app.core.models import UnifiedMediaItem, MediaKind, Source
from app.services.radarr import RadarrService
from app.services.sonarr import SonarrService

logger = logging.getLogger(__name__)


class UnitOutcome(str, Enum):
    QUEUED = "queued"
    PARTIALLY_FAILED = "partially_failed"
    FAILED = "failed"
    SKIPPED = "skipped"  # Rien à faire (fichiers déjà présents)


class UnitState(str, Enum):
    """States the orchestrator drives; downloading happens inside Sonarr/Radarr."""
    MISSING = "missing"
    MONITORING_REQUESTED = "monitoring_requested"
    SEARCH_TRIGGERED = "search_triggered"


@dataclass
class UnitProgress:
    unit_id: int
    state: UnitState = UnitState.MISSING
    error: Optional[str] = None

    @property
    def queued(self) -> bool:
        return self.state == UnitState.SEARCH_TRIGGERED


@dataclass
class WorkflowResult:
    outcome: UnitOutcome
    detail: str
    units: List[UnitProgress] = field(default_factory=list)
    item: Optional[UnifiedMediaItem] = None

    @property
    def queued_ids(self) -> List[int]:
        return [u.unit_id for u in self.units if u.queued]

    @property
    def failed_ids(self) -> List[int]:
        return [u.unit_id for u in self.units if not u.queued]


def _outcome_for(units: List[UnitProgress]) -> UnitOutcome:
    queued = sum(1 for u in units if u.queued)
    if queued == len(units):
        return UnitOutcome.QUEUED
    if queued == 0:
        return UnitOutcome.FAILED
    return UnitOutcome.PARTIALLY_FAILED


class DownloadOrchestrator:
    """Séquence monitor -> recherche sur Sonarr/Radarr.

    Each mark-as-monitored is a read-modify-write of the full record with no
    revision check; concurrent edits made elsewhere are overwritten.
    """

    def __init__(
        self,
        sonarr: Optional[SonarrService] = None,
        radarr: Optional[RadarrService] = None,
        acquisition: Optional[AcquisitionConfig] = None,
    ):
        self.sonarr = sonarr
        self.radarr = radarr
        self.acquisition = acquisition or AcquisitionConfig()

    def _require_sonarr(self) -> SonarrService:
        if self.sonarr is None:
            raise ConfigIncomplete(Source.SONARR.value)
        return self.sonarr

    def _require_radarr(self) -> RadarrService:
        if self.radarr is None:
            raise ConfigIncomplete(Source.RADARR.value)
        return self.radarr

    async def _queue_episode(self, episode_id: int) -> UnitProgress:
        """GET episode, PUT it back monitored, then EpisodeSearch."""
        sonarr = self._require_sonarr()
        progress = UnitProgress(unit_id=episode_id)
        try:
            record = await sonarr.episode(episode_id)
            if record is None:
                raise RequestFailed(sonarr.name, f"Episode {episode_id} not found", 404)
            record["monitored"] = True
            await sonarr.update_episode(record)
            progress.state = UnitState.MONITORING_REQUESTED
            await sonarr.search_episodes([episode_id])
            progress.state = UnitState.SEARCH_TRIGGERED
        except RequestFailed as e:
            progress.error = str(e)
            logger.error(f"Episode {episode_id} stopped at {progress.state.value}: {e}")
        return progress

    async def download_episode(self, episode_id: int) -> WorkflowResult:
        progress = await self._queue_episode(episode_id)
        if progress.queued:
            return WorkflowResult(UnitOutcome.QUEUED, f"Episode {episode_id} search triggered", [progress])
        return WorkflowResult(UnitOutcome.FAILED, progress.error or "Episode download failed", [progress])

    async def download_season(self, series_id: int, season_number: int) -> WorkflowResult:
        """Monitor the season on the series, then queue each missing episode serially."""
        sonarr = self._require_sonarr()
        try:
            episodes = await sonarr.episodes(series_id)
        except RequestFailed as e:
            logger.error(f"Cannot list episodes of series {series_id}: {e}")
            return WorkflowResult(UnitOutcome.FAILED, str(e))

        missing = sorted(
            (e for e in episodes if e.get("seasonNumber") == season_number and not e.get("hasFile")),
            key=lambda e: e.get("episodeNumber", 0),
        )
        if not missing:
            return WorkflowResult(UnitOutcome.SKIPPED, f"Season {season_number} has no missing episodes")

        try:
            series = await sonarr.detail(series_id)
            if series is None:
                raise RequestFailed(sonarr.name, f"Series {series_id} not found", 404)
            seasons = [s for s in series.get("seasons", []) if s.get("seasonNumber") == season_number]
            if not seasons:
                raise RequestFailed(sonarr.name, f"Season {season_number} not found on series {series_id}")
            for season in seasons:
                season["monitored"] = True
            await sonarr.update_series(series)
        except RequestFailed as e:
            logger.error(f"Season {season_number} of series {series_id} not monitored: {e}")
            units = [UnitProgress(unit_id=ep["id"], error=str(e)) for ep in missing]
            return WorkflowResult(UnitOutcome.FAILED, str(e), units)

        units = []
        for episode in missing:
            units.append(await self._queue_episode(episode["id"]))

        outcome = _outcome_for(units)
        queued = sum(1 for u in units if u.queued)
        detail = f"Season {season_number}: {queued}/{len(units)} episode(s) queued"
        logger.info(detail)
        return WorkflowResult(outcome, detail, units)

    async def download_movie(self, movie_id: int) -> WorkflowResult:
        """Même séquence côté Radarr: PUT monitored puis MoviesSearch."""
        radarr = self._require_radarr()
        progress = UnitProgress(unit_id=movie_id)
        try:
            movie = await radarr.detail(movie_id)
            if movie is None:
                raise RequestFailed(radarr.name, f"Movie {movie_id} not found", 404)
            if movie.get("hasFile"):
                return WorkflowResult(UnitOutcome.SKIPPED, f"{movie.get('title')} is already downloaded")
            movie["monitored"] = True
            await radarr.update_movie(movie)
            progress.state = UnitState.MONITORING_REQUESTED
            await radarr.search_movies([movie_id])
            progress.state = UnitState.SEARCH_TRIGGERED
        except RequestFailed as e:
            progress.error = str(e)
            logger.error(f"Movie {movie_id} stopped at {progress.state.value}: {e}")
            return WorkflowResult(UnitOutcome.FAILED, str(e), [progress])
        return WorkflowResult(UnitOutcome.QUEUED, f"Movie {movie_id} search triggered", [progress])

    async def download_item(self, item: UnifiedMediaItem, season_number: Optional[int] = None) -> WorkflowResult:
        """Dispatch on a unified item; only items with an acquisition origin qualify."""
        if not item.can_monitor():
            return WorkflowResult(
                UnitOutcome.FAILED,
                f"{item.title} is not managed by {item.acquisition_source().value}",
            )
        if item.media_kind == MediaKind.MOVIE:
            return await self.download_movie(item.acquisition_id)
        if item.media_kind == MediaKind.EPISODE:
            return await self.download_episode(item.acquisition_id)
        if season_number is None:
            return WorkflowResult(UnitOutcome.FAILED, "A season number is required for shows")
        return await self.download_season(item.acquisition_id, season_number)

    async def _pick_defaults(self, service, profile_id: Optional[int], root_folder: Optional[str]) -> Dict[str, Any]:
        """Profil qualité et dossier racine: config, sinon le premier disponible."""
        if profile_id is None:
            profiles = await service.quality_profiles()
            if not profiles:
                raise RequestFailed(service.name, "No quality profile available")
            profile_id = profiles[0].get("id")
        if not root_folder:
            folders = await service.root_folders()
            if not folders:
                raise RequestFailed(service.name, "No root folder available")
            root_folder = folders[0].get("path")
        return {"qualityProfileId": profile_id, "rootFolderPath": root_folder}

    async def add_series(self, tvdb_id: int, monitored: bool = True, search: bool = True) -> WorkflowResult:
        """Ajoute une série à Sonarr depuis son TVDB id."""
        sonarr = self._require_sonarr()
        try:
            lookup = await sonarr.search(f"tvdb:{tvdb_id}")
            if not lookup:
                raise RequestFailed(sonarr.name, f"No series found for tvdb:{tvdb_id}", 404)
            record = lookup[0]
            if record.get("id"):
                return WorkflowResult(UnitOutcome.SKIPPED, f"{record.get('title')} is already in Sonarr",
                                      item=sonarr.to_media_item(record))
            defaults = await self._pick_defaults(
                sonarr, self.acquisition.sonarr_quality_profile_id, self.acquisition.sonarr_root_folder
            )
            payload = {
                **record,
                **defaults,
                "monitored": monitored,
                "seasonFolder": True,
                "addOptions": {"searchForMissingEpisodes": search},
            }
            created = await sonarr.add_series(payload)
        except RequestFailed as e:
            logger.error(f"Adding tvdb:{tvdb_id} to Sonarr failed: {e}")
            return WorkflowResult(UnitOutcome.FAILED, str(e))
        item = sonarr.to_media_item(created or payload)
        logger.info(f"Series added to Sonarr: {item.title}")
        return WorkflowResult(UnitOutcome.QUEUED, f"{item.title} added to Sonarr", item=item)

    async def add_movie(self, tmdb_id: int, monitored: bool = True, search: bool = True) -> WorkflowResult:
        """Ajoute un film à Radarr depuis son TMDb id."""
        radarr = self._require_radarr()
        try:
            lookup = await radarr.search(f"tmdb:{tmdb_id}")
            if not lookup:
                raise RequestFailed(radarr.name, f"No movie found for tmdb:{tmdb_id}", 404)
            record = lookup[0]
            if record.get("id"):
                return WorkflowResult(UnitOutcome.SKIPPED, f"{record.get('title')} is already in Radarr",
                                      item=radarr.to_media_item(record))
            defaults = await self._pick_defaults(
                radarr, self.acquisition.radarr_quality_profile_id, self.acquisition.radarr_root_folder
            )
            payload = {
                **record,
                **defaults,
                "monitored": monitored,
                "minimumAvailability": self.acquisition.radarr_minimum_availability,
                "addOptions": {"searchForMovie": search},
            }
            created = await radarr.add_movie(payload)
        except RequestFailed as e:
            logger.error(f"Adding tmdb:{tmdb_id} to Radarr failed: {e}")
            return WorkflowResult(UnitOutcome.FAILED, str(e))
        item = radarr.to_media_item(created or payload)
        logger.info(f"Movie added to Radarr: {item.title}")
        return WorkflowResult(UnitOutcome.QUEUED, f"{item.title} added to Radarr", item=item)
