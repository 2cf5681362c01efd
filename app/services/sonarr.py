"""Sonarr API client."""
from typing import List, Dict, Any, Optional

from app.core.models import UnifiedMediaItem, MediaKind, Source, QueueEntry
from app.services.arr import ArrService, pick_image, read_ratings


class SonarrService(ArrService):
    """Service pour interagir avec Sonarr."""

    name = Source.SONARR.value

    async def list(self) -> List[Dict[str, Any]]:
        """Récupère toutes les séries depuis Sonarr."""
        return await self._http.get("/series") or []

    async def detail(self, series_id: int) -> Optional[Dict[str, Any]]:
        """Série complète, None si inconnue."""
        return await self._http.get(f"/series/{series_id}", allow_not_found=True)

    async def search(self, term: str) -> List[Dict[str, Any]]:
        """Recherche de séries (lookup TVDB via Sonarr)."""
        return await self._http.get("/series/lookup", params={"term": term}) or []

    async def episodes(self, series_id: int) -> List[Dict[str, Any]]:
        """Récupère les épisodes d'une série."""
        return await self._http.get("/episode", params={"seriesId": series_id}) or []

    async def episode(self, episode_id: int) -> Optional[Dict[str, Any]]:
        return await self._http.get(f"/episode/{episode_id}", allow_not_found=True)

    async def update_series(self, series: Dict[str, Any]) -> Any:
        """Remplace l'objet série complet (PUT, pas de patch partiel)."""
        return await self._http.put(f"/series/{series['id']}", json=series)

    async def update_episode(self, episode: Dict[str, Any]) -> Any:
        """Remplace l'objet épisode complet."""
        return await self._http.put(f"/episode/{episode['id']}", json=episode)

    async def add_series(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._http.post("/series", json=payload)

    async def search_episodes(self, episode_ids: List[int]) -> Any:
        """Déclenche EpisodeSearch; une liste vide ne fait rien."""
        if not episode_ids:
            return None
        return await self.command("EpisodeSearch", episodeIds=list(episode_ids))

    def to_media_item(self, series: Dict[str, Any]) -> UnifiedMediaItem:
        """Convertit une série Sonarr (bibliothèque ou lookup) en UnifiedMediaItem."""
        rating, votes = read_ratings(series)
        stats = series.get("statistics") or {}
        item = UnifiedMediaItem(
            identity=str(series.get("tvdbId") or series.get("id") or series.get("title", "")),
            title=series.get("title", ""),
            media_kind=MediaKind.SHOW,
            year=series.get("year") or None,
            source_origins={Source.SONARR},
            tvdb_id=series.get("tvdbId") or None,
            tmdb_id=series.get("tmdbId") or None,
            imdb_id=series.get("imdbId") or None,
            acquisition_id=series.get("id") or None,
            overview=series.get("overview"),
            poster=pick_image(series.get("images"), "poster"),
            backdrop=pick_image(series.get("images"), "fanart"),
            rating=rating,
            genres=list(series.get("genres") or []),
            popularity=votes,
            monitored=series.get("monitored") if series.get("id") else None,
            has_file=(stats.get("episodeFileCount", 0) > 0) if stats else None,
        )
        item.metadata["sonarr_title_slug"] = series.get("titleSlug")
        item.metadata["sonarr_status"] = series.get("status")
        if stats:
            item.metadata["episode_count"] = stats.get("episodeCount")
            item.metadata["episode_file_count"] = stats.get("episodeFileCount")
        return item

    @staticmethod
    def to_queue_entry(record: Dict[str, Any]) -> QueueEntry:
        series = record.get("series") or {}
        episode = record.get("episode") or {}
        return QueueEntry(
            source=Source.SONARR,
            queue_id=record.get("id"),
            title=series.get("title") or record.get("title", ""),
            status=record.get("status"),
            size=float(record.get("size") or 0),
            sizeleft=float(record.get("sizeleft") or 0),
            estimated_completion_time=record.get("estimatedCompletionTime"),
            series_id=record.get("seriesId"),
            episode_id=record.get("episodeId") or episode.get("id"),
            season_number=episode.get("seasonNumber", record.get("seasonNumber")),
            episode_number=episode.get("episodeNumber"),
        )
