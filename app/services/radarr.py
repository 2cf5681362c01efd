"""Radarr API client."""
from typing import List, Dict, Any, Optional

from app.core.models import UnifiedMediaItem, MediaKind, Source, QueueEntry
from app.services.arr import ArrService, pick_image, read_ratings


class RadarrService(ArrService):
    """Service pour interagir avec Radarr."""

    name = Source.RADARR.value

    async def list(self) -> List[Dict[str, Any]]:
        """Récupère tous les films depuis Radarr."""
        return await self._http.get("/movie") or []

    async def detail(self, movie_id: int) -> Optional[Dict[str, Any]]:
        return await self._http.get(f"/movie/{movie_id}", allow_not_found=True)

    async def search(self, term: str) -> List[Dict[str, Any]]:
        """Recherche de films (lookup TMDb via Radarr)."""
        return await self._http.get("/movie/lookup", params={"term": term}) or []

    async def update_movie(self, movie: Dict[str, Any]) -> Any:
        """Remplace l'objet film complet."""
        return await self._http.put(f"/movie/{movie['id']}", json=movie)

    async def add_movie(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._http.post("/movie", json=payload)

    async def search_movies(self, movie_ids: List[int]) -> Any:
        if not movie_ids:
            return None
        return await self.command("MoviesSearch", movieIds=list(movie_ids))

    def to_media_item(self, movie: Dict[str, Any]) -> UnifiedMediaItem:
        """Convertit un film Radarr (bibliothèque ou lookup) en UnifiedMediaItem."""
        rating, votes = read_ratings(movie)
        item = UnifiedMediaItem(
            identity=str(movie.get("tmdbId") or movie.get("id") or movie.get("title", "")),
            title=movie.get("title", ""),
            media_kind=MediaKind.MOVIE,
            year=movie.get("year") or None,
            source_origins={Source.RADARR},
            tmdb_id=movie.get("tmdbId") or None,
            imdb_id=movie.get("imdbId") or None,
            acquisition_id=movie.get("id") or None,
            overview=movie.get("overview"),
            poster=pick_image(movie.get("images"), "poster"),
            backdrop=pick_image(movie.get("images"), "fanart"),
            rating=rating,
            genres=list(movie.get("genres") or []),
            popularity=votes,
            monitored=movie.get("monitored") if movie.get("id") else None,
            has_file=movie.get("hasFile") if movie.get("id") else None,
        )
        item.metadata["radarr_title_slug"] = movie.get("titleSlug")
        item.metadata["radarr_status"] = movie.get("status")
        if movie.get("sizeOnDisk"):
            item.metadata["size_bytes"] = movie.get("sizeOnDisk")
        return item

    @staticmethod
    def to_queue_entry(record: Dict[str, Any]) -> QueueEntry:
        movie = record.get("movie") or {}
        return QueueEntry(
            source=Source.RADARR,
            queue_id=record.get("id"),
            title=movie.get("title") or record.get("title", ""),
            status=record.get("status"),
            size=float(record.get("size") or 0),
            sizeleft=float(record.get("sizeleft") or 0),
            estimated_completion_time=record.get("estimatedCompletionTime"),
            movie_id=record.get("movieId"),
        )
