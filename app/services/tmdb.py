"""TMDb API client (read only, used for search and artwork)."""
import asyncio
import httpx
from typing import List, Dict, Any, Optional

from app.config import TmdbConfig
from app.core.errors import ConfigIncomplete
from app.core.models import UnifiedMediaItem, MediaKind, Source
from app.utils.http_client import ServiceHTTPClient

IMAGE_BASE_URL = "https://image.tmdb.org/t/p"


def _year(date: Optional[str]) -> Optional[int]:
    if not date or len(date) < 4 or not date[:4].isdigit():
        return None
    return int(date[:4])


class TmdbService:
    """Service pour interroger TMDb."""

    name = Source.TMDB.value

    def __init__(
        self,
        config: TmdbConfig,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not config.api_key:
            raise ConfigIncomplete(self.name, ["api_key"])
        self._http = ServiceHTTPClient(
            self.name,
            config.base_url,
            params={"api_key": config.api_key, "language": config.language},
            timeout=timeout,
            transport=transport,
        )

    async def _search(self, path: str, query: str) -> List[Dict[str, Any]]:
        data = await self._http.get(path, params={"query": query, "include_adult": "false", "page": 1})
        return (data or {}).get("results") or []

    async def search_movies(self, query: str) -> List[UnifiedMediaItem]:
        return [self.to_media_item(r, MediaKind.MOVIE) for r in await self._search("/search/movie", query)]

    async def search_shows(self, query: str) -> List[UnifiedMediaItem]:
        return [self.to_media_item(r, MediaKind.SHOW) for r in await self._search("/search/tv", query)]

    async def search(self, query: str) -> List[UnifiedMediaItem]:
        """Films puis séries, dans l'ordre renvoyé par TMDb."""
        movies, shows = await asyncio.gather(self.search_movies(query), self.search_shows(query))
        return movies + shows

    async def test_connection(self) -> bool:
        await self._http.get("/configuration")
        return True

    @staticmethod
    def image_url(path: Optional[str], size: str = "w500") -> Optional[str]:
        if not path:
            return None
        return f"{IMAGE_BASE_URL}/{size}{path}"

    def to_media_item(self, raw: Dict[str, Any], kind: MediaKind) -> UnifiedMediaItem:
        if kind == MediaKind.MOVIE:
            title, date = raw.get("title", ""), raw.get("release_date")
        else:
            title, date = raw.get("name", ""), raw.get("first_air_date")
        item = UnifiedMediaItem(
            identity=str(raw.get("id", "")),
            title=title,
            media_kind=kind,
            year=_year(date),
            source_origins={Source.TMDB},
            tmdb_id=raw.get("id"),
            overview=raw.get("overview"),
            poster=self.image_url(raw.get("poster_path")),
            backdrop=self.image_url(raw.get("backdrop_path"), "w1280"),
            rating=raw.get("vote_average"),
            popularity=float(raw.get("vote_count") or 0),
        )
        if raw.get("genre_ids"):
            item.metadata["genre_ids"] = raw.get("genre_ids")
        return item
