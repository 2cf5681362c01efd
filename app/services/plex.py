"""Plex API client."""
import asyncio
import httpx
from typing import List, Dict, Any, Optional

from app.config import PlexConfig
from app.core.errors import ConfigIncomplete
from app.core.matcher import MediaMatcher
from app.core.models import UnifiedMediaItem, MediaKind, Source
from app.utils.http_client import ServiceHTTPClient

PLEX_KINDS = {
    "movie": MediaKind.MOVIE,
    "show": MediaKind.SHOW,
    "episode": MediaKind.EPISODE,
}

# Library section types browsed by the dashboard
SECTION_TYPES = {"movie": MediaKind.MOVIE, "show": MediaKind.SHOW}


def _container(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        return {}
    return data.get("MediaContainer") or {}


class PlexService:
    """Service pour interagir avec Plex (API JSON, token en paramètre de requête)."""

    name = Source.PLEX.value

    def __init__(
        self,
        config: PlexConfig,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        missing = [field for field, value in (("host", config.host), ("token", config.token)) if not value]
        if missing:
            raise ConfigIncomplete(self.name, missing)
        self.base_url = config.url
        self.token = config.token
        self._http = ServiceHTTPClient(
            self.name,
            self.base_url,
            headers={"Accept": "application/json", "X-Plex-Product": "Media Hub"},
            params={"X-Plex-Token": self.token},
            timeout=timeout,
            transport=transport,
        )

    async def list_sections(self) -> List[Dict[str, Any]]:
        """Récupère les bibliothèques Plex."""
        data = await self._http.get("/library/sections")
        return _container(data).get("Directory", [])

    async def list_items(self, section_id: str) -> List[Dict[str, Any]]:
        """Récupère tous les items d'une bibliothèque."""
        data = await self._http.get(f"/library/sections/{section_id}/all")
        return _container(data).get("Metadata", [])

    async def list_all(self, kind: Optional[MediaKind] = None) -> List[UnifiedMediaItem]:
        """Every movie and show across the movie/show sections."""
        sections = [
            s for s in await self.list_sections()
            if s.get("type") in SECTION_TYPES and (kind is None or SECTION_TYPES[s.get("type")] == kind)
        ]
        batches = await asyncio.gather(*(self.list_items(s.get("key")) for s in sections))
        return [self.to_media_item(raw) for batch in batches for raw in batch]

    @staticmethod
    def filter_by_title(items: List[UnifiedMediaItem], query: str) -> List[UnifiedMediaItem]:
        needle = query.lower()
        return [item for item in items if needle in item.title.lower()]

    async def search(self, query: str) -> List[UnifiedMediaItem]:
        """Films et séries de la bibliothèque dont le titre contient la requête (casse ignorée)."""
        return self.filter_by_title(await self.list_all(), query)

    async def detail(self, rating_key: str) -> Optional[Dict[str, Any]]:
        """Métadonnées d'un item, None si Plex ne le connaît pas."""
        data = await self._http.get(f"/library/metadata/{rating_key}", allow_not_found=True)
        items = _container(data).get("Metadata", [])
        return items[0] if items else None

    async def children(self, rating_key: str) -> List[Dict[str, Any]]:
        """Saisons d'une série, ou épisodes d'une saison."""
        data = await self._http.get(f"/library/metadata/{rating_key}/children")
        return _container(data).get("Metadata", [])

    async def recently_added(self, limit: int = 20) -> List[UnifiedMediaItem]:
        data = await self._http.get(
            "/library/recentlyAdded",
            params={"X-Plex-Container-Start": 0, "X-Plex-Container-Size": limit},
        )
        return [self.to_media_item(raw) for raw in _container(data).get("Metadata", [])]

    async def on_deck(self) -> List[UnifiedMediaItem]:
        data = await self._http.get("/library/onDeck")
        return [self.to_media_item(raw) for raw in _container(data).get("Metadata", [])]

    async def test_connection(self) -> bool:
        await self._http.get("/library/sections")
        return True

    def image_url(self, path: Optional[str]) -> Optional[str]:
        """URL absolue (avec token) pour un thumb/art Plex."""
        if not path:
            return None
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return self._http.url(path)

    def stream_url(self, metadata: Dict[str, Any]) -> str:
        """Direct file URL of the first part, else the universal transcoder."""
        media = metadata.get("Media") or []
        parts = (media[0].get("Part") or []) if media else []
        if parts:
            part = parts[0]
            if part.get("key"):
                return self._http.url(part["key"])
            if part.get("id") is not None:
                return self._http.url(f"/library/parts/{part['id']}/file")
        return self._http.url(
            "/video/:/transcode/universal/start",
            params={
                "mediaIndex": 0,
                "partIndex": 0,
                "protocol": "http",
                "path": f"/library/metadata/{metadata.get('ratingKey')}",
            },
        )

    def to_media_item(self, raw: Dict[str, Any]) -> UnifiedMediaItem:
        """Convertit une entrée MediaContainer.Metadata en UnifiedMediaItem."""
        rating_key = str(raw.get("ratingKey", ""))
        ids = MediaMatcher.ids_from_plex(raw)
        rating = raw.get("audienceRating")
        if rating is None:
            rating = raw.get("rating")

        item = UnifiedMediaItem(
            identity=rating_key,
            title=raw.get("title", ""),
            media_kind=PLEX_KINDS.get(raw.get("type"), MediaKind.MOVIE),
            year=raw.get("year"),
            source_origins={Source.PLEX},
            tmdb_id=ids.get("tmdb"),
            tvdb_id=ids.get("tvdb"),
            imdb_id=ids.get("imdb"),
            plex_rating_key=rating_key or None,
            overview=raw.get("summary"),
            poster=self.image_url(raw.get("thumb")),
            backdrop=self.image_url(raw.get("art")),
            rating=rating,
            genres=[g.get("tag") for g in raw.get("Genre", []) if g.get("tag")],
            popularity=float(raw.get("viewCount") or 0),
            in_library=True,
        )
        for key in ("duration", "viewCount", "addedAt", "lastViewedAt", "tagline", "studio",
                    "contentRating", "originallyAvailableAt", "grandparentTitle",
                    "parentIndex", "index", "librarySectionID"):
            if raw.get(key) is not None:
                item.metadata[key] = raw.get(key)
        return item
