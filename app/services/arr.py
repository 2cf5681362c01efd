"""Shared plumbing for the Sonarr and Radarr v3 APIs."""
import httpx
from typing import List, Dict, Any, Optional, Tuple

from app.config import ServiceConnection
from app.core.errors import ConfigIncomplete
from app.utils.http_client import ServiceHTTPClient


def pick_image(images: Optional[List[Dict[str, Any]]], cover_type: str) -> Optional[str]:
    """URL d'une image (remoteUrl en priorité) pour un coverType donné."""
    for image in images or []:
        if image.get("coverType") == cover_type:
            return image.get("remoteUrl") or image.get("url")
    return None


def read_ratings(raw: Dict[str, Any]) -> Tuple[Optional[float], float]:
    """(valeur, votes) depuis `ratings`, format plat (v3) ou par fournisseur (v4+)."""
    ratings = raw.get("ratings") or {}
    if "votes" in ratings or "value" in ratings:
        return ratings.get("value"), float(ratings.get("votes") or 0)
    for provider in ("tmdb", "imdb", "trakt"):
        nested = ratings.get(provider)
        if isinstance(nested, dict):
            return nested.get("value"), float(nested.get("votes") or 0)
    return None, 0.0


class ArrService:
    """Base des clients *arr: en-tête X-Api-Key, préfixe /api/v3."""

    name = ""

    def __init__(
        self,
        config: ServiceConnection,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        missing = [field for field, value in (("host", config.host), ("api_key", config.credential)) if not value]
        if missing:
            raise ConfigIncomplete(self.name, missing)
        self.base_url = config.url
        self.api_key = config.credential
        self._http = ServiceHTTPClient(
            self.name,
            f"{self.base_url}/api/v3",
            headers={"X-Api-Key": self.api_key, "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def command(self, name: str, **body: Any) -> Any:
        """POST /command: the server queues the command and answers at once."""
        return await self._http.post("/command", json={"name": name, **body})

    async def queue(self) -> List[Dict[str, Any]]:
        """Récupère la file de téléchargement."""
        data = await self._http.get("/queue", params={"pageSize": 1000})
        # v3 renvoie une page {records: [...]}, les versions anciennes une liste
        if isinstance(data, dict):
            return data.get("records", [])
        return data or []

    async def quality_profiles(self) -> List[Dict[str, Any]]:
        return await self._http.get("/qualityprofile") or []

    async def root_folders(self) -> List[Dict[str, Any]]:
        return await self._http.get("/rootfolder") or []

    async def test_connection(self) -> bool:
        await self._http.get("/system/status")
        return True
