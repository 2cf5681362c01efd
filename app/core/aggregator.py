"""Aggregation des sources: recherche unifiée, détail réconcilié, files d'attente."""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Awaitable, Tuple

from app.core.errors import SourceFailure
from app.core.matcher import MediaMatcher
from app.core.models import UnifiedMediaItem, MediaKind, Source, QueueEntry
from app.services.registry import ClientBundle

logger = logging.getLogger(__name__)

SEARCH_SCOPES = ("acquisition", "library")


@dataclass
class SearchOutcome:
    items: List[UnifiedMediaItem] = field(default_factory=list)
    failures: List[SourceFailure] = field(default_factory=list)


@dataclass
class DetailOutcome:
    item: Optional[UnifiedMediaItem] = None
    counterpart: Optional[UnifiedMediaItem] = None
    failures: List[SourceFailure] = field(default_factory=list)


@dataclass
class HomeOutcome:
    recently_added: List[UnifiedMediaItem] = field(default_factory=list)
    on_deck: List[UnifiedMediaItem] = field(default_factory=list)
    configured: Dict[str, bool] = field(default_factory=dict)
    failures: List[SourceFailure] = field(default_factory=list)


@dataclass
class QueueOutcome:
    entries: List[QueueEntry] = field(default_factory=list)
    failures: List[SourceFailure] = field(default_factory=list)


class MediaAggregator:
    """Combine Plex, Sonarr, Radarr et TMDb sans jamais lever sur une source en échec."""

    def __init__(self, clients: ClientBundle):
        self.clients = clients

    async def _collect(self, source: str, call: Awaitable[Any], failures: List[SourceFailure]) -> Any:
        """Await one source; a failure is recorded and yields None."""
        try:
            return await call
        except Exception as e:
            logger.warning(f"Error fetching from {source}: {e}")
            if not any(f.source == source for f in failures):
                failures.append(SourceFailure.from_exception(source, e))
            return None

    async def _gather(self, calls: List[Tuple[str, Awaitable[Any]]], failures: List[SourceFailure]) -> List[Any]:
        return await asyncio.gather(*(self._collect(source, call, failures) for source, call in calls))

    async def _search_sonarr(self, query: str) -> List[UnifiedMediaItem]:
        sonarr = self.clients.sonarr
        return [sonarr.to_media_item(raw) for raw in await sonarr.search(query)]

    async def _search_radarr(self, query: str) -> List[UnifiedMediaItem]:
        radarr = self.clients.radarr
        return [radarr.to_media_item(raw) for raw in await radarr.search(query)]

    async def search(self, query: str, scope: str = "acquisition") -> SearchOutcome:
        """Recherche unifiée: résultats concaténés, triés, avec présence en bibliothèque."""
        outcome = SearchOutcome()
        query = (query or "").strip()
        if not query:
            return outcome
        if scope not in SEARCH_SCOPES:
            raise ValueError(f"Unknown search scope: {scope}")

        calls: List[Tuple[str, Awaitable[Any]]] = []
        if self.clients.sonarr:
            calls.append((Source.SONARR.value, self._search_sonarr(query)))
        if self.clients.radarr:
            calls.append((Source.RADARR.value, self._search_radarr(query)))
        if self.clients.tmdb:
            calls.append((Source.TMDB.value, self.clients.tmdb.search(query)))

        # Full library, fetched alongside the searches: existence check in
        # both scopes, and the Plex results themselves for scope=library
        library_index = None
        if self.clients.plex:
            library_index = len(calls)
            calls.append((Source.PLEX.value, self.clients.plex.list_all()))

        results = await self._gather(calls, outcome.failures)
        library = results.pop(library_index) if library_index is not None else None

        items: List[UnifiedMediaItem] = []
        for batch in results:
            items.extend(batch or [])
        if scope == "library" and library is not None:
            items.extend(self.clients.plex.filter_by_title(library, query))
        items = MediaMatcher.relevance_sort(items, query)
        if library is not None:
            MediaMatcher.mark_library_presence(items, library)

        logger.info(f"Search '{query}' ({scope}): {len(items)} results, {len(outcome.failures)} failed source(s)")
        outcome.items = items
        return outcome

    async def library(self, kind: MediaKind) -> SearchOutcome:
        """Parcourt la bibliothèque Plex (films ou séries)."""
        outcome = SearchOutcome()
        if not self.clients.plex:
            return outcome
        (items,) = await self._gather([(Source.PLEX.value, self.clients.plex.list_all(kind))], outcome.failures)
        outcome.items = items or []
        return outcome

    async def detail(self, rating_key: str) -> DetailOutcome:
        """Item Plex + contrepartie Sonarr/Radarr + saisons réconciliées."""
        outcome = DetailOutcome()
        plex = self.clients.plex
        if not plex:
            return outcome

        (raw,) = await self._gather([(Source.PLEX.value, plex.detail(rating_key))], outcome.failures)
        if not raw:
            return outcome
        item = plex.to_media_item(raw)
        outcome.item = item

        if item.media_kind == MediaKind.MOVIE and self.clients.radarr:
            radarr = self.clients.radarr
            (movies,) = await self._gather([(Source.RADARR.value, radarr.list())], outcome.failures)
            candidates = [radarr.to_media_item(m) for m in movies or []]
            outcome.counterpart = MediaMatcher.find_counterpart(item, candidates)
        elif item.media_kind == MediaKind.SHOW and self.clients.sonarr:
            sonarr = self.clients.sonarr
            (series,) = await self._gather([(Source.SONARR.value, sonarr.list())], outcome.failures)
            candidates = [sonarr.to_media_item(s) for s in series or []]
            outcome.counterpart = MediaMatcher.find_counterpart(item, candidates)

        if outcome.counterpart is not None:
            MediaMatcher.merge_items(outcome.counterpart, item)

        if item.media_kind == MediaKind.SHOW:
            item.seasons = await self._seasons(raw, outcome)
        return outcome

    async def _seasons(self, raw: Dict[str, Any], outcome: DetailOutcome) -> list:
        plex = self.clients.plex
        failures = outcome.failures
        (plex_seasons,) = await self._gather([(Source.PLEX.value, plex.children(raw.get("ratingKey")))], failures)
        plex_seasons = plex_seasons or []
        episode_batches = await self._gather(
            [(Source.PLEX.value, plex.children(s.get("ratingKey"))) for s in plex_seasons], failures
        )
        plex_episodes = {
            str(season.get("ratingKey")): batch or []
            for season, batch in zip(plex_seasons, episode_batches)
        }

        sonarr_series, sonarr_episodes, queued = None, [], set()
        counterpart = outcome.counterpart
        if counterpart is not None and self.clients.sonarr and counterpart.acquisition_id:
            sonarr = self.clients.sonarr
            series_id = counterpart.acquisition_id
            sonarr_series, episodes, queue = await self._gather([
                (Source.SONARR.value, sonarr.detail(series_id)),
                (Source.SONARR.value, sonarr.episodes(series_id)),
                (Source.SONARR.value, sonarr.queue()),
            ], failures)
            sonarr_episodes = episodes or []
            queued = {
                entry.episode_id
                for entry in (sonarr.to_queue_entry(r) for r in queue or [])
                if entry.series_id == series_id and entry.episode_id is not None
            }

        return MediaMatcher.reconcile_seasons(plex_seasons, plex_episodes, sonarr_series, sonarr_episodes, queued)

    async def home(self) -> HomeOutcome:
        outcome = HomeOutcome(configured=self.clients.configured())
        if not self.clients.plex:
            return outcome
        recent, deck = await self._gather([
            (Source.PLEX.value, self.clients.plex.recently_added()),
            (Source.PLEX.value, self.clients.plex.on_deck()),
        ], outcome.failures)
        outcome.recently_added = recent or []
        outcome.on_deck = deck or []
        return outcome

    async def queue(self) -> QueueOutcome:
        """Files de téléchargement Sonarr et Radarr."""
        outcome = QueueOutcome()
        services = [s for s in (self.clients.sonarr, self.clients.radarr) if s is not None]
        batches = await self._gather([(s.name, s.queue()) for s in services], outcome.failures)
        for service, records in zip(services, batches):
            outcome.entries.extend(service.to_queue_entry(r) for r in records or [])
        return outcome

    async def diagnostics(self) -> Dict[str, Dict[str, Any]]:
        """Teste la connexion à chaque service configuré."""
        results = {
            name: {"configured": configured, "connected": False, "error": None}
            for name, configured in self.clients.configured().items()
        }
        services = [
            (name, self.clients.require(name))
            for name, configured in self.clients.configured().items() if configured
        ]
        failures: List[SourceFailure] = []
        answers = await self._gather([(name, s.test_connection()) for name, s in services], failures)
        for (name, _), ok in zip(services, answers):
            results[name]["connected"] = bool(ok)
        for failure in failures:
            results[failure.source]["error"] = failure.message
        return results
