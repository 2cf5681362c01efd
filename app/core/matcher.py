"""Matching cross-services pour unifier les médias."""
from typing import List, Dict, Optional, Any, Iterable, Set
import logging

from app.core.models import UnifiedMediaItem, SeasonGroup, SeasonEpisodeUnit

logger = logging.getLogger(__name__)

# Agent/scheme names found in Plex guids -> id kind
GUID_AGENTS = {
    "tmdb": "tmdb",
    "themoviedb": "tmdb",
    "tvdb": "tvdb",
    "thetvdb": "tvdb",
    "imdb": "imdb",
}

ID_KINDS = ("tmdb", "tvdb", "imdb")


class MediaMatcher:
    """Matcher pour unifier les médias entre services."""

    @staticmethod
    def ids_from_guid(guid: Optional[str]) -> Dict[str, Any]:
        """Parse `tmdb://603` or `com.plexapp.agents.thetvdb://81189/1/2?lang=en`."""
        if not guid or "://" not in guid:
            return {}
        scheme, _, rest = guid.partition("://")
        agent = GUID_AGENTS.get(scheme.rsplit(".", 1)[-1].lower())
        if not agent:
            return {}
        value = rest.split("?", 1)[0].split("/", 1)[0].strip()
        if not value:
            return {}
        if agent == "imdb":
            return {"imdb": value}
        if not value.isdigit():
            return {}
        return {agent: int(value)}

    @staticmethod
    def ids_from_plex(metadata: Dict[str, Any]) -> Dict[str, Any]:
        """External ids embedded in a Plex record (`Guid[]` first, then legacy `guid`)."""
        ids: Dict[str, Any] = {}
        for guid in metadata.get("Guid") or []:
            for kind, value in MediaMatcher.ids_from_guid(guid.get("id")).items():
                ids.setdefault(kind, value)
        for kind, value in MediaMatcher.ids_from_guid(metadata.get("guid")).items():
            ids.setdefault(kind, value)
        return ids

    @staticmethod
    def titles_match(a: Optional[str], b: Optional[str]) -> bool:
        """Égalité exacte insensible à la casse (les espaces comptent)."""
        if not a or not b:
            return False
        return a.lower() == b.lower()

    @staticmethod
    def ids_match(item: UnifiedMediaItem, candidate: UnifiedMediaItem) -> Optional[bool]:
        """True/False when both carry an id of the same kind, None otherwise."""
        item_ids = item.external_ids()
        candidate_ids = candidate.external_ids()
        shared = [kind for kind in ID_KINDS if kind in item_ids and kind in candidate_ids]
        if not shared:
            return None
        return any(str(item_ids[kind]) == str(candidate_ids[kind]) for kind in shared)

    @staticmethod
    def find_match(item: UnifiedMediaItem, candidates: Iterable[UnifiedMediaItem]) -> Optional[UnifiedMediaItem]:
        """Identifier pass over all candidates, then title pass.

        Pairs that share an id kind are decided by ids alone; the title pass
        only considers candidates with no comparable id. First hit wins.
        Only candidates of the same media kind are compared (TMDb movie and
        TV ids overlap).
        """
        candidates = [c for c in candidates if c.media_kind == item.media_kind]
        for candidate in candidates:
            if MediaMatcher.ids_match(item, candidate) is True:
                return candidate
        for candidate in candidates:
            if MediaMatcher.ids_match(item, candidate) is None and MediaMatcher.titles_match(item.title, candidate.title):
                return candidate
        return None

    @staticmethod
    def find_counterpart(
        library_item: UnifiedMediaItem,
        acquisition_items: Iterable[UnifiedMediaItem],
    ) -> Optional[UnifiedMediaItem]:
        """Counterpart of a Plex item in Sonarr/Radarr."""
        return MediaMatcher.find_match(library_item, acquisition_items)

    @staticmethod
    def mark_library_presence(
        results: List[UnifiedMediaItem],
        library: List[UnifiedMediaItem],
    ) -> List[UnifiedMediaItem]:
        """Flag search results already present in the Plex library (linear scan)."""
        for result in results:
            if result.plex_rating_key:
                result.in_library = True
                continue
            match = MediaMatcher.find_match(result, library)
            result.in_library = match is not None
            if match:
                result.plex_rating_key = match.plex_rating_key
        return results

    @staticmethod
    def relevance_sort(items: List[UnifiedMediaItem], query: str) -> List[UnifiedMediaItem]:
        """Exact title matches first, then by popularity; stable otherwise."""
        return sorted(
            items,
            key=lambda item: (0 if MediaMatcher.titles_match(item.title, query.strip()) else 1, -item.popularity),
        )

    @staticmethod
    def merge_items(source: UnifiedMediaItem, target: UnifiedMediaItem) -> UnifiedMediaItem:
        """Fusionne source dans target (target garde ses valeurs)."""
        target.source_origins |= source.source_origins

        # Merge IDs (priorité à target)
        if not target.tmdb_id and source.tmdb_id:
            target.tmdb_id = source.tmdb_id
        if not target.tvdb_id and source.tvdb_id:
            target.tvdb_id = source.tvdb_id
        if not target.imdb_id and source.imdb_id:
            target.imdb_id = source.imdb_id
        if not target.plex_rating_key and source.plex_rating_key:
            target.plex_rating_key = source.plex_rating_key
        if target.acquisition_id is None and source.acquisition_id is not None:
            target.acquisition_id = source.acquisition_id

        # Acquisition state is only ever reported by Sonarr/Radarr
        if source.monitored is not None:
            target.monitored = source.monitored
        if source.has_file is not None:
            target.has_file = source.has_file

        if not target.year and source.year:
            target.year = source.year
        if not target.overview and source.overview:
            target.overview = source.overview
        if not target.poster and source.poster:
            target.poster = source.poster
        if not target.backdrop and source.backdrop:
            target.backdrop = source.backdrop
        target.genres.extend([g for g in source.genres if g not in target.genres])

        for key, value in source.metadata.items():
            target.metadata.setdefault(key, value)
        return target

    @staticmethod
    def reconcile_seasons(
        plex_seasons: List[Dict[str, Any]],
        plex_episodes: Dict[str, List[Dict[str, Any]]],
        sonarr_series: Optional[Dict[str, Any]],
        sonarr_episodes: List[Dict[str, Any]],
        queued_episode_ids: Optional[Set[int]] = None,
    ) -> List[SeasonGroup]:
        """Merge Plex seasons/episodes with Sonarr's grouping.

        Sonarr owns has_file/monitored/downloading. Seasons and episodes align
        by number first; leftovers align by position among the unmatched ones.
        `plex_episodes` maps a Plex season ratingKey to its episode records.
        """
        queued = queued_episode_ids or set()
        season_flags = {
            s.get("seasonNumber"): bool(s.get("monitored"))
            for s in (sonarr_series or {}).get("seasons", [])
        }

        groups: Dict[int, SeasonGroup] = {}
        for number, monitored in season_flags.items():
            if number is not None:
                groups[number] = SeasonGroup(season_number=number, monitored=monitored)
        for episode in sonarr_episodes:
            number = episode.get("seasonNumber")
            if number is None:
                continue
            group = groups.setdefault(number, SeasonGroup(season_number=number))
            episode_id = episode.get("id")
            group.units.append(SeasonEpisodeUnit(
                season_number=number,
                episode_number=episode.get("episodeNumber", 0),
                title=episode.get("title"),
                episode_id=episode_id,
                has_file=bool(episode.get("hasFile")),
                monitored=bool(episode.get("monitored")),
                downloading=episode_id in queued,
            ))
        for group in groups.values():
            group.units.sort(key=lambda u: u.episode_number)

        # Seasons: by number, then by position
        plex_sorted = sorted(plex_seasons, key=lambda s: s.get("index", 0))
        pairs = []
        unmatched_plex = []
        taken: Set[int] = set()
        for season in plex_sorted:
            number = season.get("index")
            if number in groups and number not in taken:
                pairs.append((season, groups[number]))
                taken.add(number)
            else:
                unmatched_plex.append(season)

        remaining = [groups[n] for n in sorted(groups) if n not in taken]
        plex_only: List[SeasonGroup] = []
        for season in unmatched_plex:
            if remaining:
                group = remaining.pop(0)
                logger.debug(f"Season {season.get('index')} aligned by position with Sonarr season {group.season_number}")
            else:
                group = SeasonGroup(season_number=season.get("index", 0))
                plex_only.append(group)
            pairs.append((season, group))

        for season, group in pairs:
            if season.get("ratingKey") is not None:
                group.plex_rating_key = str(season.get("ratingKey"))
            group.title = group.title or season.get("title")
            episodes = plex_episodes.get(str(season.get("ratingKey")), [])
            MediaMatcher._align_episodes(group, episodes)

        merged = [groups[n] for n in sorted(groups)] + plex_only
        return sorted(merged, key=lambda g: g.season_number)

    @staticmethod
    def _align_episodes(group: SeasonGroup, plex_episodes: List[Dict[str, Any]]) -> None:
        by_number = {u.episode_number: u for u in group.units}
        unmatched = []
        for episode in sorted(plex_episodes, key=lambda e: e.get("index", 0)):
            unit = by_number.get(episode.get("index"))
            if unit is not None and unit.plex_rating_key is None:
                unit.plex_rating_key = str(episode.get("ratingKey"))
            else:
                unmatched.append(episode)

        free = [u for u in group.units if u.plex_rating_key is None]
        for episode in unmatched:
            if free:
                free.pop(0).plex_rating_key = str(episode.get("ratingKey"))
            else:
                # Known to Plex only: the file exists, nothing to monitor
                group.units.append(SeasonEpisodeUnit(
                    season_number=group.season_number,
                    episode_number=episode.get("index", 0),
                    title=episode.get("title"),
                    plex_rating_key=str(episode.get("ratingKey")),
                    has_file=True,
                ))
