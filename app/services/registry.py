"""Immutable client bundles, rebuilt on every connection settings change."""
import logging
from dataclasses import dataclass
from typing import Optional, Dict, Union

import httpx

from app.config import ConfigStore, ConnectionSettings, Settings
from app.core.errors import ConfigIncomplete
from app.services.plex import PlexService
from app.services.radarr import RadarrService
from app.services.sonarr import SonarrService
from app.services.tmdb import TmdbService

logger = logging.getLogger(__name__)

AnyService = Union[PlexService, SonarrService, RadarrService, TmdbService]


@dataclass(frozen=True)
class ClientBundle:
    """Clients for one configuration version; absent means not configured."""
    version: int = 0
    plex: Optional[PlexService] = None
    sonarr: Optional[SonarrService] = None
    radarr: Optional[RadarrService] = None
    tmdb: Optional[TmdbService] = None

    def configured(self) -> Dict[str, bool]:
        return {
            "plex": self.plex is not None,
            "sonarr": self.sonarr is not None,
            "radarr": self.radarr is not None,
            "tmdb": self.tmdb is not None,
        }

    def require(self, name: str) -> AnyService:
        """Client `name`, or ConfigIncomplete if that capability is absent."""
        client = getattr(self, name, None)
        if client is None:
            raise ConfigIncomplete(name)
        return client


def build_clients(
    connections: ConnectionSettings,
    settings: Settings,
    version: int,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ClientBundle:
    """Construit les clients configurés (credential non vide)."""
    timeout = settings.app.request_timeout
    built: Dict[str, AnyService] = {}
    candidates = [
        ("plex", PlexService, connections.plex, connections.plex.is_configured()),
        ("sonarr", SonarrService, connections.sonarr, connections.sonarr.is_configured()),
        ("radarr", RadarrService, connections.radarr, connections.radarr.is_configured()),
        ("tmdb", TmdbService, settings.tmdb, bool(settings.tmdb.api_key)),
    ]
    for name, service_cls, config, configured in candidates:
        if not configured:
            continue
        try:
            built[name] = service_cls(config, timeout=timeout, transport=transport)
        except ConfigIncomplete as e:
            logger.warning(f"Skipping {name}: {e}")
    logger.info(f"Client bundle v{version} built: {sorted(built)}")
    return ClientBundle(version=version, **built)


class ClientRegistry:
    """Holds the current ClientBundle and swaps it on configuration changes."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.transport = transport
        self._current = ClientBundle()

    @property
    def current(self) -> ClientBundle:
        return self._current

    def on_config_change(self, connections: ConnectionSettings) -> ClientBundle:
        """Listener for ConfigStore.save: every save yields a new version."""
        self._current = build_clients(
            connections, self.settings, self._current.version + 1, transport=self.transport
        )
        return self._current


# Global registry (initialized in main.py)
registry: Optional[ClientRegistry] = None


def init_registry(
    store: ConfigStore,
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ClientRegistry:
    """Create the registry, build the first bundle and subscribe to saves."""
    global registry
    registry = ClientRegistry(settings, transport=transport)
    registry.on_config_change(store.load())
    store.subscribe(registry.on_config_change)
    return registry


def get_registry() -> ClientRegistry:
    if registry is None:
        raise RuntimeError("Client registry not initialized. Call init_registry() first.")
    return registry


def get_clients() -> ClientBundle:
    """FastAPI dependency: the bundle for the current configuration."""
    return get_registry().current
