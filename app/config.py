"""Configuration management with YAML, environment variables and the stored connection blob."""
import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, List, Dict, Any, Callable
import yaml
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings

from app.db.storage import LocalStorage

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "newplexui-config"
CONFIG_SCHEMA_VERSION = 1


class ServiceConnection(BaseModel, ABC):
    """Connection parameters shared by every external service."""
    host: str = "localhost"
    port: int
    scheme: str = "http"

    class Config:
        populate_by_name = True

    @property
    def url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"

    @property
    @abstractmethod
    def credential(self) -> str:
        """Token or API key; empty when not configured."""

    def is_configured(self) -> bool:
        """A non-empty credential means the service is configured."""
        return bool(self.credential)


class PlexConfig(ServiceConnection):
    port: int = 32400
    token: str = ""

    @property
    def credential(self) -> str:
        return self.token


class SonarrConfig(ServiceConnection):
    port: int = 8989
    api_key: str = Field(default="", alias="apiKey")

    @property
    def credential(self) -> str:
        return self.api_key


class RadarrConfig(ServiceConnection):
    port: int = 7878
    api_key: str = Field(default="", alias="apiKey")

    @property
    def credential(self) -> str:
        return self.api_key


SECTION_MODELS = {
    "plex": PlexConfig,
    "sonarr": SonarrConfig,
    "radarr": RadarrConfig,
}


class ConnectionSettings(BaseModel):
    """The three connection records, saved and loaded as one blob."""
    version: int = CONFIG_SCHEMA_VERSION
    plex: PlexConfig = Field(default_factory=PlexConfig)
    sonarr: SonarrConfig = Field(default_factory=SonarrConfig)
    radarr: RadarrConfig = Field(default_factory=RadarrConfig)

    def configured(self) -> Dict[str, bool]:
        return {name: getattr(self, name).is_configured() for name in SECTION_MODELS}

    def to_blob(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_blob(cls, raw: Optional[str]) -> "ConnectionSettings":
        """Parse a stored blob; each broken section degrades to its defaults."""
        if not raw:
            return cls()
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Stored connection settings are not valid JSON, using defaults")
            return cls()
        if not isinstance(data, dict):
            logger.warning("Stored connection settings have an unexpected shape, using defaults")
            return cls()

        sections = {}
        for name, model in SECTION_MODELS.items():
            sections[name] = _load_section(name, model, data.get(name))
        return cls(**sections)


def _load_section(name: str, model: type, section: Any) -> ServiceConnection:
    """Validate one section, dropping invalid fields so they take their defaults."""
    if not isinstance(section, dict):
        if section is not None:
            logger.warning(f"Stored {name} settings are not an object, using defaults")
        return model()
    try:
        return model.model_validate(section)
    except ValidationError as e:
        bad_fields = {err["loc"][0] for err in e.errors() if err.get("loc")}
        logger.warning(f"Stored {name} settings have invalid fields {sorted(bad_fields)}, using defaults for them")
        cleaned = {k: v for k, v in section.items() if k not in bad_fields}
        try:
            return model.model_validate(cleaned)
        except ValidationError:
            return model()


class ConfigStore:
    """Persists ConnectionSettings as one blob and announces every save."""

    def __init__(self, storage: LocalStorage, key: str = DEFAULT_STORAGE_KEY):
        self.storage = storage
        self.key = key
        self._listeners: List[Callable[[ConnectionSettings], None]] = []

    def subscribe(self, listener: Callable[[ConnectionSettings], None]) -> None:
        self._listeners.append(listener)

    def load(self) -> ConnectionSettings:
        return ConnectionSettings.from_blob(self.storage.get_item(self.key))

    def save(self, connections: ConnectionSettings) -> None:
        """Overwrite the whole blob, then notify listeners."""
        connections = connections.model_copy(update={"version": CONFIG_SCHEMA_VERSION})
        self.storage.set_item(self.key, connections.to_blob())
        logger.info(f"Connection settings saved: {connections.configured()}")
        for listener in self._listeners:
            listener(connections)


class TmdbConfig(BaseModel):
    api_key: str = ""
    base_url: str = "https://api.themoviedb.org/3"
    language: str = "en-US"


class AcquisitionConfig(BaseModel):
    """Defaults used when adding a new series or movie."""
    sonarr_quality_profile_id: Optional[int] = None
    sonarr_root_folder: Optional[str] = None
    radarr_quality_profile_id: Optional[int] = None
    radarr_root_folder: Optional[str] = None
    radarr_minimum_availability: str = "released"


class AppConfig(BaseModel):
    data_dir: str = "/data"
    log_level: str = "INFO"
    storage_key: str = DEFAULT_STORAGE_KEY
    frontend_dir: Optional[str] = None
    request_timeout: float = 30.0


class Settings(BaseSettings):
    tmdb: TmdbConfig = Field(default_factory=TmdbConfig)
    acquisition: AcquisitionConfig = Field(default_factory=AcquisitionConfig)
    app: AppConfig = Field(default_factory=AppConfig)

    class Config:
        env_file = ".env"
        env_nested_delimiter = "__"

    @classmethod
    def load_from_yaml(cls, yaml_path: Optional[str]) -> "Settings":
        """Load settings from a YAML file, override with env vars."""
        yaml_data: Dict[str, Any] = {}
        if yaml_path and Path(yaml_path).exists():
            with open(yaml_path, "r", encoding="utf-8") as f:
                yaml_data = yaml.safe_load(f) or {}
        else:
            logger.warning(f"Settings file not found ({yaml_path}), using environment and defaults")

        # Override with environment variables
        for key in ["tmdb", "acquisition", "app"]:
            section = yaml_data.get(key) or {}
            model = cls.model_fields[key].annotation
            for subkey in model.model_fields:
                env_value = os.getenv(f"{key.upper()}__{subkey.upper()}")
                if env_value:
                    section[subkey] = env_value
            if section:
                yaml_data[key] = section

        return cls(**yaml_data)


# Global settings instance (will be initialized in main.py)
settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    if settings is None:
        raise RuntimeError("Settings not initialized. Call init_settings() first.")
    return settings


def init_settings(config_path: Optional[str] = None) -> Settings:
    """Initialize global settings from a YAML file."""
    global settings
    settings = Settings.load_from_yaml(config_path)
    return settings


# Global connection store (will be initialized in main.py)
config_store: Optional[ConfigStore] = None


def get_config_store() -> ConfigStore:
    """Get the global connection settings store."""
    if config_store is None:
        raise RuntimeError("Config store not initialized. Call init_config_store() first.")
    return config_store


def init_config_store(key: str = DEFAULT_STORAGE_KEY) -> ConfigStore:
    """Initialize the store on top of the database-backed local storage."""
    global config_store
    config_store = ConfigStore(LocalStorage(), key=key)
    return config_store
