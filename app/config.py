"""
Configuration management for Readarr Request.

Process configuration comes from environment variables. Readarr instance
settings are served by a settings provider that prefers database-stored
settings and falls back to environment variables.
"""

import os
import threading
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator
from dotenv import load_dotenv

from app.utils.logging import get_logger

load_dotenv()

logger = get_logger(__name__)

MIN_LOOKUP_LIMIT = 20


class ConfigurationError(Exception):
    """Raised when settings are missing or cannot be resolved."""

    status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SettingsNotConfigured(Exception):
    """Raised when no settings source has instance settings yet."""


class AppConfig(BaseModel):
    """Process configuration for the request service."""

    port: int = Field(default=3000, description="HTTP port")
    auth: str = Field(default="", description="Shared secret required on API calls")
    lookup_limit: int = Field(default=MIN_LOOKUP_LIMIT, description="Distinct lookup results per instance")
    include_catalog_matches: bool = Field(
        default=True,
        description="Add owned books whose title/author/isbn contain the term"
    )
    defaults_resolution_enabled: bool = Field(
        default=True,
        description="Ask Readarr for root folder/quality profile when settings leave them blank"
    )
    database_url: str = Field(
        default="sqlite:///data/readarr-request.db",
        description="Database connection URL"
    )
    client_dist: str = Field(default="client/dist", description="Built web client directory")
    log_level: str = Field(default="INFO", description="Logging level")


def _to_int(value: Optional[str], fallback: int) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return fallback


def _to_bool(value: Optional[str], fallback: bool) -> bool:
    if value is None or not value.strip():
        return fallback
    return value.strip().lower() in ("1", "true", "yes", "on")


def _read_optional(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    trimmed = value.strip()
    return trimmed or None


def resolve_lookup_limit(value: Optional[str]) -> int:
    """Lookup limit from configuration, never below the floor."""
    return max(MIN_LOOKUP_LIMIT, _to_int(value, MIN_LOOKUP_LIMIT))


def get_config_from_env() -> AppConfig:
    """Load configuration from environment variables."""
    return AppConfig(
        port=_to_int(os.getenv("PORT"), 3000),
        auth=(os.getenv("AUTH") or "").strip(),
        lookup_limit=resolve_lookup_limit(os.getenv("READARR_LOOKUP_LIMIT")),
        include_catalog_matches=_to_bool(os.getenv("INCLUDE_CATALOG_MATCHES"), True),
        defaults_resolution_enabled=_to_bool(os.getenv("DEFAULTS_RESOLUTION"), True),
        database_url=os.getenv("DATABASE_URL", "sqlite:///data/readarr-request.db"),
        client_dist=os.getenv("CLIENT_DIST", "client/dist"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


class InstanceSettings(BaseModel):
    """Connection settings for one Readarr instance."""

    baseUrl: str = ""
    apiKey: str = ""
    rootFolderPath: str = ""
    qualityProfileId: int = 0

    @field_validator("baseUrl")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return (value or "").strip().rstrip("/")

    @field_validator("apiKey", "rootFolderPath")
    @classmethod
    def strip_value(cls, value: str) -> str:
        return (value or "").strip()

    @field_validator("qualityProfileId", mode="before")
    @classmethod
    def coerce_profile(cls, value) -> int:
        if value is None or value == "":
            return 0
        return value

    @property
    def has_defaults(self) -> bool:
        """True when both root folder and quality profile are set explicitly."""
        return bool(self.rootFolderPath) and self.qualityProfileId > 0


class Settings(BaseModel):
    """Settings for both Readarr instances."""

    ebooks: InstanceSettings
    audio: InstanceSettings


def validate_instance(
    instance: InstanceSettings,
    label: str,
    require_defaults: bool = False,
) -> None:
    """
    Validate one instance's settings before they are stored.

    Raises:
        ConfigurationError: If a required value is missing
    """
    if not instance.baseUrl:
        raise ConfigurationError(f"{label} base URL is required.")
    if not instance.apiKey:
        raise ConfigurationError(f"{label} API key is required.")
    if instance.qualityProfileId < 0:
        raise ConfigurationError(f"{label} quality profile ID must be positive.")
    if require_defaults:
        if not instance.rootFolderPath:
            raise ConfigurationError(f"{label} root folder path is required.")
        if instance.qualityProfileId <= 0:
            raise ConfigurationError(f"{label} quality profile ID is required.")


class SettingsSource:
    """A place instance settings can be loaded from and saved to."""

    name = "base"

    def load(self) -> Optional[Settings]:
        raise NotImplementedError

    def save(self, settings: Settings) -> None:
        raise NotImplementedError


class EnvSettingsSource(SettingsSource):
    """Read-only settings built from environment variables."""

    name = "env"

    def _instance(self, prefix: str, folder_var: str, profile_var: str) -> Optional[InstanceSettings]:
        url = _read_optional(os.getenv(f"READARR_{prefix}_URL"))
        key = _read_optional(os.getenv(f"READARR_{prefix}_APIKEY"))
        if not url or not key:
            return None
        return InstanceSettings(
            baseUrl=url,
            apiKey=key,
            rootFolderPath=_read_optional(os.getenv(folder_var)) or "",
            qualityProfileId=_to_int(os.getenv(profile_var), 0),
        )

    def load(self) -> Optional[Settings]:
        ebooks = self._instance("EBOOKS", "EBOOKS_ROOT_FOLDER", "EBOOKS_QUALITY_PROFILE_ID")
        audio = self._instance("AUDIO", "AUDIO_ROOT_FOLDER", "AUDIO_QUALITY_PROFILE_ID")
        if not ebooks or not audio:
            return None
        return Settings(ebooks=ebooks, audio=audio)

    def save(self, settings: Settings) -> None:
        raise RuntimeError("Environment settings are read-only")


class DatabaseSettingsSource(SettingsSource):
    """Settings stored in the application database, one row per instance."""

    name = "database"

    def load(self) -> Optional[Settings]:
        from app.db.database import get_db_session
        from app.db.models import InstanceConfig

        with get_db_session() as session:
            rows = {row.name: row for row in session.query(InstanceConfig).all()}

        if "ebooks" not in rows or "audio" not in rows:
            return None

        return Settings(
            ebooks=rows["ebooks"].to_settings(),
            audio=rows["audio"].to_settings(),
        )

    def save(self, settings: Settings) -> None:
        from app.db.database import get_db_session
        from app.db.models import InstanceConfig

        with get_db_session() as session:
            for name in ("ebooks", "audio"):
                instance: InstanceSettings = getattr(settings, name)
                row = session.query(InstanceConfig).filter(
                    InstanceConfig.name == name
                ).first()
                if not row:
                    row = InstanceConfig(name=name)
                    session.add(row)
                row.base_url = instance.baseUrl
                row.api_key = instance.apiKey
                row.root_folder_path = instance.rootFolderPath or None
                row.quality_profile_id = instance.qualityProfileId or None


class SettingsManager:
    """
    Serves instance settings from the first source that has them.

    The first successful load is cached for the life of the process and is
    only replaced by an explicit save.
    """

    def __init__(
        self,
        sources: Optional[List[SettingsSource]] = None,
        require_defaults: bool = False,
    ):
        self.sources = sources if sources is not None else [
            DatabaseSettingsSource(),
            EnvSettingsSource(),
        ]
        self.require_defaults = require_defaults
        self._cached: Optional[Settings] = None
        self._lock = threading.Lock()

    def get_settings(self) -> Optional[Settings]:
        """Get settings, or None when nothing is configured."""
        with self._lock:
            if self._cached is not None:
                return self._cached

            for source in self.sources:
                try:
                    settings = source.load()
                except Exception as e:
                    logger.error("Settings load failed", source=source.name, error=str(e))
                    continue
                if settings is not None:
                    self._cached = settings
                    return settings

            return None

    def require_settings(self) -> Settings:
        settings = self.get_settings()
        if settings is None:
            raise SettingsNotConfigured("Readarr settings not configured.")
        return settings

    def save_settings(self, settings: Settings) -> None:
        """Validate and persist settings to the first writable source."""
        validate_instance(settings.ebooks, "Ebooks", self.require_defaults)
        validate_instance(settings.audio, "Audiobooks", self.require_defaults)

        with self._lock:
            self.sources[0].save(settings)
            self._cached = settings

    def is_configured(self) -> bool:
        return self.get_settings() is not None
