"""
Request service: the operations the HTTP layer calls.
"""

from typing import Any, Dict, List, Optional

from app.api.readarr import ReadarrClient
from app.config import AppConfig, InstanceSettings, SettingsManager, get_config_from_env
from app.search.engine import SearchEngine
from app.search.models import ResolvedDefaults, SearchItem
from app.search.requester import BookRequester
from app.utils.cache import TTLCache
from app.utils.logging import get_logger

logger = get_logger(__name__)

INSTANCE_NAMES = {
    "ebook": "ebooks",
    "ebooks": "ebooks",
    "audio": "audio",
    "audiobook": "audio",
}


class RequestService:
    """
    Coordinates searches and request actions against the configured
    Readarr instances.
    """

    def __init__(
        self,
        config: AppConfig,
        settings_manager: SettingsManager,
        defaults_cache: Optional[TTLCache] = None,
        client_factory=None,
    ):
        self.config = config
        self.settings_manager = settings_manager
        self.defaults_cache = defaults_cache if defaults_cache is not None else TTLCache()
        self.client_factory = client_factory or ReadarrClient

        self.engine = SearchEngine(
            lookup_limit=config.lookup_limit,
            include_catalog_matches=config.include_catalog_matches,
            client_factory=self.client_factory,
        )
        self.requester = BookRequester(
            defaults_cache=self.defaults_cache,
            defaults_resolution_enabled=config.defaults_resolution_enabled,
            client_factory=self.client_factory,
        )

    def instance_settings(self, name: str) -> InstanceSettings:
        settings = self.settings_manager.require_settings()
        return getattr(settings, INSTANCE_NAMES[name])

    def search(self, term: str) -> List[SearchItem]:
        settings = self.settings_manager.require_settings()
        return self.engine.search(settings.ebooks, settings.audio, term)

    def request(
        self,
        name: str,
        book: Optional[Dict[str, Any]],
        existing_id: Optional[int] = None,
    ) -> None:
        instance = self.instance_settings(name)
        self.requester.ensure_requested(instance, book, existing_id)

    def test_connection(self, instance: InstanceSettings) -> Dict[str, Any]:
        with self.client_factory(instance) as client:
            status = client.test_connection()
        logger.info(
            "Readarr connection ok",
            url=instance.baseUrl,
            version=(status or {}).get("version")
        )
        return status

    def resolve_defaults(self, instance: InstanceSettings) -> ResolvedDefaults:
        return self.requester.resolve_defaults(instance)


def create_request_service(config: Optional[AppConfig] = None) -> RequestService:
    """
    Create a request service from the current configuration.
    """
    config = config or get_config_from_env()
    settings_manager = SettingsManager(
        require_defaults=not config.defaults_resolution_enabled,
    )
    return RequestService(config, settings_manager)
