"""
Request reconciliation for Readarr Request.

Makes sure an instance is actively pursuing a book, either by re-monitoring
and searching for a book already in its catalog or by adding a new one.
"""

from typing import Any, Callable, Dict, Optional

from app.api.base import APIError
from app.api.readarr import ReadarrClient
from app.config import ConfigurationError, InstanceSettings
from app.search.models import ResolvedDefaults
from app.utils.cache import TTLCache
from app.utils.logging import get_logger

logger = get_logger(__name__)


class RequestError(Exception):
    """Raised when a request action is missing what it needs."""

    status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BookRequester:
    """
    Adds or re-requests books on a Readarr instance.

    Re-request mode (existing catalog id):
    1. Set monitored for the book
    2. Trigger a BookSearch command
    3. Only if both failed: fetch the record and PUT it back monitored

    Create mode (no id): POST the lookup record with the instance's
    root folder and quality profile, searching immediately.
    """

    def __init__(
        self,
        defaults_cache: Optional[TTLCache] = None,
        defaults_resolution_enabled: bool = True,
        client_factory: Optional[Callable[..., ReadarrClient]] = None,
    ):
        self.defaults_cache = defaults_cache if defaults_cache is not None else TTLCache()
        self.defaults_resolution_enabled = defaults_resolution_enabled
        self.client_factory = client_factory or ReadarrClient

    def _client(self, instance: InstanceSettings) -> ReadarrClient:
        return self.client_factory(instance, self.defaults_cache)

    def resolve_defaults(
        self,
        instance: InstanceSettings,
        client: Optional[ReadarrClient] = None,
    ) -> ResolvedDefaults:
        """
        Root folder and quality profile to add books with.

        Uses the instance settings when both are set, otherwise asks Readarr.

        Raises:
            ConfigurationError: If neither source provides them
        """
        if instance.has_defaults:
            return ResolvedDefaults(
                root_folder_path=instance.rootFolderPath,
                quality_profile_id=instance.qualityProfileId,
            )

        if not self.defaults_resolution_enabled:
            raise ConfigurationError(
                "Root folder path and quality profile ID must be set for this instance."
            )

        if client is not None:
            return client.resolve_defaults()
        with self._client(instance) as own_client:
            return own_client.resolve_defaults()

    def ensure_requested(
        self,
        instance: InstanceSettings,
        lookup: Optional[Dict[str, Any]] = None,
        existing_id: Optional[int] = None,
    ) -> None:
        """
        Make sure the instance is fetching a book.

        Args:
            instance: Settings of the target instance
            lookup: Lookup record from search, required when adding
            existing_id: Catalog id when the book is already added

        Raises:
            RequestError: If adding without a lookup record
            ConfigurationError: If defaults cannot be determined
            APIError: If the final remote step fails
        """
        with self._client(instance) as client:
            if existing_id:
                self._re_request(client, instance, existing_id)
            else:
                self._create(client, instance, lookup)

    def _re_request(
        self,
        client: ReadarrClient,
        instance: InstanceSettings,
        existing_id: int,
    ) -> None:
        monitor_succeeded = False
        search_succeeded = False

        try:
            client.monitor_books([existing_id], monitored=True)
            monitor_succeeded = True
        except APIError as e:
            logger.warning("Book monitor failed", book_id=existing_id, error=str(e))

        try:
            client.search_books([existing_id])
            search_succeeded = True
        except APIError as e:
            logger.warning("Book search failed", book_id=existing_id, error=str(e))

        if monitor_succeeded or search_succeeded:
            logger.info(
                "Re-requested book",
                book_id=existing_id,
                monitored=monitor_succeeded,
                searched=search_succeeded
            )
            return

        logger.warning("Falling back to full book update", book_id=existing_id)

        existing = client.get_book(existing_id)
        defaults = self.resolve_defaults(instance, client)
        payload = dict(existing)
        payload.update({
            "monitored": True,
            "rootFolderPath": defaults.root_folder_path,
            "qualityProfileId": defaults.quality_profile_id,
        })
        client.update_book(payload)

        logger.info("Re-requested book via full update", book_id=existing_id)

    def _create(
        self,
        client: ReadarrClient,
        instance: InstanceSettings,
        lookup: Optional[Dict[str, Any]],
    ) -> None:
        if not lookup:
            raise RequestError("Missing book payload.")

        defaults = self.resolve_defaults(instance, client)

        payload = dict(lookup)
        payload.pop("id", None)
        payload.update({
            "rootFolderPath": defaults.root_folder_path,
            "qualityProfileId": defaults.quality_profile_id,
            "monitored": True,
            "addOptions": {"searchForNewBook": True},
        })

        client.create_book(payload)

        logger.info(
            "Added book",
            title=lookup.get("title"),
            foreign_book_id=lookup.get("foreignBookId"),
            url=instance.baseUrl
        )
