"""
Readarr API client for Readarr Request.

Documentation: https://readarr.com/docs/api/
"""

import math
from typing import Optional, List, Dict, Any

from app.api.base import BaseClient
from app.config import ConfigurationError, InstanceSettings, MIN_LOOKUP_LIMIT
from app.search.identity import lookup_key
from app.search.models import ResolvedDefaults
from app.utils.cache import TTLCache
from app.utils.logging import get_logger

logger = get_logger(__name__)

REQUEST_TIMEOUT_SECONDS = 15


def _pick_default(entries: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Entry flagged as default, else the first one."""
    for entry in entries:
        if entry.get("isDefault") or entry.get("default"):
            return entry
    return entries[0] if entries else None


class ReadarrClient(BaseClient):
    """
    Client for the Readarr v1 API of a single instance.

    Provides book lookup, catalog listing and the mutations needed to get
    a book monitored and searched for.
    """

    def __init__(
        self,
        instance: InstanceSettings,
        defaults_cache: Optional[TTLCache] = None,
    ):
        """
        Initialize Readarr client.

        Args:
            instance: Base URL, API key and defaults of the instance
            defaults_cache: Shared cache for resolved root folder/quality profile
        """
        if not instance.baseUrl:
            raise ConfigurationError("Readarr base URL is required.")
        if not instance.apiKey:
            raise ConfigurationError("Readarr API key is required.")

        super().__init__(instance.baseUrl, timeout=REQUEST_TIMEOUT_SECONDS)
        self.instance = instance
        self.defaults_cache = defaults_cache

        self.session.headers.update({
            "X-Api-Key": instance.apiKey
        })

    def test_connection(self) -> Dict[str, Any]:
        """
        Probe the instance's status endpoint.

        Returns:
            Status payload reported by Readarr

        Raises:
            APIError: If Readarr cannot be reached or rejects the key
        """
        return self.get("/api/v1/system/status") or {}

    def lookup_page(self, term: str, limit: int, page: int) -> List[Dict[str, Any]]:
        """Fetch one page of remote search results."""
        data = self.get(
            "/api/v1/book/lookup",
            params={"term": term, "limit": limit, "pageSize": limit, "page": page},
        )
        return data if isinstance(data, list) else []

    def lookup_books(self, term: str, limit: int = MIN_LOOKUP_LIMIT) -> List[Dict[str, Any]]:
        """
        Search Readarr's metadata for books, deduplicating across pages.

        Paging stops once ``limit`` distinct books are collected, a page is
        empty, or a page adds no book that was not already seen.

        Args:
            term: Search term
            limit: Maximum number of distinct books to return

        Returns:
            Lookup records in the order Readarr returned them
        """
        results: List[Dict[str, Any]] = []
        seen = set()
        max_pages = max(1, math.ceil(limit / 5))

        for page in range(1, max_pages + 1):
            data = self.lookup_page(term, limit, page)
            if not data:
                break

            added_this_page = 0
            for item in data:
                key = lookup_key(item)
                if key in seen:
                    continue
                seen.add(key)
                results.append(item)
                added_this_page += 1
                if len(results) >= limit:
                    return results

            if added_this_page == 0:
                logger.debug("Lookup page added nothing new", term=term, page=page)
                break

        return results

    def list_owned(self) -> List[Dict[str, Any]]:
        """
        Get every book in the instance's catalog.

        Returns:
            List of catalog records
        """
        data = self.get("/api/v1/book")
        return data if isinstance(data, list) else []

    def get_book(self, book_id: int) -> Dict[str, Any]:
        """Get the full catalog record for a book."""
        return self.get(f"/api/v1/book/{book_id}") or {}

    def create_book(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Add a book to the catalog."""
        return self.post("/api/v1/book", json=payload) or {}

    def update_book(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Replace a catalog record with ``payload``."""
        return self.put("/api/v1/book", json=payload) or {}

    def monitor_books(self, book_ids: List[int], monitored: bool = True) -> Any:
        """Toggle the monitored flag of catalog books."""
        return self.post(
            "/api/v1/book/monitor",
            json={"bookIds": book_ids, "monitored": monitored},
        )

    def search_books(self, book_ids: List[int]) -> Any:
        """Queue a BookSearch command for catalog books."""
        return self.post(
            "/api/v1/command",
            json={"name": "BookSearch", "bookIds": book_ids},
        )

    def root_folders(self) -> List[Dict[str, Any]]:
        data = self.get("/api/v1/rootfolder")
        return data if isinstance(data, list) else []

    def quality_profiles(self) -> List[Dict[str, Any]]:
        data = self.get("/api/v1/qualityprofile")
        return data if isinstance(data, list) else []

    def _fetch_defaults(self) -> ResolvedDefaults:
        root_folder = _pick_default(self.root_folders())
        if not root_folder or not root_folder.get("path"):
            raise ConfigurationError(
                "Readarr has no root folder configured. Add one in Readarr or set a root folder path."
            )

        profile = _pick_default(self.quality_profiles())
        if not profile or not profile.get("id"):
            raise ConfigurationError(
                "Readarr has no quality profile configured. Add one in Readarr or set a quality profile ID."
            )

        defaults = ResolvedDefaults(
            root_folder_path=str(root_folder["path"]),
            quality_profile_id=int(profile["id"]),
        )
        logger.info(
            "Resolved Readarr defaults",
            url=self.base_url,
            root_folder=defaults.root_folder_path,
            quality_profile_id=defaults.quality_profile_id
        )
        return defaults

    def resolve_defaults(self) -> ResolvedDefaults:
        """
        Ask Readarr for the root folder and quality profile to add books with.

        Results are cached per base URL when a cache is attached.

        Raises:
            ConfigurationError: If either listing is empty or incomplete
        """
        if self.defaults_cache is None:
            return self._fetch_defaults()
        return self.defaults_cache.get_or_load(self.base_url, self._fetch_defaults)
