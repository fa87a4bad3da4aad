"""
Search engine for Readarr Request.

Queries both Readarr instances concurrently and merges what they return.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

from app.api.readarr import ReadarrClient
from app.config import InstanceSettings, MIN_LOOKUP_LIMIT
from app.search.catalog import index_catalog
from app.search.merger import ResultMerger
from app.search.models import SearchItem
from app.utils.logging import get_logger

logger = get_logger(__name__)

ClientFactory = Callable[[InstanceSettings], ReadarrClient]


class SearchEngine:
    """
    Runs a search against the ebook and audiobook instances.

    Each search issues four independent calls (lookup and catalog listing
    per instance) and fails as a whole if any of them fails.
    """

    def __init__(
        self,
        lookup_limit: int = MIN_LOOKUP_LIMIT,
        include_catalog_matches: bool = True,
        client_factory: Optional[ClientFactory] = None,
    ):
        self.lookup_limit = lookup_limit
        self.merger = ResultMerger(include_catalog_matches=include_catalog_matches)
        self.client_factory = client_factory or ReadarrClient

    def _lookup(self, instance: InstanceSettings, term: str) -> List[Dict[str, Any]]:
        with self.client_factory(instance) as client:
            return client.lookup_books(term, self.lookup_limit)

    def _owned(self, instance: InstanceSettings) -> List[Dict[str, Any]]:
        with self.client_factory(instance) as client:
            return client.list_owned()

    def search(
        self,
        ebooks: InstanceSettings,
        audio: InstanceSettings,
        term: str,
    ) -> List[SearchItem]:
        """
        Search both instances and merge the results.

        Args:
            ebooks: Settings of the ebook instance
            audio: Settings of the audiobook instance
            term: Search term

        Returns:
            Merged SearchItems sorted by title

        Raises:
            APIError: If any of the four remote calls fails
        """
        with ThreadPoolExecutor(max_workers=4) as executor:
            ebook_lookup = executor.submit(self._lookup, ebooks, term)
            audio_lookup = executor.submit(self._lookup, audio, term)
            ebook_owned = executor.submit(self._owned, ebooks)
            audio_owned = executor.submit(self._owned, audio)

            results = (
                ebook_lookup.result(),
                audio_lookup.result(),
                ebook_owned.result(),
                audio_owned.result(),
            )

        ebook_index = index_catalog(results[2])
        audio_index = index_catalog(results[3])

        items = self.merger.merge(results[0], results[1], ebook_index, audio_index, term)

        logger.info(
            "Search completed",
            term=term,
            ebook_results=len(results[0]),
            audio_results=len(results[1]),
            ebook_owned=len(ebook_index),
            audio_owned=len(audio_index),
            items=len(items)
        )

        return items
