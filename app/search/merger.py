"""
Merges lookup results and catalogs of the ebook and audiobook instances
into one list of distinct books.
"""

import unicodedata
from typing import Any, Dict, List, Optional

from app.search.catalog import CatalogIndex
from app.search.identity import book_key, pick_author, pick_goodreads_id, pick_isbn13, pick_title
from app.search.models import InstanceView, SearchItem

INSTANCES = ("ebook", "audio")


def title_sort_key(title: str) -> str:
    """Case- and accent-insensitive sort key, so "Émile" sorts among the E titles."""
    decomposed = unicodedata.normalize("NFKD", title)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def _new_item(key: str, book: Dict[str, Any]) -> SearchItem:
    foreign_id = book.get("foreignBookId")
    return SearchItem(
        key=key,
        title=pick_title(book),
        author=pick_author(book),
        isbn13=pick_isbn13(book),
        foreign_book_id=str(foreign_id) if foreign_id else None,
        goodreads_id=pick_goodreads_id(book),
    )


class ResultMerger:
    """
    Fuses the two instances' search results into SearchItems.

    The first record seen for an identity provides the title, author and
    identifiers; later records only fill in their own instance's view.
    """

    def __init__(self, include_catalog_matches: bool = True):
        self.include_catalog_matches = include_catalog_matches

    def _ingest_lookup(
        self,
        items: Dict[str, SearchItem],
        lookup: List[Dict[str, Any]],
        index: CatalogIndex,
        instance: str,
    ) -> None:
        for book in lookup:
            key = book_key(book)
            if not key:
                continue
            item = items.get(key)
            if item is None:
                item = _new_item(key, book)
                items[key] = item
            item.set_view(instance, InstanceView.from_existing(index.get(key), lookup=book))

    def _reconcile_catalog(
        self,
        items: Dict[str, SearchItem],
        index: CatalogIndex,
        instance: str,
    ) -> None:
        for key, item in items.items():
            if item.view(instance).available:
                continue
            existing = index.get(key)
            if existing is not None:
                item.set_view(instance, InstanceView.from_existing(existing))

    def _ingest_catalog_matches(
        self,
        items: Dict[str, SearchItem],
        index: CatalogIndex,
        instance: str,
        term: str,
    ) -> None:
        for book in index.matching(term):
            key = book_key(book)
            if key in items:
                continue
            item = _new_item(key, book)
            item.set_view(instance, InstanceView.from_existing(index.get(key)))
            items[key] = item

    def merge(
        self,
        ebook_lookup: List[Dict[str, Any]],
        audio_lookup: List[Dict[str, Any]],
        ebook_index: CatalogIndex,
        audio_index: CatalogIndex,
        term: Optional[str] = None,
    ) -> List[SearchItem]:
        """
        Merge both instances' results.

        Args:
            ebook_lookup: Lookup records from the ebook instance
            audio_lookup: Lookup records from the audiobook instance
            ebook_index: Catalog of the ebook instance
            audio_index: Catalog of the audiobook instance
            term: Search term, used to pull in matching owned books

        Returns:
            SearchItems sorted by title
        """
        items: Dict[str, SearchItem] = {}
        lookups = {"ebook": ebook_lookup or [], "audio": audio_lookup or []}
        indexes = {"ebook": ebook_index, "audio": audio_index}

        for instance in INSTANCES:
            self._ingest_lookup(items, lookups[instance], indexes[instance], instance)

        if self.include_catalog_matches and term:
            for instance in INSTANCES:
                self._ingest_catalog_matches(items, indexes[instance], instance, term)

        for instance in INSTANCES:
            self._reconcile_catalog(items, indexes[instance], instance)

        # sorted() is stable, so equal titles keep insertion order
        return sorted(items.values(), key=lambda item: title_sort_key(item.title))
