"""
Catalog indexing for Readarr Request.

Turns an instance's owned books into a lookup table keyed by book identity
so search results can be annotated with what is already added.
"""

from typing import Any, Dict, Iterator, List, Optional

from app.search.identity import book_key, normalize, pick_author, pick_isbn13
from app.search.models import ExistingInfo


def has_file(book: Dict[str, Any]) -> bool:
    """Whether any file evidence is present on a catalog record."""
    if book.get("bookFileId"):
        return True
    book_file = book.get("bookFile")
    if isinstance(book_file, dict) and book_file.get("id"):
        return True
    statistics = book.get("statistics") or {}
    if (statistics.get("bookFileCount") or 0) > 0:
        return True
    return (statistics.get("sizeOnDisk") or 0) > 0


def _numeric_id(book: Dict[str, Any]) -> Optional[int]:
    value = book.get("id")
    if isinstance(value, bool) or value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class CatalogIndex:
    """
    Owned books of one instance, keyed by identity.

    Records without an identity or numeric id are left out since they
    could not be referenced by a later request.
    """

    def __init__(self, records: Optional[List[Dict[str, Any]]] = None):
        self.entries: Dict[str, ExistingInfo] = {}
        self.records: Dict[str, Dict[str, Any]] = {}

        for book in records or []:
            key = book_key(book)
            book_id = _numeric_id(book)
            if not key or book_id is None:
                continue
            monitored = book.get("monitored")
            self.entries[key] = ExistingInfo(
                id=book_id,
                monitored=True if monitored is None else bool(monitored),
                has_file=has_file(book),
            )
            self.records[key] = book

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, key: str) -> bool:
        return key in self.entries

    def get(self, key: str) -> Optional[ExistingInfo]:
        return self.entries.get(key)

    def matching(self, term: str) -> Iterator[Dict[str, Any]]:
        """
        Owned records whose title, author or ISBN contains ``term``.

        Yields records in catalog order.
        """
        needle = normalize(term)
        if not needle:
            return
        for book in self.records.values():
            haystacks = (
                normalize(book.get("title")),
                normalize(pick_author(book)),
                normalize(pick_isbn13(book)),
            )
            if any(needle in hay for hay in haystacks):
                yield book


def index_catalog(records: List[Dict[str, Any]]) -> CatalogIndex:
    """Build a CatalogIndex from an instance's owned books."""
    return CatalogIndex(records)
