"""
Book identity resolution.

Readarr lookup results and catalog entries describe the same book with
different subsets of identifiers. Matching priority:
1. foreignBookId
2. Goodreads ID
3. ISBN-13
4. ISBN
5. ASIN
6. Title + author
"""

from typing import Any, Dict, Optional

ID_FIELDS = ("foreignBookId", "goodreadsId", "isbn13", "isbn", "asin")

UNKNOWN_AUTHOR = "Unknown author"
UNTITLED = "Untitled"


def normalize(value: Any) -> str:
    """Stringify, trim and lower-case a field value. ``None`` becomes ``""``."""
    if value is None:
        return ""
    return str(value).strip().lower()


def pick_author(book: Dict[str, Any]) -> str:
    author = book.get("author")
    nested = author.get("name") if isinstance(author, dict) else None
    return book.get("authorTitle") or book.get("authorName") or nested or UNKNOWN_AUTHOR


def pick_title(book: Dict[str, Any]) -> str:
    return book.get("title") or UNTITLED


def pick_isbn13(book: Dict[str, Any]) -> Optional[str]:
    value = book.get("isbn13") or book.get("isbn")
    if not value:
        return None
    return str(value)


def pick_goodreads_id(book: Dict[str, Any]) -> Optional[str]:
    if not book.get("goodreadsId"):
        return None
    return str(book["goodreadsId"])


def book_key(book: Dict[str, Any]) -> str:
    """
    Derive the identity key of a lookup or catalog record.

    Returns an empty string when the record has neither an identifier
    nor a title; such records cannot be matched.
    """
    for field in ID_FIELDS:
        normalized = normalize(book.get(field))
        if normalized:
            return f"id:{normalized}"

    title = normalize(book.get("title"))
    if title:
        author = normalize(pick_author(book))
        return f"t:{title}|a:{author}"

    return ""


def lookup_key(book: Dict[str, Any]) -> str:
    """Identity used while paging lookups; never empty."""
    key = book_key(book)
    if key:
        return key
    title = normalize(book.get("title"))
    author = normalize(pick_author(book))
    isbn = normalize(pick_isbn13(book))
    return f"t:{title}|a:{author}|i:{isbn}"
