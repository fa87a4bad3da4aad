"""
Data models for search and request operations.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class ExistingInfo:
    """Catalog state of a book already added to an instance."""
    id: int
    monitored: bool
    has_file: bool

    @property
    def complete(self) -> bool:
        """Monitored with a file on disk; nothing left to request."""
        return self.monitored and self.has_file


@dataclass
class InstanceView:
    """What one instance knows about a search result."""
    available: bool = False
    already_added: bool = False
    existing_id: Optional[int] = None
    monitored: Optional[bool] = None
    has_file: Optional[bool] = None
    lookup: Optional[Dict[str, Any]] = None

    @classmethod
    def from_existing(
        cls,
        existing: Optional[ExistingInfo],
        lookup: Optional[Dict[str, Any]] = None,
    ) -> "InstanceView":
        return cls(
            available=True,
            already_added=bool(existing and existing.complete),
            existing_id=existing.id if existing else None,
            monitored=existing.monitored if existing else None,
            has_file=existing.has_file if existing else None,
            lookup=lookup,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "available": self.available,
            "alreadyAdded": self.already_added,
        }
        optional = {
            "existingId": self.existing_id,
            "monitored": self.monitored,
            "hasFile": self.has_file,
            "lookup": self.lookup,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data


@dataclass
class SearchItem:
    """One distinct book in the merged search results."""
    key: str
    title: str
    author: str
    isbn13: Optional[str] = None
    foreign_book_id: Optional[str] = None
    goodreads_id: Optional[str] = None
    ebook: InstanceView = field(default_factory=InstanceView)
    audio: InstanceView = field(default_factory=InstanceView)

    def view(self, instance: str) -> InstanceView:
        return self.ebook if instance == "ebook" else self.audio

    def set_view(self, instance: str, view: InstanceView) -> None:
        if instance == "ebook":
            self.ebook = view
        else:
            self.audio = view

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "key": self.key,
            "title": self.title,
            "author": self.author,
        }
        optional = {
            "isbn13": self.isbn13,
            "foreignBookId": self.foreign_book_id,
            "goodreadsId": self.goodreads_id,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        data["ebook"] = self.ebook.to_dict()
        data["audio"] = self.audio.to_dict()
        return data


@dataclass(frozen=True)
class ResolvedDefaults:
    """Root folder and quality profile new books are added with."""
    root_folder_path: str
    quality_profile_id: int
