from typing import Any, Dict, List, Optional
from unittest import mock

import pytest

from app.api.base import APIError
from app.config import InstanceSettings
from app.db import database
from app.search.models import ResolvedDefaults


class FakeReadarr:
    """In-memory stand-in for ReadarrClient that records every call."""

    def __init__(
        self,
        lookup: Optional[List[Dict[str, Any]]] = None,
        owned: Optional[List[Dict[str, Any]]] = None,
        books: Optional[Dict[int, Dict[str, Any]]] = None,
        root_folders: Optional[List[Dict[str, Any]]] = None,
        quality_profiles: Optional[List[Dict[str, Any]]] = None,
        failures: Optional[Dict[str, Exception]] = None,
    ):
        self.lookup = lookup or []
        self.owned = owned or []
        self.books = books or {}
        self.root_folders_data = root_folders if root_folders is not None else [{"id": 1, "path": "/books"}]
        self.quality_profiles_data = quality_profiles if quality_profiles is not None else [{"id": 1, "name": "eBook"}]
        self.failures = failures or {}
        self.calls: List[tuple] = []
        self.closed = 0

    def __call__(self, instance, defaults_cache=None):
        self.instance = instance
        return self

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        self.closed += 1

    def _call(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.failures:
            raise self.failures[name]

    def called(self, name) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]

    def lookup_books(self, term, limit=20):
        self._call("lookup_books", term, limit)
        return list(self.lookup)

    def list_owned(self):
        self._call("list_owned")
        return list(self.owned)

    def get_book(self, book_id):
        self._call("get_book", book_id)
        return dict(self.books[book_id])

    def create_book(self, payload):
        self._call("create_book", payload)
        return payload

    def update_book(self, payload):
        self._call("update_book", payload)
        return payload

    def monitor_books(self, book_ids, monitored=True):
        self._call("monitor_books", book_ids, monitored)

    def search_books(self, book_ids):
        self._call("search_books", book_ids)

    def test_connection(self):
        self._call("test_connection")
        return {"version": "0.3.32"}

    def resolve_defaults(self):
        self._call("resolve_defaults")
        if not self.root_folders_data or not self.quality_profiles_data:
            from app.config import ConfigurationError
            raise ConfigurationError("Readarr has no root folder configured.")
        return ResolvedDefaults(
            root_folder_path=self.root_folders_data[0]["path"],
            quality_profile_id=self.quality_profiles_data[0]["id"],
        )


def server_error(message="Internal Server Error"):
    return APIError(message, status_code=500)


def make_response(status_code=200, data=None, text=""):
    response = mock.MagicMock()
    response.status_code = status_code
    response.reason = "Error" if status_code >= 400 else "OK"
    if data is None:
        response.content = text.encode("utf-8")
        response.text = text
        response.json.side_effect = ValueError("No JSON")
    else:
        response.content = b"{}"
        response.text = str(data)
        response.json.return_value = data
    return response


@pytest.fixture
def fake_readarr():
    return FakeReadarr


@pytest.fixture
def ebooks():
    return InstanceSettings(
        baseUrl="http://readarr-ebooks:8787/",
        apiKey="ebook-key",
        rootFolderPath="/books/ebooks",
        qualityProfileId=2,
    )


@pytest.fixture
def audio():
    return InstanceSettings(
        baseUrl="http://readarr-audio:8787",
        apiKey="audio-key",
        rootFolderPath="/books/audio",
        qualityProfileId=3,
    )


@pytest.fixture
def bare_instance():
    return InstanceSettings(baseUrl="http://readarr:8787", apiKey="key")


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    db_url = f"sqlite:///{tmp_path / 'settings.db'}"
    monkeypatch.setenv("DATABASE_URL", db_url)
    database.init_db(db_url)
    yield db_url
    database.close_db()
