import base64
from unittest import mock

import pytest

from app.api.base import APIError, API_KEY_REJECTED_MESSAGE, CONNECTION_REFUSED_MESSAGE
from app.config import AppConfig, ConfigurationError, SettingsManager
from app.main import create_app
from app.search.models import InstanceView, ResolvedDefaults, SearchItem
from app.search.requester import RequestError
from app.search.service import RequestService

from test_config import MemorySource, make_settings


@pytest.fixture
def settings_source():
    return MemorySource(make_settings(rootFolderPath="/ebooks", qualityProfileId=2))


@pytest.fixture
def service(settings_source):
    service = mock.create_autospec(RequestService, instance=True)
    service.settings_manager = SettingsManager(sources=[settings_source])
    return service


def make_client(service, **config):
    config.setdefault("client_dist", "/nonexistent")
    app = create_app(AppConfig(**config), service=service)
    return app.test_client()


@pytest.fixture
def client(service):
    return make_client(service)


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


def test_get_settings(client):
    data = client.get("/api/settings").get_json()
    assert data["configured"] is True
    assert data["settings"]["ebooks"]["rootFolderPath"] == "/ebooks"


def test_get_settings_when_unconfigured(service):
    service.settings_manager = SettingsManager(sources=[MemorySource()])
    data = make_client(service).get("/api/settings").get_json()
    assert data == {"configured": False}


def test_save_settings(client, settings_source):
    payload = {
        "settings": {
            "ebooks": {"baseUrl": "http://e/", "apiKey": "k", "rootFolderPath": "", "qualityProfileId": ""},
            "audio": {"baseUrl": "http://a", "apiKey": "k2"},
        }
    }
    response = client.post("/api/settings", json=payload)

    assert response.status_code == 200
    assert settings_source.saved[0].ebooks.baseUrl == "http://e"


def test_save_settings_validation_errors(client):
    assert client.post("/api/settings", json={}).status_code == 400

    response = client.post("/api/settings", json={"settings": {"ebooks": {"baseUrl": "x", "apiKey": "y"}}})
    assert response.status_code == 400
    assert response.get_json()["error"].startswith("Invalid settings")

    response = client.post(
        "/api/settings",
        json={"settings": {"ebooks": {"baseUrl": "", "apiKey": "y"}, "audio": {"baseUrl": "a", "apiKey": "b"}}},
    )
    assert response.status_code == 400
    assert response.get_json() == {"error": "Ebooks base URL is required."}


def test_settings_test_connection(client, service):
    response = client.post(
        "/api/settings/test",
        json={"instance": "audio", "settings": {"baseUrl": "http://a", "apiKey": "k"}},
    )
    assert response.status_code == 200
    tested = service.test_connection.call_args.args[0]
    assert tested.baseUrl == "http://a"


def test_settings_test_rejects_bad_input(client):
    assert client.post("/api/settings/test", json={"instance": "comics"}).status_code == 400
    response = client.post("/api/settings/test", json={"instance": "ebooks", "settings": {"baseUrl": "http://e"}})
    assert response.status_code == 400
    assert response.get_json() == {"error": "Missing base URL or API key."}


@pytest.mark.parametrize(
    "error, status, message",
    [
        (APIError("Connection error", connection_refused=True), 502, CONNECTION_REFUSED_MESSAGE),
        (APIError("Unauthorized", status_code=401), 401, API_KEY_REJECTED_MESSAGE),
        (APIError("Not Found", status_code=404), 404, "Not Found"),
    ],
)
def test_remote_errors_are_mapped(client, service, error, status, message):
    service.test_connection.side_effect = error
    response = client.post(
        "/api/settings/test",
        json={"instance": "ebooks", "settings": {"baseUrl": "http://e", "apiKey": "k"}},
    )
    assert response.status_code == status
    assert response.get_json() == {"error": message}


def test_settings_defaults(client, service):
    service.resolve_defaults.return_value = ResolvedDefaults("/books", 1)
    response = client.post("/api/settings/defaults", json={"settings": {"baseUrl": "http://e", "apiKey": "k"}})
    assert response.get_json() == {"rootFolderPath": "/books", "qualityProfileId": 1}

    service.resolve_defaults.side_effect = ConfigurationError("Readarr has no root folder configured.")
    response = client.post("/api/settings/defaults", json={"settings": {"baseUrl": "http://e", "apiKey": "k"}})
    assert response.status_code == 400


def test_search(client, service):
    service.search.return_value = [
        SearchItem(key="id:1", title="Dune", author="Frank Herbert", ebook=InstanceView(available=True)),
    ]

    response = client.get("/api/search?term=%20dune%20")

    assert response.status_code == 200
    service.search.assert_called_once_with("dune")
    item = response.get_json()["items"][0]
    assert item["ebook"] == {"available": True, "alreadyAdded": False}


def test_search_requires_term(client, service):
    assert client.get("/api/search?term=%20").status_code == 400
    service.search.assert_not_called()


def test_search_when_unconfigured(service):
    from app.config import SettingsNotConfigured

    service.search.side_effect = SettingsNotConfigured("Readarr settings not configured.")
    response = make_client(service).get("/api/search?term=dune")
    assert response.status_code == 412


def test_search_failure(client, service):
    service.search.side_effect = APIError("Service Unavailable", status_code=503)
    response = client.get("/api/search?term=dune")
    assert response.status_code == 503
    assert response.get_json() == {"error": "Service Unavailable"}


def test_unexpected_errors_are_hidden(client, service):
    service.search.side_effect = RuntimeError("secret detail")
    response = client.get("/api/search?term=dune")
    assert response.status_code == 500
    assert response.get_json() == {"error": "Unexpected error."}


def test_request_routes(client, service):
    book = {"title": "Dune", "foreignBookId": "1"}

    assert client.post("/api/request/ebook", json={"book": book}).status_code == 200
    service.request.assert_called_with("ebooks", book, None)

    assert client.post("/api/request/audiobook", json={"book": book, "existingId": "12"}).status_code == 200
    service.request.assert_called_with("audio", book, 12)

    assert client.post("/api/request/audiobook", json={"existingId": 7}).status_code == 200
    service.request.assert_called_with("audio", None, 7)


def test_request_validation(client, service):
    assert client.post("/api/request/ebook", json={"existingId": "abc"}).status_code == 400
    assert client.post("/api/request/ebook", json={"existingId": -3}).status_code == 400
    service.request.assert_not_called()

    service.request.side_effect = RequestError("Missing book payload.")
    response = client.post("/api/request/ebook", json={"book": {"title": "x"}})
    assert response.status_code == 400


def test_auth_required_when_configured(service):
    client = make_client(service, auth="s3cret")

    assert client.get("/api/health").status_code == 200
    assert client.get("/api/settings").status_code == 401
    assert client.get("/api/settings", headers={"Authorization": "Bearer wrong"}).status_code == 401
    assert client.get("/api/settings", headers={"Authorization": "Bearer s3cret"}).status_code == 200
    assert client.get("/api/settings", headers={"Authorization": "s3cret"}).status_code == 200

    basic = base64.b64encode(b"user:s3cret").decode()
    assert client.get("/api/settings", headers={"Authorization": f"Basic {basic}"}).status_code == 200


def test_serves_client_bundle(service, tmp_path):
    (tmp_path / "index.html").write_text("<html>app</html>")
    (tmp_path / "app.js").write_text("console.log(1)")
    client = make_client(service, client_dist=str(tmp_path))

    assert b"app" in client.get("/").data
    assert client.get("/app.js").data == b"console.log(1)"
    assert b"<html>" in client.get("/search/deep/link").data


def test_create_app_uses_configured_database(tmp_path, monkeypatch):
    from app.db import database

    monkeypatch.setenv("DATABASE_URL", "sqlite:///should-not-be-used.db")
    db_path = tmp_path / "configured.db"
    try:
        create_app(AppConfig(database_url=f"sqlite:///{db_path}", client_dist="/nonexistent"))
        assert str(database.engine.url) == f"sqlite:///{db_path}"
        assert db_path.exists()
    finally:
        database.close_db()
