import base64
import json
import logging

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from chromeservice.app import create_app
from chromeservice.dashboards import DashboardService
from chromeservice.database import Database
from chromeservice.users import UserService


def _identity_header(user_id="42"):
    document = {"identity": {"user": {"user_id": user_id}}}
    return base64.b64encode(json.dumps(document).encode()).decode()


def _make_client(tmp_path, level="info", websockets=False):
    static = tmp_path / "static"
    static.mkdir(exist_ok=True)
    (static / "hello.json").write_text('{"hello": "world"}')
    db = Database()
    app = create_app(
        db,
        DashboardService(db),
        UserService(db),
        None,
        websockets,
        str(static),
        str(tmp_path / "spec"),
        level,
    )
    return TestClient(app)


@pytest.fixture
def client(tmp_path):
    with _make_client(tmp_path) as test_client:
        yield test_client


def test_health_probe(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.text == "Why yes thank you, I am quite healthy :D"


def test_api_requires_identity(client):
    response = client.get("/api/chrome-service/v1/hello-world")
    assert response.status_code == 403
    assert response.text == "Missing authentication"


def test_malformed_identity_header(client):
    response = client.get(
        "/api/chrome-service/v1/hello-world", headers={"x-rh-identity": "%%%"}
    )
    assert response.status_code == 500
    assert response.text == "Internal server error"


def test_hello_world_with_identity(client):
    response = client.get(
        "/api/chrome-service/v1/hello-world", headers={"x-rh-identity": _identity_header()}
    )
    assert response.status_code == 200
    assert response.text == "que lo que manin"


def test_user_is_created_from_identity(client):
    response = client.get(
        "/api/chrome-service/v1/user/", headers={"x-rh-identity": _identity_header("42")}
    )
    assert response.status_code == 200
    assert response.json()["data"]["accountId"] == "42"


def test_last_visited_round_trip_through_app(client):
    headers = {"x-rh-identity": _identity_header("7")}
    pages = [{"bundle": "insights", "pathname": "insights/first", "title": "Advisor"}]
    client.post("/api/chrome-service/v1/last-visited/", json={"pages": pages}, headers=headers)
    response = client.get("/api/chrome-service/v1/last-visited/", headers=headers)
    assert response.json()["data"] == pages


def test_static_files_need_no_identity(client):
    response = client.get("/api/chrome-service/v1/static/hello.json")
    assert response.status_code == 200
    assert response.json() == {"hello": "world"}


def test_request_is_logged_at_info_level(client, caplog):
    caplog.set_level(logging.INFO, logger="chromeservice.requests")
    client.get("/health", headers={"x-request-id": "req-1"})
    messages = [record.getMessage() for record in caplog.records
                if record.name == "chromeservice.requests"]
    assert len(messages) == 1
    assert messages[0].startswith('[req-1] "GET http://testserver/health HTTP/')
    assert " - 200 " in messages[0]


def test_only_failures_are_logged_at_error_level(tmp_path, caplog):
    caplog.set_level(logging.INFO, logger="chromeservice.requests")
    with _make_client(tmp_path, level="error") as test_client:
        test_client.get("/health")
        test_client.get("/no-such-page")
    messages = [record.getMessage() for record in caplog.records
                if record.name == "chromeservice.requests"]
    assert len(messages) == 1
    assert " - 404 " in messages[0]


def test_websockets_disabled_has_no_route(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/wss/chrome-service/v1/ws"):
            pass


def test_websockets_enabled_requires_cookie(tmp_path):
    with _make_client(tmp_path, websockets=True) as test_client:
        with pytest.raises(WebSocketDisconnect) as info:
            with test_client.websocket_connect("/wss/chrome-service/v1/ws"):
                pass
    assert info.value.code == 1008