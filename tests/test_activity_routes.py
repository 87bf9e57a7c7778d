import pytest
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Mount
from starlette.testclient import TestClient

from chromeservice.activity_routes import last_visited_routes, self_report_routes
from chromeservice.database import Database
from chromeservice.users import UserService


@pytest.fixture
def client():
    db = Database()
    users = UserService(db)

    async def inject_user(request, call_next):
        request.state.user = users.create_identity("activity-user")
        return await call_next(request)

    app = Starlette(
        routes=[
            Mount("/last-visited", routes=last_visited_routes()),
            Mount("/self-report", routes=self_report_routes()),
        ],
        middleware=[Middleware(BaseHTTPMiddleware, dispatch=inject_user)],
    )
    app.state.users = users
    with TestClient(app) as test_client:
        yield test_client
    db.close()


def _pages(count, prefix="Resources"):
    return [
        {"bundle": "insights", "pathname": f"insights/ros={i}", "title": f"{prefix}-{i}"}
        for i in range(count)
    ]


def test_batch_of_ten_pages_is_stored(client):
    pages = _pages(10)
    response = client.post("/last-visited/", json={"pages": pages})
    assert response.status_code == 200
    body = response.json()
    assert len(body["data"]) == 10
    assert body["meta"]["count"] == 10
    assert body["meta"]["total"] == 10


def test_small_batch_replaces_previous_pages(client):
    client.post("/last-visited/", json={"pages": _pages(10)})
    small = _pages(3, prefix="Resources-small")
    response = client.post("/last-visited/", json={"pages": small})
    assert response.json()["data"] == small
    assert client.get("/last-visited/").json()["data"] == small


def test_only_first_ten_pages_are_kept(client):
    pages = _pages(12)
    response = client.post("/last-visited/", json={"pages": pages})
    assert response.json()["data"] == pages[:10]


def test_empty_history_has_no_meta(client):
    body = client.get("/last-visited/").json()
    assert body["data"] == []
    assert body["meta"] == {}


def test_invalid_last_visited_payload(client):
    response = client.post("/last-visited/", content=b"not json")
    assert response.status_code == 400
    assert response.text == "Invalid last visited pages request payload."


def test_pages_must_be_a_list(client):
    response = client.post("/last-visited/", json={"pages": "nope"})
    assert response.status_code == 400


def test_self_report_starts_empty(client):
    body = client.get("/self-report/").json()
    assert body["jobRole"] == ""


def test_self_report_update_is_persisted(client):
    response = client.patch("/self-report/", json={"jobRole": "developer"})
    assert response.status_code == 200
    assert response.json()["jobRole"] == "developer"
    assert client.get("/self-report/").json()["jobRole"] == "developer"


def test_partial_update_keeps_other_fields(client):
    client.patch("/self-report/", json={"jobRole": "developer"})
    response = client.patch(
        "/self-report/", json={"productsOfInterest": ["openshift", "ansible"]}
    )
    body = response.json()
    assert body["jobRole"] == "developer"
    assert body["productsOfInterest"] == ["openshift", "ansible"]


def test_self_report_invalid_payload(client):
    response = client.patch("/self-report/", content=b"{broken")
    assert response.status_code == 500