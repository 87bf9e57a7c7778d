"""The chrome service web application and its command entry point."""

from __future__ import annotations

import argparse
import itertools
import logging
import secrets
import socket
import time
from typing import Any

import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.routing import Mount, Route
from starlette.staticfiles import StaticFiles

from chromeservice.activity_routes import last_visited_routes, self_report_routes
from chromeservice.connectionhub import ConnectionHub
from chromeservice.dashboard_routes import dashboard_routes
from chromeservice.dashboards import DashboardService
from chromeservice.database import Database
from chromeservice.layouts import load_base_layouts
from chromeservice.responses import XRHIDENTITY
from chromeservice.user_routes import favorite_page_routes, user_identity_routes
from chromeservice.users import UserService
from chromeservice.websocket_routes import emit_routes, websocket_routes
from chromeservice.xrh import HeaderError, parse_identity_header

logger = logging.getLogger(__name__)
request_logger = logging.getLogger("chromeservice.requests")

API_PREFIX = "/api/chrome-service/v1"
WSS_PREFIX = "/wss/chrome-service/v1"
_OPEN_PREFIXES = (API_PREFIX + "/static/", API_PREFIX + "/spec/")

_LOG_LEVELS = {
    "panic": logging.CRITICAL,
    "fatal": logging.CRITICAL,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,
}

_REQUEST_PREFIX = f"{socket.gethostname()}/{secrets.token_urlsafe(8)[:10]}"
_request_counter = itertools.count(1)


def _parse_log_level(name: str) -> int:
    """Map a level name to a logging level; unknown names mean errors only."""
    return _LOG_LEVELS.get((name or "").lower(), logging.ERROR)


def _user_id(identity: dict[str, Any]) -> str:
    inner = identity.get("identity")
    user = inner.get("user") if isinstance(inner, dict) else None
    value = user.get("user_id") if isinstance(user, dict) else None
    return value if isinstance(value, str) else ""


class IdentityMiddleware(BaseHTTPMiddleware):
    """Require the identity header on API routes and attach the user to the request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if not path.startswith(API_PREFIX + "/") or path.startswith(_OPEN_PREFIXES):
            return await call_next(request)
        header = request.headers.get(XRHIDENTITY, "")
        if not header:
            logger.error("missing the %s header", XRHIDENTITY)
            return PlainTextResponse("Missing authentication", status_code=403)
        try:
            identity = parse_identity_header(header)
        except HeaderError as exc:
            logger.error("Error parsing X-RH-IDENTITY header: %s", exc)
            return PlainTextResponse("Internal server error", status_code=500)
        skip_cache = request.query_params.get("skip-identity-cache") == "true"
        user = request.app.state.users.create_identity(_user_id(identity), skip_cache)
        request.state.identity = identity
        request.state.user = user
        return await call_next(request)


def _trim(value: float) -> str:
    return f"{value:.6f}".rstrip("0").rstrip(".")


def _format_duration(seconds: float) -> str:
    nanoseconds = round(seconds * 1e9)
    if nanoseconds < 1_000:
        return f"{nanoseconds}ns"
    if nanoseconds < 1_000_000:
        return _trim(nanoseconds / 1e3) + "µs"
    if nanoseconds < 1_000_000_000:
        return _trim(nanoseconds / 1e6) + "ms"
    return _trim(nanoseconds / 1e9) + "s"


class RequestLogMiddleware(BaseHTTPMiddleware):
    """Log one line per request; at warning level or above only failed requests."""

    def __init__(self, app: Any, level: int = logging.ERROR) -> None:
        super().__init__(app)
        self.level = level

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started
        if self.level >= logging.WARNING and response.status_code < 400:
            return response

        request_id = request.headers.get("x-request-id") or (
            f"{_REQUEST_PREFIX}-{next(_request_counter):06d}"
        )
        uri = request.url.path
        if request.url.query:
            uri += "?" + request.url.query
        host = request.headers.get("host", "")
        version = request.scope.get("http_version", "1.1")
        remote = f"{request.client.host}:{request.client.port}" if request.client else ""
        size = response.headers.get("content-length", "0")
        request_logger.info(
            '[%s] "%s %s://%s%s HTTP/%s" from %s - %03d %sB in %s',
            request_id,
            request.method,
            request.url.scheme,
            host,
            uri,
            version,
            remote,
            response.status_code,
            size,
            _format_duration(elapsed),
        )
        return response


async def hello_world(request: Request) -> Response:
    return PlainTextResponse("que lo que manin")


async def health_probe(request: Request) -> Response:
    return PlainTextResponse("Why yes thank you, I am quite healthy :D")


def create_app(
    db: Database | None = None,
    dashboards: DashboardService | None = None,
    users: UserService | None = None,
    hub: ConnectionHub | None = None,
    websockets_enabled: bool = False,
    static_dir: str = "static",
    spec_dir: str = "spec",
    log_level: str = "error",
) -> Starlette:
    """Assemble the application with its routes, middleware and services."""
    if db is None:
        db = Database()
    if dashboards is None:
        dashboards = DashboardService(db)
    if users is None:
        users = UserService(db)
    if hub is None:
        hub = ConnectionHub()

    api_routes = [
        Route("/hello-world", hello_world, methods=["GET"]),
        Mount("/last-visited", routes=last_visited_routes()),
        Mount("/favorite-pages", routes=favorite_page_routes()),
        Mount("/self-report", routes=self_report_routes()),
        Mount("/user", routes=user_identity_routes()),
        Mount("/emit-message", routes=emit_routes()),
        Mount("/dashboard-templates", routes=dashboard_routes()),
    ]
    routes: list[Any] = [
        Route("/health", health_probe, methods=["GET"]),
        Mount(API_PREFIX + "/static", app=StaticFiles(directory=static_dir, check_dir=False)),
        Mount(API_PREFIX + "/spec", app=StaticFiles(directory=spec_dir, check_dir=False)),
        Mount(API_PREFIX, routes=api_routes),
    ]
    if websockets_enabled:
        logger.info("Enabling WebSockets")
        routes.append(Mount(WSS_PREFIX, routes=websocket_routes()))
    else:
        logger.info("WebSockets are currently disabled")

    app = Starlette(
        routes=routes,
        middleware=[
            Middleware(RequestLogMiddleware, level=_parse_log_level(log_level)),
            Middleware(IdentityMiddleware),
        ],
    )
    app.state.db = db
    app.state.dashboards = dashboards
    app.state.users = users
    app.state.hub = hub
    return app


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Serve the chrome service API.")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--database", default="chrome-service.db")
    parser.add_argument("--templates-dir", default=".")
    parser.add_argument("--static-dir", default="./static/")
    parser.add_argument("--spec-dir", default="./spec/")
    parser.add_argument("--log-level", default="error")
    parser.add_argument("--websockets", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=_parse_log_level(args.log_level))
    db = Database(args.database)
    base_templates = load_base_layouts(args.templates_dir)
    app = create_app(
        db,
        DashboardService(db, base_templates),
        UserService(db),
        ConnectionHub(),
        args.websockets,
        args.static_dir,
        args.spec_dir,
        args.log_level,
    )
    try:
        uvicorn.run(app, host=args.host, port=args.port)
    finally:
        db.close()
    return 0