"""HTTP handlers for favorite pages and user identity data."""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from typing import Any

from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Mount, Route

from chromeservice.models import FavoritePage, ValidationError
from chromeservice.responses import (
    DEFAULT_PARAM,
    GET_ALL_PARAM,
    EntityResponse,
    ErrorResponse,
    ListMeta,
    ListResponse,
)
from chromeservice.users import UserService

logger = logging.getLogger(__name__)

_IDENTITY_RESPONSE_FIELDS = (
    "accountId",
    "firstLogin",
    "dayOne",
    "lastLogin",
    "lastVisitedPages",
    "favoritePages",
    "selfReport",
    "visitedBundles",
    "uiPreview",
)


def _service(request: Request) -> UserService:
    return request.app.state.users


async def _json_object(request: Request) -> dict[str, Any]:
    data = json.loads(await request.body())
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("request body must be a JSON object")
    return data


def _identity_error(exc: BaseException) -> JSONResponse:
    return JSONResponse(ErrorResponse([str(exc)]).to_dict(), status_code=400)


def _page_list(pages: list[Any] | None) -> JSONResponse:
    count = len(pages or [])
    return JSONResponse(
        ListResponse(data=pages, meta=ListMeta(count=count, total=count)).to_dict()
    )


async def get_favorite_pages(request: Request) -> Response:
    """All, active-inclusive or archived favorites depending on the query."""
    get_all = request.query_params.get(GET_ALL_PARAM, "")
    archived = request.query_params.get(DEFAULT_PARAM, "")
    user = request.state.user
    service = _service(request)
    pages = None
    if get_all == "true":
        pages = service.get_all_favorite_pages(user.id)
    if get_all == "" and archived not in ("true", "false"):
        return PlainTextResponse(
            "There is a problem in your requests parameters. Please refer to docs."
        )
    if archived == "true":
        pages = service.get_all_favorite_pages(user.id)
    elif archived == "false":
        pages = service.get_archived_favorite_pages(user.id)
    return _page_list(pages)


async def set_favorite_page(request: Request) -> Response:
    """Store a favorite and return the user's active favorites."""
    user = request.state.user
    try:
        page = FavoritePage.from_dict(await _json_object(request))
    except (ValueError, ValidationError, TypeError):
        return PlainTextResponse(
            "Invalid favorite page request, please refer to docs. ", status_code=400
        )
    page = replace(page, user_identity_id=user.id)
    service = _service(request)
    service.save_favorite_page(user.id, user.account_id, page)
    return _page_list(service.get_active_favorite_pages(user.id))


async def get_user_identity(request: Request) -> Response:
    user = _service(request).get_identity_data(request.state.user)
    full = user.to_dict()
    data = {key: full[key] for key in _IDENTITY_RESPONSE_FIELDS if key in full}
    return JSONResponse({"data": data})


async def add_visited_bundle(request: Request) -> Response:
    try:
        payload = await _json_object(request)
        bundle = payload.get("bundle") or ""
        if not isinstance(bundle, str):
            raise ValueError('field "bundle" must be a string')
    except ValueError as exc:
        logger.error("unable to read visited bundle payload: %s", exc)
        return PlainTextResponse("Internal server error", status_code=500)
    updated = _service(request).add_visited_bundle(request.state.user, bundle)
    return JSONResponse(EntityResponse(updated).to_dict())


async def get_visited_bundles(request: Request) -> Response:
    bundles = _service(request).get_visited_bundles(request.state.user)
    return JSONResponse(EntityResponse(bundles).to_dict())


async def get_intercom_hash(request: Request) -> Response:
    apps = request.query_params.getlist("app")
    app = apps[0] if apps else ""
    try:
        payload = _service(request).get_intercom_hash(request.state.user.account_id, app)
    except Exception as exc:
        logger.error("unable to compute intercom hash: %s", exc)
        return PlainTextResponse("Internal server error.", status_code=500)
    return JSONResponse(EntityResponse(payload).to_dict())


async def update_user_preview(request: Request) -> Response:
    user = request.state.user
    try:
        payload = await _json_object(request)
        preview = payload.get("uiPreview")
        if preview is None:
            preview = False
        if not isinstance(preview, bool):
            raise ValueError('field "uiPreview" must be a boolean')
    except ValueError as exc:
        return _identity_error(exc)
    try:
        user = _service(request).update_ui_preview(user, preview)
    except Exception as exc:
        return _identity_error(exc)
    return JSONResponse(EntityResponse(user).to_dict())


def favorite_page_routes() -> list[Route]:
    return [
        Route("/", set_favorite_page, methods=["POST"]),
        Route("/", get_favorite_pages, methods=["GET"]),
    ]


def user_identity_routes() -> list[Route | Mount]:
    return [
        Route("/", get_user_identity, methods=["GET"]),
        Route("/intercom", get_intercom_hash, methods=["GET"]),
        Route("/update-ui-preview", update_user_preview, methods=["POST"]),
        Mount(
            "/visited-bundles",
            routes=[
                Route("/", add_visited_bundle, methods=["POST"]),
                Route("/", get_visited_bundles, methods=["GET"]),
            ],
        ),
    ]