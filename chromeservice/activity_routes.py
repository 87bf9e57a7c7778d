"""HTTP handlers for recently visited pages and the user's self report."""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from typing import Any

from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route

from chromeservice.models import SelfReport, ValidationError, VisitedPage
from chromeservice.responses import ListMeta, ListResponse
from chromeservice.users import UserService

logger = logging.getLogger(__name__)

_PAYLOAD_ERRORS = (ValueError, ValidationError, TypeError)


def _service(request: Request) -> UserService:
    return request.app.state.users


async def _json_object(request: Request) -> dict[str, Any]:
    data = json.loads(await request.body())
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("request body must be a JSON object")
    return data


def _page_list(pages: list[VisitedPage]) -> JSONResponse:
    count = len(pages)
    return JSONResponse(
        ListResponse(data=pages, meta=ListMeta(count=count, total=count)).to_dict()
    )


def _visited_pages(payload: dict[str, Any]) -> list[VisitedPage]:
    raw = payload.get("pages") or []
    if not isinstance(raw, list):
        raise ValueError('field "pages" must be a list')
    pages = []
    for item in raw:
        if not isinstance(item, dict):
            raise ValueError("every visited page must be a JSON object")
        pages.append(VisitedPage.from_dict(item))
    return pages


async def store_last_visited_pages(request: Request) -> Response:
    """Replace the user's recently visited pages and return the stored ones."""
    user = request.state.user
    try:
        pages = _visited_pages(await _json_object(request))
    except _PAYLOAD_ERRORS as exc:
        logger.error("unable to request body for last visited pages, %s", exc)
        return PlainTextResponse(
            "Invalid last visited pages request payload.", status_code=400
        )
    stored = _service(request).store_last_visited_pages(user, pages)
    return _page_list(list(stored))


async def get_last_visited_pages(request: Request) -> Response:
    return _page_list(list(request.state.user.last_visited_pages or []))


async def get_self_report(request: Request) -> Response:
    report = _service(request).get_self_report(request.state.user.id)
    return JSONResponse(report.to_dict())


async def update_self_report(request: Request) -> Response:
    """Merge the submitted fields into the user's self report and store it."""
    user = request.state.user
    service = _service(request)
    try:
        body = await _json_object(request)
        submitted = SelfReport.from_dict(body)
    except _PAYLOAD_ERRORS as exc:
        logger.error("unable to request updating self report, %s", exc)
        return PlainTextResponse("Internal server error", status_code=500)
    current = service.get_self_report(user.id)
    merged = replace(
        current,
        job_role=submitted.job_role if "jobRole" in body else current.job_role,
        products_of_interest=(
            list(submitted.products_of_interest or [])
            if "productsOfInterest" in body
            else list(current.products_of_interest or [])
        ),
        user_identity_id=user.id,
    )
    saved = service.save_self_report(user.id, merged)
    return JSONResponse(saved.to_dict())


def last_visited_routes() -> list[Route]:
    return [
        Route("/", store_last_visited_pages, methods=["POST"]),
        Route("/", get_last_visited_pages, methods=["GET"]),
    ]


def self_report_routes() -> list[Route]:
    return [
        Route("/", get_self_report, methods=["GET"]),
        Route("/", update_self_report, methods=["PATCH"]),
    ]