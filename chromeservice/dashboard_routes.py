"""HTTP handlers for users' dashboard templates and the base layouts."""

from __future__ import annotations

import json
import logging
import re
import sqlite3
from typing import Any

from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from chromeservice.dashboards import WIDGET_MAPPING, DashboardService
from chromeservice.models import DashboardTemplate, ValidationError, validate_template_name
from chromeservice.responses import (
    EntityResponse,
    ErrorResponse,
    ListMeta,
    ListResponse,
    NotAuthorizedError,
    RecordNotFoundError,
)

logger = logging.getLogger(__name__)

_UINT = re.compile(r"[0-9]+")
_MAX_UINT = 2**64 - 1

SERVICE_ERRORS = (
    RecordNotFoundError,
    NotAuthorizedError,
    ValidationError,
    ValueError,
    TypeError,
    sqlite3.Error,
)


def _service(request: Request) -> DashboardService:
    return request.app.state.dashboards


def _user_id(request: Request) -> int:
    return request.state.user.id


def _ok(body: Any) -> JSONResponse:
    return JSONResponse(body.to_dict())


def _error_response(exc: BaseException) -> JSONResponse:
    """Map a failure to 404, 403 or 400 with an error list body."""
    if isinstance(exc, RecordNotFoundError):
        status, message = 404, str(exc)
    elif isinstance(exc, NotAuthorizedError):
        status, message = 403, "not authorized"
    else:
        logger.error("%s", exc)
        status, message = 400, str(exc)
    return JSONResponse(ErrorResponse([message]).to_dict(), status_code=status)


def _template_id(request: Request) -> int | None:
    raw = request.path_params.get("template_id", "")
    if not _UINT.fullmatch(raw):
        return None
    value = int(raw)
    return value if value <= _MAX_UINT else None


def _invalid_id() -> JSONResponse:
    return _error_response(ValueError("invalid template ID"))


async def _json_object(request: Request) -> dict[str, Any]:
    data = json.loads(await request.body())
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("request body must be a JSON object")
    return data


async def get_dashboard_templates(request: Request) -> Response:
    """List the user's templates, optionally of one dashboard type."""
    dashboard = request.query_params.get("dashboard", "")
    try:
        if dashboard:
            validate_template_name(dashboard)
        templates = _service(request).get_templates(_user_id(request), dashboard)
    except SERVICE_ERRORS as exc:
        return _error_response(exc)
    return _ok(ListResponse(data=templates, meta=ListMeta(count=len(templates))))


async def update_dashboard_template(request: Request) -> Response:
    template_id = _template_id(request)
    if template_id is None:
        return _invalid_id()
    try:
        template = DashboardTemplate.from_dict(await _json_object(request))
    except (ValueError, ValidationError, TypeError):
        return _error_response(ValueError("unable to parse payload to dashboard template"))
    try:
        updated = _service(request).update_template(template_id, _user_id(request), template)
    except SERVICE_ERRORS as exc:
        return _error_response(exc)
    return _ok(EntityResponse(updated))


async def get_base_dashboard_templates(request: Request) -> Response:
    """All base templates, or one when the ``dashboard`` parameter is given."""
    dashboard = request.query_params.get("dashboard", "")
    service = _service(request)
    if not dashboard:
        return _ok(ListResponse(data=service.get_all_base_templates()))
    try:
        template = service.get_base_template(dashboard)
    except SERVICE_ERRORS as exc:
        return _error_response(exc)
    return _ok(EntityResponse(template))


async def copy_dashboard_template(request: Request) -> Response:
    template_id = _template_id(request)
    if template_id is None:
        return _invalid_id()
    try:
        template = _service(request).copy_template(_user_id(request), template_id)
    except SERVICE_ERRORS as exc:
        return _error_response(exc)
    return _ok(EntityResponse(template))


async def delete_dashboard_template(request: Request) -> Response:
    template_id = _template_id(request)
    if template_id is None:
        return _invalid_id()
    try:
        _service(request).delete_template(_user_id(request), template_id)
    except SERVICE_ERRORS as exc:
        return _error_response(exc)
    return Response(status_code=204)


async def change_default_template(request: Request) -> Response:
    template_id = _template_id(request)
    if template_id is None:
        return _invalid_id()
    try:
        template = _service(request).change_default_template(_user_id(request), template_id)
    except SERVICE_ERRORS as exc:
        return _error_response(exc)
    return _ok(EntityResponse(template))


async def fork_base_template(request: Request) -> Response:
    dashboard = request.query_params.get("dashboard", "")
    if not dashboard:
        return _error_response(ValueError("invalid base template ID"))
    try:
        template = _service(request).fork_base_template(_user_id(request), dashboard)
    except SERVICE_ERRORS as exc:
        return _error_response(exc)
    return _ok(EntityResponse(template))


async def encode_dashboard_template(request: Request) -> Response:
    template_id = _template_id(request)
    if template_id is None:
        return _invalid_id()
    try:
        encoded = _service(request).encode_template(_user_id(request), template_id)
    except SERVICE_ERRORS as exc:
        return _error_response(exc)
    return _ok(EntityResponse(encoded))


async def decode_dashboard_template(request: Request) -> Response:
    try:
        payload = await _json_object(request)
        encoded = payload.get("encodedTemplate") or ""
        if not isinstance(encoded, str):
            raise ValueError('field "encodedTemplate" must be a string')
    except ValueError as exc:
        return _error_response(exc)
    try:
        template = _service(request).decode_template(encoded)
    except SERVICE_ERRORS as exc:
        return _error_response(exc)
    return _ok(EntityResponse(template))


async def get_widget_mappings(request: Request) -> Response:
    return _ok(EntityResponse(WIDGET_MAPPING))


def dashboard_routes() -> list[Route]:
    """Routes to mount under the dashboard templates prefix."""
    return [
        Route("/", get_dashboard_templates, methods=["GET"]),
        Route("/decode", decode_dashboard_template, methods=["POST"]),
        Route("/base-template", get_base_dashboard_templates, methods=["GET"]),
        Route("/base-template/fork", fork_base_template, methods=["GET"]),
        Route("/widget-mapping", get_widget_mappings, methods=["GET"]),
        Route("/{template_id}", update_dashboard_template, methods=["PATCH"]),
        Route("/{template_id}", delete_dashboard_template, methods=["DELETE"]),
        Route("/{template_id}/copy", copy_dashboard_template, methods=["POST"]),
        Route("/{template_id}/default", change_default_template, methods=["POST"]),
        Route("/{template_id}/encode", encode_dashboard_template, methods=["GET"]),
    ]