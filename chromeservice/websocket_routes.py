"""Websocket connections and message emission through the connection hub."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from typing import Any

from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket

from chromeservice.cloudevents import (
    CloudEventError,
    validate_content_type,
    validate_spec_version,
    validate_uri,
    wrap_payload,
)
from chromeservice.connectionhub import (
    Client,
    Connection,
    Message,
    MessageDestinations,
    read_pump,
    write_pump,
)
from chromeservice.xrh import HeaderError, parse_jwt_token

logger = logging.getLogger(__name__)

PING_PERIOD = 54.0
SUBPROTOCOL = "cloudevents.json"
JWT_COOKIE = "cs_jwt"
POLICY_VIOLATION = 1008


async def _settle(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse({"msg": message}, status_code=400)


async def websocket_endpoint(websocket: WebSocket) -> None:
    """Authenticate by the session cookie and attach the socket to the hub."""
    cookie = websocket.cookies.get(JWT_COOKIE)
    if not cookie:
        logger.error("Unable to find %s cookie", JWT_COOKIE)
        await websocket.close(code=POLICY_VIOLATION)
        return
    try:
        identity = parse_jwt_token(cookie)
    except HeaderError as exc:
        logger.error("Unable to parse jwt token %s", exc)
        await websocket.close(code=POLICY_VIOLATION)
        return
    logger.debug("Headers %s", dict(websocket.headers))

    requested = websocket.scope.get("subprotocols") or []
    await websocket.accept(subprotocol=SUBPROTOCOL if SUBPROTOCOL in requested else None)

    client = Client(
        user=identity.user_id,
        organization=identity.org_id,
        username=identity.username,
        roles=[],
        conn=Connection(),
    )
    hub = websocket.app.state.hub
    logger.info("New client added to the connection hub: %s", identity.user_id)
    await _settle(hub.register(client))

    writer = write_pump(client, websocket, PING_PERIOD)
    task = asyncio.ensure_future(writer) if inspect.isawaitable(writer) else None
    try:
        await _settle(read_pump(client, hub, websocket))
    finally:
        if task is not None:
            task.cancel()


def _string_list(data: dict[str, Any], key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f'field "{key}" must be a list of strings')
    return value


def _string(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f'field "{key}" must be a string')
    return value


def _decode_request(raw: bytes) -> dict[str, Any]:
    data = json.loads(raw)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("payload must be a JSON object")
    broadcast = data.get("broadcast")
    if broadcast is None:
        broadcast = False
    if not isinstance(broadcast, bool):
        raise ValueError('field "broadcast" must be a boolean')
    payload = data.get("payload")
    if payload is not None and not isinstance(payload, dict):
        raise ValueError('field "payload" must be an object')
    return {
        "broadcast": broadcast,
        "users": _string_list(data, "users"),
        "roles": _string_list(data, "roles"),
        "organizations": _string_list(data, "organizations"),
        "usernames": _string_list(data, "usernames"),
        "payload": payload,
        "type": _string(data, "type"),
        "id": _string(data, "id"),
    }


async def emit_message(request: Request) -> Response:
    """Wrap the payload in a cloud event and hand it to the hub."""
    try:
        body = _decode_request(await request.body())
    except ValueError as exc:
        logger.error("%s", exc)
        return _bad_request("Unable to decode payload!")
    logger.info("Attempting to emit new broadcast message %s", body)

    source = request.headers.get("host", "") + request.url.path
    event = wrap_payload(body["payload"], source, body["id"], body["type"])
    try:
        validate_content_type(event.data_content_type)
    except CloudEventError as exc:
        logger.error("%s", exc)
        return _bad_request("The Data Content Type needs to be in application/json format!")
    try:
        validate_spec_version(event.spec_version)
    except CloudEventError as exc:
        logger.error("%s", exc)
        return _bad_request("Spec version needs to be 1.0.2!")
    try:
        validate_uri(event.source)
    except CloudEventError as exc:
        logger.error("%s", exc)
        return _bad_request("Invalid URI!")
    try:
        data = json.dumps(event.to_dict())
    except (TypeError, ValueError) as exc:
        logger.error("%s", exc)
        return Response(status_code=400, media_type="application/json")

    message = Message(
        broadcast=body["broadcast"],
        data=data,
        destinations=MessageDestinations(
            users=body["users"],
            roles=body["roles"],
            organizations=body["organizations"],
        ),
    )
    hub = request.app.state.hub
    if message.broadcast:
        await _settle(hub.broadcast(message))
    else:
        await _settle(hub.emit(message))
    return Response(status_code=200)


def websocket_routes() -> list[WebSocketRoute]:
    return [
        WebSocketRoute("/ws", websocket_endpoint),
        WebSocketRoute("/ws/", websocket_endpoint),
    ]


def emit_routes() -> list[Route]:
    return [Route("/", emit_message, methods=["POST"])]