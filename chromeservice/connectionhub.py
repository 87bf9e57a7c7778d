"""Hub that routes messages to connected websocket clients."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from chromeservice.models import ValidationError

logger = logging.getLogger(__name__)

WRITE_WAIT = 10.0
PONG_WAIT = 60.0
PING_PERIOD = PONG_WAIT * 9 / 10
MAX_MESSAGE_SIZE = 512
SEND_BUFFER = 256


class WebSocketLike(Protocol):
    async def receive_text(self) -> str: ...

    async def send_text(self, data: str) -> None: ...

    async def close(self) -> None: ...


class MessageTarget(str, Enum):
    USER = "user"
    ORGANIZATION = "organization"
    ROLE = "role"

    def __str__(self) -> str:
        return self.value


def _new_queue() -> asyncio.Queue:
    return asyncio.Queue(maxsize=SEND_BUFFER)


@dataclass(eq=False)
class Connection:
    """Outgoing message buffer of one websocket."""

    websocket: Any = None
    send: asyncio.Queue = field(default_factory=_new_queue)
    closed: bool = False

    def close(self) -> None:
        """Stop accepting messages; the writer finishes what is buffered."""
        if self.closed:
            return
        self.closed = True
        with contextlib.suppress(asyncio.QueueFull):
            self.send.put_nowait(None)


@dataclass
class ConnectionRoom:
    room_id: str = ""
    members: str = ""


@dataclass(eq=False)
class Client:
    user: str = ""
    organization: str = ""
    roles: list[str] = field(default_factory=list)
    username: str = ""
    conn: Connection = field(default_factory=Connection)


@dataclass
class MessageDestinations:
    usernames: list[str] = field(default_factory=list)
    users: list[str] = field(default_factory=list)
    roles: list[str] = field(default_factory=list)
    organizations: list[str] = field(default_factory=list)


@dataclass
class Message:
    broadcast: bool = False
    data: bytes = b""
    destinations: MessageDestinations = field(default_factory=MessageDestinations)
    origin: str = ""


def _str_list(data: dict, key: str) -> list[str]:
    value = data.get(key) or []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f'field "{key}" must be a list of strings')
    return list(value)


@dataclass
class WsMessage:
    broadcast: bool = False
    users: list[str] = field(default_factory=list)
    roles: list[str] = field(default_factory=list)
    organizations: list[str] = field(default_factory=list)
    usernames: list[str] = field(default_factory=list)
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "broadcast": self.broadcast,
            "users": list(self.users),
            "roles": list(self.roles),
            "organizations": list(self.organizations),
            "usernames": list(self.usernames),
            "payload": dict(self.payload),
        }

    @classmethod
    def from_dict(cls, data: Any) -> WsMessage:
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValidationError("websocket message must be a JSON object")
        broadcast = data.get("broadcast") or False
        if not isinstance(broadcast, bool):
            raise ValidationError('field "broadcast" must be a boolean')
        payload = data.get("payload") or {}
        if not isinstance(payload, dict):
            raise ValidationError('field "payload" must be an object')
        return cls(
            broadcast=broadcast,
            users=_str_list(data, "users"),
            roles=_str_list(data, "roles"),
            organizations=_str_list(data, "organizations"),
            usernames=_str_list(data, "usernames"),
            payload=payload,
        )


class ConnectionHub:
    """Registry of clients indexed by user, role, organization and username."""

    def __init__(self) -> None:
        self.clients: dict[str, Client] = {}
        self.roles: dict[str, dict[Connection, Client]] = {}
        self.organizations: dict[str, dict[Connection, Client]] = {}
        self.usernames: dict[str, dict[Connection, Client]] = {}

    def register(self, client: Client) -> None:
        self.clients.setdefault(client.user, client)
        for role in client.roles:
            self.roles.setdefault(role, {})[client.conn] = client
        self.organizations.setdefault(client.organization, {})[client.conn] = client
        self.usernames.setdefault(client.username, {})[client.conn] = client
        logger.debug("new client connected %s", client.user)

    def unregister(self, client: Client) -> None:
        for role in client.roles:
            self.roles.get(role, {}).pop(client.conn, None)
        self.organizations.get(client.organization, {}).pop(client.conn, None)
        self.usernames.get(client.username, {}).pop(client.conn, None)
        self.clients.pop(client.user, None)

    def broadcast(self, message: Message) -> None:
        """Send to every client; clients whose buffer is full are dropped."""
        for client in list(self.clients.values()):
            try:
                client.conn.send.put_nowait(message.data)
            except asyncio.QueueFull:
                client.conn.close()
                self.unregister(client)

    def emit(self, message: Message) -> None:
        """Send once to every connection matched by the destinations."""
        targets: dict[Connection, Client] = {}
        dest = message.destinations
        for user in dest.users:
            client = self.clients.get(user)
            if client is not None:
                targets[client.conn] = client
        for rooms, keys in (
            (self.roles, dest.roles),
            (self.organizations, dest.organizations),
            (self.usernames, dest.usernames),
        ):
            for key in keys:
                targets.update(rooms.get(key, {}))
        for conn, client in targets.items():
            try:
                conn.send.put_nowait(message.data)
            except asyncio.QueueFull:
                self.unregister(client)


async def read_pump(client: Client, hub: ConnectionHub, websocket: WebSocketLike) -> None:
    """Forward messages read from the websocket to the hub until it closes."""
    try:
        while True:
            try:
                text = await websocket.receive_text()
            except Exception as exc:
                logger.debug("websocket client going away: %s", exc)
                break
            raw = text.encode("utf-8")
            if len(raw) > MAX_MESSAGE_SIZE:
                logger.debug("websocket message exceeds %d bytes", MAX_MESSAGE_SIZE)
                break
            try:
                payload = WsMessage.from_dict(json.loads(raw))
            except (json.JSONDecodeError, ValidationError) as exc:
                logger.warning("Unable to unmarshall incoming WS message: %s", exc)
                break
            if payload.broadcast:
                hub.broadcast(Message(broadcast=True, data=raw))
            else:
                hub.emit(
                    Message(
                        data=raw,
                        destinations=MessageDestinations(
                            users=payload.users,
                            roles=payload.roles,
                            organizations=payload.organizations,
                        ),
                    )
                )
    finally:
        hub.unregister(client)
        with contextlib.suppress(Exception):
            await websocket.close()


async def write_pump(
    client: Client, websocket: Any, ping_period: float | None = PING_PERIOD
) -> None:
    """Write buffered messages to the websocket; ping when idle if a period is set.

    Heartbeats need an async ``ping()`` method on the websocket.
    """
    conn = client.conn
    try:
        while True:
            if conn.closed and conn.send.empty():
                logger.error("sending message has failed, connection closed")
                return
            try:
                if ping_period is None:
                    message = await conn.send.get()
                else:
                    message = await asyncio.wait_for(conn.send.get(), ping_period)
            except asyncio.TimeoutError:
                try:
                    await asyncio.wait_for(websocket.ping(), WRITE_WAIT)
                except Exception as exc:
                    logger.error("Heart beat frame failed to be send: %s", exc)
                    return
                continue
            if message is None:
                continue
            try:
                await asyncio.wait_for(
                    websocket.send_text(message.decode("utf-8")), WRITE_WAIT
                )
            except Exception as exc:
                logger.error("Unable to write message to WS connection: %s", exc)
                return
    finally:
        with contextlib.suppress(Exception):
            await websocket.close()