import asyncio
import json

import pytest

from chromeservice.connectionhub import (
    Client,
    Connection,
    ConnectionHub,
    Message,
    MessageDestinations,
    MessageTarget,
    WsMessage,
    read_pump,
    write_pump,
)
from chromeservice.models import ValidationError


class FakeSocket:
    def __init__(self, incoming=()):
        self.incoming = list(incoming)
        self.sent = []
        self.closed = False
        self.pings = 0

    async def receive_text(self):
        if not self.incoming:
            raise ConnectionError("gone")
        return self.incoming.pop(0)

    async def send_text(self, data):
        self.sent.append(data)

    async def ping(self):
        self.pings += 1

    async def close(self):
        self.closed = True


def _client(user, org="org", roles=(), username="", size=256):
    return Client(
        user=user,
        organization=org,
        roles=list(roles),
        username=username or user,
        conn=Connection(send=asyncio.Queue(maxsize=size)),
    )


def _drain(client):
    items = []
    while not client.conn.send.empty():
        items.append(client.conn.send.get_nowait())
    return items


def test_message_target_str():
    assert str(MessageTarget.ORGANIZATION) == "organization"
    assert MessageTarget("role") is MessageTarget.ROLE


def test_register_indexes_rooms():
    hub = ConnectionHub()
    client = _client("u1", org="o1", roles=["admin"], username="name1")
    hub.register(client)
    assert hub.clients["u1"] is client
    assert hub.roles["admin"] == {client.conn: client}
    assert hub.organizations["o1"] == {client.conn: client}
    assert hub.usernames["name1"] == {client.conn: client}


def test_unregister_removes_everywhere():
    hub = ConnectionHub()
    client = _client("u1", org="o1", roles=["admin"])
    hub.register(client)
    hub.unregister(client)
    assert "u1" not in hub.clients
    assert hub.roles["admin"] == {}
    assert hub.organizations["o1"] == {}


def test_emit_targets_org_only():
    hub = ConnectionHub()
    a = _client("a", org="o1")
    b = _client("b", org="o2")
    hub.register(a)
    hub.register(b)
    hub.emit(Message(data=b"hi", destinations=MessageDestinations(organizations=["o1"])))
    assert _drain(a) == [b"hi"]
    assert _drain(b) == []


def test_emit_delivers_once_per_connection():
    hub = ConnectionHub()
    a = _client("a", org="o1", roles=["r"], username="alice")
    hub.register(a)
    dest = MessageDestinations(users=["a"], roles=["r"], organizations=["o1"], usernames=["alice"])
    hub.emit(Message(data=b"x", destinations=dest))
    assert _drain(a) == [b"x"]


def test_emit_full_buffer_unregisters():
    hub = ConnectionHub()
    a = _client("a", size=1)
    hub.register(a)
    dest = MessageDestinations(users=["a"])
    hub.emit(Message(data=b"1", destinations=dest))
    hub.emit(Message(data=b"2", destinations=dest))
    assert "a" not in hub.clients
    assert _drain(a) == [b"1"]


def test_broadcast_reaches_all():
    hub = ConnectionHub()
    a, b = _client("a"), _client("b")
    hub.register(a)
    hub.register(b)
    hub.broadcast(Message(broadcast=True, data=b"all"))
    assert _drain(a) == [b"all"]
    assert _drain(b) == [b"all"]


def test_broadcast_full_buffer_closes_and_unregisters():
    hub = ConnectionHub()
    a = _client("a", size=1)
    hub.register(a)
    hub.broadcast(Message(data=b"1"))
    hub.broadcast(Message(data=b"2"))
    assert a.conn.closed is True
    assert "a" not in hub.clients


def test_ws_message_from_dict():
    msg = WsMessage.from_dict({"broadcast": True, "users": ["u"], "payload": {"k": 1}})
    assert msg.broadcast is True
    assert msg.users == ["u"]
    assert msg.payload == {"k": 1}
    assert WsMessage.from_dict(msg.to_dict()) == msg


@pytest.mark.parametrize("bad", [[1], {"users": "u"}, {"broadcast": "yes"}, {"payload": [1]}])
def test_ws_message_rejects_bad_types(bad):
    with pytest.raises(ValidationError):
        WsMessage.from_dict(bad)


@pytest.mark.asyncio
async def test_read_pump_emits_and_unregisters():
    hub = ConnectionHub()
    sender = _client("sender", org="o1")
    target = _client("target", org="o2")
    hub.register(sender)
    hub.register(target)
    text = json.dumps({"organizations": ["o2"], "payload": {"a": 1}})
    socket = FakeSocket([text])
    await read_pump(sender, hub, socket)
    assert _drain(target) == [text.encode()]
    assert "sender" not in hub.clients
    assert socket.closed is True


@pytest.mark.asyncio
async def test_read_pump_broadcast():
    hub = ConnectionHub()
    sender, other = _client("s"), _client("o")
    hub.register(sender)
    hub.register(other)
    text = json.dumps({"broadcast": True})
    await read_pump(sender, hub, FakeSocket([text]))
    assert _drain(other) == [text.encode()]


@pytest.mark.asyncio
async def test_read_pump_stops_on_invalid_json():
    hub = ConnectionHub()
    sender, other = _client("s"), _client("o")
    hub.register(sender)
    hub.register(other)
    socket = FakeSocket(["{broken", json.dumps({"broadcast": True})])
    await read_pump(sender, hub, socket)
    assert _drain(other) == []
    assert len(socket.incoming) == 1


@pytest.mark.asyncio
async def test_read_pump_stops_on_oversized_message():
    hub = ConnectionHub()
    sender, other = _client("s"), _client("o")
    hub.register(sender)
    hub.register(other)
    big = json.dumps({"broadcast": True, "payload": {"x": "y" * 600}})
    await read_pump(sender, hub, FakeSocket([big]))
    assert _drain(other) == []


@pytest.mark.asyncio
async def test_write_pump_flushes_then_closes():
    client = _client("a")
    client.conn.send.put_nowait(b"one")
    client.conn.send.put_nowait(b"two")
    client.conn.close()
    socket = FakeSocket()
    await asyncio.wait_for(write_pump(client, socket, None), 1)
    assert socket.sent == ["one", "two"]
    assert socket.closed is True


@pytest.mark.asyncio
async def test_write_pump_pings_when_idle():
    client = _client("a")
    socket = FakeSocket()
    task = asyncio.create_task(write_pump(client, socket, 0.01))
    await asyncio.sleep(0.05)
    client.conn.close()
    await asyncio.wait_for(task, 1)
    assert socket.pings >= 1
    assert socket.closed is True