import asyncio

import pytest
from socketio import exceptions as sio_exceptions

from emirimo.auth import jwt_encode
from realtime.events import (
    ADMIN_UPDATE_EVENTS,
    JOIN_ADMIN_DASHBOARD,
    JOIN_NOTIFICATIONS,
    LEAVE_NOTIFICATIONS,
    USER_DELETED,
    make_event,
)
from realtime.server import AdminSocketServer


class FakeServerSio:
    def __init__(self, fail_emit=False):
        self.handlers = {}
        self.sessions = {}
        self.rooms = {}
        self.emitted = []
        self.fail_emit = fail_emit

    def on(self, event, handler=None):
        self.handlers[event] = handler

    async def emit(self, event, data=None, room=None, to=None):
        if self.fail_emit:
            raise RuntimeError("transport gone")
        self.emitted.append((event, data, room, to))

    async def save_session(self, sid, session):
        self.sessions[sid] = session

    async def get_session(self, sid):
        return self.sessions.get(sid, {})

    async def enter_room(self, sid, room):
        self.rooms.setdefault(room, set()).add(sid)

    async def leave_room(self, sid, room):
        self.rooms.get(room, set()).discard(sid)


def _server(**kw):
    sio = FakeServerSio(**kw)
    return AdminSocketServer(sio=sio, room="admin-dashboard"), sio


def test_connect_requires_valid_token():
    server, _ = _server()
    with pytest.raises(sio_exceptions.ConnectionRefusedError):
        asyncio.run(server.on_connect("s1", {}, None))
    with pytest.raises(sio_exceptions.ConnectionRefusedError):
        asyncio.run(server.on_connect("s1", {}, {"token": "garbage"}))


def test_connect_accepts_auth_payload_or_header():
    server, sio = _server()
    token = jwt_encode({"sub": "abc", "role": "admin"})
    assert asyncio.run(server.on_connect("s1", {}, {"token": token}))
    assert asyncio.run(server.on_connect("s2", {"HTTP_AUTHORIZATION": f"Bearer {token}"}))
    assert sio.sessions["s1"] == {"user_id": "abc", "role": "admin"}
    assert "s2" in sio.sessions


def test_only_admins_join_the_room():
    server, sio = _server()

    async def scenario():
        await server.on_connect("admin", {}, {"token": jwt_encode({"sub": "a", "role": "admin"})})
        await server.on_connect("seeker", {}, {"token": jwt_encode({"sub": "s", "role": "seeker"})})
        assert await sio.handlers[JOIN_ADMIN_DASHBOARD]("admin") is True
        assert await sio.handlers[JOIN_ADMIN_DASHBOARD]("seeker") is False

    asyncio.run(scenario())
    assert sio.rooms["admin-dashboard"] == {"admin"}
    assert sio.emitted == [("error", {"message": "admin role required"}, None, "seeker")]


def test_leave_room():
    server, sio = _server()

    async def scenario():
        await server.on_connect("admin", {}, {"token": jwt_encode({"sub": "a", "role": "admin"})})
        await server.on_join("admin")
        await server.on_leave("admin")

    asyncio.run(scenario())
    assert sio.rooms["admin-dashboard"] == set()


def test_broadcast_emits_both_event_names_to_room():
    server, sio = _server()
    event = make_event(USER_DELETED, userId="u1")
    asyncio.run(server.broadcaster.broadcast(event))
    assert [(name, room) for name, _, room, _ in sio.emitted] == [(n, "admin-dashboard") for n in ADMIN_UPDATE_EVENTS]
    assert all(data is event for _, data, _, _ in sio.emitted)


def test_broadcast_failure_does_not_raise():
    server, _ = _server(fail_emit=True)
    asyncio.run(server.broadcaster.broadcast(make_event(USER_DELETED, userId="u1")))


def test_join_notifications_uses_session_user():
    server, sio = _server()

    async def scenario():
        await server.on_connect("s1", {}, {"token": jwt_encode({"sub": "u1", "role": "seeker"})})
        # a payload naming another user is ignored
        assert await sio.handlers[JOIN_NOTIFICATIONS]("s1", "u2") is True
        assert sio.rooms == {"notifications_u1": {"s1"}}
        assert await sio.handlers[LEAVE_NOTIFICATIONS]("s1") is True

    asyncio.run(scenario())
    assert sio.rooms["notifications_u1"] == set()


def test_join_notifications_without_session_is_refused():
    server, sio = _server()
    assert asyncio.run(server.on_join_notifications("ghost")) is False
    assert sio.rooms == {}
    assert sio.emitted == [("error", {"message": "unknown user"}, None, "ghost")]


def test_send_to_user_targets_the_user_room():
    server, sio = _server()
    note = {"id": "n1", "title": "Hello"}
    asyncio.run(server.broadcaster.send_to_user("u1", note))
    assert sio.emitted == [("notification", note, "notifications_u1", None)]


def test_send_to_user_failure_does_not_raise():
    server, _ = _server(fail_emit=True)
    asyncio.run(server.broadcaster.send_to_user("u1", {"id": "n1"}))


def test_make_event_envelope():
    event = make_event(USER_DELETED, {"userId": "u1", "type": "spoofed"})
    assert event["type"] == USER_DELETED
    assert event["userId"] == "u1"
    assert isinstance(event["timestamp"], float)
    assert make_event(USER_DELETED)["event_id"] != event["event_id"]
    with pytest.raises(ValueError):
        make_event("made-up-event")
