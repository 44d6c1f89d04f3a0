"""Socket.IO server side of the admin dashboard and user notification channels.

Connections authenticate with the same bearer token as the HTTP API, passed
either as ``auth={"token": ...}`` or an ``Authorization: Bearer`` header.
Only admin sessions may join the dashboard room. Any authenticated session may
join its own ``notifications_{user_id}`` room, and only that one. Room
membership does not survive a transport disconnect; clients re-join on every
connect.
"""
import logging
from typing import Optional

import socketio
from socketio import exceptions as sio_exceptions
from fastapi import HTTPException

from emirimo import config
from emirimo.auth import bearer_token, jwt_decode

from .events import (
    ADMIN_UPDATE_EVENTS,
    JOIN_ADMIN_DASHBOARD,
    JOIN_NOTIFICATIONS,
    LEAVE_ADMIN_DASHBOARD,
    LEAVE_NOTIFICATIONS,
    USER_NOTIFICATION,
    notifications_room,
)


class Broadcaster:
    """Capability handed to request handlers that publish real-time events."""

    async def broadcast(self, event: dict) -> None:
        """Publish an admin event to every dashboard session."""
        raise NotImplementedError

    async def send_to_user(self, user_id: str, notification: dict) -> None:
        """Push a notification to the sessions of one user."""
        raise NotImplementedError


class NullBroadcaster(Broadcaster):
    async def broadcast(self, event: dict) -> None:
        logging.debug(f"REALTIME dropped event type={event.get('type')} (no server)")

    async def send_to_user(self, user_id: str, notification: dict) -> None:
        logging.debug(f"REALTIME dropped notification user={user_id} (no server)")


class SocketBroadcaster(Broadcaster):
    def __init__(self, sio, room: str):
        self.sio = sio
        self.room = room

    async def broadcast(self, event: dict) -> None:
        for name in ADMIN_UPDATE_EVENTS:
            try:
                await self.sio.emit(name, event, room=self.room)
            except Exception as e:
                # at-most-once: a failed emit is logged, never retried
                logging.warning(f"REALTIME emit failed event={name} type={event.get('type')}: {e}")
                return
        logging.info(f"REALTIME broadcast type={event.get('type')} id={event.get('event_id')} room={self.room}")

    async def send_to_user(self, user_id: str, notification: dict) -> None:
        room = notifications_room(user_id)
        try:
            await self.sio.emit(USER_NOTIFICATION, notification, room=room)
        except Exception as e:
            logging.warning(f"REALTIME notification emit failed user={user_id}: {e}")
            return
        logging.info(f"REALTIME notification id={notification.get('id')} room={room}")


class AdminSocketServer:
    def __init__(self, sio: Optional[socketio.AsyncServer] = None, room: Optional[str] = None):
        if sio is None:
            origins = "*" if config.ALLOWED_ORIGINS == ["*"] else config.ALLOWED_ORIGINS
            sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=origins)
        self.sio = sio
        self.room = room or config.ADMIN_ROOM
        self.broadcaster = SocketBroadcaster(self.sio, self.room)
        self.sio.on("connect", self.on_connect)
        self.sio.on("disconnect", self.on_disconnect)
        self.sio.on(JOIN_ADMIN_DASHBOARD, self.on_join)
        self.sio.on(LEAVE_ADMIN_DASHBOARD, self.on_leave)
        self.sio.on(JOIN_NOTIFICATIONS, self.on_join_notifications)
        self.sio.on(LEAVE_NOTIFICATIONS, self.on_leave_notifications)

    def asgi_app(self, other_asgi_app):
        return socketio.ASGIApp(self.sio, other_asgi_app=other_asgi_app)

    async def on_connect(self, sid, environ, auth=None):
        token = auth.get("token") if isinstance(auth, dict) else None
        token = token or bearer_token((environ or {}).get("HTTP_AUTHORIZATION"))
        if not token:
            raise sio_exceptions.ConnectionRefusedError("Authentication error: No token provided")
        try:
            claims = jwt_decode(token)
        except HTTPException:
            raise sio_exceptions.ConnectionRefusedError("Authentication error: Invalid token")
        await self.sio.save_session(sid, {"user_id": claims.get("sub"), "role": claims.get("role")})
        logging.info(f"REALTIME connect sid={sid} user={claims.get('sub')}")
        return True

    async def on_join(self, sid, *args):
        session = await self.sio.get_session(sid)
        if (session or {}).get("role") != "admin":
            await self.sio.emit("error", {"message": "admin role required"}, to=sid)
            return False
        await self.sio.enter_room(sid, self.room)
        logging.info(f"REALTIME join sid={sid} room={self.room}")
        return True

    async def on_leave(self, sid, *args):
        await self.sio.leave_room(sid, self.room)
        return True

    async def on_join_notifications(self, sid, *args):
        # the room comes from the session, never from the payload
        user_id = ((await self.sio.get_session(sid)) or {}).get("user_id")
        if not user_id:
            await self.sio.emit("error", {"message": "unknown user"}, to=sid)
            return False
        await self.sio.enter_room(sid, notifications_room(user_id))
        logging.info(f"REALTIME join sid={sid} room={notifications_room(user_id)}")
        return True

    async def on_leave_notifications(self, sid, *args):
        user_id = ((await self.sio.get_session(sid)) or {}).get("user_id")
        if user_id:
            await self.sio.leave_room(sid, notifications_room(user_id))
        return True

    async def on_disconnect(self, sid, *args):
        logging.info(f"REALTIME disconnect sid={sid}")
