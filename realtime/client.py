"""Admin dashboard client: stay joined, de-duplicate events, poll when offline.

Reconnect policy:
  * unexpected disconnect -> reconnect after ``reconnect_delay`` (1 s) and
    re-emit ``join-admin-dashboard`` from the connect handler;
  * connect error          -> separate retry after ``error_retry_delay`` (3 s);
  * at most one pending retry per trigger, and at most one connect attempt
    in flight, so the two triggers never race each other to the server.

Socket events and the periodic poll both feed one ``RefreshSignal``; the
consumer sees a single coalesced refresh however many producers fired.
"""
import asyncio
import inspect
import logging
from collections import deque
from typing import Any, Callable, Optional, Set

import requests
import socketio
from socketio import exceptions as sio_exceptions

from .events import ADMIN_UPDATE_EVENTS, JOIN_ADMIN_DASHBOARD

_SEEN_EVENTS = 1024


class RefreshSignal:
    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._sources: Set[str] = set()

    def notify(self, source: str) -> None:
        self._sources.add(source)
        self._event.set()

    def is_pending(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> Set[str]:
        """Block until at least one producer fired; return and reset the producers seen."""
        await self._event.wait()
        self._event.clear()
        sources, self._sources = self._sources, set()
        return sources


def http_state_fetcher(api_base_url: str, token: str, timeout: float = 10.0) -> Callable[[], Any]:
    """Blocking fetcher for ``GET /admin/dashboard``; run off-loop by the poller."""
    url = f"{api_base_url.rstrip('/')}/admin/dashboard"

    def fetch():
        resp = requests.get(url, headers={"Authorization": f"Bearer {token}"}, timeout=timeout)
        resp.raise_for_status()
        return resp.json()

    return fetch


class AdminDashboardClient:
    def __init__(
        self,
        url: str,
        token: str,
        on_update: Optional[Callable[[dict], Any]] = None,
        fetch_state: Optional[Callable[[], Any]] = None,
        sio=None,
        reconnect_delay: float = 1.0,
        error_retry_delay: float = 3.0,
        poll_interval: float = 30.0,
    ):
        self.url = url
        self.token = token
        self.on_update = on_update
        self.fetch_state = fetch_state
        self.reconnect_delay = reconnect_delay
        self.error_retry_delay = error_retry_delay
        self.poll_interval = poll_interval
        # Reconnection is ours: the library's own loop would not re-join the room.
        self.sio = sio if sio is not None else socketio.AsyncClient(reconnection=False)
        self.refresh = RefreshSignal()
        self.joined = False
        self.last_state: Any = None
        self._closing = False
        self._connect_lock = asyncio.Lock()
        self._disconnect_retry: Optional[asyncio.Task] = None
        self._error_retry: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._seen_order: deque = deque(maxlen=_SEEN_EVENTS)
        self._seen: Set[str] = set()

        self.sio.on("connect", self._on_connect)
        self.sio.on("disconnect", self._on_disconnect)
        self.sio.on("connect_error", self._on_connect_error)
        for name in ADMIN_UPDATE_EVENTS:
            self.sio.on(name, self._on_admin_update)

    @property
    def connected(self) -> bool:
        return bool(self.sio.connected)

    async def start(self) -> None:
        self._closing = False
        if self.fetch_state is not None and self._poll_task is None:
            self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())
        try:
            await self.connect()
        except sio_exceptions.ConnectionError as e:
            # connect_error handler has already scheduled the retry
            logging.warning(f"REALTIME initial connect failed url={self.url}: {e}")

    async def connect(self) -> None:
        if self._connect_lock.locked():
            return
        async with self._connect_lock:
            if self.sio.connected:
                return
            await self.sio.connect(self.url, auth={"token": self.token})

    async def close(self) -> None:
        self._closing = True
        for task in (self._disconnect_retry, self._error_retry, self._poll_task):
            if task is not None and not task.done():
                task.cancel()
        self._poll_task = None
        if self.sio.connected:
            await self.sio.disconnect()

    async def _on_connect(self) -> None:
        await self.sio.emit(JOIN_ADMIN_DASHBOARD)
        self.joined = True
        logging.info(f"REALTIME joined admin dashboard url={self.url}")
        # events published while we were away are gone; resync
        self.refresh.notify("connect")

    async def _on_disconnect(self, *args) -> None:
        self.joined = False
        if self._closing:
            return
        logging.warning(f"REALTIME disconnected reason={args[0] if args else 'unknown'}")
        self._disconnect_retry = self._schedule(self._disconnect_retry, self.reconnect_delay)

    async def _on_connect_error(self, *args) -> None:
        if self._closing:
            return
        logging.warning(f"REALTIME connect error: {args[0] if args else 'unknown'}")
        self._error_retry = self._schedule(self._error_retry, self.error_retry_delay)

    def _schedule(self, pending: Optional[asyncio.Task], delay: float) -> asyncio.Task:
        # a retry that is itself failing inside connect() does not count as pending
        if pending is not None and not pending.done() and pending is not asyncio.current_task():
            return pending
        return asyncio.get_running_loop().create_task(self._retry_after(delay))

    async def _retry_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        if self._closing or self.sio.connected:
            return
        try:
            await self.connect()
        except sio_exceptions.ConnectionError as e:
            logging.warning(f"REALTIME reconnect failed url={self.url}: {e}")

    async def _on_admin_update(self, data) -> None:
        event_id = data.get("event_id") if isinstance(data, dict) else None
        if event_id:
            if event_id in self._seen:
                return
            if len(self._seen_order) == self._seen_order.maxlen:
                self._seen.discard(self._seen_order[0])
            self._seen_order.append(event_id)
            self._seen.add(event_id)
        if self.on_update is not None:
            result = self.on_update(data)
            if inspect.isawaitable(result):
                await result
        self.refresh.notify("socket")

    async def _poll_loop(self) -> None:
        while not self._closing:
            await asyncio.sleep(self.poll_interval)
            if self.sio.connected:
                continue
            try:
                self.last_state = await asyncio.to_thread(self.fetch_state)
            except Exception as e:
                logging.warning(f"REALTIME poll failed: {e}")
                continue
            self.refresh.notify("poll")
