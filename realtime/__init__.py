"""Real-time admin dashboard updates over Socket.IO.

Server side: ``AdminSocketServer`` authenticates socket connections with the
API's bearer tokens and manages the admin dashboard room plus each user's
notification room; handlers publish through the ``Broadcaster`` they are
given. Client side: ``AdminDashboardClient`` keeps a dashboard session
joined across reconnects and falls back to polling while disconnected.

Delivery is best effort and at most once; the poll is the correctness baseline.
"""

__all__ = [
    "AdminDashboardClient",
    "AdminSocketServer",
    "Broadcaster",
    "NullBroadcaster",
    "RefreshSignal",
    "SocketBroadcaster",
    "make_event",
    "notifications_room",
]

from .events import make_event, notifications_room  # noqa: E402
from .server import AdminSocketServer, Broadcaster, NullBroadcaster, SocketBroadcaster  # noqa: E402
from .client import AdminDashboardClient, RefreshSignal  # noqa: E402
