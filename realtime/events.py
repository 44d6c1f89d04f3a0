"""Socket event names and the admin dashboard event envelope.

Every admin event is a flat dict ``{type, event_id, timestamp, ...payload}``.
The ``event_id`` lets clients drop copies received under both event names.
Per-user notifications travel on their own ``notification`` event to the
user's ``notifications_{user_id}`` room.
"""

from __future__ import annotations

import time
import uuid
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

JOIN_ADMIN_DASHBOARD = "join-admin-dashboard"
LEAVE_ADMIN_DASHBOARD = "leave-admin-dashboard"
# Both spellings are emitted; older dashboards listen on the underscore form.
ADMIN_UPDATE_EVENTS = ("admin-update", "admin_update")

JOIN_NOTIFICATIONS = "join_notifications"
LEAVE_NOTIFICATIONS = "leave_notifications"
USER_NOTIFICATION = "notification"

USER_STATUS_CHANGE = "user-status-change"
USER_DELETED = "user-deleted"
JOB_STATUS_CHANGE = "job-status-change"
NEW_NOTIFICATION = "new-notification"
NOTIFICATION_UPDATE = "notification-update"
NOTIFICATION_DELETE = "notification-delete"
PROFILE_UPDATE = "profile-update"
COURSE_COMPLETED = "course-completed"

EVENT_TYPES = frozenset({
    USER_STATUS_CHANGE,
    USER_DELETED,
    JOB_STATUS_CHANGE,
    NEW_NOTIFICATION,
    NOTIFICATION_UPDATE,
    NOTIFICATION_DELETE,
    PROFILE_UPDATE,
    COURSE_COMPLETED,
})


class AdminEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    event_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: float = Field(default_factory=time.time)


def make_event(event_type: str, payload: Optional[Dict[str, Any]] = None, **fields: Any) -> Dict[str, Any]:
    if event_type not in EVENT_TYPES:
        raise ValueError(f"unknown admin event type: {event_type}")
    body = {**(payload or {}), **fields}
    body.pop("type", None)
    return AdminEvent(type=event_type, **body).model_dump(mode="json")


def notifications_room(user_id) -> str:
    return f"notifications_{user_id}"
