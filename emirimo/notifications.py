"""Per-user notifications.

Each notification belongs to one user (``user_id``) and carries a
``read_status`` flag. Every read and write here is scoped by owner, so one user
can never see or touch another user's notifications. Delivery to a connected
user goes through ``Broadcaster.send_to_user``; the stored document is the
durable copy the user can always list later.
"""
import logging
import time
from typing import Optional

from bson import ObjectId
from pymongo.errors import PyMongoError

from .db import as_object_id

NOTIFICATION_TYPES = {
    "job_application",
    "application_status_change",
    "job_recommendation",
    "course_recommendation",
    "interview_scheduled",
    "offer_received",
    "job_posted",
    "system",
}
CATEGORIES = {"job", "application", "message", "system", "marketing", "security"}
PRIORITIES = {"low", "medium", "high"}


def category_for(notification_type: str) -> str:
    if "job" in notification_type:
        return "job"
    if "application" in notification_type:
        return "application"
    if "message" in notification_type:
        return "message"
    if notification_type in {"system", "security"}:
        return notification_type
    return "system"


def notification_view(doc: dict) -> dict:
    out = {k: doc.get(k) for k in [
        "title", "message", "type", "category", "priority", "data", "action_url",
        "read_status", "created_at", "updated_at",
    ]}
    out["id"] = str(doc.get("_id"))
    out["user_id"] = str(doc.get("user_id")) if doc.get("user_id") is not None else None
    return out


def build_notification(
    user_id,
    message: str,
    notification_type: str = "system",
    title: Optional[str] = None,
    priority: str = "medium",
    data: Optional[dict] = None,
    action_url: Optional[str] = None,
    category: Optional[str] = None,
) -> dict:
    now = time.time()
    return {
        "user_id": user_id if isinstance(user_id, ObjectId) else as_object_id(user_id),
        "title": (title or "Notification")[:200],
        "message": message[:4000],
        "type": notification_type,
        "category": category or category_for(notification_type),
        "priority": priority,
        "data": data or {},
        "action_url": action_url,
        "read_status": False,
        "created_at": now,
        "updated_at": now,
    }


def create_notification(db, user_id, message: str, notification_type: str = "system", **fields) -> Optional[dict]:
    """Store a notification for ``user_id``. Returns its view, or None when the write failed.

    Callers use this as a side effect of another action, so a failure is
    logged and never raised.
    """
    doc = build_notification(user_id, message, notification_type, **fields)
    if doc["user_id"] is None:
        logging.warning(f"NOTIFY skipped: invalid user id={user_id}")
        return None
    try:
        ins = db["notifications"].insert_one(doc)
    except PyMongoError as e:
        logging.warning(f"NOTIFY write failed user={user_id} type={notification_type}: {e}")
        return None
    doc["_id"] = ins.inserted_id
    logging.info(f"NOTIFY created user={user_id} type={notification_type} id={ins.inserted_id}")
    return notification_view(doc)


def list_for_user(db, user_oid, read_status: Optional[bool] = None, limit: int = 20, offset: int = 0) -> dict:
    q = {"user_id": user_oid}
    if read_status is not None:
        q["read_status"] = read_status
    cur = db["notifications"].find(q).sort("created_at", -1).skip(offset).limit(limit)
    unread = db["notifications"].count_documents({"user_id": user_oid, "read_status": False})
    return {"notifications": [notification_view(d) for d in cur], "unreadCount": unread}


def mark_read(db, user_oid, notification_oid) -> Optional[dict]:
    res = db["notifications"].update_one(
        {"_id": notification_oid, "user_id": user_oid},
        {"$set": {"read_status": True, "updated_at": time.time()}},
    )
    if not res.matched_count:
        return None
    return notification_view(db["notifications"].find_one({"_id": notification_oid}))


def mark_all_read(db, user_oid) -> int:
    res = db["notifications"].update_many(
        {"user_id": user_oid, "read_status": False},
        {"$set": {"read_status": True, "updated_at": time.time()}},
    )
    return res.modified_count


def delete_for_user(db, user_oid, notification_oid) -> bool:
    return db["notifications"].delete_one({"_id": notification_oid, "user_id": user_oid}).deleted_count == 1
