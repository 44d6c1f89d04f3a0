"""Notification routes.

/notifications        -> the caller's own notifications (list, mark read, read-all, delete)
/admin/notifications  -> admin management; every change is published to the dashboard room
                         and new notifications are pushed to the target user's room
"""
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from realtime.events import NEW_NOTIFICATION, NOTIFICATION_DELETE, NOTIFICATION_UPDATE, make_event

from .audit import audit_log
from .auth import get_current_user, require_admin
from .db import as_object_id
from .deps import get_broadcaster, get_database
from .notifications import (
    CATEGORIES,
    NOTIFICATION_TYPES,
    PRIORITIES,
    build_notification,
    delete_for_user,
    list_for_user,
    mark_all_read,
    mark_read,
    notification_view,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])
admin_router = APIRouter(prefix="/admin/notifications", tags=["admin"])


def _oid_or_400(value: str):
    oid = as_object_id(value)
    if oid is None:
        raise HTTPException(status_code=400, detail="invalid_object_id")
    return oid


@router.get("")
def my_notifications(
    read_status: Optional[bool] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: dict = Depends(get_current_user),
    db=Depends(get_database),
):
    return list_for_user(db, user["_id"], read_status=read_status, limit=limit, offset=offset)


# declared before /{id}/read so "read-all" is never taken for an id
@router.patch("/read-all")
def read_all(user: dict = Depends(get_current_user), db=Depends(get_database)):
    updated = mark_all_read(db, user["_id"])
    return {"message": "All notifications marked as read", "updated": updated}


@router.patch("/{notification_id}/read")
def read_one(notification_id: str, user: dict = Depends(get_current_user), db=Depends(get_database)):
    doc = mark_read(db, user["_id"], _oid_or_400(notification_id))
    if doc is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return doc


@router.delete("/{notification_id}")
def delete_mine(notification_id: str, user: dict = Depends(get_current_user), db=Depends(get_database)):
    if not delete_for_user(db, user["_id"], _oid_or_400(notification_id)):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"message": "Notification deleted successfully"}


class NotificationCreate(BaseModel):
    user_id: str
    title: str
    message: str
    type: str = "system"
    priority: str = "medium"
    category: Optional[str] = None
    action_url: Optional[str] = None
    data: Optional[dict] = None


class NotificationPatch(BaseModel):
    title: Optional[str] = None
    message: Optional[str] = None
    priority: Optional[str] = None
    read_status: Optional[bool] = None


@admin_router.get("")
def list_notifications(
    user_id: Optional[str] = None,
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
    admin: dict = Depends(require_admin),
    db=Depends(get_database),
):
    q = {}
    if user_id:
        q["user_id"] = _oid_or_400(user_id)
    if unread_only:
        q["read_status"] = False
    items = [notification_view(d) for d in db["notifications"].find(q).sort("created_at", -1).limit(limit)]
    return {"success": True, "notifications": items, "count": len(items)}


def _create(db, admin: dict, body: NotificationCreate, request: Request) -> dict:
    title = body.title.strip()
    message = body.message.strip()
    if not title or not message:
        raise HTTPException(status_code=400, detail="empty_notification")
    if body.priority not in PRIORITIES:
        raise HTTPException(status_code=400, detail="invalid_priority")
    if body.type not in NOTIFICATION_TYPES:
        raise HTTPException(status_code=400, detail="invalid_type")
    if body.category is not None and body.category not in CATEGORIES:
        raise HTTPException(status_code=400, detail="invalid_category")
    target = _oid_or_400(body.user_id)
    if not db["users"].find_one({"_id": target}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="User not found")
    doc = build_notification(
        target, message, body.type, title=title, priority=body.priority,
        data=body.data, action_url=body.action_url, category=body.category,
    )
    doc["created_by"] = str(admin["_id"])
    doc["_id"] = db["notifications"].insert_one(doc).inserted_id
    view = notification_view(doc)
    audit_log(db, admin["_id"], "notification_created", "notification", view["id"], request,
              details={"user_id": body.user_id})
    return view


@admin_router.post("")
async def create_notification(
    body: NotificationCreate,
    request: Request,
    admin: dict = Depends(require_admin),
    db=Depends(get_database),
    broadcaster=Depends(get_broadcaster),
):
    view = await run_in_threadpool(_create, db, admin, body, request)
    await broadcaster.send_to_user(view["user_id"], view)
    await broadcaster.broadcast(make_event(NEW_NOTIFICATION, notification=view))
    return {"success": True, "notification": view}


def _update(db, admin: dict, notification_id: str, updates: dict, request: Request) -> dict:
    oid = _oid_or_400(notification_id)
    if not updates:
        raise HTTPException(status_code=400, detail="nothing_to_update")
    if "priority" in updates and updates["priority"] not in PRIORITIES:
        raise HTTPException(status_code=400, detail="invalid_priority")
    res = db["notifications"].update_one({"_id": oid}, {"$set": {**updates, "updated_at": time.time()}})
    if not res.matched_count:
        raise HTTPException(status_code=404, detail="Notification not found")
    audit_log(db, admin["_id"], "notification_updated", "notification", notification_id, request, details=updates)
    return notification_view(db["notifications"].find_one({"_id": oid}))


@admin_router.patch("/{notification_id}")
async def update_notification(
    notification_id: str,
    body: NotificationPatch,
    request: Request,
    admin: dict = Depends(require_admin),
    db=Depends(get_database),
    broadcaster=Depends(get_broadcaster),
):
    updates = body.model_dump(exclude_none=True)
    view = await run_in_threadpool(_update, db, admin, notification_id, updates, request)
    await broadcaster.broadcast(make_event(NOTIFICATION_UPDATE, notificationId=notification_id, updates=updates))
    return {"success": True, "notification": view}


def _delete(db, admin: dict, notification_id: str, request: Request) -> None:
    res = db["notifications"].delete_one({"_id": _oid_or_400(notification_id)})
    if not res.deleted_count:
        raise HTTPException(status_code=404, detail="Notification not found")
    audit_log(db, admin["_id"], "notification_deleted", "notification", notification_id, request)


@admin_router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    request: Request,
    admin: dict = Depends(require_admin),
    db=Depends(get_database),
    broadcaster=Depends(get_broadcaster),
):
    await run_in_threadpool(_delete, db, admin, notification_id, request)
    await broadcaster.broadcast(make_event(NOTIFICATION_DELETE, notificationId=notification_id))
    return {"success": True}
