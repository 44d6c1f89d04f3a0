"""Admin action audit trail."""
import logging
import time
from typing import Optional

from fastapi import Request


def audit_log(
    db,
    admin_id: str,
    action: str,
    resource: str,
    resource_id: str,
    request: Optional[Request] = None,
    success: bool = True,
    details: Optional[dict] = None,
):
    """Record an admin mutation. Failures are logged and swallowed."""
    try:
        db["admin_audit"].insert_one({
            "admin_id": str(admin_id),
            "action": action,
            "resource": resource,
            "resource_id": str(resource_id),
            "timestamp": time.time(),
            "iso_timestamp": time.strftime("%Y-%m-%d %H:%M:%S UTC", time.gmtime()),
            "ip": request.client.host if request is not None and request.client else None,
            "user_agent": request.headers.get("user-agent") if request is not None else None,
            "success": success,
            "details": details or {},
        })
    except Exception as e:
        # Never let audit logging break the main flow
        logging.warning(f"AUDIT write failed action={action} resource={resource} id={resource_id}: {e}")


def get_audit_events(db, hours: int = 24, limit: int = 100, action: Optional[str] = None):
    """Recent admin actions, newest first."""
    q = {"timestamp": {"$gte": time.time() - (hours * 3600)}}
    if action:
        q["action"] = action
    events = list(db["admin_audit"].find(q).sort([("timestamp", -1)]).limit(limit))
    for event in events:
        event["_id"] = str(event["_id"])
    return events
