"""Admin moderation and the dashboard snapshot.

Every mutation here is audited and published to the admin dashboard room.
Status changes also leave a notification for the affected user (or the job's
employer). ``GET /admin/dashboard`` is also what disconnected dashboards poll.
"""
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from realtime.events import JOB_STATUS_CHANGE, USER_DELETED, USER_STATUS_CHANGE, make_event

from .audit import audit_log, get_audit_events
from .auth import require_admin
from .db import as_object_id
from .deps import get_broadcaster, get_database
from .notifications import create_notification
from .routers_jobs import JOB_STATUSES

router = APIRouter(prefix="/admin", tags=["admin"])

USER_STATUSES = {"active", "suspended"}
ROLES = ("seeker", "employer", "admin")


class StatusReq(BaseModel):
    status: str
    reason: Optional[str] = None


def _oid_or_400(value: str):
    oid = as_object_id(value)
    if oid is None:
        raise HTTPException(status_code=400, detail="invalid_id")
    return oid


def _with_reason(message: str, reason: Optional[str]) -> str:
    reason = (reason or "").strip()
    return f"{message} Reason: {reason}" if reason else message


@router.get("/dashboard")
def dashboard(admin: dict = Depends(require_admin), db=Depends(get_database)):
    users = db["users"]
    completions = 0
    for u in users.find({"role": "seeker"}, {"completed_courses": 1}):
        completions += len(u.get("completed_courses") or [])
    return {
        "success": True,
        "users": {
            "total": users.count_documents({}),
            "by_role": {r: users.count_documents({"role": r}) for r in ROLES},
            "suspended": users.count_documents({"status": "suspended"}),
        },
        "jobs": {
            "total": db["jobs"].count_documents({}),
            "by_status": {s: db["jobs"].count_documents({"status": s}) for s in sorted(JOB_STATUSES)},
        },
        "completions": completions,
        "notifications": db["notifications"].count_documents({}),
        "generated_at": time.time(),
    }


def _set_user_status(db, admin: dict, user_id: str, body: StatusReq, request: Request) -> Optional[dict]:
    if body.status not in USER_STATUSES:
        raise HTTPException(status_code=400, detail="invalid_status")
    oid = _oid_or_400(user_id)
    if oid == admin["_id"]:
        raise HTTPException(status_code=400, detail="cannot_change_own_status")
    res = db["users"].update_one({"_id": oid}, {"$set": {"status": body.status, "updated_at": int(time.time())}})
    if not res.matched_count:
        raise HTTPException(status_code=404, detail="User not found")
    audit_log(db, admin["_id"], "user_status_change", "user", user_id, request,
              details={"status": body.status, "reason": body.reason})
    return create_notification(
        db, oid, _with_reason("Your account status has been updated.", body.reason), "system",
        title="Account Status Updated", data={"status": body.status},
    )


@router.patch("/users/{user_id}/status")
async def set_user_status(
    user_id: str,
    body: StatusReq,
    request: Request,
    admin: dict = Depends(require_admin),
    db=Depends(get_database),
    broadcaster=Depends(get_broadcaster),
):
    notice = await run_in_threadpool(_set_user_status, db, admin, user_id, body, request)
    if notice:
        await broadcaster.send_to_user(user_id, notice)
    await broadcaster.broadcast(make_event(USER_STATUS_CHANGE, userId=user_id, status=body.status, reason=body.reason))
    return {"success": True, "userId": user_id, "status": body.status}


def _delete_user(db, admin: dict, user_id: str, request: Request) -> None:
    oid = _oid_or_400(user_id)
    if oid == admin["_id"]:
        raise HTTPException(status_code=400, detail="cannot_delete_self")
    res = db["users"].delete_one({"_id": oid})
    if not res.deleted_count:
        raise HTTPException(status_code=404, detail="User not found")
    db["notifications"].delete_many({"user_id": oid})
    audit_log(db, admin["_id"], "user_deleted", "user", user_id, request)


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    request: Request,
    admin: dict = Depends(require_admin),
    db=Depends(get_database),
    broadcaster=Depends(get_broadcaster),
):
    await run_in_threadpool(_delete_user, db, admin, user_id, request)
    await broadcaster.broadcast(make_event(USER_DELETED, userId=user_id))
    return {"success": True, "userId": user_id}


def _set_job_status(db, admin: dict, job_id: str, body: StatusReq, request: Request):
    if body.status not in JOB_STATUSES:
        raise HTTPException(status_code=400, detail="invalid_status")
    oid = _oid_or_400(job_id)
    job = db["jobs"].find_one_and_update(
        {"_id": oid}, {"$set": {"status": body.status, "updated_at": int(time.time())}}
    )
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    audit_log(db, admin["_id"], "job_status_change", "job", job_id, request,
              details={"status": body.status, "reason": body.reason})
    employer_id = job.get("employer_id")
    if not employer_id:
        return None, None
    notice = create_notification(
        db, employer_id,
        _with_reason(f'Your job "{job.get("title") or "posting"}" has been updated.', body.reason),
        "system", title="Job Status Updated", category="job",
        data={"job_id": job_id, "status": body.status},
    )
    return str(employer_id), notice


@router.patch("/jobs/{job_id}/status")
async def set_job_status(
    job_id: str,
    body: StatusReq,
    request: Request,
    admin: dict = Depends(require_admin),
    db=Depends(get_database),
    broadcaster=Depends(get_broadcaster),
):
    employer_id, notice = await run_in_threadpool(_set_job_status, db, admin, job_id, body, request)
    if notice:
        await broadcaster.send_to_user(employer_id, notice)
    await broadcaster.broadcast(make_event(JOB_STATUS_CHANGE, jobId=job_id, status=body.status, reason=body.reason))
    return {"success": True, "jobId": job_id, "status": body.status}


@router.get("/audit")
def audit_events(
    hours: int = Query(24, ge=1, le=24 * 90),
    limit: int = Query(100, ge=1, le=500),
    action: str | None = None,
    admin: dict = Depends(require_admin),
    db=Depends(get_database),
):
    events = get_audit_events(db, hours=hours, limit=limit, action=action)
    return {"success": True, "events": events, "count": len(events)}
