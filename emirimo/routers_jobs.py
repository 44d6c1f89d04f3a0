import re
import time
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from .auth import require_employer
from .db import as_object_id
from .deps import get_database

router = APIRouter(prefix="/jobs", tags=["jobs"])

JOB_STATUSES = {"active", "paused", "closed", "rejected"}
JOB_TYPES = {"full-time", "part-time", "contract", "internship", "freelance"}


class JobCreate(BaseModel):
    title: str
    description: Optional[str] = None
    external_job_id: Optional[str] = None
    location: Optional[str] = None
    job_type: str = "full-time"
    must_have: Optional[List[str]] = None
    nice_to_have: Optional[List[str]] = None
    remote: Optional[bool] = None


def job_view(doc: dict) -> dict:
    out = {k: doc.get(k) for k in [
        "title", "description", "external_job_id", "location", "job_type", "requirements",
        "skill_set", "remote", "status", "employer_id", "created_at", "updated_at",
    ]}
    out["job_id"] = str(doc.get("_id"))
    return out


@router.post("")
def create_job(req: JobCreate, employer: dict = Depends(require_employer), db=Depends(get_database)):
    title = (req.title or "").strip()
    if not title:
        raise HTTPException(status_code=400, detail="missing_title")
    if req.job_type not in JOB_TYPES:
        raise HTTPException(status_code=400, detail="invalid_job_type")
    employer_id = str(employer["_id"])
    now = int(time.time())
    must = [s.strip() for s in (req.must_have or []) if s and s.strip()]
    nice = [s.strip() for s in (req.nice_to_have or []) if s and s.strip()]
    merged = []
    seen = set()
    for s in must + nice:
        if s not in seen:
            seen.add(s); merged.append(s)
    rec = {
        "employer_id": employer_id,
        "external_job_id": req.external_job_id,
        "title": title,
        "description": req.description or "",
        "location": req.location,
        "job_type": req.job_type,
        "requirements": {
            "must_have_skills": [{"name": s} for s in must],
            "nice_to_have_skills": [{"name": s} for s in nice],
        },
        "skill_set": merged,
        "remote": bool(req.remote) if req.remote is not None else None,
        "status": "active",
        "created_at": now,
        "updated_at": now,
    }
    # Uniqueness per employer on external_job_id
    if req.external_job_id:
        existing = db["jobs"].find_one({"employer_id": employer_id, "external_job_id": req.external_job_id})
        if existing:
            raise HTTPException(status_code=409, detail="external_job_id_exists")
    ins = db["jobs"].insert_one(rec)
    return {"job_id": str(ins.inserted_id)}


@router.get("")
def list_jobs(
    status: Optional[str] = "active",
    skill: Optional[str] = None,
    q: Optional[str] = Query(None, min_length=1, max_length=200),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db=Depends(get_database),
):
    query = {}
    if status:
        if status not in JOB_STATUSES:
            raise HTTPException(status_code=400, detail="invalid_status")
        query["status"] = status
    if skill:
        query["skill_set"] = skill
    if q:
        query["title"] = {"$regex": re.escape(q), "$options": "i"}
    total = db["jobs"].count_documents(query)
    cur = db["jobs"].find(query).sort("created_at", -1).skip(skip).limit(limit)
    return {"jobs": [job_view(d) for d in cur], "total": total, "skip": skip, "limit": limit}


@router.get("/{job_id}")
def get_job(job_id: str, db=Depends(get_database)):
    oid = as_object_id(job_id)
    if oid is None:
        raise HTTPException(status_code=400, detail="invalid_id")
    doc = db["jobs"].find_one({"_id": oid})
    if not doc:
        raise HTTPException(status_code=404, detail="not_found")
    return job_view(doc)
