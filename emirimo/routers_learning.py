"""Learning catalog, course completion and certificate download.

POST /learning/{id}/complete                        -> record completion, issue certificate
GET  /learning/completed                            -> caller's completion records
GET  /learning/certificates/{certificate_id}/download -> PDF (owner only)
"""
import logging
import re
import time
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from realtime.events import COURSE_COMPLETED, make_event

from .auth import get_current_user, require_admin
from .certificate_gate import ACCESS_DENIED
from .completion import list_completions
from .db import as_object_id
from .deps import get_broadcaster, get_certificate_gate, get_completion_recorder, get_database
from .errors import ForbiddenError, NotFoundError

router = APIRouter(prefix="/learning", tags=["learning"])

RESOURCE_TYPES = {"article", "video", "course", "tutorial", "guide"}
DIFFICULTIES = {"beginner", "intermediate", "advanced"}

COMPLETE_FAILED = "Failed to mark course as complete"
DOWNLOAD_FAILED = "Failed to download certificate"


def _resource_view(doc: dict, source: str = "local") -> dict:
    out = {k: doc.get(k) for k in [
        "title", "description", "type", "category", "skills", "difficulty", "duration",
        "language", "content_url", "video_url", "video_id", "thumbnail_url", "author",
        "source", "tags", "is_featured",
    ]}
    out["id"] = str(doc.get("_id")) if source == "local" else (doc.get("video_id") or doc.get("external_id"))
    out["origin"] = source
    return out


def _completion_view(rec: dict) -> dict:
    out = dict(rec)
    completed_at = out.get("completed_at")
    if hasattr(completed_at, "isoformat"):
        out["completed_at"] = completed_at.isoformat()
    return out


class ResourceIn(BaseModel):
    title: str
    description: str
    type: str = "course"
    category: str = "technical"
    skills: List[str] = Field(default_factory=list)
    difficulty: str = "beginner"
    duration: Optional[int] = None
    language: str = "en"
    content_url: Optional[str] = None
    video_url: Optional[str] = None
    video_id: Optional[str] = None
    thumbnail_url: Optional[str] = None
    author: Optional[str] = None
    source: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    is_featured: bool = False


class ResourcePatch(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    category: Optional[str] = None
    skills: Optional[List[str]] = None
    difficulty: Optional[str] = None
    duration: Optional[int] = None
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None
    tags: Optional[List[str]] = None


def _validate_resource_fields(fields: dict) -> None:
    if "type" in fields and fields["type"] not in RESOURCE_TYPES:
        raise HTTPException(status_code=400, detail="invalid_type")
    if "difficulty" in fields and fields["difficulty"] not in DIFFICULTIES:
        raise HTTPException(status_code=400, detail="invalid_difficulty")
    if "skills" in fields:
        fields["skills"] = list(dict.fromkeys(s.strip() for s in fields["skills"] if s and s.strip()))


def _catalog_query(category, type_, skill, q) -> dict:
    query = {"is_active": {"$ne": False}}
    if category:
        query["category"] = category
    if type_:
        query["type"] = type_
    if skill:
        query["skills"] = skill
    if q:
        query["title"] = {"$regex": re.escape(q), "$options": "i"}
    return query


@router.get("")
def list_resources(
    category: Optional[str] = None,
    type: Optional[str] = None,
    skill: Optional[str] = None,
    q: Optional[str] = Query(None, min_length=1, max_length=200),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db=Depends(get_database),
):
    query = _catalog_query(category, type, skill, q)
    total = db["learning_resources"].count_documents(query)
    cur = db["learning_resources"].find(query).sort("created_at", -1).skip(skip).limit(limit)
    return {"success": True, "resources": [_resource_view(d) for d in cur], "total": total, "skip": skip, "limit": limit}


@router.get("/with-youtube")
def list_resources_with_youtube(
    category: Optional[str] = None,
    skill: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    db=Depends(get_database),
):
    query = _catalog_query(category, None, skill, None)
    local = [_resource_view(d) for d in db["learning_resources"].find(query).limit(limit)]
    cached = [_resource_view(d, "youtube") for d in db["youtube_courses"].find(query).limit(limit)]
    return {"success": True, "resources": local + cached, "local": len(local), "youtube": len(cached)}


@router.get("/completed")
def completed_courses(user: dict = Depends(get_current_user), db=Depends(get_database)):
    try:
        records = list_completions(db, str(user["_id"]))
    except NotFoundError:
        raise HTTPException(status_code=404, detail="User not found")
    return {"success": True, "completedCourses": [_completion_view(r) for r in records]}


@router.get("/certificates/{certificate_id}/download")
def download_certificate(certificate_id: str, user: dict = Depends(get_current_user), gate=Depends(get_certificate_gate)):
    try:
        pdf = gate.download(str(user["_id"]), certificate_id)
    except ForbiddenError:
        raise HTTPException(status_code=403, detail=ACCESS_DENIED)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Certificate could not be regenerated")
    except Exception:
        logging.exception(f"CERT download failed cert={certificate_id} user={user.get('_id')}")
        raise HTTPException(status_code=500, detail=DOWNLOAD_FAILED)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="Certificate-{certificate_id}.pdf"'},
    )


@router.get("/{resource_id}")
def get_resource(resource_id: str, db=Depends(get_database)):
    oid = as_object_id(resource_id)
    doc = db["learning_resources"].find_one({"_id": oid}) if oid else None
    if not doc:
        doc = db["youtube_courses"].find_one({"video_id": resource_id})
        if not doc:
            raise HTTPException(status_code=404, detail="Learning resource not found")
        return {"success": True, "resource": _resource_view(doc, "youtube")}
    return {"success": True, "resource": _resource_view(doc)}


@router.post("/{resource_id}/complete")
async def complete_course(
    resource_id: str,
    user: dict = Depends(get_current_user),
    recorder=Depends(get_completion_recorder),
    broadcaster=Depends(get_broadcaster),
):
    try:
        result = await run_in_threadpool(recorder.record_completion, str(user["_id"]), resource_id)
    except ForbiddenError:
        raise HTTPException(status_code=403, detail="Only job seekers can complete courses")
    except NotFoundError:
        raise HTTPException(status_code=404, detail="User not found")
    except Exception:
        logging.exception(f"COMPLETION failed user={user.get('_id')} course={resource_id}")
        raise HTTPException(status_code=500, detail=COMPLETE_FAILED)

    if not result.already_completed:
        await broadcaster.broadcast(make_event(
            COURSE_COMPLETED,
            userId=str(user["_id"]),
            courseId=result.course_id,
            courseTitle=result.course_title,
            certificateId=result.certificate_id,
        ))
    return {"success": True, **result.model_dump()}


@router.post("")
def create_resource(body: ResourceIn, admin: dict = Depends(require_admin), db=Depends(get_database)):
    rec = body.model_dump()
    _validate_resource_fields(rec)
    now = int(time.time())
    rec.update({"is_active": True, "views": 0, "created_at": now, "updated_at": now, "created_by": str(admin["_id"])})
    ins = db["learning_resources"].insert_one(rec)
    return {"success": True, "id": str(ins.inserted_id)}


@router.put("/{resource_id}")
def update_resource(resource_id: str, body: ResourcePatch, admin: dict = Depends(require_admin), db=Depends(get_database)):
    oid = as_object_id(resource_id)
    if oid is None:
        raise HTTPException(status_code=400, detail="invalid_id")
    changes = body.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="nothing_to_update")
    _validate_resource_fields(changes)
    changes["updated_at"] = int(time.time())
    res = db["learning_resources"].update_one({"_id": oid}, {"$set": changes})
    if not res.matched_count:
        raise HTTPException(status_code=404, detail="Learning resource not found")
    return {"success": True, "resource": _resource_view(db["learning_resources"].find_one({"_id": oid}))}


@router.delete("/{resource_id}")
def delete_resource(resource_id: str, admin: dict = Depends(require_admin), db=Depends(get_database)):
    oid = as_object_id(resource_id)
    if oid is None:
        raise HTTPException(status_code=400, detail="invalid_id")
    # Completion records keep their own snapshot, so hard delete is safe.
    res = db["learning_resources"].delete_one({"_id": oid})
    if not res.deleted_count:
        raise HTTPException(status_code=404, detail="Learning resource not found")
    return {"success": True}
