import time
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from realtime.events import PROFILE_UPDATE, make_event

from .auth import get_current_user
from .deps import get_broadcaster, get_database
from .routers_auth import public_user

router = APIRouter(prefix="/users", tags=["users"])

SKILL_LEVELS = {"beginner", "intermediate", "advanced", "expert"}


class SkillIn(BaseModel):
    name: str
    level: str = "intermediate"


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    bio: Optional[str] = None
    skills: Optional[List[SkillIn]] = None


@router.get("/me/profile")
def get_profile(user: dict = Depends(get_current_user)):
    return {"success": True, "profile": public_user(user)}


def _apply_profile(db, user: dict, body: ProfileUpdate) -> tuple:
    changes = {}
    if body.name is not None:
        name = body.name.strip()
        if not name:
            raise HTTPException(status_code=400, detail="empty_name")
        changes["name"] = name
    if body.bio is not None:
        changes["bio"] = body.bio.strip()[:2000]
    if body.skills is not None:
        skills, seen = [], set()
        for s in body.skills:
            name = s.name.strip()
            if not name or name in seen:
                continue
            level = s.level if s.level in SKILL_LEVELS else "intermediate"
            seen.add(name)
            skills.append({"name": name, "level": level})
        changes["skills"] = skills
    if not changes:
        raise HTTPException(status_code=400, detail="nothing_to_update")
    changes["updated_at"] = int(time.time())
    db["users"].update_one({"_id": user["_id"]}, {"$set": changes})
    return db["users"].find_one({"_id": user["_id"]}), sorted(k for k in changes if k != "updated_at")


@router.put("/me/profile")
async def update_profile(
    body: ProfileUpdate,
    user: dict = Depends(get_current_user),
    db=Depends(get_database),
    broadcaster=Depends(get_broadcaster),
):
    updated, fields = await run_in_threadpool(_apply_profile, db, user, body)
    await broadcaster.broadcast(make_event(
        PROFILE_UPDATE,
        userId=str(user["_id"]),
        role=updated.get("role"),
        fields=fields,
    ))
    return {"success": True, "profile": public_user(updated)}
