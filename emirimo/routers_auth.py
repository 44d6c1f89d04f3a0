import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError

from .auth import get_current_user, hash_password, jwt_encode, verify_password
from .deps import get_database

router = APIRouter(prefix="/auth", tags=["auth"])

SELF_SERVICE_ROLES = {"seeker", "employer"}


def public_user(u: dict) -> dict:
    return {
        "id": str(u.get("_id")),
        "email": u.get("email"),
        "name": u.get("name"),
        "role": u.get("role") or "seeker",
        "status": u.get("status") or "active",
        "bio": u.get("bio") or "",
        "skills": u.get("skills") or [],
    }


def issue_token(u: dict) -> str:
    return jwt_encode({"sub": str(u.get("_id")), "role": u.get("role") or "seeker"})


class RegisterReq(BaseModel):
    name: str
    email: str
    password: str
    role: str = "seeker"


@router.post("/register")
def register(req: RegisterReq, db=Depends(get_database)):
    role = (req.role or "seeker").lower()
    if role not in SELF_SERVICE_ROLES:
        raise HTTPException(status_code=400, detail="invalid_role")
    email = req.email.lower().strip()
    if not email or "@" not in email:
        raise HTTPException(status_code=400, detail="invalid_email")
    if len(req.password or "") < 6:
        raise HTTPException(status_code=400, detail="password_too_short")
    if db["users"].find_one({"email": email}):
        raise HTTPException(status_code=409, detail="email_exists")
    now = int(time.time())
    rec = {
        "email": email,
        "password_hash": hash_password(req.password),
        "name": req.name.strip() or email,
        "role": role,
        "status": "active",
        "bio": "",
        "skills": [],
        "completed_courses": [],
        "created_at": now,
        "updated_at": now,
    }
    try:
        ins = db["users"].insert_one(rec)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="email_exists")
    rec["_id"] = ins.inserted_id
    return {"user_id": str(ins.inserted_id), "token": issue_token(rec)}


class LoginReq(BaseModel):
    email: str
    password: str


@router.post("/login")
def login(req: LoginReq, db=Depends(get_database)):
    user = db["users"].find_one({"email": req.email.lower().strip()})
    if not user:
        raise HTTPException(status_code=401, detail="invalid_credentials")
    if not verify_password(req.password, user.get("password_hash") or ""):
        raise HTTPException(status_code=401, detail="invalid_credentials")
    if user.get("status") == "suspended":
        raise HTTPException(status_code=403, detail="account_suspended")
    return {"token": issue_token(user), "user_id": str(user["_id"]), "role": user.get("role") or "seeker"}


@router.get("/me")
def me(user: Optional[dict] = Depends(get_current_user)):
    return {"user": public_user(user)}
