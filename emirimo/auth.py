"""Password hashing, JWT encode/decode and FastAPI identity dependencies.

Tokens are compact HS256 JWTs carrying ``sub`` (user id) and ``role``. The same
tokens authenticate Socket.IO connections to the admin dashboard room.
"""
import base64, hashlib, hmac, json, time
from typing import Optional

from fastapi import Depends, Header, HTTPException

from . import config
from .db import as_object_id
from .deps import get_database


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def _b64url_decode(s: str) -> bytes:
    pad = 4 - (len(s) % 4)
    if pad and pad < 4:
        s = s + ("=" * pad)
    return base64.urlsafe_b64decode(s)


def hash_password(pw: str) -> str:
    return hashlib.sha256((config.PW_SALT + ":" + pw).encode()).hexdigest()


def verify_password(pw: str, hashed: str) -> bool:
    return hmac.compare_digest(hash_password(pw), hashed)


def jwt_encode(payload: dict, ttl: Optional[int] = None) -> str:
    header = {"alg": "HS256", "typ": "JWT"}
    now = int(time.time())
    body = {**payload, "iat": now, "exp": now + (ttl if ttl is not None else config.JWT_TTL)}
    h = _b64url(json.dumps(header, separators=(",", ":")).encode())
    b = _b64url(json.dumps(body, ensure_ascii=False, separators=(",", ":")).encode())
    signing = f"{h}.{b}".encode()
    sig = hmac.new(config.JWT_SECRET.encode(), signing, hashlib.sha256).digest()
    return f"{h}.{b}.{_b64url(sig)}"


def jwt_decode(token: str) -> dict:
    try:
        h, b, s = token.split(".")
        signing = f"{h}.{b}".encode()
        exp_sig = _b64url_decode(s)
        got_sig = hmac.new(config.JWT_SECRET.encode(), signing, hashlib.sha256).digest()
        if not hmac.compare_digest(exp_sig, got_sig):
            raise HTTPException(status_code=401, detail="invalid_token")
        body = json.loads(_b64url_decode(b))
        if int(body.get("exp", 0)) < int(time.time()):
            raise HTTPException(status_code=401, detail="token_expired")
        return body
    except HTTPException:
        raise
    except Exception:
        raise HTTPException(status_code=401, detail="invalid_token_format")


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization.split(" ", 1)[1].strip() or None
    return None


def get_current_user(
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
    db=Depends(get_database),
) -> dict:
    tok = bearer_token(authorization)
    if not tok:
        raise HTTPException(status_code=401, detail="missing_token")
    body = jwt_decode(tok)
    oid = as_object_id(body.get("sub"))
    if oid is None:
        raise HTTPException(status_code=401, detail="invalid_token_payload")
    user = db["users"].find_one({"_id": oid})
    if not user:
        raise HTTPException(status_code=401, detail="unknown_user")
    if user.get("status") == "suspended":
        raise HTTPException(status_code=403, detail="account_suspended")
    return user


def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="forbidden")
    return user


def require_employer(user: dict = Depends(get_current_user)) -> dict:
    if user.get("role") not in {"employer", "admin"}:
        raise HTTPException(status_code=403, detail="forbidden")
    return user
