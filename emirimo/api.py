"""FastAPI service for the eMirimo learning and hiring platform.

Core endpoints:
GET  /health, /live -> liveness (process up)
GET  /ready         -> readiness (Mongo ping)
/auth, /users, /jobs, /learning, /notifications, /admin routers

``asgi_app`` wraps the FastAPI app with the Socket.IO admin dashboard channel;
serve that object, not ``app``, to get real-time updates.
"""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from realtime.server import AdminSocketServer

from . import config
from .db import create_indexes, get_db
from .deps import get_database
from .routers_admin import router as admin_router
from .routers_auth import router as auth_router
from .routers_jobs import router as jobs_router
from .routers_learning import router as learning_router
from .routers_notifications import admin_router as admin_notifications_router
from .routers_notifications import router as notifications_router
from .routers_users import router as users_router
from .storage import build_artifact_store

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(levelname)s - %(message)s',
    datefmt='%H:%M:%S'
)

_RATE_BUCKET: dict[str, list[int]] = {}
_RATE_RESET: int = 60  # window seconds
_LAST_SWEEP: int = 0


def _sweep_rate_buckets(now: int) -> None:
    """Drop IPs with no hits inside the current window."""
    global _LAST_SWEEP
    if now - _LAST_SWEEP < _RATE_RESET:
        return
    _LAST_SWEEP = now
    cutoff = now - _RATE_RESET
    for ip in [ip for ip, hits in _RATE_BUCKET.items() if not hits or hits[-1] < cutoff]:
        del _RATE_BUCKET[ip]


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover
    # Set SKIP_BOOTSTRAP=1 to start without touching Mongo (tests, offline dev).
    if not config.skip_bootstrap():
        try:
            create_indexes(get_db())
        except Exception as e:
            logging.warning(f"BOOTSTRAP index creation failed: {e}")
    yield


app = FastAPI(title="eMirimo API", version="0.3.0", lifespan=lifespan)

app.state.artifact_store = build_artifact_store()
realtime_server = AdminSocketServer()
app.state.broadcaster = realtime_server.broadcaster


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-XSS-Protection"] = "1; mode=block"
    response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
    return response


@app.middleware("http")
async def rate_limit(request: Request, call_next):
    ip = request.client.host if request.client else "anon"
    now = int(time.time())
    _sweep_rate_buckets(now)
    bucket = _RATE_BUCKET.setdefault(ip, [])
    cutoff = now - _RATE_RESET
    while bucket and bucket[0] < cutoff:
        bucket.pop(0)
    limit = config.RATE_LIMIT_PER_MIN
    if len(bucket) >= limit:
        reset_in = _RATE_RESET - (now - bucket[0]) if bucket else _RATE_RESET
        headers = {
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(reset_in),
        }
        return JSONResponse(status_code=429, content={"detail": "rate limit exceeded"}, headers=headers)
    bucket.append(now)
    response = await call_next(request)
    remaining = max(limit - len(bucket), 0)
    reset_in = _RATE_RESET - (now - bucket[0]) if bucket else _RATE_RESET
    response.headers["X-RateLimit-Limit"] = str(limit)
    response.headers["X-RateLimit-Remaining"] = str(remaining)
    response.headers["X-RateLimit-Reset"] = str(reset_in)
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if config.ALLOWED_ORIGINS == ["*"] else config.ALLOWED_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=300,
)

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(jobs_router)
app.include_router(learning_router)
app.include_router(notifications_router)
app.include_router(admin_notifications_router)
app.include_router(admin_router)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/live")
def live():
    """Liveness check (no external deps)."""
    return {"status": "alive"}


@app.get("/ready")
def ready(db=Depends(get_database)):
    try:
        db.command("ping")
    except Exception as e:
        raise HTTPException(status_code=503, detail=f"db_not_ready: {e}")
    return {"status": "ready"}


asgi_app = realtime_server.asgi_app(app)
