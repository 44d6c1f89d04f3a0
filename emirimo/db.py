"""Database helper (Mongo only).

Requires a MongoDB reachable via MONGO_URI (e.g., mongodb://localhost:27017).
"""
from functools import lru_cache
from typing import Optional

from bson import ObjectId
from pymongo import ASCENDING, MongoClient

from . import config


@lru_cache(maxsize=1)
def get_db():
    client = MongoClient(config.MONGO_URI, serverSelectionTimeoutMS=800)
    client.admin.command("ping")
    return client[config.DB_NAME]


def create_indexes(db) -> None:
    """Idempotent index bootstrap for the collections the API queries."""
    db["users"].create_index([("email", ASCENDING)], unique=True, name="uniq_email")
    db["users"].create_index([("role", ASCENDING), ("status", ASCENDING)], name="by_role_status")
    db["users"].create_index([("completed_courses.certificate_id", ASCENDING)], name="by_certificate")
    db["learning_resources"].create_index(
        [("skills", ASCENDING), ("category", ASCENDING), ("is_active", ASCENDING)], name="by_skill_category"
    )
    db["youtube_courses"].create_index([("video_id", ASCENDING)], unique=True, name="uniq_video")
    db["jobs"].create_index([("employer_id", ASCENDING), ("external_job_id", ASCENDING)], name="by_employer_ext")
    db["notifications"].create_index([("created_at", -1)], name="by_created")
    db["notifications"].create_index([("user_id", ASCENDING), ("read_status", ASCENDING)], name="by_user_read")
    db["admin_audit"].create_index([("timestamp", -1)], name="by_ts")


def as_object_id(value) -> Optional[ObjectId]:
    try:
        return ObjectId(str(value))
    except Exception:
        return None
