"""Course data source.

Courses come from two places: the local ``learning_resources`` collection
(ObjectId keyed) and the cached external catalog in ``youtube_courses``
(keyed by the provider's video id). Nothing here performs network calls; the
external cache is filled by the catalog importer.
"""
import logging
from typing import Optional

from .db import as_object_id

PLACEHOLDER_CATEGORY = "technical"


def _course_view(doc: dict, course_id: str, source: str) -> dict:
    return {
        "course_id": course_id,
        "title": (doc.get("title") or "").strip(),
        "category": doc.get("category") or PLACEHOLDER_CATEGORY,
        "skills": [s for s in (doc.get("skills") or []) if isinstance(s, str) and s.strip()],
        "duration": doc.get("duration"),
        "source": source,
    }


def find_course_by_id(db, course_id: str) -> Optional[dict]:
    oid = as_object_id(course_id)
    if oid is None:
        return None
    doc = db["learning_resources"].find_one({"_id": oid})
    return _course_view(doc, str(oid), "local") if doc else None


def find_course_by_external_id(db, external_id: str) -> Optional[dict]:
    doc = db["youtube_courses"].find_one({"$or": [{"video_id": external_id}, {"external_id": external_id}]})
    return _course_view(doc, external_id, "youtube") if doc else None


def lookup_course(db, course_ref: str) -> Optional[dict]:
    """Local catalog first, then the external cache. ``None`` when neither knows it."""
    course = find_course_by_id(db, course_ref)
    if course:
        return course
    try:
        return find_course_by_external_id(db, course_ref)
    except Exception as e:
        logging.warning(f"COURSE external lookup failed ref={course_ref}: {e}")
        return None


def resolve_course(db, course_ref: str) -> dict:
    """Like ``lookup_course`` but never fails: unknown refs get a placeholder.

    Completion is allowed to succeed for resources we cannot resolve, so the
    placeholder carries just enough to render a certificate.
    """
    course = lookup_course(db, course_ref)
    if course:
        if not course["title"]:
            course["title"] = "Course"
        return course
    logging.info(f"COURSE placeholder ref={course_ref}")
    return {
        "course_id": course_ref,
        "title": f"Resource {course_ref}",
        "category": PLACEHOLDER_CATEGORY,
        "skills": [],
        "duration": None,
        "source": "placeholder",
    }
