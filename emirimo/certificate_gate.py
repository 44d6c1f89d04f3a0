"""Ownership-checked certificate download with regeneration on a storage miss."""
import logging
from typing import Callable

from pymongo.errors import PyMongoError

from .certificates import CertificateData, generate_certificate
from .completion import display_name, find_completion
from .courses import lookup_course
from .db import as_object_id
from .errors import ForbiddenError, NotFoundError, StorageError
from .storage import ArtifactStore

ACCESS_DENIED = "Certificate not found or access denied"


class CertificateGate:
    def __init__(self, db, store: ArtifactStore,
                 render: Callable[[CertificateData], bytes] = generate_certificate):
        self.db = db
        self.store = store
        self.render = render

    def download(self, user_id: str, certificate_id: str) -> bytes:
        oid = as_object_id(user_id)
        user = self.db["users"].find_one({"_id": oid}) if oid else None
        rec = find_completion(user, certificate_id=certificate_id)
        if not rec:
            # Same answer for "not yours" and "does not exist".
            raise ForbiddenError(ACCESS_DENIED)
        try:
            return self.store.retrieve(certificate_id, str(oid), rec.get("certificate_url"))
        except NotFoundError:
            logging.warning(f"CERT artifact missing cert={certificate_id} user={oid}; regenerating")
        return self._regenerate(user, rec)

    def _regenerate(self, user: dict, rec: dict) -> bytes:
        certificate_id = rec["certificate_id"]
        course = None
        try:
            course = lookup_course(self.db, rec.get("course_id") or "")
        except PyMongoError as e:
            logging.warning(f"CERT course lookup failed course={rec.get('course_id')}: {e}")
        course = course or {}
        # The record snapshot wins; the live course only fills gaps.
        title = rec.get("course_title") or course.get("title")
        completed_at = rec.get("completed_at")
        if not title or completed_at is None:
            raise NotFoundError(f"no course data to regenerate certificate {certificate_id}")

        pdf = self.render(CertificateData(
            user_name=display_name(user),
            course_title=title,
            course_category=rec.get("course_category") or course.get("category"),
            completion_date=completed_at,
            certificate_id=certificate_id,
            skills=list(rec.get("skills_earned") or course.get("skills") or []),
            duration=course.get("duration"),
        ))
        try:
            url = self.store.store(certificate_id, str(user["_id"]), pdf)
        except StorageError as e:
            logging.error(f"CERT regenerated but not stored cert={certificate_id}: {e}")
            return pdf
        if url != rec.get("certificate_url") and self.store.is_primary_url(url):
            try:
                self.db["users"].update_one(
                    {"_id": user["_id"], "completed_courses.certificate_id": certificate_id},
                    {"$set": {"completed_courses.$.certificate_url": url}},
                )
            except PyMongoError as e:
                logging.warning(f"CERT url refresh failed cert={certificate_id}: {e}")
        return pdf
