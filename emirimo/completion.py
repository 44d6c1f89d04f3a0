"""Course completion recording.

A completion is stored as an element of ``users.completed_courses`` and is the
source of truth for the certificate; the PDF artifact is only a cache of its
rendering. Recording order for a new completion:

    resolve course -> check existing -> render -> store artifact -> append record

The append is a single conditional update (push only if no element carries
the same course_id), so concurrent duplicates of one (user, course) pair can
never produce two records. Certificate ids are derived from the pair, so the
losing request rendered and stored the same artifact under the same id.
"""
import hashlib
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from pydantic import BaseModel, Field
from pymongo.errors import PyMongoError

from . import config
from .certificates import CertificateData, generate_certificate
from .courses import resolve_course
from .db import as_object_id
from .errors import ForbiddenError, NotFoundError, PersistenceError
from .storage import ArtifactStore

COMPLETION_ROLES = {"seeker"}
LEARNED_SKILL_LEVEL = "beginner"


class CompletionRecord(BaseModel):
    course_id: str
    course_title: str
    course_category: str
    completed_at: datetime
    certificate_id: str
    certificate_url: str
    skills_earned: List[str] = Field(default_factory=list)
    progress: int = Field(default=100, ge=0, le=100)


class CompletionResult(BaseModel):
    completed: bool = True
    already_completed: bool = False
    course_id: str
    course_title: str
    certificate_id: str
    certificate_url: str
    skills_earned: List[str] = Field(default_factory=list)


def certificate_id_for(user_id: str, course_id: str, salt: Optional[str] = None) -> str:
    raw = f"{salt if salt is not None else config.CERT_ID_SALT}:{user_id}:{course_id}"
    return "EM-" + hashlib.sha256(raw.encode()).hexdigest()[:16].upper()


def clean_skills(skills) -> List[str]:
    out: List[str] = []
    seen = set()
    for s in skills or []:
        if not isinstance(s, str):
            continue
        name = s.strip()
        if name and name not in seen:
            seen.add(name)
            out.append(name)
    return out


def display_name(user: dict) -> str:
    name = (user.get("name") or "").strip()
    if name:
        return name
    email = (user.get("email") or "").strip()
    if email:
        return email.split("@", 1)[0]
    return "eMirimo Learner"


def find_completion(user: Optional[dict], course_id: Optional[str] = None,
                    certificate_id: Optional[str] = None) -> Optional[dict]:
    for rec in (user or {}).get("completed_courses") or []:
        if course_id is not None and rec.get("course_id") == course_id:
            return rec
        if certificate_id is not None and rec.get("certificate_id") == certificate_id:
            return rec
    return None


def list_completions(db, user_id: str) -> List[dict]:
    oid = as_object_id(user_id)
    user = db["users"].find_one({"_id": oid}, {"completed_courses": 1}) if oid else None
    if not user:
        raise NotFoundError(f"user {user_id} not found")
    return list(user.get("completed_courses") or [])


def union_skills(db, user_oid, skills: List[str]) -> List[str]:
    """Add each skill the user does not already have by name. Returns the added names."""
    added = []
    for name in skills:
        res = db["users"].update_one(
            {"_id": user_oid, "skills.name": {"$ne": name}},
            {"$push": {"skills": {"name": name, "level": LEARNED_SKILL_LEVEL}}},
        )
        if res.modified_count:
            added.append(name)
    return added


class CompletionRecorder:
    def __init__(
        self,
        db,
        store: ArtifactStore,
        render: Callable[[CertificateData], bytes] = generate_certificate,
        clock: Optional[Callable[[], datetime]] = None,
        salt: Optional[str] = None,
    ):
        self.db = db
        self.store = store
        self.render = render
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.salt = salt

    def record_completion(self, user_id: str, course_ref: str) -> CompletionResult:
        oid = as_object_id(user_id)
        user = self.db["users"].find_one({"_id": oid}) if oid else None
        if not user:
            raise NotFoundError(f"user {user_id} not found")
        if user.get("role") not in COMPLETION_ROLES:
            raise ForbiddenError("only job seekers can complete courses")

        course = resolve_course(self.db, course_ref)
        course_id = course["course_id"]
        existing = find_completion(user, course_id=course_id)
        if existing:
            logging.info(f"COMPLETION already user={oid} course={course_id} cert={existing.get('certificate_id')}")
            return self._result(existing, already_completed=True)

        certificate_id = certificate_id_for(str(oid), course_id, self.salt)
        completed_at = self.clock()
        skills = clean_skills(course.get("skills"))
        pdf = self.render(CertificateData(
            user_name=display_name(user),
            course_title=course["title"],
            course_category=course.get("category"),
            completion_date=completed_at,
            certificate_id=certificate_id,
            skills=skills,
            duration=course.get("duration"),
        ))
        url = self.store.store(certificate_id, str(oid), pdf)

        record = CompletionRecord(
            course_id=course_id,
            course_title=course["title"],
            course_category=course.get("category") or "technical",
            completed_at=completed_at,
            certificate_id=certificate_id,
            certificate_url=url,
            skills_earned=skills,
        ).model_dump()
        stored, won = self._append_record(oid, record)

        try:
            added = union_skills(self.db, oid, stored.get("skills_earned") or [])
            if added:
                logging.info(f"COMPLETION skills added user={oid} skills={added}")
        except PyMongoError as e:
            logging.warning(f"COMPLETION skill union failed user={oid}: {e}")

        logging.info(f"COMPLETION recorded user={oid} course={course_id} cert={stored.get('certificate_id')} new={won}")
        return self._result(stored, already_completed=not won)

    def _append_record(self, user_oid, record: dict) -> Tuple[dict, bool]:
        """Insert-if-absent with one retry. Returns (stored record, whether this call inserted it)."""
        flt = {"_id": user_oid, "completed_courses.course_id": {"$ne": record["course_id"]}}
        update = {"$push": {"completed_courses": record}, "$set": {"updated_at": record["completed_at"]}}
        for attempt in (1, 2):
            won = True
            try:
                res = self.db["users"].update_one(flt, update)
                won = res.modified_count == 1
            except PyMongoError as e:
                logging.warning(f"COMPLETION append failed attempt={attempt} user={user_oid}: {e}")
            try:
                user = self.db["users"].find_one({"_id": user_oid}, {"completed_courses": 1})
            except PyMongoError as e:
                logging.warning(f"COMPLETION read-back failed attempt={attempt} user={user_oid}: {e}")
                continue
            stored = find_completion(user, course_id=record["course_id"])
            if stored:
                return stored, won
        raise PersistenceError(f"completion for course {record['course_id']} could not be persisted")

    @staticmethod
    def _result(rec: dict, already_completed: bool) -> CompletionResult:
        return CompletionResult(
            already_completed=already_completed,
            course_id=rec.get("course_id"),
            course_title=rec.get("course_title") or "",
            certificate_id=rec.get("certificate_id"),
            certificate_url=rec.get("certificate_url") or "",
            skills_earned=list(rec.get("skills_earned") or []),
        )
