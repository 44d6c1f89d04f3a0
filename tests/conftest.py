import io
import os

os.environ.setdefault("SKIP_BOOTSTRAP", "1")

import mongomock
import pytest
from botocore.exceptions import ClientError
from bson import ObjectId
from fastapi.testclient import TestClient

from emirimo import api
from emirimo.api import app
from emirimo.auth import hash_password, jwt_encode
from emirimo.deps import get_artifact_store, get_broadcaster, get_database
from emirimo.storage import ArtifactStore, LocalFilesystemStore
from realtime.server import Broadcaster


class RecordingBroadcaster(Broadcaster):
    def __init__(self):
        self.events = []
        self.user_messages = []

    async def broadcast(self, event: dict) -> None:
        self.events.append(event)

    async def send_to_user(self, user_id: str, notification: dict) -> None:
        self.user_messages.append((user_id, notification))

    def types(self):
        return [e["type"] for e in self.events]


@pytest.fixture
def db():
    return mongomock.MongoClient()["emirimo_test"]


@pytest.fixture
def local_backend(tmp_path):
    return LocalFilesystemStore(str(tmp_path / "certificates"), "http://api.test")


@pytest.fixture
def store(local_backend):
    return ArtifactStore([local_backend])


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture
def client(db, store, broadcaster):
    app.dependency_overrides[get_database] = lambda: db
    app.dependency_overrides[get_artifact_store] = lambda: store
    app.dependency_overrides[get_broadcaster] = lambda: broadcaster
    api._RATE_BUCKET.clear()
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Insert a user directly; returns (user_id, auth headers)."""
    counter = {"n": 0}

    def _make(role="seeker", name="Amina Uwase", skills=None, status="active"):
        counter["n"] += 1
        oid = ObjectId()
        db["users"].insert_one({
            "_id": oid,
            "email": f"{role}{counter['n']}@example.rw",
            "password_hash": hash_password("secret123"),
            "name": name,
            "role": role,
            "status": status,
            "skills": skills or [],
            "completed_courses": [],
        })
        token = jwt_encode({"sub": str(oid), "role": role})
        return str(oid), {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def course(db):
    ins = db["learning_resources"].insert_one({
        "title": "Excel for Beginners",
        "description": "Spreadsheets from zero",
        "type": "course",
        "category": "digital-literacy-productivity",
        "skills": ["Excel", "Data Entry"],
        "difficulty": "beginner",
        "duration": 90,
        "is_active": True,
        "created_at": 1,
    })
    return str(ins.inserted_id)


class FakeS3:
    """In-memory stand-in for a boto3 S3 client."""

    def __init__(self, fail_put=False, fail_get=False):
        self.objects = {}
        self.fail_put = fail_put
        self.fail_get = fail_get

    def put_object(self, Bucket, Key, Body, **kw):
        if self.fail_put:
            raise ClientError({"Error": {"Code": "503", "Message": "SlowDown"}}, "PutObject")
        self.objects[(Bucket, Key)] = Body

    def get_object(self, Bucket, Key):
        if self.fail_get:
            raise ClientError({"Error": {"Code": "500", "Message": "InternalError"}}, "GetObject")
        if (Bucket, Key) not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        return {"Body": io.BytesIO(self.objects[(Bucket, Key)])}


@pytest.fixture
def fake_s3():
    return FakeS3
