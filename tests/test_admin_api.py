import logging
import time

from bson import ObjectId

from emirimo import api
from emirimo.audit import audit_log
from emirimo.notifications import create_notification


def test_dashboard_snapshot(client, db, make_user, course):
    _, admin = make_user(role="admin")
    _, seeker = make_user()
    make_user(role="employer", status="suspended")
    client.post(f"/learning/{course}/complete", headers=seeker)
    db["jobs"].insert_one({"title": "Cashier", "status": "active"})

    r = client.get("/admin/dashboard", headers=admin)
    assert r.status_code == 200, r.text
    snap = r.json()
    assert snap["users"]["total"] == 3
    assert snap["users"]["by_role"] == {"seeker": 1, "employer": 1, "admin": 1}
    assert snap["users"]["suspended"] == 1
    assert snap["jobs"]["by_status"]["active"] == 1
    assert snap["completions"] == 1


def test_dashboard_requires_admin(client, make_user):
    _, seeker = make_user()
    assert client.get("/admin/dashboard", headers=seeker).status_code == 403
    assert client.get("/admin/dashboard").status_code == 401


def test_suspend_user_broadcasts_and_blocks_token(client, db, broadcaster, make_user):
    _, admin = make_user(role="admin")
    uid, seeker = make_user()

    r = client.patch(f"/admin/users/{uid}/status", json={"status": "suspended"}, headers=admin)
    assert r.status_code == 200, r.text
    assert broadcaster.types() == ["user-status-change"]
    assert broadcaster.events[0]["userId"] == uid
    assert broadcaster.events[0]["status"] == "suspended"
    assert db["admin_audit"].count_documents({"action": "user_status_change", "resource_id": uid}) == 1

    assert client.get("/auth/me", headers=seeker).status_code == 403
    notice = db["notifications"].find_one({"user_id": ObjectId(uid)})
    assert notice["title"] == "Account Status Updated"
    assert len(broadcaster.user_messages) == 1
    sent_to, payload = broadcaster.user_messages[0]
    assert sent_to == uid
    assert payload["id"] == str(notice["_id"])


def test_status_change_validation(client, make_user):
    admin_id, admin = make_user(role="admin")
    uid, _ = make_user()
    assert client.patch(f"/admin/users/{uid}/status", json={"status": "banned"}, headers=admin).status_code == 400
    assert client.patch("/admin/users/not-an-id/status", json={"status": "active"}, headers=admin).status_code == 400
    assert client.patch(f"/admin/users/{ObjectId()}/status", json={"status": "active"}, headers=admin).status_code == 404
    assert client.patch(f"/admin/users/{admin_id}/status", json={"status": "suspended"}, headers=admin).status_code == 400


def test_delete_user(client, db, broadcaster, make_user):
    _, admin = make_user(role="admin")
    uid, _ = make_user()
    create_notification(db, uid, "Welcome")
    r = client.delete(f"/admin/users/{uid}", headers=admin)
    assert r.status_code == 200, r.text
    assert db["users"].find_one({"_id": ObjectId(uid)}) is None
    assert db["notifications"].count_documents({"user_id": ObjectId(uid)}) == 0
    assert broadcaster.types() == ["user-deleted"]
    assert client.delete(f"/admin/users/{uid}", headers=admin).status_code == 404


def test_job_status_change_notifies_employer(client, db, broadcaster, make_user):
    _, admin = make_user(role="admin")
    employer_id, employer = make_user(role="employer")
    job_id = str(db["jobs"].insert_one({"title": "Driver", "status": "active", "employer_id": employer_id}).inserted_id)

    r = client.patch(f"/admin/jobs/{job_id}/status", json={"status": "closed", "reason": "Filled"}, headers=admin)
    assert r.status_code == 200, r.text
    assert db["jobs"].find_one({"_id": ObjectId(job_id)})["status"] == "closed"
    assert broadcaster.events[-1]["type"] == "job-status-change"
    assert broadcaster.events[-1]["jobId"] == job_id

    mine = client.get("/notifications", headers=employer).json()
    assert mine["unreadCount"] == 1
    assert mine["notifications"][0]["message"] == 'Your job "Driver" has been updated. Reason: Filled'
    assert mine["notifications"][0]["category"] == "job"
    assert [uid for uid, _ in broadcaster.user_messages] == [employer_id]

    assert client.patch(f"/admin/jobs/{job_id}/status", json={"status": "open"}, headers=admin).status_code == 400


def test_audit_listing(client, make_user):
    _, admin = make_user(role="admin")
    uid, _ = make_user()
    client.patch(f"/admin/users/{uid}/status", json={"status": "suspended"}, headers=admin)
    r = client.get("/admin/audit?action=user_status_change", headers=admin)
    assert r.status_code == 200, r.text
    assert r.json()["count"] == 1
    assert r.json()["events"][0]["resource_id"] == uid


def test_profile_update_broadcasts(client, broadcaster, make_user):
    uid, headers = make_user()
    r = client.put("/users/me/profile", json={"bio": "Accountant", "skills": [{"name": "Excel", "level": "expert"}]}, headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["profile"]["skills"] == [{"name": "Excel", "level": "expert"}]
    event = broadcaster.events[-1]
    assert event["type"] == "profile-update"
    assert event["userId"] == uid
    assert event["fields"] == ["bio", "skills"]


def test_health_routes_and_headers(client, db):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    for h in ("X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"):
        assert h in r.headers
    assert client.get("/live").json() == {"status": "alive"}
    assert client.get("/ready").json() == {"status": "ready"}


class _BrokenAudit:
    def insert_one(self, doc):
        raise RuntimeError("audit store down")


class _DbWithBrokenAudit:
    def __init__(self, real):
        self.real = real

    def __getitem__(self, name):
        return _BrokenAudit() if name == "admin_audit" else self.real[name]


def test_audit_failure_is_logged_not_raised(db, caplog):
    with caplog.at_level(logging.WARNING):
        audit_log(_DbWithBrokenAudit(db), "admin1", "user_deleted", "user", "u1")
    assert "AUDIT write failed action=user_deleted" in caplog.text


def test_idle_rate_buckets_are_dropped(client, monkeypatch):
    api._RATE_BUCKET["10.0.0.9"] = [int(time.time()) - 600]
    monkeypatch.setattr(api, "_LAST_SWEEP", 0)
    assert client.get("/health").status_code == 200
    assert "10.0.0.9" not in api._RATE_BUCKET
    assert "testclient" in api._RATE_BUCKET
