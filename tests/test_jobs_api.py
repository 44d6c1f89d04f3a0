def test_employer_creates_and_lists_jobs(client, make_user):
    _, employer = make_user(role="employer")
    body = {"title": "Bookkeeper", "must_have": ["Excel", "Excel"], "nice_to_have": ["QuickBooks"], "external_job_id": "BK-1"}
    r = client.post("/jobs", json=body, headers=employer)
    assert r.status_code == 200, r.text
    job_id = r.json()["job_id"]

    job = client.get(f"/jobs/{job_id}").json()
    assert job["skill_set"] == ["Excel", "QuickBooks"]
    assert job["status"] == "active"

    listed = client.get("/jobs?skill=Excel").json()
    assert listed["total"] == 1
    assert client.post("/jobs", json=body, headers=employer).status_code == 409


def test_job_validation_and_access(client, make_user):
    _, seeker = make_user()
    _, employer = make_user(role="employer")
    assert client.post("/jobs", json={"title": "X"}, headers=seeker).status_code == 403
    assert client.post("/jobs", json={"title": " "}, headers=employer).status_code == 400
    assert client.post("/jobs", json={"title": "X", "job_type": "gig"}, headers=employer).status_code == 400
    assert client.get("/jobs?status=archived").status_code == 400
    assert client.get("/jobs/not-an-id").status_code == 400
    assert client.get(f"/jobs/{'0' * 24}").status_code == 404
