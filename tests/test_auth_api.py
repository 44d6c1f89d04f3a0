def test_register_login_me(client):
    r = client.post("/auth/register", json={"name": "Grace", "email": "Grace@Example.rw", "password": "secret123"})
    assert r.status_code == 200, r.text
    token = r.json()["token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200, me.text
    assert me.json()["user"]["email"] == "grace@example.rw"
    assert me.json()["user"]["role"] == "seeker"

    login = client.post("/auth/login", json={"email": "grace@example.rw", "password": "secret123"})
    assert login.status_code == 200
    assert login.json()["role"] == "seeker"
    assert client.post("/auth/login", json={"email": "grace@example.rw", "password": "wrong"}).status_code == 401


def test_register_validation(client):
    base = {"name": "A", "email": "a@example.rw", "password": "secret123"}
    assert client.post("/auth/register", json={**base, "role": "admin"}).status_code == 400
    assert client.post("/auth/register", json={**base, "email": "nope"}).status_code == 400
    assert client.post("/auth/register", json={**base, "password": "123"}).status_code == 400
    assert client.post("/auth/register", json=base).status_code == 200
    assert client.post("/auth/register", json=base).status_code == 409


def test_bad_tokens(client):
    assert client.get("/auth/me").status_code == 401
    assert client.get("/auth/me", headers={"Authorization": "Bearer junk"}).status_code == 401
