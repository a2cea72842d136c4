from datetime import datetime, timezone

from jose import jwt

from conftest import register_and_login


def test_root(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_register_returns_user_without_password(client):
    r = client.post(
        "/api/users/register",
        json={"username": "ana", "email": "ana@example.com", "password": "s3cret!"},
    )
    assert r.status_code == 201
    data = r.json()
    assert data["email"] == "ana@example.com"
    assert data["username"] == "ana"
    assert data["images"] == []
    assert "passwordHash" not in data
    assert "password" not in data
    assert r.headers["location"] == f"/api/users/{data['userId']}"


def test_register_same_email_twice_conflicts(client):
    body = {"username": "ana", "email": "ana@example.com", "password": "s3cret!"}
    assert client.post("/api/users/register", json=body).status_code == 201
    r = client.post("/api/users/register", json=body)
    assert r.status_code == 409
    assert r.json()["code"] == "CONFLICT"


def test_register_email_match_is_case_sensitive(client):
    body = {"username": "ana", "email": "ana@example.com", "password": "s3cret!"}
    assert client.post("/api/users/register", json=body).status_code == 201
    body["email"] = "Ana@example.com"
    assert client.post("/api/users/register", json=body).status_code == 201


def test_register_requires_email_and_password(client):
    r = client.post("/api/users/register", json={"username": "x", "email": "  ", "password": "pw"})
    assert r.status_code == 400
    r = client.post("/api/users/register", json={"username": "x", "email": "x@example.com", "password": ""})
    assert r.status_code == 400
    r = client.post("/api/users/register", json={"username": "x"})
    assert r.status_code == 400


def test_register_accepts_any_non_blank_email(client):
    for email in ("qa@server.local", "ops@intranet", "not-an-email"):
        r = client.post("/api/users/register", json={"username": "x", "email": email, "password": "pw"})
        assert r.status_code == 201, r.text
        assert r.json()["email"] == email

    r = client.post("/api/users/login", json={"email": "qa@server.local", "password": "pw"})
    assert r.status_code == 200


def test_login_wrong_password_or_unknown_email(client):
    register_and_login(client)
    r = client.post("/api/users/login", json={"email": "ana@example.com", "password": "wrong"})
    assert r.status_code == 401
    r = client.post("/api/users/login", json={"email": "nobody@example.com", "password": "s3cret!"})
    assert r.status_code == 401


def test_login_token_carries_user_id_and_one_hour_expiry(client):
    user_id, token = register_and_login(client)
    claims = jwt.get_unverified_claims(token)
    assert int(claims["UserId"]) == user_id
    assert claims["sub"] == "ana@example.com"

    remaining = claims["exp"] - datetime.now(timezone.utc).timestamp()
    assert 3500 < remaining <= 3600
    assert claims["exp"] - claims["iat"] == 3600


def test_user_crud(client):
    r = client.post("/api/users", json={"username": "bo", "email": "bo@example.com", "password": "pw"})
    assert r.status_code == 201
    user_id = r.json()["userId"]

    r = client.get(f"/api/users/{user_id}")
    assert r.status_code == 200
    assert r.json()["username"] == "bo"

    r = client.put(
        f"/api/users/{user_id}",
        json={"userId": user_id, "username": "bob", "email": "bob@example.com"},
    )
    assert r.status_code == 204
    assert client.get(f"/api/users/{user_id}").json()["email"] == "bob@example.com"

    # the old password still works after an update without a password
    r = client.post("/api/users/login", json={"email": "bob@example.com", "password": "pw"})
    assert r.status_code == 200

    assert len(client.get("/api/users").json()) == 1

    assert client.delete(f"/api/users/{user_id}").status_code == 204
    assert client.get(f"/api/users/{user_id}").status_code == 404


def test_update_user_id_mismatch(client):
    user_id, _ = register_and_login(client)
    r = client.put(
        f"/api/users/{user_id}",
        json={"userId": user_id + 1, "username": "x", "email": "x@example.com"},
    )
    assert r.status_code == 400


def test_update_missing_user(client):
    r = client.put("/api/users/99", json={"userId": 99, "username": "x", "email": "x@example.com"})
    assert r.status_code == 404


def test_delete_missing_user(client):
    assert client.delete("/api/users/99").status_code == 404


def test_delete_user_with_images_is_restricted(client, user):
    user_id, token = user
    pending = client.post(
        "/api/images/pending",
        headers={"X-Token": token},
        data={"userId": str(user_id), "scaleOption": "x2", "metadata": "{}"},
        files={"originalFile": ("a.png", b"png-bytes", "image/png")},
    )
    assert pending.status_code == 201

    r = client.delete(f"/api/users/{user_id}")
    assert r.status_code == 409

    r = client.get(f"/api/users/{user_id}")
    assert r.status_code == 200
    assert [img["imageId"] for img in r.json()["images"]] == [pending.json()["imageId"]]
