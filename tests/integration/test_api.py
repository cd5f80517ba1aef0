"""
Integration tests for the HTTP API.

Tests cover:
- Registration, login, identity, password reset, account deletion
- The capsule lifecycle over HTTP with a controlled clock
- Error mapping (400/401/403/404) and ownership isolation
- Store failures surfacing as an opaque 500
- Photo uploads, their stored type and size limit, and accumulation
"""

from datetime import timedelta

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from cloudcapsule.models import User

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


def new_capsule(client: TestClient, headers: dict, clock, **fields) -> int:
    body = {"title": "Gift", "open_date": (clock.now + timedelta(hours=1)).isoformat()}
    body.update(fields)
    r = client.post("/api/capsules", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["id"]


# =============================================================================
# Auth
# =============================================================================


class TestAuth:
    def test_register_login_me(self, client: TestClient) -> None:
        r = client.post("/api/auth/register", json={"username": "alice", "email": "Alice@Example.com", "password": "pw123456"})
        assert r.status_code == 201
        assert r.json()["user"] == {"id": 1, "username": "alice", "email": "alice@example.com"}

        r = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "pw123456"})
        assert r.status_code == 200
        headers = {"Authorization": f"Bearer {r.json()['access_token']}"}

        assert client.get("/api/auth/me", headers=headers).json()["username"] == "alice"

    def test_register_requires_all_fields(self, client: TestClient) -> None:
        r = client.post("/api/auth/register", json={"username": "alice", "password": "pw"})
        assert r.status_code == 400
        assert r.json()["detail"] == "Username, email, and password required"

    def test_duplicate_registration(self, client: TestClient, auth_headers) -> None:
        auth_headers("alice")
        r = client.post("/api/auth/register", json={"username": "alice", "email": "other@example.com", "password": "pw"})
        assert r.status_code == 400

    def test_bad_login(self, client: TestClient, auth_headers) -> None:
        auth_headers("alice")
        r = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "wrong"})
        assert r.status_code == 401
        r = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "wrong"})
        assert r.status_code == 401

    def test_capsules_require_identity(self, client: TestClient) -> None:
        assert client.get("/api/capsules").status_code == 401
        assert client.get("/api/capsules", headers={"Authorization": "Bearer junk"}).status_code == 401

    def test_password_reset(self, client: TestClient, auth_headers, app, clock) -> None:
        auth_headers("alice")
        r = client.post("/api/auth/forgot-password", json={"email": "alice@example.com"})
        assert r.status_code == 200
        # same reply for unknown addresses
        assert client.post("/api/auth/forgot-password", json={"email": "x@example.com"}).json() == r.json()

        with Session(app.state.engine) as session:
            token = session.exec(select(User.reset_token).where(User.username == "alice")).one()
        assert token

        r = client.post("/api/auth/reset-password", json={"token": token, "password": "brand-new"})
        assert r.status_code == 200
        assert client.post("/api/auth/login", json={"email": "alice@example.com", "password": "brand-new"}).status_code == 200
        # tokens are single use
        assert client.post("/api/auth/reset-password", json={"token": token, "password": "again"}).status_code == 400

    def test_expired_reset_token(self, client: TestClient, auth_headers, app, clock) -> None:
        auth_headers("alice")
        client.post("/api/auth/forgot-password", json={"email": "alice@example.com"})
        with Session(app.state.engine) as session:
            token = session.exec(select(User.reset_token).where(User.username == "alice")).one()

        clock.advance(hours=2)
        r = client.post("/api/auth/reset-password", json={"token": token, "password": "brand-new"})
        assert r.status_code == 400

    def test_delete_account_cascades(self, client: TestClient, auth_headers, clock) -> None:
        alice = auth_headers("alice")
        new_capsule(client, alice, clock)

        assert client.delete("/api/auth/me", headers=alice).status_code == 200
        assert client.get("/api/capsules", headers=alice).status_code == 401

        bob = auth_headers("bob")
        assert client.get("/api/capsules", headers=bob).json() == []


# =============================================================================
# Capsule Lifecycle
# =============================================================================


class TestCapsuleLifecycle:
    def test_gift_scenario(self, client: TestClient, auth_headers, clock) -> None:
        headers = auth_headers("alice")
        capsule_id = new_capsule(client, headers, clock, letter="Happy birthday", rating=5)

        locked = client.get(f"/api/capsules/{capsule_id}", headers=headers).json()
        assert locked["title"] == "Gift"
        assert locked["is_open"] is False
        assert locked["letter"] is None
        assert locked["photo_refs"] == []

        clock.advance(hours=1, seconds=1)
        opened = client.get(f"/api/capsules/{capsule_id}", headers=headers).json()
        assert opened["is_open"] is True
        assert opened["letter"] == "Happy birthday"
        assert opened["rating"] == 5
        assert opened["feeling"] == "happy"

    def test_empty_title_is_400(self, client: TestClient, auth_headers) -> None:
        headers = auth_headers("alice")
        r = client.post("/api/capsules", json={"title": "", "open_date": "2099-01-01"}, headers=headers)
        assert r.status_code == 400
        assert r.json()["detail"] == "Title and open date are required"

    def test_update_then_sealed(self, client: TestClient, auth_headers, clock) -> None:
        headers = auth_headers("alice")
        capsule_id = new_capsule(client, headers, clock)

        r = client.put(f"/api/capsules/{capsule_id}", json={"title": "Renamed", "letter": "hi"}, headers=headers)
        assert r.status_code == 200
        assert r.json()["title"] == "Renamed"
        assert r.json()["letter"] is None

        clock.advance(hours=2)
        r = client.put(f"/api/capsules/{capsule_id}", json={"title": "Too late"}, headers=headers)
        assert r.status_code == 403
        assert r.json()["detail"] == "Cannot edit an opened capsule"

        opened = client.get(f"/api/capsules/{capsule_id}", headers=headers).json()
        assert (opened["title"], opened["letter"]) == ("Renamed", "hi")

    def test_ownership_is_hidden(self, client: TestClient, auth_headers, clock) -> None:
        alice = auth_headers("alice")
        bob = auth_headers("bob")
        capsule_id = new_capsule(client, bob, clock)

        assert client.get(f"/api/capsules/{capsule_id}", headers=alice).status_code == 404
        assert client.get("/api/capsules/9999", headers=alice).status_code == 404
        assert client.put(f"/api/capsules/{capsule_id}", json={"title": "x"}, headers=alice).status_code == 404
        assert client.delete(f"/api/capsules/{capsule_id}", headers=alice).status_code == 404
        assert client.get(f"/api/capsules/{capsule_id}", headers=bob).status_code == 200

    def test_list_and_delete(self, client: TestClient, auth_headers, clock) -> None:
        headers = auth_headers("alice")
        first = new_capsule(client, headers, clock, title="first")
        clock.advance(minutes=1)
        second = new_capsule(client, headers, clock, title="second")

        listed = client.get("/api/capsules", headers=headers).json()
        assert [c["id"] for c in listed] == [second, first]

        assert client.delete(f"/api/capsules/{first}", headers=headers).status_code == 200
        assert client.delete(f"/api/capsules/{first}", headers=headers).status_code == 404
        assert [c["id"] for c in client.get("/api/capsules", headers=headers).json()] == [second]

    def test_check_opened(self, client: TestClient, auth_headers, clock) -> None:
        headers = auth_headers("alice")
        capsule_id = new_capsule(client, headers, clock, title="soon")

        assert client.get("/api/capsules/check-opened", headers=headers).json() == []
        clock.advance(hours=1)

        r = client.get("/api/capsules/check-opened?only_new=true", headers=headers)
        assert [c["id"] for c in r.json()] == [capsule_id]
        assert client.get("/api/capsules/check-opened?only_new=true", headers=headers).json() == []
        assert len(client.get("/api/capsules/check-opened", headers=headers).json()) == 1


# =============================================================================
# Store Failures
# =============================================================================


class TestStoreFailures:
    def test_store_error_is_opaque_500(self, client: TestClient, auth_headers, clock, monkeypatch) -> None:
        headers = auth_headers("alice")

        def failing_commit(self):
            raise OperationalError("INSERT INTO capsules", {}, Exception("disk I/O error at /var/db"))

        monkeypatch.setattr(Session, "commit", failing_commit)
        body = {"title": "Gift", "open_date": (clock.now + timedelta(hours=1)).isoformat()}
        r = client.post("/api/capsules", json=body, headers=headers)
        monkeypatch.undo()

        assert r.status_code == 500
        assert r.json() == {"detail": "Failed to create capsule"}
        for leaked in ("INSERT", "capsules", "disk", "/var/db", "OperationalError"):
            assert leaked not in r.text
        assert client.get("/api/capsules", headers=headers).json() == []


# =============================================================================
# Uploads
# =============================================================================


class TestUploads:
    def test_upload_and_accumulate(self, client: TestClient, auth_headers, clock) -> None:
        headers = auth_headers("alice")

        r = client.post(
            "/api/uploads",
            files=[("photos", ("a.png", PNG, "image/png")), ("photos", ("notes.txt", b"hi", "text/plain"))],
            headers=headers,
        )
        assert r.status_code == 200
        first_refs = r.json()["urls"]
        assert len(first_refs) == 1

        capsule_id = new_capsule(client, headers, clock, photo_refs=first_refs)
        r = client.post("/api/uploads", files=[("photos", ("b.png", PNG, "image/png"))], headers=headers)
        second_refs = r.json()["urls"]
        client.put(f"/api/capsules/{capsule_id}", json={"photo_refs": second_refs}, headers=headers)

        clock.advance(hours=2)
        opened = client.get(f"/api/capsules/{capsule_id}", headers=headers).json()
        assert opened["photo_refs"] == first_refs + second_refs

        assert client.get(first_refs[0]).content == PNG

    def test_upload_requires_identity(self, client: TestClient) -> None:
        r = client.post("/api/uploads", files=[("photos", ("a.png", PNG, "image/png"))])
        assert r.status_code == 401

    def test_stored_type_follows_content_type(self, client: TestClient, auth_headers) -> None:
        headers = auth_headers("alice")
        page = b"<script>alert(1)</script>"

        r = client.post("/api/uploads", files=[("photos", ("evil.html", page, "image/png"))], headers=headers)
        (ref,) = r.json()["urls"]
        assert ref.endswith(".png")

        served = client.get(ref)
        assert served.headers["content-type"] == "image/png"
        assert "html" not in served.headers["content-type"]

    def test_unlisted_types_and_oversized_files_are_dropped(self, client: TestClient, auth_headers, settings) -> None:
        headers = auth_headers("alice")

        r = client.post(
            "/api/uploads",
            files=[
                ("photos", ("big.png", PNG * 1000, "image/png")),
                ("photos", ("vector.svg", b"<svg/>", "image/svg+xml")),
                ("photos", ("ok.png", PNG, "image/png")),
            ],
            headers=headers,
        )
        assert r.status_code == 200
        assert len(r.json()["urls"]) == 1
        assert len(PNG * 1000) > settings.max_upload_bytes
