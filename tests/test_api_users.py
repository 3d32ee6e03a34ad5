# ---------- tests/test_api_users.py ----------
from fastapi.testclient import TestClient

from backend.security import verify_password

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def test_read_own_user(client: TestClient, user_token_headers, test_user):
    response = client.get(f"/api/users/{test_user.id}", headers=user_token_headers)

    assert response.status_code == 200
    assert response.json()["data"]["email"] == test_user.email


def test_cannot_read_other_user(client: TestClient, user_token_headers, other_user):
    response = client.get(f"/api/users/{other_user.id}", headers=user_token_headers)
    assert response.status_code == 403


def test_admin_reads_any_user(client: TestClient, admin_token_headers, test_user):
    response = client.get(f"/api/users/{test_user.id}", headers=admin_token_headers)
    assert response.status_code == 200


def test_admin_reads_missing_user(client: TestClient, admin_token_headers):
    response = client.get("/api/users/9999", headers=admin_token_headers)
    assert response.status_code == 404


def test_update_own_name(client: TestClient, user_token_headers, test_user):
    response = client.put(f"/api/users/{test_user.id}", json={"name": "  Renamed  "}, headers=user_token_headers)

    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Renamed"


def test_user_cannot_change_own_active_flag(client: TestClient, user_token_headers, test_user):
    response = client.put(f"/api/users/{test_user.id}", json={"is_active": False}, headers=user_token_headers)
    assert response.status_code == 403


def test_user_cannot_update_others(client: TestClient, user_token_headers, other_user):
    response = client.put(f"/api/users/{other_user.id}", json={"name": "Hijacked"}, headers=user_token_headers)
    assert response.status_code == 403


def test_assignable_users_list(client: TestClient, session, user_token_headers, test_user, other_user, outsider):
    outsider.is_active = False
    session.add(outsider)
    session.commit()

    response = client.get("/api/users/list", headers=user_token_headers)

    assert response.status_code == 200
    names = [user["name"] for user in response.json()["data"]]
    assert names == ["Other User", "Test User"]

    response = client.get("/api/users/list", params={"search": "other"}, headers=user_token_headers)
    assert [user["id"] for user in response.json()["data"]] == [other_user.id]


def test_change_password(client: TestClient, session, user_token_headers, test_user):
    payload = {"current_password": "Testpass123", "new_password": "Newpass456"}

    response = client.put(f"/api/users/{test_user.id}/password", json=payload, headers=user_token_headers)

    assert response.status_code == 200
    session.refresh(test_user)
    assert verify_password("Newpass456", test_user.hashed_password)

    response = client.post("/api/auth/login", json={"email": test_user.email, "password": "Newpass456"})
    assert response.status_code == 200


def test_change_password_wrong_current(client: TestClient, user_token_headers, test_user):
    payload = {"current_password": "Wrongpass123", "new_password": "Newpass456"}
    response = client.put(f"/api/users/{test_user.id}/password", json=payload, headers=user_token_headers)
    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Current password is incorrect"


def test_change_password_weak_new(client: TestClient, user_token_headers, test_user):
    payload = {"current_password": "Testpass123", "new_password": "short"}
    response = client.put(f"/api/users/{test_user.id}/password", json=payload, headers=user_token_headers)
    assert response.status_code == 400


def test_profile_picture_upload_and_serve(client: TestClient, file_store, user_token_headers, test_user):
    files = {"profile_picture": ("me.png", PNG_BYTES, "image/png")}

    response = client.post("/api/users/profile-picture", files=files, headers=user_token_headers)

    assert response.status_code == 200
    url = response.json()["data"]["profile_pic"]
    assert url.startswith(f"/api/uploads/profiles/{test_user.id}-")
    assert url.endswith(".png")
    assert (file_store.profiles_dir / url.rsplit("/", 1)[1]).is_file()

    served = client.get(url)
    assert served.status_code == 200
    assert served.content == PNG_BYTES
    assert served.headers["cache-control"] == "public, max-age=31536000"


def test_profile_picture_replaces_previous_file(client: TestClient, file_store, user_token_headers):
    files = {"profile_picture": ("me.png", PNG_BYTES, "image/png")}
    first = client.post("/api/users/profile-picture", files=files, headers=user_token_headers).json()["data"]
    second = client.post("/api/users/profile-picture", files=files, headers=user_token_headers).json()["data"]

    if first["profile_pic"] != second["profile_pic"]:
        assert not (file_store.profiles_dir / first["profile_pic"].rsplit("/", 1)[1]).exists()
    assert (file_store.profiles_dir / second["profile_pic"].rsplit("/", 1)[1]).is_file()


def test_profile_picture_rejects_non_images(client: TestClient, user_token_headers):
    files = {"profile_picture": ("doc.pdf", b"%PDF-1.4", "application/pdf")}
    response = client.post("/api/users/profile-picture", files=files, headers=user_token_headers)
    assert response.status_code == 400
    assert "File type not allowed" in response.json()["error"]["message"]


def test_serve_missing_profile_picture(client: TestClient):
    response = client.get("/api/uploads/profiles/nothing.png")
    assert response.status_code == 404


def test_update_ignores_profile_pic(client: TestClient, session, user_token_headers, test_user):
    response = client.put(
        f"/api/users/{test_user.id}",
        json={"name": "Renamed", "profile_pic": "/api/uploads/profiles/1-1.png"},
        headers=user_token_headers,
    )

    assert response.status_code == 200
    session.refresh(test_user)
    assert test_user.name == "Renamed"
    assert test_user.profile_pic is None


def test_profile_picture_upload_keeps_other_users_file(
    client: TestClient, session, file_store, user_token_headers, other_token_headers, test_user
):
    files = {"profile_picture": ("me.png", PNG_BYTES, "image/png")}
    theirs = client.post("/api/users/profile-picture", files=files, headers=other_token_headers).json()["data"]
    their_file = file_store.profiles_dir / theirs["profile_pic"].rsplit("/", 1)[1]

    # A reference to someone else's picture is never treated as our own upload
    test_user.profile_pic = theirs["profile_pic"]
    session.add(test_user)
    session.commit()

    response = client.post("/api/users/profile-picture", files=files, headers=user_token_headers)

    assert response.status_code == 200
    assert their_file.is_file()
