from io import BytesIO

import pytest

from app.agora.db import session_scope
from app.agora.store import AccountStore
from app.agora.storage import LocalStorage, StorageError, build_profile_picture_key


def _login(client, email="alice@example.com", password="secret1"):
    client.post("/auth/login", data={"email": email, "password": password}, follow_redirects=True)


def test_profile_requires_login(client):
    r = client.get("/profile")
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]


def test_profile_shows_account(client):
    _login(client)
    r = client.get("/profile")
    assert r.status_code == 200
    assert b"alice@example.com" in r.data


def test_profile_edit_name_and_picture(client, app, tmp_path):
    _login(client)
    r = client.post(
        "/profile/edit",
        data={"name": "Alice Liddell", "profile_picture": (BytesIO(b"\x89PNG fake"), "me.png")},
        content_type="multipart/form-data",
        follow_redirects=True,
    )
    assert b"Profile updated successfully." in r.data
    assert b"Alice Liddell" in r.data

    with session_scope(app) as s:
        user = AccountStore(s).find_by_email("alice@example.com")
        assert user.name == "Alice Liddell"
        key = user.profile_picture
    assert key.startswith(f"uploads/{user.id}/") and key.endswith("-me.png")
    assert (tmp_path / "storage" / key).read_bytes() == b"\x89PNG fake"

    r = client.get("/" + key)
    assert r.status_code == 200
    assert r.data == b"\x89PNG fake"

    # The dashboard greets with the refreshed snapshot.
    assert b"Alice Liddell" in client.get("/dashboard").data


def test_profile_rejects_non_image_upload(client, app):
    _login(client)
    r = client.post(
        "/profile/edit",
        data={"profile_picture": (BytesIO(b"#!/bin/sh"), "run.sh")},
        content_type="multipart/form-data",
        follow_redirects=True,
    )
    assert b"Profile picture must be a PNG, JPEG, GIF or WebP image." in r.data
    with session_scope(app) as s:
        assert AccountStore(s).find_by_email("alice@example.com").profile_picture is None


def test_self_delete_ends_session(client, app):
    _login(client)
    r = client.post("/profile/delete")
    assert r.status_code == 302
    assert "/auth/register" in r.headers["Location"]
    assert client.get("/dashboard").status_code == 302
    with session_scope(app) as s:
        assert AccountStore(s).find_by_email("alice@example.com") is None


def test_stale_session_after_admin_delete(client, app):
    _login(client)
    with session_scope(app) as s:
        AccountStore(s).delete_by_id(AccountStore(s).find_by_email("alice@example.com").id)
    r = client.get("/profile", follow_redirects=True)
    assert b"Your account no longer exists." in r.data


def test_build_profile_picture_key():
    assert build_profile_picture_key(3, "my photo.JPG", now=1.5) == "uploads/3/1500-my_photo.JPG"
    with pytest.raises(StorageError):
        build_profile_picture_key(3, "notes.txt")


def test_local_storage_rejects_escaping_keys(tmp_path):
    storage = LocalStorage(root=tmp_path)
    storage.put_bytes("uploads/1/a.png", b"x")
    assert storage.exists("uploads/1/a.png")
    storage.delete("uploads/1/a.png")
    assert not storage.exists("uploads/1/a.png")
    with pytest.raises(StorageError):
        storage.put_bytes("../outside.png", b"x")


def test_missing_upload_is_404(client):
    _login(client)
    assert client.get("/uploads/1/nothing.png").status_code == 404


def test_replaced_and_deleted_pictures_are_removed(client, app, tmp_path):
    _login(client)
    keys = []
    for name in ("one.png", "two.gif"):
        client.post(
            "/profile/edit",
            data={"profile_picture": (BytesIO(name.encode()), name)},
            content_type="multipart/form-data",
        )
        with session_scope(app) as s:
            keys.append(AccountStore(s).find_by_email("alice@example.com").profile_picture)

    root = tmp_path / "storage"
    assert keys[0] != keys[1]
    assert not (root / keys[0]).exists()
    assert (root / keys[1]).exists()

    client.post("/profile/delete")
    assert not (root / keys[1]).exists()
