"""
Tests for image uploads; Cloudinary is patched out.
"""
import io

import cloudinary.uploader

from conftest import auth


def upload(client, token, filename="photo.png", content=b"\x89PNG fake image"):
    return client.post(
        "/api/upload/image",
        headers=auth(token),
        data={"file": (io.BytesIO(content), filename)},
        content_type="multipart/form-data",
    )


def test_upload_returns_cloudinary_url(client, make_user, monkeypatch):
    _, token = make_user("asha")
    calls = []

    def fake_upload(file, **options):
        calls.append(options)
        return {"secure_url": "https://res.cloudinary.com/demo/photo.png", "public_id": "culture_connect/photo"}

    monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)

    resp = upload(client, token)
    assert resp.status_code == 201
    assert resp.get_json() == {
        "url": "https://res.cloudinary.com/demo/photo.png",
        "public_id": "culture_connect/photo",
    }
    assert calls[0]["folder"] == "culture_connect"
    assert calls[0]["resource_type"] == "image"


def test_upload_rejects_bad_files(client, make_user, app):
    _, token = make_user("asha")

    resp = client.post("/api/upload/image", headers=auth(token), data={}, content_type="multipart/form-data")
    assert resp.status_code == 400
    assert upload(client, token, filename="notes.txt").status_code == 400
    assert upload(client, token, filename="noextension").status_code == 400

    too_big = b"0" * (app.config["MAX_IMAGE_SIZE"] + 1)
    assert upload(client, token, content=too_big).status_code == 400


def test_upload_failure_is_reported(client, make_user, monkeypatch):
    _, token = make_user("asha")

    def broken_upload(file, **options):
        raise RuntimeError("cloudinary is down")

    monkeypatch.setattr(cloudinary.uploader, "upload", broken_upload)
    assert upload(client, token).status_code == 502


def test_upload_requires_login(client):
    resp = client.post("/api/upload/image", data={}, content_type="multipart/form-data")
    assert resp.status_code == 401
