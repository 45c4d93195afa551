from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from bson import ObjectId
from pymongo.errors import PyMongoError

import database
import services

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def submit(client, **fields):
    data = {"category": "noise", "description": "Loud music", "dateTime": "2024-03-01 22:00"}
    data.update(fields)
    return client.post("/submitComplaint", data=data)


def test_submit_without_image(client, db, admin_profile_id):
    resp = submit(client, adminId=admin_profile_id)
    assert resp.status_code == 201
    body = resp.json()
    assert body["message"] == "Complaint submitted successfully"

    complaint = body["complaint"]
    assert complaint["status"] == "Pending"
    assert complaint["image"] is None
    assert complaint["adminId"] == admin_profile_id
    assert complaint["category"] == "noise"
    assert complaint["id"]
    assert complaint["createdAt"]

    stored = db[database.COMPLAINT].find_one({"_id": ObjectId(complaint["id"])})
    assert stored["adminId"] == ObjectId(admin_profile_id)


def test_submit_requires_admin(client, db):
    resp = submit(client)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Please select an admin."}
    assert db[database.COMPLAINT].count_documents({}) == 0


@pytest.mark.parametrize("admin_id", ["garbage", "64b7f0c2a1b2c3d4e5f60718"])
def test_submit_rejects_unknown_admin(client, admin_id):
    resp = submit(client, adminId=admin_id)
    assert resp.status_code == 400


def test_submit_with_image(client, settings, admin_profile_id):
    resp = client.post(
        "/submitComplaint",
        data={"category": "pothole", "adminId": admin_profile_id},
        files={"image": ("hole.PNG", PNG, "image/png")},
    )
    assert resp.status_code == 201
    url = resp.json()["complaint"]["image"]
    assert url.startswith("http://testserver/uploads/complaints/")
    assert url.endswith(".png")

    name = url.rsplit("/", 1)[-1]
    assert (Path(settings.upload_dir) / "complaints" / name).read_bytes() == PNG

    served = client.get(url.replace("http://testserver", ""))
    assert served.status_code == 200
    assert served.content == PNG


def test_submit_rejects_disallowed_format(client, db, admin_profile_id):
    resp = client.post(
        "/submitComplaint",
        data={"category": "pothole", "adminId": admin_profile_id},
        files={"image": ("anim.gif", b"GIF89a", "image/gif")},
    )
    assert resp.status_code == 400
    assert db[database.COMPLAINT].count_documents({}) == 0


def test_plain_listing_of_empty_collection(client):
    resp = client.get("/api/complaints")
    assert resp.status_code == 200
    assert resp.json() == []


def test_newest_first_listing_of_empty_collection(client):
    resp = client.get("/api/complaints/all")
    assert resp.status_code == 404
    assert resp.json() == {"error": "No complaints found"}


def test_newest_first_ordering(client, db, admin_profile_id):
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for category, offset in [("old", 0), ("newest", 2), ("middle", 1)]:
        db[database.COMPLAINT].insert_one({
            "category": category,
            "adminId": ObjectId(admin_profile_id),
            "status": "Pending",
            "image": None,
            "createdAt": base + timedelta(days=offset),
        })

    plain = [c["category"] for c in client.get("/api/complaints").json()]
    assert plain == ["old", "newest", "middle"]

    newest = [c["category"] for c in client.get("/api/complaints/all").json()]
    assert newest == ["newest", "middle", "old"]


def test_update_status_is_unrestricted(client, admin_profile_id):
    complaint_id = submit(client, adminId=admin_profile_id).json()["complaint"]["id"]

    for status in ["Accepted", "Rejected", "Accepted", "Pending"]:
        resp = client.put(f"/api/complaints/update/{complaint_id}", json={"status": status})
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Complaint status updated!"
        assert body["updatedComplaint"]["status"] == status


def test_update_status_rejects_unknown_value(client, admin_profile_id):
    complaint_id = submit(client, adminId=admin_profile_id).json()["complaint"]["id"]
    resp = client.put(f"/api/complaints/update/{complaint_id}", json={"status": "Closed"})
    assert resp.status_code == 400


@pytest.mark.parametrize("complaint_id", ["64b7f0c2a1b2c3d4e5f60718", "nope"])
def test_update_status_unknown_complaint(client, complaint_id):
    resp = client.put(f"/api/complaints/update/{complaint_id}", json={"status": "Accepted"})
    assert resp.status_code == 404
    assert resp.json() == {"error": "Complaint not found!"}


def test_complaint_lifecycle(client):
    assert client.post(
        "/admin-signup", json={"name": "A", "email": "a@x.com", "password": "pw"}
    ).status_code == 200
    profile = client.get("/get-admin-profile/a@x.com").json()["adminProfile"]
    assert profile["fullName"] == ""

    complaint = submit(client, adminId=profile["id"]).json()["complaint"]
    assert complaint["status"] == "Pending"
    assert complaint["image"] is None

    resp = client.put(f"/api/complaints/update/{complaint['id']}", json={"status": "Accepted"})
    assert resp.json()["updatedComplaint"]["status"] == "Accepted"

    # removing the admin leaves the complaint in place
    client.delete("/delete-admin-profile/a@x.com")
    listed = client.get("/api/complaints").json()
    assert [c["id"] for c in listed] == [complaint["id"]]


def test_database_failure_is_a_server_error(client, monkeypatch):
    def broken(*args, **kwargs):
        raise PyMongoError("connection reset")

    monkeypatch.setattr(services, "get_documents", broken)
    resp = client.get("/api/complaints")
    assert resp.status_code == 500
    assert resp.json() == {"error": "Server error"}


def test_oversized_upload_is_rejected(settings, db, admin_profile_id, client):
    client.app.state.media.max_bytes = 16
    resp = client.post(
        "/submitComplaint",
        data={"category": "pothole", "adminId": admin_profile_id},
        files={"image": ("big.png", b"x" * 1024, "image/png")},
    )
    assert resp.status_code == 400
    assert resp.json() == {"error": "Uploaded image is too large"}
    assert db[database.COMPLAINT].count_documents({}) == 0


def test_failed_insert_removes_stored_image(client, settings, db, admin_profile_id, monkeypatch):
    real_create = services.create_document

    def failing_create(db_, collection_name, data):
        if collection_name == database.COMPLAINT:
            raise PyMongoError("write failed")
        return real_create(db_, collection_name, data)

    monkeypatch.setattr(services, "create_document", failing_create)
    resp = client.post(
        "/submitComplaint",
        data={"category": "pothole", "adminId": admin_profile_id},
        files={"image": ("hole.png", PNG, "image/png")},
    )
    assert resp.status_code == 500
    assert list((Path(settings.upload_dir) / "complaints").iterdir()) == []
