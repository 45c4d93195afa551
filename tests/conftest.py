import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from config import Settings
from main import create_app


@pytest.fixture
def settings(tmp_path):
    return Settings(
        upload_dir=str(tmp_path / "uploads"),
        public_base_url="http://testserver",
        bcrypt_rounds=4,
    )


@pytest.fixture
def db():
    return mongomock.MongoClient()["civic_complaints_test"]


@pytest.fixture
def client(settings, db):
    app = create_app(settings, db)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_profile_id(client, db):
    """Register an admin and return the id of its (blank) profile."""
    resp = client.post("/admin-signup", json={"name": "A", "email": "a@x.com", "password": "pw"})
    assert resp.status_code == 200
    profile = db[database.ADMIN_PROFILE].find_one({"email": "a@x.com"})
    return str(profile["_id"])
