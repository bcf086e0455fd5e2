# tests/conftest.py
"""Pytest configuration and fixtures"""
import sys
from pathlib import Path

import mongomock
import pytest
from fastapi.testclient import TestClient

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from auth import create_access_token  # noqa: E402
from database import create_document, ensure_indexes, get_db  # noqa: E402
from main import app  # noqa: E402
from schemas import User  # noqa: E402


@pytest.fixture
def db():
    """Fresh in-memory database with the production indexes"""
    database = mongomock.MongoClient()["devcamper_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _make_user(db, name, role):
    doc = create_document(db, "user", User(
        name=name,
        email=f"{name.lower()}@devcamper.io",
        role=role,
        password_hash="not-a-real-hash",
    ))
    return {
        "id": str(doc["_id"]),
        "headers": {"Authorization": f"Bearer {create_access_token({'sub': str(doc['_id'])})}"},
    }


@pytest.fixture
def admin(db):
    return _make_user(db, "Admin", "admin")


@pytest.fixture
def publisher(db):
    return _make_user(db, "Publisher", "publisher")


@pytest.fixture
def other_publisher(db):
    return _make_user(db, "Rival", "publisher")


@pytest.fixture
def reviewer(db):
    return _make_user(db, "Reviewer", "user")


@pytest.fixture
def other_reviewer(db):
    return _make_user(db, "Critic", "user")


@pytest.fixture
def bootcamp_payload():
    return {
        "name": "Devworks Bootcamp",
        "description": "Full stack web development in twelve weeks",
        "website": "https://devworks.com",
        "phone": "(111) 111-1111",
        "email": "enroll@devworks.com",
        "address": "233 Bay State Rd Boston MA 02215",
        "location": {
            "type": "Point",
            "coordinates": [-71.104028, 42.350846],
            "city": "Boston",
            "state": "MA",
            "zipcode": "02215",
        },
        "careers": ["Web Development", "UI/UX", "Business"],
        "housing": True,
        "job_assistance": True,
    }


@pytest.fixture
def bootcamp(client, publisher, bootcamp_payload):
    """A bootcamp owned by the publisher fixture"""
    resp = client.post("/bootcamps", json=bootcamp_payload, headers=publisher["headers"])
    assert resp.status_code == 201
    return resp.json()["data"]


@pytest.fixture
def course_payload():
    return {
        "title": "Front End Web Development",
        "description": "HTML, CSS and JavaScript",
        "weeks": "8",
        "tuition": 8000,
        "minimum_skill": "beginner",
        "scholarship_available": True,
    }


@pytest.fixture
def review_payload():
    return {"title": "Learned a ton", "text": "Great instructors", "rating": 8}
