# tests/conftest.py

from datetime import timedelta

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import get_db, utcnow
from main import app
from schemas import RegistrationForm, SiteConfig


@pytest.fixture
def mongo_db():
    """A fresh in-memory database per test."""
    return mongomock.MongoClient()["speaking_club_test"]


@pytest.fixture
def make_item(mongo_db):
    def _make(collection="sessions", **overrides):
        doc = {
            "title": "Public Speaking Masterclass",
            "description": "Learn advanced techniques for public speaking",
            "date": utcnow() + timedelta(days=7),
            "type": "zoom",
            "location": "Zoom Meeting",
            "maxAttendees": 10,
            "currentAttendees": 0,
            "registrationStatus": "open",
            "status": "upcoming",
        }
        doc.update(overrides)
        return str(mongo_db[collection].insert_one(doc).inserted_id)

    return _make


@pytest.fixture
def form():
    return RegistrationForm(
        first_name="Aziz",
        last_name="Karimov",
        email="Aziz.Karimov@Example.com",
        phone="+82 10 1234 5678",
        telegram="@azizkarimov",
        university="Seoul National University",
        major="Computer Science",
        year_of_study="3rd",
        english_level="advanced",
        previous_participation="yes",
    )


@pytest.fixture
def form_payload():
    return {
        "firstName": "Dilnoza",
        "lastName": "Rahimova",
        "email": "dilnoza@example.com",
        "university": "Pusan National University",
        "major": "Economics",
        "yearOfStudy": "2nd",
        "englishLevel": "intermediate",
        "previousParticipation": "no",
    }


@pytest.fixture
def mentor_headers(mongo_db):
    mongo_db["users"].insert_one({"uid": "mentor-1", "email": "mentor@example.com", "role": "mentor"})
    return {"X-User-Id": "mentor-1"}


@pytest.fixture
def client(mongo_db):
    """TestClient backed by the in-memory database."""
    app.dependency_overrides[get_db] = lambda: mongo_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    app.state.site_config = SiteConfig()
