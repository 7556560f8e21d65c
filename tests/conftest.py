"""Pytest fixtures: an in-memory Mongo database and API helpers."""
import io
import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import mongomock
import pytest
from fastapi.testclient import TestClient
from PIL import Image

import database
from classifier import ObjectStorage, VisionModel, WasteClassifier, get_classifier
from config import Settings
from main import app

PASSWORD = "s3cret-pass"


@pytest.fixture(autouse=True)
def mongo(monkeypatch):
    """Each test gets a fresh in-memory database."""
    mock_db = mongomock.MongoClient(tz_aware=True)["test_healthcare_waste"]
    monkeypatch.setattr(database, "db", mock_db)
    return mock_db


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def register(client: TestClient, email: str, user_type: str, department: str = "Radiology") -> dict:
    response = client.post(
        "/api/auth/register",
        json={
            "firstName": "Test",
            "lastName": "User",
            "email": email,
            "password": PASSWORD,
            "userType": user_type,
            "department": department,
        },
    )
    assert response.status_code == 201, response.text
    data = response.json()
    return {"user": data["user"], "headers": {"Authorization": f"Bearer {data['token']}"}}


@pytest.fixture
def make_user(client):
    def _make(email: str, user_type: str, **kwargs) -> dict:
        return register(client, email, user_type, **kwargs)

    return _make


@pytest.fixture
def medical(make_user) -> dict:
    return make_user("medic@example.com", "medical_staff", department="Oncology")


@pytest.fixture
def disposal(make_user) -> dict:
    return make_user("disposer@example.com", "disposal_staff")


@pytest.fixture
def other_disposal(make_user) -> dict:
    return make_user("disposer2@example.com", "disposal_staff")


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        s3_bucket_name="test-bucket",
        aws_region="eu-west-1",
        groq_api_key="test-key",
    )


@pytest.fixture
def png_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), color=(200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()


def model_reply(content) -> SimpleNamespace:
    """Build an object shaped like an OpenAI chat completion response."""
    if not isinstance(content, str):
        content = json.dumps(content)
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def s3_client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def openai_client() -> MagicMock:
    fake = MagicMock()
    fake.chat.completions.create.return_value = model_reply(
        {
            "category": "Sharps Waste",
            "treatment": ["- Autoclave before shredding", "Encapsulate in puncture-proof containers"],
        }
    )
    return fake


@pytest.fixture
def classifier(test_settings, s3_client, openai_client) -> WasteClassifier:
    return WasteClassifier(
        ObjectStorage(test_settings, s3_client=s3_client),
        VisionModel(test_settings, client=openai_client),
    )


@pytest.fixture
def override_classifier(classifier):
    app.dependency_overrides[get_classifier] = lambda: classifier
    yield classifier
    app.dependency_overrides.pop(get_classifier, None)
