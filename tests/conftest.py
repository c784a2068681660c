import mongomock
import pytest
from fastapi.testclient import TestClient

import auth
import main
from database import USERS, Database
from security import create_access_token
from settings import Settings
from views import ViewCache

PASTOR_EMAIL = "pastor@church.org"


@pytest.fixture
def settings():
    return Settings(
        secret_key="test-secret",
        base_url="http://testserver",
        pastor_email=PASTOR_EMAIL,
        openai_api_key="sk-test",
        openai_base_url="https://llm.internal/v1",
        scripture_api_base="https://bible.internal",
    )


@pytest.fixture
def db():
    database = Database(mongomock.MongoClient(), "changara_test")
    database.ensure_indexes()
    return database


@pytest.fixture
def cache():
    return ViewCache()


@pytest.fixture
def make_user(db, settings, cache):
    def make(name="Alice Johnson", email="alice@church.org", password="secret123", phone="0712345678"):
        result = auth.signup(db, settings, cache, {"name": name, "email": email, "phone": phone, "password": password})
        assert result.success, result
        return db[USERS].find_one({"email": email.lower()})

    return make


@pytest.fixture
def client(settings, db):
    app = main.create_app(settings, db)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def headers_for(settings):
    def headers(user):
        token = create_access_token(settings, {"sub": str(user["_id"]), "role": user["role"]})
        return {"Authorization": f"Bearer {token}"}

    return headers
