from typing import Dict, List

import pytest
from fastapi.testclient import TestClient

from app.db.session import Base, engine
from app.main import app
from app.services.storage import StorageError, StorageResult, get_storage


class FakeStorage:
    """In-memory stand-in for the S3 gateway."""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.metadata: Dict[str, Dict[str, str]] = {}
        self.deleted: List[str] = []
        self.signed: List[str] = []
        self.fail_put = False
        self.fail_delete = False
        self.fail_sign = False

    @property
    def calls(self) -> int:
        return len(self.objects) + len(self.deleted) + len(self.signed)

    def put(self, key, fileobj, content_type, metadata):
        if self.fail_put:
            raise StorageError("bucket unavailable")
        data = fileobj.read()
        self.objects[key] = data
        self.metadata[key] = metadata
        return f"https://cdn.example.com/{key}"

    def delete(self, key):
        if self.fail_delete:
            return StorageResult(ok=False, error="access denied")
        self.objects.pop(key, None)
        self.deleted.append(key)
        return StorageResult(ok=True)

    def sign(self, key, expires_in):
        if self.fail_sign:
            raise StorageError("signing failed")
        self.signed.append(key)
        return f"https://signed.example.com/{key}?X-Amz-Expires={expires_in}"


def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register(client: TestClient, email: str, username: str, password: str = "secretpass") -> str:
    r = client.post("/auth/register", json={"email": email, "username": username, "password": password})
    assert r.status_code == 201
    return r.json()["access_token"]


def login(client: TestClient, email: str, password: str = "secretpass") -> str:
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200
    return r.json()["access_token"]


@pytest.fixture(autouse=True)
def _reset_db():
    reset_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def storage():
    fake = FakeStorage()
    app.dependency_overrides[get_storage] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_storage, None)


@pytest.fixture
def admin_headers(client):
    register(client, "admin@example.com", "admin")
    with engine.begin() as conn:
        conn.exec_driver_sql("UPDATE users SET role='admin' WHERE email='admin@example.com'")
    # Log in again so the token carries the admin role
    return bearer(login(client, "admin@example.com"))


@pytest.fixture
def user_headers(client):
    return bearer(register(client, "user@example.com", "someuser"))
