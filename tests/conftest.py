from datetime import datetime

import jwt
import mongomock
import pytest
from fastapi.testclient import TestClient

import main
from config import settings
from repository import PRODUCTS, StoreRepository
from storage import MemoryStorage


def make_token(role="authenticated", sub="admin-1"):
    return jwt.encode({"sub": sub, "role": role}, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
def db():
    return mongomock.MongoClient()["coffee_world_test"]


@pytest.fixture
def repo(db):
    return StoreRepository(db, default_origin="Kenya")


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def seed_product(db):
    """Insert a raw product document and return its id as a string."""
    def _seed(**fields):
        doc = {
            "type": "roasted_retail",
            "name": "House Blend",
            "is_active": True,
            "price_kes": 800,
            "retail_stock": 20,
            "created_at": datetime(2026, 1, 1),
        }
        doc.update(fields)
        return str(db[PRODUCTS].insert_one(doc).inserted_id)
    return _seed


@pytest.fixture
def client(repo):
    main.app.dependency_overrides[main.get_repository] = lambda: repo
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(role="authenticated", sub="admin-1"):
        return {"Authorization": f"Bearer {make_token(role, sub)}"}
    return _headers


@pytest.fixture
def admin_headers(auth_headers):
    return auth_headers()
