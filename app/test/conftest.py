"""
Pytest configuration and fixtures for the equipment ledger.

Every test gets a fresh in-memory store, so nothing leaks between tests.
"""
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-the-ledger")

import pytest
from fastapi.testclient import TestClient

from app.core.security.auth import create_access_token
from app.main import create_app
from app.modules.catalog.service import CatalogService
from app.store.memory import MemoryStore


ADMIN = {"id": "admin-1", "username": "Admin One", "role": "admin", "base_code": None}


def commander(base_code):
    return {"id": f"cmd-{base_code}", "username": f"Commander {base_code}", "role": "base_commander", "base_code": base_code}


def officer(base_code):
    return {"id": f"log-{base_code}", "username": f"Officer {base_code}", "role": "logistics_officer", "base_code": base_code}


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def seeded(store):
    """Bases A, B, C and a small equipment catalog."""
    catalog = CatalogService(store)
    for code in ("A", "B", "C"):
        catalog.create_base({"base_code": code}, ADMIN)
    catalog.create_equipment({"code": "RIFLE_556", "name": "Rifle 5.56mm", "category": "weapons"}, ADMIN)
    catalog.create_equipment({"code": "RADIO_VHF", "name": "VHF Radio", "category": "comms"}, ADMIN)
    catalog.create_equipment({"code": "OLD_HELMET", "name": "Retired helmet", "active": False}, ADMIN)
    return store


@pytest.fixture
def app(store):
    return create_app(store)


@pytest.fixture
def client(app):
    """Create FastAPI test client"""
    return TestClient(app)


def auth_headers(user):
    token = create_access_token(
        user_id=user["id"],
        role=user["role"],
        base_code=user["base_code"],
        name=user["username"],
    )
    return {"Authorization": f"Bearer {token}"}
