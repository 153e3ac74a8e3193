"""
Shared fixtures for Task Tracker tests.

Provides isolated temporary databases, seeded users with bearer tokens, and a
FastAPI TestClient wired to the temporary database.
"""

import sys
from pathlib import Path
from typing import Dict, Any

import pytest
from fastapi.testclient import TestClient

project_root = Path(__file__).parent.parent.parent / "src"
sys.path.insert(0, str(project_root))

from task_tracker import api
from task_tracker.auth import TokenRegistry, hash_password
from task_tracker.config import Settings
from task_tracker.database import TrackerDatabase


@pytest.fixture
def db(tmp_path):
    """Fresh database in a temporary directory."""
    database = TrackerDatabase(tmp_path / "data" / "tracker.db")
    yield database
    database.close()


@pytest.fixture
def sample_task() -> Dict[str, Any]:
    return {
        "id": "t1",
        "title": "Pay invoice",
        "responsible": "Alice",
        "responsible_id": "u1",
        "due_date": "2024-01-15",
    }


class ApiTestContext:
    """Bundle of a TestClient, its database and per-user auth headers."""

    def __init__(self, client: TestClient, db: TrackerDatabase, registry: TokenRegistry,
                 uploads_dir: Path):
        self.client = client
        self.db = db
        self.registry = registry
        self.uploads_dir = uploads_dir
        self.admin_headers = self.headers_for("admin1")
        self.user_headers = self.headers_for("u1")

    def headers_for(self, uid: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.registry.issue(uid)}"}


@pytest.fixture
def api_context(tmp_path, db, monkeypatch):
    """TestClient bound to a temporary database with an admin and a regular user."""
    db.upsert_user({
        "uid": "admin1",
        "full_name": "Ada Admin",
        "email": "admin@example.com",
        "password": hash_password("admin-pass"),
        "role": "admin",
    })
    db.upsert_user({
        "uid": "u1",
        "full_name": "Alice",
        "email": "alice@example.com",
        "password": hash_password("alice-pass"),
    })

    registry = TokenRegistry()
    uploads_dir = tmp_path / "uploads"
    test_settings = Settings(
        db_path=db.db_path,
        data_dir=db.db_path.parent,
        uploads_dir=uploads_dir,
    )

    monkeypatch.setattr(api, "db_instance", db)
    api.app.dependency_overrides[api.get_token_registry] = lambda: registry
    api.app.dependency_overrides[api.get_settings] = lambda: test_settings

    yield ApiTestContext(TestClient(api.app), db, registry, uploads_dir)

    api.app.dependency_overrides.clear()
