import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))
# Importing eventra.main builds the default app; keep its database out of the repo.
os.environ.setdefault("EVENTRA_DB_PATH", os.path.join(tempfile.mkdtemp(prefix="eventra-tests-"), "default.sqlite3"))

from eventra.config import Settings  # noqa: E402
from eventra.main import create_app  # noqa: E402

DEMO_PASSWORD = "eventra-demo"

USERS = {
    "cust_1": {"name": "Ava Customer", "email": "ava@example.com", "role": "customer", "approved": True},
    "cust_2": {"name": "Ben Customer", "email": "ben@example.com", "role": "customer", "approved": True},
    "prov_1": {
        "name": "Grand Events Co",
        "email": "grand@example.com",
        "role": "event_company",
        "approved": True,
        "categories": ["wedding"],
        "businessName": "Grand Events",
        "location": "Sydney",
    },
    "prov_2": {"name": "Fresh Plates", "email": "plates@example.com", "role": "caterer", "approved": True},
    "prov_pending": {"name": "New Shutter", "email": "shutter@example.com", "role": "photographer", "approved": False},
    "free_1": {"name": "Fay Freelancer", "email": "fay@example.com", "role": "freelancer", "approved": True},
    "free_2": {"name": "Gus Freelancer", "email": "gus@example.com", "role": "freelancer", "approved": True},
    "seeker_1": {
        "name": "Hal Seeker",
        "email": "hal@example.com",
        "role": "jobseeker",
        "approved": True,
        "phone": "0400 000 001",
        "skills": ["waiting"],
    },
    "seeker_2": {"name": "Ivy Seeker", "email": "ivy@example.com", "role": "jobseeker", "approved": True},
    "admin_1": {"name": "Ops Admin", "email": "ops@example.com", "role": "admin", "approved": True},
}


def future_iso(days: int = 7) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


class World:
    """A freshly wired app with seeded users and a cached token per user."""

    def __init__(self, settings: Settings):
        self.app = create_app(settings)
        self.services = self.app.state.services
        self.store = self.services.store
        self.client = TestClient(self.app)
        self._tokens = {}
        for uid, profile in USERS.items():
            self.store.create("users", dict(profile), doc_id=uid)

    def headers(self, uid: str) -> dict:
        if uid not in self._tokens:
            response = self.client.post("/auth/login", json={"userId": uid, "password": DEMO_PASSWORD})
            assert response.status_code == 200
            self._tokens[uid] = response.json()["accessToken"]
        return {"Authorization": f"Bearer {self._tokens[uid]}"}

    def identity(self, uid: str):
        return self.services.users.identity(uid)

    def notifications_for(self, uid: str) -> list:
        return [n for n in self.store.list("notifications") if n.get("userId") == uid]


def make_world(tmp_path, **overrides) -> World:
    settings = Settings(db_path=str(tmp_path / "eventra.sqlite3"), **overrides)
    return World(settings)


@pytest.fixture
def world(tmp_path):
    return make_world(tmp_path)
