"""
Shared pytest fixtures for the CivicDesk test suite.

Everything runs against an in-process mongomock database with a fixed clock,
so no MongoDB server or .env file is needed.
"""

import os

# The app refuses to import without a strong secret
os.environ.setdefault("JWT_SECRET", "test-secret-0123456789abcdefghijklmnopqrstuvwxyz")

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import httpx
import mongomock
import pytest
import pytest_asyncio

from civicdesk.models import Department, Incident, Officer
from civicdesk.store import MongoStore
from civicdesk.workflow import EscalationService

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that only moves when a test says so."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FixedClock(T0)


@pytest.fixture
def store():
    s = MongoStore(mongomock.MongoClient().civicdesk_test)
    s.ensure_indexes()
    return s


@pytest.fixture
def service(store, clock):
    return EscalationService(store, clock=clock)


# ---------------------------------------------------------------------------
# Seeded world: four departments, officers at every level, three incidents
# ---------------------------------------------------------------------------
DEPARTMENTS = [
    ("dept-dist", "District Collectorate", "DIST", 3, None),
    ("dept-water", "Water Supply", "WATER", 2, "dept-dist"),
    ("dept-roads", "Rural Roads", "ROADS", 2, "dept-dist"),
    ("dept-health", "Block Health", "HEALTH", 2, "dept-dist"),
]

# (officer id, user id, department, level, name, active)
OFFICERS = [
    ("off-w1", "u-w1", "dept-water", 1, "Manas Rout", True),
    ("off-w1b", "u-w1b", "dept-water", 1, "Nirupama Das", True),
    ("off-w2", "u-w2", "dept-water", 2, "Anil Panigrahi", True),
    ("off-w3", "u-w3", "dept-water", 3, "Ranjit Mishra", True),
    ("off-r1", "u-r1", "dept-roads", 1, "Ipsita Nayak", True),
    ("off-r2-old", "u-r2-old", "dept-roads", 2, "Aaron Retired", False),
    ("off-r2", "u-r2", "dept-roads", 2, "Sujata Mohanty", True),
    ("off-r3", "u-r3", "dept-roads", 3, "Debashis Swain", True),
    ("off-h2", "u-h2", "dept-health", 2, "Sasmita Behera", True),
]

DESIGNATIONS = {1: "Junior Engineer", 2: "Assistant Engineer", 3: "Executive Engineer"}


@pytest.fixture
def world(store):
    for dept_id, name, code, level, parent in DEPARTMENTS:
        store.insert_department(Department(id=dept_id, name=name, code=code,
                                           hierarchy_level=level, parent_id=parent))
    store.insert_department(Department(id="dept-closed", name="Old Irrigation Cell", code="IRR",
                                       hierarchy_level=2, is_active=False))
    for officer_id, user_id, dept_id, level, name, active in OFFICERS:
        store.insert_officer(Officer(id=officer_id, user_id=user_id, department_id=dept_id,
                                     name=name, designation=DESIGNATIONS[level],
                                     escalation_level=level, is_active=active))
    store.insert_incident(Incident(id="inc-water", title="Tube well contaminated",
                                   category_id="water", severity=2, estimated_cost=10_000,
                                   created_at=T0 - timedelta(hours=2)))
    store.insert_incident(Incident(id="inc-road", title="Culvert collapsed",
                                   category_id="road", severity=3, estimated_cost=750_000,
                                   created_at=T0 - timedelta(days=4)))
    store.insert_incident(Incident(id="inc-flood", title="Embankment breach",
                                   category_id="FLOOD", severity=4, estimated_cost=1_200_000,
                                   created_at=T0 - timedelta(minutes=30)))
    return SimpleNamespace(
        departments={code: dept_id for dept_id, _, code, _, _ in DEPARTMENTS},
        officers={o[0]: o[1] for o in OFFICERS},
    )


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------
USERS = [(user_id, user_id[2:], "officer") for _, user_id, *_ in OFFICERS] + [
    ("u-admin", "admin", "admin"),
    ("u-citizen", "citizen1", "citizen"),
]


@pytest_asyncio.fixture
async def client(store, service, world):
    """In-process httpx AsyncClient wired to the test store and service."""
    from civicdesk.app import app, get_service, get_store, limiter

    limiter.enabled = False
    for user_id, username, role in USERS:
        store.db.users.insert_one({"_id": user_id, "username": username,
                                   "full_name": username, "role": role})
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_service] = lambda: service
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    """Returns a helper that mints Authorization headers for a seeded username."""
    from civicdesk.app import create_access_token

    def headers(username: str, role: str = "officer") -> dict:
        return {"Authorization": f"Bearer {create_access_token({'sub': username, 'role': role})}"}
    return headers
