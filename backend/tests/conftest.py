"""
Shared fixtures: in-memory SQLite database, seeded QA directory and releases,
and a FastAPI TestClient.
"""
import os

# Must be set before any app module is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-signing-key-for-the-qa-release-tracker-suite"
os.environ["OPERATOR_API_KEY"] = "operator-test-key"
os.environ["CORS_ORIGINS"] = "https://testserver"
os.environ["CREDENTIAL_STRATEGY"] = "plaintext"

from datetime import date

import pytest
from fastapi.testclient import TestClient

from app.config import get_settings
from app.database import Base, SessionLocal, engine
from app.models.db_models import (
    DailyReleaseDB, EmployeeDB, EmployeeStatus, ModuleAccessDB, TeamMemberDB,
)

QA_TEAM = 6
RELEASE_DAY = date(2026, 1, 9)
NEXT_DAY = date(2026, 1, 10)


# =============================================================================
# SEED HELPERS
# =============================================================================

def add_employee(db, emp_code, name, password, access="111", sub_team=None, active=True):
    db.add(EmployeeDB(
        emp_code=emp_code,
        emp_name=name,
        password=password,
        status_id=EmployeeStatus.ACTIVE if active else EmployeeStatus.INACTIVE,
    ))
    if access is not None:
        db.add(ModuleAccessDB(emp_code=emp_code, module_code="QA", access_code=access))
    if sub_team is not None:
        db.add(TeamMemberDB(team_id=QA_TEAM, sub_team=sub_team, member_id=emp_code))


def add_release(db, crf_id, request_id, release_date, techlead, testers, release_type="Regular"):
    release = DailyReleaseDB(
        crf_id=crf_id,
        request_id=request_id,
        crf_name=f"{crf_id} change",
        release_date=release_date,
        release_type=release_type,
        techlead_name=techlead,
        developer_name="DEV ONE",
        tester_tl_name=techlead,
        tester_name=testers,
    )
    db.add(release)
    return release


def seed_directory(db):
    """
    Sub-team 1 is led by JIJIN E H (ALICE, BOB); sub-team 2 by
    MURUGESAN P (CAROL). DAVE has QA access but no team membership.
    """
    add_employee(db, 1001, "ALICE", "pw1", access="111", sub_team=1)
    add_employee(db, 1002, "BOB", "pw2", access="000", sub_team=1)
    add_employee(db, 1003, "CAROL", "pw3", access="111", sub_team=2)
    add_employee(db, 1004, "DAVE", "pw4", access="111")
    add_employee(db, 1005, "EVE", "pw5", access="111", sub_team=1, active=False)
    add_employee(db, 1101, "JIJIN E H", "lead1", access="111", sub_team=1)
    add_employee(db, 1102, "MURUGESAN P", "lead2", access="111", sub_team=2)


def seed_releases(db):
    add_release(db, "CRF100", "REQ1", RELEASE_DAY, "JIJIN E H", "Alice, Bob")
    add_release(db, "CRF200", "REQ2", RELEASE_DAY, "MURUGESAN P", "CAROL", release_type="Hotfix")
    add_release(db, "CRF300", "REQ3", NEXT_DAY, "JIJIN E H", "")


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def fresh_db():
    """Empty schema for every test."""
    from app.models import db_models  # noqa: F401
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def seeded(fresh_db):
    """Directory and releases committed, seeding session closed."""
    db = SessionLocal()
    try:
        seed_directory(db)
        seed_releases(db)
        db.commit()
    finally:
        db.close()


@pytest.fixture
def db_session(seeded):
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(seeded):
    from app.main import app
    with TestClient(app, base_url="https://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()


def login(client, emp_code, password):
    response = client.post("/auth/login", json={"empCode": emp_code, "password": password})
    assert response.status_code == 200, response.text
    # The cookie would win over the bearer header; tests switch users by header
    client.cookies.clear()
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def alice_headers(client):
    return login(client, 1001, "pw1")


@pytest.fixture
def lead_headers(client):
    return login(client, 1101, "lead1")


@pytest.fixture
def login_as(client):
    """Log in and return bearer headers for the given employee."""
    return lambda emp_code, password: login(client, emp_code, password)
