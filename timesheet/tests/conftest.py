import os
import tempfile
from pathlib import Path

_default_test_secret = "test-jwt-secret-for-pytest-only-0000000000000000"
if len(os.environ.get("JWT_SECRET", "")) < 32:
    os.environ["JWT_SECRET"] = _default_test_secret
os.environ["ENV"] = "test"

_default_sqlite_path = Path(tempfile.gettempdir()) / "timesheet_test.db"
TEST_DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{_default_sqlite_path}")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL

import subprocess

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url

from timesheet import database
from timesheet.models import Assignment, Project, Task, TimeEntry, User

PTO_TASK_ID = 99


def _ensure_database_exists(database_url: str) -> None:
    url = make_url(database_url)

    if not url.drivername.startswith("postgresql"):
        return

    db_name = url.database
    admin_url = url.set(database="postgres")
    admin_engine = create_engine(admin_url, isolation_level="AUTOCOMMIT")

    try:
        with admin_engine.connect() as conn:
            exists = conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :name"),
                {"name": db_name},
            ).scalar()
            if not exists:
                safe_db_name = db_name.replace('"', '""')
                conn.execute(text(f'CREATE DATABASE "{safe_db_name}"'))
    finally:
        admin_engine.dispose()


@pytest.fixture(scope="session", autouse=True)
def _prepare_test_database() -> None:
    database.configure_database()

    if make_url(TEST_DATABASE_URL).drivername.startswith("postgresql"):
        _ensure_database_exists(TEST_DATABASE_URL)
        env = os.environ.copy()
        env["DATABASE_URL"] = TEST_DATABASE_URL
        subprocess.run(
            ["alembic", "upgrade", "head"],
            check=True,
            cwd=Path(__file__).resolve().parents[2],
            env=env,
        )
    else:
        database.Base.metadata.drop_all(bind=database.engine)
        database.Base.metadata.create_all(bind=database.engine)

    yield

    if not make_url(TEST_DATABASE_URL).drivername.startswith("postgresql"):
        database.engine.dispose()


def _clear_tables() -> None:
    with database.engine.begin() as conn:
        for table in reversed(database.Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(scope="function", autouse=True)
def _clear_tables_between_tests():
    _clear_tables()
    yield
    _clear_tables()


@pytest.fixture
def db():
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client():
    from timesheet.main import app

    return TestClient(app)


@pytest.fixture
def user_factory():
    counter = {"n": 0}

    def make(name=None, email=None, dept="Engineering"):
        counter["n"] += 1
        n = counter["n"]
        session = database.SessionLocal()
        try:
            user = User(
                name=name or f"User {n}",
                email=email or f"user{n}@example.com",
                dept=dept,
            )
            session.add(user)
            session.commit()
            session.refresh(user)
            return user
        finally:
            session.close()

    return make


@pytest.fixture
def project_factory():
    counter = {"n": 0}

    def make(name=None, code=None, category="project", location="Berlin", client="Acme"):
        counter["n"] += 1
        n = counter["n"]
        session = database.SessionLocal()
        try:
            project = Project(
                name=name or f"Project {n}",
                code=code if code is not None else 1000 + n,
                location=location,
                client=client,
                category=category,
            )
            session.add(project)
            session.commit()
            session.refresh(project)
            return project
        finally:
            session.close()

    return make


@pytest.fixture
def leave_task():
    session = database.SessionLocal()
    try:
        task = Task(task_id=PTO_TASK_ID, task_name="Leave/Holiday", task_dept=None)
        session.add(task)
        session.add(Task(task_id=1, task_name="Development", task_dept="Engineering"))
        session.commit()
        return PTO_TASK_ID
    finally:
        session.close()


@pytest.fixture
def pto_project(project_factory, leave_task):
    return project_factory(name="PTO", code=9000, category="pto", location="", client="")


@pytest.fixture
def auth_headers(client):
    def make(email: str, role: str = "EMPLOYEE") -> dict:
        resp = client.post("/auth/token", json={"email": email, "role": role})
        assert resp.status_code == 200, f"token request failed: {resp.status_code} {resp.text}"
        data = resp.json()
        assert "access_token" in data, f"token response missing access_token: {data}"
        return {"Authorization": f"Bearer {data['access_token']}"}

    return make


@pytest.fixture
def read_leave_entries(leave_task):
    """Leave-task entries of a user ordered by date, as (entry_date, hours, remarks)."""

    def read(user_email: str):
        session = database.SessionLocal()
        try:
            rows = (
                session.query(TimeEntry)
                .filter(TimeEntry.user_email == user_email, TimeEntry.task_id == leave_task)
                .order_by(TimeEntry.entry_date.asc(), TimeEntry.id.asc())
                .all()
            )
            return [(r.entry_date, r.hours, r.remarks) for r in rows]
        finally:
            session.close()

    return read


@pytest.fixture
def read_assignments():
    def read(user_id: int, project_id: int):
        session = database.SessionLocal()
        try:
            rows = (
                session.query(Assignment)
                .filter(Assignment.user_id == user_id, Assignment.project_id == project_id)
                .order_by(Assignment.start_date.asc(), Assignment.id.asc())
                .all()
            )
            return [(r.allocation_hours, r.start_date, r.end_date) for r in rows]
        finally:
            session.close()

    return read
