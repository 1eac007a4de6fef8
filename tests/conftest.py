"""Shared fixtures for automation engine tests."""

from datetime import datetime, timezone

import pytest

from automation_engine.config import Settings
from automation_engine.db.database import Database
from automation_engine.service import AutomationService
from automation_engine.tasks.models import Assignee, TaskSnapshot, TeamMember
from automation_engine.tasks.store import InMemoryTaskStore

TEAM = "team-1"
NOW = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


def make_task(task_id="task-1", **fields) -> TaskSnapshot:
    data = {
        "id": task_id,
        "title": "Write quarterly report",
        "team_id": TEAM,
        "created_at": NOW,
    }
    data.update(fields)
    if "assignees" in data:
        data["assignees"] = [
            Assignee(id=a, name=a.title()) if isinstance(a, str) else a
            for a in data["assignees"]
        ]
    return TaskSnapshot(**data)


@pytest.fixture
def members():
    return [
        TeamMember(id="alice", name="Alice"),
        TeamMember(id="bob", name="Bob"),
        TeamMember(id="carol", name="Carol"),
    ]


@pytest.fixture
def store(members):
    return InMemoryTaskStore(tasks=[make_task()], members={TEAM: members})


@pytest.fixture
def database():
    """In-memory SQLite database with all tables created."""
    db = Database("sqlite://")
    db.init_db()
    yield db
    db.engine.dispose()


@pytest.fixture
def db(database):
    session = database.get_session()
    yield session
    session.close()


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://")


@pytest.fixture
def service(db, store, settings):
    return AutomationService(db, store, settings)
