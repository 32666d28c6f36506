"""
Test configuration: every test gets its own SQLite file and a fresh room hub.

The session factory in progman.db is re-bound to the per-test engine, so the
HTTP routes, the broadcast helpers and direct CRUD calls all share it.
"""

from datetime import date

import pytest
from fastapi.testclient import TestClient

from progman import db as dbmod
from progman import models  # noqa: F401  (registers tables on Base)
from progman.db import Base, make_engine, session_scope
from progman.models import Project, Schedule
from progman.realtime.hub import reset_hub


@pytest.fixture(autouse=True)
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'progman-test.db'}")
    Base.metadata.create_all(bind=eng)
    previous = dbmod.engine
    dbmod.configure(eng)
    yield eng
    dbmod.configure(previous)
    eng.dispose()


@pytest.fixture(autouse=True)
def hub():
    return reset_hub()


@pytest.fixture
def app():
    from progman.main import app as fastapi_app

    return fastapi_app


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def make_project(name="Alpha", rows=(), base_date=None) -> int:
    """Insert a project with the given schedule rows (dicts); returns its id."""
    with session_scope() as db:
        p = Project(name=name, base_date=base_date)
        db.add(p)
        db.flush()
        for order, r in enumerate(rows):
            db.add(Schedule(project_id=p.id, sort_order=r.pop("sort_order", order), **r))
        return p.id


@pytest.fixture
def project_id():
    return make_project(rows=[
        {"category": "Milestone", "item": "Kickoff", "start_date": date(2024, 1, 10), "duration": 1},
        {"category": "Design", "item": "Panel", "owner": "Sato", "start_date": date(2024, 1, 15), "duration": 5},
        {"category": "Design", "item": "Artwork", "start_date": date(2024, 2, 1), "duration": 10,
         "actual_start": date(2024, 2, 3), "actual_duration": 4},
        {"category": "Hardware", "item": "Board"},
    ])


def schedule_ids(project_id: int) -> list[int]:
    with session_scope() as db:
        return [s.id for s in db.query(Schedule).filter_by(project_id=project_id).order_by(Schedule.sort_order)]
