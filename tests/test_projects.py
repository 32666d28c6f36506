from datetime import date

import pytest

from conftest import make_project
from progman.crud import comments as cc
from progman.crud import milestones as cm
from progman.crud import projects as cp
from progman.crud import schedules as cs
from progman.data.initial_schedule import INITIAL_CATEGORIES, template_rows
from progman.db import session_scope
from progman.errors import NotFound, ValidationError
from progman.models import CategoryProgress, Comment, CommentPage, MilestoneEstimate, Schedule


def test_create_seeds_template():
    with session_scope() as db:
        p = cp.create_project(db, name="  Beta  ", seed=True)
        pid = p.id
    with session_scope() as db:
        rows = cs.list_schedules(db, pid)
        assert cp.get_project(db, pid).name == "Beta"
    assert len(rows) == len(template_rows())
    assert rows[0].category == INITIAL_CATEGORIES[0][0] == "Milestone"
    assert [r.sort_order for r in rows] == list(range(len(rows)))


def test_create_without_seed():
    with session_scope() as db:
        pid = cp.create_project(db, name="Empty", seed=False).id
    with session_scope() as db:
        assert cs.list_schedules(db, pid) == []


@pytest.mark.parametrize("kwargs", [{"name": "   "}, {"name": "X", "base_date": "soon"}])
def test_create_rejects_bad_input(kwargs):
    with pytest.raises(ValidationError):
        with session_scope() as db:
            cp.create_project(db, seed=False, **kwargs)


def test_list_newest_first():
    a = make_project("First")
    b = make_project("Second")
    with session_scope() as db:
        ids = [p.id for p in cp.list_projects(db)]
    assert ids.index(b) < ids.index(a)


def test_update_base_date_shifts_schedule(project_id):
    with session_scope() as db:
        p, delta = cp.update_project(db, project_id, base_date="2024-01-20")
        assert p.base_date == date(2024, 1, 20)
    assert delta == 10
    with session_scope() as db:
        starts = [s.start_date for s in cs.list_schedules(db, project_id)]
    assert starts[0] == date(2024, 1, 20)


def test_update_name_only(project_id):
    with session_scope() as db:
        p, delta = cp.update_project(db, project_id, name="Renamed")
    assert (p.name, delta) == ("Renamed", 0)


def test_delete_removes_everything(project_id):
    with session_scope() as db:
        sid = cs.list_schedules(db, project_id)[0].id
        cc.upsert_comment(db, project_id=project_id, owner="Design", comment_date="2024-05-01", body="ok")
        cc.upsert_category_progress(db, project_id=project_id, category="Design",
                                    progress_date="2024-05-01", status="smooth")
        cm.set_estimate(db, project_id, sid, "2024-01-15")
    with session_scope() as db:
        cp.delete_project(db, project_id)
    with session_scope() as db:
        for model in (Schedule, Comment, CommentPage, CategoryProgress, MilestoneEstimate):
            assert db.query(model).filter_by(project_id=project_id).count() == 0
        with pytest.raises(NotFound):
            cp.get_project(db, project_id)


def test_delete_unknown_project():
    with pytest.raises(NotFound):
        with session_scope() as db:
            cp.delete_project(db, 12345)
