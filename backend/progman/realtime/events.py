"""
Broadcasts issued after a successful write.

Each helper re-reads the full current state in its own session and
publishes it to the matching room. Broadcasting is best effort: a failure
is logged and never undoes the write that triggered it.
"""

import logging
from datetime import date

from ..crud import comments as cc
from ..crud import schedules as cs
from ..db import session_scope
from ..utils.dates import iso
from .hub import get_hub, project_room, comment_room

logger = logging.getLogger(__name__)

SCHEDULES_UPDATED = "schedules-updated"
COMMENTS_UPDATED = "comments-updated"
PROGRESS_UPDATED = "progress-updated"
PAGE_CREATED = "comment-page-created"
PAGE_DELETED = "comment-page-deleted"


def broadcast_schedules(project_id: int) -> bool:
    """Full-snapshot push of the project's schedule to `project-{id}`."""
    try:
        with session_scope() as db:
            rows = cs.list_schedule_dicts(db, project_id)
        get_hub().publish(project_room(project_id), SCHEDULES_UPDATED, rows)
        return True
    except Exception:
        logger.warning("broadcast of schedules for project %s failed", project_id, exc_info=True)
        return False


def broadcast_comments(project_id: int, day: date) -> bool:
    try:
        with session_scope() as db:
            rows = [cc.comment_to_dict(c) for c in cc.list_comments(db, project_id, day)]
        get_hub().publish(comment_room(project_id, day), COMMENTS_UPDATED, {"date": iso(day), "comments": rows})
        return True
    except Exception:
        logger.warning("broadcast of comments for %s/%s failed", project_id, iso(day), exc_info=True)
        return False


def broadcast_progress(project_id: int, day: date) -> bool:
    try:
        with session_scope() as db:
            rows = [cc.progress_to_dict(p) for p in cc.list_category_progress(db, project_id, day)]
        get_hub().publish(comment_room(project_id, day), PROGRESS_UPDATED, {"date": iso(day), "progressList": rows})
        return True
    except Exception:
        logger.warning("broadcast of progress for %s/%s failed", project_id, iso(day), exc_info=True)
        return False


def _page_notice(name: str, project_id: int, day: date) -> bool:
    try:
        get_hub().publish(project_room(project_id), name, {"projectId": project_id, "comment_date": iso(day)})
        return True
    except Exception:
        logger.warning("%s notice for %s/%s failed", name, project_id, iso(day), exc_info=True)
        return False


def broadcast_page_created(project_id: int, day: date) -> bool:
    return _page_notice(PAGE_CREATED, project_id, day)


def broadcast_page_deleted(project_id: int, day: date) -> bool:
    return _page_notice(PAGE_DELETED, project_id, day)
