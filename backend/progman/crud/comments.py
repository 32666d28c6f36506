"""
Comment pages, per-section comments and per-category progress flags.

A page is the status report of one project for one day, unique on
(project_id, comment_date). Pages are created explicitly, except that
upsert_comment() creates the page for its (project, date) when missing:
composing a comment often starts before anyone clicked "new page".
Comments and progress rows are upserted in place (no history).
"""
from __future__ import annotations
import logging
from datetime import date, datetime

from sqlalchemy import select, delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import Conflict, NotFound, ValidationError
from ..models import Project, CommentPage, Comment, CategoryProgress, ProgressStatus
from ..utils.dates import parse_iso, iso

logger = logging.getLogger(__name__)


def require_date(value, field: str = "date") -> date:
    d = parse_iso(value)
    if d is None:
        raise ValidationError(f"Invalid {field} (use YYYY-MM-DD): {value!r}")
    return d

def _require_project_id(project_id) -> int:
    if not project_id:
        raise ValidationError("project_id is required")
    return int(project_id)

def _require_project(db: Session, project_id: int) -> None:
    if not db.get(Project, project_id):
        raise NotFound(f"Project {project_id} not found")


# ------------------------
# Serialization
# ------------------------

def page_to_dict(p: CommentPage) -> dict:
    return {
        "id": p.id,
        "project_id": p.project_id,
        "comment_date": iso(p.comment_date),
        "created_at": p.created_at.isoformat() if p.created_at else None,
    }

def comment_to_dict(c: Comment) -> dict:
    return {
        "id": c.id,
        "project_id": c.project_id,
        "owner": c.owner,
        "comment_date": iso(c.comment_date),
        "body": c.body,
        "updated_at": c.updated_at.isoformat() if c.updated_at else None,
    }

def progress_to_dict(p: CategoryProgress) -> dict:
    return {
        "id": p.id,
        "project_id": p.project_id,
        "category": p.category,
        "progress_date": iso(p.progress_date),
        "status": p.status,
        "updated_at": p.updated_at.isoformat() if p.updated_at else None,
    }


# ------------------------
# Pages
# ------------------------

def list_pages(db: Session, project_id: int) -> list[CommentPage]:
    """Newest first."""
    return list(
        db.execute(
            select(CommentPage)
            .filter(CommentPage.project_id == project_id)
            .order_by(CommentPage.comment_date.desc())
        ).scalars()
    )

def get_page(db: Session, project_id: int, day: date) -> CommentPage | None:
    return db.execute(
        select(CommentPage).filter(CommentPage.project_id == project_id, CommentPage.comment_date == day)
    ).scalars().first()

def latest_page_date(db: Session, project_id: int) -> date | None:
    return db.execute(
        select(func.max(CommentPage.comment_date)).where(CommentPage.project_id == project_id)
    ).scalar_one_or_none()

def _insert_page(db: Session, project_id: int, day: date) -> CommentPage:
    page = CommentPage(project_id=project_id, comment_date=day, created_at=datetime.utcnow())
    try:
        with db.begin_nested():
            db.add(page)
    except IntegrityError as e:
        raise Conflict(f"A comment page for {iso(day)} already exists") from e
    return page

def create_page(db: Session, project_id: int, comment_date) -> CommentPage:
    pid = _require_project_id(project_id)
    day = require_date(comment_date, "comment_date")
    _require_project(db, pid)
    if get_page(db, pid, day):
        raise Conflict(f"A comment page for {iso(day)} already exists")
    page = _insert_page(db, pid, day)
    logger.info("comment page created: project %s, %s", pid, iso(day))
    return page

def delete_page(db: Session, project_id: int, comment_date) -> None:
    """Remove the page with its comments and progress flags; NotFound if absent."""
    day = require_date(comment_date, "comment_date")
    page = get_page(db, project_id, day)
    if not page:
        raise NotFound(f"No comment page for {iso(day)}")
    db.execute(delete(Comment).where(Comment.project_id == project_id, Comment.comment_date == day))
    db.execute(delete(CategoryProgress).where(
        CategoryProgress.project_id == project_id, CategoryProgress.progress_date == day
    ))
    db.delete(page)
    db.flush()
    logger.info("comment page deleted: project %s, %s", project_id, iso(day))

def ensure_page(db: Session, project_id: int, day: date) -> bool:
    """Create the page if missing. Returns True when a page was created."""
    if get_page(db, project_id, day):
        return False
    try:
        _insert_page(db, project_id, day)
    except Conflict:
        return False    # created concurrently
    return True


# ------------------------
# Comments
# ------------------------

def list_comments(db: Session, project_id: int, comment_date) -> list[Comment]:
    day = require_date(comment_date, "date")
    if not get_page(db, project_id, day):
        raise NotFound(f"No comment page for {iso(day)}")
    return list(
        db.execute(
            select(Comment)
            .filter(Comment.project_id == project_id, Comment.comment_date == day)
            .order_by(Comment.owner)
        ).scalars()
    )

def list_project_comments(db: Session, project_id: int) -> list[Comment]:
    return list(
        db.execute(
            select(Comment)
            .filter(Comment.project_id == project_id)
            .order_by(Comment.comment_date.desc(), Comment.owner)
        ).scalars()
    )

def upsert_comment(db: Session, *, project_id, owner: str, comment_date, body: str | None) -> tuple[Comment, bool]:
    """
    Write the comment for (project, owner, date), replacing any previous
    body. Creates the (project, date) page first when it does not exist.
    Returns (comment, page_created).
    """
    pid = _require_project_id(project_id)
    owner = (owner or "").strip()
    if not owner:
        raise ValidationError("owner is required")
    day = require_date(comment_date, "comment_date")
    _require_project(db, pid)
    page_created = ensure_page(db, pid, day)

    stmt = select(Comment).filter(Comment.project_id == pid, Comment.owner == owner, Comment.comment_date == day)
    c = db.execute(stmt).scalars().first()
    now = datetime.utcnow()
    if c is None:
        c = Comment(project_id=pid, owner=owner, comment_date=day, body=body or "", updated_at=now)
        try:
            with db.begin_nested():
                db.add(c)
        except IntegrityError:
            c = db.execute(stmt).scalars().one()
    c.body = body or ""
    c.updated_at = now
    db.flush()
    return c, page_created


# ------------------------
# Category progress
# ------------------------

def parse_status(value) -> ProgressStatus:
    try:
        return ProgressStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in ProgressStatus)
        raise ValidationError(f"Invalid status {value!r} (expected one of: {allowed})") from None

def list_category_progress(db: Session, project_id: int, progress_date) -> list[CategoryProgress]:
    day = require_date(progress_date, "date")
    return list(
        db.execute(
            select(CategoryProgress)
            .filter(CategoryProgress.project_id == project_id, CategoryProgress.progress_date == day)
            .order_by(CategoryProgress.category)
        ).scalars()
    )

def upsert_category_progress(db: Session, *, project_id, category: str, progress_date, status) -> CategoryProgress:
    pid = _require_project_id(project_id)
    category = (category or "").strip()
    if not category:
        raise ValidationError("category is required")
    day = require_date(progress_date, "progress_date")
    st = parse_status(status)
    _require_project(db, pid)

    stmt = select(CategoryProgress).filter(
        CategoryProgress.project_id == pid,
        CategoryProgress.category == category,
        CategoryProgress.progress_date == day,
    )
    row = db.execute(stmt).scalars().first()
    if row is None:
        row = CategoryProgress(project_id=pid, category=category, progress_date=day, status=st.value)
        try:
            with db.begin_nested():
                db.add(row)
        except IntegrityError:
            row = db.execute(stmt).scalars().one()
    row.status = st.value
    row.updated_at = datetime.utcnow()
    db.flush()
    return row
