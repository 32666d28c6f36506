import logging
from sqlalchemy import select, delete
from sqlalchemy.orm import Session
from ..errors import NotFound, ValidationError
from ..models import Project, Schedule, CommentPage, Comment, CategoryProgress, MilestoneEstimate
from ..settings import settings
from ..data.initial_schedule import template_rows
from ..utils.dates import parse_iso, iso
from .schedules import insert_rows, align_to_base_date

logger = logging.getLogger(__name__)

# Child tables, deleted in this order before the project row itself.
_OWNED = (Schedule, MilestoneEstimate, Comment, CommentPage, CategoryProgress)

def _parse_base_date(value: str | None):
    if value is None or not str(value).strip():
        return None
    d = parse_iso(value)
    if not d:
        raise ValidationError("Invalid base date (use YYYY-MM-DD)")
    return d

def project_to_dict(p: Project) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "base_date": iso(p.base_date),
        "created_at": p.created_at.isoformat() if p.created_at else None,
    }

def list_projects(db: Session) -> list[Project]:
    return list(db.execute(select(Project).order_by(Project.created_at.desc(), Project.id.desc())).scalars())

def get_project(db: Session, project_id: int) -> Project:
    p = db.get(Project, project_id)
    if not p:
        raise NotFound(f"Project {project_id} not found")
    return p

def create_project(db: Session, *, name: str, base_date: str | None = None, seed: bool | None = None) -> Project:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Project name is required")
    p = Project(name=name, base_date=_parse_base_date(base_date))
    db.add(p)
    db.flush()  # to have p.id
    if settings.seed_new_projects if seed is None else seed:
        insert_rows(db, p.id, template_rows())
    logger.info("project %s created: %s", p.id, name)
    return p

def update_project(
    db: Session, project_id: int, *, name: str | None = None,
    base_date: str | None = None, shift_actual: bool | None = None
) -> tuple[Project, int]:
    """
    Rename and/or re-anchor a project. A non-empty base_date shifts the
    whole schedule in the same transaction. Returns (project, shift delta).
    """
    p = get_project(db, project_id)
    if name is not None:
        if not name.strip():
            raise ValidationError("Project name is required")
        p.name = name.strip()
    delta = 0
    new_base = _parse_base_date(base_date)
    if new_base is not None:
        p.base_date = new_base
        delta = align_to_base_date(db, project_id, new_base, include_actual=shift_actual)
    db.flush()
    return p, delta

def delete_project(db: Session, project_id: int) -> None:
    """Delete a project and everything it owns (children first, one transaction)."""
    p = get_project(db, project_id)
    for model in _OWNED:
        db.execute(delete(model).where(model.project_id == project_id))
    db.delete(p)
    db.flush()
    logger.info("project %s deleted", project_id)
