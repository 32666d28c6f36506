from datetime import date, datetime
from sqlalchemy import select, delete
from sqlalchemy.orm import Session
from ..errors import NotFound, ValidationError
from ..models import Schedule, MilestoneEstimate
from ..settings import settings
from ..utils.dates import parse_iso, days_between, iso
from ..utils.formatting import delay_label, ymd

def compute_delay(planned, estimate) -> int | None:
    """
    Signed days from the planned date to the estimate.
    > 0 behind schedule, < 0 ahead, 0 on time, None if either date is missing.
    """
    return days_between(planned, estimate)

def estimate_to_dict(e: MilestoneEstimate) -> dict:
    return {
        "project_id": e.project_id,
        "schedule_id": e.schedule_id,
        "estimate_date": iso(e.estimate_date),
        "updated_at": e.updated_at.isoformat() if e.updated_at else None,
    }

def list_estimates(db: Session, project_id: int) -> list[MilestoneEstimate]:
    return list(
        db.execute(
            select(MilestoneEstimate)
            .filter(MilestoneEstimate.project_id == project_id)
            .order_by(MilestoneEstimate.schedule_id)
        ).scalars()
    )

def set_estimate(db: Session, project_id: int, schedule_id: int, estimate_date: str | None) -> MilestoneEstimate | None:
    """Upsert the expected completion date; an empty value deletes the record."""
    row = db.get(Schedule, schedule_id)
    if not row or row.project_id != project_id:
        raise NotFound(f"Schedule {schedule_id} not found in project {project_id}")

    if estimate_date is None or not str(estimate_date).strip():
        db.execute(delete(MilestoneEstimate).where(
            MilestoneEstimate.project_id == project_id, MilestoneEstimate.schedule_id == schedule_id
        ))
        return None

    d = parse_iso(estimate_date)
    if not d:
        raise ValidationError("Invalid estimate date (use YYYY-MM-DD)")
    e = db.execute(
        select(MilestoneEstimate).filter(
            MilestoneEstimate.project_id == project_id, MilestoneEstimate.schedule_id == schedule_id
        )
    ).scalars().first()
    if e is None:
        e = MilestoneEstimate(project_id=project_id, schedule_id=schedule_id)
        db.add(e)
    e.estimate_date = d
    e.updated_at = datetime.utcnow()
    db.flush()
    return e

def milestone_board(db: Session, project_id: int) -> list[dict]:
    """Milestone rows with their planned date, estimate and delay."""
    rows = list(
        db.execute(
            select(Schedule)
            .filter(Schedule.project_id == project_id, Schedule.category == settings.milestone_category)
            .order_by(Schedule.sort_order, Schedule.id)
        ).scalars()
    )
    estimates = {e.schedule_id: e.estimate_date for e in list_estimates(db, project_id)}
    out = []
    for s in rows:
        planned: date | None = s.start_date
        estimate = estimates.get(s.id)
        delay = compute_delay(planned, estimate)
        out.append({
            "schedule_id": s.id,
            "name": s.item,
            "planned_date": iso(planned),
            "planned_label": ymd(planned),
            "estimate_date": iso(estimate),
            "delay_days": delay,
            "delay_label": delay_label(delay),
        })
    return out
