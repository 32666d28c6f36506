from __future__ import annotations
import logging
from collections.abc import Mapping
from datetime import date, datetime

from sqlalchemy import select, delete, func
from sqlalchemy.orm import Session

from ..errors import NotFound, ValidationError
from ..models import Project, Schedule
from ..settings import settings
from ..utils.dates import parse_iso, as_days, compute_end_date, iso, shift
from ..utils.formatting import clamp_progress

logger = logging.getLogger(__name__)

# Fields a client may change. end_date / actual_end are always derived.
EDITABLE_FIELDS = (
    "category", "item", "owner", "start_date", "duration",
    "progress", "actual_start", "actual_duration",
)
_DATE_FIELDS = {"start_date", "actual_start"}
_DURATION_FIELDS = {"duration", "actual_duration"}


# ------------------------
# Normalization
# ------------------------

def _clean_date(field: str, value) -> date | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    d = parse_iso(value)
    if d is None:
        raise ValidationError(f"Invalid {field} (use YYYY-MM-DD): {value!r}")
    return d

def _clean_duration(field: str, value) -> int | None:
    if value is None or value == "":
        return None
    n = as_days(value)
    if n is None or n < 0:
        raise ValidationError(f"Invalid {field}: {value!r}")
    return n or None   # 0 means unset

def normalize_fields(fields: Mapping) -> dict:
    """Validate a partial update; unknown keys are dropped."""
    out: dict = {}
    for key in EDITABLE_FIELDS:
        if key not in fields:
            continue
        value = fields[key]
        if key in _DATE_FIELDS:
            out[key] = _clean_date(key, value)
        elif key in _DURATION_FIELDS:
            out[key] = _clean_duration(key, value)
        elif key == "progress":
            out[key] = clamp_progress(value) if value is not None else 0
        elif key == "owner":
            out[key] = (str(value).strip() or None) if value is not None else None
        elif key == "item":
            if not value or not str(value).strip():
                raise ValidationError("Item name is required")
            out[key] = str(value).strip()
        elif key == "category":
            out[key] = (str(value).strip() if value else "") or settings.uncategorized_label
    return out

def _derived_end(label: str, start, duration) -> date | None:
    end = compute_end_date(start, duration)
    if end is None and start and duration:
        raise ValidationError(f"{label} ends past the supported date range")
    return end

def _apply_derived(row: Schedule) -> None:
    row.end_date = _derived_end("Schedule", row.start_date, row.duration)
    row.actual_end = _derived_end("Actual schedule", row.actual_start, row.actual_duration)

def _shifted(d: date, delta_days: int) -> date:
    try:
        return shift(d, delta_days)
    except OverflowError:
        raise ValidationError(f"Shifting {iso(d)} by {delta_days} days leaves the supported date range") from None


# ------------------------
# Read
# ------------------------

def schedule_to_dict(s: Schedule) -> dict:
    """JSON-ready row; derived dates are recomputed from their inputs."""
    return {
        "id": s.id,
        "project_id": s.project_id,
        "category": s.category,
        "item": s.item,
        "owner": s.owner,
        "start_date": iso(s.start_date),
        "duration": s.duration,
        "end_date": iso(compute_end_date(s.start_date, s.duration)),
        "progress": int(s.progress or 0),
        "actual_start": iso(s.actual_start),
        "actual_duration": s.actual_duration,
        "actual_end": iso(compute_end_date(s.actual_start, s.actual_duration)),
        "sort_order": s.sort_order,
        "updated_at": s.updated_at.isoformat() if s.updated_at else None,
    }

def list_schedules(db: Session, project_id: int) -> list[Schedule]:
    return list(
        db.execute(
            select(Schedule)
            .filter(Schedule.project_id == project_id)
            .order_by(Schedule.sort_order, Schedule.id)
        ).scalars()
    )

def list_schedule_dicts(db: Session, project_id: int) -> list[dict]:
    return [schedule_to_dict(s) for s in list_schedules(db, project_id)]

def get_schedule(db: Session, schedule_id: int) -> Schedule:
    row = db.get(Schedule, schedule_id)
    if not row:
        raise NotFound(f"Schedule {schedule_id} not found")
    return row

def schedule_span(db: Session, project_id: int) -> tuple[date | None, date | None]:
    """Earliest planned start and latest planned end of a project."""
    rows = list_schedules(db, project_id)
    starts = [s.start_date for s in rows if s.start_date]
    ends = [e for e in (compute_end_date(s.start_date, s.duration) for s in rows) if e]
    return (min(starts) if starts else None, max(ends) if ends else None)


# ------------------------
# Write
# ------------------------

def update_schedule_row(db: Session, schedule_id: int, fields: Mapping) -> Schedule:
    """
    Shallow-merge `fields` over the persisted row, recompute derived end
    dates and persist. Every call reloads the current row first, so two
    clients editing different fields of one row both land.
    """
    row = get_schedule(db, schedule_id)
    changes = normalize_fields(fields)
    for key, value in changes.items():
        setattr(row, key, value)
    _apply_derived(row)
    row.updated_at = datetime.utcnow()
    db.flush()
    logger.info("schedule %s updated (project %s): %s", row.id, row.project_id, sorted(changes))
    return row

def earliest_start(db: Session, project_id: int) -> date | None:
    return db.execute(
        select(func.min(Schedule.start_date)).where(
            Schedule.project_id == project_id, Schedule.start_date.is_not(None)
        )
    ).scalar_one_or_none()

def shift_project_dates(db: Session, project_id: int, delta_days: int, include_actual: bool = False) -> int:
    """
    Move every planned start by `delta_days` (actual starts too when
    `include_actual`). Runs inside the caller's transaction: either every
    row moves or, on error, the rollback leaves all of them in place.
    Returns the number of rows moved.
    """
    if not delta_days:
        return 0
    moved = 0
    for row in list_schedules(db, project_id):
        touched = False
        if row.start_date:
            row.start_date = _shifted(row.start_date, delta_days)
            touched = True
        if include_actual and row.actual_start:
            row.actual_start = _shifted(row.actual_start, delta_days)
            touched = True
        if touched:
            _apply_derived(row)
            row.updated_at = datetime.utcnow()
            moved += 1
    db.flush()
    logger.info("project %s: shifted %s rows by %+d days", project_id, moved, delta_days)
    return moved

def align_to_base_date(db: Session, project_id: int, base_date: date, include_actual: bool | None = None) -> int:
    """Shift the schedule so its earliest start lands on `base_date`; returns the delta."""
    if include_actual is None:
        include_actual = settings.shift_actual_dates
    first = earliest_start(db, project_id)
    if first is None:
        return 0
    delta = (base_date - first).days
    if delta:
        shift_project_dates(db, project_id, delta, include_actual=include_actual)
    return delta

def insert_rows(db: Session, project_id: int, rows: list[dict]) -> int:
    now = datetime.utcnow()
    for order, r in enumerate(rows):
        row = Schedule(
            project_id=project_id,
            category=r["category"],
            item=r["item"],
            owner=r.get("owner"),
            start_date=r.get("start_date"),
            duration=r.get("duration"),
            progress=r.get("progress") or 0,
            actual_start=r.get("actual_start"),
            actual_duration=r.get("actual_duration"),
            sort_order=order,
            updated_at=now,
        )
        _apply_derived(row)
        db.add(row)
    db.flush()
    return len(rows)

def import_from_spreadsheet(db: Session, project_id: int, rows: list[Mapping]) -> int:
    """
    Replace the project's schedule wholesale with `rows`.
    Rows without an item name are skipped; a blank category becomes the
    'uncategorized' label. Everything is validated before the delete.
    """
    if not db.get(Project, project_id):
        raise NotFound(f"Project {project_id} not found")
    cleaned: list[dict] = []
    for r in rows:
        item = (str(r.get("item") or "")).strip()
        if not item:
            continue
        data = normalize_fields({k: v for k, v in r.items() if k != "item"})
        data["item"] = item
        data.setdefault("category", settings.uncategorized_label)
        cleaned.append(data)
    if not cleaned:
        raise ValidationError("No importable rows (every row needs an item name)")

    db.execute(delete(Schedule).where(Schedule.project_id == project_id))
    count = insert_rows(db, project_id, cleaned)
    logger.info("project %s: imported %s schedule rows", project_id, count)
    return count
