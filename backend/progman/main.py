import logging
from datetime import date

from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .settings import settings
from . import db as dbmod
from .db import Base, session_scope
from .errors import ProgmanError
from .schemas import (
    ProjectCreate, ProjectUpdate, ScheduleUpdate, ScheduleImport,
    CommentPageCreate, CommentUpsert, CategoryProgressUpdate, MilestoneEstimateUpdate,
)
from .utils.dates import iso

# CRUD layers
from .crud import projects as cp
from .crud import schedules as cs
from .crud import comments as cc
from .crud import milestones as cm

from .realtime import events
from .realtime.socket import schedule_socket

logging.basicConfig(level=settings.log_level.upper(),
                    format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# --- App
app = FastAPI(title=settings.app_name)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.on_event("startup")
def startup():
    Base.metadata.create_all(bind=dbmod.engine)

@app.exception_handler(ProgmanError)
def progman_error_handler(request: Request, exc: ProgmanError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse({"error": str(exc)}, status_code=exc.status_code)

@app.get("/health")
def health():
    return {"status": "ok"}

# ------------------
# Projects
# ------------------
@app.get("/api/projects")
def api_projects_list():
    with session_scope() as db:
        return [cp.project_to_dict(p) for p in cp.list_projects(db)]

@app.post("/api/projects", status_code=201)
def api_projects_create(body: ProjectCreate):
    with session_scope() as db:
        p = cp.create_project(db, name=body.name, base_date=body.base_date)
        return cp.project_to_dict(p)

@app.put("/api/projects/{pid}")
def api_projects_update(pid: int, body: ProjectUpdate):
    with session_scope() as db:
        p, delta = cp.update_project(
            db, pid, name=body.name, base_date=body.base_date, shift_actual=body.shift_actual
        )
        out = cp.project_to_dict(p)
    if delta:
        events.broadcast_schedules(pid)
    return {**out, "shifted_days": delta}

@app.delete("/api/projects/{pid}")
def api_projects_delete(pid: int):
    with session_scope() as db:
        cp.delete_project(db, pid)
    return {"success": True}

@app.get("/api/projects/{pid}/summary")
def api_projects_summary(pid: int):
    with session_scope() as db:
        p = cp.get_project(db, pid)
        start, end = cs.schedule_span(db, pid)
        return {"base": iso(p.base_date), "start": iso(start), "end": iso(end)}

# ------------------
# Schedules
# ------------------
@app.get("/api/schedules/{pid}")
def api_schedules_list(pid: int):
    with session_scope() as db:
        return cs.list_schedule_dicts(db, pid)

@app.put("/api/schedules/{sid}")
def api_schedules_update(sid: int, body: ScheduleUpdate):
    fields = body.model_dump(exclude_unset=True)
    with session_scope() as db:
        row = cs.update_schedule_row(db, sid, fields)
        pid = row.project_id
        out = cs.schedule_to_dict(row)
    events.broadcast_schedules(pid)
    return {"success": True, "schedule": out}

@app.post("/api/schedules/{pid}/import")
def api_schedules_import(pid: int, body: ScheduleImport):
    with session_scope() as db:
        imported = cs.import_from_spreadsheet(db, pid, [r.model_dump() for r in body.rows])
        count = len(cs.list_schedules(db, pid))
    events.broadcast_schedules(pid)
    return {"ok": True, "imported": imported, "updated_count": count}

# Milestones
@app.get("/api/schedules/{pid}/milestone-estimates")
def api_estimates_list(pid: int):
    with session_scope() as db:
        return [cm.estimate_to_dict(e) for e in cm.list_estimates(db, pid)]

@app.put("/api/schedules/{pid}/milestone-estimates/{sid}")
def api_estimates_set(pid: int, sid: int, body: MilestoneEstimateUpdate):
    with session_scope() as db:
        e = cm.set_estimate(db, pid, sid, body.estimate_date)
        return {"success": True, "estimate": cm.estimate_to_dict(e) if e else None}

@app.get("/api/schedules/{pid}/milestones")
def api_milestone_board(pid: int):
    with session_scope() as db:
        return cm.milestone_board(db, pid)

# ------------------
# Comments
# ------------------
@app.get("/api/comments/sections")
def api_comment_sections():
    return {
        "overallKey": settings.overall_key,
        "overallLabel": settings.overall_label,
        "left": settings.sections_left,
        "right": settings.sections_right,
    }

@app.get("/api/comments/{pid}/pages")
def api_pages_list(pid: int):
    with session_scope() as db:
        pages = [cc.page_to_dict(p) for p in cc.list_pages(db, pid)]
        latest = cc.latest_page_date(db, pid)
    return {"pages": pages, "latest": iso(latest)}

@app.post("/api/comments/{pid}/pages", status_code=201)
def api_pages_create(pid: int, body: CommentPageCreate):
    with session_scope() as db:
        page = cc.create_page(db, pid, body.comment_date)
        out = cc.page_to_dict(page)
        day = page.comment_date
    events.broadcast_page_created(pid, day)
    return out

@app.delete("/api/comments/{pid}/pages/{day}")
def api_pages_delete(pid: int, day: str):
    with session_scope() as db:
        cc.delete_page(db, pid, day)
    d = cc.require_date(day)
    events.broadcast_page_deleted(pid, d)
    return {"success": True}

@app.get("/api/comments/{pid}/progress")
def api_progress_list(pid: int, date: str):
    with session_scope() as db:
        return [cc.progress_to_dict(p) for p in cc.list_category_progress(db, pid, date)]

@app.put("/api/comments/{pid}/progress")
def api_progress_set(pid: int, body: CategoryProgressUpdate):
    with session_scope() as db:
        row = cc.upsert_category_progress(
            db, project_id=pid, category=body.category,
            progress_date=body.progress_date, status=body.status,
        )
        out = cc.progress_to_dict(row)
        day = row.progress_date
    events.broadcast_progress(pid, day)
    return {"success": True, "progress": out}

@app.get("/api/comments/{pid}")
def api_comments_list(pid: int, date: str | None = None):
    with session_scope() as db:
        if date is None:
            rows = cc.list_project_comments(db, pid)
        else:
            rows = cc.list_comments(db, pid, date)
        return [cc.comment_to_dict(c) for c in rows]

@app.post("/api/comments")
def api_comments_upsert(body: CommentUpsert):
    day = body.comment_date or date.today().isoformat()
    with session_scope() as db:
        c, page_created = cc.upsert_comment(
            db, project_id=body.project_id, owner=body.owner, comment_date=day, body=body.body
        )
        out = cc.comment_to_dict(c)
        pid, d = c.project_id, c.comment_date
    if page_created:
        events.broadcast_page_created(pid, d)
    events.broadcast_comments(pid, d)
    return {"success": True, "comment": out, "page_created": page_created}

# ------------------
# Real-time
# ------------------
@app.websocket("/ws")
async def ws_endpoint(ws: WebSocket):
    await schedule_socket(ws)
