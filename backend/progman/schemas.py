from pydantic import BaseModel, Field

# Request bodies. Dates travel as 'YYYY-MM-DD' strings and are validated by
# the CRUD layer so malformed values get the same 400 on every entry point.

class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    base_date: str | None = None

class ProjectUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=200)
    base_date: str | None = None
    shift_actual: bool | None = None

class ScheduleUpdate(BaseModel):
    """Partial update; only the keys actually sent are merged."""
    category: str | None = None
    item: str | None = None
    owner: str | None = None
    start_date: str | None = None
    duration: int | None = None
    progress: float | None = None
    actual_start: str | None = None
    actual_duration: int | None = None
    class Config:
        extra = "ignore"   # end_date / actual_end from clients are never trusted

class ImportRow(BaseModel):
    category: str | None = None
    item: str | None = None
    owner: str | None = None
    start_date: str | None = None
    duration: int | None = None
    progress: float | None = 0
    actual_start: str | None = None
    actual_duration: int | None = None

class ScheduleImport(BaseModel):
    rows: list[ImportRow]

class CommentPageCreate(BaseModel):
    comment_date: str

class CommentUpsert(BaseModel):
    project_id: int
    owner: str
    body: str = ""
    comment_date: str | None = None   # defaults to today

class CategoryProgressUpdate(BaseModel):
    category: str
    progress_date: str
    status: str

class MilestoneEstimateUpdate(BaseModel):
    estimate_date: str | None = None
