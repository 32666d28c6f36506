from datetime import date, datetime
from enum import Enum
from sqlalchemy import String, Text, Integer, Date, DateTime, UniqueConstraint, CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column
from .db import Base

# --- Enums ---

class ProgressStatus(str, Enum):
    smooth = "smooth"
    caution = "caution"
    danger = "danger"
    idle = "idle"

# --- Projects ---

class Project(Base):
    __tablename__ = "projects"
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    base_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

# --- Schedule rows ---
# No ORM relationships/cascades on purpose: child rows are removed by the
# project delete transaction, children first.

class Schedule(Base):
    __tablename__ = "schedules"
    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[int] = mapped_column(Integer, index=True)
    category: Mapped[str] = mapped_column(String(200))
    item: Mapped[str] = mapped_column(String(500))
    owner: Mapped[str | None] = mapped_column(String(200), nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)     # derived
    progress: Mapped[int] = mapped_column(Integer, default=0)               # 0..100
    actual_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    actual_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    actual_end: Mapped[date | None] = mapped_column(Date, nullable=True)   # derived
    sort_order: Mapped[int] = mapped_column(Integer)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (Index("ix_schedules_project_sort", "project_id", "sort_order"),)

# --- Comment pages / comments ---

class CommentPage(Base):
    __tablename__ = "comment_pages"
    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[int] = mapped_column(Integer, index=True)
    comment_date: Mapped[date] = mapped_column(Date)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (UniqueConstraint("project_id", "comment_date", name="uq_comment_page"),)

class Comment(Base):
    __tablename__ = "comments"
    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[int] = mapped_column(Integer, index=True)
    owner: Mapped[str] = mapped_column(String(200))   # section name or settings.overall_key
    comment_date: Mapped[date] = mapped_column(Date)
    body: Mapped[str] = mapped_column(Text(), default="")
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (UniqueConstraint("project_id", "owner", "comment_date", name="uq_comment_owner_date"),)

class CategoryProgress(Base):
    __tablename__ = "category_progress"
    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[int] = mapped_column(Integer, index=True)
    category: Mapped[str] = mapped_column(String(200))
    progress_date: Mapped[date] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(20), default=ProgressStatus.idle.value)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("project_id", "category", "progress_date", name="uq_category_progress"),
        CheckConstraint("status IN ('smooth', 'caution', 'danger', 'idle')", name="ck_category_progress_status"),
    )

# --- Milestone estimates ---

class MilestoneEstimate(Base):
    __tablename__ = "milestone_estimates"
    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[int] = mapped_column(Integer, index=True)
    schedule_id: Mapped[int] = mapped_column(Integer)
    estimate_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (UniqueConstraint("project_id", "schedule_id", name="uq_milestone_estimate"),)
