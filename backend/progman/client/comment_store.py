"""Client-side state of a project's comment pages, comments and progress flags."""

from __future__ import annotations

import logging
from datetime import date

from ..errors import Conflict, NotFound, ProgmanError, ValidationError
from ..models import ProgressStatus
from ..settings import settings
from ..utils.dates import parse_iso, iso
from .api import ProgressApiClient
from .autosave import AutosaveScheduler

logger = logging.getLogger(__name__)

# Why a page failed to load; the UI offers "create page" for the first, "retry" for the second.
PAGE_MISSING = "page-missing"
FETCH_FAILED = "fetch-failed"

MESSAGES = {
    PAGE_MISSING: "No comment page exists for this date yet. Create one to start reporting.",
    FETCH_FAILED: "Failed to load comments.",
}


def draft_key(owner: str, day: str) -> str:
    return f"{owner}|{day}"


class CommentStore:
    def __init__(self, api: ProgressApiClient, autosave: AutosaveScheduler | None = None):
        self.api = api
        self.autosave = autosave or AutosaveScheduler()
        self.project_id: int | None = None
        self.date: str | None = None
        self.pages: list[dict] = []
        self.comments: list[dict] = []
        self.progress: list[dict] = []
        self.drafts: dict[str, str] = {}
        self.saving: dict[str, bool] = {}
        self.load_error: str | None = None
        self.error: str | None = None
        self.notice: str | None = None

    @property
    def message(self) -> str | None:
        return MESSAGES.get(self.load_error) if self.load_error else self.error

    @property
    def latest_date(self) -> str | None:
        dates = [p["comment_date"] for p in self.pages]
        return max(dates) if dates else None

    # -- pages --

    async def load_pages(self, project_id: int) -> list[dict]:
        self.project_id = project_id
        try:
            res = await self.api.list_pages(project_id)
        except ProgmanError as e:
            self.error = f"Failed to load comment pages: {e}"
            return self.pages
        self.pages = res["pages"]
        return self.pages

    async def open_page(self, day: str | date | None = None) -> bool:
        """Load comments and progress for `day` (default: the latest page)."""
        d = iso(parse_iso(day)) if day else self.latest_date
        self.date = d
        self.comments, self.progress = [], []
        if d is None:
            self.load_error = PAGE_MISSING
            return False
        try:
            self.comments = await self.api.list_comments(self.project_id, d)
            self.progress = await self.api.list_progress(self.project_id, d)
        except NotFound:
            self.load_error = PAGE_MISSING
            return False
        except ProgmanError as e:
            logger.warning("loading comments for %s failed: %s", d, e)
            self.load_error = FETCH_FAILED
            return False
        self.load_error = None
        return True

    async def create_page(self, day: str) -> bool:
        try:
            page = await self.api.create_page(self.project_id, day)
        except Conflict:
            self.error = "A comment page for this date already exists."
            return False
        except ValidationError:
            self.error = "Choose a valid date."
            return False
        except ProgmanError:
            self.error = "Failed to create the comment page."
            return False
        self._add_page(page["comment_date"])
        self.error = None
        return True

    async def delete_page(self, day: str) -> bool:
        try:
            await self.api.delete_page(self.project_id, day)
        except ProgmanError:
            self.error = "Failed to delete the comment page."
            return False
        self._drop_page(day)
        self.error = None
        self.notice = "Comment page deleted."
        return True

    def _add_page(self, day: str) -> None:
        if not any(p["comment_date"] == day for p in self.pages):
            self.pages.append({"project_id": self.project_id, "comment_date": day})
            self.pages.sort(key=lambda p: p["comment_date"], reverse=True)

    def _drop_page(self, day: str) -> None:
        self.pages = [p for p in self.pages if p["comment_date"] != day]
        if self.date == day:
            self.comments, self.progress = [], []
            self.load_error = PAGE_MISSING

    # -- comments --

    def body_for(self, owner: str) -> str:
        """Draft if the user typed one, else the stored comment."""
        if not self.date:
            return ""
        key = draft_key(owner, self.date)
        if key in self.drafts:
            return self.drafts[key]
        found = next((c for c in self.comments if c["owner"] == owner), None)
        return found["body"] if found else ""

    def overall_body(self) -> str:
        return self.body_for(settings.overall_key)

    def edit_comment(self, owner: str, body: str) -> None:
        """Record a keystroke; the save goes out after the autosave quiet period."""
        if not self.date or self.project_id is None:
            return
        day, pid = self.date, self.project_id
        key = draft_key(owner, day)
        self.drafts[key] = body
        self.saving[key] = True
        self.autosave.schedule(key, lambda: self._save_comment(pid, owner, day, body))

    async def _save_comment(self, project_id: int, owner: str, day: str, body: str) -> None:
        key = draft_key(owner, day)
        try:
            await self.api.upsert_comment(project_id, owner, body, day)
        except ProgmanError as e:
            logger.warning("saving comment %s failed: %s", key, e)
            self.error = "Failed to save comment"
            return
        finally:
            self.saving[key] = False
        if self.date == day:
            self._put_comment(owner, day, body)
            self._add_page(day)
        if self.drafts.get(key) == body and not self.autosave.pending(key):
            del self.drafts[key]

    def _put_comment(self, owner: str, day: str, body: str) -> None:
        for c in self.comments:
            if c["owner"] == owner:
                c["body"] = body
                return
        self.comments.append({"project_id": self.project_id, "owner": owner, "comment_date": day, "body": body})

    # -- category progress --

    def status_for(self, category: str) -> str:
        found = next((p for p in self.progress if p["category"] == category), None)
        return found["status"] if found else ProgressStatus.idle.value

    async def set_progress(self, category: str, status: str) -> bool:
        if not self.date or self.project_id is None:
            return False
        try:
            st = ProgressStatus(status)
        except ValueError:
            self.error = f"Unknown status: {status}"
            return False
        key = draft_key(category, self.date)
        self.saving[key] = True
        try:
            await self.api.set_progress(self.project_id, category, self.date, st.value)
        except ProgmanError as e:
            logger.warning("saving progress %s failed: %s", key, e)
            self.error = "Failed to save progress"
            return False
        finally:
            self.saving[key] = False
        self.progress = [p for p in self.progress if p["category"] != category] + [
            {"project_id": self.project_id, "category": category, "progress_date": self.date, "status": st.value}
        ]
        return True

    # -- live events --

    def handle_event(self, name: str, payload) -> None:
        payload = payload or {}
        if name == "comments-updated" and payload.get("date") == self.date:
            self.comments = payload.get("comments", [])
        elif name == "progress-updated" and payload.get("date") == self.date:
            self.progress = payload.get("progressList", [])
        elif name == "comment-page-created" and payload.get("projectId") == self.project_id:
            self._add_page(payload["comment_date"])
        elif name == "comment-page-deleted" and payload.get("projectId") == self.project_id:
            self._drop_page(payload["comment_date"])
        elif name == "error":
            self.error = payload.get("message")

    async def close(self) -> None:
        """Flush unsent drafts (leaving the page)."""
        await self.autosave.flush()
