"""
Client-side cache of one project's schedule rows.

Edits are applied optimistically and then sent to the API. Full snapshots
pushed by the server are merged with a field-preserving heuristic: for the
fields a user types into (start_date, duration, owner, actual_start,
actual_duration), a local value that is non-empty and differs from the
incoming one is assumed to be an edit in flight and wins.

Known limitation: a legitimate remote change to one of those fields is
dropped when this client still holds an older non-empty value. The next
background resync (or reload) replaces rows that have no save in flight.
"""

from __future__ import annotations

import asyncio
import logging

from ..errors import ProgmanError
from ..settings import settings
from ..utils.dates import compute_end_date, compute_elapsed_progress, iso
from .api import ProgressApiClient

logger = logging.getLogger(__name__)

PRESERVED_FIELDS = ("start_date", "duration", "owner", "actual_start", "actual_duration")


def merge_rows(local_rows: list[dict], incoming: list[dict]) -> list[dict]:
    """Merge a server snapshot over local rows (incoming order and membership win)."""
    by_id = {r.get("id"): r for r in local_rows}
    merged = []
    for new in incoming:
        cur = by_id.get(new.get("id"))
        if cur is None:
            merged.append(dict(new))
            continue
        row = dict(new)
        for key in PRESERVED_FIELDS:
            mine = cur.get(key)
            if mine and mine != new.get(key):
                row[key] = mine
        merged.append(_with_derived(row))
    return merged


def group_rows(rows: list[dict]) -> list[tuple[str, list[dict]]]:
    """Group by category in first-seen order; sort_order ascending inside a group."""
    groups: dict[str, list[dict]] = {}
    for r in rows:
        groups.setdefault(r.get("category") or "", []).append(r)
    return [
        (cat, sorted(items, key=lambda r: (r.get("sort_order") or 0, r.get("id") or 0)))
        for cat, items in groups.items()
    ]


def _with_derived(row: dict) -> dict:
    row["end_date"] = iso(compute_end_date(row.get("start_date"), row.get("duration")))
    row["actual_end"] = iso(compute_end_date(row.get("actual_start"), row.get("actual_duration")))
    return row


def display_progress(row: dict, today=None) -> int:
    """Stored progress when set, else the linear elapsed estimate."""
    if row.get("progress"):
        return int(row["progress"])
    return compute_elapsed_progress(row.get("start_date"), row.get("duration"), today)


class ScheduleStore:
    def __init__(self, api: ProgressApiClient, resync_delay: float | None = None):
        self.api = api
        self.resync_delay = settings.resync_delay_seconds if resync_delay is None else resync_delay
        self.project_id: int | None = None
        self.rows: list[dict] = []
        self.saving: dict[int, bool] = {}
        self.loading = False
        self.error: str | None = None
        self._resync: asyncio.Task | None = None

    # -- queries --

    def row(self, row_id: int) -> dict | None:
        return next((r for r in self.rows if r.get("id") == row_id), None)

    def grouped(self) -> list[tuple[str, list[dict]]]:
        return group_rows(self.rows)

    # -- loading --

    async def load(self, project_id: int) -> bool:
        self.project_id = project_id
        self.loading, self.error = True, None
        try:
            self.rows = await self.api.list_schedules(project_id)
            return True
        except ProgmanError as e:
            logger.warning("fetch schedules for %s failed: %s", project_id, e)
            self.error = "Failed to fetch schedules"
            return False
        finally:
            self.loading = False

    # -- edits --

    async def apply_local_edit(self, row_id: int, fields: dict) -> bool:
        """
        Apply `fields` locally at once, then persist. A failed save keeps
        the optimistic value and records `error`; nothing is rolled back.
        """
        current = self.row(row_id)
        if current is not None:
            patched = dict(current, **fields)
            for key in ("duration", "actual_duration"):
                if key in fields and not patched.get(key):
                    patched[key] = None
            self.rows = [_with_derived(patched) if r is current else r for r in self.rows]

        self.saving[row_id] = True
        try:
            await self.api.update_schedule(row_id, fields)
        except ProgmanError as e:
            logger.warning("update of schedule %s failed: %s", row_id, e)
            self.error = f"Failed to update schedule: {e}"
            return False
        finally:
            self.saving[row_id] = False
        self.schedule_resync()
        return True

    def merge_server_snapshot(self, rows: list[dict]) -> list[dict]:
        self.rows = merge_rows(self.rows, rows)
        return self.rows

    def handle_event(self, name: str, payload) -> None:
        if name == "schedules-updated":
            self.merge_server_snapshot(payload or [])
        elif name == "error":
            self.error = (payload or {}).get("message")

    # -- background resync --

    def schedule_resync(self) -> asyncio.Task | None:
        if self.project_id is None:
            return None
        if self._resync and not self._resync.done():
            self._resync.cancel()
        self._resync = asyncio.get_running_loop().create_task(self._resync_after_delay())
        return self._resync

    async def _resync_after_delay(self) -> None:
        await asyncio.sleep(self.resync_delay)
        await self.resync()

    async def resync(self) -> None:
        """
        Re-fetch; rows with a save in flight go through the merge heuristic.
        A row counts as busy if it was saving when the fetch started (the
        snapshot may predate its write) or started saving since.
        """
        busy = {rid for rid, flag in self.saving.items() if flag}
        try:
            fresh = await self.api.list_schedules(self.project_id)
        except ProgmanError as e:
            logger.warning("background resync failed: %s", e)
            return
        busy |= {rid for rid, flag in self.saving.items() if flag}
        merged = merge_rows([r for r in self.rows if r.get("id") in busy], fresh)
        self.rows = merged

    async def aclose(self) -> None:
        if self._resync and not self._resync.done():
            self._resync.cancel()
            try:
                await self._resync
            except asyncio.CancelledError:
                pass
