"""
WebSocket transport for the room hub.

Frames are JSON objects {"event": name, "data": payload} in both directions.
Client -> server: join-project, update-schedule, join-comment-page,
leave-comment-page, refresh-comments.
Server -> client: joined, schedules-updated, comments-updated,
progress-updated, comment-page-created, comment-page-deleted, error.
"""

import asyncio
import json
import logging

from fastapi import WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from ..crud import schedules as cs
from ..db import session_scope
from ..errors import ProgmanError
from ..utils.dates import parse_iso
from . import events
from .hub import Event, QueueSubscriber, get_hub

logger = logging.getLogger(__name__)


def _project_id(data, fallback: str | None = None) -> int | None:
    """Accept a bare id, {"projectId": id} or {"project_id": id}."""
    value = data
    if isinstance(data, dict):
        value = data.get("projectId", data.get("project_id"))
    if value is None and fallback:
        value = fallback.split("-")[1]
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _row_id(value) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _apply_schedule_update(schedule_id: int, fields: dict) -> int:
    with session_scope() as db:
        row = cs.update_schedule_row(db, schedule_id, fields)
        return row.project_id


class SocketSession:
    """One connected client: dispatches its frames and pumps hub events to it."""

    def __init__(self, ws: WebSocket):
        self.ws = ws
        self.hub = get_hub()
        self.sub = QueueSubscriber()

    def reply(self, name: str, data=None) -> None:
        self.sub.deliver(Event(name, data))

    def error(self, message: str) -> None:
        self.reply("error", {"message": message})

    async def pump(self) -> None:
        while True:
            event = await self.sub.next_event()
            await self.ws.send_json(event.to_message())

    async def run(self) -> None:
        pump = asyncio.create_task(self.pump())
        try:
            while True:
                raw = await self.ws.receive_text()
                try:
                    frame = json.loads(raw)
                    name, data = frame["event"], frame.get("data")
                    if not isinstance(name, str):
                        raise TypeError(name)
                except (ValueError, KeyError, TypeError, AttributeError):
                    self.error("Malformed message")
                    continue
                try:
                    await self.dispatch(name, data)
                except Exception:
                    logger.exception("socket %s: handling %s failed", self.sub.id, name)
                    self.error(f"Failed to handle {name}")
        except WebSocketDisconnect:
            pass
        finally:
            self.hub.leave_all(self.sub)
            pump.cancel()
            logger.info("socket %s disconnected", self.sub.id)

    async def dispatch(self, name: str, data) -> None:
        handler = {
            "join-project": self.on_join_project,
            "update-schedule": self.on_update_schedule,
            "join-comment-page": self.on_join_comment_page,
            "leave-comment-page": self.on_leave_comment_page,
            "refresh-comments": self.on_refresh_comments,
        }.get(name)
        if handler is None:
            self.error(f"Unknown event: {name}")
            return
        await handler(data)

    async def on_join_project(self, data) -> None:
        pid = _project_id(data)
        if not pid:
            self.error("Project ID is required")
            return
        room = self.hub.join_project(self.sub, pid)
        logger.info("socket %s joined %s", self.sub.id, room)
        self.reply("joined", {"room": room})

    async def on_update_schedule(self, data) -> None:
        """
        With a row id and fields: persist the partial update, then broadcast.
        Without: re-broadcast the current snapshot (a save already went over HTTP).
        """
        data = data if isinstance(data, dict) else {}
        pid = _project_id(data, fallback=self.sub.project_room)
        try:
            if data.get("id") is not None:
                sid = _row_id(data["id"])
                if sid is None:
                    self.error(f"Invalid schedule id: {data['id']!r}")
                    return
                pid = await run_in_threadpool(_apply_schedule_update, sid, data)
        except ProgmanError as e:
            self.error(str(e))
            return
        if not pid:
            self.error("Project ID is required")
            return
        if not await run_in_threadpool(events.broadcast_schedules, pid):
            self.error("Failed to broadcast update")

    async def on_join_comment_page(self, data) -> None:
        data = data if isinstance(data, dict) else {}
        pid = _project_id(data, fallback=self.sub.project_room)
        day = parse_iso(data.get("date"))
        if not pid or not day:
            self.error("Project ID and date are required")
            return
        # page created/deleted notices go to the project room
        self.hub.join_project(self.sub, pid)
        room = self.hub.join_comment_page(self.sub, pid, day)
        logger.info("socket %s joined %s", self.sub.id, room)
        self.reply("joined", {"room": room})

    async def on_leave_comment_page(self, data) -> None:
        self.hub.leave_comment_page(self.sub)

    async def on_refresh_comments(self, data) -> None:
        data = data if isinstance(data, dict) else {}
        current = self.sub.comment_room
        pid = _project_id(data, fallback=current)
        day = parse_iso(data.get("date") or (current[-10:] if current else None))
        if not pid or not day:
            self.error("Project ID and date are required")
            return
        ok = await run_in_threadpool(events.broadcast_comments, pid, day)
        if not ok:
            self.error("Failed to broadcast comments update")


async def schedule_socket(ws: WebSocket) -> None:
    await ws.accept()
    session = SocketSession(ws)
    logger.info("socket %s connected", session.sub.id)
    await session.run()
