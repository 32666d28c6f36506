"""
Room-based publish/subscribe for live schedule and comment updates.

Rooms are plain strings:
  - project-{id}          schedule viewers; also page created/deleted notices
  - project-{id}-{date}   viewers of one comment page

A subscriber sits in at most one project room and at most one comment-page
room; joining another leaves the previous one. Delivery is a single attempt
to the current members; nothing is stored for clients that are not connected.
The hub knows nothing about the transport: a Subscriber decides how an
event reaches its client.
"""

import asyncio
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Any
from uuid import uuid4

from ..utils.dates import iso

logger = logging.getLogger(__name__)


def project_room(project_id: int) -> str:
    return f"project-{project_id}"


def comment_room(project_id: int, day: date | str) -> str:
    return f"project-{project_id}-{iso(day) if isinstance(day, date) else day}"


@dataclass
class Event:
    """A named event with a JSON-ready payload."""

    name: str
    data: Any = None

    def to_message(self) -> dict:
        return {"event": self.name, "data": self.data}


class Subscriber:
    """A connected client. Subclasses implement deliver()."""

    def __init__(self):
        self.id = uuid4().hex
        self.project_room: str | None = None
        self.comment_room: str | None = None

    def deliver(self, event: Event) -> None:
        raise NotImplementedError


class QueueSubscriber(Subscriber):
    """
    Buffers events on an asyncio queue owned by the connection's loop.
    deliver() is thread-safe, so writes handled in worker threads can publish.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        super().__init__()
        self.loop = loop or asyncio.get_running_loop()
        self.queue: asyncio.Queue = asyncio.Queue()

    def deliver(self, event: Event) -> None:
        self.loop.call_soon_threadsafe(self.queue.put_nowait, event)

    async def next_event(self) -> Event:
        return await self.queue.get()


class RecordingSubscriber(Subscriber):
    """Keeps every delivered event in memory (in-process listeners, tests)."""

    def __init__(self):
        super().__init__()
        self.events: list[Event] = []

    def deliver(self, event: Event) -> None:
        self.events.append(event)

    def named(self, name: str) -> list[Event]:
        return [e for e in self.events if e.name == name]


class RoomHub:
    """Tracks room membership and fans events out to members."""

    def __init__(self):
        self._rooms: dict[str, set[Subscriber]] = defaultdict(set)
        self._lock = threading.Lock()

    # -- membership --

    def join(self, sub: Subscriber, room: str) -> None:
        with self._lock:
            self._rooms[room].add(sub)

    def leave(self, sub: Subscriber, room: str) -> None:
        with self._lock:
            members = self._rooms.get(room)
            if members is None:
                return
            members.discard(sub)
            if not members:
                del self._rooms[room]

    def join_project(self, sub: Subscriber, project_id: int) -> str:
        room = project_room(project_id)
        if sub.project_room and sub.project_room != room:
            self.leave(sub, sub.project_room)
        sub.project_room = room
        self.join(sub, room)
        return room

    def join_comment_page(self, sub: Subscriber, project_id: int, day) -> str:
        room = comment_room(project_id, day)
        if sub.comment_room and sub.comment_room != room:
            self.leave(sub, sub.comment_room)
        sub.comment_room = room
        self.join(sub, room)
        return room

    def leave_comment_page(self, sub: Subscriber) -> None:
        if sub.comment_room:
            self.leave(sub, sub.comment_room)
            sub.comment_room = None

    def leave_all(self, sub: Subscriber) -> None:
        """Drop every membership (disconnect)."""
        with self._lock:
            for room in [r for r, members in self._rooms.items() if sub in members]:
                self._rooms[room].discard(sub)
                if not self._rooms[room]:
                    del self._rooms[room]
        sub.project_room = None
        sub.comment_room = None

    def members(self, room: str) -> list[Subscriber]:
        with self._lock:
            return list(self._rooms.get(room, ()))

    def rooms(self) -> list[str]:
        with self._lock:
            return sorted(self._rooms)

    # -- publish --

    def publish(self, room: str, name: str, data: Any = None) -> int:
        """Deliver to every current member of `room`; returns the number reached."""
        event = Event(name, data)
        reached = 0
        for sub in self.members(room):
            try:
                sub.deliver(event)
                reached += 1
            except Exception:
                logger.warning("dropping %s for subscriber %s in %s", name, sub.id, room, exc_info=True)
                self.leave_all(sub)
        logger.debug("%s -> %s (%s subscribers)", name, room, reached)
        return reached


_hub: RoomHub | None = None


def get_hub() -> RoomHub:
    """Get or create the process-wide hub."""
    global _hub
    if _hub is None:
        _hub = RoomHub()
    return _hub


def reset_hub() -> RoomHub:
    global _hub
    _hub = RoomHub()
    return _hub
