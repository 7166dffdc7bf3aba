"""In-process change feed and presence channel.

Stands in for the hosted realtime service: every subscriber of a room,
the writer included, is told about each committed change, and gets the
full presence set whenever someone announces or drops out.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger(__name__)

PRESENCE_STATUSES = ("online", "away", "offline")


@dataclass(frozen=True)
class ChangeEvent:
    kind: str  # "insert" | "update" | "delete"
    room_id: str
    record: dict | None


@dataclass(frozen=True)
class PresenceEntry:
    user_id: str
    username: str
    status: str = "online"
    last_seen_at: str = ""


@dataclass(eq=False)
class Subscription:
    room_id: str
    on_change: Callable[[ChangeEvent], None]
    on_presence: Callable[[list[PresenceEntry]], None] | None = None
    active: bool = True


@dataclass
class Channel:
    """Per-room fan-out of change events and presence."""

    _subscribers: dict[str, list[Subscription]] = field(default_factory=dict)
    _presence: dict[str, dict[Subscription, PresenceEntry]] = field(default_factory=dict)

    def subscribe(
        self,
        room_id: str,
        on_change: Callable[[ChangeEvent], None],
        on_presence: Callable[[list[PresenceEntry]], None] | None = None,
    ) -> Subscription:
        sub = Subscription(room_id=room_id, on_change=on_change, on_presence=on_presence)
        self._subscribers.setdefault(room_id, []).append(sub)
        logger.debug("Subscribed to room %s (%d listeners)", room_id, len(self._subscribers[room_id]))
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        if not sub.active:
            return
        sub.active = False
        subs = self._subscribers.get(sub.room_id, [])
        if sub in subs:
            subs.remove(sub)
        if self._presence.get(sub.room_id, {}).pop(sub, None) is not None:
            self._broadcast_presence(sub.room_id)

    def publish(self, event: ChangeEvent) -> None:
        for sub in list(self._subscribers.get(event.room_id, [])):
            # Each listener gets its own copy of the row
            delivered = ChangeEvent(event.kind, event.room_id, copy.deepcopy(event.record))
            try:
                sub.on_change(delivered)
            except Exception:
                logger.exception("Change listener failed for room %s", event.room_id)

    # ── Presence ─────────────────────────────────────────────────────

    def track(self, sub: Subscription, entry: PresenceEntry) -> None:
        if not sub.active:
            return
        self._presence.setdefault(sub.room_id, {})[sub] = entry
        self._broadcast_presence(sub.room_id)

    def untrack(self, sub: Subscription) -> None:
        if self._presence.get(sub.room_id, {}).pop(sub, None) is not None:
            self._broadcast_presence(sub.room_id)

    def presence_state(self, room_id: str) -> list[PresenceEntry]:
        """Everyone announced in *room_id*, one entry per user."""
        seen: dict[str, PresenceEntry] = {}
        for entry in self._presence.get(room_id, {}).values():
            seen.setdefault(entry.user_id, entry)
        return list(seen.values())

    def _broadcast_presence(self, room_id: str) -> None:
        state = self.presence_state(room_id)
        for sub in list(self._subscribers.get(room_id, [])):
            if sub.on_presence is None:
                continue
            try:
                sub.on_presence(list(state))
            except Exception:
                logger.exception("Presence listener failed for room %s", room_id)
