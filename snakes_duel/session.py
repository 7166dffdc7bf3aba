"""One client's view of a match, kept in sync with the shared document.

Local actions turn into store writes. The session never edits its own
copy of the match: it waits for the store's change event (which the
writer receives too) and swaps in the whole snapshot.
"""

from __future__ import annotations

import asyncio
import logging
import random
from datetime import datetime, timezone

from snakes_duel.board import generate_layout
from snakes_duel.chat import ChatEntry, MessageLog
from snakes_duel.config import Settings, get_settings
from snakes_duel.errors import (
    FullRoomError,
    LayoutError,
    NotFoundError,
    RowNotFound,
    TransportError,
    ValidationError,
)
from snakes_duel.match import (
    MatchDocument,
    RollResult,
    apply_roll,
    clear_roll,
    join,
    new_match,
)
from snakes_duel.realtime import (
    PRESENCE_STATUSES,
    ChangeEvent,
    Channel,
    PresenceEntry,
    Subscription,
)
from snakes_duel.store import DocumentStore

logger = logging.getLogger(__name__)


def normalize_room_code(room_id: str) -> str:
    return room_id.strip().upper()


class MatchSession:
    """Match coordinator for a single connected player."""

    def __init__(
        self,
        user_id: str,
        store: DocumentStore,
        channel: Channel,
        settings: Settings | None = None,
        rng: random.Random | None = None,
    ):
        self.user_id = user_id
        self.store = store
        self.channel = channel
        self.settings = settings or get_settings()
        self.rng = rng or random.Random()
        self.display_name = "Player"
        self.room_id: str | None = None
        self.error: Exception | None = None
        self.loading = False
        self._match: MatchDocument | None = None
        self._presence: list[PresenceEntry] = []
        self._subscription: Subscription | None = None
        self._status = "online"
        self._pending: set[asyncio.Task] = set()
        self._log = MessageLog(store)

    # ── Read-only projections ───────────────────────────────────────

    @property
    def match(self) -> MatchDocument | None:
        return self._match

    @property
    def is_connected(self) -> bool:
        return self._subscription is not None and self._subscription.active

    @property
    def presence(self) -> list[PresenceEntry]:
        return list(self._presence)

    @property
    def messages(self) -> list[ChatEntry]:
        return list(self._match.messages) if self._match else []

    @property
    def is_my_turn(self) -> bool:
        return self._match is not None and self._match.current_turn == self.user_id

    # ── Inbound events ───────────────────────────────────────────────

    def apply_change(self, event: ChangeEvent) -> None:
        """Replace the local view with the snapshot carried by *event*."""
        if event.room_id != self.room_id:
            return
        if event.kind == "delete" or event.record is None:
            self._match = None
        else:
            self._match = MatchDocument.from_record(event.record)

    def apply_presence(self, entries: list[PresenceEntry]) -> None:
        seen: dict[str, PresenceEntry] = {}
        for entry in entries:
            seen.setdefault(entry.user_id, entry)
        self._presence = list(seen.values())

    # ── Connection ───────────────────────────────────────────────────

    async def connect(self, room_id: str) -> None:
        """Subscribe to *room_id*, load its current document and announce ourselves."""
        room_id = normalize_room_code(room_id)
        if self.is_connected and self.room_id == room_id:
            return
        self._disconnect()
        self.room_id = room_id
        self._subscription = self.channel.subscribe(room_id, self.apply_change, self.apply_presence)

        self.loading = True
        try:
            record = await self.store.select(room_id)
        except RowNotFound:
            record = None
        except TransportError as e:
            self.error = e
            logger.error("Could not load room %s: %s", room_id, e, exc_info=True)
            self._disconnect()
            raise
        finally:
            self.loading = False
        self._match = MatchDocument.from_record(record) if record else None
        self._announce()

    def set_status(self, status: str) -> None:
        if status not in PRESENCE_STATUSES:
            raise ValidationError(f"Unknown presence status {status!r}")
        self._status = status
        self._announce()

    def _announce(self) -> None:
        if self._subscription is None:
            return
        self.channel.track(self._subscription, PresenceEntry(
            user_id=self.user_id,
            username=self.display_name,
            status=self._status,
            last_seen_at=datetime.now(timezone.utc).isoformat(),
        ))

    def _disconnect(self) -> None:
        if self._subscription is not None:
            self.channel.unsubscribe(self._subscription)
            self._subscription = None
        self._presence = []
        self._match = None
        self.room_id = None

    async def wait_idle(self) -> None:
        """Wait for any scheduled follow-up writes to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        """Wait for scheduled writes (the roll clear included) to land, then unsubscribe."""
        await self.wait_idle()
        self._disconnect()

    async def _cancel_pending(self) -> None:
        for task in list(self._pending):
            task.cancel()
        await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ── Actions ──────────────────────────────────────────────────────

    async def create_match(self, room_id: str, display_name: str) -> str:
        """Start a new match in *room_id* with us in the first seat. Returns the match id."""
        room_id = normalize_room_code(room_id)
        self.display_name = display_name
        layout = generate_layout(
            self.rng,
            hazard_count=self.settings.hazard_count,
            shortcut_count=self.settings.shortcut_count,
            max_attempts=self.settings.max_layout_attempts,
        )
        # Empty id: the store assigns one
        doc = new_match("", room_id, self.user_id, display_name, layout)
        await self.connect(room_id)

        try:
            row = await self._write("create", room_id, self.store.insert(doc.to_record()))
        except TransportError:
            self._disconnect()
            raise
        logger.info("Player %s created match %s in room %s", self.user_id, row["id"], room_id)
        return row["id"]

    async def join_match(self, room_id: str, display_name: str) -> None:
        """Take the second seat in *room_id*.

        Raises ``NotFoundError`` for an unknown room and ``FullRoomError``
        when both seats are taken.
        """
        room_id = normalize_room_code(room_id)
        self.display_name = display_name
        await self.connect(room_id)
        try:
            record = await self.store.select(room_id)
        except RowNotFound:
            self.error = NotFoundError(room_id)
            self._disconnect()
            raise self.error from None
        except TransportError as e:
            self.error = e
            self._disconnect()
            raise

        try:
            changes = join(MatchDocument.from_record(record), self.user_id, display_name)
        except FullRoomError as e:
            self.error = e
            self._disconnect()
            raise
        if changes:
            await self._write("join", room_id, self.store.update(room_id, changes))
            logger.info("Player %s joined room %s", self.user_id, room_id)

    async def roll(self) -> RollResult | None:
        """Roll for the current player.

        Returns ``None`` without writing anything when it is not our turn,
        a roll is still showing, or the match is not in a round.
        """
        doc = self._match
        if doc is None:
            return None
        value = self.rng.randint(1, 6)
        try:
            result = apply_roll(
                doc, self.user_id, value,
                max_rounds=self.settings.max_rounds,
                max_hops=self.settings.max_resolve_hops,
            )
        except ValidationError as e:
            logger.warning("Roll by %s ignored: %s", self.user_id, e)
            return None
        except LayoutError as e:
            self.error = e
            logger.error("Broken layout in room %s: %s", doc.room_id, e)
            raise

        await self._write("roll", doc.room_id, self.store.update(doc.room_id, result.changes))
        logger.info(
            "Player %s rolled %d: %d → %d (%s)",
            self.user_id, value, result.start_position, result.new_position, result.outcome,
        )
        if not result.ends_turn_sequence:
            task = asyncio.get_running_loop().create_task(self._clear_roll_later(doc.room_id))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return result

    async def _clear_roll_later(self, room_id: str) -> None:
        await asyncio.sleep(self.settings.roll_clear_delay)
        try:
            await self.store.update(room_id, clear_roll())
        except TransportError as e:
            self.error = e
            logger.error("Could not reset rolling state in room %s: %s", room_id, e)

    async def leave_match(self) -> None:
        """Delete the match document for everyone."""
        if self._match is None:
            return
        room_id = self._match.room_id
        # A clear landing after the delete would fail on the missing row
        await self._cancel_pending()
        await self._write("leave", room_id, self.store.delete(room_id))
        self._match = None
        logger.info("Player %s left room %s", self.user_id, room_id)

    async def send_message(self, text: str, user_name: str | None = None) -> ChatEntry:
        if self.room_id is None:
            raise ValidationError("Not connected to a room")
        name = user_name or (self._match.name_of(self.user_id) if self._match else None) or self.display_name
        return await self._write(
            "send message", self.room_id,
            self._log.send(self.room_id, self.user_id, name, text),
        )

    async def _write(self, action: str, room_id: str, operation):
        try:
            return await operation
        except TransportError as e:
            self.error = e
            logger.error("%s failed in room %s: %s", action, room_id, e, exc_info=True)
            raise
