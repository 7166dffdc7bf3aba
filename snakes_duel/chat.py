"""In-match chat, stored as a list inside the match document.

Sending is a plain read-modify-write of the whole list: two players
sending at the same moment can each overwrite the other's message.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from snakes_duel.errors import ValidationError

if TYPE_CHECKING:
    from snakes_duel.store import DocumentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatEntry:
    id: str
    user_id: str
    user_name: str
    text: str
    created_at: str

    def to_record(self) -> dict:
        return asdict(self)

    @classmethod
    def from_record(cls, record: dict) -> ChatEntry:
        return cls(
            id=str(record["id"]),
            user_id=str(record["user_id"]),
            user_name=str(record.get("user_name") or ""),
            text=str(record["text"]),
            created_at=str(record["created_at"]),
        )


class MessageLog:
    """Appends chat entries to a room's document."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def send(self, room_id: str, user_id: str, user_name: str, text: str) -> ChatEntry:
        if not text or not text.strip():
            raise ValidationError("Chat message is empty")

        entry = ChatEntry(
            id=uuid.uuid4().hex,
            user_id=user_id,
            user_name=user_name,
            text=text,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        record = await self.store.select(room_id)
        messages = list(record.get("messages") or [])
        messages.append(entry.to_record())
        await self.store.update(room_id, {"messages": messages})
        logger.info("Chat message %s from %s in room %s", entry.id, user_id, room_id)
        return entry


def unseen_count(messages: list[ChatEntry], user_id: str, since: str) -> int:
    """Messages from other players posted after *since* (an ISO timestamp)."""
    return sum(1 for m in messages if m.user_id != user_id and m.created_at > since)
