"""Match document and the turn state machine that evolves it.

Everything here is pure: functions take the current document and return
the changes to write. Nothing is mutated and nothing touches the store.
"""

from __future__ import annotations

import random
import string
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from snakes_duel.board import FINAL_CELL, MAX_RESOLVE_HOPS, START_CELL, Layout, resolve
from snakes_duel.chat import ChatEntry
from snakes_duel.errors import (
    FullRoomError,
    MatchNotInProgress,
    NotYourTurn,
    RollInFlight,
    ValidationError,
)

MAX_ROUNDS = 5
DRAW = "Draw"
ROOM_CODE_LENGTH = 6


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def generate_room_code(rng: random.Random | None = None) -> str:
    """Six upper-case letters/digits, e.g. ``"K3XQ9A"``. Uniqueness is the caller's job."""
    rng = rng or random.Random()
    return "".join(rng.choices(string.ascii_uppercase + string.digits, k=ROOM_CODE_LENGTH))


class Phase(str, Enum):
    AWAITING_SECOND_PLAYER = "awaiting_second_player"
    IN_ROUND = "in_round"
    MATCH_OVER = "match_over"


@dataclass
class MatchDocument:
    """The single shared record for one match.

    ``winner`` only ever holds the match outcome: a player id, or ``DRAW``.
    Who won each round lives in ``rounds``.
    """

    id: str
    room_id: str
    player1_id: str
    player1_name: str
    current_turn: str
    layout: Layout
    player2_id: str | None = None
    player2_name: str | None = None
    player1_position: int = START_CELL
    player2_position: int = START_CELL
    player1_hits: int = 0
    player2_hits: int = 0
    dice_value: int | None = None
    is_rolling: bool = False
    winner: str | None = None
    rounds: list[str] = field(default_factory=list)
    messages: list[ChatEntry] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    # ── Serialization ────────────────────────────────────────────────

    def to_record(self) -> dict:
        record = {
            "id": self.id,
            "room_id": self.room_id,
            "player1_id": self.player1_id,
            "player1_name": self.player1_name,
            "player2_id": self.player2_id,
            "player2_name": self.player2_name,
            "current_turn": self.current_turn,
            "player1_position": self.player1_position,
            "player2_position": self.player2_position,
            "player1_hits": self.player1_hits,
            "player2_hits": self.player2_hits,
            "dice_value": self.dice_value,
            "is_rolling": self.is_rolling,
            "winner": self.winner,
            "round": list(self.rounds),
            "messages": [m.to_record() for m in self.messages],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        record.update(self.layout.to_record())
        return record

    @classmethod
    def from_record(cls, record: dict) -> MatchDocument:
        rounds = record.get("round") or []
        return cls(
            id=str(record["id"]),
            room_id=record["room_id"],
            player1_id=record["player1_id"],
            player1_name=record.get("player1_name") or "",
            player2_id=record.get("player2_id"),
            player2_name=record.get("player2_name"),
            current_turn=record["current_turn"],
            layout=Layout.from_record(record),
            player1_position=int(record.get("player1_position") or START_CELL),
            player2_position=int(record.get("player2_position") or START_CELL),
            player1_hits=int(record.get("player1_hits") or 0),
            player2_hits=int(record.get("player2_hits") or 0),
            dice_value=record.get("dice_value"),
            is_rolling=bool(record.get("is_rolling")),
            winner=record.get("winner"),
            # Only names count as round results
            rounds=[r for r in rounds if isinstance(r, str)],
            messages=[ChatEntry.from_record(m) for m in record.get("messages") or []],
            created_at=record.get("created_at") or "",
            updated_at=record.get("updated_at") or "",
        )

    def apply(self, changes: dict) -> MatchDocument:
        """Return a copy with *changes* (a store update payload) merged in."""
        record = self.to_record()
        record.update(changes)
        return MatchDocument.from_record(record)

    # ── Views ────────────────────────────────────────────────────────

    def slot_of(self, player_id: str) -> int | None:
        """1 or 2 for a registered player, else ``None``."""
        if player_id == self.player1_id:
            return 1
        if self.player2_id is not None and player_id == self.player2_id:
            return 2
        return None

    def position_of(self, player_id: str) -> int:
        return self.player1_position if self.slot_of(player_id) == 1 else self.player2_position

    def name_of(self, player_id: str) -> str | None:
        slot = self.slot_of(player_id)
        if slot == 1:
            return self.player1_name
        if slot == 2:
            return self.player2_name
        return None

    def opponent_of(self, player_id: str) -> str | None:
        slot = self.slot_of(player_id)
        if slot == 1:
            return self.player2_id
        if slot == 2:
            return self.player1_id
        return None


@dataclass
class RollResult:
    """What one roll did, plus the update payload that records it."""

    player_id: str
    roll: int
    start_position: int
    new_position: int
    outcome: str  # "moved" | "round_won" | "match_won"
    changes: dict
    round_winner: str | None = None  # display name
    match_winner: str | None = None  # player id or DRAW

    @property
    def ends_turn_sequence(self) -> bool:
        """True when the roll finished a round or the match."""
        return self.outcome != "moved"


def phase_of(doc: MatchDocument, max_rounds: int = MAX_ROUNDS) -> Phase:
    if doc.player2_id is None:
        return Phase.AWAITING_SECOND_PLAYER
    if doc.winner is not None or len(doc.rounds) >= max_rounds:
        return Phase.MATCH_OVER
    return Phase.IN_ROUND


def new_match(
    match_id: str,
    room_id: str,
    player_id: str,
    display_name: str,
    layout: Layout,
    now: str | None = None,
) -> MatchDocument:
    now = now or utc_now()
    return MatchDocument(
        id=match_id,
        room_id=room_id,
        player1_id=player_id,
        player1_name=display_name,
        current_turn=player_id,
        layout=layout,
        created_at=now,
        updated_at=now,
    )


def join(doc: MatchDocument, player_id: str, display_name: str, now: str | None = None) -> dict:
    """Update payload seating *player_id* in the second slot.

    A player already seated in this match gets an empty payload back.
    """
    if doc.slot_of(player_id) is not None:
        return {}
    if doc.player2_id is not None:
        raise FullRoomError(doc.room_id)
    return {
        "player2_id": player_id,
        "player2_name": display_name,
        "updated_at": now or utc_now(),
    }


def round_wins(doc: MatchDocument) -> tuple[int, int]:
    """Rounds won so far by (player 1, player 2)."""
    return (
        sum(1 for name in doc.rounds if name == doc.player1_name),
        sum(1 for name in doc.rounds if name == doc.player2_name),
    )


def match_winner(
    rounds: list[str],
    player1_id: str,
    player1_name: str,
    player2_id: str | None,
    player2_name: str | None,
) -> str:
    """Majority of round wins decides the match; equal counts are a ``DRAW``."""
    p1 = sum(1 for name in rounds if name == player1_name)
    p2 = sum(1 for name in rounds if name == player2_name)
    if p1 > p2:
        return player1_id
    if p2 > p1 and player2_id is not None:
        return player2_id
    return DRAW


def apply_roll(
    doc: MatchDocument,
    player_id: str,
    roll: int,
    now: str | None = None,
    max_rounds: int = MAX_ROUNDS,
    max_hops: int = MAX_RESOLVE_HOPS,
) -> RollResult:
    """Resolve *player_id* rolling *roll* against *doc*.

    Raises a ``ValidationError`` subclass, and produces nothing to write,
    when the roll is not allowed.
    """
    if phase_of(doc, max_rounds) is not Phase.IN_ROUND:
        raise MatchNotInProgress(f"Match in room {doc.room_id} is not in a round")
    slot = doc.slot_of(player_id)
    if slot is None:
        raise ValidationError(f"Player {player_id} is not in room {doc.room_id}")
    if player_id != doc.current_turn:
        raise NotYourTurn(player_id, doc.current_turn)
    if doc.is_rolling:
        raise RollInFlight(f"A roll is still in progress in room {doc.room_id}")

    start = doc.position_of(player_id)
    new_position = resolve(start, roll, doc.layout, max_hops=max_hops)
    hits = (doc.player1_hits if slot == 1 else doc.player2_hits) + 1

    changes: dict = {
        "dice_value": roll,
        "is_rolling": True,
        f"player{slot}_position": new_position,
        f"player{slot}_hits": hits,
        "updated_at": now or utc_now(),
    }

    if new_position != FINAL_CELL:
        changes["current_turn"] = doc.opponent_of(player_id)
        return RollResult(player_id, roll, start, new_position, "moved", changes)

    name = doc.name_of(player_id) or ""
    rounds = [*doc.rounds, name]
    changes["round"] = rounds

    if len(rounds) < max_rounds:
        changes.update(
            player1_position=START_CELL,
            player2_position=START_CELL,
            player1_hits=0,
            player2_hits=0,
            winner=None,
            dice_value=None,
            is_rolling=False,
            current_turn=doc.player1_id,
        )
        return RollResult(player_id, roll, start, new_position, "round_won", changes, round_winner=name)

    overall = match_winner(rounds, doc.player1_id, doc.player1_name, doc.player2_id, doc.player2_name)
    changes["winner"] = overall
    return RollResult(
        player_id, roll, start, new_position, "match_won", changes,
        round_winner=name, match_winner=overall,
    )


def clear_roll(now: str | None = None) -> dict:
    """Payload that stops the dice animation after an ordinary move."""
    return {"is_rolling": False, "dice_value": None, "updated_at": now or utc_now()}
