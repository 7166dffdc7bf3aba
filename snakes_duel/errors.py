"""Exception hierarchy for the match coordinator.

Every failure the coordinator surfaces is one of these. None of them is
fatal: the client that hit one keeps its last good snapshot and may retry.
"""

from __future__ import annotations


class SnakesDuelError(Exception):
    """Base class for every coordinator error."""


# ── Local validation ────────────────────────────────────────────────

class ValidationError(SnakesDuelError):
    """Rejected locally before any mutation is issued."""


class NotYourTurn(ValidationError):
    def __init__(self, player_id: str, current_turn: str | None):
        self.player_id = player_id
        self.current_turn = current_turn
        super().__init__(f"Player {player_id} cannot roll, it is {current_turn}'s turn")


class RollInFlight(ValidationError):
    """A previous roll is still animating."""


class MatchNotInProgress(ValidationError):
    """The match is waiting for a second player or already over."""


# ── Join failures ───────────────────────────────────────────────────

class NotFoundError(SnakesDuelError):
    def __init__(self, room_id: str):
        self.room_id = room_id
        super().__init__(f"Room {room_id} not found")


class FullRoomError(SnakesDuelError):
    def __init__(self, room_id: str):
        self.room_id = room_id
        super().__init__(f"Room {room_id} is full")


# ── Transport ───────────────────────────────────────────────────────

class TransportError(SnakesDuelError):
    """A store or channel operation failed."""


class StoreError(TransportError):
    pass


class RowNotFound(StoreError):
    def __init__(self, room_id: str):
        self.room_id = room_id
        super().__init__(f"No match row for room {room_id}")


# ── Board ───────────────────────────────────────────────────────────

class LayoutError(SnakesDuelError):
    """A layout violates its invariants or resolves in a cycle."""
