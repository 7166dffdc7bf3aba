"""Finished and in-progress matches, read back from the document store."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from snakes_duel.elo import Outcome, compute_elo
from snakes_duel.match import DRAW, MatchDocument

if TYPE_CHECKING:
    from snakes_duel.store import DocumentStore

RECENT_LIMIT = 10


@dataclass
class MatchSummary:
    room_id: str
    opponent: str | None  # None until someone joins
    rounds: list[str]
    winner: str | None  # display name, DRAW, or None while unfinished
    updated_at: str

    @property
    def finished(self) -> bool:
        return self.winner is not None


@dataclass
class Standing:
    name: str
    rating: float
    wins: int = 0
    losses: int = 0
    draws: int = 0

    @property
    def record(self) -> str:
        return f"{self.wins}-{self.losses}-{self.draws}"


def _winner_name(doc: MatchDocument) -> str | None:
    if doc.winner is None or doc.winner == DRAW:
        return doc.winner
    return doc.name_of(doc.winner)


def _involves(doc: MatchDocument, player: str) -> bool:
    return player in (doc.player1_id, doc.player1_name, doc.player2_id, doc.player2_name)


async def recent_matches(store: DocumentStore, player: str, limit: int = RECENT_LIMIT) -> list[MatchSummary]:
    """The *limit* most recently updated matches *player* (id or name) sits in."""
    docs = [MatchDocument.from_record(r) for r in await store.list_records()]
    docs = [d for d in docs if _involves(d, player)]
    docs.sort(key=lambda d: d.updated_at, reverse=True)

    summaries = []
    for doc in docs[:limit]:
        in_first_seat = player in (doc.player1_id, doc.player1_name)
        summaries.append(MatchSummary(
            room_id=doc.room_id,
            opponent=doc.player2_name if in_first_seat else doc.player1_name,
            rounds=list(doc.rounds),
            winner=_winner_name(doc),
            updated_at=doc.updated_at,
        ))
    return summaries


def outcomes(records: list[dict]) -> list[Outcome]:
    """Elo outcomes for every finished two-player match, oldest first."""
    docs = [MatchDocument.from_record(r) for r in records]
    finished = [d for d in docs if d.winner is not None and d.player2_name]
    finished.sort(key=lambda d: d.updated_at)
    result = []
    for doc in finished:
        name = _winner_name(doc)
        result.append(Outcome(
            player_a=doc.player1_name,
            player_b=doc.player2_name,  # type: ignore[arg-type]
            winner=None if name == DRAW else name,
        ))
    return result


def standings(records: list[dict]) -> list[Standing]:
    """Ratings plus win/loss/draw record per player, best rated first."""
    games = outcomes(records)
    ratings = compute_elo(games)
    table = {name: Standing(name=name, rating=rating) for name, rating in ratings.items()}
    for game in games:
        for name in (game.player_a, game.player_b):
            if game.winner is None:
                table[name].draws += 1
            elif game.winner == name:
                table[name].wins += 1
            else:
                table[name].losses += 1
    return sorted(table.values(), key=lambda s: s.rating, reverse=True)
