"""Elo ratings from finished matches."""

from __future__ import annotations

from dataclasses import dataclass

INITIAL_RATING = 1500.0
K_FACTOR = 32.0


@dataclass
class Outcome:
    """Result of one finished match, by display name."""

    player_a: str
    player_b: str
    winner: str | None  # None = drawn match


def expected_score(rating: float, opponent: float) -> float:
    """E_a = 1 / (1 + 10^((R_b - R_a) / 400))"""
    return 1.0 / (1.0 + 10.0 ** ((opponent - rating) / 400.0))


def actual_score(outcome: Outcome, player: str) -> float:
    if outcome.winner is None:
        return 0.5
    return 1.0 if outcome.winner == player else 0.0


def compute_elo(
    outcomes: list[Outcome],
    initial: float = INITIAL_RATING,
    k: float = K_FACTOR,
) -> dict[str, float]:
    """Replay *outcomes* in order and return each player's final rating."""
    ratings: dict[str, float] = {}
    for outcome in outcomes:
        a, b = outcome.player_a, outcome.player_b
        ra = ratings.setdefault(a, initial)
        rb = ratings.setdefault(b, initial)
        ea = expected_score(ra, rb)
        ratings[a] = ra + k * (actual_score(outcome, a) - ea)
        ratings[b] = rb + k * (actual_score(outcome, b) - (1.0 - ea))
    return ratings
