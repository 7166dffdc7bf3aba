"""CLI entry point: python -m snakes_duel {play,recent,elo,chart}."""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
import sys

from snakes_duel.chart import make_standings_chart
from snakes_duel.config import Settings, get_settings
from snakes_duel.history import recent_matches, standings
from snakes_duel.match import DRAW, Phase, generate_room_code, phase_of, round_wins
from snakes_duel.realtime import Channel
from snakes_duel.session import MatchSession
from snakes_duel.store import SqliteStore


def _open_store(settings: Settings, channel: Channel | None = None) -> SqliteStore:
    return SqliteStore(settings.db_path, channel)


def _require_db(settings: Settings) -> None:
    if not settings.db_path.exists():
        print(f"No database found at {settings.db_path}. Play some matches first.", file=sys.stderr)
        sys.exit(1)


# ── play ─────────────────────────────────────────────────────────────

def _local_id(name: str) -> str:
    return f"{name.strip().lower()}@local"


async def _play(args: argparse.Namespace, settings: Settings) -> None:
    host_id, guest_id = _local_id(args.p1), _local_id(args.p2)
    if host_id == guest_id:
        print(f"Players {args.p1!r} and {args.p2!r} need distinct names.", file=sys.stderr)
        sys.exit(1)

    # Two clients in one process; no need to hold the dice on screen
    settings = settings.model_copy(update={"roll_clear_delay": 0.0})
    channel = Channel()
    store = _open_store(settings, channel)

    seed = args.seed
    host = MatchSession(
        host_id, store, channel, settings,
        rng=random.Random(seed),
    )
    guest = MatchSession(
        guest_id, store, channel, settings,
        rng=random.Random(None if seed is None else seed + 1),
    )
    room = args.room or generate_room_code(random.Random(seed))

    await host.create_match(room, args.p1)
    await guest.join_match(room, args.p2)
    print(f"Room {host.room_id}: {args.p1} vs {args.p2}")

    by_id = {host.user_id: host, guest.user_id: guest}
    rolls = 0
    while host.match is not None and phase_of(host.match, settings.max_rounds) is Phase.IN_ROUND:
        if rolls >= args.max_rolls:
            print(f"Stopped after {rolls} rolls.")
            break
        player = by_id[host.match.current_turn]
        result = await player.roll()
        await player.wait_idle()
        rolls += 1
        if result is None:
            print(f"{player.display_name} could not roll; stopping.", file=sys.stderr)
            break
        if args.verbose:
            print(f"  {player.display_name} rolled {result.roll}: {result.start_position} → {result.new_position}")
        if result.round_winner is not None:
            print(f"Round {len(host.match.rounds)} → {result.round_winner}")

    doc = host.match
    if doc is not None and doc.winner is not None:
        p1_wins, p2_wins = round_wins(doc)
        overall = "draw" if doc.winner == DRAW else doc.name_of(doc.winner)
        print(f"Match over after {rolls} rolls ({p1_wins}-{p2_wins}) → {overall}")

    await host.close()
    await guest.close()
    store.close()


def cmd_play(args: argparse.Namespace) -> None:
    """Play a full match between two local clients and store it."""
    asyncio.run(_play(args, get_settings()))


# ── recent ───────────────────────────────────────────────────────────

def cmd_recent(args: argparse.Namespace) -> None:
    """List a player's most recent matches."""
    settings = get_settings()
    _require_db(settings)
    store = _open_store(settings)
    summaries = asyncio.run(recent_matches(store, args.player, limit=args.limit or settings.recent_limit))
    store.close()

    if not summaries:
        print(f"No matches found for {args.player}.")
        return
    for s in summaries:
        status = f"finished → {s.winner}" if s.finished else "in progress"
        print(f"  {s.room_id}  vs {s.opponent or 'Waiting...':20s} rounds={len(s.rounds)}  {status}")


# ── elo ──────────────────────────────────────────────────────────────

def _load_standings(settings: Settings):
    _require_db(settings)
    store = _open_store(settings)
    records = asyncio.run(store.list_records())
    store.close()
    table = standings(records)
    if not table:
        print("No finished matches yet.", file=sys.stderr)
        sys.exit(1)
    return table


def cmd_elo(args: argparse.Namespace) -> None:
    """Print Elo ratings computed from finished matches."""
    table = _load_standings(get_settings())
    print("\nElo Ratings")
    print("=" * 48)
    for s in table:
        print(f"  {s.name:30s} {s.rating:7.1f}  {s.record}")


# ── chart ────────────────────────────────────────────────────────────

def cmd_chart(args: argparse.Namespace) -> None:
    """Write the standings chart."""
    table = _load_standings(get_settings())
    out = args.output or "standings.png"
    make_standings_chart(table, output_path=out)
    print(f"Chart saved to {out}")


# ── main ─────────────────────────────────────────────────────────────

def main() -> None:
    parser = argparse.ArgumentParser(
        prog="snakes_duel",
        description="Two-player Snakes & Ladders match coordinator",
    )
    sub = parser.add_subparsers(dest="command")

    p_play = sub.add_parser("play", help="Play a local best-of-5 match")
    p_play.add_argument("--p1", default="Alice", help="First player's name")
    p_play.add_argument("--p2", default="Bob", help="Second player's name")
    p_play.add_argument("--room", help="Room code (random if omitted)")
    p_play.add_argument("--seed", type=int, help="Seed for dice and board")
    p_play.add_argument("--max-rolls", type=int, default=5000, help="Give up after this many rolls")
    p_play.add_argument("--verbose", "-v", action="store_true", help="Print every roll")

    p_recent = sub.add_parser("recent", help="List a player's recent matches")
    p_recent.add_argument("player", help="Player id or display name")
    p_recent.add_argument("--limit", type=int, help="How many matches to show")

    sub.add_parser("elo", help="Compute Elo ratings")

    p_chart = sub.add_parser("chart", help="Generate standings chart")
    p_chart.add_argument("--output", "-o", help="Output PNG path")

    args = parser.parse_args()
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.command == "play":
        cmd_play(args)
    elif args.command == "recent":
        cmd_recent(args)
    elif args.command == "elo":
        cmd_elo(args)
    elif args.command == "chart":
        cmd_chart(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
