"""Board layout generation and movement rules for Snakes & Ladders."""

from __future__ import annotations

import random
from dataclasses import dataclass, field

from snakes_duel.errors import LayoutError, ValidationError

START_CELL = 1
FINAL_CELL = 100
DIE_FACES = range(1, 7)

HAZARD_COUNT = 11
SHORTCUT_COUNT = 7
MAX_LAYOUT_ATTEMPTS = 10_000
MAX_RESOLVE_HOPS = 64

# Sampling ranges, inclusive
HAZARD_ORIGINS = (12, 99)
HAZARD_LOWEST_DEST = 2
SHORTCUT_ORIGINS = (2, 90)
SHORTCUT_HIGHEST_DEST = 99


@dataclass(frozen=True)
class Layout:
    """Snakes (``hazards``) and ladders (``shortcuts``) for one match.

    Both maps go origin cell → destination cell. Validated on construction,
    so any ``Layout`` you hold satisfies the board invariants.
    """

    hazards: dict[int, int] = field(default_factory=dict)
    shortcuts: dict[int, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for origin, dest in self.hazards.items():
            _check_cells(origin, dest)
            if dest >= origin:
                raise LayoutError(f"Snake at {origin} must lead down, not to {dest}")
        for origin, dest in self.shortcuts.items():
            _check_cells(origin, dest)
            if dest <= origin:
                raise LayoutError(f"Ladder at {origin} must lead up, not to {dest}")
        shared = self.hazards.keys() & self.shortcuts.keys()
        if shared:
            raise LayoutError(f"Cells {sorted(shared)} are both snake and ladder origins")

    def destination(self, cell: int) -> int | None:
        """Where a token landing on *cell* is sent, or ``None`` for a plain cell."""
        dest = self.hazards.get(cell)
        if dest is None:
            dest = self.shortcuts.get(cell)
        return dest

    # The document stores both maps with string keys and values.
    def to_record(self) -> dict[str, dict[str, str]]:
        return {
            "snake_bite_points": {str(k): str(v) for k, v in self.hazards.items()},
            "success_points": {str(k): str(v) for k, v in self.shortcuts.items()},
        }

    @classmethod
    def from_record(cls, record: dict) -> Layout:
        return cls(
            hazards={int(k): int(v) for k, v in (record.get("snake_bite_points") or {}).items()},
            shortcuts={int(k): int(v) for k, v in (record.get("success_points") or {}).items()},
        )


def _check_cells(origin: int, dest: int) -> None:
    if origin in (START_CELL, FINAL_CELL):
        raise LayoutError(f"Cell {origin} cannot hold a snake or ladder")
    if not (START_CELL <= origin <= FINAL_CELL and START_CELL <= dest <= FINAL_CELL):
        raise LayoutError(f"Mapping {origin} → {dest} is off the board")
    if origin == dest:
        raise LayoutError(f"Cell {origin} maps onto itself")


def _closes_loop(origin: int, dest: int, links: dict[int, int]) -> bool:
    """True if adding ``origin → dest`` to *links* would make a chain revisit a cell."""
    seen = {origin}
    cell = dest
    while cell in links:
        if cell in seen:
            return True
        seen.add(cell)
        cell = links[cell]
    return cell in seen


def generate_layout(
    rng: random.Random | None = None,
    hazard_count: int = HAZARD_COUNT,
    shortcut_count: int = SHORTCUT_COUNT,
    max_attempts: int = MAX_LAYOUT_ATTEMPTS,
) -> Layout:
    """Randomly place snakes first, then ladders on the cells snakes left free.

    Raises ``LayoutError`` if *max_attempts* samples were not enough.
    """
    rng = rng or random.Random()
    hazards: dict[int, int] = {}
    shortcuts: dict[int, int] = {}
    attempts = 0

    while len(hazards) < hazard_count:
        attempts += 1
        if attempts > max_attempts:
            raise LayoutError(f"Could not place {hazard_count} snakes in {max_attempts} attempts")
        origin = rng.randint(*HAZARD_ORIGINS)
        dest = rng.randint(HAZARD_LOWEST_DEST, origin - 1)
        if origin in hazards:
            continue
        hazards[origin] = dest

    while len(shortcuts) < shortcut_count:
        attempts += 1
        if attempts > max_attempts:
            raise LayoutError(f"Could not place {shortcut_count} ladders in {max_attempts} attempts")
        origin = rng.randint(*SHORTCUT_ORIGINS)
        dest = rng.randint(origin + 1, SHORTCUT_HIGHEST_DEST)
        if origin in shortcuts or origin in hazards:
            continue
        if _closes_loop(origin, dest, {**hazards, **shortcuts}):
            continue
        shortcuts[origin] = dest

    return Layout(hazards=hazards, shortcuts=shortcuts)


def resolve(
    position: int,
    roll: int,
    layout: Layout,
    max_hops: int = MAX_RESOLVE_HOPS,
) -> int:
    """Final cell after rolling *roll* from *position*.

    A token still on the start cell needs exactly a 1 to leave it. Rolls
    past the last cell stop on it. Snakes and ladders chain: after each
    jump the new cell is checked again.
    """
    if roll not in DIE_FACES:
        raise ValidationError(f"Roll must be between 1 and 6, got {roll}")
    if not START_CELL <= position <= FINAL_CELL:
        raise ValidationError(f"Position {position} is off the board")

    cell = position
    if position > START_CELL or roll == 1:
        cell = min(FINAL_CELL, position + roll)

    for _ in range(max_hops):
        dest = layout.destination(cell)
        if dest is None:
            return cell
        cell = dest
    raise LayoutError(f"Snakes and ladders from {position} + {roll} did not settle in {max_hops} jumps")
