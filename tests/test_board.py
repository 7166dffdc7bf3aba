"""Tests for snakes_duel.board (layout generation and roll resolution)."""

import random

import pytest

from snakes_duel.board import (
    FINAL_CELL,
    HAZARD_COUNT,
    SHORTCUT_COUNT,
    START_CELL,
    Layout,
    generate_layout,
    resolve,
)
from snakes_duel.errors import LayoutError, ValidationError


# ── generate_layout ─────────────────────────────────────────────────

@pytest.mark.parametrize("seed", range(50))
def test_generated_layout_invariants(seed):
    layout = generate_layout(random.Random(seed))

    assert len(layout.hazards) == HAZARD_COUNT
    assert len(layout.shortcuts) == SHORTCUT_COUNT
    assert not layout.hazards.keys() & layout.shortcuts.keys()
    for origin, dest in {**layout.hazards, **layout.shortcuts}.items():
        assert origin != dest
        assert origin not in (START_CELL, FINAL_CELL)


@pytest.mark.parametrize("seed", range(50))
def test_generated_ranges(seed):
    layout = generate_layout(random.Random(seed))
    for origin, dest in layout.hazards.items():
        assert 12 <= origin <= 99
        assert 2 <= dest < origin
    for origin, dest in layout.shortcuts.items():
        assert 2 <= origin <= 90
        assert origin < dest <= 99


@pytest.mark.parametrize("seed", range(20))
def test_generated_layout_always_settles(seed):
    """No generated board can bounce a token between a snake and a ladder."""
    layout = generate_layout(random.Random(seed))
    for position in range(START_CELL, FINAL_CELL + 1):
        for roll in range(1, 7):
            resolve(position, roll, layout)


def test_generation_gives_up_loudly():
    with pytest.raises(LayoutError):
        generate_layout(random.Random(0), max_attempts=5)


def test_same_seed_same_layout():
    assert generate_layout(random.Random(7)) == generate_layout(random.Random(7))


# ── Layout validation ───────────────────────────────────────────────

def test_rejects_cell_that_is_both_snake_and_ladder():
    with pytest.raises(LayoutError):
        Layout(hazards={40: 10}, shortcuts={40: 60})


def test_rejects_self_loop():
    with pytest.raises(LayoutError):
        Layout(shortcuts={30: 30})


def test_rejects_first_and_last_cell_origins():
    with pytest.raises(LayoutError):
        Layout(hazards={100: 50})
    with pytest.raises(LayoutError):
        Layout(shortcuts={1: 38})


def test_rejects_snake_going_up():
    with pytest.raises(LayoutError):
        Layout(hazards={20: 40})


def test_layout_record_uses_string_keys():
    layout = Layout(hazards={45: 12}, shortcuts={3: 50})
    record = layout.to_record()
    assert record == {"snake_bite_points": {"45": "12"}, "success_points": {"3": "50"}}
    assert Layout.from_record(record) == layout


# ── resolve ─────────────────────────────────────────────────────────

def test_start_cell_needs_a_one():
    empty = Layout()
    assert resolve(1, 3, empty) == 1
    assert resolve(1, 6, empty) == 1
    assert resolve(1, 1, empty) == 2


def test_normal_move():
    assert resolve(10, 4, Layout()) == 14


def test_overshoot_clamps_to_100():
    assert resolve(96, 6, Layout()) == 100
    assert resolve(99, 5, Layout(hazards={50: 10})) == 100


def test_snake_and_ladder():
    layout = Layout(hazards={16: 6}, shortcuts={4: 14})
    assert resolve(10, 6, layout) == 6
    assert resolve(2, 2, layout) == 14


def test_chained_jumps():
    """Snake 50 → 20 lands on a ladder 20 → 60."""
    layout = Layout(hazards={50: 20}, shortcuts={20: 60})
    assert resolve(45, 5, layout) == 60


def test_resolve_is_deterministic():
    layout = generate_layout(random.Random(3))
    results = {resolve(37, 4, layout) for _ in range(20)}
    assert len(results) == 1


def test_cycle_is_reported_not_looped():
    layout = Layout(hazards={60: 30}, shortcuts={30: 60})
    with pytest.raises(LayoutError):
        resolve(55, 5, layout)


def test_bad_roll_rejected():
    with pytest.raises(ValidationError):
        resolve(10, 7, Layout())
    with pytest.raises(ValidationError):
        resolve(10, 0, Layout())


def test_bad_position_rejected():
    with pytest.raises(ValidationError):
        resolve(0, 3, Layout())
