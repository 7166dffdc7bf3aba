"""Tests for snakes_duel.realtime (change fan-out and presence)."""

import logging

from snakes_duel.realtime import ChangeEvent, Channel, PresenceEntry


def test_every_subscriber_gets_the_event():
    channel = Channel()
    seen_a, seen_b = [], []
    channel.subscribe("ROOM01", seen_a.append)
    channel.subscribe("ROOM01", seen_b.append)

    channel.publish(ChangeEvent("update", "ROOM01", {"dice_value": 3}))
    assert len(seen_a) == len(seen_b) == 1
    assert seen_a[0].record == {"dice_value": 3}


def test_listeners_get_independent_copies():
    channel = Channel()
    seen_a, seen_b = [], []
    channel.subscribe("ROOM01", seen_a.append)
    channel.subscribe("ROOM01", seen_b.append)

    channel.publish(ChangeEvent("update", "ROOM01", {"round": ["Alice"]}))
    seen_a[0].record["round"].append("Bob")
    assert seen_b[0].record["round"] == ["Alice"]


def test_rooms_are_isolated():
    channel = Channel()
    seen = []
    channel.subscribe("ROOM01", seen.append)
    channel.publish(ChangeEvent("update", "ROOM02", {}))
    assert seen == []


def test_failing_listener_does_not_block_others(caplog):
    channel = Channel()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    channel.subscribe("ROOM01", broken)
    channel.subscribe("ROOM01", seen.append)
    with caplog.at_level(logging.ERROR, logger="snakes_duel.realtime"):
        channel.publish(ChangeEvent("delete", "ROOM01", None))
    assert len(seen) == 1
    assert "Change listener failed" in caplog.text


def test_unsubscribed_listener_hears_nothing():
    channel = Channel()
    seen = []
    sub = channel.subscribe("ROOM01", seen.append)
    channel.unsubscribe(sub)
    channel.unsubscribe(sub)  # second call is harmless
    channel.publish(ChangeEvent("update", "ROOM01", {}))
    assert seen == []
    assert not sub.active


# ── presence ────────────────────────────────────────────────────────

def test_presence_deduplicates_by_user():
    channel = Channel()
    states = []
    tab1 = channel.subscribe("ROOM01", lambda e: None, states.append)
    tab2 = channel.subscribe("ROOM01", lambda e: None)

    channel.track(tab1, PresenceEntry("alice", "Alice"))
    channel.track(tab2, PresenceEntry("alice", "Alice", status="away"))
    assert [p.user_id for p in channel.presence_state("ROOM01")] == ["alice"]
    assert [p.user_id for p in states[-1]] == ["alice"]


def test_presence_broadcast_on_leave():
    channel = Channel()
    states = []
    watcher = channel.subscribe("ROOM01", lambda e: None, states.append)
    bob = channel.subscribe("ROOM01", lambda e: None)
    channel.track(watcher, PresenceEntry("alice", "Alice"))
    channel.track(bob, PresenceEntry("bob", "Bob"))
    assert {p.user_id for p in states[-1]} == {"alice", "bob"}

    channel.unsubscribe(bob)
    assert [p.user_id for p in states[-1]] == ["alice"]


def test_untrack_keeps_subscription():
    channel = Channel()
    seen = []
    sub = channel.subscribe("ROOM01", seen.append)
    channel.track(sub, PresenceEntry("alice", "Alice"))
    channel.untrack(sub)
    assert channel.presence_state("ROOM01") == []

    channel.publish(ChangeEvent("update", "ROOM01", {}))
    assert len(seen) == 1


def test_inactive_subscription_cannot_track():
    channel = Channel()
    sub = channel.subscribe("ROOM01", lambda e: None)
    channel.unsubscribe(sub)
    channel.track(sub, PresenceEntry("alice", "Alice"))
    assert channel.presence_state("ROOM01") == []
