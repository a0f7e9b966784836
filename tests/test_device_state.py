import random
from datetime import datetime, timedelta, timezone

from input.device_state import DeviceStateTracker

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def t(s: float) -> datetime:
    return T0 + timedelta(seconds=s)


def test_new_tracker_starts_empty_and_connected():
    tr = DeviceStateTracker(7, "Pad", t(0))
    snap = tr.snapshot()
    assert snap.connected is True
    assert snap.name == "Pad"
    assert snap.axis_state == {}
    assert snap.button_down_event_counter == {}
    assert snap.last_event_time == t(0)


def test_scenario_axis_press_release():
    tr = DeviceStateTracker("A", "Pad", t(0))
    tr.apply_axis_event("left-stick-x", 0.5, t(1))
    tr.apply_button_event("south", True, t(2))
    tr.apply_button_event("south", False, t(3))

    snap = tr.snapshot()
    assert snap.axis_state == {"left-stick-x": 0.5}
    assert snap.button_pressed == {"south": False}
    assert snap.button_down_event_counter == {"south": 1}
    assert snap.button_up_event_counter == {"south": 1}
    assert snap.last_event_time == t(3)
    assert snap.connected is True


def test_axis_values_pass_through_unclamped():
    tr = DeviceStateTracker(1, "Pad", t(0))
    tr.apply_axis_event("left-z", 3.25, t(1))
    tr.apply_axis_event("left-z", -7.0, t(2))
    assert tr.snapshot().axis_state == {"left-z": -7.0}


def test_duplicate_level_does_not_touch_counters_or_time():
    tr = DeviceStateTracker(1, "Pad", t(0))
    tr.apply_button_event("east", True, t(1))
    assert tr.apply_button_event("east", True, t(5)) is False
    snap = tr.snapshot()
    assert snap.button_down_event_counter == {"east": 1}
    assert snap.button_up_event_counter == {}
    assert snap.last_event_time == t(1)


def test_release_of_unseen_button_is_not_an_edge():
    tr = DeviceStateTracker(1, "Pad", t(0))
    assert tr.apply_button_event("north", False, t(1)) is False
    snap = tr.snapshot()
    assert snap.button_up_event_counter == {}
    assert snap.button_down_event_counter == {}


def test_down_minus_up_is_zero_or_one_for_any_sequence():
    rng = random.Random(1234)
    tr = DeviceStateTracker(1, "Pad", t(0))
    for i in range(500):
        tr.apply_button_event("west", rng.random() < 0.5, t(i))
        down = tr.down_count.get("west", 0)
        up = tr.up_count.get("west", 0)
        assert down - up in (0, 1)
        assert tr.button_pressed.get("west", False) == (down - up == 1)


def test_older_timestamp_does_not_move_last_event_time_backwards():
    tr = DeviceStateTracker(1, "Pad", t(0))
    tr.apply_axis_event("left-stick-y", 0.1, t(5))
    tr.apply_axis_event("left-stick-y", 0.2, t(4))
    snap = tr.snapshot()
    assert snap.axis_state["left-stick-y"] == 0.2
    assert snap.last_event_time == t(5)


def test_disconnect_keeps_state():
    tr = DeviceStateTracker(1, "Pad", t(0))
    tr.apply_axis_event("right-z", 1.0, t(1))
    tr.apply_button_event("start", True, t(2))
    tr.mark_disconnected(t(3))

    snap = tr.snapshot()
    assert snap.connected is False
    assert snap.axis_state == {"right-z": 1.0}
    assert snap.button_pressed == {"start": True}
    assert snap.button_down_event_counter == {"start": 1}
    assert snap.last_event_time == t(3)


def test_snapshot_is_an_independent_copy():
    tr = DeviceStateTracker(1, "Pad", t(0))
    tr.apply_button_event("south", True, t(1))
    snap = tr.snapshot()
    snap.button_down_event_counter["south"] = 99
    snap.button_pressed["south"] = False
    tr.apply_button_event("south", False, t(2))

    assert tr.down_count == {"south": 1}
    assert snap.button_up_event_counter == {}
