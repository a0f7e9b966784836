# input/device_state.py
from __future__ import annotations

from datetime import datetime
from typing import Dict

from schema.gamepad_message import GamepadMessage


class DeviceStateTracker:
    """
    Authoritative state for one connected controller.

    Holds the last value of every reported axis, the held/released level of
    every reported button, and per-button press/release edge counters. The
    counters start at zero when the tracker is created and only ever grow
    while it lives; a disconnect does not reset them.

    Pure state: no I/O, no clock. Every timestamp comes from the event.
    """

    def __init__(self, device_id, name: str, connected_at: datetime):
        self.device_id = device_id
        self.name = str(name)
        self.connected = True
        self.last_event_time = connected_at

        self.axis_state: Dict[str, float] = {}
        self.button_pressed: Dict[str, bool] = {}
        self.down_count: Dict[str, int] = {}
        self.up_count: Dict[str, int] = {}

        # Set by the reducer once a snapshot showing connected=False went out.
        self.disconnect_published = False

    def _touch(self, timestamp: datetime) -> None:
        if timestamp > self.last_event_time:
            self.last_event_time = timestamp

    def apply_axis_event(self, axis_id: str, value: float, timestamp: datetime) -> None:
        self.axis_state[axis_id] = float(value)
        self._touch(timestamp)

    def apply_button_event(self, button_id: str, pressed: bool, timestamp: datetime) -> bool:
        """Fold one button level report. Returns True if the level changed."""
        pressed = bool(pressed)
        # A button we have never heard about counts as released.
        if self.button_pressed.get(button_id, False) == pressed:
            return False

        if pressed:
            self.down_count[button_id] = self.down_count.get(button_id, 0) + 1
        else:
            self.up_count[button_id] = self.up_count.get(button_id, 0) + 1
        self.button_pressed[button_id] = pressed
        self._touch(timestamp)
        return True

    def mark_disconnected(self, timestamp: datetime) -> None:
        self.connected = False
        self._touch(timestamp)

    def snapshot(self) -> GamepadMessage:
        return GamepadMessage(
            name=self.name,
            connected=self.connected,
            axis_state=dict(self.axis_state),
            button_pressed=dict(self.button_pressed),
            button_down_event_counter=dict(self.down_count),
            button_up_event_counter=dict(self.up_count),
            last_event_time=self.last_event_time,
        )

    def __repr__(self) -> str:
        return (
            f"DeviceStateTracker(id={self.device_id!r}, name={self.name!r}, "
            f"connected={self.connected}, buttons={len(self.button_pressed)}, axes={len(self.axis_state)})"
        )
