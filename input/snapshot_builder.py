# input/snapshot_builder.py
from __future__ import annotations

from datetime import datetime
from typing import Mapping

from input.device_state import DeviceStateTracker
from schema.gamepad_message import InputMessage


def build(all_trackers: Mapping[object, DeviceStateTracker], capture_time: datetime) -> InputMessage:
    """Copy every tracker (connected or not) into one InputMessage.

    The message time never precedes the newest event it contains, even if the
    caller's clock lags an event source that stamps its own times.
    """
    gamepads = {str(dev_id): tracker.snapshot() for dev_id, tracker in all_trackers.items()}
    newest = max((g.last_event_time for g in gamepads.values()), default=capture_time)
    return InputMessage(gamepads=gamepads, time=max(capture_time, newest))
