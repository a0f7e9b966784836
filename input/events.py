# input/events.py
"""Input events and the two collaborator interfaces the publish loop drives.

Anything that yields these events (pygame, a replay file, a test fake) can
feed the reducer. Anything that can ``publish(session, topic, payload)`` can
carry the snapshots.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Hashable, Optional, Protocol, Union

DeviceId = Hashable


@dataclass(frozen=True)
class Connected:
    device_id: DeviceId
    name: str
    time: datetime


@dataclass(frozen=True)
class Disconnected:
    device_id: DeviceId
    time: datetime


@dataclass(frozen=True)
class AxisChanged:
    device_id: DeviceId
    axis: str
    value: float
    time: datetime


@dataclass(frozen=True)
class ButtonChanged:
    device_id: DeviceId
    button: str
    pressed: bool
    time: datetime


InputEvent = Union[Connected, Disconnected, AxisChanged, ButtonChanged]


class EventSource(Protocol):
    def poll_next_event(self) -> Optional[InputEvent]:
        """Return the next queued event, or None if nothing is queued. Never blocks."""
        ...

    def healthcheck(self) -> None:
        """Raise if the underlying input subsystem is gone."""
        ...

    def close(self) -> None:
        ...


class Transport(Protocol):
    def establish_session(self) -> Any:
        ...

    def publish(self, session: Any, topic: str, payload: bytes) -> None:
        ...

    def close_session(self, session: Any) -> None:
        ...
