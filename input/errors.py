# input/errors.py
from __future__ import annotations

from typing import Any, Optional


class GamepadPublisherError(Exception):
    """Base class for everything the publisher raises on purpose."""


class MalformedEvent(GamepadPublisherError):
    """An input event referenced a device we are not tracking.

    Never raised by the reducer; instances are collected in the drain summary
    so the caller can log/inspect them.
    """

    def __init__(self, device_id: Any, event: Optional[object] = None):
        self.device_id = device_id
        self.event = event
        super().__init__(f"event for unknown device {device_id!r}: {event!r}")


class TransportUnavailable(GamepadPublisherError):
    """Session establish or publish failed. Retried on the next tick."""


class PollingCapabilityFailure(GamepadPublisherError):
    """The device polling source itself is unusable. Fatal."""


class SerializationFailure(GamepadPublisherError):
    """A snapshot could not be encoded. Only that tick is skipped."""
