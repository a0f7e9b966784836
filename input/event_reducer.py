# input/event_reducer.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional

from input.device_state import DeviceStateTracker
from input.errors import MalformedEvent, PollingCapabilityFailure
from input.events import (
    AxisChanged,
    ButtonChanged,
    Connected,
    DeviceId,
    Disconnected,
    EventSource,
    InputEvent,
)
from schema.gamepad_message import InputMessage

logger = logging.getLogger(__name__)


@dataclass
class DeviceSetChangeSummary:
    """What one ``drain_pending()`` call did."""

    connected: List[DeviceId] = field(default_factory=list)
    disconnected: List[DeviceId] = field(default_factory=list)
    pruned: List[DeviceId] = field(default_factory=list)
    events_applied: int = 0
    malformed: List[MalformedEvent] = field(default_factory=list)


class InputEventReducer:
    """
    Folds the event source's stream into per-device trackers.

    Pruning: a disconnected tracker stays in the set until a snapshot showing
    it as ``connected: false`` has actually been published (see
    ``acknowledge_published``). It is then removed at the start of the next
    ``drain_pending()``. Every disconnect is therefore seen downstream once,
    even if the transport was down when it happened.

    During a long outage every replug adds a new disconnected tracker, so at
    most ``max_disconnected`` unpublished disconnects are kept; beyond that
    the oldest ones are dropped without ever being reported.

    Pass ``source_factory`` instead of ``source`` when the source has to be
    created on the thread that reads it (pygame/SDL); it is opened by
    ``open_source()`` or on first use.

    NOTE: call everything on this object from ONE thread (the publish loop).
    """

    def __init__(
        self,
        source: Optional[EventSource] = None,
        max_events_per_drain: Optional[int] = None,
        *,
        source_factory: Optional[Callable[[], EventSource]] = None,
        max_disconnected: int = 32,
    ):
        if source is None and source_factory is None:
            raise ValueError("need an event source or a source_factory")
        self.source = source
        self.source_factory = source_factory
        self.max_events_per_drain = int(max_events_per_drain) if max_events_per_drain else None
        self.max_disconnected = max(0, int(max_disconnected))
        self._trackers: Dict[DeviceId, DeviceStateTracker] = {}

    @property
    def trackers(self) -> Mapping[DeviceId, DeviceStateTracker]:
        return MappingProxyType(self._trackers)

    def open_source(self) -> EventSource:
        """Create the source from the factory if it is not open yet."""
        if self.source is None:
            try:
                self.source = self.source_factory()
            except PollingCapabilityFailure:
                raise
            except Exception as e:
                raise PollingCapabilityFailure(f"cannot open event source: {e}") from e
        return self.source

    def close_source(self) -> None:
        source = self.source
        if source is None:
            return
        if self.source_factory is not None:
            # reopened on the next run, on whatever thread runs it
            self.source = None
        source.close()

    def check_source(self) -> None:
        source = self.open_source()
        try:
            source.healthcheck()
        except PollingCapabilityFailure:
            raise
        except Exception as e:
            raise PollingCapabilityFailure(f"event source healthcheck failed: {e}") from e

    def _next_event(self) -> Optional[InputEvent]:
        source = self.open_source()
        try:
            return source.poll_next_event()
        except PollingCapabilityFailure:
            raise
        except Exception as e:
            raise PollingCapabilityFailure(f"event source failed: {e}") from e

    def _prune(self, summary: DeviceSetChangeSummary) -> None:
        gone = [dev_id for dev_id, t in self._trackers.items() if not t.connected and t.disconnect_published]
        for dev_id in gone:
            del self._trackers[dev_id]
            summary.pruned.append(dev_id)
            logger.debug("Pruned gamepad %s", dev_id)

        pending = [t for t in self._trackers.values() if not t.connected]
        overflow = len(pending) - self.max_disconnected
        if overflow > 0:
            pending.sort(key=lambda t: t.last_event_time)
            for t in pending[:overflow]:
                del self._trackers[t.device_id]
                summary.pruned.append(t.device_id)
                logger.warning("Dropped unpublished disconnect of gamepad %s - %s", t.device_id, t.name)

    def drain_pending(self) -> DeviceSetChangeSummary:
        summary = DeviceSetChangeSummary()
        self._prune(summary)

        while self.max_events_per_drain is None or summary.events_applied < self.max_events_per_drain:
            ev = self._next_event()
            if ev is None:
                break
            self._apply(ev, summary)
            summary.events_applied += 1

        return summary

    def _apply(self, ev: InputEvent, summary: DeviceSetChangeSummary) -> None:
        if isinstance(ev, Connected):
            if ev.device_id in self._trackers:
                logger.debug("Duplicate connect for gamepad %s ignored", ev.device_id)
                return
            self._trackers[ev.device_id] = DeviceStateTracker(ev.device_id, ev.name, ev.time)
            summary.connected.append(ev.device_id)
            logger.info("Gamepad %s - %s connected", ev.device_id, ev.name)
            return

        tracker = self._trackers.get(getattr(ev, "device_id", None))

        if isinstance(ev, Disconnected):
            if tracker is None:
                logger.debug("Disconnect for unknown gamepad %s ignored", ev.device_id)
                return
            tracker.mark_disconnected(ev.time)
            summary.disconnected.append(ev.device_id)
            logger.warning("Gamepad %s - %s disconnected", ev.device_id, tracker.name)
            return

        if tracker is None:
            err = MalformedEvent(getattr(ev, "device_id", None), ev)
            summary.malformed.append(err)
            logger.warning("Dropping %s", err)
            return

        if isinstance(ev, AxisChanged):
            tracker.apply_axis_event(ev.axis, ev.value, ev.time)
        elif isinstance(ev, ButtonChanged):
            tracker.apply_button_event(ev.button, ev.pressed, ev.time)
        else:
            err = MalformedEvent(getattr(ev, "device_id", None), ev)
            summary.malformed.append(err)
            logger.warning("Dropping unsupported event %r", ev)

    def acknowledge_published(self, message: InputMessage) -> None:
        """Mark disconnects carried by ``message`` as delivered."""
        for dev_id, tracker in self._trackers.items():
            if tracker.connected:
                continue
            gp = message.gamepads.get(str(dev_id))
            if gp is not None and not gp.connected:
                tracker.disconnect_published = True
