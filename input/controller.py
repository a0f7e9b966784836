# input/controller.py
from __future__ import annotations

import logging
import os
import sys
from collections import deque
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from input.errors import PollingCapabilityFailure
from input.events import AxisChanged, ButtonChanged, Connected, Disconnected, InputEvent
from schema.gamepad_message import Axis, Button, utc_now

try:
    import pygame  # type: ignore
except ImportError:  # pragma: no cover
    pygame = None  # type: ignore

logger = logging.getLogger(__name__)

# Schema order used by axis maps: (lx, ly, rx, ry, lt, rt)
AXIS_MAP_NAMES = [
    Axis.LEFT_STICK_X,
    Axis.LEFT_STICK_Y,
    Axis.RIGHT_STICK_X,
    Axis.RIGHT_STICK_Y,
    Axis.LEFT_Z,
    Axis.RIGHT_Z,
]
DEFAULT_AXIS_MAP = [0, 1, 2, 3, 4, 5]

# Common SDL joystick layout for Xbox-style pads:
#  0=A 1=B 2=X 3=Y 4=LB 5=RB 6=Back/View 7=Start/Menu 8=L3 9=R3 10=Guide
_FACE_BUTTONS = {
    0: Button.SOUTH,
    1: Button.EAST,
    2: Button.WEST,
    3: Button.NORTH,
    4: Button.LEFT_TRIGGER,
    5: Button.RIGHT_TRIGGER,
    6: Button.SELECT,
    7: Button.START,
}
_XBOX_EXTRA_BUTTONS = {
    8: Button.LEFT_THUMB,
    9: Button.RIGHT_THUMB,
    10: Button.MODE,
}


def _safe_get_guid(js) -> str:
    fn = getattr(js, "get_guid", None)
    if callable(fn):
        try:
            return str(fn())
        except pygame.error:
            return "unknown"
    return "n/a"


def _prepare_sdl_env() -> None:
    # Keep receiving joystick events when our window (if any) is not focused.
    os.environ.setdefault("SDL_JOYSTICK_ALLOW_BACKGROUND_EVENTS", "1")
    # The event queue needs a video driver; headless Linux boxes have none.
    if sys.platform.startswith("linux") and not (os.environ.get("DISPLAY") or os.environ.get("WAYLAND_DISPLAY")):
        os.environ.setdefault("SDL_VIDEODRIVER", "dummy")


def ensure_pygame_joystick() -> None:
    """Initialize pygame joystick subsystem.

    Raises a clear error if pygame isn't installed.
    """
    if pygame is None:
        raise PollingCapabilityFailure("pygame is not installed; controller support unavailable")
    _prepare_sdl_env()
    # These are idempotent in pygame
    pygame.init()
    pygame.joystick.init()


def list_controllers() -> List[Dict[str, Any]]:
    """
    Returns a list of dicts describing currently detected controllers.
    Safe to call even if no controllers exist.
    """
    if pygame is None:
        return []
    ensure_pygame_joystick()
    out: List[Dict[str, Any]] = []
    for i in range(pygame.joystick.get_count()):
        js = pygame.joystick.Joystick(i)
        js.init()
        out.append(
            {
                "index": i,
                "instance_id": js.get_instance_id(),
                "name": js.get_name(),
                "guid": _safe_get_guid(js),
                "axes": js.get_numaxes(),
                "buttons": js.get_numbuttons(),
                "hats": js.get_numhats(),
            }
        )
    return out


def infer_axis_map(rest_axes: List[float]) -> List[int]:
    """Infer the axis_map (lx,ly,rx,ry,lt,rt) -> pygame indices.

    We try to distinguish between the two common layouts:
      A) [0,1,2,3,4,5]  where axes 4/5 are triggers
      B) [0,1,3,4,2,5]  where axes 2/5 are triggers

    Heuristic:
      - Trigger axes often rest far from 0 (e.g. -1.0 or +1.0)
      - Stick axes rest near 0.0

    If we can't tell, we fall back to layout A.
    """
    ra = [float(v) for v in rest_axes[:6]]
    if len(ra) < 6:
        return list(DEFAULT_AXIS_MAP)

    far = {i for i, v in enumerate(ra) if abs(v) > 0.35}
    if (2 in far) and (4 not in far):
        return [0, 1, 3, 4, 2, 5]
    return list(DEFAULT_AXIS_MAP)


def axis_names_for(num_axes: int, axis_map: List[int]) -> Dict[int, str]:
    """Raw axis index -> wire name. Unmapped indices pass through as ``axis-<n>``."""
    names = {i: f"axis-{i}" for i in range(num_axes)}
    for name, idx in zip(AXIS_MAP_NAMES, axis_map):
        if 0 <= idx < num_axes:
            names[idx] = name
    return names


def button_name_for(index: int, is_xbox: bool) -> str:
    if index in _FACE_BUTTONS:
        return _FACE_BUTTONS[index]
    if is_xbox and index in _XBOX_EXTRA_BUTTONS:
        return _XBOX_EXTRA_BUTTONS[index]
    return f"button-{index}"


class _Pad:
    """What we remember about one opened joystick."""

    def __init__(self, js, axis_map: Optional[List[int]]):
        self.js = js
        self.instance_id = js.get_instance_id()
        self.name = js.get_name()
        self.guid = _safe_get_guid(js)
        self.is_xbox = "xbox" in (self.name or "").lower()
        self.rest_axes = [float(js.get_axis(i)) for i in range(js.get_numaxes())]
        self.axis_map = list(axis_map) if axis_map is not None else infer_axis_map(self.rest_axes)
        self.axis_names = axis_names_for(len(self.rest_axes), self.axis_map)


class PygameEventSource:
    """
    Device polling capability on top of pygame/SDL joystick events.

    Hot-plug comes for free: SDL posts JOYDEVICEADDED for every pad already
    attached when the joystick subsystem starts, and for every pad plugged in
    later. Device ids are SDL instance ids, which are never reused within a
    process, so a replugged pad shows up as a new device.

    Values are passed through untouched (no deadzone, no trigger rescaling).

    NOTE: create and read this object from the SAME thread.
    """

    def __init__(
        self,
        axis_map: Optional[List[int]] = None,
        clock: Callable[[], datetime] = utc_now,
        debug: bool = False,
    ):
        ensure_pygame_joystick()
        self.axis_map = list(axis_map)[:6] if axis_map else None
        self.clock = clock
        self.debug = bool(debug)
        self._pads: Dict[int, _Pad] = {}
        self._pending: Deque[InputEvent] = deque()

    # --- EventSource ----------------------------------------------------

    def poll_next_event(self) -> Optional[InputEvent]:
        if not self._pending:
            self._fill()
        if self._pending:
            return self._pending.popleft()
        return None

    def healthcheck(self) -> None:
        """Raise if SDL's joystick subsystem has gone away."""
        if pygame is None:
            raise PollingCapabilityFailure("pygame is not installed")
        try:
            ok = bool(pygame.get_init()) and bool(pygame.joystick.get_init())
        except pygame.error as e:
            raise PollingCapabilityFailure(f"pygame joystick subsystem error: {e}") from e
        if not ok:
            raise PollingCapabilityFailure("pygame joystick subsystem is not initialized")

    def close(self) -> None:
        """Release joystick handles (best-effort)."""
        for pad in self._pads.values():
            try:
                pad.js.quit()
            except pygame.error:
                pass
        self._pads.clear()
        self._pending.clear()

    # --- internals -----------------------------------------------------

    def _fill(self) -> None:
        try:
            # Take everything so non-joystick events can't pile up in SDL's queue.
            raw_events = pygame.event.get()
        except pygame.error as e:
            raise PollingCapabilityFailure(f"pygame event queue unavailable: {e}") from e

        now = self.clock()
        for ev in raw_events:
            self._translate(ev, now)

    def _translate(self, ev, now: datetime) -> None:
        t = ev.type
        if t == pygame.JOYDEVICEADDED:
            self._on_added(ev.device_index, now)
        elif t == pygame.JOYDEVICEREMOVED:
            self._on_removed(ev.instance_id, now)
        elif t == pygame.JOYAXISMOTION:
            pad = self._pads.get(ev.instance_id)
            name = pad.axis_names.get(ev.axis, f"axis-{ev.axis}") if pad else f"axis-{ev.axis}"
            self._pending.append(AxisChanged(ev.instance_id, name, float(ev.value), now))
        elif t in (pygame.JOYBUTTONDOWN, pygame.JOYBUTTONUP):
            pad = self._pads.get(ev.instance_id)
            name = button_name_for(ev.button, pad.is_xbox if pad else False)
            self._pending.append(ButtonChanged(ev.instance_id, name, t == pygame.JOYBUTTONDOWN, now))
        elif t == pygame.JOYHATMOTION:
            self._on_hat(ev.instance_id, ev.hat, ev.value, now)

    def _on_added(self, device_index: int, now: datetime) -> None:
        try:
            js = pygame.joystick.Joystick(device_index)
            js.init()
            pad = _Pad(js, self.axis_map)
        except pygame.error as e:
            # Pad vanished between the add event and the open. Nothing to track.
            logger.warning("Could not open joystick index %s: %s", device_index, e)
            return
        if pad.instance_id in self._pads:
            return
        self._pads[pad.instance_id] = pad
        if self.debug:
            logger.info(
                "opened index=%s name='%s' guid='%s' instance_id=%s axes=%s buttons=%s hats=%s axis_map=%s",
                device_index,
                pad.name,
                pad.guid,
                pad.instance_id,
                len(pad.rest_axes),
                js.get_numbuttons(),
                js.get_numhats(),
                pad.axis_map,
            )
        self._pending.append(Connected(pad.instance_id, pad.name, now))
        # Report where the sticks/triggers currently sit.
        for idx, value in enumerate(pad.rest_axes):
            self._pending.append(AxisChanged(pad.instance_id, pad.axis_names[idx], value, now))

    def _on_removed(self, instance_id: int, now: datetime) -> None:
        pad = self._pads.pop(instance_id, None)
        if pad is not None:
            try:
                pad.js.quit()
            except pygame.error:
                pass
        self._pending.append(Disconnected(instance_id, now))

    def _on_hat(self, instance_id: int, hat: int, value: Tuple[int, int], now: datetime) -> None:
        x, y = int(value[0]), int(value[1])
        if hat != 0:
            self._pending.append(AxisChanged(instance_id, f"hat-{hat}-x", float(x), now))
            self._pending.append(AxisChanged(instance_id, f"hat-{hat}-y", float(y), now))
            return

        self._pending.append(AxisChanged(instance_id, Axis.DPAD_X, float(x), now))
        self._pending.append(AxisChanged(instance_id, Axis.DPAD_Y, float(y), now))
        # SDL reports hat up as y=+1.
        for button, pressed in (
            (Button.DPAD_LEFT, x < 0),
            (Button.DPAD_RIGHT, x > 0),
            (Button.DPAD_UP, y > 0),
            (Button.DPAD_DOWN, y < 0),
        ):
            self._pending.append(ButtonChanged(instance_id, button, pressed, now))
