from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

import input.controller as controller
from input.controller import PygameEventSource, axis_names_for, button_name_for, infer_axis_map
from input.errors import PollingCapabilityFailure
from input.events import AxisChanged, ButtonChanged, Connected, Disconnected

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)

JOYAXISMOTION, JOYHATMOTION, JOYBUTTONDOWN, JOYBUTTONUP, JOYDEVICEADDED, JOYDEVICEREMOVED = range(1536, 1542)


class FakeError(Exception):
    pass


class FakeJoystick:
    def __init__(self, instance_id, name, axes):
        self.instance_id = instance_id
        self.name = name
        self.axes = list(axes)
        self.quit_called = False

    def init(self):
        pass

    def quit(self):
        self.quit_called = True

    def get_instance_id(self):
        return self.instance_id

    def get_name(self):
        return self.name

    def get_guid(self):
        return "0300deadbeef"

    def get_numaxes(self):
        return len(self.axes)

    def get_axis(self, i):
        return self.axes[i]

    def get_numbuttons(self):
        return 11

    def get_numhats(self):
        return 1


class FakePygame:
    error = FakeError
    JOYAXISMOTION = JOYAXISMOTION
    JOYHATMOTION = JOYHATMOTION
    JOYBUTTONDOWN = JOYBUTTONDOWN
    JOYBUTTONUP = JOYBUTTONUP
    JOYDEVICEADDED = JOYDEVICEADDED
    JOYDEVICEREMOVED = JOYDEVICEREMOVED

    def __init__(self, devices):
        self.devices = devices  # device_index -> FakeJoystick
        self.queue = []
        self.initialized = False
        self.fail_get = False
        self.event = SimpleNamespace(get=self._get)
        self.joystick = SimpleNamespace(
            init=self._joy_init,
            get_init=lambda: self.initialized,
            get_count=lambda: len(self.devices),
            Joystick=lambda i: self.devices[i],
        )

    def init(self):
        self.initialized = True

    def get_init(self):
        return self.initialized

    def _joy_init(self):
        self.initialized = True

    def _get(self):
        if self.fail_get:
            raise FakeError("video system not initialized")
        out, self.queue = self.queue, []
        return out

    def post(self, type_, **attrs):
        self.queue.append(SimpleNamespace(type=type_, **attrs))


@pytest.fixture
def fake_pygame(monkeypatch):
    fake = FakePygame({0: FakeJoystick(42, "Xbox Wireless Controller", [0.0, 0.0, 0.0, 0.0, -1.0, -1.0])})
    monkeypatch.setattr(controller, "pygame", fake)
    return fake


def drain(src):
    out = []
    while True:
        ev = src.poll_next_event()
        if ev is None:
            return out
        out.append(ev)


def test_device_added_emits_connected_and_rest_axes(fake_pygame):
    src = PygameEventSource(clock=lambda: NOW)
    fake_pygame.post(JOYDEVICEADDED, device_index=0)

    events = drain(src)
    assert events[0] == Connected(42, "Xbox Wireless Controller", NOW)
    axes = {e.axis: e.value for e in events[1:]}
    assert axes == {
        "left-stick-x": 0.0,
        "left-stick-y": 0.0,
        "right-stick-x": 0.0,
        "right-stick-y": 0.0,
        "left-z": -1.0,
        "right-z": -1.0,
    }


def test_buttons_axes_and_removal_are_translated(fake_pygame):
    src = PygameEventSource(clock=lambda: NOW)
    fake_pygame.post(JOYDEVICEADDED, device_index=0)
    drain(src)

    fake_pygame.post(JOYBUTTONDOWN, instance_id=42, button=0)
    fake_pygame.post(JOYBUTTONUP, instance_id=42, button=0)
    fake_pygame.post(JOYBUTTONDOWN, instance_id=42, button=9)
    fake_pygame.post(JOYBUTTONDOWN, instance_id=42, button=14)
    fake_pygame.post(JOYAXISMOTION, instance_id=42, axis=0, value=0.75)
    fake_pygame.post(JOYDEVICEREMOVED, instance_id=42)

    assert drain(src) == [
        ButtonChanged(42, "south", True, NOW),
        ButtonChanged(42, "south", False, NOW),
        ButtonChanged(42, "right-thumb", True, NOW),
        ButtonChanged(42, "button-14", True, NOW),
        AxisChanged(42, "left-stick-x", 0.75, NOW),
        Disconnected(42, NOW),
    ]
    assert fake_pygame.devices[0].quit_called is True


def test_hat_becomes_dpad_axes_and_buttons(fake_pygame):
    src = PygameEventSource(clock=lambda: NOW)
    fake_pygame.post(JOYDEVICEADDED, device_index=0)
    drain(src)

    fake_pygame.post(JOYHATMOTION, instance_id=42, hat=0, value=(-1, 1))
    events = drain(src)
    axes = {e.axis: e.value for e in events if isinstance(e, AxisChanged)}
    buttons = {e.button: e.pressed for e in events if isinstance(e, ButtonChanged)}
    assert axes == {"dpad-x": -1.0, "dpad-y": 1.0}
    assert buttons == {"dpad-left": True, "dpad-right": False, "dpad-up": True, "dpad-down": False}


def test_other_events_are_ignored(fake_pygame):
    src = PygameEventSource(clock=lambda: NOW)
    fake_pygame.post(256)  # QUIT
    assert src.poll_next_event() is None


def test_event_queue_failure_is_polling_failure(fake_pygame):
    src = PygameEventSource(clock=lambda: NOW)
    fake_pygame.fail_get = True
    with pytest.raises(PollingCapabilityFailure):
        src.poll_next_event()


def test_healthcheck_detects_dead_subsystem(fake_pygame):
    src = PygameEventSource(clock=lambda: NOW)
    src.healthcheck()
    fake_pygame.initialized = False
    with pytest.raises(PollingCapabilityFailure):
        src.healthcheck()


def test_missing_pygame_is_polling_failure(monkeypatch):
    monkeypatch.setattr(controller, "pygame", None)
    with pytest.raises(PollingCapabilityFailure):
        PygameEventSource()
    assert controller.list_controllers() == []


def test_list_controllers(fake_pygame):
    devices = controller.list_controllers()
    assert devices == [
        {
            "index": 0,
            "instance_id": 42,
            "name": "Xbox Wireless Controller",
            "guid": "0300deadbeef",
            "axes": 6,
            "buttons": 11,
            "hats": 1,
        }
    ]


def test_infer_axis_map_layouts():
    assert infer_axis_map([0.0, 0.0, 0.0, 0.0, -1.0, -1.0]) == [0, 1, 2, 3, 4, 5]
    assert infer_axis_map([0.0, 0.0, -1.0, 0.0, 0.0, -1.0]) == [0, 1, 3, 4, 2, 5]
    assert infer_axis_map([0.0, 0.0]) == [0, 1, 2, 3, 4, 5]


def test_axis_and_button_names():
    names = axis_names_for(8, [0, 1, 3, 4, 2, 5])
    assert names[2] == "left-z"
    assert names[3] == "right-stick-x"
    assert names[7] == "axis-7"
    assert button_name_for(3, is_xbox=False) == "north"
    assert button_name_for(10, is_xbox=True) == "mode"
    assert button_name_for(10, is_xbox=False) == "button-10"
