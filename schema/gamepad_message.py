# gamepad_message.py
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any
import json

GAMEPAD_SCHEMA_TOPIC_SUFFIX = "__schema__"


class Button:
    """Canonical button names used on the wire."""

    SOUTH = "south"
    EAST = "east"
    NORTH = "north"
    WEST = "west"
    C = "c"
    Z = "z"
    LEFT_TRIGGER = "left-trigger"
    LEFT_TRIGGER_2 = "left-trigger-2"
    RIGHT_TRIGGER = "right-trigger"
    RIGHT_TRIGGER_2 = "right-trigger-2"
    SELECT = "select"
    START = "start"
    MODE = "mode"
    LEFT_THUMB = "left-thumb"
    RIGHT_THUMB = "right-thumb"
    DPAD_UP = "dpad-up"
    DPAD_DOWN = "dpad-down"
    DPAD_LEFT = "dpad-left"
    DPAD_RIGHT = "dpad-right"
    LEFT_PADDLE = "left-paddle"
    RIGHT_PADDLE = "right-paddle"
    UNKNOWN = "unknown"


class Axis:
    """Canonical axis names used on the wire."""

    LEFT_STICK_X = "left-stick-x"
    LEFT_STICK_Y = "left-stick-y"
    LEFT_Z = "left-z"
    RIGHT_STICK_X = "right-stick-x"
    RIGHT_STICK_Y = "right-stick-y"
    RIGHT_Z = "right-z"
    DPAD_X = "dpad-x"
    DPAD_Y = "dpad-y"
    UNKNOWN = "unknown"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _ts_to_str(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.isoformat()


def _ts_from_str(s: str) -> datetime:
    # fromisoformat() before 3.11 does not accept a trailing "Z"
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    ts = datetime.fromisoformat(s)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


@dataclass
class GamepadMessage:
    name: str = ""
    connected: bool = True
    axis_state: Dict[str, float] = field(default_factory=dict)
    button_pressed: Dict[str, bool] = field(default_factory=dict)
    button_down_event_counter: Dict[str, int] = field(default_factory=dict)
    button_up_event_counter: Dict[str, int] = field(default_factory=dict)
    last_event_time: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "connected": self.connected,
            "axis_state": dict(self.axis_state),
            "button_pressed": dict(self.button_pressed),
            "button_down_event_counter": dict(self.button_down_event_counter),
            "button_up_event_counter": dict(self.button_up_event_counter),
            "last_event_time": _ts_to_str(self.last_event_time),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "GamepadMessage":
        return cls(
            name=str(d.get("name", "")),
            connected=bool(d.get("connected", True)),
            axis_state={str(k): float(v) for k, v in (d.get("axis_state") or {}).items()},
            button_pressed={str(k): bool(v) for k, v in (d.get("button_pressed") or {}).items()},
            button_down_event_counter={
                str(k): int(v) for k, v in (d.get("button_down_event_counter") or {}).items()
            },
            button_up_event_counter={
                str(k): int(v) for k, v in (d.get("button_up_event_counter") or {}).items()
            },
            last_event_time=_ts_from_str(d["last_event_time"]),
        )


@dataclass
class InputMessage:
    gamepads: Dict[str, GamepadMessage] = field(default_factory=dict)
    time: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {
            "gamepads": {str(k): g.to_dict() for k, g in self.gamepads.items()},
            "time": _ts_to_str(self.time),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "InputMessage":
        return cls(
            gamepads={str(k): GamepadMessage.from_dict(g) for k, g in (d.get("gamepads") or {}).items()},
            time=_ts_from_str(d["time"]),
        )

    def to_json(self) -> bytes:
        # NaN/Infinity are not valid JSON; refuse them instead of emitting them.
        return json.dumps(self.to_dict(), sort_keys=True, allow_nan=False).encode("utf-8")

    @classmethod
    def from_json(cls, raw: bytes | str) -> "InputMessage":
        return cls.from_dict(json.loads(raw))


def _str_map(value_schema: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "object", "additionalProperties": value_schema}


def input_message_json_schema() -> Dict[str, Any]:
    """JSON Schema (draft-07) describing ``InputMessage.to_dict()``."""
    counter = {"type": "integer", "minimum": 0}
    gamepad = {
        "type": "object",
        "required": [
            "name",
            "connected",
            "axis_state",
            "button_pressed",
            "button_down_event_counter",
            "button_up_event_counter",
            "last_event_time",
        ],
        "properties": {
            "name": {"type": "string"},
            "connected": {"type": "boolean"},
            "axis_state": _str_map({"type": "number"}),
            "button_pressed": _str_map({"type": "boolean"}),
            "button_down_event_counter": _str_map(counter),
            "button_up_event_counter": _str_map(counter),
            "last_event_time": {"type": "string", "format": "date-time"},
        },
    }
    return {
        "$schema": "http://json-schema.org/draft-07/schema#",
        "title": "InputMessage",
        "type": "object",
        "required": ["gamepads", "time"],
        "properties": {
            "gamepads": _str_map(gamepad),
            "time": {"type": "string", "format": "date-time"},
        },
    }
