"""
Global-ish config for the gamepad publisher.

You can import this from anywhere:

    from config import GAMEPAD_PUB_ENDPOINT, GAMEPAD_TOPIC, GAMEPAD_PUBLISH_PERIOD_MS

Every value can be overridden via environment variables, e.g.:

    GAMEPAD_PUBLISH_PERIOD_MS=20 gamepad-publisher
"""

import os


def _env_bool(var: str, default: bool) -> bool:
    s = os.environ.get(var, "").strip().lower()
    if not s:
        return default
    return s in ("1", "true", "yes", "on")


def _env_float(var: str, default: float) -> float:
    try:
        return float(os.environ.get(var, default))
    except ValueError:
        return default


def _parse_int_list_env(var: str, default: list[int]) -> list[int]:
    s = os.environ.get(var, "").strip()
    if not s:
        return list(default)
    try:
        return [int(x.strip()) for x in s.split(",") if x.strip() != ""]
    except ValueError:
        return list(default)


# Address the PUB socket binds to (or connects to with GAMEPAD_PUB_BIND=0).
GAMEPAD_HOST = os.environ.get("GAMEPAD_HOST", "127.0.0.1")
GAMEPAD_PUB_ENDPOINT = os.environ.get("GAMEPAD_PUB_EP", f"tcp://{GAMEPAD_HOST}:7447")
GAMEPAD_PUB_BIND = _env_bool("GAMEPAD_PUB_BIND", True)

# Subscribers filter on this prefix. The JSON schema goes out on
# "<topic>/__schema__".
GAMEPAD_TOPIC = os.environ.get("GAMEPAD_TOPIC", "remote-control/gamepad")

# Tick period of the publish loop.
GAMEPAD_PUBLISH_PERIOD_MS = _env_float("GAMEPAD_PUBLISH_PERIOD_MS", 50.0)

# How often the loop asks SDL whether the joystick subsystem is still alive.
GAMEPAD_HEALTHCHECK_PERIOD_S = _env_float("GAMEPAD_HEALTHCHECK_PERIOD_S", 0.5)

# Axis naming (lx,ly,rx,ry,lt,rt) -> pygame axis indices.
#
# SDL/pygame axis numbering varies across OS/driver/controller. Two very
# common Xbox layouts are:
#   A) 0=lx, 1=ly, 2=rx, 3=ry, 4=lt, 5=rt
#   B) 0=lx, 1=ly, 2=lt, 3=rx, 4=ry, 5=rt
#
# Unset (or "auto") means detect per pad from its rest values. To force one:
#   GAMEPAD_CONTROLLER_AXIS_MAP=0,1,3,4,2,5   (layout B)
_AXIS_MAP_ENV = os.environ.get("GAMEPAD_CONTROLLER_AXIS_MAP", "").strip().lower()
if (not _AXIS_MAP_ENV) or _AXIS_MAP_ENV in ("auto", "detect", "default"):
    CONTROLLER_AXIS_MAP = None
else:
    CONTROLLER_AXIS_MAP = _parse_int_list_env("GAMEPAD_CONTROLLER_AXIS_MAP", [0, 1, 2, 3, 4, 5])

# Log every pad we open (name, guid, axis/button/hat counts).
CONTROLLER_DEBUG = _env_bool("GAMEPAD_CONTROLLER_DEBUG", False)

LOG_LEVEL = os.environ.get("GAMEPAD_LOG_LEVEL", "INFO").strip().upper()
