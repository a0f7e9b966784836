# input/gamepad_publisher.py
from __future__ import annotations

import argparse
import json
import logging
import sys
import time

from config import (
    CONTROLLER_AXIS_MAP,
    CONTROLLER_DEBUG,
    GAMEPAD_HEALTHCHECK_PERIOD_S,
    GAMEPAD_PUB_BIND,
    GAMEPAD_PUB_ENDPOINT,
    GAMEPAD_PUBLISH_PERIOD_MS,
    GAMEPAD_TOPIC,
    LOG_LEVEL,
)
from input.controller import PygameEventSource, list_controllers
from input.errors import PollingCapabilityFailure
from input.event_reducer import InputEventReducer
from input.publish_loop import GamepadPublishLoop
from network.zmq_transport import ZmqTransport
from schema.gamepad_message import input_message_json_schema

logger = logging.getLogger("gamepad_publisher")

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def setup_logging(verbosity: int = 0) -> None:
    if verbosity <= 0:
        level = getattr(logging, LOG_LEVEL, logging.INFO)
    else:
        level = logging.DEBUG
    logging.basicConfig(level=level, format=LOG_FORMAT)


def _parse_int_list(s: str) -> list[int]:
    return [int(x.strip()) for x in s.split(",") if x.strip() != ""]


def build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Gamepad state publisher (controllers → ZMQ PUB)")
    ap.add_argument("--endpoint", default=GAMEPAD_PUB_ENDPOINT, help="ZMQ PUB endpoint")
    ap.add_argument(
        "--connect",
        action="store_true",
        default=not GAMEPAD_PUB_BIND,
        help="connect() to the endpoint instead of bind()",
    )
    ap.add_argument("--topic", default=GAMEPAD_TOPIC, help="Topic prefix for snapshot frames")
    ap.add_argument(
        "--period-ms",
        type=float,
        default=GAMEPAD_PUBLISH_PERIOD_MS,
        help="Publish loop tick period in milliseconds",
    )
    ap.add_argument(
        "--axis-map",
        default=None,
        help="Override axis map as 6 comma-separated ints: lx,ly,rx,ry,lt,rt (e.g. '0,1,3,4,2,5')",
    )
    ap.add_argument("--list", action="store_true", help="List detected controllers and exit")
    ap.add_argument("--print-schema", action="store_true", help="Print the message JSON schema and exit")
    ap.add_argument(
        "--foreground",
        action="store_true",
        help="Run publish loop in the foreground (no thread) for debugging",
    )
    ap.add_argument("--debug", action="store_true", default=CONTROLLER_DEBUG, help="Log details of every opened pad")
    ap.add_argument("-v", "--verbose", action="count", default=0, help="More logging (repeatable)")
    return ap


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.verbose)

    if args.print_schema:
        print(json.dumps(input_message_json_schema(), indent=2))
        return 0

    if args.list:
        devices = list_controllers()
        if not devices:
            print("No controllers detected.")
            return 0
        print("Detected controllers:")
        for d in devices:
            print(
                f"  index={d['index']} instance_id={d['instance_id']} name='{d['name']}' guid='{d['guid']}' "
                f"axes={d['axes']} buttons={d['buttons']} hats={d['hats']}"
            )
        return 0

    axis_map = CONTROLLER_AXIS_MAP
    if args.axis_map is not None:
        try:
            axis_map = _parse_int_list(args.axis_map)
        except ValueError:
            logger.warning("Ignoring bad --axis-map %r", args.axis_map)

    # pygame is initialised by the loop on its own thread, not here
    def open_source() -> PygameEventSource:
        return PygameEventSource(axis_map=axis_map, debug=args.debug)

    loop = GamepadPublishLoop(
        reducer=InputEventReducer(source_factory=open_source),
        transport=ZmqTransport(args.endpoint, bind=not args.connect),
        topic=args.topic,
        period_s=max(1.0, float(args.period_ms)) / 1000.0,
        healthcheck_period_s=GAMEPAD_HEALTHCHECK_PERIOD_S,
    )

    logger.info("Publishing on topic %r via %s every %.0f ms", args.topic, args.endpoint, args.period_ms)

    try:
        if args.foreground:
            loop.start(threaded=False)
        else:
            loop.start(threaded=True)
            # keep main alive without pegging CPU
            while loop.is_running():
                time.sleep(0.25)
    except PollingCapabilityFailure:
        return 1
    except KeyboardInterrupt:
        logger.info("stopping…")
        loop.stop()

    return 1 if loop.error is not None else 0


if __name__ == "__main__":
    sys.exit(main())
