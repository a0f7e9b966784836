# input/publish_loop.py
from __future__ import annotations

import json
import logging
import threading
import time
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

from input.errors import PollingCapabilityFailure, SerializationFailure, TransportUnavailable
from input.event_reducer import InputEventReducer
from input.events import Transport
from input.snapshot_builder import build
from schema.gamepad_message import (
    GAMEPAD_SCHEMA_TOPIC_SUFFIX,
    InputMessage,
    input_message_json_schema,
    utc_now,
)

logger = logging.getLogger(__name__)


class LoopState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    SHUTTING_DOWN = "shutting_down"


class GamepadPublishLoop:
    """
    Fixed-rate driver:
      - drains pending input events into the trackers (every tick, even
        while the transport is down, so nothing is lost)
      - builds one InputMessage from all trackers
      - serializes it and PUBs it on ``topic``

    Transport failures drop us to DISCONNECTED; we retry establishing the
    session on every following tick, forever. A dead event source is the only
    fatal error: the loop shuts down cleanly and re-raises it.

    Threading: the transport session and the event source are used only on
    the thread that runs the loop. ``stop()`` may be called from anywhere.
    """

    def __init__(
        self,
        reducer: InputEventReducer,
        transport: Transport,
        topic: str,
        period_s: float = 0.05,
        healthcheck_period_s: float = 0.5,
        clock: Callable[[], datetime] = utc_now,
        publish_schema: bool = True,
        on_send: Optional[Callable[[InputMessage], None]] = None,
        on_status: Optional[Callable[[LoopState], None]] = None,
    ):
        self.reducer = reducer
        self.transport = transport
        self.topic = str(topic)
        self.period = float(period_s)
        self.healthcheck_period_s = float(healthcheck_period_s)
        self.clock = clock
        self.publish_schema = bool(publish_schema)
        self.on_send = on_send
        self.on_status = on_status

        self.state = LoopState.DISCONNECTED
        self.session: Any = None
        self.published_count = 0
        self.error: Optional[BaseException] = None

        self._connect_failures = 0
        self._last_health_check: Optional[float] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # --- lifecycle -----------------------------------------------------

    def start(self, threaded: bool = True) -> None:
        if threaded:
            if self._thread and self._thread.is_alive():
                return
            self._stop.clear()
            self._thread = threading.Thread(target=self._run_thread, name="gamepad-publish", daemon=True)
            self._thread.start()
        else:
            # Foreground mode (useful for debugging)
            self._stop.clear()
            self.run()

    def stop(self, timeout_s: float = 1.0) -> None:
        self._stop.set()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout_s)

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run_thread(self) -> None:
        try:
            self.run()
        except PollingCapabilityFailure:
            # Already logged and stored on self.error by run().
            pass
        except Exception as e:
            self.error = e
            logger.exception("Publish loop crashed")

    def run(self) -> None:
        """Blocking loop until ``stop()`` or a fatal event source failure."""
        try:
            # Open the event source on this thread; SDL wants init and reads on one thread.
            self.reducer.open_source()
            self._try_connect()
            while not self._stop.is_set():
                t0 = time.monotonic()
                self.run_once()
                # pacing; a late tick does not try to catch up
                sleep_for = self.period - (time.monotonic() - t0)
                if sleep_for > 0:
                    self._stop.wait(sleep_for)
        except PollingCapabilityFailure as e:
            self.error = e
            logger.error("Input polling failed, shutting down: %s", e)
            raise
        finally:
            self._shutdown()

    def _shutdown(self) -> None:
        self._set_state(LoopState.SHUTTING_DOWN)
        self._drop_session()
        try:
            self.reducer.close_source()
        except Exception as e:
            logger.debug("error closing event source: %s", e)
        logger.info("Publish loop stopped after %d snapshots", self.published_count)

    # --- one tick ------------------------------------------------------

    def run_once(self, now: Optional[datetime] = None) -> Optional[InputMessage]:
        """Run a single tick. Returns the published message, or None."""
        summary = self.reducer.drain_pending()
        if summary.events_applied or summary.pruned or summary.malformed:
            logger.debug(
                "drained %d events (connected=%s disconnected=%s pruned=%s malformed=%d)",
                summary.events_applied,
                summary.connected,
                summary.disconnected,
                summary.pruned,
                len(summary.malformed),
            )
        self._maybe_healthcheck()

        if self.state is LoopState.SHUTTING_DOWN:
            return None
        if self.state is LoopState.DISCONNECTED and not self._try_connect():
            return None

        message = build(self.reducer.trackers, now if now is not None else self.clock())
        try:
            payload = self._serialize(message)
        except SerializationFailure as e:
            logger.error("Skipping tick: %s", e)
            return None

        try:
            self.transport.publish(self.session, self.topic, payload)
        except TransportUnavailable as e:
            logger.warning("Publish failed, will reconnect: %s", e)
            self._drop_session()
            self._set_state(LoopState.DISCONNECTED)
            return None

        self.reducer.acknowledge_published(message)
        self.published_count += 1
        if self.on_send:
            try:
                self.on_send(message)
            except Exception:
                logger.exception("on_send callback failed")
        return message

    @staticmethod
    def _serialize(message: InputMessage) -> bytes:
        try:
            return message.to_json()
        except (TypeError, ValueError) as e:
            raise SerializationFailure(f"cannot encode snapshot: {e}") from e

    def _maybe_healthcheck(self) -> None:
        now = time.monotonic()
        if self._last_health_check is not None and (now - self._last_health_check) < self.healthcheck_period_s:
            return
        self._last_health_check = now
        self.reducer.check_source()

    # --- transport session --------------------------------------------

    def _try_connect(self) -> bool:
        try:
            session = self.transport.establish_session()
        except TransportUnavailable as e:
            self._connect_failures += 1
            if self._connect_failures == 1:
                logger.warning("Transport unavailable, retrying every tick: %s", e)
            else:
                logger.debug("Transport still unavailable (attempt %d): %s", self._connect_failures, e)
            self._set_state(LoopState.DISCONNECTED)
            return False

        self.session = session
        if self.publish_schema:
            schema_topic = f"{self.topic}/{GAMEPAD_SCHEMA_TOPIC_SUFFIX}"
            try:
                self.transport.publish(session, schema_topic, json.dumps(input_message_json_schema()).encode("utf-8"))
            except TransportUnavailable as e:
                logger.warning("Could not publish schema on %s: %s", schema_topic, e)
                self._drop_session()
                self._connect_failures += 1
                self._set_state(LoopState.DISCONNECTED)
                return False

        if self._connect_failures:
            logger.info("Transport session re-established after %d failed attempts", self._connect_failures)
        self._connect_failures = 0
        self._set_state(LoopState.CONNECTED)
        return True

    def _drop_session(self) -> None:
        session, self.session = self.session, None
        if session is not None:
            try:
                self.transport.close_session(session)
            except Exception as e:
                logger.debug("error closing transport session: %s", e)

    def _set_state(self, state: LoopState) -> None:
        if state is self.state:
            return
        logger.info("Publish loop %s -> %s", self.state.value, state.value)
        self.state = state
        if self.on_status:
            try:
                self.on_status(state)
            except Exception:
                logger.exception("on_status callback failed")
