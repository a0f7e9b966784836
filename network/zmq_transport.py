"""network/zmq_transport.py

ZeroMQ PUB transport for gamepad snapshots.

The robot end may power-cycle or drop off Wi-Fi at any time. A PUB socket on
its own never notices: TCP half-open connections can linger for hours. We
apply conservative best-effort options so the link heals by itself:
  - fast reconnect backoff
  - ZMQ heartbeats (if supported by the libzmq build)
  - TCP keepalive (short idle/interval/count)
  - SNDHWM=1, so a stalled peer gets the newest snapshot, not a backlog

Options missing from older libzmq/pyzmq builds are skipped silently.

Frames are two-part: [topic, json payload].
"""

from __future__ import annotations

import logging
from typing import Optional

import zmq

from input.errors import TransportUnavailable

logger = logging.getLogger(__name__)


def _set(sock: zmq.Socket, name: str, val: int) -> None:
    opt = getattr(zmq, name, None)
    if opt is None:
        return
    try:
        sock.setsockopt(opt, int(val))
    except zmq.ZMQError as e:
        logger.debug("setsockopt %s=%s not supported: %s", name, val, e)


def apply_hotplug_opts(
    sock: zmq.Socket,
    *,
    linger_ms: int = 0,
    snd_hwm: Optional[int] = 1,
    reconnect_ivl_ms: int = 250,
    reconnect_ivl_max_ms: int = 2000,
    heartbeat_ivl_ms: int = 1000,
    heartbeat_timeout_ms: int = 3000,
    heartbeat_ttl_ms: int = 6000,
    tcp_keepalive: bool = True,
    tcp_keepalive_idle_s: int = 10,
    tcp_keepalive_intvl_s: int = 5,
    tcp_keepalive_cnt: int = 3,
    tos: Optional[int] = 0xB8,  # DSCP EF, control input is latency sensitive
) -> None:
    """Apply best-effort hotplug/reconnect options to a PUB socket."""
    _set(sock, "LINGER", linger_ms)
    if snd_hwm is not None:
        _set(sock, "SNDHWM", snd_hwm)

    _set(sock, "RECONNECT_IVL", reconnect_ivl_ms)
    _set(sock, "RECONNECT_IVL_MAX", reconnect_ivl_max_ms)

    _set(sock, "HEARTBEAT_IVL", heartbeat_ivl_ms)
    _set(sock, "HEARTBEAT_TIMEOUT", heartbeat_timeout_ms)
    _set(sock, "HEARTBEAT_TTL", heartbeat_ttl_ms)

    if tcp_keepalive:
        _set(sock, "TCP_KEEPALIVE", 1)
        _set(sock, "TCP_KEEPALIVE_IDLE", tcp_keepalive_idle_s)
        _set(sock, "TCP_KEEPALIVE_INTVL", tcp_keepalive_intvl_s)
        _set(sock, "TCP_KEEPALIVE_CNT", tcp_keepalive_cnt)

    if tos is not None:
        _set(sock, "TOS", tos)


class ZmqTransport:
    """
    Transport capability backed by one PUB socket per session.

    ``bind=True`` (default) makes this process the well-known endpoint that
    robots/viewers SUB-connect to. ``bind=False`` connects out to a broker or
    to a SUB that binds.

    NOTE: ZMQ sockets are NOT thread-safe. Establish, publish and close from
    the same thread (the publish loop's).
    """

    def __init__(self, endpoint: str, bind: bool = True, context: Optional[zmq.Context] = None):
        self.endpoint = endpoint
        self.bind = bool(bind)
        self._ctx = context

    @property
    def context(self) -> zmq.Context:
        if self._ctx is None:
            self._ctx = zmq.Context.instance()
        return self._ctx

    def establish_session(self) -> zmq.Socket:
        sock = None
        try:
            sock = self.context.socket(zmq.PUB)
            apply_hotplug_opts(sock)
            if self.bind:
                sock.bind(self.endpoint)
            else:
                sock.connect(self.endpoint)
        except zmq.ZMQError as e:
            if sock is not None:
                sock.close(0)
            raise TransportUnavailable(f"cannot open PUB on {self.endpoint}: {e}") from e
        logger.info("PUB %s %s", "bound to" if self.bind else "connected to", self.endpoint)
        return sock

    def publish(self, session: zmq.Socket, topic: str, payload: bytes) -> None:
        try:
            session.send_multipart([topic.encode("utf-8"), payload], flags=zmq.NOBLOCK)
        except zmq.Again:
            # HWM reached: drop this snapshot rather than block the tick.
            logger.debug("PUB queue full, snapshot dropped")
        except zmq.ZMQError as e:
            raise TransportUnavailable(f"publish on {self.endpoint} failed: {e}") from e

    def close_session(self, session: zmq.Socket) -> None:
        try:
            session.close(0)
        except zmq.ZMQError as e:
            logger.debug("error closing PUB socket: %s", e)
