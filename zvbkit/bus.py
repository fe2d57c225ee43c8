"""Datagram bus that carries addressed messages between a host and its devices."""

from __future__ import annotations

import logging
import select
import socket
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

PING_ADDRESS = 0xFF

ReceiveHandler = Callable[["ZvbBus", "ReceiveCallback", bytes], None]


class BusError(OSError):
    """Raised when a message cannot be sent or received on the bus."""


@dataclass(eq=False)
class ReceiveCallback:
    """Handler for messages that arrive from the device at ``addr``."""

    addr: int
    handler: Optional[ReceiveHandler]


class ZvbBus:
    """A bus over UDP: every datagram is one address byte followed by the message."""

    def __init__(self, host: str, port: int, buffer_size: int = 256) -> None:
        if buffer_size < 2:
            raise ValueError("buffer_size must be at least 2")
        self.host = host
        self.port = port
        self.buffer_size = buffer_size
        self.last_latency_ms: Optional[float] = None
        self._callbacks: list[ReceiveCallback] = []
        self._receive_lock = threading.RLock()
        self._transmit_lock = threading.Lock()
        self._tick = 0
        self._ping_time: Optional[float] = None
        try:
            self._socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        except OSError as exc:
            raise BusError("failed to create socket") from exc

    def __enter__(self) -> "ZvbBus":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _send(self, data: bytes) -> None:
        try:
            sent = self._socket.sendto(data, (self.host, self.port))
        except OSError as exc:
            raise BusError("failed to send datagram") from exc
        if sent != len(data):
            raise BusError("datagram only partly sent")

    def add_receive_callback(self, callback: ReceiveCallback) -> None:
        """Register ``callback``; registering it again moves it to the end."""
        if callback.handler is None:
            raise ValueError("callback has no handler")
        with self._receive_lock:
            self._discard(callback)
            self._callbacks.append(callback)

    def remove_receive_callback(self, callback: ReceiveCallback) -> None:
        """Unregister ``callback``; unknown callbacks are ignored."""
        with self._receive_lock:
            self._discard(callback)

    def _discard(self, callback: ReceiveCallback) -> None:
        self._callbacks = [cb for cb in self._callbacks if cb is not callback]

    def transmit(self, addr: int, data: bytes) -> None:
        """Send ``data`` to the device at ``addr``."""
        if not 0 <= addr <= 0xFF:
            raise ValueError(f"address out of range: {addr}")
        data = bytes(data)
        if self.buffer_size <= len(data):
            raise BusError("message too large for transfer buffer")
        with self._transmit_lock:
            self._send(bytes([addr]) + data)

    def ping(self) -> None:
        """Send a ping carrying the current tick, then advance the tick."""
        message = bytes([PING_ADDRESS]) + self._tick.to_bytes(4, "little")
        self._tick = (self._tick + 1) & 0xFFFFFFFF
        self._ping_time = time.monotonic()
        self._send(message)

    def handle_received(self, data: bytes) -> None:
        """Dispatch one received datagram to the callbacks for its address."""
        data = bytes(data)
        if len(data) < 2:
            logger.warning("Got too small packet")
            return

        addr, message = data[0], data[1:]
        logger.debug("Received packet: addr: %u data: %s", addr, message.hex())

        if addr == PING_ADDRESS:
            if self._ping_time is not None:
                self.last_latency_ms = (time.monotonic() - self._ping_time) * 1000.0
                logger.info("Pong: latency: %.0fms", self.last_latency_ms)
            return

        with self._receive_lock:
            for callback in list(self._callbacks):
                if callback.addr == addr and callback.handler is not None:
                    callback.handler(self, callback, message)

    def receive_once(self, timeout: Optional[float] = None) -> bool:
        """Wait for one datagram and dispatch it; return False on timeout."""
        try:
            ready, _, _ = select.select([self._socket], [], [], timeout)
        except (OSError, ValueError) as exc:
            raise BusError("poll failed") from exc
        if not ready:
            return False
        try:
            data = self._socket.recv(self.buffer_size)
        except OSError as exc:
            raise BusError("receive failed") from exc
        self.handle_received(data)
        return True

    def close(self) -> None:
        """Close the underlying socket."""
        self._socket.close()