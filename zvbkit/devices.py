"""Actuator, LED and button devices reached over the bus."""

from __future__ import annotations

import re
import struct
from collections.abc import Callable

from zvbkit.bus import ReceiveCallback, ZvbBus
from zvbkit.fixed import INT32_MAX, INT32_MIN, milli

SETPOINT_MAX = 1000
SETPOINT_MIN = -1000

_INTEGER = re.compile(r"\s*[+-]?\d+")


def parse_setpoint(text: str) -> int:
    """Parse a setpoint in thousandths between -1000 and 1000 and return it as Q31."""
    if not _INTEGER.fullmatch(text):
        raise ValueError(f"{text} not valid")
    value = int(text)
    if not SETPOINT_MIN <= value <= SETPOINT_MAX:
        raise ValueError(f"{text} not valid")
    return milli(value)


class ZvbActuator:
    """An actuator that takes a Q31 setpoint over the bus."""

    def __init__(self, bus: ZvbBus, addr: int) -> None:
        self.bus = bus
        self.addr = addr

    def set_setpoint(self, setpoint: int) -> None:
        """Send the setpoint as a little-endian signed 32-bit value."""
        if not INT32_MIN <= setpoint <= INT32_MAX:
            raise ValueError(f"setpoint out of Q31 range: {setpoint}")
        self.bus.transmit(self.addr, struct.pack("<i", setpoint))


class ZvbLed:
    """A single LED switched over the bus."""

    def __init__(self, bus: ZvbBus, addr: int) -> None:
        self.bus = bus
        self.addr = addr

    def _set(self, led: int, state: int) -> None:
        if led != 0:
            raise ValueError(f"no such led: {led}")
        self.bus.transmit(self.addr, bytes([state]))

    def on(self, led: int) -> None:
        """Switch the LED on."""
        self._set(led, 1)

    def off(self, led: int) -> None:
        """Switch the LED off."""
        self._set(led, 0)


class ZvbButton:
    """A button that reports key events received from the bus.

    ``report`` is called with the key code and the state byte of each message.
    """

    def __init__(
        self,
        bus: ZvbBus,
        addr: int,
        code: int,
        report: Callable[[int, int], None],
    ) -> None:
        self.bus = bus
        self.code = code
        self._report = report
        self.callback = ReceiveCallback(addr=addr, handler=self._on_receive)
        bus.add_receive_callback(self.callback)

    def _on_receive(self, bus: ZvbBus, callback: ReceiveCallback, data: bytes) -> None:
        self._report(self.code, data[0])

    def detach(self) -> None:
        """Stop receiving events from the bus."""
        self.bus.remove_receive_callback(self.callback)