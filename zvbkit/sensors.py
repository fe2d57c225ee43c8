"""Sensor readings over the bus: IMU and generic sensor frames, and quadrature decoding."""

from __future__ import annotations

import enum
import logging
import struct
import threading
import time
from collections import deque
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Optional, Union

from zvbkit.bus import BusError, ReceiveCallback, ZvbBus
from zvbkit.fixed import INT32_MAX

logger = logging.getLogger(__name__)

IMU_BUFFER_SIZE = 12
_IMU_GROUP_SIZE = 6
_IMU_ACCEL_SHIFT = 5
_IMU_GYRO_SHIFT = 12
_IMU_READING_SHIFT = 19

_FRAME_FORMAT = struct.Struct("<IIIiii")
_REQUEST_FORMAT = struct.Struct("<II")

DEFAULT_MAX_CHANNELS = 4


def _wrap32(value: int) -> int:
    return ((value + (1 << 31)) & 0xFFFFFFFF) - (1 << 31)


def _int8(value: int) -> int:
    return ((value + 128) & 0xFF) - 128


class SensorChannel(enum.IntEnum):
    """Sensor channel types understood by the bus sensors."""

    ACCEL_XYZ = 3
    GYRO_XYZ = 7
    ROTATION = 36


@dataclass(frozen=True)
class ChannelSpec:
    """A channel type together with its index."""

    chan_type: int
    chan_idx: int = 0


@dataclass(frozen=True)
class ThreeAxisData:
    """One three-axis reading in Q31 scaled by ``2**shift``."""

    timestamp_ns: int
    shift: int
    x: int
    y: int
    z: int


@dataclass(frozen=True)
class Q31Data:
    """One single-value reading in Q31 scaled by ``2**shift``."""

    timestamp_ns: int
    shift: int
    value: int


@dataclass(frozen=True)
class SensorFrame:
    """One channel's raw reading as sent by a bus sensor."""

    channel_type: int
    channel_index: int
    shift: int
    readings: tuple[int, int, int]


SensorData = Union[ThreeAxisData, Q31Data]


def decode_imu(
    buffer: bytes, channel: ChannelSpec, timestamp_ns: Optional[int] = None
) -> ThreeAxisData:
    """Decode the accelerometer or gyroscope group of a 12-byte IMU message."""
    if channel.chan_type not in (SensorChannel.ACCEL_XYZ, SensorChannel.GYRO_XYZ):
        raise LookupError(f"unsupported channel type: {channel.chan_type}")
    if channel.chan_idx != 0:
        raise LookupError(f"unsupported channel index: {channel.chan_idx}")
    buffer = bytes(buffer)
    if len(buffer) != IMU_BUFFER_SIZE:
        raise ValueError(f"IMU buffer must be {IMU_BUFFER_SIZE} bytes, got {len(buffer)}")

    if channel.chan_type == SensorChannel.ACCEL_XYZ:
        group = buffer[:_IMU_GROUP_SIZE]
        shift = _IMU_ACCEL_SHIFT
    else:
        group = buffer[_IMU_GROUP_SIZE:]
        shift = _IMU_GYRO_SHIFT

    x, y, z = (_wrap32(raw << _IMU_READING_SHIFT) for raw in struct.unpack("<HHH", group))
    if timestamp_ns is None:
        timestamp_ns = time.monotonic_ns()
    return ThreeAxisData(timestamp_ns=timestamp_ns, shift=shift, x=x, y=y, z=z)


def parse_sensor_frames(data: bytes) -> list[SensorFrame]:
    """Parse a sensor response made of one or more 24-byte frames."""
    data = bytes(data)
    if not data or len(data) % _FRAME_FORMAT.size:
        raise ValueError(f"invalid sensor response size: {len(data)}")
    return [
        SensorFrame(
            channel_type=chan_type,
            channel_index=chan_idx,
            shift=shift,
            readings=(r0, r1, r2),
        )
        for chan_type, chan_idx, shift, r0, r1, r2 in _FRAME_FORMAT.iter_unpack(data)
    ]


def encode_channel_request(
    channels: Iterable[ChannelSpec], max_channels: int = DEFAULT_MAX_CHANNELS
) -> bytes:
    """Encode the channels to read, keeping at most ``max_channels`` of them."""
    channels = list(channels)
    if len(channels) > max_channels:
        logger.warning("read_config count limited to %u", max_channels)
        channels = channels[:max_channels]
    return b"".join(_REQUEST_FORMAT.pack(ch.chan_type, ch.chan_idx) for ch in channels)


def decode_sensor(
    frames: Sequence[SensorFrame],
    channel: ChannelSpec,
    timestamp_ns: int,
) -> SensorData:
    """Decode the first frame that matches ``channel``."""
    frame = next(
        (
            f
            for f in frames
            if f.channel_type == channel.chan_type and f.channel_index == channel.chan_idx
        ),
        None,
    )
    if frame is None:
        raise LookupError(f"no frame for channel {channel}")

    shift = _int8(frame.shift)
    if frame.channel_type in (SensorChannel.ACCEL_XYZ, SensorChannel.GYRO_XYZ):
        x, y, z = frame.readings
        return ThreeAxisData(timestamp_ns=timestamp_ns, shift=shift, x=x, y=y, z=z)
    if frame.channel_type == SensorChannel.ROTATION:
        return Q31Data(timestamp_ns=timestamp_ns, shift=shift, value=frame.readings[0])
    raise ValueError(f"unsupported channel type: {frame.channel_type}")


CompletionHandler = Callable[
    [Optional[list[SensorFrame]], int, Optional[Exception]], None
]


@dataclass(eq=False)
class _Request:
    channels: tuple[ChannelSpec, ...]
    on_complete: CompletionHandler


class ZvbSensor:
    """A bus sensor that answers channel requests one at a time, in order.

    ``on_complete`` is called with ``(frames, timestamp_ns, None)`` on success
    and with ``(None, 0, error)`` on failure.
    """

    def __init__(
        self, bus: ZvbBus, addr: int, max_channels: int = DEFAULT_MAX_CHANNELS
    ) -> None:
        if max_channels < 1:
            raise ValueError("max_channels must be at least 1")
        self.bus = bus
        self.addr = addr
        self.max_channels = max_channels
        self._lock = threading.Lock()
        self._queue: deque[_Request] = deque()
        self._current: Optional[_Request] = None
        self.callback = ReceiveCallback(addr=addr, handler=self._on_receive)
        bus.add_receive_callback(self.callback)

    def submit(self, channels: Iterable[ChannelSpec], on_complete: CompletionHandler) -> None:
        """Queue a read of ``channels``; it is sent once earlier reads complete."""
        request = _Request(tuple(channels), on_complete)
        with self._lock:
            self._queue.append(request)
            if self._current is not None:
                return
            completions = self._advance_locked()
        self._emit(completions)

    def detach(self) -> None:
        """Stop receiving responses from the bus."""
        self.bus.remove_receive_callback(self.callback)

    def _advance_locked(self) -> list[tuple]:
        completions = []
        self._current = None
        while self._queue:
            request = self._queue.popleft()
            payload = encode_channel_request(request.channels, self.max_channels)
            try:
                self.bus.transmit(self.addr, payload)
            except BusError as exc:
                completions.append((request, None, 0, exc))
                continue
            self._current = request
            break
        return completions

    def _on_receive(self, bus: ZvbBus, callback: ReceiveCallback, data: bytes) -> None:
        with self._lock:
            request = self._current
            if request is None:
                return
            timestamp_ns = time.monotonic_ns()
            try:
                frames = parse_sensor_frames(data)
            except ValueError as exc:
                completion = (request, None, 0, BusError(str(exc)))
            else:
                completion = (request, frames, timestamp_ns, None)
            completions = [completion, *self._advance_locked()]
        self._emit(completions)

    @staticmethod
    def _emit(completions: list[tuple]) -> None:
        for request, frames, timestamp_ns, error in completions:
            request.on_complete(frames, timestamp_ns, error)


_QDEC_STEPS = {
    (0, 1): 1, (0, 2): -1,
    (1, 3): 1, (1, 0): -1,
    (2, 0): 1, (2, 3): -1,
    (3, 2): 1, (3, 1): -1,
}


class QuadratureDecoder:
    """Counts steps from the two phases of a quadrature encoder.

    The first update only records the starting phases.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last: Optional[int] = None
        self._accumulated = 0

    def update(self, phase_a: bool, phase_b: bool) -> None:
        """Feed the current level of both phases."""
        current = (int(bool(phase_a)) << 1) | int(bool(phase_b))
        with self._lock:
            if self._last is not None and current != self._last:
                self._accumulated = _wrap32(
                    self._accumulated + _QDEC_STEPS.get((self._last, current), 0)
                )
            self._last = current

    def take(self) -> int:
        """Return the steps counted since the last call and reset the count."""
        with self._lock:
            value, self._accumulated = self._accumulated, 0
        return value

    @property
    def accumulated(self) -> int:
        """Steps counted since the last ``take``."""
        return self._accumulated


def qdec_rotation(accumulated: int, steps_per_rotation: int) -> int:
    """Convert accumulated steps to a Q31 rotation, one full turn being ``INT32_MAX``."""
    if steps_per_rotation <= 0:
        raise ValueError("steps_per_rotation must be positive")
    return _wrap32((INT32_MAX // steps_per_rotation) * accumulated)