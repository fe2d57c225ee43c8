import struct

import pytest

from zvbkit.bus import BusError, ReceiveCallback
from zvbkit.fixed import INT32_MAX
from zvbkit.sensors import (
    ChannelSpec,
    Q31Data,
    QuadratureDecoder,
    SensorChannel,
    SensorFrame,
    ThreeAxisData,
    ZvbSensor,
    decode_imu,
    decode_sensor,
    encode_channel_request,
    parse_sensor_frames,
    qdec_rotation,
)

ACCEL = ChannelSpec(SensorChannel.ACCEL_XYZ, 0)
GYRO = ChannelSpec(SensorChannel.GYRO_XYZ, 0)
ROTATION = ChannelSpec(SensorChannel.ROTATION, 0)


class FakeBus:
    def __init__(self, fail=False):
        self.sent = []
        self.callbacks = []
        self.fail = fail

    def add_receive_callback(self, callback):
        self.callbacks.append(callback)

    def remove_receive_callback(self, callback):
        self.callbacks = [cb for cb in self.callbacks if cb is not callback]

    def transmit(self, addr, data):
        if self.fail:
            raise BusError("send failed")
        self.sent.append((addr, bytes(data)))

    def deliver(self, addr, data):
        for cb in list(self.callbacks):
            if cb.addr == addr:
                cb.handler(self, cb, data)


def frame_bytes(chan_type, chan_idx, shift, r0, r1, r2):
    return struct.pack("<IIIiii", chan_type, chan_idx, shift, r0, r1, r2)


def imu_buffer(accel, gyro):
    return struct.pack("<HHHHHH", *accel, *gyro)


def test_decode_imu_accel():
    data = decode_imu(imu_buffer((1, 2, 3), (4, 5, 6)), ACCEL, timestamp_ns=7)
    assert data == ThreeAxisData(timestamp_ns=7, shift=5, x=1 << 19, y=2 << 19, z=3 << 19)


def test_decode_imu_gyro_reads_second_group():
    data = decode_imu(imu_buffer((1, 2, 3), (4, 5, 6)), GYRO, timestamp_ns=0)
    assert data.shift == 12
    assert (data.x, data.y, data.z) == (4 << 19, 5 << 19, 6 << 19)


def test_decode_imu_negative_reading():
    data = decode_imu(imu_buffer((0xFFFF, 0, 0), (0, 0, 0)), ACCEL, timestamp_ns=0)
    assert data.x == -(1 << 19)


@pytest.mark.parametrize(
    "channel",
    [ROTATION, ChannelSpec(SensorChannel.ACCEL_XYZ, 1)],
)
def test_decode_imu_rejects_channel(channel):
    with pytest.raises(LookupError):
        decode_imu(imu_buffer((0, 0, 0), (0, 0, 0)), channel, timestamp_ns=0)


def test_decode_imu_rejects_buffer_size():
    with pytest.raises(ValueError):
        decode_imu(bytes(11), ACCEL, timestamp_ns=0)


def test_parse_sensor_frames_round_trip():
    data = frame_bytes(3, 0, 5, 10, -20, 30) + frame_bytes(36, 1, 0, -5, 0, 0)
    frames = parse_sensor_frames(data)
    assert frames == [
        SensorFrame(3, 0, 5, (10, -20, 30)),
        SensorFrame(36, 1, 0, (-5, 0, 0)),
    ]


@pytest.mark.parametrize("size", [0, 23, 25])
def test_parse_sensor_frames_rejects_size(size):
    with pytest.raises(ValueError):
        parse_sensor_frames(bytes(size))


def test_encode_channel_request_bytes():
    payload = encode_channel_request([GYRO, ACCEL])
    assert payload == struct.pack("<IIII", SensorChannel.GYRO_XYZ, 0, SensorChannel.ACCEL_XYZ, 0)


def test_encode_channel_request_is_limited():
    payload = encode_channel_request([GYRO, ACCEL, ROTATION], max_channels=2)
    assert payload == encode_channel_request([GYRO, ACCEL])


def test_decode_sensor_three_axis_and_q31():
    frames = parse_sensor_frames(
        frame_bytes(SensorChannel.GYRO_XYZ, 0, 12, 1, 2, 3)
        + frame_bytes(SensorChannel.ROTATION, 0, 0xFFFFFFFF, 99, 0, 0)
    )
    assert decode_sensor(frames, GYRO, 5) == ThreeAxisData(5, 12, 1, 2, 3)
    assert decode_sensor(frames, ROTATION, 5) == Q31Data(5, -1, 99)


def test_decode_sensor_missing_channel():
    frames = parse_sensor_frames(frame_bytes(SensorChannel.GYRO_XYZ, 0, 0, 1, 2, 3))
    with pytest.raises(LookupError):
        decode_sensor(frames, ChannelSpec(SensorChannel.GYRO_XYZ, 1), 0)


def test_decode_sensor_unsupported_type():
    frames = parse_sensor_frames(frame_bytes(12, 0, 0, 1, 2, 3))
    with pytest.raises(ValueError):
        decode_sensor(frames, ChannelSpec(12, 0), 0)


def test_sensor_queues_requests_in_order():
    bus = FakeBus()
    sensor = ZvbSensor(bus, 4, max_channels=4)
    results = []
    sensor.submit([GYRO], lambda f, t, e: results.append(("first", f, e)))
    sensor.submit([ROTATION], lambda f, t, e: results.append(("second", f, e)))
    assert bus.sent == [(4, encode_channel_request([GYRO]))]

    bus.deliver(4, frame_bytes(SensorChannel.GYRO_XYZ, 0, 12, 1, 2, 3))
    assert results == [("first", [SensorFrame(SensorChannel.GYRO_XYZ, 0, 12, (1, 2, 3))], None)]
    assert bus.sent[-1] == (4, encode_channel_request([ROTATION]))

    bus.deliver(4, frame_bytes(SensorChannel.ROTATION, 0, 0, 8, 0, 0))
    assert [r[0] for r in results] == ["first", "second"]
    assert results[1][1][0].readings == (8, 0, 0)


def test_sensor_invalid_response_reports_error():
    bus = FakeBus()
    sensor = ZvbSensor(bus, 4)
    results = []
    sensor.submit([GYRO], lambda f, t, e: results.append((f, e)))
    bus.deliver(4, bytes(5))
    assert len(results) == 1
    assert results[0][0] is None
    assert isinstance(results[0][1], BusError)


def test_sensor_ignores_unsolicited_and_other_addresses():
    bus = FakeBus()
    sensor = ZvbSensor(bus, 4)
    results = []
    bus.deliver(4, frame_bytes(3, 0, 0, 0, 0, 0))
    sensor.submit([ACCEL], lambda f, t, e: results.append(e))
    bus.deliver(5, frame_bytes(3, 0, 0, 0, 0, 0))
    assert results == []
    assert isinstance(sensor.callback, ReceiveCallback)
    assert sensor.callback.addr == 4


def test_sensor_transmit_failure_completes_with_error():
    bus = FakeBus(fail=True)
    sensor = ZvbSensor(bus, 4)
    errors = []
    sensor.submit([ACCEL], lambda f, t, e: errors.append(e))
    assert len(errors) == 1
    assert isinstance(errors[0], BusError)


def feed(decoder, states):
    for a, b in states:
        decoder.update(a, b)


def test_qdec_forward_and_reverse():
    forward = QuadratureDecoder()
    feed(forward, [(0, 0), (0, 1), (1, 1), (1, 0), (0, 0)])
    assert forward.take() == 4
    assert forward.take() == 0

    backward = QuadratureDecoder()
    feed(backward, [(0, 0), (1, 0), (1, 1), (0, 1), (0, 0)])
    assert backward.take() == -4


def test_qdec_ignores_repeats_and_skips():
    decoder = QuadratureDecoder()
    feed(decoder, [(0, 0), (0, 0), (1, 1), (1, 1)])
    assert decoder.take() == 0


def test_qdec_first_update_is_baseline():
    decoder = QuadratureDecoder()
    decoder.update(True, False)
    assert decoder.accumulated == 0


def test_qdec_rotation():
    assert qdec_rotation(1, 1) == INT32_MAX
    assert qdec_rotation(0, 100) == 0
    assert qdec_rotation(-3, 100) == -qdec_rotation(3, 100)
    assert qdec_rotation(5, 100) == 5 * qdec_rotation(1, 100)


def test_qdec_rotation_rejects_zero_steps():
    with pytest.raises(ValueError):
        qdec_rotation(1, 0)