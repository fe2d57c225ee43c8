# zvbkit

Building blocks for small robot control loops. The arithmetic uses saturating
Q31 fixed-point integers (signed 32-bit values where `2**31 - 1` stands for
full scale), and devices are reached over a simple UDP bus.

## What is inside

- `zvbkit.fixed`: Q31 helpers. `nano`, `micro` and `milli` (and their
  `_shifted` forms) turn scaled integers into Q31 values. `add_q31`,
  `sub_q31`, `mult_q31` and `scale_q31` do saturating arithmetic, and
  `saturate` clamps a value to the signed 32-bit range.
- `zvbkit.signal`: `InputSignal` maps an integer range (up to 64 bits) onto
  Q31, and `OutputSignal` maps Q31 back onto an integer range.
- `zvbkit.control`: the `ControlSystem` base class, which keeps the latest
  setpoint, process variable and sample, and `PidController`.
- `zvbkit.bus`: `ZvbBus`, a UDP bus where each datagram is an address byte
  followed by the message, with `ReceiveCallback` for incoming messages and
  `BusError` for send and receive failures.
- `zvbkit.devices`: `ZvbActuator`, `ZvbLed` and `ZvbButton` on top of the bus,
  and `parse_setpoint` for setpoints given in thousandths.
- `zvbkit.sensors`: `decode_imu` for 12-byte IMU messages,
  `parse_sensor_frames`, `encode_channel_request` and `decode_sensor` for
  general sensor frames, the `ZvbSensor` request queue, and a
  `QuadratureDecoder` with `qdec_rotation` for wheel encoders.

## Fixed-point values

```python
from zvbkit import fixed

fixed.milli(1000)             # 2147483647, full scale
fixed.milli(-1000)            # -2147483647
fixed.milli_shifted(4000, 2)  # 2147483647
fixed.add_q31(2**31 - 1, 1)   # saturates at 2147483647
```

## Mapping signals

```python
from zvbkit.signal import InputSignal, OutputSignal

pulse = OutputSignal(500, 1500)
pulse.sample(0)             # about 1000, the centre of the range
pulse.sample(2**31 - 1)     # about 1500

reading = InputSignal(-2**31, 2**31 - 1)
reading.sample(0)           # close to 0
reading.sample(2**33)       # saturates at 2147483647
```

Both constructors raise `ValueError` unless the maximum is above the minimum.

## PID control

```python
from zvbkit import fixed
from zvbkit.control import PidController

pid = PidController("velocity")
pid.configure(15000000, 0, 8000000, 2, 0, 0)
pid.set_setpoint(fixed.milli(100))
pid.set_process_var(fixed.milli(20))
output = pid.sample()
pid.last_sample == output   # True
```

Gains are given as a Q31 fraction and a power-of-two shift. `configure`
raises `ValueError` for a fraction outside the Q31 range or a shift outside
-128 to 127. The derivative gain is stored but does not reach the output.

## Talking to devices

```python
from zvbkit import fixed
from zvbkit.bus import ZvbBus
from zvbkit.devices import ZvbActuator, ZvbButton, ZvbLed, parse_setpoint

with ZvbBus("127.0.0.1", 4242, 256) as bus:
    wheel = ZvbActuator(bus, 1)
    wheel.set_setpoint(fixed.milli(250))
    wheel.set_setpoint(parse_setpoint("-500"))

    led = ZvbLed(bus, 2)
    led.on(0)

    button = ZvbButton(bus, 3, 30, lambda code, state: print(code, state))

    bus.ping()
    bus.receive_once(1.0)   # False if nothing arrived in time
    bus.last_latency_ms     # set once a ping answer has arrived
```

`transmit` raises `BusError` when a message does not fit the buffer or cannot
be sent. `parse_setpoint` raises `ValueError` for text that is not an integer
between -1000 and 1000.

## Sensors

```python
from zvbkit.sensors import ChannelSpec, QuadratureDecoder, SensorChannel, ZvbSensor, qdec_rotation

def done(frames, timestamp_ns, error):
    print(frames, error)

sensor = ZvbSensor(bus, 4)
sensor.submit([ChannelSpec(SensorChannel.GYRO_XYZ), ChannelSpec(SensorChannel.ACCEL_XYZ)], done)

qdec = QuadratureDecoder()
qdec.update(False, False)
qdec.update(False, True)    # one step forward
qdec_rotation(qdec.take(), 1024)
```

Requests to a `ZvbSensor` are sent one at a time in order; the next is sent
when a response to the current one arrives through the bus.

## What it does not do

There is no command-line tool or interactive shell, and no registry of named
variables or live monitor. `ZvbBus` runs no thread of its own: the caller
decides when to call `receive_once` to dispatch incoming datagrams and when
to call `ping`.