"""Q31 fixed-point signals and PID control, with a UDP bus for actuators, LEDs, buttons and sensors."""

__version__ = "0.1.0"