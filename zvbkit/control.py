"""Control systems driven by setpoint and process variable, with a PID controller."""

from abc import ABC, abstractmethod

from zvbkit.fixed import INT32_MAX, INT32_MIN, add_q31, scale_q31, sub_q31


def _check_q31(name: str, value: int) -> int:
    if not INT32_MIN <= value <= INT32_MAX:
        raise ValueError(f"{name} out of Q31 range: {value}")
    return value


def _check_shift(name: str, value: int) -> int:
    if not -128 <= value <= 127:
        raise ValueError(f"{name} out of range: {value}")
    return value


class ControlSystem(ABC):
    """A named control system that keeps its latest setpoint, process variable and sample.

    Subclasses implement the ``_apply_setpoint``, ``_apply_process_var`` and
    ``_compute_sample`` hooks. A hook that raises leaves the recorded state unchanged.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._setpoint = 0
        self._process_var = 0
        self._sample = 0

    @property
    def name(self) -> str:
        """Name of the control system."""
        return self._name

    @property
    def setpoint(self) -> int:
        """Latest setpoint accepted by the system."""
        return self._setpoint

    @property
    def process_var(self) -> int:
        """Latest process variable accepted by the system."""
        return self._process_var

    @property
    def last_sample(self) -> int:
        """Latest sample produced by the system."""
        return self._sample

    def set_setpoint(self, setpoint: int) -> None:
        """Set the setpoint of the system."""
        self._apply_setpoint(setpoint)
        self._setpoint = setpoint

    def set_process_var(self, process_var: int) -> None:
        """Set the process variable of the system."""
        self._apply_process_var(process_var)
        self._process_var = process_var

    def sample(self) -> int:
        """Produce the next sample, used as the input signal of the system."""
        value = self._compute_sample()
        self._sample = value
        return value

    @abstractmethod
    def _apply_setpoint(self, setpoint: int) -> None:
        """Accept a new setpoint."""

    @abstractmethod
    def _apply_process_var(self, process_var: int) -> None:
        """Accept a new process variable."""

    @abstractmethod
    def _compute_sample(self) -> int:
        """Compute the next Q31 sample."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._name!r})"


class PidController(ControlSystem):
    """A Q31 PID controller whose gains are given as ``fract * 2**shift``."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.sp = 0
        self.pv = 0
        self.accumulated_error = 0
        self.last_error = 0
        self.p_scale_fract = 0
        self.p_scale_shift = 0
        self.i_scale_fract = 0
        self.i_scale_shift = 0
        self.d_scale_fract = 0
        self.d_scale_shift = 0

    def configure(
        self,
        p_scale_fract: int,
        p_scale_shift: int,
        i_scale_fract: int,
        i_scale_shift: int,
        d_scale_fract: int,
        d_scale_shift: int,
    ) -> None:
        """Set the proportional, integral and derivative gains."""
        self.p_scale_fract = _check_q31("p_scale_fract", p_scale_fract)
        self.p_scale_shift = _check_shift("p_scale_shift", p_scale_shift)
        self.i_scale_fract = _check_q31("i_scale_fract", i_scale_fract)
        self.i_scale_shift = _check_shift("i_scale_shift", i_scale_shift)
        self.d_scale_fract = _check_q31("d_scale_fract", d_scale_fract)
        self.d_scale_shift = _check_shift("d_scale_shift", d_scale_shift)

    def _apply_setpoint(self, setpoint: int) -> None:
        self.sp = setpoint

    def _apply_process_var(self, process_var: int) -> None:
        self.pv = process_var

    def _compute_sample(self) -> int:
        error = sub_q31(self.sp, self.pv)

        sample = scale_q31(error, self.p_scale_fract, self.p_scale_shift)

        integral = scale_q31(error, self.i_scale_fract, self.i_scale_shift)
        self.accumulated_error = add_q31(integral, self.accumulated_error)
        sample = add_q31(sample, self.accumulated_error)

        # The derivative gain is kept but does not reach the output: the
        # accumulated error is added a second time in its place.
        sample = add_q31(sample, self.accumulated_error)

        self.last_error = error
        return sample