"""Mapping between integer signal ranges and Q31 values."""

from zvbkit.fixed import INT32_MAX, INT32_MIN, mult_q31, scale_q31


def _trunc_div(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return quotient if (a < 0) == (b < 0) else -quotient


def _wrap32(value: int) -> int:
    return ((value + (1 << 31)) & 0xFFFFFFFF) - (1 << 31)


def _wrap64(value: int) -> int:
    return ((value + (1 << 63)) & 0xFFFFFFFFFFFFFFFF) - (1 << 63)


class InputSignal:
    """Maps integer samples in ``[min_insig, max_insig]`` onto the Q31 range."""

    def __init__(self, min_insig: int, max_insig: int) -> None:
        if max_insig <= min_insig:
            raise ValueError("max_insig must be greater than min_insig")

        insig_range = _trunc_div(max_insig, 2) - _trunc_div(min_insig, 2)
        insig_center = min_insig + 1 + insig_range
        self.insig_shift = 0
        while insig_range > INT32_MAX:
            insig_range >>= 1
            insig_center >>= 1
            self.insig_shift += 1
        self.insig_center = _wrap32(insig_center)

        scale_fract = (INT32_MAX << 32) // insig_range
        self.insig_scale_shift = -1
        while scale_fract > INT32_MAX:
            scale_fract >>= 1
            self.insig_scale_shift += 1
        self.insig_scale_fract = scale_fract

    def sample(self, insig: int) -> int:
        """Convert an integer sample to Q31, saturating out-of-range input."""
        value = (insig >> self.insig_shift) - self.insig_center
        if value > INT32_MAX:
            return INT32_MAX
        if value < INT32_MIN:
            return INT32_MIN
        return scale_q31(value, self.insig_scale_fract, self.insig_scale_shift)


class OutputSignal:
    """Maps Q31 values onto integer outputs in ``[min_osig, max_osig]``."""

    def __init__(self, min_osig: int, max_osig: int) -> None:
        if max_osig <= min_osig:
            raise ValueError("max_osig must be greater than min_osig")

        osig_range = _trunc_div(max_osig, 2) - _trunc_div(min_osig, 2)
        self.osig_center = _wrap64(min_osig + 1 + osig_range)
        self.osig_shift = 0
        while osig_range > INT32_MAX:
            osig_range >>= 1
            self.osig_shift += 1
        self.osig_fract = osig_range

    def sample(self, insig: int) -> int:
        """Convert a Q31 value to the output range."""
        scaled = mult_q31(insig, self.osig_fract)
        return _wrap64((scaled << self.osig_shift) + self.osig_center)