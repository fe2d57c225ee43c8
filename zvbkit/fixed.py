"""Q31 fixed-point arithmetic and unit conversions."""

INT32_MAX = 0x7FFFFFFF
INT32_MIN = -0x80000000
INT64_MAX = 0x7FFFFFFFFFFFFFFF
INT64_MIN = -0x8000000000000000

_NANO_PER_UNIT = 1_000_000_000


def _trunc_div(a: int, b: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(a) // abs(b)
    return quotient if (a < 0) == (b < 0) else -quotient


def _wrap32(value: int) -> int:
    return ((value + 0x80000000) & 0xFFFFFFFF) - 0x80000000


def saturate(value: int) -> int:
    """Clamp an integer to the signed 32-bit range."""
    return max(INT32_MIN, min(INT32_MAX, value))


def nano(value: int) -> int:
    """Convert a nano value in [-1e9, 1e9] to Q31."""
    return _trunc_div(value * INT32_MAX, _NANO_PER_UNIT)


def micro(value: int) -> int:
    """Convert a micro value in [-1e6, 1e6] to Q31."""
    return nano(value * 1000)


def milli(value: int) -> int:
    """Convert a milli value in [-1000, 1000] to Q31."""
    return micro(value * 1000)


def nano_shifted(value: int, shift: int) -> int:
    """Convert a nano value shifted left by ``shift`` bits to Q31."""
    return nano(value >> shift)


def micro_shifted(value: int, shift: int) -> int:
    """Convert a micro value shifted left by ``shift`` bits to Q31."""
    return nano_shifted(value * 1000, shift)


def milli_shifted(value: int, shift: int) -> int:
    """Convert a milli value shifted left by ``shift`` bits to Q31."""
    return micro_shifted(value * 1000, shift)


def add_q31(a: int, b: int) -> int:
    """Saturating Q31 addition."""
    return saturate(a + b)


def sub_q31(a: int, b: int) -> int:
    """Saturating Q31 subtraction."""
    return saturate(a - b)


def mult_q31(a: int, b: int) -> int:
    """Q31 multiplication with saturation."""
    product = (a * b) >> 32
    product = max(-0x40000000, min(0x3FFFFFFF, product))
    return product << 1


def scale_q31(value: int, scale_fract: int, shift: int) -> int:
    """Multiply ``value`` by ``scale_fract * 2**shift`` in Q31, saturating."""
    k_shift = shift + 1
    scaled = (value * scale_fract) >> 32
    if k_shift >= 0:
        out = _wrap32(scaled << k_shift)
        if (out >> k_shift) != scaled:
            out = INT32_MIN if scaled < 0 else INT32_MAX
        return out
    return scaled >> -k_shift