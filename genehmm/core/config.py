"""
Numeric configuration for genehmm.

Probabilities produced by re-estimation accumulate rounding error, so
stochasticity and approximate-equality checks compare floats by their
distance in units in the last place (ULPs) instead of exact equality.
The tolerance is passed explicitly to every check that needs it.
"""

from dataclasses import dataclass

import numpy as np


# Roughly 1.5e-11 around 1.0; far tighter than any meaningful probability
# difference but loose enough for sums over long re-estimated sequences.
DEFAULT_MAX_ULPS = 1 << 16

_SIGN_OFFSET = 1 << 63


def _ordered_bits(x: float) -> int:
    """Map a float onto an integer line where adjacent floats differ by 1."""
    bits = int(np.array(x, dtype=np.float64).view(np.int64))
    if bits < 0:
        bits = -(bits + _SIGN_OFFSET)
    return bits


def ulps_between(a: float, b: float) -> int:
    """
    Number of representable float64 values between a and b.

    Returns -1 if either value is NaN.
    """
    if np.isnan(a) or np.isnan(b):
        return -1
    return abs(_ordered_bits(a) - _ordered_bits(b))


@dataclass(frozen=True)
class Tolerance:
    """
    ULP-based floating-point tolerance.

    Attributes:
        max_ulps: Largest ULP distance at which two floats still compare equal
    """
    max_ulps: int = DEFAULT_MAX_ULPS

    def __post_init__(self):
        if self.max_ulps < 0:
            raise ValueError(f"max_ulps must be >= 0, got {self.max_ulps}")

    def approx_eq(self, a: float, b: float) -> bool:
        distance = ulps_between(a, b)
        return 0 <= distance <= self.max_ulps

    def sums_to_one(self, values) -> bool:
        """True if the values sum to 1.0 within tolerance."""
        return self.approx_eq(float(np.sum(values)), 1.0)


DEFAULT_TOLERANCE = Tolerance()
