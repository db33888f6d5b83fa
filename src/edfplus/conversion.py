"""
Digital/physical sample conversion.

Each ordinary signal maps its digital range linearly onto its physical range:

    scale    = (physical_max - physical_min) / (digital_max - digital_min)
    physical = (digital - digital_min) * scale + physical_min

The inverse rounds half away from zero and clamps to the digital range.
Reads are never clamped, since recorded values may legitimately fall
outside the calibrated range.
"""

import math

from dataclasses import dataclass
from functools import lru_cache

import numpy as np

from numpy.typing import ArrayLike

from edfplus.exceptions import DegenerateRangeError
from edfplus.models import SignalHeader


@dataclass(frozen=True)
class Calibration:
    """Precomputed linear mapping for one signal."""

    digital_min: int
    digital_max: int
    physical_min: float
    scale: float

    def to_physical(self, code: int) -> float:
        return (code - self.digital_min) * self.scale + self.physical_min

    def to_digital(self, value: float) -> int:
        if math.isnan(value):
            raise ValueError("cannot convert NaN to a digital value")
        raw = (value - self.physical_min) / self.scale + self.digital_min
        raw = min(max(raw, self.digital_min), self.digital_max)
        return int(math.copysign(math.floor(abs(raw) + 0.5), raw))


@lru_cache(maxsize=1024)
def calibrate(signal: SignalHeader) -> Calibration:
    """
    Build (and cache) the calibration for a signal.

    Raises:
        DegenerateRangeError: If the digital or physical range is empty
    """
    digital_range = signal.digital_max - signal.digital_min
    physical_range = signal.physical_max - signal.physical_min

    if digital_range == 0:
        raise DegenerateRangeError(
            f"Signal '{signal.label}' has digital_min == digital_max ({signal.digital_min})"
        )
    if physical_range == 0:
        raise DegenerateRangeError(
            f"Signal '{signal.label}' has physical_min == physical_max ({signal.physical_min})"
        )

    return Calibration(
        digital_min=signal.digital_min,
        digital_max=signal.digital_max,
        physical_min=signal.physical_min,
        scale=physical_range / digital_range,
    )


def to_physical(code: int, signal: SignalHeader) -> float:
    """Convert one digital code to physical units."""
    return calibrate(signal).to_physical(code)


def to_digital(value: float, signal: SignalHeader) -> int:
    """Convert one physical value to a clamped digital code."""
    return calibrate(signal).to_digital(value)


def digital_to_physical(codes: ArrayLike, signal: SignalHeader) -> np.ndarray:
    """Convert an array of digital codes to float64 physical values."""
    cal = calibrate(signal)
    digital = np.asarray(codes, dtype=np.float64)
    return (digital - cal.digital_min) * cal.scale + cal.physical_min


def physical_to_digital(values: ArrayLike, signal: SignalHeader) -> np.ndarray:
    """
    Convert physical values to int16 digital codes.

    Raises:
        ValueError: If any value is NaN
    """
    cal = calibrate(signal)
    physical = np.asarray(values, dtype=np.float64)
    if np.isnan(physical).any():
        raise ValueError(f"cannot convert NaN to a digital value for '{signal.label}'")

    raw = (physical - cal.physical_min) / cal.scale + cal.digital_min
    rounded = np.sign(raw) * np.floor(np.abs(raw) + 0.5)
    return np.clip(rounded, cal.digital_min, cal.digital_max).astype(np.int16)
