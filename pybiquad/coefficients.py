"""
Biquad coefficient design for pybiquad
Implements the Audio EQ Cookbook (bilinear transform) formulas for nine
second-order responses
"""

import logging
import math
import operator
from enum import Enum
from typing import Iterable, Tuple

import numpy as np
from scipy.signal import freqz

from .errors import (
    FatalConversionError,
    FrequencyOverNyquistError,
    FrequencyTooLowError,
    NegativeQError,
    NoSampleRateError,
)

logger = logging.getLogger(__name__)

# Sample rates are unsigned 32 bit integers
MAX_SAMPLE_RATE = 2 ** 32 - 1

SUPPORTED_DTYPES = (np.float32, np.float64)

COEFFICIENT_NAMES = ('b0', 'b1', 'b2', 'a0', 'a1', 'a2')


class FilterType(Enum):
    LOWPASS = 0
    HIGHPASS = 1
    BANDPASS_SKIRT = 2   # Constant skirt gain, peak gain = Q
    BANDPASS_PEAK = 3    # Constant 0 dB peak gain
    NOTCH = 4
    ALLPASS = 5
    PEAK = 6             # Parametric EQ
    LOWSHELF = 7
    HIGHSHELF = 8

    @classmethod
    def from_name(cls, name: str) -> 'FilterType':
        """Look up a filter type by case-insensitive name ('lowpass', 'LowShelf', ...)"""
        key = name.strip().upper().replace('-', '_').replace(' ', '_')
        try:
            return cls[key]
        except KeyError:
            valid = ', '.join(member.name.lower() for member in cls)
            raise ValueError(f"Unknown filter type '{name}'. Valid types: {valid}") from None


def resolve_dtype(dtype) -> type:
    """Return the numpy scalar type for float32/float64, reject anything else"""
    scalar_type = np.dtype(dtype).type
    if scalar_type not in SUPPORTED_DTYPES:
        raise ValueError(f"Unsupported sample type {np.dtype(dtype).name}: use float32 or float64")
    return scalar_type


class CoefficientSet:
    """
    Six biquad coefficients plus the sample rate they were designed for.

    Coefficients are stored exactly as the design formulas produce them:
    a0 is NOT divided out. Use normalized() to get a set with a0 == 1.

    A fresh set has sample rate 0 (unset) and all coefficients zero.
    """

    def __init__(self, dtype=np.float64, sample_rate: int = 0,
                 b0: float = 0.0, b1: float = 0.0, b2: float = 0.0,
                 a0: float = 0.0, a1: float = 0.0, a2: float = 0.0):
        self._dtype = resolve_dtype(dtype)
        self.sample_rate = self._dtype(0)
        if sample_rate:
            self.set_sample_rate(sample_rate)

        # Injected values are taken as-is
        self.b0 = self._dtype(b0)
        self.b1 = self._dtype(b1)
        self.b2 = self._dtype(b2)
        self.a0 = self._dtype(a0)
        self.a1 = self._dtype(a1)
        self.a2 = self._dtype(a2)

    @property
    def dtype(self) -> type:
        return self._dtype

    def set_sample_rate(self, sample_rate: int):
        """
        Set the sample rate in Hz. 0 marks the rate as unset.

        Raises:
            TypeError: sample_rate is not an integer
            FatalConversionError: sample_rate is outside the unsigned 32 bit
                range or has no finite representation in the storage type
        """
        rate = operator.index(sample_rate)
        if rate < 0 or rate > MAX_SAMPLE_RATE:
            raise FatalConversionError(f"sample rate {rate} is not an unsigned 32 bit integer")
        self.sample_rate = self._narrow(float(rate))

    def design(self, filter_type: FilterType, frequency: float, gain_db: float, q: float):
        """
        Compute coefficients for one of the nine cookbook responses.

        Validation happens in a fixed order so the first reported problem is
        predictable: missing sample rate, frequency above nyquist, frequency
        below 1 Hz, negative q.

        All arithmetic is carried out in double precision and only narrowed
        into the storage type at the end. On error the current coefficients
        are left untouched.

        Args:
            filter_type: Response to design
            frequency: Cutoff / center frequency in Hz
            gain_db: Gain in dB (used by PEAK, LOWSHELF and HIGHSHELF)
            q: Resonance / bandwidth factor
        """
        sample_rate = float(self.sample_rate)
        if sample_rate == 0.0:
            raise NoSampleRateError()
        if 2.0 * frequency > sample_rate:
            raise FrequencyOverNyquistError(
                f"the frequency {frequency} Hz is higher than nyquist ({sample_rate / 2.0} Hz)")
        if frequency < 1.0:
            raise FrequencyTooLowError(f"the frequency {frequency} Hz is lower than 1 Hz")
        if q < 0.0:
            raise NegativeQError(f"q is lower than zero ({q})")

        try:
            A = 10.0 ** (gain_db / 40.0)
        except OverflowError as exc:
            raise FatalConversionError(f"gain of {gain_db} dB overflows double precision") from exc

        omega = 2.0 * math.pi * frequency / sample_rate
        sin_omega = math.sin(omega)
        cos_omega = math.cos(omega)
        # sin/2 scaled by q (not divided), kept as-is for compatibility
        alpha = sin_omega / 2.0 * q
        beta = 2.0 * math.sqrt(A) * alpha

        if filter_type == FilterType.LOWPASS:
            b0 = (1.0 - cos_omega) / 2.0
            b1 = 1.0 - cos_omega
            b2 = (1.0 - cos_omega) / 2.0
            a0 = 1.0 + alpha
            a1 = -2.0 * cos_omega
            a2 = 1.0 - alpha
        elif filter_type == FilterType.HIGHPASS:
            b0 = (1.0 + cos_omega) / 2.0
            b1 = -(1.0 + cos_omega)
            b2 = (1.0 + cos_omega) / 2.0
            a0 = 1.0 + alpha
            a1 = -2.0 * cos_omega
            a2 = 1.0 - alpha
        elif filter_type == FilterType.BANDPASS_SKIRT:
            b0 = q * alpha
            b1 = 0.0
            b2 = -q * alpha
            a0 = 1.0 + alpha
            a1 = -2.0 * cos_omega
            a2 = 1.0 - alpha
        elif filter_type == FilterType.BANDPASS_PEAK:
            b0 = alpha
            b1 = 0.0
            b2 = -alpha
            a0 = 1.0 + alpha
            a1 = -2.0 * cos_omega
            a2 = 1.0 - alpha
        elif filter_type == FilterType.NOTCH:
            b0 = 1.0
            b1 = -2.0 * cos_omega
            b2 = 1.0
            a0 = 1.0 + alpha
            a1 = -2.0 * cos_omega
            a2 = 1.0 - alpha
        elif filter_type == FilterType.ALLPASS:
            b0 = 1.0 - alpha
            b1 = -2.0 * cos_omega
            b2 = 1.0 + alpha
            a0 = 1.0 + alpha
            a1 = -2.0 * cos_omega
            a2 = 1.0 - alpha
        elif filter_type == FilterType.PEAK:
            # A underflows to 0 for very low gains: follow IEEE (inf/nan), don't raise
            with np.errstate(divide='ignore', invalid='ignore'):
                alpha_over_A = np.float64(alpha) / A
            b0 = 1.0 + alpha * A
            b1 = -2.0 * cos_omega
            b2 = 1.0 - alpha * A
            a0 = 1.0 + alpha_over_A
            a1 = -2.0 * cos_omega
            a2 = 1.0 - alpha_over_A
        elif filter_type == FilterType.LOWSHELF:
            b0 = A * ((A + 1.0) - (A - 1.0) * cos_omega + beta)
            b1 = 2.0 * A * ((A - 1.0) - (A + 1.0) * cos_omega)
            b2 = A * ((A + 1.0) - (A - 1.0) * cos_omega - beta)
            a0 = (A + 1.0) + (A - 1.0) * cos_omega + beta
            a1 = -2.0 * ((A - 1.0) + (A + 1.0) * cos_omega)
            a2 = (A + 1.0) + (A - 1.0) * cos_omega - beta
        elif filter_type == FilterType.HIGHSHELF:
            b0 = A * ((A + 1.0) + (A - 1.0) * cos_omega + beta)
            b1 = -2.0 * A * ((A - 1.0) + (A + 1.0) * cos_omega)
            b2 = A * ((A + 1.0) + (A - 1.0) * cos_omega - beta)
            a0 = (A + 1.0) - (A - 1.0) * cos_omega + beta
            a1 = 2.0 * ((A - 1.0) - (A + 1.0) * cos_omega)
            a2 = (A + 1.0) - (A - 1.0) * cos_omega - beta
        else:
            raise TypeError(f"filter_type must be a FilterType, got {filter_type!r}")

        # Narrow everything first so a failure leaves the set unchanged
        narrowed = [self._narrow(value) for value in (b0, b1, b2, a0, a1, a2)]
        self.b0, self.b1, self.b2, self.a0, self.a1, self.a2 = narrowed

        logger.debug("Designed %s at %.3f Hz (gain %.2f dB, q %.4f, sample rate %d)",
                     filter_type.name, frequency, gain_db, q, int(sample_rate))

    def _narrow(self, value: float):
        """Convert a double into the storage type, failing on overflow"""
        with np.errstate(over='ignore', invalid='ignore'):
            narrowed = self._dtype(value)
        if not np.isfinite(narrowed) and math.isfinite(value):
            raise FatalConversionError(
                f"{value!r} cannot be represented as {np.dtype(self._dtype).name}")
        return narrowed

    def normalized(self) -> 'CoefficientSet':
        """Return a copy with every coefficient divided by a0 (so a0 == 1)"""
        if self.a0 == 0:
            raise ZeroDivisionError("cannot normalize coefficients with a0 == 0")
        a0 = float(self.a0)
        result = self.copy()
        result.b0 = self._dtype(float(self.b0) / a0)
        result.b1 = self._dtype(float(self.b1) / a0)
        result.b2 = self._dtype(float(self.b2) / a0)
        result.a0 = self._dtype(1.0)
        result.a1 = self._dtype(float(self.a1) / a0)
        result.a2 = self._dtype(float(self.a2) / a0)
        return result

    def as_ba(self) -> Tuple[np.ndarray, np.ndarray]:
        """Return (b, a) arrays in the [x0, x1, x2] layout used by scipy.signal"""
        b = np.array([self.b0, self.b1, self.b2], dtype=self._dtype)
        a = np.array([self.a0, self.a1, self.a2], dtype=self._dtype)
        return b, a

    def frequency_response(self, frequencies: Iterable[float]) -> np.ndarray:
        """
        Complex response of the designed transfer function.

        H(z) = (b0 + b1 z^-1 + b2 z^-2) / (a0 + a1 z^-1 + a2 z^-2)

        Args:
            frequencies: Frequencies in Hz

        Returns:
            Complex response at each frequency
        """
        sample_rate = float(self.sample_rate)
        if sample_rate == 0.0:
            raise NoSampleRateError()
        b, a = self.as_ba()
        worN = np.atleast_1d(np.asarray(frequencies, dtype=np.float64))
        _, h = freqz(b.astype(np.float64), a.astype(np.float64), worN=worN, fs=sample_rate)
        return h

    def astype(self, dtype) -> 'CoefficientSet':
        """Return a copy stored in another precision (no validation)"""
        scalar_type = resolve_dtype(dtype)
        result = CoefficientSet(scalar_type)
        with np.errstate(over='ignore', invalid='ignore'):
            result.sample_rate = scalar_type(self.sample_rate)
            for name in COEFFICIENT_NAMES:
                setattr(result, name, scalar_type(getattr(self, name)))
        return result

    def copy(self) -> 'CoefficientSet':
        return self.astype(self._dtype)

    def to_dict(self) -> dict:
        """Coefficients and sample rate as plain floats"""
        values = {name: float(getattr(self, name)) for name in COEFFICIENT_NAMES}
        values['sample_rate'] = float(self.sample_rate)
        return values

    def __eq__(self, other):
        if not isinstance(other, CoefficientSet):
            return NotImplemented
        return (self._dtype is other._dtype
                and self.sample_rate == other.sample_rate
                and all(getattr(self, name) == getattr(other, name) for name in COEFFICIENT_NAMES))

    __hash__ = None

    def __repr__(self):
        values = ', '.join(f"{name}={float(getattr(self, name))!r}" for name in COEFFICIENT_NAMES)
        return (f"CoefficientSet(dtype={np.dtype(self._dtype).name}, "
                f"sample_rate={float(self.sample_rate)!r}, {values})")
