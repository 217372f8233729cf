"""
pybiquad
Audio EQ Cookbook biquad design and a stateful second-order IIR filter
"""

__version__ = "1.0.0"

from .coefficients import CoefficientSet, FilterType, resolve_dtype
from .filter import BiquadFilter, DEFAULT_PARAMETERS
from .errors import (
    BiquadError,
    NoSampleRateError,
    FrequencyOverNyquistError,
    FrequencyTooLowError,
    NegativeQError,
    FatalConversionError,
)

__all__ = [
    'BiquadFilter',
    'CoefficientSet',
    'FilterType',
    'DEFAULT_PARAMETERS',
    'resolve_dtype',
    'BiquadError',
    'NoSampleRateError',
    'FrequencyOverNyquistError',
    'FrequencyTooLowError',
    'NegativeQError',
    'FatalConversionError',
]
