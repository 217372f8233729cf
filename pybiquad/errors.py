"""
Errors raised while configuring or designing a biquad filter.

All of them are configuration-time faults: the caller is expected to fix
the offending parameter and call again. Nothing here is raised while
samples are being processed.
"""


class BiquadError(ValueError):
    """Base class for biquad configuration errors"""

    message = "biquad error"

    def __init__(self, message: str = None):
        super().__init__(message or self.message)


class NoSampleRateError(BiquadError):
    message = "the sample rate must be set first"


class FrequencyOverNyquistError(BiquadError):
    message = "the frequency is higher than nyquist"


class FrequencyTooLowError(BiquadError):
    message = "the frequency is lower than 1 Hz"


class NegativeQError(BiquadError):
    message = "q is lower than zero"


class FatalConversionError(BiquadError):
    """
    A value could not be represented in the filter's floating point type.

    Practically only reachable with float32 storage and extreme gains, or
    with sample rates outside the unsigned 32 bit range.
    """

    message = "fatal number conversion error"
