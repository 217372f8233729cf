"""
Biquad Filter for pybiquad
Direct-form-I second-order IIR filter driven by a CoefficientSet
"""

import logging
from typing import Optional, Tuple, Union

import numpy as np

from .coefficients import CoefficientSet, FilterType, resolve_dtype

logger = logging.getLogger(__name__)


DEFAULT_PARAMETERS = {
    'sample_rate': 0,       # 0 = unset, configure() before design()
    'filter_type': None,    # No design yet
    'frequency': 1000.0,    # Hz
    'gain_db': 0.0,
    'q': 1.0,
    'dtype': 'float64',
}


def _coerce_filter_type(value: Union[FilterType, int, str]) -> FilterType:
    if isinstance(value, FilterType):
        return value
    if isinstance(value, str):
        return FilterType.from_name(value)
    return FilterType(value)


class BiquadFilter:
    """
    Stateful biquad filter

    Holds one CoefficientSet and the last two input (x1, x2) and output
    (y1, y2) samples. Redesigning or injecting coefficients never clears the
    history, so a running stream can be re-tuned without a reset; call
    reset() explicitly when a clean start is wanted.

    Usage:
        bq = BiquadFilter(np.float32)
        bq.configure(44100)
        bq.design(FilterType.LOWPASS, 1000.0, q=0.707)
        out = bq.process(block)
    """

    def __init__(self, dtype=np.float64):
        self._dtype = resolve_dtype(dtype)
        self._coefficients = CoefficientSet(self._dtype)

        # History registers
        self.x1 = self._dtype(0)
        self.x2 = self._dtype(0)
        self.y1 = self._dtype(0)
        self.y2 = self._dtype(0)

        # Last successful design, for get_parameters()
        self._design = {
            'sample_rate': DEFAULT_PARAMETERS['sample_rate'],
            'filter_type': DEFAULT_PARAMETERS['filter_type'],
            'frequency': DEFAULT_PARAMETERS['frequency'],
            'gain_db': DEFAULT_PARAMETERS['gain_db'],
            'q': DEFAULT_PARAMETERS['q'],
        }

    @classmethod
    def from_parameters(cls, params: dict) -> 'BiquadFilter':
        """Build and configure a filter from a parameter dictionary"""
        bq = cls(params.get('dtype', DEFAULT_PARAMETERS['dtype']))
        bq.set_parameters(params)
        return bq

    @property
    def dtype(self) -> type:
        return self._dtype

    @property
    def sample_rate(self) -> float:
        return float(self._coefficients.sample_rate)

    def configure(self, sample_rate: int):
        """Set the sample rate in Hz. Must be called before design()."""
        self._coefficients.set_sample_rate(sample_rate)
        logger.debug("Biquad configured for %d Hz", sample_rate)

    def design(self, filter_type: FilterType, frequency: float,
               gain_db: float = 0.0, q: float = 1.0):
        """
        Recompute the coefficients in place. History is left untouched.

        Raises the errors documented in CoefficientSet.design().
        """
        self._coefficients.design(filter_type, frequency, gain_db, q)
        self._design = {
            'sample_rate': int(self._coefficients.sample_rate),
            'filter_type': filter_type,
            'frequency': frequency,
            'gain_db': gain_db,
            'q': q,
        }

    def tick(self, sample: float):
        """
        Process a single sample

        Note that a0 is not divided out: the recursion assumes normalized
        coefficients (see CoefficientSet.normalized()).
        """
        c = self._coefficients
        x0 = self._dtype(sample)
        out = c.b0 * x0 + c.b1 * self.x1 + c.b2 * self.x2 - c.a1 * self.y1 - c.a2 * self.y2

        self.x2 = self.x1
        self.x1 = x0
        self.y2 = self.y1
        self.y1 = out

        return out

    def process(self, samples, output: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Process a block of samples one at a time

        Args:
            samples: Input samples (1D sequence)
            output: Optional buffer to write into, same length as samples

        Returns:
            The output buffer
        """
        if output is None:
            output = np.empty(len(samples), dtype=self._dtype)
        elif len(output) != len(samples):
            raise ValueError(
                f"Output length {len(output)} does not match input length {len(samples)}")

        tick = self.tick
        for i, sample in enumerate(samples):
            output[i] = tick(sample)

        return output

    def reset(self):
        """Reset filter state"""
        self.x1 = self._dtype(0)
        self.x2 = self._dtype(0)
        self.y1 = self._dtype(0)
        self.y2 = self._dtype(0)

    @property
    def state(self) -> Tuple:
        """History registers as (x1, x2, y1, y2)"""
        return self.x1, self.x2, self.y1, self.y2

    @property
    def coefficients(self) -> CoefficientSet:
        return self._coefficients.copy()

    def get_coefficients(self) -> CoefficientSet:
        """Copy of the current coefficient set"""
        return self.coefficients

    def set_coefficients(self, coefficients: CoefficientSet):
        """
        Replace the coefficients wholesale, without validation

        Injected coefficients are not described by a design, so
        get_parameters() reports filter_type None afterwards.
        """
        self._coefficients = coefficients.astype(self._dtype)
        self._design['sample_rate'] = int(self._coefficients.sample_rate)
        self._design['filter_type'] = None

    def get_parameters(self) -> dict:
        """
        Get all parameters as a dictionary

        The values describe the coefficients currently in use: after a
        design, its sample rate is reported even if configure() has been
        called since.
        """
        filter_type = self._design['filter_type']
        if filter_type is not None:
            sample_rate = self._design['sample_rate']
        else:
            sample_rate = int(self._coefficients.sample_rate)
        return {
            'sample_rate': sample_rate,
            'filter_type': filter_type.value if filter_type is not None else None,
            'frequency': self._design['frequency'],
            'gain_db': self._design['gain_db'],
            'q': self._design['q'],
            'dtype': np.dtype(self._dtype).name,
        }

    def set_parameters(self, params: dict):
        """
        Set parameters from a dictionary

        The filter is redesigned when a design key is present, or when only
        sample_rate changes on an already designed filter; given values are
        merged over the last design. Either everything is applied or, on
        error, nothing is.
        """
        design_keys = ('filter_type', 'frequency', 'gain_db', 'q')
        redesign = any(key in params for key in design_keys) or (
            'sample_rate' in params and self._design['filter_type'] is not None)

        coefficients = self._coefficients.copy()
        if 'sample_rate' in params:
            coefficients.set_sample_rate(params['sample_rate'])

        if not redesign:
            self._coefficients = coefficients
            logger.debug("Biquad configured for %d Hz", int(coefficients.sample_rate))
            return

        merged = dict(self._design)
        merged.update({key: params[key] for key in design_keys if key in params})
        if merged['filter_type'] is None:
            raise ValueError("filter_type is required to design the filter")

        filter_type = _coerce_filter_type(merged['filter_type'])
        frequency = float(merged['frequency'])
        gain_db = float(merged['gain_db'])
        q = float(merged['q'])
        coefficients.design(filter_type, frequency, gain_db, q)

        self._coefficients = coefficients
        self._design = {
            'sample_rate': int(coefficients.sample_rate),
            'filter_type': filter_type,
            'frequency': frequency,
            'gain_db': gain_db,
            'q': q,
        }

    def __repr__(self):
        filter_type = self._design['filter_type']
        name = filter_type.name if filter_type is not None else 'UNDESIGNED'
        return (f"BiquadFilter({name}, dtype={np.dtype(self._dtype).name}, "
                f"sample_rate={self.sample_rate})")
