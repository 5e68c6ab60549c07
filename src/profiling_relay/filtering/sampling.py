"""
Probabilistic sampling gate
"""

import random
from numbers import Real
from typing import Callable

from ..errors import ConfigurationError


def validate_sample_rate(rate: float) -> float:
    """Return ``rate`` as a float, raising if it is outside [0.0, 1.0]"""
    if isinstance(rate, bool) or not isinstance(rate, Real):
        raise ConfigurationError(
            f"Configured `sample_rate` must be a decimal between 0.0 and 1.0, got {rate!r}"
        )
    rate = float(rate)
    if not 0.0 <= rate <= 1.0:
        raise ConfigurationError(
            f"Configured `sample_rate` must be a decimal between 0.0 and 1.0, got {rate!r}"
        )
    return rate


def should_sample(rate: float, draw: Callable[[], float] = random.random) -> bool:
    """Run one Bernoulli trial with probability ``rate``

    A rate of 0.0 never samples and a rate of 1.0 always does; neither
    consumes a draw.
    """
    rate = validate_sample_rate(rate)
    if rate == 0.0:
        return False
    if rate == 1.0:
        return True
    return draw() <= rate


class SamplingGate:
    """Sampling gate bound to a fixed rate"""

    def __init__(self, rate: float, draw: Callable[[], float] = random.random):
        self.rate = validate_sample_rate(rate)
        self._draw = draw

    def should_sample(self) -> bool:
        return should_sample(self.rate, self._draw)
