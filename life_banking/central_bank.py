"""
Central Bank Module

Owns the economy-wide base rate and its yearly history, projects future
rates, and reacts to macroeconomic shocks. The base rate is clamped to the
configured bound after every mutation.
"""

import logging
import random
from decimal import Decimal
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional
from enum import Enum

from .exceptions import PolicyOutOfBounds
from .money import Numeric, clamp, to_rate

logger = logging.getLogger("life_banking.central_bank")

DEFAULT_MIN_RATE = Decimal('0.001')
DEFAULT_MAX_RATE = Decimal('0.20')
DEFAULT_HISTORY_WINDOW = 30
RATE_PRECISION = Decimal('0.000001')


class ShockType(Enum):
    """Economic shocks and the base-rate move each one triggers"""
    RECESSION = ("recession", Decimal('-0.01'))
    INFLATION_SPIKE = ("inflation_spike", Decimal('0.01'))
    FINANCIAL_CRISIS = ("financial_crisis", Decimal('-0.03'))
    ECONOMIC_BOOM = ("economic_boom", Decimal('0.005'))

    def __init__(self, label: str, rate_delta: Decimal):
        self.label = label
        self.rate_delta = rate_delta

    @classmethod
    def from_label(cls, label: str) -> 'ShockType':
        for shock in cls:
            if shock.label == label:
                return shock
        raise ValueError(f"Unknown shock type: {label!r}")


@dataclass(frozen=True)
class YearlyRate:
    """Observed or projected (year, rate, inflation) point"""
    year: int
    rate: Decimal
    inflation: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {'year': self.year, 'rate': str(self.rate), 'inflation': str(self.inflation)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'YearlyRate':
        return cls(year=int(data['year']), rate=Decimal(data['rate']), inflation=Decimal(data['inflation']))


class CentralBank:
    """
    Economy-wide base rate holder
    """

    def __init__(
        self,
        base_rate: Numeric = Decimal('0.03'),
        inflation_target: Numeric = Decimal('0.02'),
        min_rate: Numeric = DEFAULT_MIN_RATE,
        max_rate: Numeric = DEFAULT_MAX_RATE,
        history_window: int = DEFAULT_HISTORY_WINDOW,
        rng: Optional[random.Random] = None,
        rate_noise: Numeric = Decimal('0.003'),
        inflation_noise: Numeric = Decimal('0.005'),
        strict: bool = False
    ):
        self.min_rate = to_rate(min_rate)
        self.max_rate = to_rate(max_rate)
        if self.min_rate > self.max_rate:
            raise ValueError(f"Rate bound is empty: [{self.min_rate}, {self.max_rate}]")
        if history_window <= 0:
            raise ValueError("History window must be positive")

        self.inflation_target = to_rate(inflation_target)
        self.history_window = history_window
        self.rate_noise = to_rate(rate_noise)
        self.inflation_noise = to_rate(inflation_noise)
        self.strict = strict
        self._rng = rng or random.Random()
        self._history: List[YearlyRate] = []
        self._base_rate = self._clamp(to_rate(base_rate))

    def _clamp(self, rate: Decimal) -> Decimal:
        clamped = clamp(rate, self.min_rate, self.max_rate)
        if clamped != rate:
            if self.strict:
                raise PolicyOutOfBounds(
                    f"Base rate {rate} outside [{self.min_rate}, {self.max_rate}]"
                )
            logger.warning(
                f"Base rate {rate} outside [{self.min_rate}, {self.max_rate}], clamped to {clamped}"
            )
        return clamped

    def get_base_rate(self) -> Decimal:
        """Get the current base rate"""
        return self._base_rate

    def set_base_rate(self, rate: Numeric) -> Decimal:
        """Set a new base rate, clamped to the configured bound"""
        self._base_rate = self._clamp(to_rate(rate))
        logger.debug(f"Base rate set to {self._base_rate}")
        return self._base_rate

    def record_yearly_rate(self, year: int, inflation: Numeric) -> YearlyRate:
        """
        Record the current base rate with the year's inflation

        Callers must record at most once per simulated year; the oldest
        observation is evicted once the retention window is exceeded.
        """
        observation = YearlyRate(year=year, rate=self._base_rate, inflation=to_rate(inflation))
        self._history.append(observation)
        while len(self._history) > self.history_window:
            self._history.pop(0)
        return observation

    def get_historical_rates(self) -> List[YearlyRate]:
        """Get the recorded history, oldest first"""
        return list(self._history)

    @staticmethod
    def _noise(rng: random.Random, spread: Decimal) -> Decimal:
        value = rng.uniform(-float(spread), float(spread))
        return Decimal(str(value)).quantize(RATE_PRECISION)

    def project_future_rates(
        self,
        years: int,
        projected_inflation: Numeric,
        start_year: Optional[int] = None
    ) -> Iterator[YearlyRate]:
        """
        Lazily project future base rates

        Each step closes half of the gap between projected inflation and the
        target, adds bounded noise and re-clamps. Noise is drawn from a private
        copy of the random state, so neither the base rate nor the shared
        random source is touched.

        Args:
            years: Number of projected years
            projected_inflation: Expected inflation over the horizon
            start_year: First projected year (defaults to the year after the last observation)

        Returns:
            Generator of YearlyRate projections
        """
        if years < 0:
            raise ValueError("Projection horizon must be non-negative")

        inflation = to_rate(projected_inflation)
        if start_year is None:
            start_year = self._history[-1].year + 1 if self._history else 1
        rng = random.Random()
        rng.setstate(self._rng.getstate())
        return self._projection(years, inflation, start_year, self._base_rate, rng)

    def _projection(
        self,
        years: int,
        inflation: Decimal,
        start_year: int,
        projected_rate: Decimal,
        rng: random.Random
    ) -> Iterator[YearlyRate]:
        deviation = inflation - self.inflation_target
        for offset in range(years):
            projected_rate += deviation * Decimal('0.5')
            projected_rate += self._noise(rng, self.rate_noise)
            projected_rate = clamp(projected_rate, self.min_rate, self.max_rate)
            yield YearlyRate(
                year=start_year + offset,
                rate=projected_rate,
                inflation=inflation + self._noise(rng, self.inflation_noise),
            )

    def respond_to_economic_shock(self, shock: ShockType) -> Decimal:
        """
        Move the base rate in response to a shock

        Returns:
            New base rate
        """
        previous = self._base_rate
        # Shock responses saturate at the bound without tripping strict mode
        self._base_rate = clamp(previous + shock.rate_delta, self.min_rate, self.max_rate)
        logger.info(f"Responded to {shock.label}: base rate {previous} -> {self._base_rate}")
        return self._base_rate

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return {
            'base_rate': str(self._base_rate),
            'inflation_target': str(self.inflation_target),
            'min_rate': str(self.min_rate),
            'max_rate': str(self.max_rate),
            'history_window': self.history_window,
            'rate_noise': str(self.rate_noise),
            'inflation_noise': str(self.inflation_noise),
            'history': [observation.to_dict() for observation in self._history],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], rng: Optional[random.Random] = None) -> 'CentralBank':
        """Create from dictionary"""
        bank = cls(
            base_rate=Decimal(data['base_rate']),
            inflation_target=Decimal(data['inflation_target']),
            min_rate=Decimal(data['min_rate']),
            max_rate=Decimal(data['max_rate']),
            history_window=int(data['history_window']),
            rng=rng,
            rate_noise=Decimal(data.get('rate_noise', '0.003')),
            inflation_noise=Decimal(data.get('inflation_noise', '0.005')),
        )
        bank._history = [YearlyRate.from_dict(item) for item in data.get('history', [])]
        return bank
