"""
Market Cycle Module

Holds the macroeconomic regime and advances it once per simulated year.
Transitions are time-gated: decade boundaries carry recession risk, mid-decade
years carry boom risk, and every other year draws from a weighted distribution.
"""

import logging
import random
from decimal import Decimal
from typing import Dict, Optional, Tuple
from enum import Enum

from .central_bank import ShockType

logger = logging.getLogger("life_banking.market")


class MarketRegime(Enum):
    """Macroeconomic conditions"""
    DEPRESSION = "depression"
    RECESSION = "recession"
    RECOVERY = "recovery"
    NORMAL = "normal"
    EXPANSION = "expansion"
    BOOM = "boom"

    @classmethod
    def parse(cls, value) -> 'MarketRegime':
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown market regime: {value!r}")

    @property
    def interest_rate_effect(self) -> Decimal:
        """Modifier applied to default deposit rates while the regime holds"""
        return _RATE_EFFECTS[self]

    @property
    def inflation_effect(self) -> Decimal:
        """Modifier added to baseline inflation"""
        return _INFLATION_EFFECTS[self]

    @property
    def investment_return_range(self) -> Tuple[Decimal, Decimal]:
        """Low and high yearly return for investment accounts"""
        return _RETURN_RANGES[self]


_RATE_EFFECTS: Dict[MarketRegime, Decimal] = {
    MarketRegime.DEPRESSION: Decimal('-0.03'),
    MarketRegime.RECESSION: Decimal('-0.02'),
    MarketRegime.RECOVERY: Decimal('0.01'),
    MarketRegime.NORMAL: Decimal('0'),
    MarketRegime.EXPANSION: Decimal('0.02'),
    MarketRegime.BOOM: Decimal('0.03'),
}

_INFLATION_EFFECTS: Dict[MarketRegime, Decimal] = {
    MarketRegime.DEPRESSION: Decimal('-0.02'),
    MarketRegime.RECESSION: Decimal('-0.01'),
    MarketRegime.RECOVERY: Decimal('0'),
    MarketRegime.NORMAL: Decimal('0'),
    MarketRegime.EXPANSION: Decimal('0.01'),
    MarketRegime.BOOM: Decimal('0.02'),
}

_RETURN_RANGES: Dict[MarketRegime, Tuple[Decimal, Decimal]] = {
    MarketRegime.DEPRESSION: (Decimal('-0.25'), Decimal('-0.10')),
    MarketRegime.RECESSION: (Decimal('-0.15'), Decimal('0.00')),
    MarketRegime.RECOVERY: (Decimal('0.02'), Decimal('0.10')),
    MarketRegime.NORMAL: (Decimal('0.03'), Decimal('0.08')),
    MarketRegime.EXPANSION: (Decimal('0.05'), Decimal('0.12')),
    MarketRegime.BOOM: (Decimal('0.08'), Decimal('0.20')),
}

DEFAULT_WEIGHTS: Dict[MarketRegime, float] = {
    MarketRegime.DEPRESSION: 0.05,
    MarketRegime.RECESSION: 0.15,
    MarketRegime.RECOVERY: 0.20,
    MarketRegime.NORMAL: 0.30,
    MarketRegime.EXPANSION: 0.20,
    MarketRegime.BOOM: 0.10,
}

_SHOCKS: Dict[MarketRegime, ShockType] = {
    MarketRegime.RECESSION: ShockType.RECESSION,
    MarketRegime.DEPRESSION: ShockType.FINANCIAL_CRISIS,
    MarketRegime.BOOM: ShockType.ECONOMIC_BOOM,
}


def shock_for(regime: MarketRegime) -> Optional[ShockType]:
    """Shock the central bank responds to when entering a regime"""
    return _SHOCKS.get(regime)


class MarketCycle:
    """
    Current market regime plus its transition policy
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        regime: MarketRegime = MarketRegime.NORMAL,
        weights: Optional[Dict[MarketRegime, float]] = None,
        decade_recession_probability: float = 0.3,
        midcycle_boom_probability: float = 0.4
    ):
        weights = dict(weights or DEFAULT_WEIGHTS)
        if any(weight < 0 for weight in weights.values()) or sum(weights.values()) <= 0:
            raise ValueError("Regime weights must be non-negative with a positive total")
        for probability in (decade_recession_probability, midcycle_boom_probability):
            if not 0 <= probability <= 1:
                raise ValueError(f"Probability must be within [0, 1], got {probability}")

        self._rng = rng or random.Random()
        self.regime = MarketRegime.parse(regime)
        self.weights = weights
        self.decade_recession_probability = decade_recession_probability
        self.midcycle_boom_probability = midcycle_boom_probability

    def _draw(self) -> MarketRegime:
        regimes = [regime for regime in MarketRegime if regime in self.weights]
        return self._rng.choices(regimes, weights=[self.weights[r] for r in regimes], k=1)[0]

    def advance(self, year: int) -> MarketRegime:
        """
        Move the regime forward by one simulated year

        Args:
            year: Simulated year being entered

        Returns:
            Regime in force for the year
        """
        previous = self.regime
        if year % 10 == 0:
            if self._rng.random() < self.decade_recession_probability:
                self.regime = MarketRegime.RECESSION
        elif year % 5 == 0:
            if self._rng.random() < self.midcycle_boom_probability:
                self.regime = MarketRegime.BOOM
        else:
            self.regime = self._draw()

        if self.regime != previous:
            logger.info(f"Market regime for {year}: {previous.value} -> {self.regime.value}")
        return self.regime

    def sample_investment_return(self) -> Decimal:
        """Draw a yearly investment return within the current regime's range"""
        low, high = self.regime.investment_return_range
        value = self._rng.uniform(float(low), float(high))
        return Decimal(str(value)).quantize(Decimal('0.0001'))
