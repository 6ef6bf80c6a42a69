"""
Loan Rate Model

Pure pricing functions converting borrower and product attributes into an
annual loan rate. No state and no randomness: the same inputs always give
the same Decimal.
"""

from decimal import Decimal
from typing import Dict, Optional
from enum import Enum

from .accounts import AccountCategory
from .money import Numeric, to_rate

MIN_CREDIT_SCORE = 300
MAX_CREDIT_SCORE = 850
DEFAULT_RATE_FLOOR = Decimal('0.01')


class CreditBand(Enum):
    """Contiguous credit score bands covering 300-850"""
    POOR = ("poor", 300, 579, Decimal('0.03'))
    FAIR = ("fair", 580, 669, Decimal('0.01'))
    GOOD = ("good", 670, 739, Decimal('0'))
    VERY_GOOD = ("very_good", 740, 799, Decimal('-0.005'))
    EXCELLENT = ("excellent", 800, 850, Decimal('-0.01'))

    def __init__(self, label: str, low: int, high: int, adjustment: Decimal):
        self.label = label
        self.low = low
        self.high = high
        self.adjustment = adjustment

    def contains(self, score: int) -> bool:
        return self.low <= score <= self.high


CATEGORY_ADJUSTMENTS: Dict[AccountCategory, Decimal] = {
    AccountCategory.MORTGAGE: Decimal('0.005'),
    AccountCategory.AUTO_LOAN: Decimal('0.02'),
    AccountCategory.STUDENT_LOAN: Decimal('-0.005'),
    AccountCategory.PERSONAL_LOAN: Decimal('0.03'),
    AccountCategory.CREDIT_LINE: Decimal('0.12'),
}


def credit_band_for(score: int) -> Optional[CreditBand]:
    """Get the band for a score, or None when outside 300-850"""
    for band in CreditBand:
        if band.contains(score):
            return band
    return None


def credit_adjustment(score: int) -> Decimal:
    """Risk premium (or discount) for a credit score"""
    band = credit_band_for(score)
    return band.adjustment if band else Decimal('0')


def category_adjustment(category: AccountCategory) -> Decimal:
    """Product premium for a loan category"""
    return CATEGORY_ADJUSTMENTS.get(category, Decimal('0'))


def term_adjustment(term_years: int) -> Decimal:
    """Longer terms carry a small surcharge"""
    if term_years > 15:
        return Decimal('0.005')
    if term_years > 7:
        return Decimal('0.002')
    return Decimal('0')


def price_loan(
    credit_score: int,
    category,
    term_years: int,
    base_rate: Numeric,
    floor: Numeric = DEFAULT_RATE_FLOOR
) -> Decimal:
    """
    Price a loan at origination

    Args:
        credit_score: Borrower score (300-850; anything else is treated as neutral)
        category: Loan category (AccountCategory or its value)
        term_years: Loan term in whole years
        base_rate: Current central bank base rate
        floor: Minimum rate the lender will accept

    Returns:
        Annual interest rate as Decimal

    Raises:
        ValueError: If term_years is not a positive integer
        UnknownCategory: If the category is not recognized
    """
    if isinstance(term_years, bool) or not isinstance(term_years, int) or term_years <= 0:
        raise ValueError(f"Loan term must be a positive number of years, got {term_years!r}")

    category = AccountCategory.parse(category)
    floor_rate = max(Decimal('0'), to_rate(floor))

    rate = to_rate(base_rate)
    rate += credit_adjustment(credit_score)
    rate += category_adjustment(category)
    rate += term_adjustment(term_years)

    return max(floor_rate, rate)
