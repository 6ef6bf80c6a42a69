"""
Credit Profile Module

Tracks the borrower's credit score and turns it into loan qualification
limits and credit line sizes.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from .accounts import AccountCategory
from .market import MarketRegime
from .money import ZERO, Numeric, quantize_money, to_amount
from .rates import MAX_CREDIT_SCORE, MIN_CREDIT_SCORE, CreditBand, credit_band_for

logger = logging.getLogger("life_banking.credit")

CreditRating = CreditBand

DEFAULT_CREDIT_SCORE = 650
DEFAULT_ANNUAL_INCOME = Decimal('50000')

# Score changes for routine borrower behaviour
ACCOUNT_OPENED_SCORE_CHANGE = 2
LOAN_PAYMENT_SCORE_CHANGE = 3

BASE_LOAN_AMOUNTS: Dict[CreditBand, Decimal] = {
    CreditBand.POOR: Decimal('1000'),
    CreditBand.FAIR: Decimal('5000'),
    CreditBand.GOOD: Decimal('15000'),
    CreditBand.VERY_GOOD: Decimal('50000'),
    CreditBand.EXCELLENT: Decimal('100000'),
}

CREDIT_LIMITS: Dict[CreditBand, Decimal] = {
    CreditBand.POOR: Decimal('500'),
    CreditBand.FAIR: Decimal('2000'),
    CreditBand.GOOD: Decimal('5000'),
    CreditBand.VERY_GOOD: Decimal('10000'),
    CreditBand.EXCELLENT: Decimal('25000'),
}

LOAN_MULTIPLIERS: Dict[AccountCategory, Decimal] = {
    AccountCategory.MORTGAGE: Decimal('5'),
    AccountCategory.AUTO_LOAN: Decimal('2'),
    AccountCategory.STUDENT_LOAN: Decimal('1.5'),
}

REGIME_MULTIPLIERS: Dict[MarketRegime, Decimal] = {
    MarketRegime.RECESSION: Decimal('0.8'),
    MarketRegime.DEPRESSION: Decimal('0.8'),
    MarketRegime.BOOM: Decimal('1.2'),
}

MAX_DEBT_TO_INCOME = Decimal('0.4')
HIGH_DEBT_MULTIPLIER = Decimal('0.7')
MAX_UTILIZATION = Decimal('0.7')
HIGH_UTILIZATION_MULTIPLIER = Decimal('0.7')


class CreditProfile:
    """
    Borrower credit score with qualification rules
    """

    def __init__(self, score: int = DEFAULT_CREDIT_SCORE):
        self.score = self._clamp(score)

    @staticmethod
    def _clamp(score: int) -> int:
        return max(MIN_CREDIT_SCORE, min(MAX_CREDIT_SCORE, int(score)))

    @property
    def rating(self) -> CreditBand:
        return credit_band_for(self.score)

    def adjust(self, change: int, reason: str = "") -> int:
        """
        Move the score, clamped to 300-850

        Returns:
            New score
        """
        previous = self.score
        self.score = self._clamp(previous + change)
        if self.score != previous:
            logger.debug(f"Credit score {previous} -> {self.score} {reason}".rstrip())
        return self.score

    def maximum_loan_amount(
        self,
        category=AccountCategory.PERSONAL_LOAN,
        regime: MarketRegime = MarketRegime.NORMAL,
        total_debt: Numeric = ZERO,
        annual_income: Numeric = DEFAULT_ANNUAL_INCOME
    ) -> Decimal:
        """
        Largest principal the borrower qualifies for

        Args:
            category: Loan category
            regime: Current market regime
            total_debt: Amount currently owed across all loans
            annual_income: Income used for the debt-to-income check

        Returns:
            Maximum principal, rounded to cents
        """
        category = AccountCategory.parse(category)
        amount = BASE_LOAN_AMOUNTS[self.rating]
        amount *= LOAN_MULTIPLIERS.get(category, Decimal('1'))
        amount *= REGIME_MULTIPLIERS.get(regime, Decimal('1'))

        income = to_amount(annual_income)
        debt = to_amount(total_debt)
        if income > ZERO and debt / income > MAX_DEBT_TO_INCOME:
            amount *= HIGH_DEBT_MULTIPLIER

        return quantize_money(amount)

    def can_qualify(
        self,
        amount: Numeric,
        category=AccountCategory.PERSONAL_LOAN,
        regime: MarketRegime = MarketRegime.NORMAL,
        total_debt: Numeric = ZERO,
        annual_income: Numeric = DEFAULT_ANNUAL_INCOME,
        utilization: Optional[Numeric] = None
    ) -> bool:
        """Check whether a requested principal is within the borrower's limit"""
        limit = self.maximum_loan_amount(category, regime, total_debt, annual_income)
        if utilization is not None and Decimal(str(utilization)) > MAX_UTILIZATION:
            limit *= HIGH_UTILIZATION_MULTIPLIER
        return to_amount(amount) <= limit

    def credit_limit(self) -> Decimal:
        """Limit granted on a new credit line"""
        return CREDIT_LIMITS[self.rating]

    def to_dict(self) -> Dict[str, Any]:
        return {'score': self.score}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CreditProfile':
        return cls(score=int(data.get('score', DEFAULT_CREDIT_SCORE)))
