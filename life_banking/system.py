"""
Banking System Module

Policy facade over the bank manager: holds the regulatory scalars, keeps the
central bank's base rate in step with the configured policy rate, and
forwards every caller-facing operation.
"""

import logging
import random
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from .accounts import Account
from .collateral import Collateral
from .config import EconomyConfig, get_config
from .events import EventDispatcher
from .ledger import LedgerEntry
from .manager import BankManager, Clock, YearlyUpdateReport
from .money import Numeric, quantize_money, to_amount, to_rate
from .rates import price_loan

logger = logging.getLogger("life_banking.system")

POLICY_FIELDS = (
    'minimum_reserve_ratio',
    'deposit_insurance_limit',
    'max_loan_to_value_ratio',
    'base_interest_rate',
    'inflation_rate',
)


def _ratio(value: Numeric, name: str) -> Decimal:
    ratio = to_rate(value)
    if not Decimal('0') <= ratio <= Decimal('1'):
        raise ValueError(f"{name} must be within [0, 1], got {ratio}")
    return ratio


class BankingSystem:
    """
    Session-wide banking policy and entry point for the game loop
    """

    def __init__(
        self,
        manager: Optional[BankManager] = None,
        settings: Optional[EconomyConfig] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Clock] = None,
        dispatcher: Optional[EventDispatcher] = None
    ):
        settings = settings or get_config()
        self.settings = settings
        self.manager = manager or BankManager(
            rng=rng, clock=clock, dispatcher=dispatcher, settings=settings
        )
        self._minimum_reserve_ratio = _ratio(settings.minimum_reserve_ratio, "Minimum reserve ratio")
        self._deposit_insurance_limit = to_amount(settings.deposit_insurance_limit)
        self.manager.max_loan_to_value_ratio = _ratio(
            settings.max_loan_to_value_ratio, "Maximum loan-to-value ratio"
        )

    # Policy scalars

    @property
    def central_bank(self):
        return self.manager.central_bank

    @property
    def dispatcher(self) -> EventDispatcher:
        return self.manager.dispatcher

    @property
    def minimum_reserve_ratio(self) -> Decimal:
        return self._minimum_reserve_ratio

    @minimum_reserve_ratio.setter
    def minimum_reserve_ratio(self, value: Numeric) -> None:
        self._minimum_reserve_ratio = _ratio(value, "Minimum reserve ratio")

    @property
    def deposit_insurance_limit(self) -> Decimal:
        return self._deposit_insurance_limit

    @deposit_insurance_limit.setter
    def deposit_insurance_limit(self, value: Numeric) -> None:
        self._deposit_insurance_limit = to_amount(value)

    @property
    def max_loan_to_value_ratio(self) -> Decimal:
        return self.manager.max_loan_to_value_ratio

    @max_loan_to_value_ratio.setter
    def max_loan_to_value_ratio(self, value: Numeric) -> None:
        self.manager.max_loan_to_value_ratio = _ratio(value, "Maximum loan-to-value ratio")

    @property
    def base_interest_rate(self) -> Decimal:
        """Always the central bank's live rate"""
        return self.central_bank.get_base_rate()

    @base_interest_rate.setter
    def base_interest_rate(self, value: Numeric) -> None:
        self.central_bank.set_base_rate(value)

    @property
    def inflation_rate(self) -> Decimal:
        return self.manager.inflation_rate

    @inflation_rate.setter
    def inflation_rate(self, value: Numeric) -> None:
        self.manager.inflation_rate = to_rate(value)

    def update_policy(self, **values: Numeric) -> Dict[str, str]:
        """
        Change several policy scalars at once

        Every value is validated before any is applied, so a rejected update
        leaves the whole policy unchanged.

        Raises:
            ValueError: If a name is unknown or a value is out of range
        """
        unknown = set(values) - set(POLICY_FIELDS)
        if unknown:
            raise ValueError(f"Unknown policy fields: {', '.join(sorted(unknown))}")

        validated: Dict[str, Decimal] = {}
        for name, value in values.items():
            if name in ('minimum_reserve_ratio', 'max_loan_to_value_ratio'):
                validated[name] = _ratio(value, name.replace('_', ' ').capitalize())
            elif name == 'deposit_insurance_limit':
                validated[name] = to_amount(value)
            else:
                validated[name] = to_rate(value)

        # The base rate is the only setter that can still refuse (strict mode)
        if 'base_interest_rate' in validated:
            self.base_interest_rate = validated.pop('base_interest_rate')
        for name, value in validated.items():
            setattr(self, name, value)

        logger.info(f"Policy updated: {', '.join(sorted(values))}")
        return self.get_policy()

    def get_policy(self) -> Dict[str, str]:
        """Current policy scalars as strings"""
        return {
            'minimum_reserve_ratio': str(self.minimum_reserve_ratio),
            'deposit_insurance_limit': str(self.deposit_insurance_limit),
            'max_loan_to_value_ratio': str(self.max_loan_to_value_ratio),
            'base_interest_rate': str(self.base_interest_rate),
            'inflation_rate': str(self.inflation_rate),
        }

    def calculate_loan_interest_rate(self, credit_score: int, category, term_years: int) -> Decimal:
        """Price a loan against the central bank's live base rate"""
        return price_loan(
            credit_score, category, term_years,
            self.central_bank.get_base_rate(), self.manager.loan_rate_floor
        )

    def insured_deposits(self) -> Decimal:
        """Deposits covered by insurance"""
        return min(self.manager.total_savings(), self.deposit_insurance_limit)

    def required_reserves(self) -> Decimal:
        """Reserves the bank must hold against deposits"""
        return quantize_money(self.manager.total_savings() * self.minimum_reserve_ratio)

    # Forwarded operations

    def open_account(self, category, amount: Numeric, year: int,
                     rate: Optional[Numeric] = None, term_years: Optional[int] = None) -> Account:
        return self.manager.open_account(category, amount, year, rate=rate, term_years=term_years)

    def close_account(self, account_id: str, year: int) -> Decimal:
        return self.manager.close_account(account_id, year)

    def deposit(self, account_id: str, amount: Numeric, year: int, description: str = "Deposit") -> LedgerEntry:
        return self.manager.deposit(account_id, amount, year, description)

    def withdraw(self, account_id: str, amount: Numeric, year: int, description: str = "Withdrawal") -> LedgerEntry:
        return self.manager.withdraw(account_id, amount, year, description)

    def transfer(self, from_account_id: str, to_account_id: str, amount: Numeric,
                 year: int) -> Tuple[LedgerEntry, LedgerEntry]:
        return self.manager.transfer(from_account_id, to_account_id, amount, year)

    def make_payment(self, loan_id: str, amount: Numeric, year: int,
                     source_account_id: Optional[str] = None) -> LedgerEntry:
        return self.manager.make_payment(loan_id, amount, year, source_account_id)

    def originate_loan(self, category, principal: Numeric, year: int, **kwargs: Any) -> Account:
        return self.manager.originate_loan(category, principal, year, **kwargs)

    def register_collateral(self, collateral_type, value: Numeric, year: int, description: str = "") -> Collateral:
        return self.manager.collateral.add(collateral_type, value, year, description)

    def get_account(self, account_id: str) -> Account:
        return self.manager.get_account(account_id)

    def get_accounts(self, category=None, include_closed: bool = True) -> List[Account]:
        return self.manager.get_accounts(category, include_closed)

    def get_active_accounts(self) -> List[Account]:
        return self.manager.get_active_accounts()

    def net_position(self) -> Decimal:
        return self.manager.net_position()

    def total_debt(self) -> Decimal:
        return self.manager.total_debt()

    def total_savings(self) -> Decimal:
        return self.manager.total_savings()

    def total_investments(self) -> Decimal:
        return self.manager.total_investments()

    def credit_utilization(self) -> Decimal:
        return self.manager.credit_utilization()

    def available_credit(self) -> Decimal:
        return self.manager.available_credit()

    def underwater_collateral(self, year: int) -> List[Collateral]:
        return self.manager.underwater_collateral(year)

    def process_yearly_update(self, year: int) -> YearlyUpdateReport:
        return self.manager.process_yearly_update(year)

    def advance_year(self, year: Optional[int] = None) -> YearlyUpdateReport:
        """
        Run the yearly update for the given year, or the year after the last one processed

        Raises:
            ValueError: If no year is given and none has been processed yet
        """
        if year is None:
            if self.manager.current_year is None:
                raise ValueError("No year has been processed yet; pass the year explicitly")
            year = self.manager.current_year + 1
        elif self.manager.current_year is not None and year <= self.manager.current_year:
            logger.warning(f"Year {year} does not follow last processed year {self.manager.current_year}")
        return self.manager.process_yearly_update(year)

    # Serialization

    def to_dict(self) -> Dict[str, Any]:
        return {
            'policy': {
                'minimum_reserve_ratio': str(self.minimum_reserve_ratio),
                'deposit_insurance_limit': str(self.deposit_insurance_limit),
            },
            'manager': self.manager.to_dict(),
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        settings: Optional[EconomyConfig] = None,
        clock: Optional[Clock] = None,
        dispatcher: Optional[EventDispatcher] = None
    ) -> 'BankingSystem':
        settings = settings or get_config()
        manager = BankManager.from_dict(data['manager'], dispatcher=dispatcher, clock=clock, settings=settings)
        system = cls(manager=manager, settings=settings)
        # Restored values win over the settings the constructor applied
        manager.max_loan_to_value_ratio = Decimal(data['manager']['max_loan_to_value_ratio'])
        system.minimum_reserve_ratio = data['policy']['minimum_reserve_ratio']
        system.deposit_insurance_limit = data['policy']['deposit_insurance_limit']
        return system
