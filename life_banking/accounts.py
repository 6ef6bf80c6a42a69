"""
Account Module

Defines the account categories, the behaviour table that drives yearly
processing, and the Account record itself. Every balance change on an
account is paired with exactly one ledger entry; liability accounts store
the non-negative amount owed.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum

from .exceptions import AccountClosed, InvalidAmount, InsufficientFunds, UnknownCategory
from .ledger import Direction, LedgerEntry, TransactionLog, TransactionType, balance_effect
from .money import ZERO, Numeric, quantize_money, to_amount, to_rate


class AccountCategory(Enum):
    """Banking product categories"""
    CHECKING = "checking"
    SAVINGS = "savings"
    CERTIFICATE_OF_DEPOSIT = "certificate_of_deposit"
    CREDIT_LINE = "credit_line"        # Revolving, card-type credit
    MORTGAGE = "mortgage"
    AUTO_LOAN = "auto_loan"
    STUDENT_LOAN = "student_loan"
    PERSONAL_LOAN = "personal_loan"
    BUSINESS = "business"
    INVESTMENT = "investment"
    MONEY_MARKET = "money_market"

    @classmethod
    def parse(cls, value) -> 'AccountCategory':
        """Resolve a category from its value, raising UnknownCategory"""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnknownCategory(f"Unknown account category: {value!r}")

    @property
    def behavior(self) -> 'CategoryBehavior':
        return CATEGORY_BEHAVIOR[self]

    @property
    def is_liability(self) -> bool:
        return self.behavior.polarity == Polarity.LIABILITY


class Polarity(Enum):
    """Whether the balance is owned or owed"""
    ASSET = 1
    LIABILITY = -1


class YearlyAction(Enum):
    """Scheduled action for an account in the yearly pass"""
    ACCRUES_INTEREST = "accrues_interest"
    AMORTIZES = "amortizes"
    REVALUES = "revalues"
    DORMANT = "dormant"


@dataclass(frozen=True)
class CategoryBehavior:
    """Per-category semantics consulted once per account per year"""
    polarity: Polarity
    is_interest_bearing: bool = False
    is_amortizing: bool = False
    is_market_valued: bool = False
    default_term: int = 0
    default_rate: Decimal = ZERO
    minimum_opening_amount: Decimal = ZERO
    monthly_fee: Decimal = ZERO
    minimum_balance: Decimal = ZERO   # Fee is waived at or above this balance

    @property
    def yearly_action(self) -> YearlyAction:
        if self.is_interest_bearing:
            return YearlyAction.ACCRUES_INTEREST
        if self.is_amortizing:
            return YearlyAction.AMORTIZES
        if self.is_market_valued:
            return YearlyAction.REVALUES
        return YearlyAction.DORMANT


CATEGORY_BEHAVIOR: Dict[AccountCategory, CategoryBehavior] = {
    AccountCategory.CHECKING: CategoryBehavior(
        Polarity.ASSET, default_rate=Decimal('0.0025'), minimum_opening_amount=Decimal('25'),
        monthly_fee=Decimal('5'), minimum_balance=Decimal('100')
    ),
    AccountCategory.SAVINGS: CategoryBehavior(
        Polarity.ASSET, is_interest_bearing=True, default_rate=Decimal('0.01'),
        minimum_opening_amount=Decimal('50')
    ),
    AccountCategory.CERTIFICATE_OF_DEPOSIT: CategoryBehavior(
        Polarity.ASSET, is_interest_bearing=True, default_term=1, default_rate=Decimal('0.03'),
        minimum_opening_amount=Decimal('500')
    ),
    AccountCategory.BUSINESS: CategoryBehavior(
        Polarity.ASSET, is_interest_bearing=True, default_rate=Decimal('0.015'),
        minimum_opening_amount=Decimal('100'), monthly_fee=Decimal('15'), minimum_balance=Decimal('500')
    ),
    AccountCategory.MONEY_MARKET: CategoryBehavior(Polarity.ASSET, default_rate=Decimal('0.02')),
    AccountCategory.INVESTMENT: CategoryBehavior(
        Polarity.ASSET, is_market_valued=True, minimum_opening_amount=Decimal('1000')
    ),
    AccountCategory.CREDIT_LINE: CategoryBehavior(Polarity.LIABILITY),
    AccountCategory.MORTGAGE: CategoryBehavior(Polarity.LIABILITY, is_amortizing=True, default_term=30),
    AccountCategory.AUTO_LOAN: CategoryBehavior(Polarity.LIABILITY, is_amortizing=True, default_term=5),
    AccountCategory.STUDENT_LOAN: CategoryBehavior(Polarity.LIABILITY, is_amortizing=True, default_term=10),
    AccountCategory.PERSONAL_LOAN: CategoryBehavior(Polarity.LIABILITY, is_amortizing=True, default_term=5),
}

LOAN_CATEGORIES = frozenset(
    category for category, behavior in CATEGORY_BEHAVIOR.items()
    if behavior.polarity == Polarity.LIABILITY
)


def annuity_payment(balance: Decimal, rate: Decimal, periods: int) -> Decimal:
    """
    Level payment that retires balance over periods at rate per period

    Standard formula: P * [r(1+r)^n] / [(1+r)^n - 1]
    """
    if periods <= 0:
        raise ValueError("Number of payment periods must be positive")
    if rate == ZERO:
        return balance / Decimal(periods)
    factor = (Decimal('1') + rate) ** periods
    return balance * (rate * factor) / (factor - Decimal('1'))


@dataclass
class AmortizationResult:
    """Outcome of one yearly amortization step"""
    interest: Decimal
    principal: Decimal
    payment: Decimal
    remaining_balance: Decimal
    closed: bool


@dataclass
class Account:
    """
    Unit of monetary state with its own append-only ledger
    """
    id: str
    category: AccountCategory
    interest_rate: Decimal
    origination_year: int
    balance: Decimal = ZERO
    is_open: bool = True
    term_years: int = 0
    collateral_id: Optional[str] = None
    credit_limit: Optional[Decimal] = None
    variable_rate: bool = False
    payments_made: int = 0
    closed_year: Optional[int] = None
    ledger: TransactionLog = field(default_factory=TransactionLog)

    @classmethod
    def open(
        cls,
        account_id: str,
        category,
        amount: Numeric,
        rate: Optional[Numeric],
        year: int,
        term_years: Optional[int] = None,
        collateral_id: Optional[str] = None,
        credit_limit: Optional[Numeric] = None,
        variable_rate: bool = False,
        timestamp: Optional[datetime] = None
    ) -> 'Account':
        """
        Open a new account and post its opening entry

        Args:
            account_id: Stable identifier
            category: AccountCategory or its value
            amount: Initial deposit (assets, >= 0) or principal (liabilities, > 0)
            rate: Annual rate; required for liabilities
            year: Origination year
            term_years: Term for CDs and amortizing loans (category default if omitted)
            collateral_id: Linked collateral reference
            credit_limit: Limit for credit lines
            variable_rate: Whether the rate is re-priced every year
            timestamp: Entry timestamp (defaults to now)

        Returns:
            Open Account

        Raises:
            UnknownCategory: If the category is not recognized
            InvalidAmount: If amount or rate is invalid
        """
        category = AccountCategory.parse(category)
        behavior = category.behavior
        is_liability = behavior.polarity == Polarity.LIABILITY

        if is_liability:
            # Credit lines may open empty; term loans need a positive principal
            opening = to_amount(amount, allow_zero=not behavior.is_amortizing)
            if rate is None:
                raise ValueError(f"{category.value} accounts require an interest rate")
        else:
            opening = to_amount(amount)

        interest_rate = to_rate(rate) if rate is not None else ZERO
        if interest_rate < ZERO:
            raise InvalidAmount(f"Interest rate must be non-negative, got {interest_rate}")

        term = behavior.default_term if term_years is None else term_years
        if behavior.is_amortizing and (not isinstance(term, int) or term <= 0):
            raise ValueError(f"{category.value} accounts require a positive term, got {term_years!r}")

        limit = None
        if credit_limit is not None:
            limit = to_amount(credit_limit)
            if category == AccountCategory.CREDIT_LINE and opening > limit:
                raise InvalidAmount(f"Opening balance {opening} exceeds credit limit {limit}")

        account = cls(
            id=account_id,
            category=category,
            interest_rate=interest_rate,
            origination_year=year,
            term_years=term or 0,
            collateral_id=collateral_id,
            credit_limit=limit,
            variable_rate=variable_rate and is_liability,
        )

        if opening > ZERO:
            if is_liability:
                account.apply_transaction(
                    TransactionType.LOAN_DISBURSEMENT, opening, "Loan disbursement", year,
                    direction=Direction.INCREASE, timestamp=timestamp
                )
            else:
                account.apply_transaction(
                    TransactionType.DEPOSIT, opening, "Initial deposit", year, timestamp=timestamp
                )

        return account

    @property
    def behavior(self) -> CategoryBehavior:
        return self.category.behavior

    @property
    def is_liability(self) -> bool:
        return self.behavior.polarity == Polarity.LIABILITY

    @property
    def is_asset(self) -> bool:
        return self.behavior.polarity == Polarity.ASSET

    @property
    def signed_balance(self) -> Decimal:
        """Balance from the owner's perspective (debt is negative)"""
        return self.balance * self.behavior.polarity.value

    @property
    def yearly_action(self) -> YearlyAction:
        return self.behavior.yearly_action

    @property
    def available_credit(self) -> Decimal:
        """Remaining credit on a credit line (zero for other categories)"""
        if self.category != AccountCategory.CREDIT_LINE or self.credit_limit is None:
            return ZERO
        return max(ZERO, self.credit_limit - self.balance)

    @property
    def remaining_term(self) -> int:
        """Scheduled yearly payments still to come"""
        return max(1, self.term_years - self.payments_made)

    def is_mature(self, year: int) -> bool:
        """Check if a certificate of deposit has reached its term"""
        return (
            self.category == AccountCategory.CERTIFICATE_OF_DEPOSIT
            and year - self.origination_year >= self.term_years
        )

    def ensure_open(self) -> None:
        """Raise AccountClosed unless the account accepts mutations"""
        if not self.is_open:
            raise AccountClosed(self.id)

    def _entry(
        self,
        transaction_type: TransactionType,
        amount: Decimal,
        delta: Decimal,
        balance_after: Decimal,
        description: str,
        year: int,
        sequence: int,
        timestamp: Optional[datetime]
    ) -> LedgerEntry:
        return LedgerEntry(
            sequence=sequence,
            timestamp=timestamp or datetime.now(timezone.utc),
            year=year,
            transaction_type=transaction_type,
            amount=amount,
            delta=delta,
            balance_after=balance_after,
            description=description,
        )

    def _validate_balance(self, new_balance: Decimal) -> None:
        """Reject balance moves that break the category polarity"""
        if new_balance >= ZERO:
            if (self.category == AccountCategory.CREDIT_LINE and self.credit_limit is not None
                    and new_balance > self.credit_limit):
                raise InsufficientFunds(
                    f"Credit limit {self.credit_limit} exceeded on account {self.id}"
                )
            return
        if self.is_liability:
            raise InvalidAmount(
                f"Amount exceeds the {self.balance} owed on account {self.id}"
            )
        raise InsufficientFunds(
            f"Insufficient funds in account {self.id}: balance {self.balance}"
        )

    def plan_transaction(
        self,
        transaction_type,
        amount: Numeric,
        direction: Optional[Direction] = None
    ) -> Decimal:
        """
        Validate a transaction without applying it

        Returns:
            Signed delta that apply_transaction would post
        """
        self.ensure_open()
        transaction_type = TransactionType.parse(transaction_type)
        value = to_amount(amount)

        implied = balance_effect(transaction_type, self.is_liability)
        if implied is None:
            if direction is None:
                raise ValueError(
                    f"{transaction_type.value} entries must be posted as explicit legs with a direction"
                )
            implied = direction

        delta = value if implied == Direction.INCREASE else -value
        self._validate_balance(self.balance + delta)
        return delta

    def apply_transaction(
        self,
        transaction_type,
        amount: Numeric,
        description: str,
        year: int,
        direction: Optional[Direction] = None,
        timestamp: Optional[datetime] = None
    ) -> LedgerEntry:
        """
        Post a transaction: validate, append the ledger entry, update balance

        Args:
            transaction_type: TransactionType or its value
            amount: Non-negative amount
            description: Free-text description
            year: Simulated year
            direction: Required leg direction for reclassifying types
            timestamp: Entry timestamp (defaults to now)

        Returns:
            Appended LedgerEntry

        Raises:
            AccountClosed: If the account is closed
            InvalidAmount: If the amount is invalid or overpays a liability
            UnknownCategory: If the transaction type is not recognized
            InsufficientFunds: If an asset would go negative or a credit limit is exceeded
        """
        transaction_type = TransactionType.parse(transaction_type)
        delta = self.plan_transaction(transaction_type, amount, direction)
        new_balance = self.balance + delta

        entry = self._entry(
            transaction_type, abs(delta), delta, new_balance, description, year,
            self.ledger.next_sequence(), timestamp
        )
        self.ledger.append(entry)
        self.balance = new_balance

        if self.behavior.is_amortizing and self.balance == ZERO:
            self.close(year)

        return entry

    def apply_monthly_fees(self, year: int, months: int = 12, timestamp: Optional[datetime] = None) -> Decimal:
        """
        Charge the category's maintenance fee for each month the balance is
        below the fee-free minimum

        Fees never take the balance below zero. All of the year's fee entries
        commit together.

        Returns:
            Total fees charged; Decimal('0') for fee-free categories
        """
        behavior = self.behavior
        if behavior.monthly_fee <= ZERO:
            return ZERO
        self.ensure_open()

        sequence = self.ledger.next_sequence()
        entries = []
        running = self.balance
        for month in range(1, months + 1):
            if running >= behavior.minimum_balance or running == ZERO:
                break
            fee = quantize_money(min(behavior.monthly_fee, running))
            running -= fee
            entries.append(self._entry(
                TransactionType.FEE, fee, -fee, running,
                f"Monthly maintenance fee ({month}/{months})", year, sequence, timestamp
            ))
            sequence += 1

        charged = self.balance - running
        for entry in entries:
            self.ledger.append(entry)
        self.balance = running
        return charged

    def apply_interest(self, year: int, timestamp: Optional[datetime] = None) -> Decimal:
        """
        Credit one year of interest to an interest-bearing asset account

        Returns:
            Interest credited; Decimal('0') for ineligible categories or balances
        """
        if not self.behavior.is_interest_bearing:
            return ZERO
        self.ensure_open()

        interest = quantize_money(self.balance * self.interest_rate)
        if interest <= ZERO:
            return ZERO

        self.apply_transaction(
            TransactionType.INTEREST, interest, "Interest earned", year, timestamp=timestamp
        )
        return interest

    def scheduled_payment(self) -> Decimal:
        """Annual level payment over the remaining term at the current rate"""
        return quantize_money(annuity_payment(self.balance, self.interest_rate, self.remaining_term))

    def amortize(self, year: int, timestamp: Optional[datetime] = None) -> Optional[AmortizationResult]:
        """
        Apply one scheduled yearly payment to an amortizing loan

        Interest for the year is posted first, then the payment; both entries
        commit together. The account closes once nothing is owed.

        Returns:
            AmortizationResult, or None for non-amortizing categories
        """
        if not self.behavior.is_amortizing:
            return None
        self.ensure_open()

        interest = quantize_money(self.balance * self.interest_rate)
        owed_with_interest = self.balance + interest

        if self.remaining_term == 1:
            payment = owed_with_interest
        else:
            payment = min(self.scheduled_payment(), owed_with_interest)
        principal = payment - interest

        if interest < ZERO or payment < ZERO:
            raise InvalidAmount(f"Negative amortization amounts on account {self.id}")

        # Build both entries before touching state
        sequence = self.ledger.next_sequence()
        entries = []
        running = self.balance
        if interest > ZERO:
            running = running + interest
            entries.append(self._entry(
                TransactionType.INTEREST, interest, interest, running,
                "Interest charged", year, sequence, timestamp
            ))
            sequence += 1
        if payment > ZERO:
            running = running - payment
            entries.append(self._entry(
                TransactionType.PAYMENT, payment, -payment, running,
                f"Scheduled payment {self.payments_made + 1} of {self.term_years}",
                year, sequence, timestamp
            ))
        if running < ZERO:
            raise InvalidAmount(f"Amortization would overpay account {self.id}")

        for entry in entries:
            self.ledger.append(entry)
        self.balance = running
        self.payments_made += 1

        if self.balance == ZERO:
            self.close(year)

        return AmortizationResult(
            interest=interest,
            principal=principal,
            payment=payment,
            remaining_balance=self.balance,
            closed=not self.is_open,
        )

    def revalue(self, return_rate: Numeric, year: int, timestamp: Optional[datetime] = None) -> Decimal:
        """
        Apply a market return to an investment account

        Returns:
            Signed change in value; Decimal('0') for other categories
        """
        if not self.behavior.is_market_valued:
            return ZERO
        self.ensure_open()

        rate = to_rate(return_rate)
        change = quantize_money(self.balance * rate)
        if change > ZERO:
            self.apply_transaction(
                TransactionType.INVESTMENT_RETURN, change, "Market return", year, timestamp=timestamp
            )
        elif change < ZERO:
            loss = min(-change, self.balance)
            self.apply_transaction(
                TransactionType.INVESTMENT_LOSS, loss, "Market loss", year, timestamp=timestamp
            )
            change = -loss
        return change

    def close(self, year: int) -> None:
        """Close the account; history stays readable"""
        self.ensure_open()
        self.is_open = False
        self.closed_year = year

    def to_dict(self) -> Dict[str, Any]:
        """Convert Account to dictionary for storage"""
        return {
            'id': self.id,
            'category': self.category.value,
            'balance': str(self.balance),
            'interest_rate': str(self.interest_rate),
            'origination_year': self.origination_year,
            'is_open': self.is_open,
            'term_years': self.term_years,
            'collateral_id': self.collateral_id,
            'credit_limit': str(self.credit_limit) if self.credit_limit is not None else None,
            'variable_rate': self.variable_rate,
            'payments_made': self.payments_made,
            'closed_year': self.closed_year,
            'ledger': self.ledger.to_list(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Account':
        """Convert dictionary to Account"""
        credit_limit = None
        if data.get('credit_limit') is not None:
            credit_limit = Decimal(data['credit_limit'])

        return cls(
            id=data['id'],
            category=AccountCategory.parse(data['category']),
            balance=Decimal(data['balance']),
            interest_rate=Decimal(data['interest_rate']),
            origination_year=int(data['origination_year']),
            is_open=bool(data['is_open']),
            term_years=int(data.get('term_years', 0)),
            collateral_id=data.get('collateral_id'),
            credit_limit=credit_limit,
            variable_rate=bool(data.get('variable_rate', False)),
            payments_made=int(data.get('payments_made', 0)),
            closed_year=data.get('closed_year'),
            ledger=TransactionLog.from_list(data.get('ledger', [])),
        )


def sort_by_id(accounts: List[Account]) -> List[Account]:
    """Stable processing order for batch passes"""
    return sorted(accounts, key=lambda account: account.id)
