"""
Bank Manager Module

Orchestrates every caller-facing banking operation and the once-per-year
update pass. Single operations validate fully before mutating anything, so a
failure leaves the accounts untouched. The yearly pass isolates per-account
failures and always completes its macro steps.
"""

import logging
import random
import threading
from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .accounts import (
    Account, AccountCategory, LOAN_CATEGORIES, YearlyAction, sort_by_id
)
from .central_bank import CentralBank, ShockType
from .collateral import Collateral, CollateralRegistry
from .config import EconomyConfig, get_config
from .credit import ACCOUNT_OPENED_SCORE_CHANGE, LOAN_PAYMENT_SCORE_CHANGE, CreditProfile
from .events import BankingEvent, BankingEventType, EventDispatcher
from .exceptions import (
    AccountNotFound, BankingError, InvalidAmount, LoanDeclined, OutstandingBalance,
    WithdrawalNotPermitted, YearlyUpdatePartialFailure
)
from .ledger import Direction, LedgerEntry, TransactionType
from .logging_config import log_action
from .market import MarketCycle, MarketRegime, shock_for
from .money import ZERO, Numeric, to_amount, to_rate
from .rates import price_loan

logger = logging.getLogger("life_banking.manager")

MIN_DEPOSIT_RATE = Decimal('0.001')
SECURED_CATEGORIES = frozenset({AccountCategory.MORTGAGE, AccountCategory.AUTO_LOAN})

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AccountFailure:
    """Account step that failed during a yearly pass"""
    account_id: str
    step: str
    error: str

    def to_dict(self) -> Dict[str, str]:
        return {'account_id': self.account_id, 'step': self.step, 'error': self.error}


@dataclass
class YearlyUpdateReport:
    """Outcome of one yearly update pass"""
    year: int
    previous_regime: MarketRegime
    regime: MarketRegime = MarketRegime.NORMAL
    shocks: List[ShockType] = field(default_factory=list)
    realized_inflation: Decimal = ZERO
    base_rate: Decimal = ZERO
    total_interest: Decimal = ZERO
    total_payments: Decimal = ZERO
    total_fees: Decimal = ZERO
    investment_change: Decimal = ZERO
    closed_accounts: List[str] = field(default_factory=list)
    events: List[BankingEvent] = field(default_factory=list)
    failures: List[AccountFailure] = field(default_factory=list)

    @property
    def shock(self) -> Optional[ShockType]:
        """First shock applied this year, if any"""
        return self.shocks[0] if self.shocks else None

    @property
    def succeeded(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        """Raise YearlyUpdatePartialFailure if any account step failed"""
        if self.failures:
            raise YearlyUpdatePartialFailure(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'year': self.year,
            'previous_regime': self.previous_regime.value,
            'regime': self.regime.value,
            'shocks': [shock.label for shock in self.shocks],
            'realized_inflation': str(self.realized_inflation),
            'base_rate': str(self.base_rate),
            'total_interest': str(self.total_interest),
            'total_payments': str(self.total_payments),
            'total_fees': str(self.total_fees),
            'investment_change': str(self.investment_change),
            'closed_accounts': list(self.closed_accounts),
            'events': [event.to_dict() for event in self.events],
            'failures': [failure.to_dict() for failure in self.failures],
        }


class BankManager:
    """
    Owns the accounts and drives every balance-changing operation
    """

    def __init__(
        self,
        central_bank: Optional[CentralBank] = None,
        market: Optional[MarketCycle] = None,
        credit: Optional[CreditProfile] = None,
        collateral: Optional[CollateralRegistry] = None,
        dispatcher: Optional[EventDispatcher] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Clock] = None,
        settings: Optional[EconomyConfig] = None
    ):
        settings = settings or get_config()
        self.settings = settings
        self._rng = rng or random.Random(settings.random_seed)
        self._clock = clock or _utc_now
        self._lock = threading.RLock()

        self.central_bank = central_bank or CentralBank(
            base_rate=settings.base_rate,
            inflation_target=settings.inflation_target,
            min_rate=settings.min_base_rate,
            max_rate=settings.max_base_rate,
            history_window=settings.rate_history_window,
            rng=self._rng,
            rate_noise=settings.projection_rate_noise,
            inflation_noise=settings.projection_inflation_noise,
        )
        self.market = market or MarketCycle(
            rng=self._rng,
            decade_recession_probability=settings.decade_recession_probability,
            midcycle_boom_probability=settings.midcycle_boom_probability,
        )
        self.credit = credit or CreditProfile(settings.starting_credit_score)
        self.collateral = collateral or CollateralRegistry()
        self.dispatcher = dispatcher or EventDispatcher()

        self.inflation_rate = to_rate(settings.inflation_rate)
        self.max_loan_to_value_ratio = to_rate(settings.max_loan_to_value_ratio)
        self.annual_income = to_amount(settings.annual_income)
        self.loan_rate_floor = to_rate(settings.loan_rate_floor)

        self._accounts: Dict[str, Account] = {}
        self._account_counter = 0
        self.current_year: Optional[int] = None

    # Internal helpers

    def _next_account_id(self) -> str:
        return f"ACC{self._account_counter + 1:06d}"

    def _store(self, account: Account) -> None:
        self._accounts[account.id] = account
        self._account_counter += 1

    def _require(self, account_id: str) -> Account:
        account = self._accounts.get(account_id)
        if account is None:
            raise AccountNotFound(account_id)
        return account

    def _event(
        self,
        event_type: BankingEventType,
        message: str,
        year: int,
        account_id: Optional[str] = None,
        **data: Any
    ) -> BankingEvent:
        return BankingEvent(
            event_type=event_type,
            message=message,
            account_id=account_id,
            year=year,
            data={key: str(value) if isinstance(value, Decimal) else value for key, value in data.items()},
            timestamp=self._clock(),
        )

    def _emit(self, event: BankingEvent) -> None:
        self.dispatcher.publish(event)

    def _release_collateral(self, account: Account) -> None:
        if account.collateral_id and not account.is_open:
            self.collateral.release(account.collateral_id)

    def default_deposit_rate(self, category) -> Decimal:
        """Category default rate adjusted for the current market regime"""
        category = AccountCategory.parse(category)
        default = category.behavior.default_rate
        if default == ZERO:
            return ZERO
        return max(MIN_DEPOSIT_RATE, default + self.market.regime.interest_rate_effect)

    # Account lifecycle

    def open_account(
        self,
        category,
        amount: Numeric,
        year: int,
        rate: Optional[Numeric] = None,
        term_years: Optional[int] = None
    ) -> Account:
        """
        Open a new account

        Loan categories are routed through loan origination so they are
        priced and qualified like any other loan.

        Args:
            category: AccountCategory or its value
            amount: Initial deposit, or principal for loan categories
            year: Simulated year
            rate: Annual rate (defaults to the regime-adjusted category rate)
            term_years: Term for CDs and loans

        Returns:
            Open Account
        """
        category = AccountCategory.parse(category)
        if category in LOAN_CATEGORIES:
            return self.originate_loan(category, amount, year, term_years=term_years, rate=rate)

        minimum = category.behavior.minimum_opening_amount
        if to_amount(amount) < minimum:
            raise InvalidAmount(
                f"{category.value} accounts require an opening deposit of at least {minimum}"
            )

        with self._lock:
            if rate is None:
                rate = self.default_deposit_rate(category)
            account = Account.open(
                self._next_account_id(), category, amount, rate, year,
                term_years=term_years, timestamp=self._clock()
            )
            self._store(account)
            self.credit.adjust(ACCOUNT_OPENED_SCORE_CHANGE, "(account opened)")

        log_action(logger, "info", f"Opened {category.value} account with {account.balance}",
                   account_id=account.id, action="open_account", year=year)
        self._emit(self._event(
            BankingEventType.ACCOUNT_OPENED, f"Opened {category.value} account", year,
            account.id, category=category.value, balance=account.balance
        ))
        return account

    def close_account(self, account_id: str, year: int) -> Decimal:
        """
        Close an account

        Returns:
            Amount paid out to the owner (zero for liabilities)

        Raises:
            AccountNotFound: If the account does not exist
            AccountClosed: If it is already closed
            OutstandingBalance: If a liability still has an amount owed
        """
        with self._lock:
            account = self._require(account_id)
            account.ensure_open()
            if account.is_liability and account.balance > ZERO:
                raise OutstandingBalance(
                    f"Account {account_id} still owes {account.balance}"
                )

            payout = ZERO
            if account.is_asset and account.balance > ZERO:
                payout = account.balance
                account.apply_transaction(
                    TransactionType.WITHDRAWAL, payout, "Closing payout", year, timestamp=self._clock()
                )
            account.close(year)
            self._release_collateral(account)

        log_action(logger, "info", f"Closed account, paid out {payout}",
                   account_id=account_id, action="close_account", year=year)
        self._emit(self._event(
            BankingEventType.ACCOUNT_CLOSED, f"Closed {account.category.value} account", year,
            account_id, payout=payout
        ))
        return payout

    # Money movement

    def deposit(self, account_id: str, amount: Numeric, year: int, description: str = "Deposit") -> LedgerEntry:
        """Deposit into an asset account"""
        with self._lock:
            account = self._require(account_id)
            account.ensure_open()
            if account.is_liability:
                raise BankingError(
                    f"Account {account_id} is a {account.category.value}; use make_payment to repay it"
                )
            entry = account.apply_transaction(
                TransactionType.DEPOSIT, to_amount(amount, allow_zero=False), description, year,
                timestamp=self._clock()
            )

        self._emit(self._event(
            BankingEventType.DEPOSIT, f"Deposited {entry.amount}", year, account_id,
            amount=entry.amount, balance=entry.balance_after
        ))
        return entry

    def _check_withdrawable(self, account: Account, year: int) -> None:
        if account.behavior.is_amortizing:
            raise WithdrawalNotPermitted(
                f"Cannot withdraw from {account.category.value} account {account.id}"
            )
        if account.category == AccountCategory.CERTIFICATE_OF_DEPOSIT and not account.is_mature(year):
            raise WithdrawalNotPermitted(
                f"Certificate of deposit {account.id} matures in "
                f"{account.origination_year + account.term_years}"
            )

    def withdraw(self, account_id: str, amount: Numeric, year: int, description: str = "Withdrawal") -> LedgerEntry:
        """
        Withdraw from an asset account, or draw on a credit line

        Raises:
            InsufficientFunds: If the balance or credit limit is exceeded
            WithdrawalNotPermitted: For term loans and immature CDs
        """
        with self._lock:
            account = self._require(account_id)
            account.ensure_open()
            self._check_withdrawable(account, year)
            entry = account.apply_transaction(
                TransactionType.WITHDRAWAL, to_amount(amount, allow_zero=False), description, year,
                timestamp=self._clock()
            )

        self._emit(self._event(
            BankingEventType.WITHDRAWAL, f"Withdrew {entry.amount}", year, account_id,
            amount=entry.amount, balance=entry.balance_after
        ))
        return entry

    def transfer(
        self,
        from_account_id: str,
        to_account_id: str,
        amount: Numeric,
        year: int,
        description: str = "Transfer"
    ) -> Tuple[LedgerEntry, LedgerEntry]:
        """
        Move money between two accounts as two explicit legs

        Both legs are validated before either is posted.

        Returns:
            (debit leg, credit leg)
        """
        if from_account_id == to_account_id:
            raise BankingError("Cannot transfer to the same account")

        with self._lock:
            source = self._require(from_account_id)
            target = self._require(to_account_id)
            source.ensure_open()
            target.ensure_open()
            self._check_withdrawable(source, year)
            if target.is_liability:
                raise BankingError(
                    f"Account {to_account_id} is a {target.category.value}; use make_payment to repay it"
                )

            value = to_amount(amount, allow_zero=False)
            # A credit line funds a transfer by increasing what is owed
            source_direction = Direction.INCREASE if source.is_liability else Direction.DECREASE
            source.plan_transaction(TransactionType.TRANSFER, value, source_direction)
            target.plan_transaction(TransactionType.TRANSFER, value, Direction.INCREASE)

            timestamp = self._clock()
            debit = source.apply_transaction(
                TransactionType.TRANSFER, value, f"{description} to {to_account_id}", year,
                direction=source_direction, timestamp=timestamp
            )
            credit = target.apply_transaction(
                TransactionType.TRANSFER, value, f"{description} from {from_account_id}", year,
                direction=Direction.INCREASE, timestamp=timestamp
            )

        log_action(logger, "info", f"Transferred {value} to {to_account_id}",
                   account_id=from_account_id, action="transfer", year=year)
        self._emit(self._event(
            BankingEventType.TRANSFER, f"Transferred {value}", year, from_account_id,
            amount=value, to_account_id=to_account_id
        ))
        return debit, credit

    def make_payment(
        self,
        loan_id: str,
        amount: Numeric,
        year: int,
        source_account_id: Optional[str] = None
    ) -> LedgerEntry:
        """
        Pay down a loan or credit line

        Args:
            loan_id: Liability account being repaid
            amount: Payment amount; may not exceed the amount owed
            year: Simulated year
            source_account_id: Optional asset account funding the payment

        Returns:
            Payment entry posted on the loan
        """
        with self._lock:
            loan = self._require(loan_id)
            if not loan.is_liability:
                raise BankingError(f"Account {loan_id} is not a loan")
            value = to_amount(amount, allow_zero=False)
            loan.plan_transaction(TransactionType.PAYMENT, value)

            source = None
            if source_account_id is not None:
                source = self._require(source_account_id)
                if source.is_liability:
                    raise BankingError(f"Payments must be funded from an asset account, not {source_account_id}")
                self._check_withdrawable(source, year)
                source.plan_transaction(TransactionType.PAYMENT, value)

            timestamp = self._clock()
            if source is not None:
                source.apply_transaction(
                    TransactionType.PAYMENT, value, f"Payment to {loan_id}", year, timestamp=timestamp
                )
            entry = loan.apply_transaction(
                TransactionType.PAYMENT, value, "Loan payment", year, timestamp=timestamp
            )
            self.credit.adjust(LOAN_PAYMENT_SCORE_CHANGE, "(loan payment)")
            self._release_collateral(loan)

        self._emit(self._event(
            BankingEventType.PAYMENT, f"Paid {value} on {loan.category.value}", year, loan_id,
            amount=value, remaining=loan.balance
        ))
        if not loan.is_open:
            self._emit(self._event(
                BankingEventType.ACCOUNT_CLOSED, f"{loan.category.value} paid off", year, loan_id
            ))
        return entry

    # Loans

    def quote_loan_rate(self, category, term_years: Optional[int] = None) -> Decimal:
        """Price a loan for the current borrower at the live base rate"""
        category = AccountCategory.parse(category)
        term = term_years or category.behavior.default_term or 1
        return price_loan(
            self.credit.score, category, term, self.central_bank.get_base_rate(), self.loan_rate_floor
        )

    def _check_collateral(self, category: AccountCategory, principal: Decimal,
                          collateral_id: Optional[str], year: int) -> None:
        if collateral_id is None:
            if category in SECURED_CATEGORIES:
                raise LoanDeclined(f"{category.value} loans require collateral")
            return

        item = self.collateral.get(collateral_id)
        if item is None:
            raise LoanDeclined(f"Collateral {collateral_id} not found")
        if item.loan_id is not None:
            raise LoanDeclined(f"Collateral {collateral_id} already secures loan {item.loan_id}")

        max_ltv = min(item.collateral_type.max_ltv, self.max_loan_to_value_ratio)
        limit = item.current_value(year) * max_ltv
        if principal > limit:
            raise LoanDeclined(
                f"Principal {principal} exceeds {max_ltv:.0%} of collateral value {item.current_value(year)}"
            )

    def originate_loan(
        self,
        category,
        principal: Numeric,
        year: int,
        term_years: Optional[int] = None,
        collateral_id: Optional[str] = None,
        variable_rate: bool = False,
        disburse_to: Optional[str] = None,
        rate: Optional[Numeric] = None
    ) -> Account:
        """
        Originate a loan or credit line

        Args:
            category: Loan category
            principal: Amount borrowed (credit lines may open at zero)
            year: Simulated year
            term_years: Term in years (category default if omitted)
            collateral_id: Collateral pledged against the loan
            variable_rate: Re-price the loan every year
            disburse_to: Asset account receiving the funds
            rate: Explicit rate; priced from the live base rate when omitted

        Returns:
            Loan account

        Raises:
            LoanDeclined: If the borrower or collateral does not qualify
        """
        category = AccountCategory.parse(category)
        if category not in LOAN_CATEGORIES:
            raise BankingError(f"{category.value} is not a loan category")
        is_credit_line = category == AccountCategory.CREDIT_LINE

        with self._lock:
            value = to_amount(principal, allow_zero=is_credit_line)

            credit_limit = None
            if is_credit_line:
                credit_limit = self.credit.credit_limit()
                if value > credit_limit:
                    raise LoanDeclined(f"Requested {value} exceeds credit limit {credit_limit}")
            elif not self.credit.can_qualify(
                value, category, self.market.regime, self.total_debt(),
                self.annual_income, self.credit_utilization()
            ):
                limit = self.credit.maximum_loan_amount(
                    category, self.market.regime, self.total_debt(), self.annual_income
                )
                raise LoanDeclined(
                    f"Requested {value} exceeds the {limit} limit for credit score {self.credit.score}"
                )

            self._check_collateral(category, value, collateral_id, year)

            target = None
            if disburse_to is not None:
                target = self._require(disburse_to)
                if target.is_liability:
                    raise BankingError(f"Loan funds must be disbursed to an asset account, not {disburse_to}")
                if value > ZERO:
                    target.plan_transaction(TransactionType.LOAN_DISBURSEMENT, value, Direction.INCREASE)

            if rate is None:
                rate = self.quote_loan_rate(category, term_years)

            timestamp = self._clock()
            loan = Account.open(
                self._next_account_id(), category, value, rate, year,
                term_years=term_years, collateral_id=collateral_id,
                credit_limit=credit_limit, variable_rate=variable_rate, timestamp=timestamp
            )
            self._store(loan)
            if collateral_id is not None:
                self.collateral.link(collateral_id, loan.id)
            if target is not None and value > ZERO:
                target.apply_transaction(
                    TransactionType.LOAN_DISBURSEMENT, value, f"Proceeds of {loan.id}", year,
                    direction=Direction.INCREASE, timestamp=timestamp
                )

        log_action(logger, "info", f"Originated {category.value} of {value} at {loan.interest_rate}",
                   account_id=loan.id, action="originate_loan", year=year,
                   extra={'term_years': loan.term_years, 'variable_rate': loan.variable_rate})
        self._emit(self._event(
            BankingEventType.ACCOUNT_OPENED, f"Originated {category.value}", year, loan.id,
            category=category.value, principal=value, rate=loan.interest_rate
        ))
        return loan

    # Queries

    def get_account(self, account_id: str) -> Account:
        """Get an account (open or closed) by id"""
        return self._require(account_id)

    def get_accounts(self, category=None, include_closed: bool = True) -> List[Account]:
        """Accounts in creation order, optionally filtered"""
        if category is not None:
            category = AccountCategory.parse(category)
        return [
            account for account in sort_by_id(list(self._accounts.values()))
            if (category is None or account.category == category)
            and (include_closed or account.is_open)
        ]

    def get_active_accounts(self) -> List[Account]:
        return self.get_accounts(include_closed=False)

    def net_position(self) -> Decimal:
        """Assets minus liabilities across open accounts"""
        return sum((account.signed_balance for account in self.get_active_accounts()), ZERO)

    def total_debt(self) -> Decimal:
        return sum(
            (account.balance for account in self.get_active_accounts() if account.is_liability), ZERO
        )

    def total_savings(self) -> Decimal:
        return sum(
            (account.balance for account in self.get_active_accounts()
             if account.is_asset and account.category != AccountCategory.INVESTMENT),
            ZERO
        )


    def total_investments(self) -> Decimal:
        return sum(
            (account.balance for account in self.get_accounts(AccountCategory.INVESTMENT, include_closed=False)),
            ZERO
        )

    def credit_utilization(self) -> Decimal:
        """Share of total credit line limits currently drawn"""
        lines = [
            account for account in self.get_accounts(AccountCategory.CREDIT_LINE, include_closed=False)
            if account.credit_limit
        ]
        limit = sum((account.credit_limit for account in lines), ZERO)
        if limit == ZERO:
            return ZERO
        return sum((account.balance for account in lines), ZERO) / limit

    def available_credit(self) -> Decimal:
        """Undrawn credit across open credit lines"""
        return sum(
            (account.available_credit for account in self.get_accounts(AccountCategory.CREDIT_LINE, include_closed=False)),
            ZERO
        )

    def underwater_collateral(self, year: int) -> List[Collateral]:
        """Pledged assets worth less than the balance of the loan they secure"""
        with self._lock:
            return [
                item for item in self.collateral.all()
                if item.loan_id in self._accounts
                and item.is_underwater(self._accounts[item.loan_id].balance, year)
            ]

    # Yearly pass

    def _realize_inflation(self, regime: MarketRegime) -> Decimal:
        spread = float(self.settings.realized_inflation_noise)
        noise = Decimal(str(self._rng.uniform(-spread, spread))).quantize(Decimal('0.000001'))
        return self.inflation_rate + regime.inflation_effect + noise

    def _apply_macro_step(self, year: int, report: YearlyUpdateReport) -> None:
        regime = self.market.advance(year)
        report.regime = regime

        # A shock regime triggers a response every year it holds
        shock = shock_for(regime)
        if shock is not None:
            self.central_bank.respond_to_economic_shock(shock)
            report.shocks.append(shock)

        inflation = self._realize_inflation(regime)
        report.realized_inflation = inflation
        threshold = self.central_bank.inflation_target + to_rate(self.settings.inflation_spike_threshold)
        if inflation > threshold:
            self.central_bank.respond_to_economic_shock(ShockType.INFLATION_SPIKE)
            report.shocks.append(ShockType.INFLATION_SPIKE)

    def _process_account(self, account: Account, year: int, report: YearlyUpdateReport) -> None:
        timestamp = self._clock()

        if account.variable_rate:
            account.interest_rate = price_loan(
                self.credit.score, account.category, account.remaining_term,
                self.central_bank.get_base_rate(), self.loan_rate_floor
            )

        fees = account.apply_monthly_fees(year, timestamp=timestamp)
        if fees > ZERO:
            report.total_fees += fees
            report.events.append(self._event(
                BankingEventType.FEE_CHARGED, f"Charged {fees} in maintenance fees", year,
                account.id, amount=fees, balance=account.balance
            ))

        action = account.yearly_action
        if action == YearlyAction.ACCRUES_INTEREST:
            interest = account.apply_interest(year, timestamp)
            if interest > ZERO:
                report.total_interest += interest
                report.events.append(self._event(
                    BankingEventType.INTEREST_APPLIED, f"Earned {interest} interest", year,
                    account.id, amount=interest, balance=account.balance
                ))
        elif action == YearlyAction.AMORTIZES:
            result = account.amortize(year, timestamp)
            report.total_payments += result.payment
            report.events.append(self._event(
                BankingEventType.PAYMENT, f"Scheduled payment of {result.payment}", year,
                account.id, payment=result.payment, interest=result.interest,
                principal=result.principal, remaining=result.remaining_balance
            ))
            if result.closed:
                self._release_collateral(account)
                report.closed_accounts.append(account.id)
                report.events.append(self._event(
                    BankingEventType.ACCOUNT_CLOSED, f"{account.category.value} paid off", year, account.id
                ))
        elif action == YearlyAction.REVALUES:
            report.investment_change += account.revalue(self.market.sample_investment_return(), year, timestamp)

        if account.term_years is None or not account.is_open:
            return
        term_end = account.origination_year + account.term_years
        if account.category == AccountCategory.CERTIFICATE_OF_DEPOSIT and year == term_end:
            report.events.append(self._event(
                BankingEventType.CD_MATURED, f"Certificate of deposit matured at {account.balance}", year,
                account.id, balance=account.balance
            ))
        elif action == YearlyAction.AMORTIZES and year >= term_end and account.balance > ZERO:
            report.events.append(self._event(
                BankingEventType.LOAN_TERM_ENDED, f"Loan term ended with {account.balance} still owed", year,
                account.id, remaining=account.balance
            ))

    def process_yearly_update(self, year: int) -> YearlyUpdateReport:
        """
        Run the once-per-year economic update

        1. Advance the market cycle and let the central bank react.
        2. Reprice, charge fees, accrue, amortize and revalue every open
           account in ascending id order. A failing account is recorded and skipped.
        3. Record the year's base rate and realized inflation.
        4. Publish the resulting events.

        Args:
            year: Simulated year being processed

        Returns:
            YearlyUpdateReport; call raise_for_failures() to escalate account failures
        """
        with self._lock:
            report = YearlyUpdateReport(year=year, previous_regime=self.market.regime)
            self._apply_macro_step(year, report)

            for account in self.get_active_accounts():
                saved_rate = account.interest_rate
                try:
                    self._process_account(account, year, report)
                except Exception as e:
                    account.interest_rate = saved_rate
                    logger.error(f"Yearly update failed for account {account.id}: {e}")
                    report.failures.append(AccountFailure(account.id, account.yearly_action.value, str(e)))
                    report.events.append(self._event(
                        BankingEventType.ERROR, f"Yearly update failed: {e}", year, account.id
                    ))

            self.central_bank.record_yearly_rate(year, report.realized_inflation)
            report.base_rate = self.central_bank.get_base_rate()
            self.current_year = year

            report.events.append(self._event(
                BankingEventType.MARKET_UPDATE,
                f"Market {report.previous_regime.value} -> {report.regime.value}", year,
                regime=report.regime.value, previous_regime=report.previous_regime.value,
                base_rate=report.base_rate, inflation=report.realized_inflation,
                shocks=[shock.label for shock in report.shocks]
            ))

        log_action(logger, "info", f"Yearly update complete: {report.regime.value}, base rate {report.base_rate}",
                   action="yearly_update", year=year,
                   extra={'total_interest': str(report.total_interest), 'failures': len(report.failures)})
        for event in report.events:
            self._emit(event)
        return report

    # Persistence

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the full manager state"""
        version, internal, gauss_next = self._rng.getstate()
        return {
            'accounts': [account.to_dict() for account in self.get_accounts()],
            'account_counter': self._account_counter,
            'current_year': self.current_year,
            'central_bank': self.central_bank.to_dict(),
            'market_regime': self.market.regime.value,
            'credit': self.credit.to_dict(),
            'collateral': self.collateral.to_list(),
            'inflation_rate': str(self.inflation_rate),
            'max_loan_to_value_ratio': str(self.max_loan_to_value_ratio),
            'annual_income': str(self.annual_income),
            'loan_rate_floor': str(self.loan_rate_floor),
            'rng_state': [version, list(internal), gauss_next],
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        dispatcher: Optional[EventDispatcher] = None,
        clock: Optional[Clock] = None,
        settings: Optional[EconomyConfig] = None
    ) -> 'BankManager':
        """Rebuild a manager from to_dict output"""
        settings = settings or get_config()
        rng = random.Random()
        if data.get('rng_state'):
            version, internal, gauss_next = data['rng_state']
            rng.setstate((version, tuple(internal), gauss_next))

        manager = cls(
            central_bank=CentralBank.from_dict(data['central_bank'], rng=rng),
            market=MarketCycle(
                rng=rng,
                regime=MarketRegime.parse(data['market_regime']),
                decade_recession_probability=settings.decade_recession_probability,
                midcycle_boom_probability=settings.midcycle_boom_probability,
            ),
            credit=CreditProfile.from_dict(data['credit']),
            collateral=CollateralRegistry.from_list(data.get('collateral', [])),
            dispatcher=dispatcher,
            rng=rng,
            clock=clock,
            settings=settings,
        )
        for raw in data['accounts']:
            account = Account.from_dict(raw)
            manager._accounts[account.id] = account
        manager._account_counter = int(data['account_counter'])
        manager.current_year = data.get('current_year')
        manager.inflation_rate = Decimal(data['inflation_rate'])
        manager.max_loan_to_value_ratio = Decimal(data['max_loan_to_value_ratio'])
        manager.annual_income = Decimal(data['annual_income'])
        manager.loan_rate_floor = Decimal(data.get('loan_rate_floor', str(settings.loan_rate_floor)))
        return manager
