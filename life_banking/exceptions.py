"""
Banking Error Taxonomy

Every error raised by the engine is a normal, reportable outcome. All of them
derive from ValueError so callers that only guard against bad input keep
working.
"""

from typing import Any, Optional


class BankingError(ValueError):
    """Base class for engine errors"""


class InvalidAmount(BankingError):
    """Negative, NaN, infinite or non-numeric amount"""


class AccountClosed(BankingError):
    """Operation attempted on a closed account"""

    def __init__(self, account_id: str):
        super().__init__(f"Account {account_id} is closed")
        self.account_id = account_id


class AccountNotFound(BankingError):
    """Unknown account id"""

    def __init__(self, account_id: str):
        super().__init__(f"Account {account_id} not found")
        self.account_id = account_id


class UnknownCategory(BankingError):
    """Unrecognized account or transaction category"""


class PolicyOutOfBounds(BankingError):
    """Policy value outside its allowed range (only raised in strict mode)"""


class InsufficientFunds(BankingError):
    """Withdrawal exceeds balance or available credit"""


class WithdrawalNotPermitted(BankingError):
    """Category does not allow withdrawals (loans, immature CDs)"""


class OutstandingBalance(BankingError):
    """Liability cannot be closed while an amount is still owed"""


class LoanDeclined(BankingError):
    """Borrower or collateral does not qualify for the requested loan"""


class YearlyUpdatePartialFailure(BankingError):
    """One or more accounts failed during the yearly pass"""

    def __init__(self, report: Optional[Any] = None, message: Optional[str] = None):
        if message is None:
            count = len(report.failures) if report is not None else 0
            year = report.year if report is not None else "?"
            message = f"Yearly update for {year} completed with {count} account failure(s)"
        super().__init__(message)
        self.report = report
