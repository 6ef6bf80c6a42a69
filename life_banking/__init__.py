"""
Life Banking Engine

Banking and monetary simulation core for a life-simulation game: accounts
with append-only ledgers, loan pricing, a central bank, market cycles and
the once-per-year economic update that ties them together.
"""

__version__ = "1.0.0"

from .accounts import Account, AccountCategory
from .central_bank import CentralBank, ShockType, YearlyRate
from .events import BankingEvent, BankingEventType, EventDispatcher
from .exceptions import BankingError
from .manager import BankManager, YearlyUpdateReport
from .market import MarketCycle, MarketRegime
from .rates import price_loan
from .system import BankingSystem

__all__ = [
    "Account",
    "AccountCategory",
    "BankManager",
    "BankingError",
    "BankingEvent",
    "BankingEventType",
    "BankingSystem",
    "CentralBank",
    "EventDispatcher",
    "MarketCycle",
    "MarketRegime",
    "ShockType",
    "YearlyRate",
    "YearlyUpdateReport",
    "price_loan",
]
