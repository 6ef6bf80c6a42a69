"""
Transaction Ledger Module

Append-only transaction log attached to every account. Entries are immutable
once appended and the account balance is always reconstructable by
replaying the log from zero.
"""

from decimal import Decimal
from datetime import datetime
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple
from enum import Enum

from .exceptions import UnknownCategory


class Direction(Enum):
    """How an entry moves the stored balance"""
    INCREASE = "increase"
    DECREASE = "decrease"


class TransactionType(Enum):
    """Ledger entry categories"""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"
    PAYMENT = "payment"
    FEE = "fee"
    INTEREST = "interest"
    LOAN_DISBURSEMENT = "loan_disbursement"
    REFUND = "refund"
    CASHBACK = "cashback"
    INVESTMENT = "investment"
    INVESTMENT_RETURN = "investment_return"
    INVESTMENT_LOSS = "investment_loss"
    TAX = "tax"

    @classmethod
    def parse(cls, value) -> 'TransactionType':
        """Resolve a TransactionType from its value, raising UnknownCategory"""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnknownCategory(f"Unknown transaction category: {value!r}")

    @property
    def is_reclassifying(self) -> bool:
        """Reclassifying types move money between accounts and are posted as explicit legs"""
        return self in _RECLASSIFYING


_RECLASSIFYING = {
    TransactionType.TRANSFER,
    TransactionType.LOAN_DISBURSEMENT,
    TransactionType.INVESTMENT,
}

# Effect on the stored balance: (asset account, liability account).
# Liability balances are the amount owed, so interest and fees grow them
# while payments and refunds shrink them.
_EFFECTS: Dict[TransactionType, Tuple[Direction, Direction]] = {
    TransactionType.DEPOSIT: (Direction.INCREASE, Direction.DECREASE),
    TransactionType.WITHDRAWAL: (Direction.DECREASE, Direction.INCREASE),
    TransactionType.PAYMENT: (Direction.DECREASE, Direction.DECREASE),
    TransactionType.FEE: (Direction.DECREASE, Direction.INCREASE),
    TransactionType.INTEREST: (Direction.INCREASE, Direction.INCREASE),
    TransactionType.REFUND: (Direction.INCREASE, Direction.DECREASE),
    TransactionType.CASHBACK: (Direction.INCREASE, Direction.DECREASE),
    TransactionType.INVESTMENT_RETURN: (Direction.INCREASE, Direction.INCREASE),
    TransactionType.INVESTMENT_LOSS: (Direction.DECREASE, Direction.DECREASE),
    TransactionType.TAX: (Direction.DECREASE, Direction.INCREASE),
}


def balance_effect(transaction_type: TransactionType, is_liability: bool) -> Optional[Direction]:
    """
    Get the implied direction of a transaction type for an account polarity

    Returns:
        Direction, or None for reclassifying types that need an explicit leg
    """
    effects = _EFFECTS.get(transaction_type)
    if effects is None:
        return None
    return effects[1] if is_liability else effects[0]


@dataclass(frozen=True)
class LedgerEntry:
    """
    Single immutable ledger line

    amount is always the non-negative magnitude; delta is the signed change
    that was applied to the stored balance.
    """
    sequence: int
    timestamp: datetime
    year: int
    transaction_type: TransactionType
    amount: Decimal
    delta: Decimal
    balance_after: Decimal
    description: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return {
            'sequence': self.sequence,
            'timestamp': self.timestamp.isoformat(),
            'year': self.year,
            'transaction_type': self.transaction_type.value,
            'amount': str(self.amount),
            'delta': str(self.delta),
            'balance_after': str(self.balance_after),
            'description': self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LedgerEntry':
        """Create from dictionary"""
        return cls(
            sequence=int(data['sequence']),
            timestamp=datetime.fromisoformat(data['timestamp']),
            year=int(data['year']),
            transaction_type=TransactionType.parse(data['transaction_type']),
            amount=Decimal(data['amount']),
            delta=Decimal(data['delta']),
            balance_after=Decimal(data['balance_after']),
            description=data['description'],
        )


class TransactionLog:
    """
    Append-only ordered history of ledger entries for one account
    """

    def __init__(self, entries: Optional[List[LedgerEntry]] = None):
        self._entries: List[LedgerEntry] = list(entries or [])

    def append(self, entry: LedgerEntry) -> LedgerEntry:
        """Append an entry; sequences must be strictly increasing"""
        if self._entries and entry.sequence <= self._entries[-1].sequence:
            raise ValueError(
                f"Ledger sequence {entry.sequence} does not follow {self._entries[-1].sequence}"
            )
        self._entries.append(entry)
        return entry

    def next_sequence(self) -> int:
        """Sequence number for the next entry"""
        return self._entries[-1].sequence + 1 if self._entries else 1

    @property
    def entries(self) -> Tuple[LedgerEntry, ...]:
        """Read-only view of the entries"""
        return tuple(self._entries)

    def __iter__(self) -> Iterator[LedgerEntry]:
        return iter(tuple(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def replay(self, initial: Decimal = Decimal('0')) -> Decimal:
        """Reconstruct the balance by summing every delta onto initial"""
        balance = initial
        for entry in self._entries:
            balance += entry.delta
        return balance

    def entries_for_year(self, year: int) -> List[LedgerEntry]:
        """Entries posted in a simulated year"""
        return [entry for entry in self._entries if entry.year == year]

    def of_type(self, transaction_type: TransactionType) -> List[LedgerEntry]:
        """Entries of one transaction type"""
        return [entry for entry in self._entries if entry.transaction_type == transaction_type]

    def total(self, transaction_type: TransactionType, year: Optional[int] = None) -> Decimal:
        """Sum of amounts for a transaction type, optionally within one year"""
        return sum(
            (entry.amount for entry in self._entries
             if entry.transaction_type == transaction_type and (year is None or entry.year == year)),
            Decimal('0')
        )

    def to_list(self) -> List[Dict[str, Any]]:
        """Serialize every entry"""
        return [entry.to_dict() for entry in self._entries]

    @classmethod
    def from_list(cls, data: List[Dict[str, Any]]) -> 'TransactionLog':
        """Rebuild a log from serialized entries"""
        log = cls()
        for item in data:
            log.append(LedgerEntry.from_dict(item))
        return log
