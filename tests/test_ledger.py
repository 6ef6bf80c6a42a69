"""
Tests for the Transaction Ledger

Tests polarity effects, append-only ordering and balance replay.
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from life_banking.exceptions import UnknownCategory
from life_banking.ledger import (
    Direction, LedgerEntry, TransactionLog, TransactionType, balance_effect
)

TIMESTAMP = datetime(2030, 1, 1, tzinfo=timezone.utc)


def make_entry(sequence, delta, balance_after, transaction_type=TransactionType.DEPOSIT, year=2030):
    return LedgerEntry(
        sequence=sequence,
        timestamp=TIMESTAMP,
        year=year,
        transaction_type=transaction_type,
        amount=abs(Decimal(delta)),
        delta=Decimal(delta),
        balance_after=Decimal(balance_after),
        description="test",
    )


class TestBalanceEffects:
    """Test the transaction type polarity table"""

    def test_asset_effects(self):
        assert balance_effect(TransactionType.DEPOSIT, False) == Direction.INCREASE
        assert balance_effect(TransactionType.WITHDRAWAL, False) == Direction.DECREASE
        assert balance_effect(TransactionType.INTEREST, False) == Direction.INCREASE
        assert balance_effect(TransactionType.FEE, False) == Direction.DECREASE

    def test_liability_effects(self):
        assert balance_effect(TransactionType.PAYMENT, True) == Direction.DECREASE
        assert balance_effect(TransactionType.INTEREST, True) == Direction.INCREASE
        assert balance_effect(TransactionType.WITHDRAWAL, True) == Direction.INCREASE

    def test_reclassifying_types_have_no_implied_effect(self):
        for transaction_type in (TransactionType.TRANSFER, TransactionType.LOAN_DISBURSEMENT,
                                 TransactionType.INVESTMENT):
            assert transaction_type.is_reclassifying
            assert balance_effect(transaction_type, False) is None
            assert balance_effect(transaction_type, True) is None

    def test_parse(self):
        assert TransactionType.parse("cashback") == TransactionType.CASHBACK
        with pytest.raises(UnknownCategory):
            TransactionType.parse("bribe")


class TestTransactionLog:
    """Test the append-only log"""

    def setup_method(self):
        self.log = TransactionLog()
        self.log.append(make_entry(1, "100.00", "100.00"))
        self.log.append(make_entry(2, "-30.00", "70.00", TransactionType.WITHDRAWAL))
        self.log.append(make_entry(3, "5.25", "75.25", TransactionType.INTEREST, year=2031))

    def test_replay(self):
        assert self.log.replay() == Decimal('75.25')
        assert self.log.replay(Decimal('10')) == Decimal('85.25')

    def test_sequence_must_increase(self):
        with pytest.raises(ValueError, match="does not follow"):
            self.log.append(make_entry(3, "1.00", "76.25"))
        assert len(self.log) == 3
        assert self.log.next_sequence() == 4

    def test_entries_view_is_immutable(self):
        entries = self.log.entries
        assert isinstance(entries, tuple)
        with pytest.raises(Exception):
            entries[0].amount = Decimal('1')

    def test_queries(self):
        assert len(self.log.entries_for_year(2030)) == 2
        assert len(self.log.of_type(TransactionType.INTEREST)) == 1
        assert self.log.total(TransactionType.DEPOSIT) == Decimal('100.00')
        assert self.log.total(TransactionType.INTEREST, year=2030) == Decimal('0')

    def test_serialization_preserves_entries(self):
        restored = TransactionLog.from_list(self.log.to_list())
        assert restored.entries == self.log.entries
