"""
Tests for the Banking System facade

Tests policy scalars, live-rate loan pricing, deposit insurance and
snapshot/restore of a whole session.
"""

import json
import random

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from life_banking.accounts import AccountCategory
from life_banking.config import EconomyConfig
from life_banking.exceptions import PolicyOutOfBounds
from life_banking.persistence import restore, snapshot
from life_banking.system import BankingSystem

FIXED_TIME = datetime(2030, 1, 1, tzinfo=timezone.utc)


def make_system(seed: int = 42) -> BankingSystem:
    return BankingSystem(settings=EconomyConfig(), rng=random.Random(seed), clock=lambda: FIXED_TIME)


class TestPolicy:
    """Test the policy scalars"""

    def setup_method(self):
        self.system = make_system()

    def test_defaults(self):
        assert self.system.get_policy() == {
            'minimum_reserve_ratio': '0.1',
            'deposit_insurance_limit': '250000.00',
            'max_loan_to_value_ratio': '0.8',
            'base_interest_rate': '0.03',
            'inflation_rate': '0.02',
        }

    def test_ratio_validation(self):
        with pytest.raises(ValueError, match=r"within \[0, 1\]"):
            self.system.minimum_reserve_ratio = Decimal('1.5')
        with pytest.raises(ValueError):
            self.system.max_loan_to_value_ratio = -0.1
        assert self.system.minimum_reserve_ratio == Decimal('0.1')

    def test_update_policy_sets_several_fields(self):
        policy = self.system.update_policy(minimum_reserve_ratio="0.2", inflation_rate="0.03")
        assert self.system.minimum_reserve_ratio == Decimal('0.2')
        assert self.system.inflation_rate == Decimal('0.03')
        assert policy == self.system.get_policy()

    def test_rejected_update_leaves_policy_unchanged(self):
        before = self.system.get_policy()

        with pytest.raises(ValueError, match=r"within \[0, 1\]"):
            self.system.update_policy(minimum_reserve_ratio="0.5", max_loan_to_value_ratio="5")
        assert self.system.get_policy() == before

        with pytest.raises(ValueError, match="Unknown policy fields: reserve_rate"):
            self.system.update_policy(base_interest_rate="0.05", reserve_rate="0.1")
        assert self.system.get_policy() == before

    def test_base_rate_is_clamped(self):
        self.system.base_interest_rate = Decimal('0.5')
        assert self.system.base_interest_rate == Decimal('0.20')
        assert self.system.central_bank.get_base_rate() == Decimal('0.20')

    def test_strict_central_bank_rejects_out_of_bounds(self):
        self.system.central_bank.strict = True
        with pytest.raises(PolicyOutOfBounds):
            self.system.base_interest_rate = Decimal('0.5')

    def test_loan_pricing_uses_live_rate(self):
        before = self.system.calculate_loan_interest_rate(720, AccountCategory.MORTGAGE, 30)
        self.system.central_bank.set_base_rate(Decimal('0.05'))
        after = self.system.calculate_loan_interest_rate(720, AccountCategory.MORTGAGE, 30)

        assert before == Decimal('0.04')
        assert after == Decimal('0.06')
        assert self.system.base_interest_rate == Decimal('0.05')

    def test_insured_deposits_capped(self):
        self.system.open_account(AccountCategory.SAVINGS, 300000, 2030)
        assert self.system.insured_deposits() == Decimal('250000')

        self.system.deposit_insurance_limit = 500000
        assert self.system.insured_deposits() == Decimal('300000.00')

    def test_required_reserves(self):
        self.system.open_account(AccountCategory.CHECKING, 1000, 2030)
        self.system.open_account(AccountCategory.INVESTMENT, 5000, 2030)
        assert self.system.required_reserves() == Decimal('100.00')


class TestAdvanceYear:
    """Test year sequencing"""

    def test_first_year_must_be_given(self):
        system = make_system()
        with pytest.raises(ValueError, match="pass the year"):
            system.advance_year()

    def test_follows_last_processed_year(self):
        system = make_system()
        system.advance_year(2030)
        report = system.advance_year()
        assert report.year == 2031
        assert system.manager.current_year == 2031


class TestSnapshot:
    """Test snapshot and restore"""

    def build_session(self) -> BankingSystem:
        system = make_system(7)
        checking = system.open_account(AccountCategory.CHECKING, 20000, 2030)
        system.open_account(AccountCategory.SAVINGS, 5000, 2030)
        system.open_account(AccountCategory.INVESTMENT, 8000, 2030)
        car = system.register_collateral("vehicle", 25000, 2030)
        system.originate_loan(AccountCategory.AUTO_LOAN, 8000, 2030, collateral_id=car.id,
                              disburse_to=checking.id, variable_rate=True)
        system.minimum_reserve_ratio = Decimal('0.15')
        for year in range(2031, 2034):
            system.advance_year(year)
        return system

    def test_snapshot_is_json_compatible(self):
        data = snapshot(self.build_session())
        assert json.loads(json.dumps(data)) == data

    def test_restore_is_lossless(self):
        system = self.build_session()
        data = json.loads(json.dumps(snapshot(system)))

        restored = restore(data, settings=EconomyConfig(), clock=lambda: FIXED_TIME)

        assert restored.to_dict() == system.to_dict()
        assert restored.minimum_reserve_ratio == Decimal('0.15')
        for account in restored.get_accounts():
            assert account.ledger.replay() == account.balance

    def test_restored_session_continues_identically(self):
        system = self.build_session()
        restored = restore(json.loads(json.dumps(snapshot(system))),
                           settings=EconomyConfig(), clock=lambda: FIXED_TIME)

        original_reports = [system.advance_year().to_dict() for _ in range(5)]
        restored_reports = [restored.advance_year().to_dict() for _ in range(5)]

        assert original_reports == restored_reports
        assert restored.to_dict() == system.to_dict()

    def test_unsupported_version(self):
        data = snapshot(make_system())
        data['version'] = 99
        with pytest.raises(ValueError, match="Unsupported snapshot version"):
            restore(data)
