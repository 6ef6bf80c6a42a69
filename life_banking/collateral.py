"""
Collateral Module

Assets pledged against secured loans. Values depreciate (or appreciate) per
collateral type but never fall below the type's floor.
"""

import logging
from decimal import Decimal
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from enum import Enum

from .money import ZERO, Numeric, quantize_money, to_amount

logger = logging.getLogger("life_banking.collateral")


class CollateralType(Enum):
    """Kinds of pledged assets: (value, depreciation, value floor, max LTV)"""
    REAL_ESTATE = ("real_estate", Decimal('-0.03'), Decimal('0.5'), Decimal('0.8'))
    VEHICLE = ("vehicle", Decimal('0.15'), Decimal('0.1'), Decimal('0.9'))
    INVESTMENT = ("investment", Decimal('0'), Decimal('0'), Decimal('0.5'))
    SAVINGS = ("savings", Decimal('0'), Decimal('1.0'), Decimal('0.95'))
    OTHER = ("other", Decimal('0.10'), Decimal('0.1'), Decimal('0.5'))

    def __init__(self, label: str, depreciation_rate: Decimal, value_floor: Decimal, max_ltv: Decimal):
        self.label = label
        self.depreciation_rate = depreciation_rate
        self.value_floor = value_floor
        self.max_ltv = max_ltv

    @classmethod
    def parse(cls, value) -> 'CollateralType':
        if isinstance(value, cls):
            return value
        for collateral_type in cls:
            if collateral_type.label == value:
                return collateral_type
        raise ValueError(f"Unknown collateral type: {value!r}")


@dataclass
class Collateral:
    """Pledged asset and the loan it secures"""
    id: str
    collateral_type: CollateralType
    description: str
    value: Decimal
    purchase_year: int
    loan_id: Optional[str] = None

    def current_value(self, year: int) -> Decimal:
        """Value after yearly depreciation, bounded below by the type floor"""
        years_owned = max(0, year - self.purchase_year)
        depreciated = self.value * (Decimal('1') - self.collateral_type.depreciation_rate) ** years_owned
        floor = self.value * self.collateral_type.value_floor
        return quantize_money(max(depreciated, floor))

    def loan_to_value(self, loan_balance: Numeric, year: int) -> Decimal:
        """Ratio of an outstanding balance to the current value"""
        current = self.current_value(year)
        if current == ZERO:
            raise ValueError(f"Collateral {self.id} has no remaining value")
        return abs(Decimal(str(loan_balance))) / current

    def is_underwater(self, loan_balance: Numeric, year: int) -> bool:
        return self.loan_to_value(loan_balance, year) > Decimal('1')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'collateral_type': self.collateral_type.label,
            'description': self.description,
            'value': str(self.value),
            'purchase_year': self.purchase_year,
            'loan_id': self.loan_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Collateral':
        return cls(
            id=data['id'],
            collateral_type=CollateralType.parse(data['collateral_type']),
            description=data.get('description', ''),
            value=Decimal(data['value']),
            purchase_year=int(data['purchase_year']),
            loan_id=data.get('loan_id'),
        )


class CollateralRegistry:
    """
    Pledged assets keyed by id
    """

    def __init__(self):
        self._items: Dict[str, Collateral] = {}
        self._counter = 0

    def add(self, collateral_type, value: Numeric, purchase_year: int, description: str = "") -> Collateral:
        """
        Register a new asset

        Raises:
            InvalidAmount: If value is not a positive amount
            ValueError: If the collateral type is unknown
        """
        collateral_type = CollateralType.parse(collateral_type)
        amount = to_amount(value, allow_zero=False)
        self._counter += 1
        item = Collateral(
            id=f"COL{self._counter:06d}",
            collateral_type=collateral_type,
            description=description or collateral_type.label.replace('_', ' ').title(),
            value=amount,
            purchase_year=purchase_year,
        )
        self._items[item.id] = item
        logger.info(f"Registered collateral {item.id} ({collateral_type.label}) worth {amount}")
        return item

    def get(self, collateral_id: str) -> Optional[Collateral]:
        return self._items.get(collateral_id)

    def all(self) -> List[Collateral]:
        return sorted(self._items.values(), key=lambda item: item.id)

    def available(self) -> List[Collateral]:
        """Assets not currently securing a loan"""
        return [item for item in self.all() if item.loan_id is None]

    def link(self, collateral_id: str, loan_id: str) -> Collateral:
        """Pledge an asset against a loan"""
        item = self._items.get(collateral_id)
        if item is None:
            raise ValueError(f"Collateral {collateral_id} not found")
        if item.loan_id is not None and item.loan_id != loan_id:
            raise ValueError(f"Collateral {collateral_id} already secures loan {item.loan_id}")
        item.loan_id = loan_id
        return item

    def release(self, collateral_id: str) -> Optional[Collateral]:
        """Free an asset once its loan is repaid"""
        item = self._items.get(collateral_id)
        if item is not None and item.loan_id is not None:
            logger.info(f"Released collateral {collateral_id} from loan {item.loan_id}")
            item.loan_id = None
        return item

    def to_list(self) -> List[Dict[str, Any]]:
        return [item.to_dict() for item in self.all()]

    @classmethod
    def from_list(cls, data: List[Dict[str, Any]]) -> 'CollateralRegistry':
        registry = cls()
        for raw in data:
            item = Collateral.from_dict(raw)
            registry._items[item.id] = item
            registry._counter = max(registry._counter, int(item.id[3:]))
        return registry
