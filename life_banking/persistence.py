"""
Persistence Module

Lossless snapshots of a banking session and a repository that stores them
through any StorageInterface backend.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .config import EconomyConfig
from .events import EventDispatcher
from .manager import Clock
from .storage import StorageInterface
from .system import BankingSystem

logger = logging.getLogger("life_banking.persistence")

SNAPSHOT_VERSION = 1


def snapshot(system: BankingSystem) -> Dict[str, Any]:
    """
    Capture the full session state as JSON-compatible data

    Decimals are rendered as strings so a restore is exact.
    """
    return {
        'version': SNAPSHOT_VERSION,
        'state': system.to_dict(),
    }


def restore(
    data: Dict[str, Any],
    settings: Optional[EconomyConfig] = None,
    clock: Optional[Clock] = None,
    dispatcher: Optional[EventDispatcher] = None
) -> BankingSystem:
    """
    Rebuild a session from a snapshot

    Raises:
        ValueError: If the snapshot version is not supported
    """
    version = data.get('version')
    if version != SNAPSHOT_VERSION:
        raise ValueError(f"Unsupported snapshot version: {version!r}")
    return BankingSystem.from_dict(data['state'], settings=settings, clock=clock, dispatcher=dispatcher)


class BankingStateRepository:
    """
    Named save slots stored through a storage backend
    """

    def __init__(self, storage: StorageInterface, table: str = "banking_saves"):
        self.storage = storage
        self.table = table

    def save(self, slot: str, system: BankingSystem) -> Dict[str, Any]:
        """Store a snapshot under a slot name, replacing any previous save"""
        record = snapshot(system)
        record['slot'] = slot
        record['saved_at'] = datetime.now(timezone.utc).isoformat()
        if self.has_slot(slot):
            logger.info(f"Overwriting save slot {slot}")
        with self.storage.atomic():
            self.storage.save(self.table, slot, record)
        logger.info(f"Saved banking state to slot {slot}")
        return record

    def load(
        self,
        slot: str,
        settings: Optional[EconomyConfig] = None,
        clock: Optional[Clock] = None,
        dispatcher: Optional[EventDispatcher] = None
    ) -> Optional[BankingSystem]:
        """Restore the session saved under a slot, or None if the slot is empty"""
        record = self.storage.load(self.table, slot)
        if record is None:
            return None
        return restore(record, settings=settings, clock=clock, dispatcher=dispatcher)

    def has_slot(self, slot: str) -> bool:
        return self.storage.exists(self.table, slot)

    def delete(self, slot: str) -> bool:
        return self.storage.delete(self.table, slot)

    def list_slots(self) -> List[str]:
        return self.storage.list_ids(self.table)
