"""
Banking Event Module

Observer-pattern dispatcher for domain events. Events are relayed to the
notification layer best-effort: a failing handler is logged and never
breaks the banking operation that produced the event.
"""

from enum import Enum
from typing import Callable, Dict, List, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from threading import RLock


class BankingEventType(Enum):
    """Observable banking changes"""
    ACCOUNT_OPENED = "account_opened"
    ACCOUNT_CLOSED = "account_closed"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"
    PAYMENT = "payment"
    INTEREST_APPLIED = "interest_applied"
    FEE_CHARGED = "fee_charged"
    CD_MATURED = "cd_matured"
    LOAN_TERM_ENDED = "loan_term_ended"
    MARKET_UPDATE = "market_update"
    ERROR = "error"


@dataclass
class BankingEvent:
    """Notification-ready event"""
    event_type: BankingEventType
    message: str
    account_id: Optional[str] = None
    year: Optional[int] = None
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            'event_type': self.event_type.value,
            'message': self.message,
            'account_id': self.account_id,
            'year': self.year,
            'data': self.data,
            'timestamp': self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BankingEvent':
        """Create from dictionary"""
        timestamp = data['timestamp']
        return cls(
            event_type=BankingEventType(data['event_type']),
            message=data['message'],
            account_id=data.get('account_id'),
            year=data.get('year'),
            data=data.get('data', {}),
            timestamp=datetime.fromisoformat(timestamp) if isinstance(timestamp, str) else timestamp,
        )


EventHandler = Callable[[BankingEvent], Any]


def _handler_name(handler: EventHandler) -> str:
    return getattr(handler, "__name__", repr(handler))


class EventDispatcher:
    """Publish/subscribe hub for banking events"""

    def __init__(self):
        self._handlers: Dict[BankingEventType, List[EventHandler]] = {}
        self._global_handlers: List[EventHandler] = []
        self._lock = RLock()
        self.logger = logging.getLogger("life_banking.events")

    def subscribe(self, event_type: BankingEventType, handler: EventHandler) -> None:
        """Subscribe to a specific event type"""
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
            self.logger.debug(f"Subscribed handler {_handler_name(handler)} to {event_type.value}")

    def subscribe_all(self, handler: EventHandler) -> None:
        """Subscribe to every event type"""
        with self._lock:
            self._global_handlers.append(handler)
            self.logger.debug(f"Subscribed global handler {_handler_name(handler)}")

    def unsubscribe(self, event_type: Optional[BankingEventType], handler: EventHandler) -> None:
        """Unsubscribe from one event type, or from the global list when event_type is None"""
        with self._lock:
            handlers = self._global_handlers if event_type is None else self._handlers.get(event_type, [])
            try:
                handlers.remove(handler)
            except ValueError:
                self.logger.warning(f"Handler {_handler_name(handler)} was not subscribed")

    def publish(self, event: BankingEvent) -> int:
        """
        Deliver an event to its subscribers

        Returns:
            Number of handlers that failed
        """
        with self._lock:
            handlers = list(self._handlers.get(event.event_type, [])) + list(self._global_handlers)

        failures = 0
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                failures += 1
                self.logger.error(
                    f"Error in event handler {_handler_name(handler)} for {event.event_type.value}: {e}"
                )
        return failures

    def clear(self) -> None:
        """Remove every handler"""
        with self._lock:
            self._handlers.clear()
            self._global_handlers.clear()

    def get_handler_count(self, event_type: Optional[BankingEventType] = None) -> int:
        """Count handlers for one event type, or all handlers"""
        with self._lock:
            if event_type:
                return len(self._handlers.get(event_type, []))
            return sum(len(handlers) for handlers in self._handlers.values()) + len(self._global_handlers)
