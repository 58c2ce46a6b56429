"""
Domain events system

Domain events are the change feed of the queue: the engine publishes one
after every committed write and viewers subscribe to recompute their
derived views (active/archive split, room occupancy).
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import uuid
import structlog

logger = structlog.get_logger(__name__)


class DomainEvent:
    """Base class for domain events"""

    def __init__(self, event_id: uuid.UUID = None):
        self.event_id = event_id or uuid.uuid4()
        self.occurred_at = datetime.utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary"""
        return {
            "event_id": str(self.event_id),
            "occurred_at": self.occurred_at.isoformat(),
            "event_type": self.__class__.__name__
        }


class QueueEntryCreated(DomainEvent):
    """Event fired when a customer joins a branch queue"""

    def __init__(
        self,
        entry_id: uuid.UUID,
        branch_id: uuid.UUID,
        customer_id: uuid.UUID,
        guests: int,
        wait_time: int,
        event_id: uuid.UUID = None
    ):
        super().__init__(event_id)
        self.entry_id = entry_id
        self.branch_id = branch_id
        self.customer_id = customer_id
        self.guests = guests
        self.wait_time = wait_time

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "entry_id": str(self.entry_id),
            "branch_id": str(self.branch_id),
            "customer_id": str(self.customer_id),
            "guests": self.guests,
            "wait_time": self.wait_time
        })
        return data


class QueueEntryStatusChanged(DomainEvent):
    """Event fired when staff move an entry through the state machine"""

    def __init__(
        self,
        entry_id: uuid.UUID,
        branch_id: uuid.UUID,
        status: str,
        previous_status: str,
        room_number: Optional[int] = None,
        event_id: uuid.UUID = None
    ):
        super().__init__(event_id)
        self.entry_id = entry_id
        self.branch_id = branch_id
        self.status = status
        self.previous_status = previous_status
        self.room_number = room_number

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "entry_id": str(self.entry_id),
            "branch_id": str(self.branch_id),
            "status": self.status,
            "previous_status": self.previous_status,
            "room_number": self.room_number
        })
        return data


class BranchSettingsUpdated(DomainEvent):
    """Event fired when rooms_count or expected_wait_time change"""

    def __init__(
        self,
        branch_id: uuid.UUID,
        rooms_count: int,
        expected_wait_time: int,
        event_id: uuid.UUID = None
    ):
        super().__init__(event_id)
        self.branch_id = branch_id
        self.rooms_count = rooms_count
        self.expected_wait_time = expected_wait_time

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "branch_id": str(self.branch_id),
            "rooms_count": self.rooms_count,
            "expected_wait_time": self.expected_wait_time
        })
        return data


class BookingChanged(DomainEvent):
    """Event fired when a booking is created or changes status"""

    def __init__(
        self,
        booking_id: uuid.UUID,
        branch_id: uuid.UUID,
        status: str,
        event_id: uuid.UUID = None
    ):
        super().__init__(event_id)
        self.booking_id = booking_id
        self.branch_id = branch_id
        self.status = status

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "booking_id": str(self.booking_id),
            "branch_id": str(self.branch_id),
            "status": self.status
        })
        return data


QUEUE_EVENT_TYPES = ("QueueEntryCreated", "QueueEntryStatusChanged", "BranchSettingsUpdated")


class EventBus:
    """Simple in-memory event bus for publishing domain events"""

    def __init__(self):
        self._subscribers: Dict[str, List[Callable]] = {}

    def subscribe(self, event_type: str, handler: Callable):
        """Subscribe to a specific event type"""
        if event_type not in self._subscribers:
            self._subscribers[event_type] = []
        self._subscribers[event_type].append(handler)
        logger.debug(f"Subscribed handler to event type: {event_type}")

    def unsubscribe(self, event_type: str, handler: Callable):
        """Unsubscribe from an event type"""
        if event_type in self._subscribers and handler in self._subscribers[event_type]:
            self._subscribers[event_type].remove(handler)
            logger.debug(f"Unsubscribed handler from event type: {event_type}")

    async def publish(self, event: DomainEvent):
        """Publish an event to all subscribers"""
        event_type = event.__class__.__name__
        handlers = list(self._subscribers.get(event_type, []))

        if not handlers:
            logger.debug(f"No subscribers for event type: {event_type}")
            return

        logger.info(f"Publishing event {event_type}: {event.event_id}")

        for handler in handlers:
            try:
                await handler(event)
            except Exception as e:
                logger.error(f"Error in event handler for {event_type}: {e}", exc_info=True)

    def clear_subscribers(self):
        """Clear all subscribers (useful for testing)"""
        self._subscribers.clear()
        logger.debug("Cleared all event subscribers")


# Global event bus instance
event_bus = EventBus()
