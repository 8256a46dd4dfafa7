"""
Event Dispatcher
Fans committed expense events out to notification subscribers.

Delivery is best-effort: a failing subscriber is logged and never affects
the other subscribers or the transition that produced the event.
"""

from typing import Awaitable, Callable, Iterable, List

from cofounder_expenses.services.email_service import email_service
from cofounder_expenses.services.expense_workflow import ExpenseEvent
from cofounder_expenses.services.notification_service import notification_service
from cofounder_expenses.utils.logger import setup_logger

logger = setup_logger()

Subscriber = Callable[[ExpenseEvent], Awaitable[None]]


class EventDispatcher:
    """Ordered list of async subscribers"""

    def __init__(self):
        self.subscribers: List[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Subscriber:
        self.subscribers.append(subscriber)
        return subscriber

    def unsubscribe(self, subscriber: Subscriber):
        self.subscribers.remove(subscriber)

    async def dispatch(self, events: Iterable[ExpenseEvent]):
        """
        Deliver each event to every subscriber in registration order

        Args:
            events: Events from a committed transition
        """
        for event in events:
            for subscriber in list(self.subscribers):
                try:
                    await subscriber(event)
                except Exception:
                    logger.exception(
                        f"Subscriber {getattr(subscriber, '__qualname__', subscriber)} failed "
                        f"on {event.type.value} for expense {event.expense_id}"
                    )


event_dispatcher = EventDispatcher()
event_dispatcher.subscribe(notification_service.handle_event)
event_dispatcher.subscribe(email_service.handle_event)
