"""
Event system for ledger lifecycle events.

Provides a simple pub/sub mechanism for staking and call events.

Emitted events:
    deposited        address, amount, principal, timestamp
    withdrawn        address, amount, fee, net, principal, timestamp
    reward_claimed   address, amount, timestamp
    rewards_funded   funder, amount, reserve, timestamp
    config_changed   field, value
    call_applied     receipt
    call_failed      receipt
"""
from typing import Dict, List, Callable, Any
import logging

logger = logging.getLogger(__name__)


class EventBus:
    """
    Simple event bus for ledger events.

    Events are delivered synchronously in the emitting thread, inside the
    operation lock of the ledger.
    """

    def __init__(self):
        self.listeners: Dict[str, List[Callable]] = {}

    def subscribe(self, event_type: str, callback: Callable) -> None:
        """
        Subscribe to an event type.

        Args:
            event_type: Event name (e.g., 'deposited', 'call_failed')
            callback: Function to call when event is emitted
        """
        self.listeners.setdefault(event_type, []).append(callback)
        logger.debug(f"Subscribed to event: {event_type}")

    def unsubscribe(self, event_type: str, callback: Callable) -> None:
        if event_type in self.listeners:
            try:
                self.listeners[event_type].remove(callback)
                logger.debug(f"Unsubscribed from event: {event_type}")
            except ValueError:
                logger.warning(f"Callback not found for event: {event_type}")

    def emit(self, event_type: str, **data: Any) -> None:
        """
        Emit an event to all subscribers.

        A failing subscriber is logged and never aborts the operation that
        emitted the event.
        """
        from ..observability.metrics import events_emitted_total
        events_emitted_total.labels(event=event_type).inc()

        listeners = self.listeners.get(event_type, [])
        if not listeners:
            logger.debug(f"No listeners for event: {event_type}")
            return

        logger.debug(f"Emitting event: {event_type} to {len(listeners)} listener(s)")

        for callback in list(listeners):
            try:
                callback(**data)
            except Exception as e:
                logger.error(f"Error in event callback for {event_type}: {e}", exc_info=True)

    def clear(self, event_type: str = None) -> None:
        """Clear listeners for an event type, or all listeners if no type specified."""
        if event_type:
            self.listeners.pop(event_type, None)
        else:
            self.listeners.clear()
