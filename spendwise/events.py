import logging
from collections import defaultdict
from datetime import datetime
from typing import Callable, DefaultDict, List, NamedTuple

logger = logging.getLogger(__name__)

EXPENSE_ADDED = "EXPENSE_ADDED"
BUDGET_ALERT = "BUDGET_ALERT"
BUDGET_PROCESSED = "BUDGET_PROCESSED"
GOAL_FUNDED = "GOAL_FUNDED"


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


Handler = Callable[[Event, dict], dict]


class EventBus:
    """In-process publish/subscribe for domain events.

    Handlers run synchronously in subscription order.  A handler that raises
    is logged and skipped; the publisher only sees the results of the others.
    """

    def __init__(self):
        self._subscribers: DefaultDict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, name: str, handler: Handler) -> None:
        self._subscribers[name].append(handler)

    def unsubscribe(self, name: str, handler: Handler) -> None:
        handlers = self._subscribers.get(name, [])
        if handler in handlers:
            handlers.remove(handler)

    def subscriber_count(self, name: str) -> int:
        return len(self._subscribers.get(name, ()))

    def publish(self, name: str, payload: dict) -> List[dict]:
        handlers = list(self._subscribers.get(name, ()))
        if not handlers:
            return []

        event = Event(name, datetime.now().isoformat(), payload)
        results = []
        for handler in handlers:
            try:
                results.append(handler(event, payload))
            except Exception:
                logger.exception("Handler %s failed for %s", getattr(handler, "__name__", handler), name)
        return results


def log_event_handler(event: Event, payload: dict) -> dict:
    logger.info("%s %s", event.name, {k: v for k, v in payload.items() if k != "alert"})
    return {"logged": True}


def register_default_handlers(bus: EventBus) -> EventBus:
    for name in (EXPENSE_ADDED, BUDGET_ALERT, BUDGET_PROCESSED, GOAL_FUNDED):
        bus.subscribe(name, log_event_handler)
    return bus
