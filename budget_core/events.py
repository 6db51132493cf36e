import logging
from datetime import datetime
from typing import Callable, Dict, List, NamedTuple

__all__ = ['LEDGER_CHANGED', 'BUDGET_CHANGED', 'OVERSPENT', 'Event', 'EventBus', 'Handler']

logger = logging.getLogger(__name__)


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


Handler = Callable[[Event, dict], dict]


class EventBus:
    """Synchronous publish/subscribe hub.

    Handlers run in subscription order and their return values are collected
    by :meth:`publish`. There is no module-level instance; whoever owns the
    snapshot owns the bus.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = {}

    def subscribe(self, name: str, handler: Handler) -> None:
        if name not in self._subscribers:
            self._subscribers[name] = []
        self._subscribers[name].append(handler)

    def publish(self, name: str, payload: dict) -> List[dict]:
        if name not in self._subscribers:
            return []

        event = Event(
            name=name,
            ts=datetime.now().isoformat(),
            payload=payload
        )
        logger.debug("Publishing %s to %d handlers", name, len(self._subscribers[name]))

        results = []
        for handler in list(self._subscribers[name]):
            results.append(handler(event, payload))
        return results

    def unsubscribe(self, name: str, handler: Handler) -> None:
        if name in self._subscribers:
            if handler in self._subscribers[name]:
                self._subscribers[name].remove(handler)

    def handlers(self, name: str) -> List[Handler]:
        return list(self._subscribers.get(name, ()))


# payload: {"snapshot": BudgetSnapshot, "month": "YYYY-MM" of the earliest touched row}
LEDGER_CHANGED = "LEDGER_CHANGED"
# payload: {"snapshot": BudgetSnapshot, "month": "YYYY-MM", "category_id": str}
BUDGET_CHANGED = "BUDGET_CHANGED"
# payload: {"month": "YYYY-MM", "category_id": str, "available": float}
OVERSPENT = "OVERSPENT"
