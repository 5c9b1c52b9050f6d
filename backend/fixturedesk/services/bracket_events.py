"""
Process-wide bracket invalidation bus.

Successful commit, final fixture creation and reset publish the tournament id;
every subscribed view of that tournament reloads. Delivery is synchronous,
in-process and at most once per publish. Nothing is queued for subscribers
that register later and nothing crosses process boundaries.
"""
import logging
import threading
from collections import defaultdict
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

Listener = Callable[[int], None]


class Subscription:
    def __init__(self, bus: "InvalidationBus", tournament_id: int, listener: Listener):
        self.bus = bus
        self.tournament_id = tournament_id
        self.listener = listener
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self.bus.unsubscribe(self)
            self.active = False


class InvalidationBus:
    def __init__(self):
        self._listeners: Dict[int, List[Subscription]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, tournament_id: int, listener: Listener) -> Subscription:
        subscription = Subscription(self, tournament_id, listener)
        with self._lock:
            self._listeners[tournament_id].append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            listeners = self._listeners.get(subscription.tournament_id, [])
            if subscription in listeners:
                listeners.remove(subscription)
            if not listeners:
                self._listeners.pop(subscription.tournament_id, None)

    def subscriber_count(self, tournament_id: int) -> int:
        with self._lock:
            return len(self._listeners.get(tournament_id, []))

    def publish(self, tournament_id: int) -> int:
        """Notify current subscribers of ``tournament_id``. Returns how many were called."""
        with self._lock:
            targets = list(self._listeners.get(tournament_id, []))

        delivered = 0
        for subscription in targets:
            try:
                subscription.listener(tournament_id)
                delivered += 1
            except Exception:
                logger.exception("Bracket invalidation listener failed for tournament %s", tournament_id)
        return delivered


bracket_bus = InvalidationBus()
