from __future__ import annotations

import itertools
import threading
from typing import Callable, Dict, List, Optional

from loguru import logger

from models import Listing, ListingFilters

Snapshot = Dict[str, Listing]
SnapshotCallback = Callable[[Snapshot], None]


def matches(listing: Listing, filters: ListingFilters) -> bool:
    location = (filters.location or "").strip()
    if location and location.lower() != "all":
        if location.lower() not in listing.address.lower():
            return False

    if filters.room_types and not listing.room_types & set(filters.room_types):
        return False

    if filters.wifi and not listing.amenities.wifi:
        return False
    if filters.food and not listing.amenities.food:
        return False

    food_type = (filters.food_type or "").strip()
    if food_type and food_type != "any" and listing.amenities.food_type != food_type:
        return False

    if filters.price_range is not None:
        cheapest = listing.cheapest_rent
        if cheapest is None:
            return False
        low, high = filters.price_range
        if not low <= cheapest <= high:
            return False

    return True


class Subscription:
    def __init__(self, feed: "ListingFeed", sub_id: int, filters: ListingFilters, callback: SnapshotCallback) -> None:
        self._feed = feed
        self.id = sub_id
        self.filters = filters
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._feed._drop(self.id)


class ListingFeed:
    """In-memory listings store with live filtered subscriptions.

    Every delivery is a full snapshot ordered newest first; there are no
    deltas. Callbacks run while the feed lock is held and must not call
    back into the feed from another thread.
    """

    def __init__(self) -> None:
        self._listings: Dict[str, Listing] = {}
        self._subs: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    def snapshot(self, filters: Optional[ListingFilters] = None) -> Snapshot:
        filters = filters or ListingFilters()
        with self._lock:
            hits = [l for l in self._listings.values() if matches(l, filters)]
        hits.sort(key=lambda l: l.created_at, reverse=True)
        return {l.id: l for l in hits}

    def subscribe(self, filters: ListingFilters, callback: SnapshotCallback) -> Subscription:
        with self._lock:
            sub = Subscription(self, next(self._ids), filters, callback)
            self._subs[sub.id] = sub
            self._deliver([sub])
        return sub

    def upsert(self, listing: Listing) -> None:
        with self._lock:
            self._listings[listing.id] = listing
            self._notify()

    def remove(self, listing_id: str) -> bool:
        with self._lock:
            removed = self._listings.pop(listing_id, None) is not None
            if removed:
                self._notify()
        return removed

    def get(self, listing_id: str) -> Optional[Listing]:
        with self._lock:
            return self._listings.get(listing_id)

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subs)

    def _drop(self, sub_id: int) -> None:
        with self._lock:
            self._subs.pop(sub_id, None)

    def _notify(self) -> None:
        self._deliver(list(self._subs.values()))

    def _deliver(self, subs: List[Subscription]) -> None:
        # callers hold self._lock so deliveries follow store order
        for sub in subs:
            if not sub.active:
                continue
            try:
                sub.callback(self.snapshot(sub.filters))
            except Exception as exc:
                logger.exception("listing subscriber {} failed: {}", sub.id, exc)
