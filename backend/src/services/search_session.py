from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from loguru import logger

from models import ListingFilters, Place, RankedListing
from services.listings import ListingFeed, Snapshot, Subscription
from services.location import LocationResolver
from services.nominatim import LookupFailed, NominatimClient
from services.ranking import rank_listings

LOOKUP_NOTICE = "Location search is unavailable right now. Keep typing or try again."


@dataclass(frozen=True)
class SearchOutcome:
    sequence: int
    query: str
    places: List[Place]
    stale: bool = False
    notice: Optional[str] = None


class SearchSession:
    """State behind one search view: suggestions, selected place, ranked listings."""

    def __init__(self, resolver: LocationResolver) -> None:
        self.resolver = resolver
        self.suggestions: List[Place] = []
        self.selected: Optional[Place] = None
        self.snapshot: Snapshot = {}
        self.ranked: List[RankedListing] = []
        self.notice: Optional[str] = None
        self.filters = ListingFilters()
        self._subscription: Optional[Subscription] = None
        self._lock = threading.RLock()

    def watch(self, feed: ListingFeed, filters: Optional[ListingFilters] = None) -> None:
        """(Re)subscribe to the feed; the previous subscription is cancelled.

        The feed delivers under its own lock and ``on_snapshot`` then takes the
        session lock, so the session lock is never held while calling the feed.
        """
        self.close()
        with self._lock:
            self.filters = filters or ListingFilters()
            current = self.filters
        sub = feed.subscribe(current, self.on_snapshot)
        with self._lock:
            stray, self._subscription = self._subscription, sub
        if stray is not None:
            stray.unsubscribe()

    def close(self) -> None:
        with self._lock:
            sub, self._subscription = self._subscription, None
        if sub is not None:
            sub.unsubscribe()

    def search(self, query: str) -> SearchOutcome:
        sequence = self.resolver.next_sequence()
        try:
            places = self.resolver.search_places(query)
        except LookupFailed as exc:
            logger.warning("place search failed query={!r}: {}", query, exc)
            with self._lock:
                if not self.resolver.is_latest(sequence):
                    return SearchOutcome(sequence, query, [], stale=True)
                self.suggestions = []
                self.notice = LOOKUP_NOTICE
            return SearchOutcome(sequence, query, [], notice=LOOKUP_NOTICE)

        with self._lock:
            if not self.resolver.is_latest(sequence):
                logger.debug("dropping stale search response seq={} query={!r}", sequence, query)
                return SearchOutcome(sequence, query, places, stale=True)
            self.suggestions = places
            self.notice = None
        return SearchOutcome(sequence, query, places)

    def select(self, index: int) -> List[RankedListing]:
        with self._lock:
            if not 0 <= index < len(self.suggestions):
                raise ValueError(f"no suggestion at index {index}")
            return self.select_place(self.suggestions[index])

    def select_place(self, place: Place) -> List[RankedListing]:
        with self._lock:
            self.selected = place
            self.suggestions = []
            self.ranked = rank_listings(place, self.snapshot)
            return self.ranked

    def on_snapshot(self, snapshot: Snapshot) -> None:
        with self._lock:
            self.snapshot = snapshot
            if self.selected is not None:
                self.ranked = rank_listings(self.selected, snapshot)


class SearchSessionManager:
    """Simple in-memory registry of search sessions with idle expiry."""

    def __init__(self, client: NominatimClient, feed: ListingFeed, ttl_sec: int = 3600) -> None:
        self.client = client
        self.feed = feed
        self.ttl_sec = ttl_sec
        self._sessions: Dict[str, SearchSession] = {}
        self._last_access: Dict[str, float] = {}
        self._lock = threading.Lock()

    def get_or_create(self, session_id: str) -> SearchSession:
        self._cleanup()
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = SearchSession(LocationResolver(self.client))
                self._sessions[session_id] = session
                created = True
            else:
                created = False
            self._last_access[session_id] = time.time()
        if created:
            session.watch(self.feed)
        return session

    def get(self, session_id: str) -> Optional[SearchSession]:
        self._cleanup()
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                self._last_access[session_id] = time.time()
            return session

    def reset(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
            self._last_access.pop(session_id, None)
        if session is None:
            return False
        session.close()
        return True

    def _cleanup(self) -> None:
        """Remove expired sessions."""
        now = time.time()
        with self._lock:
            expired = [
                sid for sid, last in self._last_access.items()
                if now - last > self.ttl_sec
            ]
            dropped = [self._sessions.pop(sid) for sid in expired]
            for sid in expired:
                del self._last_access[sid]
        for session in dropped:
            session.close()
