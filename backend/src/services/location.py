from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass
from typing import List

from models import Place
from services.nominatim import NominatimClient
from utils import haversine_km


@dataclass(frozen=True)
class SearchResponse:
    sequence: int
    query: str
    places: List[Place]


def distance_km(lat_a: float, lng_a: float, lat_b: float, lng_b: float) -> float:
    return haversine_km(lat_a, lng_a, lat_b, lng_b)


class LocationResolver:
    """Free-text place search plus the distance function used for ranking.

    The resolver does not debounce. ``search`` stamps every call with a
    sequence number so callers can drop responses that were overtaken by a
    newer query.
    """

    def __init__(self, client: NominatimClient) -> None:
        self.client = client
        self._counter = itertools.count(1)
        self._latest = 0
        self._lock = threading.Lock()

    def search_places(self, query: str) -> List[Place]:
        if not query or not query.strip():
            return []
        return self.client.search(query.strip())

    def next_sequence(self) -> int:
        with self._lock:
            self._latest = next(self._counter)
            return self._latest

    def is_latest(self, sequence: int) -> bool:
        with self._lock:
            return sequence == self._latest

    def search(self, query: str) -> SearchResponse:
        sequence = self.next_sequence()
        places = self.search_places(query)
        return SearchResponse(sequence=sequence, query=query, places=places)

    @staticmethod
    def distance_km(lat_a: float, lng_a: float, lat_b: float, lng_b: float) -> float:
        return distance_km(lat_a, lng_a, lat_b, lng_b)
