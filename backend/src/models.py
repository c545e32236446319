"""Data models for the mess finder backend."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True)
class Place:
    name: str
    address: str
    lat: float
    lng: float
    city: str = ""

    @property
    def coordinates(self) -> Tuple[float, float]:
        return (self.lat, self.lng)


@dataclass
class Room:
    type: str  # single | double | triple
    count: int
    rent: float
    photos: list[str] = field(default_factory=list)


@dataclass
class Amenities:
    wifi: bool = False
    food: bool = False
    food_type: Optional[str] = None  # veg | non-veg | both
    meals_per_day: Optional[int] = None


@dataclass
class Listing:
    id: str
    name: str
    address: str
    lat: float
    lng: float
    rooms: list[Room] = field(default_factory=list)
    amenities: Amenities = field(default_factory=Amenities)
    owner_id: Optional[str] = None
    description: str = ""
    created_at: float = 0.0  # epoch seconds
    rating: Optional[float] = None

    @property
    def coordinates(self) -> Tuple[float, float]:
        return (self.lat, self.lng)

    @property
    def room_types(self) -> set[str]:
        return {room.type for room in self.rooms}

    @property
    def cheapest_rent(self) -> Optional[float]:
        if not self.rooms:
            return None
        return min(room.rent for room in self.rooms)


@dataclass(frozen=True)
class RankedListing:
    listing: Listing
    distance_km: float


@dataclass
class ListingFilters:
    location: Optional[str] = None  # "all" disables
    price_range: Optional[tuple[float, float]] = None  # inclusive, on the cheapest room
    room_types: list[str] = field(default_factory=list)
    wifi: bool = False
    food: bool = False
    food_type: Optional[str] = None  # "any" disables
