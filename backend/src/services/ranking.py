from __future__ import annotations

from typing import Iterable, List, Mapping, Union

from models import Listing, Place, RankedListing
from services.location import distance_km

ListingSource = Union[Mapping[str, Listing], Iterable[Listing]]


def _iter_listings(listings: ListingSource) -> Iterable[Listing]:
    if isinstance(listings, Mapping):
        return listings.values()
    return listings


def rank_listings(origin: Place, listings: ListingSource) -> List[RankedListing]:
    """Rank listings by distance from ``origin``, nearest first.

    Accepts a sequence or an id -> Listing snapshot. The sort is stable, so
    listings at equal distance keep their input order. Nothing is truncated.
    """
    ranked = [
        RankedListing(
            listing=listing,
            distance_km=distance_km(origin.lat, origin.lng, listing.lat, listing.lng),
        )
        for listing in _iter_listings(listings)
    ]
    ranked.sort(key=lambda r: r.distance_km)
    return ranked
