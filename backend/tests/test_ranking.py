from models import Listing, Place
from services.ranking import rank_listings


ORIGIN = Place(name="origin", address="origin", lat=0.0, lng=0.0)


def _listing(listing_id: str, lat: float, lng: float) -> Listing:
    return Listing(id=listing_id, name=listing_id, address="", lat=lat, lng=lng)


def test_rank_distance_monotonic():
    far = _listing("far", 0.05, 0.0)
    near = _listing("near", 0.01, 0.0)
    mid = _listing("mid", 0.0, 0.03)

    ranked = rank_listings(ORIGIN, [far, near, mid])
    assert [r.listing.id for r in ranked] == ["near", "mid", "far"]
    for a, b in zip(ranked, ranked[1:]):
        assert a.distance_km <= b.distance_km


def test_rank_ties_keep_input_order():
    # mirrored points are exactly equidistant from the origin
    east = _listing("east", 0.0, 0.02)
    west = _listing("west", 0.0, -0.02)
    north = _listing("north", 0.02, 0.0)
    south = _listing("south", -0.02, 0.0)
    close = _listing("close", 0.001, 0.0)

    ranked = rank_listings(ORIGIN, [north, east, south, west, close])
    assert ranked[0].listing.id == "close"
    assert [r.listing.id for r in ranked[1:]] == ["north", "east", "south", "west"]


def test_rank_empty_input():
    assert rank_listings(ORIGIN, []) == []
    assert rank_listings(ORIGIN, {}) == []


def test_rank_accepts_snapshot_mapping_and_does_not_mutate():
    a = _listing("a", 1.0, 1.0)
    b = _listing("b", 0.5, 0.5)
    snapshot = {"a": a, "b": b}

    ranked = rank_listings(ORIGIN, snapshot)
    assert [r.listing.id for r in ranked] == ["b", "a"]
    assert ranked[0].listing is b
    assert not hasattr(b, "distance_km")
    assert list(snapshot) == ["a", "b"]


def test_rank_returns_fresh_results_per_call():
    a = _listing("a", 1.0, 1.0)
    first = rank_listings(ORIGIN, [a])
    second = rank_listings(Place(name="x", address="x", lat=1.0, lng=1.0), [a])
    assert first[0].distance_km > 0
    assert second[0].distance_km == 0.0
