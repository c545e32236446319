from unittest.mock import MagicMock

import pytest

from models import Place
from services.location import LocationResolver
from services.nominatim import LookupFailed


def _resolver(places=None, error=None) -> LocationResolver:
    client = MagicMock()
    if error is not None:
        client.search.side_effect = error
    else:
        client.search.return_value = places or []
    return LocationResolver(client)


def test_search_places_blank_query_skips_client():
    resolver = _resolver()
    assert resolver.search_places("") == []
    assert resolver.search_places("  \t") == []
    resolver.client.search.assert_not_called()


def test_search_places_strips_query():
    place = Place(name="COEP", address="COEP, Shivajinagar, Pune", lat=18.529, lng=73.856, city="Pune")
    resolver = _resolver([place])
    assert resolver.search_places("  coep ") == [place]
    resolver.client.search.assert_called_once_with("coep")


def test_search_stamps_increasing_sequences():
    resolver = _resolver()
    first = resolver.search("a")
    second = resolver.search("ab")
    assert second.sequence > first.sequence
    assert resolver.is_latest(second.sequence)
    assert not resolver.is_latest(first.sequence)


def test_search_propagates_lookup_failed_but_consumes_sequence():
    resolver = _resolver(error=LookupFailed("down"))
    before = resolver.next_sequence()
    with pytest.raises(LookupFailed):
        resolver.search("pune")
    assert not resolver.is_latest(before)
