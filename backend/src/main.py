from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Tuple

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from loguru import logger
from pydantic import BaseModel, Field

from config import Configuration
from models import Amenities, Listing, ListingFilters, Place, RankedListing, Room
from services.listings import ListingFeed
from services.location import LocationResolver
from services.nominatim import LookupFailed, NominatimClient
from services.ranking import rank_listings
from services.search_session import SearchSession, SearchSessionManager

load_dotenv()

app = FastAPI(title="Mess Finder")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_feed = ListingFeed()
_client: Optional[NominatimClient] = None
_sessions: Optional[SearchSessionManager] = None


def _get_client() -> NominatimClient:
    global _client
    if _client is None:
        _client = NominatimClient(Configuration.from_env())
    return _client


def _get_sessions() -> SearchSessionManager:
    global _sessions
    if _sessions is None:
        client = _get_client()
        _sessions = SearchSessionManager(client, _feed, ttl_sec=client.cfg.session_ttl_sec)
    return _sessions


def _require_session(session_id: str) -> SearchSession:
    session = _get_sessions().get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"unknown session {session_id}")
    return session


@app.get("/favicon.ico")
def favicon() -> Response:
    return Response(status_code=204)


class PlacePayload(BaseModel):
    name: str
    address: str
    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)
    city: str = ""


class RoomPayload(BaseModel):
    type: str
    count: int = 1
    rent: float
    photos: List[str] = []


class AmenitiesPayload(BaseModel):
    wifi: bool = False
    food: bool = False
    food_type: Optional[str] = None
    meals_per_day: Optional[int] = None


class ListingPayload(BaseModel):
    id: str
    name: str
    address: str = ""
    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)
    rooms: List[RoomPayload] = []
    amenities: AmenitiesPayload = AmenitiesPayload()
    owner_id: Optional[str] = None
    description: str = ""
    created_at: float = 0.0
    rating: Optional[float] = None


class RankedListingPayload(BaseModel):
    listing: ListingPayload
    distance_km: float


class FiltersPayload(BaseModel):
    location: Optional[str] = None
    price_range: Optional[Tuple[float, float]] = None
    room_types: List[str] = []
    wifi: bool = False
    food: bool = False
    food_type: Optional[str] = None


class RankRequest(BaseModel):
    origin: PlacePayload
    listings: List[ListingPayload] = []


class SearchRequest(BaseModel):
    query: str = Field("", description="Free-text place query, already debounced by the caller")


class SelectRequest(BaseModel):
    index: int = Field(..., ge=0, description="Position of the chosen suggestion")


class SearchPayload(BaseModel):
    sequence: int
    query: str
    places: List[PlacePayload]
    stale: bool = False
    notice: Optional[str] = None


class ResultsPayload(BaseModel):
    selected: Optional[PlacePayload] = None
    ranked: List[RankedListingPayload] = []
    listings: List[ListingPayload] = []
    notice: Optional[str] = None


def to_place_payload(p: Place) -> PlacePayload:
    return PlacePayload(name=p.name, address=p.address, lat=p.lat, lng=p.lng, city=p.city)


def from_place_payload(p: PlacePayload) -> Place:
    return Place(name=p.name, address=p.address, lat=p.lat, lng=p.lng, city=p.city)


def to_listing_payload(l: Listing) -> ListingPayload:
    return ListingPayload(
        id=l.id,
        name=l.name,
        address=l.address,
        lat=l.lat,
        lng=l.lng,
        rooms=[RoomPayload(type=r.type, count=r.count, rent=r.rent, photos=list(r.photos)) for r in l.rooms],
        amenities=AmenitiesPayload(
            wifi=l.amenities.wifi,
            food=l.amenities.food,
            food_type=l.amenities.food_type,
            meals_per_day=l.amenities.meals_per_day,
        ),
        owner_id=l.owner_id,
        description=l.description,
        created_at=l.created_at,
        rating=l.rating,
    )


def from_listing_payload(p: ListingPayload) -> Listing:
    return Listing(
        id=p.id,
        name=p.name,
        address=p.address,
        lat=p.lat,
        lng=p.lng,
        rooms=[Room(type=r.type, count=r.count, rent=r.rent, photos=list(r.photos)) for r in p.rooms],
        amenities=Amenities(
            wifi=p.amenities.wifi,
            food=p.amenities.food,
            food_type=p.amenities.food_type,
            meals_per_day=p.amenities.meals_per_day,
        ),
        owner_id=p.owner_id,
        description=p.description,
        created_at=p.created_at,
        rating=p.rating,
    )


def from_filters_payload(p: FiltersPayload) -> ListingFilters:
    return ListingFilters(
        location=p.location,
        price_range=p.price_range,
        room_types=list(p.room_types),
        wifi=p.wifi,
        food=p.food,
        food_type=p.food_type,
    )


def to_ranked_payloads(ranked: List[RankedListing]) -> List[RankedListingPayload]:
    return [
        RankedListingPayload(listing=to_listing_payload(r.listing), distance_km=round(r.distance_km, 3))
        for r in ranked
    ]


def _session_results(session: SearchSession) -> ResultsPayload:
    return ResultsPayload(
        selected=to_place_payload(session.selected) if session.selected else None,
        ranked=to_ranked_payloads(session.ranked),
        listings=[to_listing_payload(l) for l in session.snapshot.values()],
        notice=session.notice,
    )


@app.get("/healthz")
def healthz() -> dict:
    cfg = Configuration.from_env()
    logger.info("cfg: {}", cfg.log_summary())
    return {"status": "ok"}


@app.get("/health/geo")
def health_geo() -> dict:
    return {"ok": _get_client().ping()}


@app.get("/config")
def client_config() -> dict:
    cfg = _get_client().cfg
    return {"search_debounce_ms": cfg.search_debounce_ms, "max_results": cfg.nominatim_max_results}


@app.get("/places/search")
async def search_places(q: str = Query("", description="Free-text place query")) -> Dict[str, List[PlacePayload]]:
    resolver = LocationResolver(_get_client())
    try:
        places = await asyncio.to_thread(resolver.search_places, q)
    except LookupFailed as exc:
        logger.warning("place search failed q={!r}: {}", q, exc)
        raise HTTPException(status_code=502, detail=f"location lookup failed: {exc}")
    return {"places": [to_place_payload(p) for p in places]}


@app.post("/listings/rank", response_model=List[RankedListingPayload])
def rank(req: RankRequest) -> List[RankedListingPayload]:
    origin = from_place_payload(req.origin)
    ranked = rank_listings(origin, [from_listing_payload(l) for l in req.listings])
    return to_ranked_payloads(ranked)


@app.put("/listings/{listing_id}", response_model=ListingPayload)
def put_listing(listing_id: str, payload: ListingPayload) -> ListingPayload:
    if payload.id != listing_id:
        raise HTTPException(status_code=400, detail="listing id does not match path")
    listing = from_listing_payload(payload)
    _feed.upsert(listing)
    return to_listing_payload(listing)


@app.delete("/listings/{listing_id}")
def delete_listing(listing_id: str) -> dict:
    if not _feed.remove(listing_id):
        raise HTTPException(status_code=404, detail=f"unknown listing {listing_id}")
    return {"deleted": listing_id}


@app.post("/listings/query", response_model=List[ListingPayload])
def query_listings(filters: FiltersPayload) -> List[ListingPayload]:
    snapshot = _feed.snapshot(from_filters_payload(filters))
    return [to_listing_payload(l) for l in snapshot.values()]


@app.post("/sessions/{session_id}/search", response_model=SearchPayload)
async def session_search(session_id: str, req: SearchRequest) -> SearchPayload:
    session = _get_sessions().get_or_create(session_id)
    try:
        outcome = await asyncio.to_thread(session.search, req.query)
    except Exception as exc:
        logger.exception("session search failed: {}", exc)
        raise HTTPException(status_code=500, detail="internal error")
    return SearchPayload(
        sequence=outcome.sequence,
        query=outcome.query,
        places=[to_place_payload(p) for p in outcome.places],
        stale=outcome.stale,
        notice=outcome.notice,
    )


@app.post("/sessions/{session_id}/select", response_model=ResultsPayload)
def session_select(session_id: str, req: SelectRequest) -> ResultsPayload:
    session = _require_session(session_id)
    try:
        session.select(req.index)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _session_results(session)


@app.post("/sessions/{session_id}/filters", response_model=ResultsPayload)
def session_filters(session_id: str, filters: FiltersPayload) -> ResultsPayload:
    session = _get_sessions().get_or_create(session_id)
    session.watch(_feed, from_filters_payload(filters))
    return _session_results(session)


@app.get("/sessions/{session_id}/results", response_model=ResultsPayload)
def session_results(session_id: str) -> ResultsPayload:
    return _session_results(_require_session(session_id))


@app.delete("/sessions/{session_id}")
def session_reset(session_id: str) -> dict:
    if not _get_sessions().reset(session_id):
        raise HTTPException(status_code=404, detail=f"unknown session {session_id}")
    return {"deleted": session_id}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8010, reload=True)
