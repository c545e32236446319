from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Any, List, Optional

import requests
from loguru import logger

from config import Configuration
from models import Place
from utils import first_segment


class LookupFailed(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponse(ValueError):
    pass


@dataclass
class _RetryPolicy:
    retries: int = 2
    base_delay: float = 0.5


_TRANSIENT_STATUSES = (429, 500, 502, 503, 504)


def _coerce_coord(value: Any, *, limit: float, label: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise MalformedResponse(f"non-numeric {label}: {value!r}")
    if math.isnan(number) or not -limit <= number <= limit:
        raise MalformedResponse(f"{label} out of range: {value!r}")
    return number


def _pick_city(address: Any) -> str:
    if not isinstance(address, dict):
        return ""
    for key in ("city", "town", "state"):
        value = address.get(key)
        if value:
            return str(value)
    return ""


def parse_place(record: Any) -> Place:
    """Turn one Nominatim search record into a Place.

    Raises MalformedResponse when the record has no usable display name or
    coordinates.
    """
    if not isinstance(record, dict):
        raise MalformedResponse(f"unexpected record type: {type(record).__name__}")
    display_name = record.get("display_name")
    if not isinstance(display_name, str) or not display_name.strip():
        raise MalformedResponse("missing display_name")
    lat = _coerce_coord(record.get("lat"), limit=90.0, label="lat")
    lng = _coerce_coord(record.get("lon"), limit=180.0, label="lon")
    return Place(
        name=first_segment(display_name),
        address=display_name,
        lat=lat,
        lng=lng,
        city=_pick_city(record.get("address")),
    )


def parse_places(records: List[Any], *, limit: int) -> List[Place]:
    results: list[Place] = []
    for record in records:
        if len(results) >= limit:
            break
        try:
            results.append(parse_place(record))
        except MalformedResponse as exc:
            logger.warning("skipping malformed geocoder record: {}", exc)
    return results


class NominatimClient:
    def __init__(self, cfg: Configuration) -> None:
        self.cfg = cfg
        self.base = cfg.nominatim_base_url.rstrip("/")
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": cfg.nominatim_user_agent})

    def _get(self, path: str, params: dict) -> Any:
        url = f"{self.base}{path}"
        headers = {"Accept": "application/json"}
        if self.cfg.nominatim_email:
            params = {**params, "email": self.cfg.nominatim_email}
        policy = _RetryPolicy(retries=self.cfg.nominatim_retries, base_delay=self.cfg.nominatim_retry_delay)
        attempt = 0
        while True:
            attempt += 1
            try:
                resp = self.session.get(url, headers=headers, params=params, timeout=self.cfg.nominatim_timeout)
            except requests.RequestException as exc:  # network error or timeout
                if attempt <= policy.retries:
                    logger.warning("geocoder request error (attempt {}): {}", attempt, exc)
                    time.sleep(policy.base_delay * attempt)
                    continue
                raise LookupFailed(f"request error: {exc}")

            if resp.status_code in _TRANSIENT_STATUSES:
                if attempt <= policy.retries:
                    logger.warning("geocoder upstream {} (attempt {})", resp.status_code, attempt)
                    time.sleep(policy.base_delay * attempt)
                    continue
                snippet = resp.text[:300]
                raise LookupFailed(f"upstream {resp.status_code}: {snippet}", resp.status_code)

            if not resp.ok:
                snippet = resp.text[:300]
                raise LookupFailed(f"upstream {resp.status_code}: {snippet}", resp.status_code)

            try:
                return resp.json()
            except ValueError:
                raise LookupFailed("invalid json response", resp.status_code)

    def build_query(self, text: str) -> str:
        suffix = self.cfg.nominatim_query_suffix.strip()
        return f"{text} {suffix}" if suffix else text

    def search(self, text: str) -> List[Place]:
        """Forward-geocode free text into at most ``nominatim_max_results`` places."""
        if not text or not text.strip():
            return []
        limit = self.cfg.nominatim_max_results
        payload = self._get(
            "/search",
            {
                "q": self.build_query(text),
                "format": "json",
                "addressdetails": 1,
                "limit": limit,
                "countrycodes": self.cfg.nominatim_country_codes,
            },
        )
        if not isinstance(payload, list):
            raise LookupFailed("unexpected response shape: expected a list")
        places = parse_places(payload, limit=limit)
        logger.info("geocoder query={!r} records={} places={}", text, len(payload), len(places))
        return places

    def ping(self) -> bool:
        try:
            self._get("/status", {"format": "json"})
        except LookupFailed:
            return False
        return True
