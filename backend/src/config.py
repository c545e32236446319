from __future__ import annotations

import os
from typing import Any, Optional

from pydantic import BaseModel, Field

from utils import mask_secret


class Configuration(BaseModel):
    # Nominatim
    nominatim_base_url: str = Field(default="https://nominatim.openstreetmap.org")
    nominatim_timeout: float = Field(default=8.0)
    nominatim_max_results: int = Field(default=5)
    nominatim_country_codes: str = Field(default="in")
    nominatim_query_suffix: str = Field(default="college india")
    nominatim_user_agent: str = Field(default="mess-finder/0.1")
    nominatim_email: Optional[str] = Field(default=None)
    nominatim_retries: int = Field(default=2)
    nominatim_retry_delay: float = Field(default=0.5)

    # Presentation hints
    search_debounce_ms: int = Field(default=500)

    # Sessions
    session_ttl_sec: int = Field(default=3600)

    @classmethod
    def from_env(cls, overrides: Optional[dict[str, Any]] = None) -> "Configuration":
        raw: dict[str, Any] = {}

        env_map = {
            "nominatim_base_url": os.getenv("NOMINATIM_BASE_URL"),
            "nominatim_timeout": os.getenv("NOMINATIM_TIMEOUT"),
            "nominatim_max_results": os.getenv("NOMINATIM_MAX_RESULTS"),
            "nominatim_country_codes": os.getenv("NOMINATIM_COUNTRY_CODES"),
            "nominatim_query_suffix": os.getenv("NOMINATIM_QUERY_SUFFIX"),
            "nominatim_user_agent": os.getenv("NOMINATIM_USER_AGENT"),
            "nominatim_email": os.getenv("NOMINATIM_EMAIL"),
            "nominatim_retries": os.getenv("NOMINATIM_RETRIES"),
            "nominatim_retry_delay": os.getenv("NOMINATIM_RETRY_DELAY"),
            "search_debounce_ms": os.getenv("SEARCH_DEBOUNCE_MS"),
            "session_ttl_sec": os.getenv("SESSION_TTL_SEC"),
        }

        for k, v in env_map.items():
            if v is None:
                continue
            raw[k] = v

        if overrides:
            raw.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**raw)

    def log_summary(self) -> str:
        return (
            "nominatim base=%s timeout=%s max_results=%s countries=%s retries=%s email=%s debounce_ms=%s"
            % (
                self.nominatim_base_url,
                self.nominatim_timeout,
                self.nominatim_max_results,
                self.nominatim_country_codes,
                self.nominatim_retries,
                mask_secret(self.nominatim_email),
                self.search_debounce_ms,
            )
        )
