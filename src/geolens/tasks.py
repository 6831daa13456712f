"""Tagged request types, one per orchestrator entry point."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Union

from geolens.models import GeoPoint

NEWS_COUNT = 3
NEWS_COUNT_WITH_EXCLUSIONS = 5
MAX_EXCLUDED_HEADLINES = 10
EXCLUDED_HEADLINE_CHARS = 50
DEFAULT_NEARBY_RADIUS_KM = 500

_URL_RE = re.compile(r"^https?://\S+$", re.IGNORECASE)


@dataclass(frozen=True)
class QueryTask:
    """Resolve free text to the single best-matching location."""
    query: str


@dataclass(frozen=True)
class CoordinateTask:
    """Resolve the most significant feature at known coordinates."""
    lat: float
    lng: float

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(lat=self.lat, lng=self.lng)


@dataclass(frozen=True)
class NearbyTask:
    """Enumerate places around a point."""
    lat: float
    lng: float
    radius_km: int = DEFAULT_NEARBY_RADIUS_KM


@dataclass(frozen=True)
class NewsTask:
    """Fetch live news, skipping headlines the caller already has."""
    query: str
    exclude: tuple[str, ...] = field(default_factory=tuple)

    @property
    def item_count(self) -> int:
        return NEWS_COUNT_WITH_EXCLUSIONS if self.exclude else NEWS_COUNT

    @property
    def prompt_exclusions(self) -> list[str]:
        """Excluded headlines as sent to the model (capped and truncated)."""
        return [h[:EXCLUDED_HEADLINE_CHARS] for h in self.exclude[:MAX_EXCLUDED_HEADLINES]]


@dataclass(frozen=True)
class RouteTask:
    """Extract an ordered route from free text or a URL."""
    source: str

    @property
    def is_url(self) -> bool:
        return bool(_URL_RE.match(self.source.strip()))


Task = Union[QueryTask, CoordinateTask, NearbyTask, NewsTask, RouteTask]
