"""Schema coercion: parsed model output -> fully shaped domain objects.

Model output is loosely structured at best. Everything here accepts ``Any``
and never raises: missing lists become empty lists, unknown enum strings
become defaults, and caller-known coordinates always win over whatever the
model claims.
"""

from __future__ import annotations

import logging
import math
import re
import uuid
from typing import Any, Iterable, Optional
from urllib.parse import quote_plus

from geolens.models import (
    GeoPoint,
    LocationCategory,
    LocationRecord,
    MapMarker,
    NewsItem,
    NotableItem,
    PopulationClass,
    RouteResult,
    Waypoint,
)
from geolens.outcome import FailureKind

logger = logging.getLogger(__name__)

UNKNOWN_LOCATION = "Unknown Location"
DEFAULT_HEADLINE = "News Update"
DEFAULT_SOURCE = "Unknown"

BUSY_NAME = "High Traffic System"
BUSY_DESCRIPTION = (
    "The knowledge engine is currently experiencing high request volume "
    "(Quota Exceeded). Please wait a few moments and try scanning another location."
)
CONNECTION_ERROR_NAME = "Connection Error"
CONNECTION_ERROR_DESCRIPTION = "Could not retrieve information at this time."
UNAVAILABLE_DESCRIPTION = "Information unavailable."

NEWS_LIST_KEYS = ("news", "articles", "items")
MARKER_LIST_KEYS = ("places", "markers")
ROUTE_LIST_KEYS = ("route", "locations", "waypoints")

_CATEGORY_ALIASES = {
    "continent": LocationCategory.CONTINENT,
    "country": LocationCategory.COUNTRY,
    "nation": LocationCategory.COUNTRY,
    "state": LocationCategory.STATE,
    "province": LocationCategory.STATE,
    "region": LocationCategory.STATE,
    "city": LocationCategory.CITY,
    "town": LocationCategory.CITY,
    "ocean": LocationCategory.OCEAN,
    "sea": LocationCategory.OCEAN,
    "pointofinterest": LocationCategory.POINT_OF_INTEREST,
    "poi": LocationCategory.POINT_OF_INTEREST,
    "landmark": LocationCategory.POINT_OF_INTEREST,
}
_NON_ALNUM_RE = re.compile(r"[^a-z]")


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------

def as_float(value: Any) -> Optional[float]:
    """Finite float from a number or numeric string, else ``None``."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def as_text(value: Any, default: str = "") -> str:
    if value is None or isinstance(value, (dict, list)):
        return default
    text = str(value).strip()
    return text or default


def optional_text(value: Any) -> Optional[str]:
    text = as_text(value)
    return text or None


def coerce_category(value: Any) -> LocationCategory:
    if isinstance(value, LocationCategory):
        return value
    key = _NON_ALNUM_RE.sub("", as_text(value).lower())
    return _CATEGORY_ALIASES.get(key, LocationCategory.POINT_OF_INTEREST)


def coerce_point(value: Any) -> Optional[GeoPoint]:
    """GeoPoint from ``{"lat", "lng"}`` (or ``latitude``/``longitude``)."""
    if not isinstance(value, dict):
        return None
    lat = as_float(value.get("lat", value.get("latitude")))
    lng = as_float(value.get("lng", value.get("lon", value.get("longitude"))))
    if lat is None or lng is None:
        return None
    return GeoPoint(lat=lat, lng=lng)


def _point_of(item: dict) -> Optional[GeoPoint]:
    return coerce_point(item) or coerce_point(item.get("coordinates"))


def unwrap_list(data: Any, keys: Iterable[str]) -> Optional[list]:
    """``data`` itself if it is a list, else the first list found under ``keys``."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in keys:
            value = data.get(key)
            if isinstance(value, list):
                return value
    return None


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------

def coerce_fun_facts(value: Any) -> list[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [t for t in (as_text(v) for v in value) if t]


def coerce_notable(value: Any) -> list[NotableItem]:
    if not isinstance(value, list):
        return []
    items: list[NotableItem] = []
    for raw in value:
        if isinstance(raw, str) and raw.strip():
            items.append(NotableItem(name=raw.strip()))
            continue
        if not isinstance(raw, dict):
            continue
        name = as_text(raw.get("name"))
        if not name:
            continue
        items.append(
            NotableItem(
                name=name,
                significance=as_text(raw.get("significance")),
                category=optional_text(raw.get("category")),
            )
        )
    return items


def default_location(point: GeoPoint) -> LocationRecord:
    """Shape returned when the model gave nothing usable."""
    return LocationRecord(
        name=UNKNOWN_LOCATION,
        category=LocationCategory.POINT_OF_INTEREST,
        description=UNAVAILABLE_DESCRIPTION,
        coordinates=point,
    )


def fallback_location(point: GeoPoint, failure: FailureKind) -> LocationRecord:
    """User-facing record explaining a failed request."""
    if failure is FailureKind.RATE_LIMITED:
        name, description = BUSY_NAME, BUSY_DESCRIPTION
    elif failure is FailureKind.NETWORK:
        name, description = CONNECTION_ERROR_NAME, CONNECTION_ERROR_DESCRIPTION
    else:
        return default_location(point)
    return LocationRecord(
        name=name,
        category=LocationCategory.POINT_OF_INTEREST,
        description=description,
        coordinates=point,
    )


def coerce_location(
    data: Any,
    *,
    known_point: Optional[GeoPoint] = None,
) -> Optional[LocationRecord]:
    """Fully shaped LocationRecord from parsed model output.

    Args:
        data: Parsed JSON (anything)
        known_point: Input coordinates of a coordinate-based request. When
            given they replace whatever the model returned.

    Returns:
        LocationRecord, or ``None`` when there are no usable coordinates at all
        (``data`` unusable and no ``known_point``).
    """
    if isinstance(data, list) and data and isinstance(data[0], dict):
        data = data[0]
    if not isinstance(data, dict):
        return default_location(known_point) if known_point is not None else None

    if known_point is not None:
        claimed = _point_of(data)
        if claimed is not None and claimed != known_point:
            logger.debug("[COERCE] model moved %s to %s, keeping input", known_point, claimed)
        point = known_point
    else:
        point = _point_of(data)
        if point is None:
            logger.warning("[COERCE] resolved location missing valid coordinates")
            return None

    return LocationRecord(
        name=as_text(data.get("name"), UNKNOWN_LOCATION),
        category=coerce_category(data.get("type", data.get("category"))),
        description=as_text(data.get("description")),
        population=optional_text(data.get("population")),
        climate=optional_text(data.get("climate")),
        fun_facts=coerce_fun_facts(data.get("funFacts", data.get("fun_facts"))),
        coordinates=point,
        notable=coerce_notable(data.get("notable")),
        news=coerce_news(data.get("news"), require_url=True),
        suggested_zoom=data.get("suggestedZoom", 5),
    )


# ---------------------------------------------------------------------------
# News
# ---------------------------------------------------------------------------

def is_linkable_url(url: Any) -> bool:
    """Non-empty, http(s), and not cut off with an ellipsis."""
    if not isinstance(url, str):
        return False
    url = url.strip()
    if not url.lower().startswith(("http://", "https://")):
        return False
    if url.endswith(("...", "…")) or any(ch.isspace() for ch in url):
        return False
    return len(url) > len("https://")


def coerce_news(data: Any, *, require_url: bool = False) -> list[NewsItem]:
    raw_items = unwrap_list(data, NEWS_LIST_KEYS) or []
    items: list[NewsItem] = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            continue
        url = as_text(raw.get("url", raw.get("link")))
        if require_url and not is_linkable_url(url):
            continue
        items.append(
            NewsItem(
                headline=as_text(raw.get("headline", raw.get("title")), DEFAULT_HEADLINE),
                source=as_text(raw.get("source"), DEFAULT_SOURCE),
                url=url,
                summary=optional_text(raw.get("summary")),
            )
        )
    return items


def unavailable_news_item(query: str) -> NewsItem:
    """Synthetic item shown while the news search is throttled."""
    return NewsItem(
        headline="Live news temporarily unavailable",
        source="System",
        url=f"https://news.google.com/search?q={quote_plus(query or 'news')}",
        summary="The news service is busy right now. Please try again in a moment.",
    )


def merge_news(existing: list[NewsItem], new: list[NewsItem]) -> list[NewsItem]:
    """Append items from ``new`` whose headline is not already present."""
    seen = {item.headline for item in existing}
    merged = list(existing)
    for item in new:
        if item.headline in seen:
            continue
        seen.add(item.headline)
        merged.append(item)
    return merged


# ---------------------------------------------------------------------------
# Markers and routes
# ---------------------------------------------------------------------------

def coerce_population_class(value: Any) -> PopulationClass:
    try:
        return PopulationClass(as_text(value).lower())
    except ValueError:
        return PopulationClass.SMALL


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def coerce_markers(data: Any) -> list[MapMarker]:
    raw_items = unwrap_list(data, MARKER_LIST_KEYS) or []
    markers: list[MapMarker] = []
    seen_ids: set[str] = set()
    for raw in raw_items:
        if not isinstance(raw, dict):
            continue
        name = as_text(raw.get("name"))
        point = _point_of(raw)
        if not name or point is None:
            continue
        marker_id = as_text(raw.get("id"))
        if not marker_id or marker_id in seen_ids:
            marker_id = _new_id("marker")
        seen_ids.add(marker_id)
        markers.append(
            MapMarker(
                id=marker_id,
                name=name,
                coordinates=point,
                population_class=coerce_population_class(raw.get("populationClass")),
            )
        )
    return markers


def is_unresolved_point(point: GeoPoint) -> bool:
    """(0, 0) means the model could not place the stop."""
    return point.lat == 0 and point.lng == 0


def coerce_route(data: Any) -> RouteResult:
    """Ordered RouteResult; unresolved (0, 0) stops are dropped."""
    title = None
    if isinstance(data, dict):
        title = optional_text(data.get("title", data.get("routeTitle")))

    raw_items = unwrap_list(data, ROUTE_LIST_KEYS) or []
    waypoints: list[Waypoint] = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            continue
        point = _point_of(raw) or GeoPoint(lat=0.0, lng=0.0)
        if is_unresolved_point(point):
            logger.debug("[COERCE] dropping unresolved stop %r", raw.get("name"))
            continue
        stop_title = optional_text(raw.get("routeTitle")) or title
        if title is None:
            title = stop_title
        waypoints.append(
            Waypoint(
                id=_new_id("wp"),
                name=as_text(raw.get("name"), UNKNOWN_LOCATION),
                coordinates=point,
                context=as_text(raw.get("context", raw.get("description"))),
                route_title=stop_title,
            )
        )
    return RouteResult(title=title, waypoints=waypoints)
