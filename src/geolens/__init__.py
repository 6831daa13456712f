"""geolens - resilient geographic knowledge lookups on top of a generative text model."""

from __future__ import annotations

from .config import GeoLensConfig, load_config
from .models import (
    GeoPoint,
    LocationCategory,
    LocationRecord,
    MapMarker,
    NewsItem,
    NotableItem,
    PopulationClass,
    RouteResult,
    SearchResult,
    Waypoint,
)
from .orchestrator import GeoOrchestrator
from .outcome import FailureKind, Outcome, OutcomeStatus

__version__ = "0.1.0"

__all__ = [
    "GeoLensConfig",
    "load_config",
    "GeoPoint",
    "LocationCategory",
    "LocationRecord",
    "MapMarker",
    "NewsItem",
    "NotableItem",
    "PopulationClass",
    "RouteResult",
    "SearchResult",
    "Waypoint",
    "GeoOrchestrator",
    "FailureKind",
    "Outcome",
    "OutcomeStatus",
]
