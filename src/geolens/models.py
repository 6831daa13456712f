"""Domain models returned to the rendering/UI layer.

Attributes are snake_case; the JSON wire names the model (and the UI) use are
camelCase aliases. Dump with ``model_dump(by_alias=True)``.

List fields always default to empty lists so consumers can iterate without
checking for ``None``.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LocationCategory(str, Enum):
    """Kind of geographic feature."""
    CONTINENT = "Continent"
    COUNTRY = "Country"
    STATE = "State"
    CITY = "City"
    OCEAN = "Ocean"
    POINT_OF_INTEREST = "Point of Interest"


class PopulationClass(str, Enum):
    """Marker dot size class."""
    LARGE = "large"
    MEDIUM = "medium"
    SMALL = "small"


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class GeoPoint(_Model):
    lat: float
    lng: float


class NotableItem(_Model):
    name: str
    significance: str = ""
    category: Optional[str] = None


class NewsItem(_Model):
    headline: str
    source: str
    url: str = ""
    summary: Optional[str] = None


class LocationRecord(_Model):
    """Encyclopedic record for one location."""

    name: str
    category: LocationCategory = Field(
        default=LocationCategory.POINT_OF_INTEREST,
        alias="type",
    )
    description: str = ""
    population: Optional[str] = None
    climate: Optional[str] = None
    fun_facts: list[str] = Field(default_factory=list, alias="funFacts")
    coordinates: GeoPoint
    notable: list[NotableItem] = Field(default_factory=list)
    news: list[NewsItem] = Field(default_factory=list)
    suggested_zoom: int = Field(default=5, alias="suggestedZoom")

    @field_validator("suggested_zoom", mode="before")
    @classmethod
    def _clamp_zoom(cls, v):
        try:
            zoom = int(round(float(v)))
        except (TypeError, ValueError, OverflowError):
            return 5
        return max(0, min(10, zoom))


class SearchResult(_Model):
    """Result of a free-text location query."""

    location: LocationRecord = Field(alias="locationInfo")
    suggested_zoom: int = Field(alias="suggestedZoom")


class MapMarker(_Model):
    id: str
    name: str
    coordinates: GeoPoint
    population_class: PopulationClass = Field(
        default=PopulationClass.SMALL,
        alias="populationClass",
    )


class Waypoint(_Model):
    id: str
    name: str
    coordinates: GeoPoint
    context: str = ""
    route_title: Optional[str] = Field(default=None, alias="routeTitle")


class RouteResult(_Model):
    """Ordered stops in narrative order."""

    title: Optional[str] = None
    waypoints: list[Waypoint] = Field(default_factory=list)
