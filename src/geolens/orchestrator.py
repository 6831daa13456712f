"""
Request orchestrators: the boundary past which no exception propagates.

Each entry point composes the same pipeline:
    task -> prompt -> RetryingInvoker -> extract_json -> coercion

and turns every failure into either an empty result (secondary data) or a
fallback object carrying what the caller already knows (primary data).

Example:
    orchestrator = GeoOrchestrator(GeminiClient(...), config=load_config())
    record = await orchestrator.resolve_by_coordinates(48.85, 2.35)
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional, Sequence

from geolens.coercion import (
    UNKNOWN_LOCATION,
    coerce_location,
    coerce_markers,
    coerce_news,
    coerce_route,
    fallback_location,
    merge_news,
    unavailable_news_item,
)
from geolens.config import GeoLensConfig
from geolens.llm.base import RemoteError, TextModelClient
from geolens.llm.extraction import extract_json, is_conversational_refusal
from geolens.llm.retry import RetryingInvoker, SleepFn, is_rate_limited
from geolens.models import (
    GeoPoint,
    LocationRecord,
    MapMarker,
    NewsItem,
    RouteResult,
    SearchResult,
    Waypoint,
)
from geolens.outcome import FailureKind, Outcome
from geolens.prompts import build_request
from geolens.tasks import (
    CoordinateTask,
    NearbyTask,
    NewsTask,
    QueryTask,
    RouteTask,
    Task,
)

logger = logging.getLogger(__name__)


class GeoOrchestrator:
    """
    The five task-specific entry points.

    Holds only immutable collaborators (client, config, invoker); every call
    builds its own request and attempt counter, so calls may run concurrently.
    """

    def __init__(
        self,
        client: TextModelClient,
        *,
        config: Optional[GeoLensConfig] = None,
        sleep: Optional[SleepFn] = None,
        today: Optional[date] = None,
    ):
        self.client = client
        self.config = config or GeoLensConfig()
        self.invoker = RetryingInvoker(
            client,
            max_attempts=self.config.max_attempts,
            backoff_base=self.config.backoff_base_seconds,
            sleep=sleep,
        )
        self._today = today

    # ------------------------------------------------------------------
    # Shared pipeline
    # ------------------------------------------------------------------

    async def _fetch(self, task: Task) -> Outcome[Any]:
        """Run the remote call and extract JSON. Never raises RemoteError."""
        request = build_request(
            task,
            max_output_tokens=self.config.max_output_tokens,
            today=self._today,
        )
        try:
            response = await self.invoker.invoke(request)
        except RemoteError as e:
            kind = FailureKind.RATE_LIMITED if e.rate_limited else FailureKind.NETWORK
            return Outcome.failed(kind, str(e))

        if (response.finish_reason or "").upper() == "MAX_TOKENS":
            logger.info("[GEOLENS] %s reply hit the output token limit", response.model or "model")

        text = (response.text or "").strip()
        if not text:
            return Outcome.empty()

        data = extract_json(text)
        if data is None:
            if is_conversational_refusal(text):
                return Outcome.empty()
            return Outcome.failed(FailureKind.UNPARSABLE, text[:100])
        return Outcome.ok(data)

    @staticmethod
    def _failure_of(error: Exception) -> FailureKind:
        return FailureKind.RATE_LIMITED if is_rate_limited(error) else FailureKind.NETWORK

    # ------------------------------------------------------------------
    # Outcome-level API
    # ------------------------------------------------------------------

    async def resolve_by_query_outcome(self, query: str) -> Outcome[SearchResult]:
        fetched = await self._fetch(QueryTask(query=query))
        if not fetched.is_ok:
            return fetched

        record = coerce_location(fetched.value)
        if record is None:
            return Outcome.failed(FailureKind.UNPARSABLE, "no usable coordinates")

        if record.name != UNKNOWN_LOCATION:
            news = await self.live_news(record.name)
            record = record.model_copy(update={"news": news})
        return Outcome.ok(SearchResult(location=record, suggested_zoom=record.suggested_zoom))

    async def resolve_by_coordinates_outcome(self, lat: float, lng: float) -> Outcome[LocationRecord]:
        task = CoordinateTask(lat=lat, lng=lng)
        fetched = await self._fetch(task)
        if not fetched.is_ok:
            return fetched
        return Outcome.ok(coerce_location(fetched.value, known_point=task.point))

    async def nearby_places_outcome(self, lat: float, lng: float) -> Outcome[list[MapMarker]]:
        task = NearbyTask(lat=lat, lng=lng, radius_km=self.config.nearby_radius_km)
        return (await self._fetch(task)).map(coerce_markers)

    async def live_news_outcome(
        self,
        query: str,
        exclude: Sequence[str] = (),
    ) -> Outcome[list[NewsItem]]:
        if isinstance(exclude, str):
            exclude = (exclude,) if exclude else ()
        task = NewsTask(query=query, exclude=tuple(exclude or ()))
        fetched = await self._fetch(task)
        if not fetched.is_ok:
            return fetched

        excluded = set(task.exclude)
        items = [
            item for item in coerce_news(fetched.value, require_url=True)
            if item.headline not in excluded
        ]
        return Outcome.ok(items)

    async def extract_route_outcome(self, text_or_url: str) -> Outcome[RouteResult]:
        return (await self._fetch(RouteTask(source=text_or_url))).map(coerce_route)

    # ------------------------------------------------------------------
    # Total API for the UI layer
    # ------------------------------------------------------------------

    async def resolve_by_query(self, query: str) -> Optional[SearchResult]:
        """Best matching location for free text, or ``None``."""
        try:
            outcome = await self.resolve_by_query_outcome(query)
        except Exception:
            logger.exception("[GEOLENS] error resolving location %r", query)
            return None
        if outcome.is_failed:
            logger.warning("[GEOLENS] could not resolve %r: %s", query, outcome.failure.value)
        return outcome.value if outcome.is_ok else None

    async def resolve_by_coordinates(self, lat: float, lng: float) -> LocationRecord:
        """Most significant feature at ``(lat, lng)``. Never ``None``.

        The returned coordinates always equal the input. Failures are
        described in the record's name and description.
        """
        point = GeoPoint(lat=lat, lng=lng)
        try:
            outcome = await self.resolve_by_coordinates_outcome(lat, lng)
            if outcome.is_failed and outcome.failure is not FailureKind.UNPARSABLE:
                logger.warning("[GEOLENS] lookup at %s,%s failed: %s", lat, lng, outcome.error)
                return fallback_location(point, outcome.failure)
            if not outcome.is_ok:
                return fallback_location(point, FailureKind.UNPARSABLE)

            record = outcome.value
            if record.name == UNKNOWN_LOCATION:
                return record
            news = await self.live_news(record.name)
            return record.model_copy(update={"news": news})
        except Exception as e:
            logger.exception("[GEOLENS] error getting info at %s,%s", lat, lng)
            return fallback_location(point, self._failure_of(e))

    async def nearby_places(self, lat: float, lng: float) -> list[MapMarker]:
        """5-8 places around ``(lat, lng)``; empty on any failure."""
        try:
            outcome = await self.nearby_places_outcome(lat, lng)
        except Exception:
            logger.exception("[GEOLENS] error fetching nearby places")
            return []
        if outcome.is_failed:
            logger.warning("[GEOLENS] nearby places unavailable: %s", outcome.failure.value)
        return outcome.value if outcome.is_ok else []

    async def live_news(self, query: str, exclude: Sequence[str] = ()) -> list[NewsItem]:
        """Linkable news items for ``query``, none matching ``exclude``.

        When throttled, returns a single synthetic "unavailable" item.
        """
        try:
            outcome = await self.live_news_outcome(query, exclude)
        except Exception as e:
            logger.exception("[GEOLENS] error fetching live news")
            return [unavailable_news_item(query)] if is_rate_limited(e) else []
        if outcome.rate_limited:
            logger.warning("[GEOLENS] live news throttled for %r", query)
            return [unavailable_news_item(query)]
        if outcome.is_failed:
            logger.warning("[GEOLENS] live news unavailable: %s", outcome.failure.value)
        return outcome.value if outcome.is_ok else []

    async def load_more_news(self, record: LocationRecord) -> LocationRecord:
        """Return ``record`` with new, headline-unique news appended."""
        existing = [item.headline for item in record.news]
        fresh = await self.live_news(record.name, exclude=existing)
        return record.model_copy(update={"news": merge_news(record.news, fresh)})

    async def extract_route_result(self, text_or_url: str) -> RouteResult:
        try:
            outcome = await self.extract_route_outcome(text_or_url)
        except Exception:
            logger.exception("[GEOLENS] error extracting route")
            return RouteResult()
        if outcome.is_failed:
            logger.warning("[GEOLENS] route extraction failed: %s", outcome.failure.value)
        return outcome.value if outcome.is_ok else RouteResult()

    async def extract_route(self, text_or_url: str) -> list[Waypoint]:
        """Ordered waypoints mentioned in text or at a URL (possibly empty)."""
        return (await self.extract_route_result(text_or_url)).waypoints
