"""Prompt builders and structured-output schemas for each task type."""

from __future__ import annotations

import textwrap
from datetime import date
from typing import Optional

from geolens.llm.base import LLMRequest
from geolens.tasks import (
    CoordinateTask,
    NearbyTask,
    NewsTask,
    QueryTask,
    RouteTask,
    Task,
)

DEFAULT_MAX_OUTPUT_TOKENS = 4000

# Encyclopedic data only; news is fetched separately with grounding.
LOCATION_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "name": {"type": "STRING"},
        "type": {"type": "STRING"},
        "coordinates": {
            "type": "OBJECT",
            "properties": {
                "lat": {"type": "NUMBER"},
                "lng": {"type": "NUMBER"},
            },
        },
        "description": {"type": "STRING"},
        "population": {"type": "STRING"},
        "climate": {"type": "STRING"},
        "funFacts": {"type": "ARRAY", "items": {"type": "STRING"}},
        "suggestedZoom": {"type": "NUMBER"},
        "notable": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "name": {"type": "STRING"},
                    "significance": {"type": "STRING"},
                    "category": {"type": "STRING"},
                },
            },
        },
    },
}

MARKERS_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "id": {"type": "STRING"},
            "name": {"type": "STRING"},
            "lat": {"type": "NUMBER"},
            "lng": {"type": "NUMBER"},
            "populationClass": {"type": "STRING"},
        },
    },
}

ROUTE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "title": {"type": "STRING"},
        "route": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "name": {"type": "STRING"},
                    "lat": {"type": "NUMBER"},
                    "lng": {"type": "NUMBER"},
                    "context": {"type": "STRING"},
                },
            },
        },
    },
}


def _today(today: Optional[date]) -> str:
    d = today or date.today()
    return f"{d.strftime('%B')} {d.day}, {d.year}"


def _dedent(text: str) -> str:
    return textwrap.dedent(text).strip()


def query_prompt(task: QueryTask, today: Optional[date] = None) -> str:
    return _dedent(f"""
        You are an intelligent geographic knowledge engine.
        Current Date: {_today(today)}
        User Query: "{task.query}"

        Instructions:
        1. Identify the single geographic location that best answers the query.
        2. Return a JSON object containing the location details.
        3. 'suggestedZoom': 0-10 scale. 8-10 for landmarks/cities, 4-6 for countries.
        4. 'description': why this location answers the query, then context. Under 100 words.
        5. 'coordinates': precise decimal lat/lng.
        6. 'notable': 3 notable people associated with this place.
        7. 'type': one of Continent, Country, State, City, Ocean, Point of Interest.
        8. Output ONLY valid JSON. No conversational text, no markdown.
    """)


def coordinate_prompt(task: CoordinateTask, today: Optional[date] = None) -> str:
    return _dedent(f"""
        Identify the most significant human settlement or geographic feature at or
        extremely close to coordinates: {task.lat}, {task.lng}.
        Current Date: {_today(today)}

        Return a JSON object with:
        - name: common name of the location
        - type: Continent, Country, State, City, Ocean, or Point of Interest
        - description: encyclopedia-style entry (about 80 words)
        - population: recent estimate (if applicable)
        - climate: Koppen climate classification
        - funFacts: 3 interesting facts
        - coordinates: the exact input coordinates {{"lat": {task.lat}, "lng": {task.lng}}}
        - notable: 3 notable people

        Strictly conform to JSON syntax. No text outside the JSON object.
    """)


def nearby_prompt(task: NearbyTask) -> str:
    return _dedent(f"""
        I am looking at a globe at coordinates {task.lat}, {task.lng}.
        Identify 5-8 major cities, landmarks, or significant places within a
        {task.radius_km}km radius of this point.

        Return a strict JSON array of objects with this schema:
        {{"id": "unique-string", "name": "City Name", "lat": number, "lng": number,
          "populationClass": "large" | "medium" | "small"}}

        Do not wrap in markdown. Just the raw JSON array.
    """)


def news_prompt(task: NewsTask, today: Optional[date] = None) -> str:
    exclusions = ""
    if task.exclude:
        listed = ", ".join(f'"{h}..."' for h in task.prompt_exclusions)
        exclusions = (
            f"IMPORTANT: the user has already seen stories with these headlines: [{listed}]. "
            "You MUST find DIFFERENT stories."
        )
    return _dedent(f"""
        Current Date: {_today(today)}
        Task: Find {task.item_count} distinct news headlines related to: "{task.query}".

        Priority:
        1. Live/recent news (last 48 hours).
        2. If none, relevant stories from the last month.
        3. If no stories exist at all, return an empty array [].

        {exclusions}

        Instructions:
        1. Use the search tool to find real articles. Search for "{task.query} news".
        2. Return a strict JSON array of objects with "headline", "source", "url", "summary".
        3. For 'url', use the actual link found in the search results.
        4. No trailing commas, no explanations, no apologies.

        Do not use markdown. Just the raw JSON array.
    """)


def route_prompt(task: RouteTask) -> str:
    if task.is_url:
        source = f"Read the page at this URL: {task.source.strip()}"
    else:
        source = f"Read this text:\n\"\"\"\n{task.source}\n\"\"\""
    return _dedent(f"""
        {source}

        Extract every real-world location mentioned, in the order the narrative
        visits them. Return a JSON object:
        {{"title": "short route title",
          "route": [{{"name": "Place", "lat": number, "lng": number,
                      "context": "one sentence on what happens here"}}]}}

        Use precise decimal coordinates. Output ONLY valid JSON.
    """)


def build_request(
    task: Task,
    *,
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
    today: Optional[date] = None,
) -> LLMRequest:
    """Build the remote request for ``task``."""
    if isinstance(task, QueryTask):
        return LLMRequest(
            prompt=query_prompt(task, today),
            max_output_tokens=max_output_tokens,
            response_schema=LOCATION_SCHEMA,
        )
    if isinstance(task, CoordinateTask):
        return LLMRequest(
            prompt=coordinate_prompt(task, today),
            max_output_tokens=max_output_tokens,
            response_schema=LOCATION_SCHEMA,
        )
    if isinstance(task, NearbyTask):
        return LLMRequest(
            prompt=nearby_prompt(task),
            max_output_tokens=max_output_tokens,
            response_schema=MARKERS_SCHEMA,
        )
    if isinstance(task, NewsTask):
        return LLMRequest(
            prompt=news_prompt(task, today),
            grounded=True,
            max_output_tokens=max_output_tokens,
        )
    if isinstance(task, RouteTask):
        return LLMRequest(
            prompt=route_prompt(task),
            grounded=task.is_url,
            max_output_tokens=max_output_tokens,
            response_schema=None if task.is_url else ROUTE_SCHEMA,
        )
    raise TypeError(f"Unknown task type: {type(task).__name__}")
