"""Tests for the geolens command line."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from geolens import cli
from geolens.models import GeoPoint, LocationRecord, MapMarker


class TestParser:

    def test_coordinates_are_floats(self):
        args = cli.build_parser().parse_args(["at", "48.85", "2.35"])
        assert args.command == "at"
        assert (args.lat, args.lng) == (48.85, 2.35)

    def test_repeatable_exclude(self):
        args = cli.build_parser().parse_args(["news", "Rome", "--exclude", "a", "--exclude", "b"])
        assert args.exclude == ["a", "b"]

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestMain:

    def test_missing_key_exits_with_error(self, monkeypatch, capsys):
        for name in ("GEOLENS_GEMINI_API_KEY", "GEMINI_API_KEY", "GOOGLE_API_KEY", "API_KEY"):
            monkeypatch.delenv(name, raising=False)

        assert cli.main(["search", "Paris"]) == 1
        assert "GEMINI_API_KEY" in capsys.readouterr().err

    @patch("geolens.cli.create_client")
    @patch("geolens.cli.GeoOrchestrator")
    def test_at_prints_record_json(self, mock_orchestrator, mock_create_client, monkeypatch, capsys):
        monkeypatch.setenv("GEOLENS_GEMINI_API_KEY", "k")
        record = LocationRecord(name="Paris", coordinates=GeoPoint(lat=48.85, lng=2.35))
        instance = MagicMock()
        instance.resolve_by_coordinates = AsyncMock(return_value=record)
        mock_orchestrator.return_value = instance

        assert cli.main(["--model", "gemini-x", "at", "48.85", "2.35"]) == 0

        instance.resolve_by_coordinates.assert_awaited_once_with(48.85, 2.35)
        assert mock_create_client.call_args.kwargs["config"].model == "gemini-x"
        out = json.loads(capsys.readouterr().out)
        assert out["name"] == "Paris"
        assert out["type"] == "Point of Interest"
        assert out["funFacts"] == []

    @patch("geolens.cli.create_client")
    @patch("geolens.cli.GeoOrchestrator")
    def test_nearby_prints_list(self, mock_orchestrator, mock_create_client, monkeypatch, capsys):
        monkeypatch.setenv("GEOLENS_GEMINI_API_KEY", "k")
        marker = MapMarker(id="a", name="Kobe", coordinates=GeoPoint(lat=34.69, lng=135.19))
        instance = MagicMock()
        instance.nearby_places = AsyncMock(return_value=[marker])
        mock_orchestrator.return_value = instance

        assert cli.main(["nearby", "34.7", "135.2"]) == 0

        out = json.loads(capsys.readouterr().out)
        assert out == [{
            "id": "a",
            "name": "Kobe",
            "coordinates": {"lat": 34.69, "lng": 135.19},
            "populationClass": "small",
        }]

    @patch("geolens.cli.create_client")
    @patch("geolens.cli.GeoOrchestrator")
    def test_search_miss_prints_null(self, mock_orchestrator, mock_create_client, monkeypatch, capsys):
        monkeypatch.setenv("GEOLENS_GEMINI_API_KEY", "k")
        instance = MagicMock()
        instance.resolve_by_query = AsyncMock(return_value=None)
        mock_orchestrator.return_value = instance

        assert cli.main(["search", "Atlantis"]) == 0
        assert capsys.readouterr().out.strip() == "null"
