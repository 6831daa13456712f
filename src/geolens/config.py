from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"


@dataclass(frozen=True)
class GeoLensConfig:
    """Explicit configuration passed to the client and the orchestrator."""

    api_key: str = ""
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = 60.0
    max_attempts: int = 4  # one call plus three retries
    backoff_base_seconds: float = 2.0
    max_output_tokens: int = 4000
    nearby_radius_km: int = 500
    metrics: bool = False

    def __post_init__(self):
        if self.max_attempts < 1:
            object.__setattr__(self, "max_attempts", 1)
        if self.backoff_base_seconds < 0:
            object.__setattr__(self, "backoff_base_seconds", 0.0)


def _env_str(*names: str, default: str = "") -> str:
    for name in names:
        v = str(os.getenv(name, "")).strip()
        if v:
            return v
    return default


def _env_flag(*names: str, default: bool = False) -> bool:
    raw = _env_str(*names, default="").strip().lower()
    if not raw:
        return bool(default)
    return raw in {"1", "true", "yes", "y", "on", "enable", "enabled"}


def _env_int(*names: str, default: int) -> int:
    raw = _env_str(*names, default="").strip()
    if not raw:
        return int(default)
    try:
        return int(raw)
    except ValueError:
        logger.warning("[config] invalid integer %r for %s, using %s", raw, names[0], default)
        return int(default)


def _env_float(*names: str, default: float) -> float:
    raw = _env_str(*names, default="").strip()
    if not raw:
        return float(default)
    try:
        return float(raw)
    except ValueError:
        logger.warning("[config] invalid number %r for %s, using %s", raw, names[0], default)
        return float(default)


def load_config() -> GeoLensConfig:
    """Build configuration from the environment.

    Env:
      - GEOLENS_GEMINI_API_KEY / GEMINI_API_KEY / GOOGLE_API_KEY / API_KEY
      - GEOLENS_MODEL (default: gemini-2.5-flash)
      - GEOLENS_GEMINI_BASE_URL
      - GEOLENS_TIMEOUT_SECONDS=60
      - GEOLENS_MAX_ATTEMPTS=4
      - GEOLENS_BACKOFF_BASE_SECONDS=2
      - GEOLENS_MAX_OUTPUT_TOKENS=4000
      - GEOLENS_NEARBY_RADIUS_KM=500
      - GEOLENS_LLM_METRICS=1 (per-call metrics log line)
    """
    return GeoLensConfig(
        api_key=_env_str("GEOLENS_GEMINI_API_KEY", "GEMINI_API_KEY", "GOOGLE_API_KEY", "API_KEY"),
        model=_env_str("GEOLENS_MODEL", default=DEFAULT_MODEL),
        base_url=_env_str("GEOLENS_GEMINI_BASE_URL", default=DEFAULT_BASE_URL),
        timeout_seconds=_env_float("GEOLENS_TIMEOUT_SECONDS", default=60.0),
        max_attempts=_env_int("GEOLENS_MAX_ATTEMPTS", default=4),
        backoff_base_seconds=_env_float("GEOLENS_BACKOFF_BASE_SECONDS", default=2.0),
        max_output_tokens=_env_int("GEOLENS_MAX_OUTPUT_TOKENS", default=4000),
        nearby_radius_km=_env_int("GEOLENS_NEARBY_RADIUS_KM", default=500),
        metrics=_env_flag("GEOLENS_LLM_METRICS", default=False),
    )
