"""Locate and parse the JSON payload inside raw model text.

Model replies come as clean JSON, JSON wrapped in prose or markdown fences,
JSON cut off mid-object, or a plain conversational refusal. ``extract_json``
tries, in order (first success wins):

1. the interior of the first fenced code block
2. the span from the first ``{``/``[`` to the last matching closer (or to the
   end of the text when the closer is missing)
3. the whole text

Every candidate is parsed as-is, then cleaned, then cleaned and repaired with
``repair_truncated_json``. Nothing here raises for malformed input; ``None``
means "no usable structured data".
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from geolens.llm.json_repair import repair_truncated_json

logger = logging.getLogger(__name__)

_FENCED_BLOCK_RE = re.compile(r"```(?:json|JSON)?([\s\S]*?)```")
_FENCE_MARKER_RE = re.compile(r"```(?:json|JSON)?")
_ELLIPSIS_RE = re.compile(r"\.\.\.|…")
_TRAILING_COMMA_RE = re.compile(r",(\s*[\]}])")

REFUSAL_PREFIXES = (
    "i am",
    "i'm",
    "i cannot",
    "i can't",
    "sorry",
    "unfortunately",
    "please",
    "the search",
    "here is",
    "no news",
    "as an ai",
)


def clean_json_text(text: str) -> str:
    """Strip fence markers, ellipses and trailing commas before ``]``/``}``."""
    if not text:
        return ""
    cleaned = _FENCE_MARKER_RE.sub("", text)
    cleaned = _ELLIPSIS_RE.sub("", cleaned)
    cleaned = _TRAILING_COMMA_RE.sub(r"\1", cleaned)
    return cleaned.strip()


def is_conversational_refusal(text: str) -> bool:
    lower = (text or "").strip().lower().replace("’", "'")
    return lower.startswith(REFUSAL_PREFIXES)


def _loads(candidate: str) -> Any:
    """``json.loads`` that signals failure with ``None`` (the JSON ``null``
    literal is never a usable payload either)."""
    if not candidate:
        return None
    try:
        return json.loads(candidate)
    except (json.JSONDecodeError, RecursionError):
        return None


def parse_candidate(candidate: str) -> Any:
    """Parse one candidate: raw, cleaned, then cleaned + repaired."""
    value = _loads(candidate.strip())
    if value is not None:
        return value

    cleaned = clean_json_text(candidate)
    value = _loads(cleaned)
    if value is not None:
        return value

    value = _loads(repair_truncated_json(cleaned))
    if value is not None:
        logger.debug("[EXTRACT] parsed after repair")
    return value


def find_json_span(text: str) -> Optional[str]:
    """Slice from the first opening token to its last closing counterpart.

    Whichever of ``{`` / ``[`` occurs first decides the container type. When no
    closer follows the opener (truncation) the slice runs to end of text.
    """
    first_brace = text.find("{")
    first_bracket = text.find("[")

    if first_brace != -1 and (first_bracket == -1 or first_brace < first_bracket):
        start, end = first_brace, text.rfind("}")
    elif first_bracket != -1:
        start, end = first_bracket, text.rfind("]")
    else:
        return None

    stop = end + 1 if end > start else len(text)
    return text[start:stop]


def extract_json(raw_text: str) -> Any:
    """Recover structured data from raw model text.

    Returns:
        Parsed ``dict``/``list`` (or other JSON value), or ``None`` when no
        strategy recovers structure.
    """
    if not raw_text or not raw_text.strip():
        return None

    # 1. fenced code block
    match = _FENCED_BLOCK_RE.search(raw_text)
    if match:
        value = parse_candidate(match.group(1))
        if value is not None:
            return value

    # 2. first opener .. last closer
    span = find_json_span(raw_text)
    if span is not None:
        value = parse_candidate(span)
        if value is not None:
            return value

    # 3. whole text
    value = parse_candidate(raw_text)
    if value is not None:
        return value

    if span is None or is_conversational_refusal(raw_text):
        logger.debug("[EXTRACT] no JSON in model reply (refusal or prose)")
        return None

    logger.warning("[EXTRACT] JSON parse failed for text: %s...", raw_text[:100])
    return None
