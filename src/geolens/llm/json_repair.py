"""Heuristic repair for truncated JSON from model output.

The model regularly stops mid-object when it hits the output token limit.
``repair_truncated_json`` closes whatever was left open:
- an unterminated string literal
- unmatched ``{`` / ``[`` in the structural skeleton (strings erased)

It assumes a single truncation point. Inputs with several independently
broken fragments are not fixed; they simply stay unparsable.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

_TRAILING_COMMA_RE = re.compile(r",\s*$")
_CLOSERS = {"{": "}", "[": "]"}


def scan_strings(text: str) -> tuple[str, bool]:
    """Walk ``text`` tracking string state.

    Returns:
        (skeleton, in_string) where ``skeleton`` is ``text`` with every string
        literal replaced by ``""`` and ``in_string`` tells whether the text
        ended inside an unterminated string.
    """
    skeleton: list[str] = []
    in_string = False
    backslashes = 0

    for ch in text:
        if in_string:
            if ch == "\\":
                backslashes += 1
                continue
            if ch == '"' and backslashes % 2 == 0:
                in_string = False
                skeleton.append('"')
            backslashes = 0
            continue

        if ch == '"':
            in_string = True
            backslashes = 0
            skeleton.append('"')
        else:
            skeleton.append(ch)

    if in_string:
        skeleton.append('"')
    return "".join(skeleton), in_string


def _unclosed(skeleton: str) -> list[str]:
    """Open containers still pending at the end of ``skeleton``, outermost first."""
    stack: list[str] = []
    for ch in skeleton:
        if ch in _CLOSERS:
            stack.append(ch)
        elif ch in ("}", "]"):
            if stack and _CLOSERS[stack[-1]] == ch:
                stack.pop()
            # stray closer: already broken, leave it to the parser
    return stack


def repair_truncated_json(candidate: str) -> str:
    """Close a truncated JSON text. Pure transform, never raises.

    Args:
        candidate: JSON-ish text, possibly cut off

    Returns:
        Text with the open string and open containers closed. ``"{}"`` for
        blank input.
    """
    fixed = (candidate or "").strip()
    if not fixed:
        return "{}"

    _, in_string = scan_strings(fixed)
    if in_string:
        # drop a dangling escape so the closing quote is not swallowed
        trailing = len(fixed) - len(fixed.rstrip("\\"))
        if trailing % 2 == 1:
            fixed = fixed[:-1]
        fixed += '"'
    else:
        fixed = _TRAILING_COMMA_RE.sub("", fixed)

    skeleton, _ = scan_strings(fixed)
    pending = _unclosed(skeleton)
    if pending:
        fixed += "".join(_CLOSERS[ch] for ch in reversed(pending))
        logger.debug("[REPAIR] closed %d container(s)", len(pending))

    return fixed
