"""JSON candidate extraction from raw model output.

Small chat models wrap their JSON in prose, markdown fences, or emit several
objects in one reply. This module scans the text left to right for
brace-balanced blocks and returns the first one that parses as an object.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterator

logger = logging.getLogger(__name__)


def _balanced_end(text: str, start: int) -> int | None:
    """Index just past the brace that closes text[start], or None.

    Braces inside JSON string literals are ignored.
    """
    depth = 0
    in_string = False
    escape = False
    for idx in range(start, len(text)):
        ch = text[idx]
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return idx + 1
    return None


def iter_json_candidates(text: str) -> Iterator[str]:
    """Yield brace-balanced substrings of text, left to right.

    Candidates do not overlap: after a balanced block the scan resumes past
    its closing brace. An opening brace that is never closed is skipped and
    the scan resumes at the next one.
    """
    start = text.find("{")
    while start >= 0:
        end = _balanced_end(text, start)
        if end is None:
            start = text.find("{", start + 1)
            continue
        yield text[start:end]
        start = text.find("{", end)


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Return the first candidate that parses as a JSON object.

    Args:
        text: Raw model output

    Returns:
        The parsed object, or None if no candidate parses
    """
    if not text:
        return None

    for candidate in iter_json_candidates(text):
        try:
            payload = json.loads(candidate)
        except json.JSONDecodeError as e:
            logger.warning(f"Skipping non-standard JSON block ({e.msg}): {candidate[:200]}")
            continue
        except RecursionError:
            logger.warning(f"Skipping JSON block nested too deeply ({len(candidate)} chars)")
            continue
        if isinstance(payload, dict):
            logger.debug(f"Parsed JSON candidate: {payload}")
            return payload

    return None


__all__ = ["extract_json_object", "iter_json_candidates"]
