"""Pull a JSON object out of free-form model output."""

import json
import logging
import re
from typing import Any, Optional

from formforge.errors import ExtractionFailure

logger = logging.getLogger(__name__)

FENCE_RE = re.compile(r"```(?:json)?([\s\S]*?)```")
_STRING_RE = re.compile(r'"(?:\\.|[^"\\])*"')
_TRAILING_COMMA_OBJ = re.compile(r",\s*}")
_TRAILING_COMMA_ARR = re.compile(r",\s*]")
_BARE_KEY = re.compile(r"([{,]\s*)'?([A-Za-z0-9_]+)'?\s*:")


def _repair_segment(segment: str) -> str:
    fixed = _TRAILING_COMMA_OBJ.sub("}", segment)
    fixed = _TRAILING_COMMA_ARR.sub("]", fixed)
    return _BARE_KEY.sub(r'\1"\2":', fixed)


def repair(block: str) -> str:
    """Fix the usual model slips: trailing commas and unquoted or single-quoted keys.

    Double-quoted strings are copied through untouched; only the text between
    them is rewritten.
    """
    parts = []
    pos = 0
    for match in _STRING_RE.finditer(block):
        parts.append(_repair_segment(block[pos:match.start()]))
        parts.append(match.group(0))
        pos = match.end()
    parts.append(_repair_segment(block[pos:]))
    return "".join(parts)


def _loads(text: str) -> Optional[Any]:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None


def extract_json(text: str) -> Optional[Any]:
    """Return the parsed object, or None when nothing parseable is found.

    A fenced block is tried as-is and then repaired. The whole body is only
    parsed when there is no fenced block at all.
    """
    if not text:
        return None

    match = FENCE_RE.search(text)
    if match:
        block = match.group(1).strip()
        parsed = _loads(block)
        if parsed is not None:
            return parsed
        logger.warning("Fenced JSON did not parse, attempting repair")
        parsed = _loads(repair(block))
        if parsed is None:
            logger.warning("Repaired JSON did not parse either")
        return parsed

    parsed = _loads(text.strip())
    if parsed is None:
        logger.warning("No fenced block and body is not JSON", extra={"response_chars": len(text)})
    return parsed


def parse_model_json(text: str) -> Any:
    """Like extract_json, but raises ExtractionFailure instead of returning None."""
    parsed = extract_json(text)
    if parsed is None:
        raise ExtractionFailure(
            "no JSON object could be extracted from the model response",
            {"response_chars": len(text or "")},
        )
    return parsed
