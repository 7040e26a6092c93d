from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, List

from ..errors import MalformedModelOutput

logger = logging.getLogger(__name__)

FENCE_JSON_RE = re.compile(r"```json\n?", re.IGNORECASE)
FENCE_RE = re.compile(r"```\n?")
CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")

# Unescaped inner quotes, e.g. `: "The "Lean" Startup",`
# Groups exclude backslashes so already-escaped values are left alone.
INNER_QUOTES_COMMA_RE = re.compile(r': "([^"\\]*)"([^",}\\]*)"([^"\\]*)",')
INNER_QUOTES_RE = re.compile(r': "([^"\\]*)"([^",}\\]*)"([^"\\]*)"')


def strip_fences(text: str) -> str:
    text = FENCE_JSON_RE.sub("", text or "")
    return FENCE_RE.sub("", text).strip()


def extract_object(text: str) -> str:
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return text[start : end + 1]
    return text


def escape_inner_quotes(text: str) -> str:
    text = INNER_QUOTES_COMMA_RE.sub(r': "\1\\"\2\\"\3",', text)
    return INNER_QUOTES_RE.sub(r': "\1\\"\2\\"\3"', text)


def strip_control_chars(text: str) -> str:
    text = CONTROL_CHARS_RE.sub(" ", text)
    return re.sub(r"\s+", " ", text).strip()


def _load_object(text: str) -> Dict[str, Any]:
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def parse_model_json(raw: str) -> Dict[str, Any]:
    """Parse a model response into a dict, repairing common JSON defects.

    The repairs are tried in order and the first successful parse wins:
    the bare candidate, then inner-quote escaping, then control-character
    stripping, then both. Raises ``MalformedModelOutput`` when none of them parse.
    """
    candidate = extract_object(strip_fences(raw))
    repairs: List[Callable[[str], str]] = [
        lambda text: text,
        escape_inner_quotes,
        strip_control_chars,
        lambda text: escape_inner_quotes(strip_control_chars(text)),
    ]
    last_error: Exception | None = None
    for repair in repairs:
        try:
            return _load_object(repair(candidate))
        except ValueError as exc:
            last_error = exc
            continue
    snippet = (raw or "")[:300]
    logger.warning(f"Unparseable model output ({last_error}): {snippet!r}")
    raise MalformedModelOutput(f"Model returned malformed JSON: {last_error}", raw_text=raw or "")
