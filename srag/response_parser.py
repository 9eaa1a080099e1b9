from __future__ import annotations
import json
import logging
import math
import re
from typing import Any, Dict, Iterator, Optional, Tuple

from .errors import ParseError
from .record import RecordData

logger = logging.getLogger(__name__)

FENCED_JSON_RE = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)
# Greedy: first "{" to last "}".
BRACE_SPAN_RE = re.compile(r"\{[\s\S]*\}")

_SCALARS = (str, int, float, bool)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def _finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"number out of range: {text}")
    return value


def loads_strict(text: str) -> Any:
    """``json.loads`` without the NaN/Infinity extensions; overflowing numbers are rejected too."""
    return json.loads(text, parse_constant=_reject_constant, parse_float=_finite_float)


def _candidates(response: str) -> Iterator[Tuple[str, str]]:
    m = FENCED_JSON_RE.search(response)
    if m:
        yield m.group(1), "markdown block"
    m = BRACE_SPAN_RE.search(response)
    if m:
        yield m.group(0), "plain text"


def _as_object(text: str, source: str) -> Optional[Dict[str, Any]]:
    try:
        parsed: Any = loads_strict(text)
    except (ValueError, RecursionError) as e:
        logger.debug(f"Failed to parse JSON from {source}", extra={"error": str(e)})
        return None
    if not isinstance(parsed, dict):
        logger.debug(f"JSON from {source} is not an object", extra={"json_type": type(parsed).__name__})
        return None
    return parsed


def _as_flat_object(text: str, source: str) -> Optional[RecordData]:
    parsed = _as_object(text, source)
    if parsed is None:
        return None
    nested = [k for k, v in parsed.items() if v is not None and not isinstance(v, _SCALARS)]
    if nested:
        logger.debug(f"JSON from {source} has non-scalar values", extra={"fields": nested})
        return None
    return parsed


def _check_text(response: Any) -> None:
    if not isinstance(response, str):
        raise ParseError("LLM response is not text", {"response_type": type(response).__name__})


def _no_json(response: str) -> ParseError:
    logger.error("No valid JSON found in LLM response", extra={"response_preview": response[:200]})
    return ParseError("No valid JSON found in LLM response", {"response_preview": response[:200]})


def parse_json_object(response: str) -> Dict[str, Any]:
    """Recover a JSON object (nesting allowed) from a model response, same precedence as records."""
    _check_text(response)
    for text, source in _candidates(response):
        data = _as_object(text, source)
        if data is not None:
            return data
    raise _no_json(response)


def parse_record_response(response: str) -> RecordData:
    """Recover the single flat JSON object in a model response.

    A ```json fenced block wins over any other brace span in the text.
    """
    _check_text(response)
    logger.debug("Parsing record response", extra={"response_length": len(response)})
    for text, source in _candidates(response):
        data = _as_flat_object(text, source)
        if data is not None:
            return data
    raise _no_json(response)
