"""
normalizer.py — Turns raw completion text into a validated Itinerary.

Steps:
  1. strip markdown code fences (```json ... ```), wherever they appear
  2. json.loads the remainder
  3. validate against schemas.Itinerary
  4. re-derive stop ordinals from list position

Any failure raises MalformedCompletion; there is no partial result.
"""

import json
import logging
import re

from pydantic import ValidationError as PydanticValidationError

from errors import MalformedCompletion
from schemas import Itinerary

logger = logging.getLogger(__name__)

# An opening fence may carry a language tag (```json, ```JSON, ```javascript).
# Only the fence line itself is removed, never text on the following line.
_FENCE_RE = re.compile(r'```[A-Za-z0-9_+-]*[ \t]*\r?\n?')

# Cap on how much of a bad completion goes into a log line
_LOG_SNIPPET = 300


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub('', text).strip()


def _describe(exc: PydanticValidationError) -> str:
    first = exc.errors()[0] if exc.errors() else {}
    loc = '.'.join(str(p) for p in first.get('loc', ()))
    return f"{loc or 'itinerary'}: {first.get('msg', 'invalid')}"


def normalize_completion(raw_text: str) -> Itinerary:
    """Parse and validate a completion. Raises MalformedCompletion."""
    raw_text = raw_text or ''
    cleaned = strip_code_fences(raw_text)
    if not cleaned:
        raise MalformedCompletion(raw_text, 'empty completion')

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.warning('Completion is not valid JSON (%s): %r', exc, cleaned[:_LOG_SNIPPET])
        raise MalformedCompletion(raw_text, f'invalid JSON: {exc}') from exc

    if not isinstance(data, dict):
        raise MalformedCompletion(raw_text, f'expected a JSON object, got {type(data).__name__}')

    try:
        itinerary = Itinerary.model_validate(data)
    except PydanticValidationError as exc:
        reason = _describe(exc)
        logger.warning('Completion failed schema validation (%s): %r', reason, cleaned[:_LOG_SNIPPET])
        raise MalformedCompletion(raw_text, reason) from exc

    supplied = [s.number for s in itinerary.stops]
    expected = list(range(1, len(itinerary.stops) + 1))
    if supplied != expected:
        logger.warning('Completion stop numbering %r is not 1..%d; using list order',
                       supplied, len(expected))
    for position, stop in enumerate(itinerary.stops, start=1):
        stop.number = position

    return itinerary
