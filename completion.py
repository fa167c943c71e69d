"""
completion.py — Anthropic Messages API client for itinerary generation.

One call per generation attempt: no retries (the user re-clicks "generate"),
an explicit timeout, and every failure mapped onto the errors.py taxonomy:

  non-2xx response   -> CompletionServiceError(status, body)
  connection failure -> CompletionServiceError(None, message)
  timeout            -> MalformedCompletion (treated like an unusable reply)
"""

import logging
import os
from typing import Optional

import anthropic
from anthropic import AsyncAnthropic

from errors import CompletionServiceError, MalformedCompletion

logger = logging.getLogger(__name__)

COMPLETION_MODEL           = os.getenv('COMPLETION_MODEL', 'claude-sonnet-4-20250514')
COMPLETION_MAX_TOKENS      = int(os.getenv('COMPLETION_MAX_TOKENS', '4000'))
COMPLETION_TIMEOUT_SECONDS = float(os.getenv('COMPLETION_TIMEOUT_SECONDS', '60'))

_client: Optional[AsyncAnthropic] = None


def get_client() -> AsyncAnthropic:
    """Create the AsyncAnthropic client on first use (reads ANTHROPIC_API_KEY)."""
    global _client
    if _client is None:
        _client = AsyncAnthropic(timeout=COMPLETION_TIMEOUT_SECONDS, max_retries=0)
    return _client


def _first_text(message) -> str:
    for block in message.content or []:
        block_text = getattr(block, 'text', None)
        if block_text:
            return str(block_text)
    return ''


async def request_completion(prompt: str) -> str:
    """Send one user turn and return the text of the reply."""
    client = get_client()
    try:
        message = await client.messages.create(
            model=COMPLETION_MODEL,
            max_tokens=COMPLETION_MAX_TOKENS,
            messages=[{'role': 'user', 'content': prompt}],
        )
    except anthropic.APITimeoutError as exc:
        logger.warning('Completion request timed out after %ss', COMPLETION_TIMEOUT_SECONDS)
        raise MalformedCompletion('', 'completion request timed out') from exc
    except anthropic.APIStatusError as exc:
        body = exc.response.text if exc.response is not None else str(exc)
        logger.error('Completion service error: %s %s', exc.status_code, body[:500])
        raise CompletionServiceError(exc.status_code, body) from exc
    except anthropic.APIConnectionError as exc:
        logger.error('Completion service unreachable: %s', exc)
        raise CompletionServiceError(None, str(exc)) from exc

    text = _first_text(message)
    logger.info('Completion received: %d chars, stop_reason=%s',
                len(text), getattr(message, 'stop_reason', None))
    return text
