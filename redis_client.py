"""
redis_client.py — Shared Redis connection for Wanderwise

Provides a single lazily-initialised Redis client used by:
  - edits.py      (edit-session store)
  - generator.py  (one-generation-at-a-time busy flag per user)
  - auth.py       (login attempt limiter)

If REDIS_URL is not set, or the server is unreachable, get_redis() returns
None and every caller falls back to its own per-process dict. That is fine for
a single worker; multiple workers need Redis so an edit session started on one
worker can be saved on another.
"""

import os
import logging
from urllib.parse import urlparse, urlunparse

import redis

logger = logging.getLogger(__name__)

_redis_client = None          # module-level singleton
_redis_checked = False        # only attempt connection once per process


def get_redis():
    """Return a connected Redis client, or None if Redis is unavailable."""
    global _redis_client, _redis_checked

    if _redis_checked:
        return _redis_client

    _redis_checked = True
    url = os.getenv('REDIS_URL', '').strip()

    if not url:
        logger.info('REDIS_URL not set — edit sessions and limiters are per-process')
        return None

    try:
        client = redis.Redis.from_url(
            url,
            decode_responses=True,   # always return str, never bytes
            socket_connect_timeout=3,
            socket_timeout=3,
        )
        client.ping()                # fail fast if unreachable
        logger.info('Redis connected: %s', _redact_url(url))
        _redis_client = client
    except redis.RedisError as exc:
        logger.warning('Redis unavailable (%s) — falling back to in-memory stores', exc)
        _redis_client = None

    return _redis_client


def _redact_url(url: str) -> str:
    """Return the Redis URL with the password replaced by ***."""
    p = urlparse(url)
    if not p.password:
        return url
    netloc = f'{p.username or ""}:***@{p.hostname}' + (f':{p.port}' if p.port else '')
    return urlunparse(p._replace(netloc=netloc))
