"""
generator.py — Request → prompt → completion → Itinerary.

Also owns the per-user busy flag: a user may have one generation in flight at a
time; a second trigger while the first is running raises GenerationInProgress.
"""

import logging
import threading
from contextlib import asynccontextmanager

import redis

from completion import COMPLETION_TIMEOUT_SECONDS, request_completion
from normalizer import normalize_completion
from prompts import compile_prompt
from redis_client import get_redis
from schemas import GenerateRequest, Itinerary

logger = logging.getLogger(__name__)

# Redis key outlives the completion timeout so a crashed worker cannot wedge a user forever
_BUSY_TTL_SECONDS = int(COMPLETION_TIMEOUT_SECONDS) + 30

_in_flight: set = set()     # user ids (fallback when Redis is unavailable)
_in_flight_lock = threading.Lock()


class GenerationInProgress(Exception):
    pass


def _acquire(user_id: int) -> bool:
    r = get_redis()
    if r is not None:
        try:
            return bool(r.set(f'generating:{user_id}', '1', nx=True, ex=_BUSY_TTL_SECONDS))
        except redis.RedisError as exc:
            logger.warning('Redis busy-flag error: %s — falling back', exc)

    with _in_flight_lock:
        if user_id in _in_flight:
            return False
        _in_flight.add(user_id)
        return True


def _release(user_id: int) -> None:
    r = get_redis()
    if r is not None:
        try:
            r.delete(f'generating:{user_id}')
        except redis.RedisError as exc:
            logger.warning('Redis busy-flag release error: %s', exc)
    with _in_flight_lock:
        _in_flight.discard(user_id)


@asynccontextmanager
async def generation_slot(user_id: int):
    if not _acquire(user_id):
        raise GenerationInProgress()
    try:
        yield
    finally:
        _release(user_id)


async def generate_itinerary(request: GenerateRequest) -> Itinerary:
    """
    Validate inputs, build the prompt, call the completion service and
    normalize the reply.

    Raises ValidationError before any network I/O when city or interests are
    missing; CompletionServiceError / MalformedCompletion afterwards.
    """
    request.require_inputs()
    prompt = compile_prompt(request)
    logger.info('Generating route: city=%r fitness=%s duration=%gh',
                request.city, request.fitness, request.duration)
    raw_text = await request_completion(prompt)
    itinerary = normalize_completion(raw_text)
    logger.info('Route generated: %r with %d stops', itinerary.route_name, len(itinerary.stops))
    return itinerary
