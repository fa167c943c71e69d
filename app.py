#!/usr/bin/env python3
"""
Wanderwise — Backend API (FastAPI, async)

AI-generated walking tours: a signed-in user asks for a route through a city,
saves it, edits it stop by stop, shares it by link and prints it.

- AsyncAnthropic for the completion call (completion.py), no thread blocking
- Pydantic v2 schemas validate both request bodies and model output
- Depends(get_current_user) guards every route except /health and /shared/{token}
- run_in_threadpool wraps synchronous SQLAlchemy / bcrypt calls
- Domain failures (errors.py) map to { "error": "..." } in one place below
"""

import logging
import os

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

load_dotenv(os.path.join(os.path.dirname(__file__), '.env'))

from auth import COOKIE_NAME, SECURE_COOKIES, TOKEN_TTL_H, auth_router, get_current_user  # noqa: E402
from completion import COMPLETION_MODEL  # noqa: E402
from database import init_db  # noqa: E402
from edits import edits_router  # noqa: E402
from errors import (  # noqa: E402
    CompletionServiceError, MalformedCompletion, StoreOperationError,
    ValidationError, WanderwiseError,
)
from generator import GenerationInProgress, generate_itinerary, generation_slot  # noqa: E402
from models import User  # noqa: E402
from redis_client import get_redis  # noqa: E402
from saved_routes import routes_router, shared_router  # noqa: E402
from schemas import GenerateRequest  # noqa: E402

# ---------------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(message)s',
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(title='Wanderwise API', docs_url=None, redoc_url=None)

# ── CORS ─────────────────────────────────────────────────────────────────────
_cors_origins = [
    o.strip()
    for o in os.getenv(
        'CORS_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000'
    ).split(',')
    if o.strip()
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


# ── Security headers ──────────────────────────────────────────────────────────
@app.middleware('http')
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['X-Frame-Options']        = 'DENY'
    response.headers['Referrer-Policy']        = 'strict-origin-when-cross-origin'
    response.headers['Permissions-Policy']     = 'geolocation=(), microphone=(), camera=()'
    if SECURE_COOKIES:
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    return response


# ── Sliding JWT cookie ────────────────────────────────────────────────────────
@app.middleware('http')
async def slide_auth_cookie(request: Request, call_next):
    """Re-issue the auth cookie with a fresh TTL after each authenticated request."""
    response = await call_next(request)
    token = getattr(request.state, 'slide_token', None)
    if token:
        response.set_cookie(
            COOKIE_NAME, token,
            httponly=True,
            samesite='lax',
            secure=SECURE_COOKIES,
            max_age=TOKEN_TTL_H * 3600,
            path='/',
        )
    return response


# ── Error → { "error": "..." } ────────────────────────────────────────────────
# FastAPI's default shape is { "detail": "..." }; the frontend expects "error".
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={'error': exc.detail})


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    first_error = exc.errors()[0] if exc.errors() else {}
    path = '.'.join(str(item) for item in first_error.get('loc', ()) if item != 'body')
    reason = first_error.get('msg', 'invalid value')
    return JSONResponse(status_code=400, content={'error': f'{path}: {reason}' if path else reason})


@app.exception_handler(WanderwiseError)
async def domain_exception_handler(request: Request, exc: WanderwiseError):
    if isinstance(exc, ValidationError):
        status = 400
    elif isinstance(exc, MalformedCompletion):
        # raw_text stays in the logs; the client only sees the generic message
        logger.warning('%s %s: %s (raw %d chars)', request.method, request.url.path,
                       exc.reason, len(exc.raw_text))
        status = 500
    elif isinstance(exc, CompletionServiceError):
        logger.error('%s %s: completion service returned %s', request.method,
                     request.url.path, exc.status_code)
        status = 500
    elif isinstance(exc, StoreOperationError):
        logger.error('%s %s: store operation %r failed', request.method,
                     request.url.path, exc.operation)
        status = 500
    else:
        logger.error('%s %s: %s', request.method, request.url.path, exc)
        status = 500
    return JSONResponse(status_code=status, content={'error': exc.user_message})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error('Unhandled error in %s %s: %s', request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(status_code=500, content={'error': 'An unexpected error occurred. Please try again.'})


# ── Router registration ───────────────────────────────────────────────────────
app.include_router(auth_router)
app.include_router(routes_router)
app.include_router(shared_router)
app.include_router(edits_router)

# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------

@app.on_event('startup')
async def startup():
    await run_in_threadpool(init_db)

    if get_redis() is not None:
        logger.info('Redis connected (edit sessions, busy flags, login limiter shared across workers)')
    else:
        logger.warning('Redis unavailable — using in-memory fallbacks (set REDIS_URL to enable)')


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get('/health')
async def health():
    return {'status': 'ok', 'message': f'Wanderwise API is running on {COMPLETION_MODEL}'}


@app.post('/generate')
async def generate_route(
    body: GenerateRequest,
    current_user: User = Depends(get_current_user),
):
    """
    POST /generate — { city, interests, fitness, duration } → { itinerary, request }.

    One generation per user at a time; a second request while the first is in
    flight gets 409. Failures are never retried here — the user re-submits.
    """
    body.require_inputs()

    try:
        async with generation_slot(current_user.id):
            itinerary = await generate_itinerary(body)
    except GenerationInProgress:
        raise HTTPException(
            status_code=409,
            detail='A route is already being generated. Please wait for it to finish.',
        )

    logger.info('Route generated for user_id=%d: %r (%d stops)',
                current_user.id, itinerary.route_name, len(itinerary.stops))
    # Same shape POST /routes accepts, so the client can save it as-is
    return {'itinerary': itinerary.model_dump(by_alias=True), 'request': body.model_dump()}
