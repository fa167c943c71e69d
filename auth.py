"""
auth.py — Authentication router for Wanderwise (FastAPI)

Provides:
  - JWT helpers (encode / decode)
  - get_current_user dependency (attach to any route that needs a logged-in user)
  - Routes: POST /auth/signup, POST /auth/login, POST /auth/logout, GET /auth/me

JWT lives in an httpOnly cookie called 'ww_token'.
Token TTL: 8 hours, sliding — get_current_user stores a fresh token on
request.state.slide_token and the slide_auth_cookie middleware in app.py
re-issues the cookie.
"""

import logging
import os
import secrets
import threading
import time
from collections import defaultdict
from datetime import datetime, timezone, timedelta

import bcrypt
import jwt
import redis
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from database import get_db
from models import User
from redis_client import get_redis
from schemas import LoginRequest, SignupRequest

logger = logging.getLogger(__name__)

auth_router = APIRouter(prefix='/auth', tags=['auth'])

# ── Constants ────────────────────────────────────────────────────────────────

COOKIE_NAME   = 'ww_token'
TOKEN_TTL_H   = 8          # hours
BCRYPT_ROUNDS = 12

JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', '')
if not JWT_SECRET_KEY:
    JWT_SECRET_KEY = secrets.token_urlsafe(32)
    logger.warning('JWT_SECRET_KEY not set — using a per-process secret; sessions end on restart')

SECURE_COOKIES = os.getenv('APP_ENV', 'development') == 'production'

# ── Login rate limiting ───────────────────────────────────────────────────────
# Failed login attempts per IP. After LOGIN_MAX_ATTEMPTS failures within
# LOGIN_WINDOW_SECONDS, further attempts are blocked.
#
# Redis path:  sorted set  ratelimit:login:{ip}  (score = member = timestamp)
# Fallback:    in-memory dict per worker (resets on restart).
LOGIN_MAX_ATTEMPTS   = 10
LOGIN_WINDOW_SECONDS = 300

_login_attempts: dict = defaultdict(list)  # ip -> [timestamp, ...] (fallback only)
_login_lock = threading.Lock()


def _check_login_rate_limit(ip: str) -> bool:
    """Return True if the request should be allowed, False if the IP is rate-limited."""
    now = time.time()
    r = get_redis()

    if r is not None:
        try:
            key = f'ratelimit:login:{ip}'
            pipe = r.pipeline()
            pipe.zremrangebyscore(key, '-inf', now - LOGIN_WINDOW_SECONDS)
            pipe.zcard(key)
            pipe.expire(key, LOGIN_WINDOW_SECONDS)
            _, count, _ = pipe.execute()
            return count < LOGIN_MAX_ATTEMPTS
        except redis.RedisError as exc:
            logger.warning('Redis login rate-limit check error: %s — falling back', exc)

    with _login_lock:
        _login_attempts[ip] = [t for t in _login_attempts[ip] if now - t < LOGIN_WINDOW_SECONDS]
        return len(_login_attempts[ip]) < LOGIN_MAX_ATTEMPTS


def _record_login_failure(ip: str):
    now = time.time()
    r = get_redis()

    if r is not None:
        try:
            key = f'ratelimit:login:{ip}'
            pipe = r.pipeline()
            pipe.zadd(key, {str(now): now})
            pipe.expire(key, LOGIN_WINDOW_SECONDS)
            pipe.execute()
            return
        except redis.RedisError as exc:
            logger.warning('Redis login failure record error: %s — falling back', exc)

    with _login_lock:
        _login_attempts[ip].append(now)


# ── Password + JWT helpers ───────────────────────────────────────────────────

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode('utf-8')


def _password_matches(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError as exc:
        logger.warning('bcrypt check error: %s', exc)
        return False


def encode_token(user_id: int) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        'sub': str(user_id),   # PyJWT 2.x requires sub to be a string
        'iat': now,
        'exp': now + timedelta(hours=TOKEN_TTL_H),
    }
    return jwt.encode(payload, JWT_SECRET_KEY, algorithm='HS256')


def _decode_token(token: str) -> dict:
    """Raise jwt.PyJWTError if invalid or expired."""
    return jwt.decode(token, JWT_SECRET_KEY, algorithms=['HS256'])


def set_auth_cookie(response: Response, token: str):
    response.set_cookie(
        COOKIE_NAME,
        token,
        httponly=True,
        samesite='lax',
        secure=SECURE_COOKIES,
        max_age=TOKEN_TTL_H * 3600,
        path='/',
    )


# ── Dependency ───────────────────────────────────────────────────────────────

def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Validate the JWT cookie and return the User.

    State-changing requests must also carry X-Requested-With: XMLHttpRequest.
    Browsers never attach that header to cross-site form posts, so it blocks
    CSRF on top of SameSite=Lax cookies.
    """
    if request.method in ('POST', 'PUT', 'DELETE', 'PATCH'):
        if request.headers.get('X-Requested-With') != 'XMLHttpRequest':
            raise HTTPException(status_code=403, detail='Forbidden — missing required request header')

    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail='Authentication required')

    try:
        payload = _decode_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail='Session expired — please log in again')
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail='Invalid token — please log in again')

    user = db.get(User, int(payload['sub']))
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail='Account not found or disabled')

    request.state.slide_token = encode_token(user.id)
    return user


# ── Routes ───────────────────────────────────────────────────────────────────

@auth_router.post('/signup', status_code=201)
async def signup(body: SignupRequest, response: Response, db: Session = Depends(get_db)):
    """POST /auth/signup — { email, password, full_name? } → sets httpOnly cookie."""
    if '@' not in body.email:
        raise HTTPException(status_code=400, detail='A valid email address is required')

    def _create():
        if db.query(User).filter_by(email=body.email).first():
            return None
        user = User(
            email         = body.email,
            full_name     = body.full_name,
            password_hash = hash_password(body.password),
            is_active     = True,
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            return None
        db.refresh(user)
        return user

    user = await run_in_threadpool(_create)
    if user is None:
        raise HTTPException(status_code=409, detail='An account with that email already exists')

    set_auth_cookie(response, encode_token(user.id))
    logger.info('Signup: user_id=%d', user.id)
    return {'status': 'ok', 'user': user.to_dict()}


@auth_router.post('/login')
async def login(body: LoginRequest, request: Request, response: Response,
                db: Session = Depends(get_db)):
    """POST /auth/login — { email, password } → sets httpOnly cookie."""
    client_ip = request.client.host if request.client else '0.0.0.0'
    if not _check_login_rate_limit(client_ip):
        logger.warning('Login rate limit exceeded for IP %s', client_ip)
        raise HTTPException(status_code=429, detail='Too many login attempts. Please wait and try again.')

    def _authenticate():
        user = db.query(User).filter_by(email=body.email).first()
        if not user or not user.is_active:
            return None
        if not _password_matches(body.password, user.password_hash):
            return None
        user.last_login_at = datetime.now(timezone.utc)
        db.commit()
        return user

    user = await run_in_threadpool(_authenticate)
    if user is None:
        # Generic message: don't reveal whether the email exists
        _record_login_failure(client_ip)
        raise HTTPException(status_code=401, detail='Invalid email or password')

    set_auth_cookie(response, encode_token(user.id))
    logger.info('Login: user_id=%d', user.id)
    return {'status': 'ok', 'user': user.to_dict()}


@auth_router.post('/logout')
async def logout(response: Response):
    """POST /auth/logout — clears the auth cookie."""
    response.delete_cookie(COOKIE_NAME, path='/')
    return {'status': 'ok'}


@auth_router.get('/me')
async def me(current_user: User = Depends(get_current_user)):
    """GET /auth/me — returns the current user's profile."""
    return {'user': current_user.to_dict()}
