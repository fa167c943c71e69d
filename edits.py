"""
edits.py — Edit-session router for Wanderwise (FastAPI)

An edit session is the staging area for in-place editing of a saved route.
State transitions live in edit_session.py; this module stores the state
between requests and exposes each transition as an endpoint.

Routes (all require authentication, session owner only):
  POST   /routes/{id}/edit                   — enter edit mode, returns the session
  GET    /edits/{sid}                        — current session state
  PATCH  /edits/{sid}/route                  — edit a route-level field
  POST   /edits/{sid}/tips                   — append a tip
  PUT    /edits/{sid}/tips/{index}           — replace one tip
  DELETE /edits/{sid}/tips/{index}           — remove one tip
  POST   /edits/{sid}/stops                  — append a placeholder stop
  PATCH  /edits/{sid}/stops/{key}            — edit one stop field
  DELETE /edits/{sid}/stops/{key}            — delete a stop
  POST   /edits/{sid}/stops/{key}/move-up    — swap with the previous stop
  POST   /edits/{sid}/stops/{key}/move-down  — swap with the next stop
  POST   /edits/{sid}/save                   — commit, reload, end the session
  DELETE /edits/{sid}                        — cancel (no database writes)

Session storage: Redis (key edit:{sid}, TTL EDIT_SESSION_TTL_SECONDS) when
available, otherwise a per-process dict.
"""

import logging
import os
import threading
import time

import redis
from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

import edit_session
import store
from auth import get_current_user
from database import get_db
from models import User
from redis_client import get_redis
from saved_routes import route_or_404, load_owned_route
from schemas import EditSessionState, RouteFieldUpdate, StopFieldUpdate, TipUpdate

logger = logging.getLogger(__name__)

edits_router = APIRouter(tags=['edits'])

EDIT_SESSION_TTL_SECONDS = int(os.getenv('EDIT_SESSION_TTL_SECONDS', '3600'))

# Save lock outlives any realistic commit so a crashed worker cannot wedge a session
SAVE_LOCK_SECONDS = 120

_sessions: dict = {}   # sid -> (expires_at, json) fallback when Redis is unavailable

_saving: set = set()   # sids with a save in flight (fallback when Redis is unavailable)
_saving_lock = threading.Lock()


# ── Session store (Redis + in-memory fallback) ────────────────────────────────

def _evict_sessions() -> None:
    now = time.time()
    for sid in [k for k, (expires_at, _) in _sessions.items() if expires_at < now]:
        _sessions.pop(sid, None)


def _session_set(state: EditSessionState) -> None:
    raw = state.model_dump_json()
    r = get_redis()
    if r is not None:
        try:
            r.setex(f'edit:{state.session_id}', EDIT_SESSION_TTL_SECONDS, raw)
            return
        except redis.RedisError as exc:
            logger.warning('Redis edit-session write error: %s — falling back', exc)
    _sessions[state.session_id] = (time.time() + EDIT_SESSION_TTL_SECONDS, raw)


def _session_get(session_id: str) -> EditSessionState | None:
    raw = None
    r = get_redis()
    if r is not None:
        try:
            raw = r.get(f'edit:{session_id}')
        except redis.RedisError as exc:
            logger.warning('Redis edit-session read error: %s — falling back', exc)
    if raw is None:
        _evict_sessions()
        entry = _sessions.get(session_id)
        raw = entry[1] if entry else None
    if raw is None:
        return None
    try:
        return EditSessionState.model_validate_json(raw)
    except PydanticValidationError as exc:
        logger.warning('Discarding unreadable edit session %s: %s', session_id[:8], exc)
        return None


def _session_delete(session_id: str) -> None:
    r = get_redis()
    if r is not None:
        try:
            r.delete(f'edit:{session_id}')
        except redis.RedisError as exc:
            logger.warning('Redis edit-session delete error: %s', exc)
    _sessions.pop(session_id, None)


# ── Save lock ─────────────────────────────────────────────────────────────────
# Taken atomically (SET NX in Redis, a locked set otherwise) so two workers
# cannot both commit the same session.

def _acquire_save(session_id: str) -> bool:
    r = get_redis()
    if r is not None:
        try:
            return bool(r.set(f'edit:{session_id}:saving', '1', nx=True, ex=SAVE_LOCK_SECONDS))
        except redis.RedisError as exc:
            logger.warning('Redis save-lock error: %s — falling back', exc)

    with _saving_lock:
        if session_id in _saving:
            return False
        _saving.add(session_id)
        return True


def _release_save(session_id: str) -> None:
    r = get_redis()
    if r is not None:
        try:
            r.delete(f'edit:{session_id}:saving')
        except redis.RedisError as exc:
            logger.warning('Redis save-lock release error: %s', exc)
    with _saving_lock:
        _saving.discard(session_id)


def _save_in_progress(session_id: str) -> bool:
    r = get_redis()
    if r is not None:
        try:
            return bool(r.exists(f'edit:{session_id}:saving'))
        except redis.RedisError as exc:
            logger.warning('Redis save-lock read error: %s — falling back', exc)
    with _saving_lock:
        return session_id in _saving


# ── Helpers ───────────────────────────────────────────────────────────────────

def _session_or_404(session_id: str, user: User) -> EditSessionState:
    state = _session_get(session_id)
    if state is None or state.owner_id != user.id:
        raise HTTPException(status_code=404, detail='Edit session not found or expired. Reload the route and try again.')
    return state


def _session_view(state: EditSessionState) -> dict:
    return state.model_dump(mode='json')


def _apply(session_id: str, user: User, transition, *args) -> dict:
    state = _session_or_404(session_id, user)
    if state.saving or _save_in_progress(state.session_id):
        raise HTTPException(status_code=409, detail='A save is already in progress')
    try:
        new_state = transition(state, *args)
    except edit_session.UnknownStop:
        raise HTTPException(status_code=404, detail='Stop not found in this edit session')
    _session_set(new_state)
    return {'session': _session_view(new_state)}


# ── Lifecycle ─────────────────────────────────────────────────────────────────

@edits_router.post('/routes/{route_id}/edit', status_code=201)
async def enter_edit(
    route_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """POST /routes/{id}/edit — snapshot the route into a new edit session."""
    def _snapshot():
        route = route_or_404(db, route_id, current_user)
        route, stops = store.load_route(db, route.id)
        return edit_session.enter_edit(route, stops)

    state = await run_in_threadpool(_snapshot)
    _session_set(state)
    logger.info('Edit session %s opened for route %d by user %d',
                state.session_id[:8], route_id, current_user.id)
    return {'session': _session_view(state)}


@edits_router.get('/edits/{session_id}')
async def get_edit_session(session_id: str, current_user: User = Depends(get_current_user)):
    return {'session': _session_view(_session_or_404(session_id, current_user))}


@edits_router.delete('/edits/{session_id}')
async def cancel_edit(session_id: str, current_user: User = Depends(get_current_user)):
    """DELETE /edits/{sid} — discard all staged changes."""
    state = _session_or_404(session_id, current_user)
    if state.saving or _save_in_progress(state.session_id):
        raise HTTPException(status_code=409, detail='A save is already in progress')
    _session_delete(session_id)
    logger.info('Edit session %s cancelled', session_id[:8])
    return {'status': 'ok'}


@edits_router.post('/edits/{session_id}/save')
async def save_edit(
    session_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    POST /edits/{sid}/save — commit staged changes and return the reloaded route.

    If the commit fails the session is kept exactly as it was, so the user can
    retry or cancel. Once the commit succeeds the session is gone, even if the
    reload afterwards fails: its new stops are already stored.
    """
    _session_or_404(session_id, current_user)
    if not _acquire_save(session_id):
        raise HTTPException(status_code=409, detail='A save is already in progress')

    try:
        # Re-read under the lock: a save that finished meanwhile has deleted it
        state = _session_or_404(session_id, current_user)

        def _commit():
            route_or_404(db, state.route_id, current_user)
            store.commit_edit(db, state.route_id, state.route_fields, state.baseline, state.working)

        _session_set(edit_session.begin_save(state))
        try:
            await run_in_threadpool(_commit)
        except Exception:
            _session_set(edit_session.end_save(state))
            raise
        _session_delete(session_id)
    finally:
        _release_save(session_id)

    logger.info('Edit session %s saved for route %d', session_id[:8], state.route_id)
    payload = await run_in_threadpool(lambda: load_owned_route(db, state.route_id, current_user))
    return {'route': payload}


# ── Route-level edits ─────────────────────────────────────────────────────────

@edits_router.patch('/edits/{session_id}/route')
async def edit_route_field(
    session_id: str,
    body: RouteFieldUpdate,
    current_user: User = Depends(get_current_user),
):
    return _apply(session_id, current_user, edit_session.update_route_field, body.field, body.value)


@edits_router.post('/edits/{session_id}/tips')
async def add_tip(
    session_id: str,
    body: TipUpdate,
    current_user: User = Depends(get_current_user),
):
    return _apply(session_id, current_user, edit_session.add_tip, body.value)


@edits_router.put('/edits/{session_id}/tips/{index}')
async def edit_tip(
    session_id: str,
    index: int,
    body: TipUpdate,
    current_user: User = Depends(get_current_user),
):
    return _apply(session_id, current_user, edit_session.update_tip, index, body.value)


@edits_router.delete('/edits/{session_id}/tips/{index}')
async def remove_tip(
    session_id: str,
    index: int,
    current_user: User = Depends(get_current_user),
):
    return _apply(session_id, current_user, edit_session.remove_tip, index)


# ── Stop edits ────────────────────────────────────────────────────────────────

@edits_router.post('/edits/{session_id}/stops', status_code=201)
async def add_stop(session_id: str, current_user: User = Depends(get_current_user)):
    return _apply(session_id, current_user, edit_session.insert_new_stop)


@edits_router.patch('/edits/{session_id}/stops/{key}')
async def edit_stop_field(
    session_id: str,
    key: str,
    body: StopFieldUpdate,
    current_user: User = Depends(get_current_user),
):
    return _apply(session_id, current_user, edit_session.update_stop_field, key, body.field, body.value)


@edits_router.delete('/edits/{session_id}/stops/{key}')
async def delete_stop(session_id: str, key: str, current_user: User = Depends(get_current_user)):
    return _apply(session_id, current_user, edit_session.delete_stop, key)


@edits_router.post('/edits/{session_id}/stops/{key}/move-up')
async def move_stop_up(session_id: str, key: str, current_user: User = Depends(get_current_user)):
    return _apply(session_id, current_user, edit_session.move_stop_up, key)


@edits_router.post('/edits/{session_id}/stops/{key}/move-down')
async def move_stop_down(session_id: str, key: str, current_user: User = Depends(get_current_user)):
    return _apply(session_id, current_user, edit_session.move_stop_down, key)
