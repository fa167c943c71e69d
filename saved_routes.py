"""
saved_routes.py — Saved-route routers for Wanderwise (FastAPI)

Routes under /routes (all require authentication, owner only):
  GET    /routes              — list the caller's routes, newest first
  POST   /routes              — save a generated itinerary
  GET    /routes/{id}         — route + ordered stops + map markers
  DELETE /routes/{id}         — delete route and its stops
  GET    /routes/{id}/print   — printable HTML document
  POST   /routes/{id}/share   — turn sharing on, returns the share token
  DELETE /routes/{id}/share   — turn sharing off

Routes under /shared:
  GET    /shared/{token}        — public read of a shared route (no login)
  POST   /shared/{token}/copy   — copy a shared route into the caller's account
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

import store
from auth import get_current_user
from database import get_db
from models import Route, User
from rendering import map_center, map_markers, render_print_html
from schemas import RouteCreate

logger = logging.getLogger(__name__)

routes_router = APIRouter(prefix='/routes', tags=['routes'])
shared_router = APIRouter(prefix='/shared', tags=['shared'])


# ── Helpers ───────────────────────────────────────────────────────────────────

def route_or_404(db: Session, route_id: int, user: User) -> Route:
    route = db.get(Route, route_id)
    # Someone else's route is indistinguishable from a missing one
    if not route or route.user_id != user.id:
        raise HTTPException(status_code=404, detail='Route not found')
    return route


def route_payload(route: Route, stops) -> dict:
    d = route.to_dict(stops=stops)
    d['markers'] = map_markers(stops)
    d['map_center'] = map_center(stops)
    return d


def load_owned_route(db: Session, route_id: int, user: User) -> dict:
    route = route_or_404(db, route_id, user)
    route, stops = store.load_route(db, route.id)
    return route_payload(route, stops)


# ── /routes ───────────────────────────────────────────────────────────────────

@routes_router.get('')
async def list_routes(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """GET /routes — the caller's routes, newest first (no stops)."""
    routes = await run_in_threadpool(lambda: store.list_routes(db, current_user.id))
    return {'routes': [r.to_dict() for r in routes]}


@routes_router.post('', status_code=201)
async def save_route(
    body: RouteCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """POST /routes — persist a generated itinerary with its request as provenance."""
    body.request.require_inputs()

    def _create():
        route = store.create_route(db, body.itinerary, body.request, current_user.id)
        return load_owned_route(db, route.id, current_user)

    payload = await run_in_threadpool(_create)
    return {'route': payload}


@routes_router.get('/{route_id}')
async def get_route(
    route_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    payload = await run_in_threadpool(lambda: load_owned_route(db, route_id, current_user))
    return {'route': payload}


@routes_router.delete('/{route_id}')
async def delete_route(
    route_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    def _delete():
        route = route_or_404(db, route_id, current_user)
        name = route.route_name
        store.delete_route(db, route)
        return name

    name = await run_in_threadpool(_delete)
    return {'status': 'ok', 'message': f'Route {name!r} deleted'}


@routes_router.get('/{route_id}/print', response_class=HTMLResponse)
async def print_route(
    route_id: int,
    auto_print: bool = Query(default=True),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """GET /routes/{id}/print — HTML that opens the browser print dialog on load."""
    def _render():
        route = route_or_404(db, route_id, current_user)
        route, stops = store.load_route(db, route.id)
        return render_print_html(route, stops, auto_print=auto_print)

    html = await run_in_threadpool(_render)
    return HTMLResponse(content=html)


@routes_router.post('/{route_id}/share')
async def share_route(
    route_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    def _share():
        return store.enable_sharing(db, route_or_404(db, route_id, current_user))

    route = await run_in_threadpool(_share)
    return {'share_token': route.share_token, 'is_shared': route.is_shared}


@routes_router.delete('/{route_id}/share')
async def unshare_route(
    route_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    def _unshare():
        return store.disable_sharing(db, route_or_404(db, route_id, current_user))

    route = await run_in_threadpool(_unshare)
    return {'share_token': route.share_token, 'is_shared': route.is_shared}


# ── /shared ───────────────────────────────────────────────────────────────────

def _shared_or_404(db: Session, token: str) -> Route:
    route = store.find_shared_route(db, token)
    if route is None:
        raise HTTPException(status_code=404, detail="This route doesn't exist or is no longer being shared")
    return route


@shared_router.get('/{token}')
async def get_shared_route(token: str, db: Session = Depends(get_db)):
    """GET /shared/{token} — no login required."""
    def _load():
        route = _shared_or_404(db, token)
        route, stops = store.load_route(db, route.id)
        payload = route_payload(route, stops)
        payload.pop('user_id', None)
        return payload

    payload = await run_in_threadpool(_load)
    return {'route': payload}


@shared_router.post('/{token}/copy', status_code=201)
async def copy_shared_route(
    token: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """POST /shared/{token}/copy — clone into the caller's routes."""
    def _copy():
        source = _shared_or_404(db, token)
        source, stops = store.load_route(db, source.id)
        route = store.copy_route(db, source, stops, current_user.id)
        return load_owned_route(db, route.id, current_user)

    payload = await run_in_threadpool(_copy)
    return {'route': payload}
