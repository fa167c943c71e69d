"""
store.py — Itinerary persistence over the routes / stops tables.

Stateless functions taking a SQLAlchemy Session; all blocking, so call them
through run_in_threadpool from async handlers.

Every write operation runs in one transaction: on failure it rolls back and
raises StoreOperationError naming the step that failed, so a failed save never
leaves a route without its stops or a half-applied edit behind.

Stop ordinals are always derived from list position, never taken from the
caller's stop_number / number fields.
"""

import logging
import secrets
from dataclasses import dataclass, field
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from errors import StoreOperationError
from models import Route, Stop
from schemas import STOP_COLUMNS, GenerateRequest, Itinerary, RouteFields, StopDraft

logger = logging.getLogger(__name__)

COPY_SUFFIX = ' (Copy)'


@dataclass
class CommitPlan:
    """The writes needed to turn a baseline stop list into a working one."""
    deletions:  list = field(default_factory=list)   # [stop_id, ...]
    updates:    list = field(default_factory=list)   # [(stop_id, {column: value}), ...]
    insertions: list = field(default_factory=list)   # [{column: value}, ...]


def _rollback(db: Session, step: str, exc: Exception) -> StoreOperationError:
    db.rollback()
    logger.error('Store operation failed at %r: %s', step, exc)
    return StoreOperationError(step, exc)


# ── Reads ─────────────────────────────────────────────────────────────────────

def load_stops(db: Session, route_id: int) -> list:
    return (
        db.query(Stop)
        .filter_by(route_id=route_id)
        .order_by(Stop.stop_number.asc(), Stop.id.asc())
        .all()
    )


def load_route(db: Session, route_id: int) -> tuple:
    """Return (route, stops) with stops in ordinal order, or (None, []) if missing."""
    route = db.get(Route, route_id, populate_existing=True)
    if route is None:
        return None, []
    return route, load_stops(db, route_id)


def list_routes(db: Session, owner_id: int) -> list:
    return (
        db.query(Route)
        .filter_by(user_id=owner_id)
        .order_by(Route.created_at.desc(), Route.id.desc())
        .all()
    )


def find_shared_route(db: Session, share_token: str) -> Optional[Route]:
    if not share_token:
        return None
    return db.query(Route).filter_by(share_token=share_token, is_shared=True).first()


# ── Create ────────────────────────────────────────────────────────────────────

def create_route(db: Session, itinerary: Itinerary, request: GenerateRequest, owner_id: int) -> Route:
    """Insert the route row, then one stop row per itinerary stop."""
    step = 'save route'
    try:
        route = Route(
            user_id        = owner_id,
            route_name     = itinerary.route_name,
            total_distance = itinerary.total_distance,
            estimated_time = itinerary.estimated_time,
            difficulty     = itinerary.difficulty,
            overview       = itinerary.overview,
            tips           = list(itinerary.tips),
            city           = request.city,
            interests      = request.interests,
            fitness_level  = request.fitness,
            duration       = request.duration,
            is_shared      = False,
        )
        db.add(route)
        db.flush()   # assigns route.id

        step = 'save stops'
        for position, stop in enumerate(itinerary.stops, start=1):
            db.add(Stop(
                route_id     = route.id,
                stop_number  = position,
                name         = stop.name,
                description  = stop.description,
                duration     = stop.duration,
                walk_to_next = stop.walk_to_next,
                address      = stop.address,
                latitude     = stop.latitude,
                longitude    = stop.longitude,
            ))
        db.flush()
        db.commit()
    except SQLAlchemyError as exc:
        raise _rollback(db, step, exc) from exc

    logger.info('Route created: id=%d %r with %d stops for user %d',
                route.id, route.route_name, len(itinerary.stops), owner_id)
    return route


def copy_route(db: Session, source: Route, source_stops: Sequence[Stop], owner_id: int) -> Route:
    """Clone a route and its stops into owner_id's account (never shared)."""
    step = 'copy route'
    try:
        route = Route(
            user_id        = owner_id,
            route_name     = f'{source.route_name}{COPY_SUFFIX}',
            total_distance = source.total_distance,
            estimated_time = source.estimated_time,
            difficulty     = source.difficulty,
            overview       = source.overview,
            tips           = list(source.tips or []),
            city           = source.city,
            interests      = source.interests,
            fitness_level  = source.fitness_level,
            duration       = source.duration,
            is_shared      = False,
            share_token    = None,
        )
        db.add(route)
        db.flush()

        step = 'copy stops'
        for position, stop in enumerate(source_stops, start=1):
            values = {col: getattr(stop, col) for col in STOP_COLUMNS}
            db.add(Stop(route_id=route.id, stop_number=position, **values))
        db.flush()
        db.commit()
    except SQLAlchemyError as exc:
        raise _rollback(db, step, exc) from exc

    logger.info('Route %d copied to id=%d for user %d', source.id, route.id, owner_id)
    return route


# ── Edit commit ───────────────────────────────────────────────────────────────

def plan_commit(baseline: Sequence[StopDraft], working: Sequence[StopDraft]) -> CommitPlan:
    """
    Diff an edited stop list against the one loaded from the store.

    deletions  — baseline ids no longer present among the stored working entries
    insertions — working entries flagged is_new
    updates    — every other working entry, keyed by store id

    Inserts and updates carry stop_number = 1-based position in working.
    """
    kept_ids = {s.id for s in working if not s.is_new and s.id is not None}
    plan = CommitPlan(deletions=[s.id for s in baseline if s.id is not None and s.id not in kept_ids])

    for position, stop in enumerate(working, start=1):
        values = {col: getattr(stop, col) for col in STOP_COLUMNS}
        values['stop_number'] = position
        if stop.is_new or stop.id is None:
            plan.insertions.append(values)
        else:
            plan.updates.append((stop.id, values))
    return plan


def commit_edit(
    db: Session,
    route_id: int,
    route_fields: RouteFields,
    baseline: Sequence[StopDraft],
    working: Sequence[StopDraft],
) -> CommitPlan:
    """
    Persist an edit session: route fields, then deletions (one batch),
    then updates, then insertions. The first failing step aborts the commit.
    """
    plan = plan_commit(baseline, working)

    step = 'update route'
    try:
        route = db.get(Route, route_id)
        if route is None:
            raise StoreOperationError(step)
        route.route_name     = route_fields.route_name
        route.overview       = route_fields.overview
        route.total_distance = route_fields.total_distance
        route.estimated_time = route_fields.estimated_time
        route.difficulty     = route_fields.difficulty
        route.tips           = list(route_fields.tips)
        db.flush()

        if plan.deletions:
            step = 'delete stops'
            (
                db.query(Stop)
                .filter(Stop.route_id == route_id, Stop.id.in_(plan.deletions))
                .delete(synchronize_session=False)
            )
            db.flush()

        for stop_id, values in plan.updates:
            step = f"update stop {values['stop_number']}"
            matched = (
                db.query(Stop)
                .filter(Stop.id == stop_id, Stop.route_id == route_id)
                .update(values, synchronize_session=False)
            )
            if not matched:
                logger.warning('Stop %d no longer exists on route %d; update skipped', stop_id, route_id)

        for values in plan.insertions:
            step = f"insert stop {values['stop_number']}"
            db.add(Stop(route_id=route_id, **values))
            db.flush()

        db.commit()
    except SQLAlchemyError as exc:
        raise _rollback(db, step, exc) from exc
    except StoreOperationError:
        db.rollback()
        raise

    db.expire_all()
    logger.info('Route %d edit committed: %d deleted, %d updated, %d inserted',
                route_id, len(plan.deletions), len(plan.updates), len(plan.insertions))
    return plan


# ── Delete / share ────────────────────────────────────────────────────────────

def delete_route(db: Session, route: Route) -> None:
    route_id = route.id
    try:
        db.delete(route)
        db.commit()
    except SQLAlchemyError as exc:
        raise _rollback(db, 'delete route', exc) from exc
    logger.info('Route deleted: id=%d', route_id)


def enable_sharing(db: Session, route: Route) -> Route:
    """Mark the route shared, minting a share token the first time."""
    try:
        if not route.share_token:
            route.share_token = secrets.token_urlsafe(16)
        route.is_shared = True
        db.commit()
    except SQLAlchemyError as exc:
        raise _rollback(db, 'share route', exc) from exc
    logger.info('Route %d shared', route.id)
    return route


def disable_sharing(db: Session, route: Route) -> Route:
    """Stop sharing; the token is kept so re-sharing restores the same link."""
    try:
        route.is_shared = False
        db.commit()
    except SQLAlchemyError as exc:
        raise _rollback(db, 'stop sharing route', exc) from exc
    logger.info('Route %d unshared', route.id)
    return route
