"""
edit_session.py — In-place editing of a saved route, as pure state transitions.

Every function takes an EditSessionState and returns a new one; the input is
never mutated. Viewing is simply "no session stored"; enter_edit() produces the
Editing state and the HTTP layer (edits.py) keeps it in the session store until
save or cancel.

After every stop mutation the working list is renumbered 1..N by position, so
stop_number never carries a stale stored value.
"""

import uuid
from typing import Sequence

from errors import ValidationError
from schemas import (
    STOP_COLUMNS, EditSessionState, RouteFields, StopDraft,
    coerce_coordinate, match_difficulty,
)

NEW_STOP_DEFAULTS = {
    'name':         'New Stop',
    'description':  'Add description here',
    'duration':     '30 minutes',
    'walk_to_next': '10 minutes',
    'address':      '',
    'latitude':     None,
    'longitude':    None,
}

ROUTE_TEXT_FIELDS = ('route_name', 'overview', 'total_distance', 'estimated_time', 'difficulty')

_COORD_LIMITS = {'latitude': 90.0, 'longitude': 180.0}


class UnknownStop(KeyError):
    """No stop with that key in the working list."""


def _renumber(stops: Sequence[StopDraft]) -> list:
    return [s.model_copy(update={'stop_number': i}) for i, s in enumerate(stops, start=1)]


def _index_of(state: EditSessionState, key: str) -> int:
    for i, stop in enumerate(state.working):
        if stop.key == key:
            return i
    raise UnknownStop(key)


def _with_working(state: EditSessionState, working: Sequence[StopDraft]) -> EditSessionState:
    return state.model_copy(update={'working': _renumber(working)})


def draft_from_stop(stop) -> StopDraft:
    """Build a StopDraft from a models.Stop row."""
    return StopDraft(
        key=str(stop.id),
        id=stop.id,
        is_new=False,
        stop_number=stop.stop_number,
        **{col: getattr(stop, col) for col in STOP_COLUMNS},
    )


# ── Lifecycle ─────────────────────────────────────────────────────────────────

def enter_edit(route, stops) -> EditSessionState:
    """Viewing → Editing: snapshot the route fields and its stop list."""
    baseline = [draft_from_stop(s) for s in stops]
    return EditSessionState(
        session_id=uuid.uuid4().hex,
        route_id=route.id,
        owner_id=route.user_id,
        baseline=baseline,
        working=_renumber(baseline),
        route_fields=RouteFields(
            route_name=route.route_name,
            overview=route.overview,
            total_distance=route.total_distance,
            estimated_time=route.estimated_time,
            difficulty=route.difficulty,
            tips=list(route.tips or []),
        ),
    )


def begin_save(state: EditSessionState) -> EditSessionState:
    return state.model_copy(update={'saving': True})


def end_save(state: EditSessionState) -> EditSessionState:
    return state.model_copy(update={'saving': False})


# ── Stop mutations ────────────────────────────────────────────────────────────

def update_stop_field(state: EditSessionState, key: str, field: str, value) -> EditSessionState:
    """Replace one field on the stop identified by key."""
    if field not in STOP_COLUMNS:
        raise ValidationError(f'Unknown stop field: {field}', field=field)

    if field in _COORD_LIMITS:
        if value is None or (isinstance(value, str) and not value.strip()):
            value = None
        else:
            coerced = coerce_coordinate(value, _COORD_LIMITS[field])
            if coerced is None:
                raise ValidationError(
                    f'{field.capitalize()} must be a number between '
                    f'-{_COORD_LIMITS[field]:g} and {_COORD_LIMITS[field]:g}',
                    field=field,
                )
            value = coerced
    elif field == 'name':
        value = str(value or '').strip()
        if not value:
            raise ValidationError('Stop name cannot be empty', field=field)
    elif value is not None:
        value = str(value)

    index = _index_of(state, key)
    working = list(state.working)
    working[index] = working[index].model_copy(update={field: value})
    return _with_working(state, working)


def delete_stop(state: EditSessionState, key: str) -> EditSessionState:
    index = _index_of(state, key)
    working = state.working[:index] + state.working[index + 1:]
    return _with_working(state, working)


def _swap(state: EditSessionState, index: int, other: int) -> EditSessionState:
    working = list(state.working)
    working[index], working[other] = working[other], working[index]
    return _with_working(state, working)


def move_stop_up(state: EditSessionState, key: str) -> EditSessionState:
    index = _index_of(state, key)
    if index == 0:
        return _with_working(state, state.working)
    return _swap(state, index, index - 1)


def move_stop_down(state: EditSessionState, key: str) -> EditSessionState:
    index = _index_of(state, key)
    if index >= len(state.working) - 1:
        return _with_working(state, state.working)
    return _swap(state, index, index + 1)


def insert_new_stop(state: EditSessionState) -> EditSessionState:
    """Append a placeholder stop with a temporary key."""
    draft = StopDraft(
        key=f'temp-{uuid.uuid4().hex[:12]}',
        id=None,
        is_new=True,
        stop_number=len(state.working) + 1,
        **NEW_STOP_DEFAULTS,
    )
    return _with_working(state, [*state.working, draft])


# ── Route-level mutations ─────────────────────────────────────────────────────

def update_route_field(state: EditSessionState, field: str, value: str) -> EditSessionState:
    if field not in ROUTE_TEXT_FIELDS:
        raise ValidationError(f'Unknown route field: {field}', field=field)
    if field == 'difficulty':
        matched = match_difficulty(value)
        if matched is None:
            raise ValidationError('Difficulty must be Easy, Moderate or Challenging', field=field)
        value = matched
    elif field == 'route_name':
        value = (value or '').strip()
        if not value:
            raise ValidationError('Route name cannot be empty', field=field)

    fields = state.route_fields.model_copy(update={field: value})
    return state.model_copy(update={'route_fields': fields})


def _check_tip_index(state: EditSessionState, index: int) -> None:
    if not 0 <= index < len(state.route_fields.tips):
        raise ValidationError(f'No tip at index {index}', field='tips')


def _with_tips(state: EditSessionState, tips: list) -> EditSessionState:
    fields = state.route_fields.model_copy(update={'tips': tips})
    return state.model_copy(update={'route_fields': fields})


def update_tip(state: EditSessionState, index: int, value: str) -> EditSessionState:
    _check_tip_index(state, index)
    tips = list(state.route_fields.tips)
    tips[index] = value
    return _with_tips(state, tips)


def add_tip(state: EditSessionState, value: str = '') -> EditSessionState:
    return _with_tips(state, [*state.route_fields.tips, value])


def remove_tip(state: EditSessionState, index: int) -> EditSessionState:
    _check_tip_index(state, index)
    tips = list(state.route_fields.tips)
    del tips[index]
    return _with_tips(state, tips)
