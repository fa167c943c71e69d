"""
schemas.py — Pydantic v2 request/response models for Wanderwise.

Two families live here:
  - HTTP request bodies (auth, generation, saving, edit-session actions)
  - the Itinerary schema that completion output is validated against

Itinerary fields use camelCase aliases because that is the shape the model
is asked to emit and the shape the frontend consumes. Python code uses the
snake_case names; dump with by_alias=True when answering the client.

Request validation errors are mapped to 400 { "error": "..." } by a custom
exception handler in app.py.
"""

import math
import re
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from errors import ValidationError

FitnessLevel = Literal['easy', 'moderate', 'challenging']
Difficulty   = Literal['Easy', 'Moderate', 'Challenging']

DIFFICULTIES: tuple = ('Easy', 'Moderate', 'Challenging')


# ── Shared validator helpers ──────────────────────────────────────────────────

def _collapse(v: str | None) -> str | None:
    """Collapse all whitespace (tabs, newlines, multiple spaces) to a single
    space, strip ends. Returns None if the result is empty."""
    if v is None:
        return None
    s = re.sub(r'\s+', ' ', str(v)).strip()
    return s or None


def _strip_only(v: str | None) -> str | None:
    """Strip leading/trailing whitespace only — preserve internal newlines.
    Returns None if the result is empty."""
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def coerce_coordinate(v, limit: float) -> float | None:
    """
    Return v as a float if it is a finite number within [-limit, limit],
    otherwise None. Numeric strings are accepted; booleans are not.
    """
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, str):
        v = v.strip()
        if not v:
            return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(f) or abs(f) > limit:
        return None
    return f


def match_difficulty(v) -> str | None:
    """Case-insensitive lookup against the difficulty enum."""
    if v is None:
        return None
    key = str(v).strip().lower()
    for d in DIFFICULTIES:
        if d.lower() == key:
            return d
    return None


# ── Auth ──────────────────────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    email:    str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)

    @field_validator('email', mode='before')
    @classmethod
    def normalise_email(cls, v: str) -> str:
        return str(v).strip().lower()


class SignupRequest(BaseModel):
    email:     str = Field(..., min_length=3, max_length=255)
    password:  str = Field(..., min_length=8, max_length=128)
    full_name: str | None = Field(default=None, max_length=255)

    @field_validator('email', mode='before')
    @classmethod
    def normalise_email(cls, v: str) -> str:
        return str(v).strip().lower()

    @field_validator('full_name', mode='before')
    @classmethod
    def collapse_name(cls, v: str | None) -> str | None:
        return _collapse(v)


# ── Generation ────────────────────────────────────────────────────────────────

class GenerateRequest(BaseModel):
    """
    The four user-supplied generation fields.

    city and interests default to '' rather than being required so that a
    missing value reaches require_inputs() and produces the same
    'City and interests are required' message as an empty one.
    """
    city:      str          = Field(default='', max_length=100)
    interests: str          = Field(default='', max_length=500)
    fitness:   FitnessLevel = 'moderate'
    duration:  float        = Field(default=2, gt=0, le=24)

    @field_validator('city', 'interests', mode='before')
    @classmethod
    def collapse_single_line(cls, v: str | None) -> str:
        return _collapse(v) or ''

    @field_validator('fitness', mode='before')
    @classmethod
    def lower_fitness(cls, v):
        return str(v).strip().lower() if v is not None else 'moderate'

    def require_inputs(self) -> None:
        if not self.city or not self.interests:
            raise ValidationError('City and interests are required',
                                  field='city' if not self.city else 'interests')


# ── Itinerary (validated completion output) ───────────────────────────────────

class ItineraryStop(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    number:       int | None = None
    name:         str        = Field(..., min_length=1)
    description:  str        = Field(..., min_length=1)
    duration:     str        = ''
    walk_to_next: str | None = Field(default=None, alias='walkToNext')
    address:      str | None = None
    latitude:     float | None = None
    longitude:    float | None = None

    @field_validator('number', mode='before')
    @classmethod
    def loose_number(cls, v):
        # The model's numbering is advisory only; ordinals come from position.
        if isinstance(v, bool):
            return None
        try:
            return int(v)
        except (TypeError, ValueError):
            return None

    @field_validator('name', 'description', mode='before')
    @classmethod
    def strip_text(cls, v):
        return _strip_only(v) if isinstance(v, str) else v

    @field_validator('duration', mode='before')
    @classmethod
    def duration_or_blank(cls, v):
        return '' if v is None else v

    @field_validator('walk_to_next', 'address', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        return _collapse(v) if isinstance(v, str) else v

    @field_validator('latitude', mode='before')
    @classmethod
    def latitude_in_range(cls, v):
        return coerce_coordinate(v, 90.0)

    @field_validator('longitude', mode='before')
    @classmethod
    def longitude_in_range(cls, v):
        return coerce_coordinate(v, 180.0)


class Itinerary(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    route_name:     str        = Field(..., min_length=1, alias='routeName')
    total_distance: str        = Field(..., alias='totalDistance')
    estimated_time: str        = Field(..., alias='estimatedTime')
    difficulty:     Difficulty
    overview:       str
    stops:          list[ItineraryStop] = Field(..., min_length=1)
    tips:           list[str]

    @field_validator('difficulty', mode='before')
    @classmethod
    def normalise_difficulty(cls, v):
        return match_difficulty(v) or v


class RouteCreate(BaseModel):
    """POST /routes — a generated itinerary plus the request that produced it."""
    itinerary: Itinerary
    request:   GenerateRequest


# ── Edit session actions ──────────────────────────────────────────────────────

RouteField = Literal['route_name', 'overview', 'total_distance', 'estimated_time', 'difficulty']
StopField  = Literal['name', 'description', 'duration', 'walk_to_next',
                     'address', 'latitude', 'longitude']


class RouteFieldUpdate(BaseModel):
    field: RouteField
    value: str = Field(..., max_length=5000)


class StopFieldUpdate(BaseModel):
    field: StopField
    value: Optional[Union[float, str]] = None


class TipUpdate(BaseModel):
    value: str = Field(..., max_length=1000)


# ── Edit session state ────────────────────────────────────────────────────────
# Held in the session store between requests (see edits.py), serialised with
# model_dump_json().

STOP_COLUMNS: tuple = ('name', 'description', 'duration', 'walk_to_next',
                       'address', 'latitude', 'longitude')


class StopDraft(BaseModel):
    """
    One stop in an edit session. key is the stop id as a string for stored
    stops, or 'temp-<hex>' for stops added during the session (is_new=True,
    id=None).
    """
    key:          str
    id:           int | None = None
    is_new:       bool = False
    stop_number:  int
    name:         str
    description:  str | None = None
    duration:     str | None = None
    walk_to_next: str | None = None
    address:      str | None = None
    latitude:     float | None = None
    longitude:    float | None = None


class RouteFields(BaseModel):
    route_name:     str
    overview:       str | None = None
    total_distance: str | None = None
    estimated_time: str | None = None
    difficulty:     str | None = None
    tips:           list[str] = Field(default_factory=list)


class EditSessionState(BaseModel):
    session_id:   str
    route_id:     int
    owner_id:     int
    baseline:     list[StopDraft]
    working:      list[StopDraft]
    route_fields: RouteFields
    saving:       bool = False
