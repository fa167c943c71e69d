"""
SQLAlchemy ORM models for Wanderwise.

Three models:
  User   — account that owns saved routes (email + bcrypt password)
  Route  — one saved walking tour: route-level stats, tips, provenance of the
           generation request, and share state
  Stop   — one ordered point of interest on a Route (stop_number is 1-based)

Default database: SQLite (wanderwise.db).
Production: set DATABASE_URL env var to a PostgreSQL connection string and the
app will use that instead — no code changes required.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text,
)
from sqlalchemy.orm import declarative_base, relationship


def _utcnow():
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


# db is kept as a module-level name so external imports (database.py, app.py)
# can reference db.metadata for table creation.
db = declarative_base()


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------

class User(db):
    __tablename__ = 'users'

    id            = Column(Integer, primary_key=True)
    email         = Column(String(255), unique=True, nullable=False, index=True)
    full_name     = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=False)
    is_active     = Column(Boolean, nullable=False, default=True)
    created_at    = Column(DateTime, nullable=False, default=_utcnow)
    last_login_at = Column(DateTime, nullable=True)

    routes = relationship('Route', backref='owner', lazy='dynamic',
                          foreign_keys='Route.user_id')

    def to_dict(self):
        return {
            'id':            self.id,
            'email':         self.email,
            'full_name':     self.full_name,
            'is_active':     self.is_active,
            'created_at':    self.created_at.isoformat() if self.created_at else None,
            'last_login_at': self.last_login_at.isoformat() if self.last_login_at else None,
        }

    def __repr__(self):
        return f'<User {self.email}>'


# ---------------------------------------------------------------------------
# Route
# ---------------------------------------------------------------------------

class Route(db):
    __tablename__ = 'routes'

    id         = Column(Integer, primary_key=True)
    user_id    = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)

    # ── Itinerary ────────────────────────────────────────────────────────────
    route_name     = Column(String(255), nullable=False)
    total_distance = Column(String(100), nullable=True)
    estimated_time = Column(String(100), nullable=True)
    difficulty     = Column(String(20),  nullable=True)   # 'Easy' | 'Moderate' | 'Challenging'
    overview       = Column(Text,        nullable=True)
    tips           = Column(JSON,        nullable=False, default=list)

    # ── Generation request (provenance) ──────────────────────────────────────
    city          = Column(String(255), nullable=False)
    interests     = Column(String(500), nullable=True)
    fitness_level = Column(String(20),  nullable=True)   # 'easy' | 'moderate' | 'challenging'
    duration      = Column(Float,       nullable=True)   # hours

    # ── Sharing ──────────────────────────────────────────────────────────────
    share_token = Column(String(64), unique=True, nullable=True, index=True)
    is_shared   = Column(Boolean, nullable=False, default=False)

    stops = relationship('Stop', back_populates='route',
                         order_by='Stop.stop_number',
                         cascade='all, delete-orphan')

    def to_dict(self, stops=None):
        """Serialise the route; pass an explicitly loaded stop list to embed it."""
        d = {
            'id':             self.id,
            'user_id':        self.user_id,
            'route_name':     self.route_name,
            'city':           self.city,
            'total_distance': self.total_distance,
            'estimated_time': self.estimated_time,
            'difficulty':     self.difficulty,
            'overview':       self.overview,
            'fitness_level':  self.fitness_level,
            'duration':       self.duration,
            'interests':      self.interests,
            'tips':           list(self.tips or []),
            'share_token':    self.share_token,
            'is_shared':      self.is_shared,
            'created_at':     self.created_at.isoformat() if self.created_at else None,
        }
        if stops is not None:
            d['stops'] = [s.to_dict() for s in stops]
        return d

    def __repr__(self):
        return f'<Route #{self.id} {self.route_name!r} city={self.city!r}>'


# ---------------------------------------------------------------------------
# Stop
# ---------------------------------------------------------------------------

class Stop(db):
    __tablename__ = 'stops'

    id          = Column(Integer, primary_key=True)
    route_id    = Column(Integer, ForeignKey('routes.id', ondelete='CASCADE'),
                         nullable=False, index=True)
    stop_number = Column(Integer, nullable=False)

    name         = Column(String(255), nullable=False)
    description  = Column(Text,        nullable=True)
    duration     = Column(String(100), nullable=True)   # time on site, e.g. '20 minutes'
    walk_to_next = Column(String(100), nullable=True)   # absent on the last stop
    address      = Column(String(500), nullable=True)
    latitude     = Column(Float,       nullable=True)
    longitude    = Column(Float,       nullable=True)

    route = relationship('Route', back_populates='stops')

    def to_dict(self):
        return {
            'id':           self.id,
            'route_id':     self.route_id,
            'stop_number':  self.stop_number,
            'name':         self.name,
            'description':  self.description,
            'duration':     self.duration,
            'walk_to_next': self.walk_to_next,
            'address':      self.address,
            'latitude':     self.latitude,
            'longitude':    self.longitude,
        }

    def __repr__(self):
        return f'<Stop #{self.id} route={self.route_id} n={self.stop_number} {self.name!r}>'
