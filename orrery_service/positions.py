"""
Position Models

Data models shared by the resolver, the ephemeris fetchers and the service layer.

- Position: render-space Cartesian position of one body for one refresh cycle
- ObservedPosition: raw body position reported by an external ephemeris (AU)
- ObservedSnapshot: one fetch worth of observed positions, keyed by body id
- ResolvedPositions: the complete, immutable position map for one timestamp
"""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from orrery_service.config import (
    DEFAULT_OBSERVER_ELEVATION,
    DEFAULT_OBSERVER_LATITUDE,
    DEFAULT_OBSERVER_LONGITUDE,
)


class PositionSource(str, Enum):
    """Where a position came from"""

    OBSERVED = "observed"
    SIMULATED = "simulated"


class ResolutionTier(str, Enum):
    """Fallback tier that produced a position"""

    OBSERVED = "observed"
    SIMULATED = "simulated"
    NOMINAL = "nominal"


class Position(BaseModel):
    """Render-space position of a body"""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    z: float
    distance: float
    timestamp: datetime
    source: PositionSource
    parent_id: Optional[str] = None

    def as_tuple(self):
        return (self.x, self.y, self.z)


class ObservedPosition(BaseModel):
    """Body position as reported by an ephemeris provider (astronomical units)"""

    model_config = ConfigDict(frozen=True)

    body_id: str
    x: float
    y: float
    z: float
    distance: float
    right_ascension_hours: Optional[float] = None
    declination_degrees: Optional[float] = None
    constellation: Optional[str] = None
    phase_fraction: Optional[float] = None

    @property
    def is_usable(self) -> bool:
        values = (self.x, self.y, self.z, self.distance)
        return all(math.isfinite(v) for v in values) and self.distance > 0


class ObservedSnapshot(BaseModel):
    """One fetch cycle of observed positions"""

    model_config = ConfigDict(frozen=True)

    provider: str
    fetched_at: datetime
    positions: Dict[str, ObservedPosition] = Field(default_factory=dict)

    def get(self, body_id: str) -> Optional[ObservedPosition]:
        return self.positions.get(body_id)

    def age_seconds(self, now: datetime) -> float:
        fetched_at = self.fetched_at
        if fetched_at.tzinfo is None:
            fetched_at = fetched_at.replace(tzinfo=timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return (now - fetched_at).total_seconds()


class ObserverLocation(BaseModel):
    """Geographic observer location for topocentric ephemeris queries"""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(default=DEFAULT_OBSERVER_LATITUDE, ge=-90, le=90)
    longitude: float = Field(default=DEFAULT_OBSERVER_LONGITUDE, ge=-180, le=180)
    elevation: float = DEFAULT_OBSERVER_ELEVATION


class ResolvedPositions(BaseModel):
    """
    Complete position map for every catalog body at one timestamp.

    Replaced as a whole on every refresh; never mutated in place.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    source: PositionSource
    positions: Dict[str, Position]
    tiers: Dict[str, ResolutionTier]

    def __getitem__(self, body_id: str) -> Position:
        return self.positions[body_id]

    def __contains__(self, body_id) -> bool:
        return body_id in self.positions

    def ids(self) -> List[str]:
        return list(self.positions)

    def __len__(self) -> int:
        return len(self.positions)

    def get(self, body_id: str) -> Optional[Position]:
        return self.positions.get(body_id)

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")
