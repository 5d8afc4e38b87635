"""
Orrery Configuration and Constants

This module contains the physical constants, render-scale factors and the
environment-driven service configuration used throughout the project.

Constants:
    Astronomical unit and the J2000 reference epoch used by the local orbital
    model. Render-scale factors reproduce the compressed solar system layout of
    the scene (distances offset by 100 million km, then scaled).

Service configuration:
    Read from environment variables when ``ServiceConfig`` is instantiated so
    tests and deployments can override any value.

    Ephemeris providers:
    - ``astronomyapi``: api.astronomyapi.com (requires app id and secret)
    - ``horizons``: JPL Horizons public API (no credentials)
    - ``none``: purely simulated positions
"""

import os
from datetime import datetime, timezone
from typing import Dict

# Physical constants
AU_KM: float = 149597870.7  # Astronomical unit (km)
J2000_EPOCH: datetime = datetime(2000, 1, 1, tzinfo=timezone.utc)  # Local model epoch
SECONDS_PER_DAY: float = 86400.0

# Render scale (scene units); Earth radius is the unit sphere
DISTANCE_SCALE: float = 0.5
SIZE_SCALE: float = 0.5
SUN_SCALE: float = 0.12
BASE_SCALE: float = 0.1
EARTH_RADIUS: float = 1.0
DISTANCE_OFFSET_MKM: float = 100.0  # Keeps inner planets clear of the scaled Sun

# Real mean diameters (km) and mean orbital distances (million km)
REAL_DIAMETERS_KM: Dict[str, float] = {
    "sun": 1392700,
    "mercury": 4879,
    "venus": 12104,
    "earth": 12756,
    "mars": 6792,
    "jupiter": 142984,
    "saturn": 120536,
    "uranus": 51118,
    "neptune": 49528,
    "pluto": 2376,
}

REAL_DISTANCES_MKM: Dict[str, float] = {
    "mercury": 57.9,
    "venus": 108.2,
    "earth": 149.6,
    "mars": 227.9,
    "jupiter": 778.6,
    "saturn": 1433.5,
    "uranus": 2872.5,
    "neptune": 4495.1,
    "pluto": 5906.4,
}

# Default observer: New York City
DEFAULT_OBSERVER_LATITUDE: float = 40.7128
DEFAULT_OBSERVER_LONGITUDE: float = -74.0060
DEFAULT_OBSERVER_ELEVATION: float = 0.0

# Refresh policy
SIMULATION_INTERVAL_MS: int = 500
FETCH_INTERVAL_S: int = 3 * 3600
OBSERVATION_MAX_AGE_S: int = 6 * 3600
POSITION_CHANGE_THRESHOLD: float = 0.01

ASTRONOMY_API_BASE: str = "https://api.astronomyapi.com/api/v2"
HORIZONS_API_URL: str = "https://ssd.jpl.nasa.gov/api/horizons.api"


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


class ServiceConfig:
    """Environment-backed configuration for the fetcher, cache and scheduler."""

    def __init__(self):
        self.EPHEMERIS_PROVIDER = os.getenv("EPHEMERIS_PROVIDER", "astronomyapi").lower()
        self.ASTRONOMY_API_BASE = os.getenv("ASTRONOMY_API_BASE", ASTRONOMY_API_BASE)
        self.ASTRONOMY_APP_ID = os.getenv("ASTRONOMY_APP_ID", "")
        self.ASTRONOMY_APP_SECRET = os.getenv("ASTRONOMY_APP_SECRET", "")
        self.HORIZONS_API_URL = os.getenv("HORIZONS_API_URL", HORIZONS_API_URL)
        self.EPHEMERIS_TIMEOUT_S = _env_float("EPHEMERIS_TIMEOUT_S", 10.0)
        self.REDIS_URL = os.getenv("REDIS_URL", "")
        self.CACHE_TTL = int(os.getenv("CACHE_TTL", str(OBSERVATION_MAX_AGE_S)))
        self.OBSERVATION_MAX_AGE_S = int(
            os.getenv("OBSERVATION_MAX_AGE_S", str(OBSERVATION_MAX_AGE_S))
        )
        self.SIMULATION_INTERVAL = (
            int(os.getenv("SIMULATION_INTERVAL_MS", str(SIMULATION_INTERVAL_MS))) / 1000.0
        )
        self.FETCH_INTERVAL = int(os.getenv("FETCH_INTERVAL_S", str(FETCH_INTERVAL_S)))
        self.OBSERVER_LATITUDE = _env_float("OBSERVER_LATITUDE", DEFAULT_OBSERVER_LATITUDE)
        self.OBSERVER_LONGITUDE = _env_float("OBSERVER_LONGITUDE", DEFAULT_OBSERVER_LONGITUDE)
        self.OBSERVER_ELEVATION = _env_float("OBSERVER_ELEVATION", DEFAULT_OBSERVER_ELEVATION)

    @property
    def has_astronomy_credentials(self) -> bool:
        return bool(self.ASTRONOMY_APP_ID and self.ASTRONOMY_APP_SECRET)
