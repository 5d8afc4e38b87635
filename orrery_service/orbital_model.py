"""
Simplified Orbital Model

Provides the local position model used when no observed ephemeris is available,
plus the coordinate conversions needed to bring observed ephemerides into the
render frame.

The local model is deliberately simple: a body moves uniformly in angle with its
orbital period, its radius is modulated by the eccentricity, and its height above
the ecliptic follows the inclination. This is not a Keplerian propagation (no
Kepler equation, no argument of perihelion), but it is periodic, deterministic and
cheap enough to evaluate every animation tick.

Scene axes:
    x toward the vernal equinox, y up (ecliptic / celestial north),
    z completes the renderer's right-handed frame.

References:
    Meeus, J. (1998). Astronomical Algorithms (2nd ed.), ch. 7 (Julian Day).
"""

import logging
import math
import random
import zlib
from datetime import datetime, timezone
from typing import Tuple

import numpy as np

from orrery_service.config import J2000_EPOCH, SECONDS_PER_DAY
from orrery_service.exceptions import OrbitModelError

logger = logging.getLogger(__name__)

JD_J2000_MIDNIGHT = 2451544.5  # Julian Day of 2000-01-01T00:00:00Z

Vector = Tuple[float, float, float]


def as_utc(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


def days_since_epoch(timestamp: datetime, epoch: datetime = J2000_EPOCH) -> float:
    """
    Elapsed days between the model epoch and a timestamp.

    Args:
        timestamp: Target time (naive values are taken as UTC)
        epoch: Reference epoch (default: 2000-01-01T00:00:00Z)

    Returns:
        Elapsed days, negative before the epoch
    """
    return (as_utc(timestamp) - as_utc(epoch)).total_seconds() / SECONDS_PER_DAY


def julian_date(timestamp: datetime) -> float:
    """Julian Day (UTC) for a timestamp."""
    return JD_J2000_MIDNIGHT + days_since_epoch(timestamp)


def time_of_day_offset(timestamp: datetime) -> float:
    """
    Small angular offset that advances with the hour of the (UTC) day.

    The half-day hour fraction is mapped onto [0, pi/6) so that bodies visibly
    drift during a session even though their orbital motion is slow.
    """
    hour_factor = (as_utc(timestamp).hour % 12) / 12.0
    return hour_factor * (math.pi / 6.0)


def _require_period(body) -> float:
    period = body.orbital_period_days
    if period is None or not math.isfinite(period) or period <= 0:
        raise OrbitModelError(f"Body {body.id!r} has no usable orbital period")
    return period


def orbital_angle(body, timestamp: datetime) -> float:
    """
    Orbital angle of a body at a timestamp.

    theta = 2*pi * (elapsed_days / period) + time_of_day_offset

    Raises:
        OrbitModelError: if the body has no usable orbital period
    """
    period = _require_period(body)
    return 2.0 * math.pi * days_since_epoch(timestamp) / period + time_of_day_offset(timestamp)


def position_on_orbit(orbit_radius: float, eccentricity: float,
                      inclination: float, theta: float) -> Vector:
    """
    Render-space position for an orbital angle.

    Args:
        orbit_radius: Nominal orbit radius (render units)
        eccentricity: Orbit eccentricity [0, 1)
        inclination: Orbit inclination (rad)
        theta: Orbital angle (rad)

    Returns:
        Tuple (x, y, z) in render units
    """
    r = orbit_radius * (1.0 - eccentricity * math.cos(theta))
    x = r * math.cos(theta)
    z = r * math.sin(theta)
    y = r * math.sin(theta) * math.sin(inclination)
    return x, y, z


def simulate_position(body, timestamp: datetime) -> Vector:
    """
    Local-model position of a body relative to its orbit center.

    The star is pinned at the origin.

    Raises:
        OrbitModelError: if the body has no usable orbital period
    """
    if body.is_star:
        return 0.0, 0.0, 0.0

    theta = orbital_angle(body, timestamp)
    return position_on_orbit(body.orbit_radius, body.eccentricity, body.inclination, theta)


def nominal_orbit_position(body) -> Vector:
    """
    Stable pseudo-random placement on the nominal (circular) orbit.

    The angle is drawn from a generator seeded with the body id, so a body lands
    on the same spot every cycle and every process.
    """
    if body.is_star:
        return 0.0, 0.0, 0.0

    rng = random.Random(zlib.crc32(body.id.encode("utf-8")))
    angle = rng.uniform(0.0, 2.0 * math.pi)
    logger.debug(f"Nominal placement for {body.id} at {math.degrees(angle):.1f} deg")
    return (
        body.orbit_radius * math.cos(angle),
        0.0,
        body.orbit_radius * math.sin(angle),
    )


def orbit_path(body, segments: int = 128) -> np.ndarray:
    """
    Sample the local-model orbit of a body for drawing an orbit line.

    Args:
        body: Catalog body
        segments: Number of line segments (closed path has segments + 1 points)

    Returns:
        Array of shape (segments + 1, 3)
    """
    if segments < 3:
        raise ValueError("An orbit path needs at least 3 segments")

    thetas = np.linspace(0.0, 2.0 * math.pi, segments + 1)
    r = body.orbit_radius * (1.0 - body.eccentricity * np.cos(thetas))

    return np.column_stack((
        r * np.cos(thetas),
        r * np.sin(thetas) * math.sin(body.inclination),
        r * np.sin(thetas),
    ))


def equatorial_to_cartesian(right_ascension_hours: float, declination_degrees: float,
                            distance: float) -> Vector:
    """
    Convert equatorial coordinates to scene Cartesian coordinates.

    Args:
        right_ascension_hours: Right ascension (hours, 0-24)
        declination_degrees: Declination (degrees)
        distance: Distance (any unit, typically AU)

    Returns:
        Tuple (x, y, z); x toward RA 0h, y toward the celestial pole, z toward
        RA 6h, matching the z = r sin(theta) sense of the local model
    """
    ra = math.radians(right_ascension_hours * 15.0)
    dec = math.radians(declination_degrees)

    return (
        distance * math.cos(dec) * math.cos(ra),
        distance * math.sin(dec),
        distance * math.cos(dec) * math.sin(ra),
    )


def ecliptic_to_scene(x: float, y: float, z: float) -> Vector:
    """Map ecliptic (x, y, z) vectors onto scene axes (x, z_ecl, y_ecl); prograde motion runs x -> z."""
    return x, z, y


def scale_to_render_units(x: float, y: float, z: float, distance: float,
                          orbit_radius: float) -> Vector:
    """
    Scale an observed vector so its length equals the catalog orbit radius.

    The scale factor is orbit_radius / distance, applied per axis. Observed
    directions are kept; only the (astronomical) magnitude is replaced.

    Raises:
        OrbitModelError: if the observed distance is not a positive finite number
    """
    if not math.isfinite(distance) or distance <= 0:
        raise OrbitModelError(f"Cannot scale observed distance {distance!r}")

    scale = orbit_radius / distance
    return x * scale, y * scale, z * scale


def vector_length(vector: Vector) -> float:
    return float(np.linalg.norm(vector))
