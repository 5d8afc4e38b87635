"""
Tests for the Simplified Orbital Model

Tests the local position model and coordinate conversions:
- Orbital angle and radius modulation
- Periodicity, and the UTC-hour shift for fractional periods
- Nominal orbit placement
- Equatorial / ecliptic conversions and render scaling
- Orbit path sampling

Run with:
    python -m pytest tests/test_orbital_model.py -v
"""

import math
import unittest
from datetime import datetime, timedelta, timezone

import numpy as np

from orrery_service.catalog import CelestialBody, DEFAULT_CATALOG
from orrery_service.exceptions import OrbitModelError
from orrery_service.orbital_model import (
    days_since_epoch,
    ecliptic_to_scene,
    equatorial_to_cartesian,
    julian_date,
    nominal_orbit_position,
    orbit_path,
    orbital_angle,
    position_on_orbit,
    scale_to_render_units,
    simulate_position,
    time_of_day_offset,
    vector_length,
)

EPOCH = datetime(2000, 1, 1, tzinfo=timezone.utc)


def make_body(**kwargs):
    fields = dict(
        id="earth", name="Earth", radius=1.0, orbit_radius=20.0,
        orbital_period_days=365.25, eccentricity=0.017, inclination=0.0,
    )
    fields.update(kwargs)
    return CelestialBody(**fields)


class TestTimeHelpers(unittest.TestCase):
    """Test epoch and Julian Day helpers."""

    def test_days_since_epoch(self):
        self.assertEqual(days_since_epoch(EPOCH), 0.0)
        self.assertAlmostEqual(days_since_epoch(EPOCH + timedelta(days=10, hours=12)), 10.5)
        self.assertAlmostEqual(days_since_epoch(EPOCH - timedelta(days=2)), -2.0)

    def test_naive_timestamp_is_utc(self):
        naive = datetime(2000, 1, 2)
        self.assertAlmostEqual(days_since_epoch(naive), 1.0)

    def test_julian_date_at_j2000_noon(self):
        self.assertAlmostEqual(julian_date(datetime(2000, 1, 1, 12, tzinfo=timezone.utc)), 2451545.0)

    def test_time_of_day_offset_range(self):
        """Offset grows with the hour and wraps every 12 hours."""
        self.assertEqual(time_of_day_offset(EPOCH), 0.0)
        self.assertAlmostEqual(time_of_day_offset(EPOCH + timedelta(hours=6)), math.pi / 12)
        self.assertEqual(time_of_day_offset(EPOCH + timedelta(hours=12)), 0.0)
        for hour in range(24):
            offset = time_of_day_offset(EPOCH + timedelta(hours=hour))
            self.assertGreaterEqual(offset, 0.0)
            self.assertLess(offset, math.pi / 6)


class TestLocalModel(unittest.TestCase):
    """Test simulated positions."""

    def test_earth_at_epoch(self):
        """Theta is zero at the epoch so the body sits at perihelion on +x."""
        x, y, z = simulate_position(make_body(), EPOCH)

        self.assertAlmostEqual(x, 19.66, places=9)
        self.assertAlmostEqual(y, 0.0, places=9)
        self.assertAlmostEqual(z, 0.0, places=9)

    def test_quarter_period_angle(self):
        body = make_body(orbital_period_days=100.0)
        theta = orbital_angle(body, EPOCH + timedelta(days=25))
        self.assertAlmostEqual(theta, math.pi / 2)

    def test_periodicity_whole_day_period(self):
        """Same UTC hour one period later gives the same position."""
        mercury = DEFAULT_CATALOG.get("mercury")
        t = datetime(2024, 3, 15, 7, 30, tzinfo=timezone.utc)

        first = simulate_position(mercury, t)
        later = simulate_position(mercury, t + timedelta(days=88))

        for a, b in zip(first, later):
            self.assertAlmostEqual(a, b, places=6)

    def test_fractional_period_shifts_with_utc_hour(self):
        """
        A 365.25-day period ends six hours later in the day, so the angle also
        carries the time-of-day difference; four periods land on the same hour.
        """
        earth = DEFAULT_CATALOG.get("earth")
        t = datetime(2024, 3, 15, 0, 0, tzinfo=timezone.utc)

        one_period = orbital_angle(earth, t + timedelta(days=365.25)) - orbital_angle(earth, t)
        self.assertAlmostEqual(one_period, 2.0 * math.pi + math.pi / 12)
        shifted = np.subtract(
            simulate_position(earth, t + timedelta(days=365.25)),
            simulate_position(earth, t),
        )
        self.assertGreater(vector_length(tuple(shifted)), 1.0)

        first = simulate_position(earth, t)
        later = simulate_position(earth, t + timedelta(days=4 * 365.25))
        for a, b in zip(first, later):
            self.assertAlmostEqual(a, b, places=6)

    def test_radius_bounds(self):
        """Distance from the centre stays within R(1 - e) and R(1 + e)."""
        body = make_body(eccentricity=0.2, inclination=0.0)
        for day in range(0, 365, 7):
            r = vector_length(simulate_position(body, EPOCH + timedelta(days=day)))
            self.assertGreaterEqual(r, 20.0 * 0.8 - 1e-9)
            self.assertLessEqual(r, 20.0 * 1.2 + 1e-9)

    def test_inclination_lifts_y(self):
        x, y, z = position_on_orbit(10.0, 0.0, math.radians(30.0), math.pi / 2)
        self.assertAlmostEqual(x, 0.0, places=9)
        self.assertAlmostEqual(z, 10.0)
        self.assertAlmostEqual(y, 5.0)

    def test_star_is_origin(self):
        self.assertEqual(simulate_position(DEFAULT_CATALOG.star, EPOCH), (0.0, 0.0, 0.0))

    def test_missing_period_raises(self):
        body = make_body(orbital_period_days=None)
        with self.assertRaises(OrbitModelError):
            simulate_position(body, EPOCH)

    def test_nonpositive_period_raises(self):
        with self.assertRaises(OrbitModelError):
            orbital_angle(make_body(orbital_period_days=0.0), EPOCH)


class TestNominalPlacement(unittest.TestCase):
    """Test stable placement for bodies without orbital elements."""

    def test_stable_and_on_orbit(self):
        body = make_body(id="station", orbit_radius=1.5, orbital_period_days=None)

        first = nominal_orbit_position(body)
        second = nominal_orbit_position(body)

        self.assertEqual(first, second)
        self.assertAlmostEqual(vector_length(first), 1.5)
        self.assertEqual(first[1], 0.0)

    def test_differs_by_body_id(self):
        a = nominal_orbit_position(make_body(id="alpha", orbital_period_days=None))
        b = nominal_orbit_position(make_body(id="beta", orbital_period_days=None))
        self.assertNotEqual(a, b)


class TestConversions(unittest.TestCase):
    """Test conversions of observed coordinates into the scene frame."""

    def test_equatorial_axes(self):
        x, y, z = equatorial_to_cartesian(0.0, 0.0, 2.0)
        self.assertAlmostEqual(x, 2.0)
        self.assertAlmostEqual(y, 0.0)
        self.assertAlmostEqual(z, 0.0)

        x, y, z = equatorial_to_cartesian(6.0, 0.0, 1.5)
        self.assertAlmostEqual(x, 0.0, places=9)
        self.assertAlmostEqual(z, 1.5)

        x, y, z = equatorial_to_cartesian(12.0, 90.0, 1.0)
        self.assertAlmostEqual(y, 1.0)

    def test_equatorial_preserves_distance(self):
        vector = equatorial_to_cartesian(13.7, -22.5, 4.2)
        self.assertAlmostEqual(vector_length(vector), 4.2)

    def test_ecliptic_to_scene(self):
        self.assertEqual(ecliptic_to_scene(1.0, 2.0, 3.0), (1.0, 3.0, 2.0))

    def test_observed_frames_turn_like_local_model(self):
        """Prograde motion (x toward +z) is the same for every source of positions."""
        local = position_on_orbit(1.0, 0.0, 0.0, math.pi / 2)
        equatorial = equatorial_to_cartesian(6.0, 0.0, 1.0)
        ecliptic = ecliptic_to_scene(0.0, 1.0, 0.0)

        for vector in (local, equatorial, ecliptic):
            self.assertAlmostEqual(vector[0], 0.0, places=9)
            self.assertAlmostEqual(vector[2], 1.0)

    def test_scale_to_orbit_radius(self):
        """Scaled vector keeps its direction and takes the orbit radius as length."""
        vector = equatorial_to_cartesian(3.0, 10.0, 1.5)
        scaled = scale_to_render_units(*vector, 1.5, 20.0)

        self.assertAlmostEqual(vector_length(scaled), 20.0)
        for raw, out in zip(vector, scaled):
            self.assertAlmostEqual(out, raw * 20.0 / 1.5)

    def test_scale_rejects_bad_distance(self):
        for distance in (0.0, -1.0, float("nan"), float("inf")):
            with self.assertRaises(OrbitModelError):
                scale_to_render_units(1.0, 0.0, 0.0, distance, 20.0)


class TestOrbitPath(unittest.TestCase):
    """Test orbit line sampling."""

    def test_closed_path_shape(self):
        points = orbit_path(make_body(), segments=64)

        self.assertEqual(points.shape, (65, 3))
        np.testing.assert_allclose(points[0], points[-1], atol=1e-9)
        np.testing.assert_allclose(points[0], [19.66, 0.0, 0.0], atol=1e-9)

    def test_too_few_segments(self):
        with self.assertRaises(ValueError):
            orbit_path(make_body(), segments=2)


if __name__ == "__main__":
    unittest.main()
