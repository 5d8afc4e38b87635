"""
Celestial Body Catalog

Static, immutable catalog of the bodies shown in the orrery scene. The catalog is
built once at import time and shared read-only by the resolver, the service and
the HTTP app.

Render units:
    Radii are expressed relative to a unit Earth and halved (SIZE_SCALE); the Sun
    is additionally compressed by SUN_SCALE. Orbit radii are the real mean
    distances offset by 100 million km, then scaled by BASE_SCALE and
    DISTANCE_SCALE. Moons carry orbit radii relative to their parent.
"""

import math
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from orrery_service.config import (
    BASE_SCALE,
    DISTANCE_OFFSET_MKM,
    DISTANCE_SCALE,
    EARTH_RADIUS,
    REAL_DIAMETERS_KM,
    REAL_DISTANCES_MKM,
    SIZE_SCALE,
    SUN_SCALE,
)
from orrery_service.exceptions import UnknownBodyError


class CelestialBody(BaseModel):
    """Catalog entry for a star, planet or moon."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    radius: float = Field(gt=0)
    orbit_radius: float = Field(default=0.0, ge=0)
    orbital_period_days: Optional[float] = None
    eccentricity: float = Field(default=0.0, ge=0, lt=1)
    inclination: float = 0.0  # radians
    rotation_speed: float = 0.0
    orbit_speed: float = 0.0
    has_rings: bool = False
    is_star: bool = False
    color: Optional[str] = None
    mass: str = "Unknown"
    age: str = "Unknown"
    materials: Tuple[str, ...] = ()
    description: str = ""
    horizons_id: Optional[str] = None
    parent_id: Optional[str] = None
    moons: Tuple["CelestialBody", ...] = ()

    @property
    def is_moon(self) -> bool:
        return self.parent_id is not None


CelestialBody.model_rebuild()


class Catalog:
    """
    Immutable collection of celestial bodies.

    Iteration yields top-level bodies in catalog order; ``iter_all`` also yields
    moons, each right after its parent.
    """

    def __init__(self, bodies: Iterable[CelestialBody]):
        self._bodies: Tuple[CelestialBody, ...] = tuple(bodies)
        self._index: Dict[str, CelestialBody] = {}

        for body in self.iter_all():
            if body.id in self._index:
                raise ValueError(f"Duplicate body id in catalog: {body.id}")
            self._index[body.id] = body

        stars = [body for body in self._bodies if body.is_star]
        if len(stars) != 1:
            raise ValueError(f"Catalog must contain exactly one star, found {len(stars)}")
        self._star = stars[0]

    def __iter__(self) -> Iterator[CelestialBody]:
        return iter(self._bodies)

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, body_id) -> bool:
        return body_id in self._index

    @property
    def star(self) -> CelestialBody:
        return self._star

    def iter_all(self) -> Iterator[CelestialBody]:
        for body in self._bodies:
            yield body
            yield from body.moons

    def ids(self) -> List[str]:
        return [body.id for body in self.iter_all()]

    def get(self, body_id: str) -> CelestialBody:
        try:
            return self._index[body_id]
        except KeyError:
            raise UnknownBodyError(body_id) from None

    def find(self, body_id: str) -> Optional[CelestialBody]:
        return self._index.get(body_id)

    def max_orbit_radius(self) -> float:
        return max(body.orbit_radius for body in self._bodies)


def _planet_radius(body_id: str) -> float:
    ratio = REAL_DIAMETERS_KM[body_id] / REAL_DIAMETERS_KM["earth"]
    return EARTH_RADIUS * ratio * SIZE_SCALE


def _orbit_radius(body_id: str) -> float:
    return (REAL_DISTANCES_MKM[body_id] + DISTANCE_OFFSET_MKM) * BASE_SCALE * DISTANCE_SCALE


def _planet(body_id: str, name: str, period: float, eccentricity: float,
            inclination_deg: float, **kwargs) -> CelestialBody:
    return CelestialBody(
        id=body_id,
        name=name,
        radius=_planet_radius(body_id),
        orbit_radius=_orbit_radius(body_id),
        orbital_period_days=period,
        eccentricity=eccentricity,
        inclination=math.radians(inclination_deg),
        **kwargs,
    )


SUN = CelestialBody(
    id="sun",
    name="Sun",
    radius=_planet_radius("sun") * SUN_SCALE,
    rotation_speed=0.004,
    is_star=True,
    color="#FDB813",
    mass="1.989 × 10^30 kg",
    age="4.6 billion years",
    materials=("Hydrogen (73%)", "Helium (25%)", "Other elements (2%)"),
    description="The Sun is the star at the center of the Solar System.",
    horizons_id="10",
)

MOON = CelestialBody(
    id="moon",
    name="Moon",
    radius=0.27,
    orbit_radius=2.0,
    orbital_period_days=27.32,
    eccentricity=0.0549,
    inclination=math.radians(5.145),
    rotation_speed=0.0001,
    orbit_speed=0.03,
    mass="7.34767309 × 10^22 kg",
    age="4.51 billion years",
    materials=("Silicon", "Oxygen", "Iron", "Magnesium"),
    description="The Moon is Earth's only natural satellite.",
    horizons_id="301",
    parent_id="earth",
)

# Fictional research station: no orbital elements, always placed on its nominal orbit
MAHER_STATION = CelestialBody(
    id="maher_station",
    name="Maher Station",
    radius=0.05,
    orbit_radius=1.5,
    rotation_speed=0.0002,
    orbit_speed=0.04,
    age="2025 CE",
    materials=("Titanium alloy", "Carbon fiber", "Solar panels"),
    description="Maher Station is a scientific research station orbiting Earth.",
    parent_id="earth",
)

PLANETS = (
    _planet(
        "mercury", "Mercury", 88, 0.205, 7.0,
        orbit_speed=0.04, rotation_speed=0.004, color="#A9A9A9",
        mass="3.3011 × 10^23 kg", age="4.5 billion years",
        materials=("Iron (70%)", "Silicates", "Oxides"),
        description="Mercury is the smallest and innermost planet.",
        horizons_id="199",
    ),
    _planet(
        "venus", "Venus", 225, 0.007, 3.4,
        orbit_speed=0.015, rotation_speed=0.002, color="#E8CACA",
        mass="4.8675 × 10^24 kg", age="4.5 billion years",
        materials=("Carbon dioxide", "Nitrogen", "Sulfur dioxide"),
        description="Venus is the second planet from the Sun.",
        horizons_id="299",
    ),
    _planet(
        "earth", "Earth", 365.25, 0.017, 0.0,
        orbit_speed=0.01, rotation_speed=0.01, color="#6B93D6",
        mass="5.97237 × 10^24 kg", age="4.54 billion years",
        materials=("Nitrogen (78%)", "Oxygen (21%)", "Water", "Minerals"),
        description="Earth is the third planet from the Sun and the only known planet to harbor life.",
        horizons_id="399",
        moons=(MOON, MAHER_STATION),
    ),
    _planet(
        "mars", "Mars", 687, 0.094, 1.9,
        orbit_speed=0.008, rotation_speed=0.009, color="#E27B58",
        mass="6.4171 × 10^23 kg", age="4.6 billion years",
        materials=("Iron oxide", "Silicon dioxide", "Dust"),
        description="Mars is the fourth planet from the Sun.",
        horizons_id="499",
    ),
    _planet(
        "jupiter", "Jupiter", 4333, 0.049, 1.3,
        orbit_speed=0.004, rotation_speed=0.04, color="#C3A992",
        mass="1.8982 × 10^27 kg", age="4.6 billion years",
        materials=("Hydrogen (90%)", "Helium (10%)", "Trace elements"),
        description="Jupiter is the fifth planet and the largest in the Solar System.",
        horizons_id="599",
    ),
    _planet(
        "saturn", "Saturn", 10759, 0.057, 2.5,
        orbit_speed=0.0023, rotation_speed=0.038, color="#E3DCCB", has_rings=True,
        mass="5.6834 × 10^26 kg", age="4.5 billion years",
        materials=("Hydrogen (96%)", "Helium (3%)", "Ice rings"),
        description="Saturn is the sixth planet from the Sun.",
        horizons_id="699",
    ),
    _planet(
        "uranus", "Uranus", 30687, 0.046, 0.8,
        orbit_speed=0.0014, rotation_speed=0.03, color="#CAE1E9",
        mass="8.6810 × 10^25 kg", age="4.5 billion years",
        materials=("Hydrogen (83%)", "Helium (15%)", "Methane (2%)"),
        description="Uranus is the seventh planet from the Sun.",
        horizons_id="799",
    ),
    _planet(
        "neptune", "Neptune", 60190, 0.01, 1.8,
        orbit_speed=0.0008, rotation_speed=0.032, color="#5B5DDF",
        mass="1.02413 × 10^26 kg", age="4.5 billion years",
        materials=("Hydrogen (80%)", "Helium (19%)", "Methane (1%)"),
        description="Neptune is the eighth and farthest planet from the Sun.",
        horizons_id="899",
    ),
    _planet(
        "pluto", "Pluto", 90560, 0.248, 17.2,
        orbit_speed=0.0004, rotation_speed=0.003, color="#BDB5AB",
        mass="1.303 × 10^22 kg", age="4.6 billion years",
        materials=("Nitrogen ice", "Methane ice", "Carbon monoxide ice"),
        description="Pluto is a dwarf planet in the Kuiper belt.",
        horizons_id="999",
    ),
)

BLACK_HOLE = CelestialBody(
    id="black_hole",
    name="Black Hole",
    radius=4.0,
    orbit_radius=_orbit_radius("pluto") * 1.5,
    orbital_period_days=500000,
    eccentricity=0.7,
    inclination=math.radians(45.0),
    rotation_speed=0.01,
    color="#000000",
    mass="Unknown (millions of solar masses)",
    age="Unknown (billions of years)",
    materials=("Highly compressed matter", "Event horizon"),
    description="A black hole is a region of spacetime where gravity is so strong nothing escapes.",
)

DEFAULT_CATALOG = Catalog((SUN,) + PLANETS + (BLACK_HOLE,))
