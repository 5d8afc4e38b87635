"""
Ephemeris Clients

External position fetchers used by the service layer. Each fetcher makes a single
attempt per refresh cycle and either returns an ObservedSnapshot or raises an
EphemerisError; the caller decides how to fall back.

Providers:
- AstronomyApiFetcher: api.astronomyapi.com, topocentric RA/Dec + distance
- HorizonsFetcher: JPL Horizons, heliocentric ecliptic state vectors

Failure mapping:
- timeout, connection error, non-2xx status -> EphemerisUnavailableError
- undecodable JSON, missing table/vector block -> MalformedEphemerisError
"""

import re
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Tuple

import requests
import structlog

from orrery_service.catalog import DEFAULT_CATALOG, Catalog
from orrery_service.config import ASTRONOMY_API_BASE, HORIZONS_API_URL, ServiceConfig
from orrery_service.exceptions import (
    EphemerisError,
    EphemerisUnavailableError,
    MalformedEphemerisError,
)
from orrery_service.orbital_model import (
    as_utc,
    ecliptic_to_scene,
    equatorial_to_cartesian,
    julian_date,
    vector_length,
)
from orrery_service.positions import ObservedPosition, ObservedSnapshot, ObserverLocation

logger = structlog.get_logger(__name__)

ASTRONOMY_API_BODIES = (
    "sun", "moon", "mercury", "venus", "earth", "mars",
    "jupiter", "saturn", "uranus", "neptune", "pluto",
)

_HORIZONS_BLOCK = re.compile(r"\$\$SOE\s*(.*?)\s*\$\$EOE", re.DOTALL)


class EphemerisFetcher:
    """Base class for external position providers."""

    provider = "base"

    def __init__(self, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_observed(self, timestamp: Optional[datetime] = None,
                       observer: Optional[ObserverLocation] = None) -> ObservedSnapshot:
        raise NotImplementedError

    def _get_json(self, url: str, **kwargs) -> dict:
        try:
            response = self.session.get(url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            raise EphemerisUnavailableError(f"{self.provider} request timed out: {e}",
                                            provider=self.provider) from e
        except requests.exceptions.RequestException as e:
            raise EphemerisUnavailableError(f"{self.provider} request failed: {e}",
                                            provider=self.provider) from e

        try:
            return response.json()
        except ValueError as e:
            raise MalformedEphemerisError(f"{self.provider} returned invalid JSON: {e}",
                                          provider=self.provider) from e


def _parse_right_ascension(value: dict) -> float:
    hours = float(value["hours"])
    if "minutes" in value:
        hours += float(value["minutes"]) / 60.0 + float(value.get("seconds", 0)) / 3600.0
    return hours


def _parse_declination(value: dict) -> float:
    raw = str(value["degrees"]).strip()
    degrees = float(raw)
    if "minutes" in value:
        sign = -1.0 if raw.startswith("-") else 1.0
        degrees = sign * (
            abs(degrees) + float(value["minutes"]) / 60.0 + float(value.get("seconds", 0)) / 3600.0
        )
    return degrees


def _optional_float(value) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class AstronomyApiFetcher(EphemerisFetcher):
    """
    Fetch topocentric body positions from the Astronomy API.

    Positions are returned as RA/Dec/distance (AU from Earth) and converted to
    Cartesian vectors; the resolver only uses their direction.
    """

    provider = "astronomyapi"

    def __init__(self, app_id: str, app_secret: str, base_url: str = ASTRONOMY_API_BASE,
                 timeout: float = 10.0, session: Optional[requests.Session] = None,
                 bodies: Iterable[str] = ASTRONOMY_API_BODIES):
        super().__init__(timeout=timeout, session=session)
        self.app_id = app_id
        self.app_secret = app_secret
        self.base_url = base_url.rstrip("/")
        self.bodies = tuple(bodies)

    def _params(self, timestamp: datetime, observer: ObserverLocation,
                bodies: Iterable[str]) -> dict:
        date = timestamp.strftime("%Y-%m-%d")
        return {
            "latitude": observer.latitude,
            "longitude": observer.longitude,
            "elevation": observer.elevation,
            "from_date": date,
            "to_date": date,
            "time": timestamp.strftime("%H:%M:%S"),
            "bodies": ",".join(bodies),
        }

    def fetch_observed(self, timestamp=None, observer=None) -> ObservedSnapshot:
        """
        Fetch positions for all configured bodies in a single request.

        Raises:
            EphemerisUnavailableError: transport failure or non-2xx response
            MalformedEphemerisError: payload without usable rows
        """
        timestamp = as_utc(timestamp or datetime.now(timezone.utc))
        observer = observer or ObserverLocation()

        payload = self._get_json(
            f"{self.base_url}/bodies/positions",
            params=self._params(timestamp, observer, self.bodies),
            auth=(self.app_id, self.app_secret),
        )
        positions = self.parse_positions(payload)

        if not positions:
            raise MalformedEphemerisError("Astronomy API returned no usable rows",
                                          provider=self.provider)

        logger.info("ephemeris_fetched", provider=self.provider, bodies=len(positions))
        return ObservedSnapshot(
            provider=self.provider,
            fetched_at=datetime.now(timezone.utc),
            positions=positions,
        )

    def parse_positions(self, payload: dict) -> Dict[str, ObservedPosition]:
        """
        Parse a /bodies/positions response into observed positions.

        Rows that cannot be interpreted are skipped; a payload without a table
        raises MalformedEphemerisError.
        """
        try:
            rows = payload["data"]["table"]["rows"]
        except (KeyError, TypeError) as e:
            raise MalformedEphemerisError(f"Unexpected Astronomy API payload: missing {e}",
                                          provider=self.provider) from e

        positions = {}
        for row in rows:
            try:
                body_id = str(row["entry"]["id"]).lower()
                cell = row["cells"][0]
                equatorial = cell["position"]["equatorial"]
                ra_hours = _parse_right_ascension(equatorial["rightAscension"])
                dec_degrees = _parse_declination(equatorial["declination"])
                distance = float(cell["distance"]["fromEarth"]["au"])
            except (KeyError, IndexError, TypeError, ValueError) as e:
                logger.warning("ephemeris_row_skipped", provider=self.provider, error=str(e))
                continue

            x, y, z = equatorial_to_cartesian(ra_hours, dec_degrees, distance)
            constellation = (cell["position"].get("constellation") or {}).get("name")
            phase = ((cell.get("extraInfo") or {}).get("phase") or {}).get("fraction")

            positions[body_id] = ObservedPosition(
                body_id=body_id,
                x=x, y=y, z=z,
                distance=distance,
                right_ascension_hours=ra_hours,
                declination_degrees=dec_degrees,
                constellation=constellation,
                phase_fraction=_optional_float(phase),
            )

        return positions

    def check_availability(self) -> bool:
        """Single Sun request; True when the API answers with a 2xx status."""
        now = datetime.now(timezone.utc)
        try:
            self._get_json(
                f"{self.base_url}/bodies/positions/sun",
                params={
                    "latitude": 0, "longitude": 0, "elevation": 0,
                    "from_date": now.strftime("%Y-%m-%d"),
                    "to_date": now.strftime("%Y-%m-%d"),
                    "time": now.strftime("%H:%M:%S"),
                },
                auth=(self.app_id, self.app_secret),
            )
        except EphemerisError as e:
            logger.warning("ephemeris_unavailable", provider=self.provider, error=str(e))
            return False
        return True


class HorizonsFetcher(EphemerisFetcher):
    """
    Fetch heliocentric ecliptic state vectors from JPL Horizons.

    One request per body; bodies that fail are skipped. The star is not queried
    (it is pinned at the origin) and moons are resolved relative to their parent.
    """

    provider = "horizons"

    def __init__(self, url: str = HORIZONS_API_URL, timeout: float = 10.0,
                 session: Optional[requests.Session] = None, catalog: Catalog = DEFAULT_CATALOG):
        super().__init__(timeout=timeout, session=session)
        self.url = url
        self.targets = {
            body.id: body.horizons_id
            for body in catalog
            if body.horizons_id and not body.is_star
        }

    def fetch_observed(self, timestamp=None, observer=None) -> ObservedSnapshot:
        """
        Fetch vectors for every catalog body with a Horizons id.

        Raises:
            EphemerisError: when no body could be fetched (the last error seen)
        """
        timestamp = timestamp or datetime.now(timezone.utc)
        jd = julian_date(timestamp)

        positions = {}
        last_error: Optional[EphemerisError] = None

        for body_id, horizons_id in self.targets.items():
            try:
                x, y, z = self.fetch_vector(horizons_id, jd)
            except EphemerisError as e:
                logger.warning("horizons_body_failed", body=body_id, error=str(e))
                last_error = e
                continue

            distance = vector_length((x, y, z))
            positions[body_id] = ObservedPosition(body_id=body_id, x=x, y=y, z=z, distance=distance)

        if not positions:
            raise last_error or MalformedEphemerisError("Horizons returned no vectors",
                                                        provider=self.provider)

        logger.info("ephemeris_fetched", provider=self.provider, bodies=len(positions))
        return ObservedSnapshot(
            provider=self.provider,
            fetched_at=datetime.now(timezone.utc),
            positions=positions,
        )

    def fetch_vector(self, horizons_id: str, jd: float) -> Tuple[float, float, float]:
        """Heliocentric position of one body in scene axes (AU)."""
        payload = self._get_json(self.url, params={
            "format": "json",
            "COMMAND": f"'{horizons_id}'",
            "EPHEM_TYPE": "VECTORS",
            "CENTER": "'@10'",
            "TLIST": f"'{jd:.6f}'",
            "TLIST_TYPE": "JD",
            "REF_PLANE": "ECLIPTIC",
            "VEC_TABLE": "1",
            "VEC_CORR": "NONE",
            "OUT_UNITS": "AU-D",
            "CSV_FORMAT": "YES",
        })

        if "error" in payload:
            raise MalformedEphemerisError(f"Horizons error: {payload['error']}",
                                          provider=self.provider)

        return ecliptic_to_scene(*self.parse_vector(payload.get("result", "")))

    def parse_vector(self, result: str) -> Tuple[float, float, float]:
        """
        Extract the first (x, y, z) row between $$SOE and $$EOE.

        CSV rows look like: ``JDTDB, Calendar Date, X, Y, Z,``
        """
        match = _HORIZONS_BLOCK.search(result or "")
        if not match:
            raise MalformedEphemerisError("No $$SOE/$$EOE vector block in Horizons result",
                                          provider=self.provider)

        first_line = match.group(1).strip().splitlines()[0]
        fields = [field.strip() for field in first_line.split(",")]
        try:
            return float(fields[2]), float(fields[3]), float(fields[4])
        except (IndexError, ValueError) as e:
            raise MalformedEphemerisError(f"Unparseable Horizons vector row: {first_line!r}",
                                          provider=self.provider) from e


def build_fetcher(config: ServiceConfig) -> Optional[EphemerisFetcher]:
    """Create the configured fetcher, or None for purely simulated positions."""
    provider = config.EPHEMERIS_PROVIDER

    if provider == "horizons":
        return HorizonsFetcher(url=config.HORIZONS_API_URL, timeout=config.EPHEMERIS_TIMEOUT_S)

    if provider == "astronomyapi":
        if not config.has_astronomy_credentials:
            logger.warning("astronomy_api_disabled", reason="missing app id or secret")
            return None
        return AstronomyApiFetcher(
            config.ASTRONOMY_APP_ID,
            config.ASTRONOMY_APP_SECRET,
            base_url=config.ASTRONOMY_API_BASE,
            timeout=config.EPHEMERIS_TIMEOUT_S,
        )

    if provider != "none":
        logger.warning("unknown_ephemeris_provider", provider=provider)
    return None
