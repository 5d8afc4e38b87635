"""
Exception hierarchy for the orrery position service.

Only catalog lookups and the orbital model raise to callers. Ephemeris errors are
raised by the fetchers and recovered by the service, which falls back to the local
orbital model.
"""


class OrreryError(Exception):
    """Base class for all orrery service errors."""


class UnknownBodyError(OrreryError, KeyError):
    """Raised when a body id is not present in the catalog."""

    def __init__(self, body_id):
        self.body_id = body_id
        super().__init__(f"Unknown celestial body: {body_id!r}")

    def __str__(self):
        return self.args[0]


class OrbitModelError(OrreryError, ValueError):
    """Raised when a body cannot be placed with the local orbital model."""


class EphemerisError(OrreryError):
    """Base class for external ephemeris failures."""

    def __init__(self, message, provider=None):
        self.provider = provider
        super().__init__(message)


class EphemerisUnavailableError(EphemerisError):
    """Ephemeris service unreachable, timed out, or returned a non-2xx status."""


class MalformedEphemerisError(EphemerisError):
    """Ephemeris service answered but the payload could not be interpreted."""
