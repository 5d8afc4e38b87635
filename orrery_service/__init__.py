"""
Orrery Position Service Package

This package resolves render-space positions for the bodies of a solar system
scene, using live ephemerides when available and a simplified orbital model
otherwise.

Modules:
    catalog: immutable celestial body catalog
    orbital_model: local orbit approximation and coordinate conversions
    resolver: observed / simulated / nominal position resolution
    ephemeris_client: Astronomy API and JPL Horizons fetchers
    cache: last-known-good snapshot cache (memory + Redis)
    service: fetch-with-fallback position service
    scheduler: asyncio refresh loops
    state: viewer application state
    app: Flask JSON API
"""

__version__ = "1.0.0"
