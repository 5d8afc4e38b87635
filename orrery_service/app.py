"""
Orrery HTTP Service

JSON API over the position service, used by the scene front end:

    GET /health                  service and ephemeris status
    GET /bodies                  catalog (moons nested)
    GET /bodies/<id>             one catalog body
    GET /positions               resolved positions for every body
    GET /positions/<id>          resolved position of one body
    GET /orbits/<id>             sampled orbit line of one body

Position endpoints accept ``timestamp`` (ISO 8601) and ``refresh=true`` (make one
ephemeris fetch attempt before resolving). They always answer with a complete
position set; ephemeris problems only change the reported source.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog
from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from orrery_service import __version__
from orrery_service.config import ServiceConfig
from orrery_service.exceptions import UnknownBodyError
from orrery_service.logging_config import configure_logging
from orrery_service.orbital_model import orbit_path
from orrery_service.service import PositionService

logger = structlog.get_logger(__name__)


def _parse_timestamp(value: Optional[str]) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    timestamp = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp


def create_app(service: Optional[PositionService] = None) -> Flask:
    """Build the Flask app around a PositionService (default: from environment)."""
    app = Flask(__name__)
    CORS(app)

    service = service or PositionService.from_config(ServiceConfig())
    app.config["POSITION_SERVICE"] = service

    def resolve_request():
        try:
            timestamp = _parse_timestamp(request.args.get("timestamp"))
        except ValueError:
            return None, (jsonify({"error": "Invalid timestamp, expected ISO 8601"}), 400)

        if request.args.get("refresh", "false").lower() == "true":
            return service.update(timestamp), None
        return service.current_positions(timestamp), None

    @app.route("/health", methods=["GET"])
    def health_check():
        now = datetime.now(timezone.utc)
        snapshot = service.observed_snapshot()

        freshness = "none"
        if snapshot is not None:
            freshness = "fresh" if service.resolver.is_fresh(snapshot, now) else "stale"

        return jsonify({
            "status": "healthy",
            "timestamp": now.isoformat(),
            "version": __version__,
            "services": {
                "ephemeris_provider": service.fetcher.provider if service.fetcher else None,
                "live": service.is_live,
                "observation_freshness": freshness,
                "last_fetch_error": service.last_fetch_error,
                "redis": "connected" if service.cache.redis_client is not None else "disabled",
            },
            "bodies": len(service.catalog),
        }), 200

    @app.route("/bodies", methods=["GET"])
    def list_bodies():
        bodies = [body.model_dump(mode="json") for body in service.catalog]
        return jsonify({"bodies": bodies, "count": len(bodies), "total_with_moons": len(service.catalog)})

    @app.route("/bodies/<body_id>", methods=["GET"])
    def get_body(body_id: str):
        return jsonify(service.catalog.get(body_id).model_dump(mode="json"))

    @app.route("/positions", methods=["GET"])
    def get_positions():
        resolved, error = resolve_request()
        if error:
            return error
        return jsonify(resolved.to_dict())

    @app.route("/positions/<body_id>", methods=["GET"])
    def get_body_position(body_id: str):
        service.catalog.get(body_id)
        resolved, error = resolve_request()
        if error:
            return error
        return jsonify({
            "body_id": body_id,
            "tier": resolved.tiers[body_id].value,
            "position": resolved[body_id].model_dump(mode="json"),
        })

    @app.route("/orbits/<body_id>", methods=["GET"])
    def get_orbit(body_id: str):
        body = service.catalog.get(body_id)
        try:
            segments = int(request.args.get("segments", 128))
            points = orbit_path(body, segments)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400

        return jsonify({
            "body_id": body_id,
            "parent_id": body.parent_id,
            "points": points.tolist(),
        })

    @app.errorhandler(UnknownBodyError)
    def handle_unknown_body(error):
        return jsonify({"error": str(error)}), 404

    @app.errorhandler(Exception)
    def handle_error(error):
        if isinstance(error, HTTPException):
            return jsonify({"error": error.description}), error.code

        logger.exception("unhandled_error", error=str(error))
        return jsonify({
            "error": "Internal server error",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }), 500

    return app


def main() -> None:
    configure_logging()
    app = create_app()
    logger.info("Starting orrery service")
    app.run(host="0.0.0.0", port=5000)


if __name__ == "__main__":
    main()
