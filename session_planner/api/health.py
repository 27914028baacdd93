"""Healthcheck endpoint."""
from __future__ import annotations

from flask import current_app
from flask_restx import Namespace, Resource


ns = Namespace("health", description="Service health status")


@ns.route("")
class HealthResource(Resource):
    """Simple health check reporting the running API version."""

    def get(self) -> dict[str, str]:
        return {"status": "ok", "version": current_app.config["API_VERSION"]}
