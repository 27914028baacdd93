"""REST API definition using Flask-RESTX."""
from __future__ import annotations

from flask import Blueprint, Flask
from flask_restx import Api

from .health import ns as health_ns
from .schedule import ns as schedule_ns


def register_namespaces(api: Api) -> None:
    """Register all API namespaces."""
    api.add_namespace(health_ns, path="/health")
    api.add_namespace(schedule_ns, path="/schedule")


def init_api(app: Flask) -> Api:
    """Mount the API blueprint under ``{URL_PREFIX}/api`` for ``app``."""
    url_prefix = app.config.get("URL_PREFIX", "")
    blueprint = Blueprint("api", __name__, url_prefix=f"{url_prefix}/api")
    api = Api(
        blueprint,
        version=app.config["API_VERSION"],
        title=app.config["API_TITLE"],
        doc="/docs",
    )
    register_namespaces(api)
    app.register_blueprint(blueprint)
    return api
