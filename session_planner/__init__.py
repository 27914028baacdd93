from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import click
from flask import Flask, current_app
from flask.cli import with_appcontext

from .config import Config, _normalise_prefix


def _configure_logging(app: Flask) -> None:
    # app.logger is the "session_planner" logger, parent of the engine loggers.
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO
    app.logger.setLevel(level)


def create_app(config_class: type[Config] = Config) -> Flask:
    app = Flask(__name__, static_folder=None)
    app.config.from_object(config_class)
    app.config["URL_PREFIX"] = _normalise_prefix(app.config.get("URL_PREFIX", ""))

    _configure_logging(app)

    from .api import init_api

    init_api(app)

    @app.cli.command("plan")
    @click.argument("payload", type=click.Path(exists=True, dir_okay=False, path_type=Path))
    @click.option(
        "--output",
        "-o",
        type=click.Path(dir_okay=False, path_type=Path),
        default=None,
        help="Write the schedule to this file instead of stdout.",
    )
    @with_appcontext
    def plan(payload: Path, output: Optional[Path]) -> None:
        """Generate sessions from a JSON payload (criteria, courses, learners)."""
        from .planner import generate_schedule

        data = json.loads(payload.read_text(encoding="utf-8"))
        try:
            result = generate_schedule(
                data["criteria"],
                data.get("courses", []),
                data.get("learners", []),
                grouping_keys=data.get("grouping_keys")
                or current_app.config["DEFAULT_GROUPING_KEYS"],
                functional_area=data.get("functional_area")
                or current_app.config["DEFAULT_FUNCTIONAL_AREA"],
            )
        except KeyError as exc:
            raise click.ClickException(f"Payload is missing {exc.args[0]!r}") from exc
        except ValueError as exc:
            raise click.ClickException(str(exc)) from exc

        rendered = json.dumps(result.to_dict(), indent=2, ensure_ascii=False)
        if output is None:
            click.echo(rendered)
        else:
            output.write_text(rendered + "\n", encoding="utf-8")
            click.echo(f"{result.summary} -> {output}")

    return app
