# backend/clinicstock/__init__.py
from logging.config import dictConfig

from flask import Flask, jsonify, request

from .config import Config, engine_options_for
from .errors import ClinicError
from .extensions import db, migrate


def _configure_logging(level: str) -> None:
    dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": "[%(asctime)s] %(levelname)s in %(name)s: %(message)s"},
        },
        "handlers": {
            "wsgi": {
                "class": "logging.StreamHandler",
                "stream": "ext://flask.logging.wsgi_errors_stream",
                "formatter": "default",
            },
        },
        "root": {"level": level, "handlers": ["wsgi"]},
    })


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    _configure_logging(app.config["LOG_LEVEL"])

    # Bound every store round trip so a hung store fails closed
    app.config.setdefault(
        "SQLALCHEMY_ENGINE_OPTIONS",
        engine_options_for(app.config["SQLALCHEMY_DATABASE_URI"], app.config["STORE_TIMEOUT_SECONDS"]),
    )

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .services.identity_service import CACHE_EXTENSION_KEY, create_identity_cache
    app.extensions[CACHE_EXTENSION_KEY] = create_identity_cache(app.config["IDENTITY_CACHE_TTL_SECONDS"])

    @app.errorhandler(ClinicError)
    def handle_clinic_error(exc: ClinicError):
        if exc.status_code >= 500:
            app.logger.error("%s on %s %s: %s", exc.code, request.method, request.path, exc)
        return jsonify(exc.to_dict()), exc.status_code

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.inventory import inventory_bp
    from .routes.users import users_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(users_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
