# backend/stockledger/__init__.py
from pathlib import Path

from flask import Flask

from .config import Config, engine_options_for
from .extensions import db, migrate

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.config.setdefault(
        "SQLALCHEMY_ENGINE_OPTIONS",
        engine_options_for(
            app.config["SQLALCHEMY_DATABASE_URI"],
            app.config["LEDGER_LOCK_TIMEOUT_SECONDS"],
        ),
    )

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db, directory=str(MIGRATIONS_DIR))

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.rpc import rpc_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(rpc_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
