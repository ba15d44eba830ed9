# backend/salonpos/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate
from .time_utils import CLOCK_EXTENSION_KEY


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # None means the system clock; tests install a FixedClock here
    app.extensions.setdefault(CLOCK_EXTENSION_KEY, None)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.transactions import transactions_bp, clients_bp
    from .routes.promotions import promotions_bp
    from .routes.deposits import deposits_bp, reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(transactions_bp)
    app.register_blueprint(clients_bp)
    app.register_blueprint(promotions_bp)
    app.register_blueprint(deposits_bp)
    app.register_blueprint(reports_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
