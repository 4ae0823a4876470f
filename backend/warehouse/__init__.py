# backend/warehouse/__init__.py
from datetime import timedelta

from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # One in-memory store per authenticated session
    from .services.gateway import RemoteDataGateway
    from .services.notifications import NotificationCenter
    from .services.store import WarehouseStore
    from .services.store_registry import StoreRegistry

    def _new_store() -> WarehouseStore:
        return WarehouseStore(
            RemoteDataGateway(),
            notifications=NotificationCenter(app.config["NOTIFICATION_BUFFER_SIZE"]),
        )

    app.extensions["warehouse_stores"] = StoreRegistry(
        _new_store,
        max_idle=timedelta(hours=app.config["SESSION_IDLE_TIMEOUT_HOURS"]),
    )

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.products import products_bp
    from .routes.suppliers import suppliers_bp
    from .routes.receipts import receipts_bp
    from .routes.transfers import transfers_bp
    from .routes.users import users_bp
    from .routes.reports import reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(suppliers_bp)
    app.register_blueprint(receipts_bp)
    app.register_blueprint(transfers_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(reports_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
