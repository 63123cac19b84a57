# backend/clothstock/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def _blueprints():
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.catalog import categories_bp, sizes_bp
    from .routes.products import products_bp
    from .routes.stock import stock_bp
    from .routes.sales import sales_bp
    from .routes.returns import returns_bp
    from .routes.reports import reports_bp

    return (
        system_bp, auth_bp, categories_bp, sizes_bp, products_bp,
        stock_bp, sales_bp, returns_bp, reports_bp,
    )


def create_app(test_config: dict | None = None) -> Flask:
    """Application factory. `test_config` overrides Config before the engine is bound."""
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    db.init_app(app)
    migrate.init_app(app, db)

    # Model classes must be imported for Flask-Migrate autogenerate
    from . import models  # noqa: F401

    for bp in _blueprints():
        app.register_blueprint(bp)

    allowed = set(app.config.get("CORS_ORIGINS") or ())

    @app.after_request
    def cors(response):
        origin = request.headers.get("Origin")
        if origin and origin in allowed:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PATCH,DELETE,OPTIONS"
        return response

    from .cli import register_commands
    register_commands(app)

    return app
