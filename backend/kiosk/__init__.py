# backend/kiosk/__init__.py
import os

from flask import Flask, request, send_from_directory

from .config import Config
from .extensions import db, migrate


def create_app(config_object=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.catalog import catalog_bp
    from .routes.customers import customers_bp
    from .routes.cashback import cashback_bp
    from .routes.points import points_bp
    from .routes.transactions import transactions_bp
    from .routes.stock import stock_bp
    from .routes.settings import settings_bp
    from .routes.kiosk import kiosk_bp
    from .routes.crypto import crypto_bp
    from .routes.visits import visits_bp
    from .routes.joint_builder import joint_builder_bp
    from .routes.prerolls import prerolls_bp
    from .routes.assets import assets_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(cashback_bp)
    app.register_blueprint(points_bp)
    app.register_blueprint(transactions_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(kiosk_bp)
    app.register_blueprint(crypto_bp)
    app.register_blueprint(visits_bp)
    app.register_blueprint(joint_builder_bp)
    app.register_blueprint(prerolls_bp)
    app.register_blueprint(assets_bp)

    @app.get("/uploads/<path:filename>")
    def uploaded_file(filename):
        folder = app.config["UPLOAD_FOLDER"]
        if not os.path.isabs(folder):
            folder = os.path.join(app.instance_path, folder)
        return send_from_directory(folder, filename)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in set(app.config.get("CORS_ORIGINS") or ()):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type, X-Kiosk-Session"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
