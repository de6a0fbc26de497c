import os
import logging
from datetime import datetime, time

import click
from flask import Flask
from flask_cors import CORS
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from api_utils import error_response, success_response
from errors import ApiError
from extensions import db, login_manager, migrate

logger = logging.getLogger(__name__)


def _database_url():
    database_url = os.environ.get("DATABASE_URL", "sqlite:///hotel.db")
    # Fix for Heroku/Render postgres:// URLs (should be postgresql://)
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)
    return database_url


def _parse_cutoff(value):
    if isinstance(value, time):
        return value
    return datetime.strptime(value, "%H:%M").time()


def _split_list(value):
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    return tuple(value)


def load_config(app, test_config=None):
    app.config.update(
        SECRET_KEY=os.environ.get("SESSION_SECRET", "hotel_management_secret_key"),
        SQLALCHEMY_DATABASE_URI=_database_url(),
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        JWT_SECRET_KEY=os.environ.get("JWT_SECRET_KEY", "hotel-management-jwt-secret"),
        JWT_EXPIRES_HOURS=int(os.environ.get("JWT_EXPIRES_HOURS", 24)),
        TAX_RATE=float(os.environ.get("TAX_RATE", 0.10)),
        LATE_CHECKOUT_CUTOFF=os.environ.get("LATE_CHECKOUT_CUTOFF", "12:00"),
        HOTEL_TIMEZONE=os.environ.get("HOTEL_TIMEZONE", "Asia/Colombo"),
        ADMIN_ROLES=os.environ.get("ADMIN_ROLES", "Manager,Admin"),
        CORS_ORIGINS=os.environ.get("CLIENT_ORIGIN", "http://localhost:5173"),
        SEED_DATA=os.environ.get("SEED_DATA", "true").lower() in ("1", "true", "yes"),
        LOG_LEVEL=os.environ.get("LOG_LEVEL", "INFO"),
    )
    if test_config:
        app.config.update(test_config)

    app.config["LATE_CHECKOUT_CUTOFF"] = _parse_cutoff(app.config["LATE_CHECKOUT_CUTOFF"])
    app.config["ADMIN_ROLES"] = _split_list(app.config["ADMIN_ROLES"])
    app.config["CORS_ORIGINS"] = list(_split_list(app.config["CORS_ORIGINS"]))

    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("postgresql"):
        app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {
            "pool_recycle": 300,
            "pool_pre_ping": True,
        })


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(e):
        db.session.rollback()
        return error_response(e.message, e.status, e.errors)

    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        errors = []
        for err in e.errors():
            field = ".".join(str(part) for part in err["loc"]) or "body"
            message = err["msg"].removeprefix("Value error, ")
            errors.append({"field": field, "message": message})
        return error_response("Validation failed", 400, errors)

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return error_response(e.description, e.code)

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e):
        db.session.rollback()
        logger.exception("Database error")
        return error_response("Database error", 500)

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        db.session.rollback()
        logger.exception("Unhandled error")
        return error_response("Internal server error", 500)


def register_blueprints(app):
    from auth_routes import auth_bp
    from billing_routes import final_bill_bp, payment_bp
    from booking_routes import booking_bp, service_usage_bp
    from branch_routes import branch_bp
    from discount_routes import discount_bp
    from guest_routes import guest_bp
    from report_routes import report_bp
    from room_routes import room_bp, room_type_bp
    from service_routes import service_bp
    from staff_routes import staff_bp

    for blueprint in (auth_bp, branch_bp, room_type_bp, room_bp, guest_bp, staff_bp, service_bp,
                      booking_bp, service_usage_bp, discount_bp, final_bill_bp, payment_bp, report_bp):
        app.register_blueprint(blueprint)


def create_app(test_config=None):
    # create the app
    app = Flask(__name__)
    load_config(app, test_config)

    # Set up logging
    logging.basicConfig(level=app.config["LOG_LEVEL"])

    app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)
    CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}}, supports_credentials=True)

    # Initialize the extensions
    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)

    # Registers the token loaders on login_manager
    from auth import enforce_authentication
    app.before_request(enforce_authentication)

    register_blueprints(app)
    register_error_handlers(app)

    @app.route("/api/health", endpoint="health")
    def health():
        return success_response({"status": "healthy"}, "Hotel management API is running")

    @app.cli.command("init-db")
    def init_db_command():
        """Create tables and load the sample data."""
        from init_data import create_initial_data
        db.create_all()
        create_initial_data()
        click.echo("Database initialized")

    with app.app_context():
        # Import the models here so their tables will be created
        import models  # noqa: F401
        db.create_all()
        if app.config["SEED_DATA"]:
            from init_data import create_initial_data
            create_initial_data()

    return app


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    create_app().run(host="0.0.0.0", port=port, debug=False)
