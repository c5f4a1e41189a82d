from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
import logging
import os
import click
from dotenv import load_dotenv

db = SQLAlchemy()
login_manager = LoginManager()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def create_app(test_config=None):
    # Load .env if present to simplify local setup
    load_dotenv()
    app = Flask(__name__)

    # Basic config (override via env in production)
    app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "dev-secret-change-me")
    app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv(
        "DATABASE_URL", f"sqlite:///{os.path.join(app.root_path, 'slotbook.db')}"
    )
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["DEFAULT_TIMEZONE"] = os.getenv("DEFAULT_TIMEZONE", "America/Chicago")
    app.config["SLOT_GRANULARITY_MINUTES"] = _env_int("SLOT_GRANULARITY_MINUTES", 15)
    app.config["PROVIDER_TIMEOUT_SECONDS"] = _env_int("PROVIDER_TIMEOUT_SECONDS", 10)
    app.config["IDENTITY_HEADER"] = os.getenv("IDENTITY_HEADER", "X-Auth-Subject")
    app.config["ADMIN_EMAILS"] = os.getenv("ADMIN_EMAILS", "")
    app.config["ADMIN_EXTERNAL_IDS"] = os.getenv("ADMIN_EXTERNAL_IDS", "")
    app.config["GOOGLE_CLIENT_ID"] = os.getenv("GOOGLE_CLIENT_ID")
    app.config["GOOGLE_CLIENT_SECRET"] = os.getenv("GOOGLE_CLIENT_SECRET")
    app.config["GOOGLE_CALENDAR_ID"] = os.getenv("GOOGLE_CALENDAR_ID", "primary")
    app.config["ZOOM_ACCOUNT_ID"] = os.getenv("ZOOM_ACCOUNT_ID")
    app.config["ZOOM_CLIENT_ID"] = os.getenv("ZOOM_CLIENT_ID")
    app.config["ZOOM_CLIENT_SECRET"] = os.getenv("ZOOM_CLIENT_SECRET")
    app.config["LOG_LEVEL"] = os.getenv("LOG_LEVEL", "INFO")
    if test_config:
        app.config.update(test_config)

    logging.getLogger("slotbook").setLevel(app.config["LOG_LEVEL"])

    # Init extensions
    db.init_app(app)
    login_manager.init_app(app)

    from .services import init_services
    init_services(app)

    # Models import for SQLAlchemy configuration
    from . import models  # noqa: F401

    from .scheduling.errors import SchedulingError

    @app.errorhandler(SchedulingError)
    def handle_scheduling_error(err):
        return jsonify(err.to_dict()), err.status_code

    # Blueprints
    from .auth.routes import auth_bp
    from .admin.routes import admin_bp
    from .google.routes import google_bp
    from .public.routes import public_bp
    from .host.settings_routes import host_bp
    from .host.booking_routes import bookings_bp
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(google_bp)
    app.register_blueprint(public_bp)
    app.register_blueprint(host_bp)
    app.register_blueprint(bookings_bp)

    # Create tables if not exist
    with app.app_context():
        db.create_all()

    # CLI helpers
    @app.cli.command("create-host")
    @click.option("--external-id", prompt=True, help="Identity provider subject")
    @click.option("--name", prompt=True)
    @click.option("--email", default="")
    @click.option("--timezone", "tz_name", default=None)
    def create_host(external_id, name, email, tz_name):
        """Create a host account."""
        from .models import Host
        from .timeutils import is_valid_timezone

        if Host.query.filter_by(external_id=external_id).first():
            click.echo("Host already exists")
            return
        tz_name = tz_name or app.config["DEFAULT_TIMEZONE"]
        if not is_valid_timezone(tz_name):
            raise click.BadParameter(f"Unknown time zone {tz_name}", param_hint="--timezone")
        host = Host(
            external_id=external_id.strip(),
            name=name.strip(),
            email=email.strip().lower() or None,
            slug=Host.generate_slug(name),
            timezone=tz_name,
        )
        db.session.add(host)
        db.session.commit()
        click.echo(f"Created host {host.id}: {host.name} (/{host.slug})")

    @app.cli.command("seed-availability")
    @click.option("--host-id", type=int, required=True)
    def seed_availability(host_id: int):
        """Give a host the default Mon-Fri 09:00-17:00 schedule."""
        from .scheduling.availability import default_weekly_rules, replace_weekly_schedule

        rules = replace_weekly_schedule(host_id, default_weekly_rules())
        click.echo(f"Saved {len(rules)} availability rules for host {host_id}")

    @app.cli.command("complete-elapsed")
    def complete_elapsed():
        """Mark confirmed bookings that have ended as completed."""
        from .services import booking_mutator

        count = booking_mutator().complete_elapsed()
        click.echo(f"Completed {count} bookings")

    return app
