"""LiftFlow: program purchases and access grants for a coaching platform.

create_app() wires config, extensions, blueprints, error pages, security
headers and CLI commands. Blueprints:

- auth      /auth/*              session login for athletes and coaches
- payment   /payment/*           Stripe Checkout and the confirmation page
- access    /coach/*, /athlete/* access manager and access reads
- webhooks  /stripe/webhooks     Stripe events (CSRF-exempt)
"""

import os
import logging

import click
from flask import Flask, jsonify, redirect, render_template, url_for
from flask_login import current_user
from werkzeug.security import generate_password_hash

from liftflow.config import config_by_name
from liftflow.extensions import db, migrate, login_manager, csrf, limiter

# Stripe.js and Checkout are the only third-party origins the pages use
CONTENT_SECURITY_POLICY = "; ".join([
    "default-src 'self'",
    "script-src 'self' https://js.stripe.com",
    "style-src 'self' 'unsafe-inline'",
    "img-src 'self' data:",
    "connect-src 'self' https://api.stripe.com",
    "frame-src https://js.stripe.com https://hooks.stripe.com",
    "base-uri 'self'",
    "form-action 'self' https://checkout.stripe.com",
    "frame-ancestors 'none'",
]) + ";"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=(), payment=(self)",
    "Content-Security-Policy": CONTENT_SECURITY_POLICY,
}


def create_app(config_name=None):
    """Application factory. Raises RuntimeError if required env vars are unset."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    config_class = config_by_name[config_name]
    config_class.validate()

    app = Flask(__name__)
    app.config.from_object(config_class)

    # --- Extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)

    with app.app_context():
        from liftflow import models  # noqa: F401  (registers tables for Alembic)

    # --- Blueprints ---
    from liftflow.blueprints.auth import auth_bp
    from liftflow.blueprints.payment import payment_bp
    from liftflow.blueprints.access import access_bp
    from liftflow.blueprints.webhooks import webhooks_bp

    for blueprint in (auth_bp, payment_bp, access_bp, webhooks_bp):
        app.register_blueprint(blueprint)

    # Stripe signs the raw body; there is no form token to check
    csrf.exempt(webhooks_bp)

    @app.route("/")
    def index():
        """Logged-in users land on their programs, everyone else on login."""
        if current_user.is_authenticated:
            return redirect(url_for("access.my_access"))
        return redirect(url_for("auth.login"))

    @app.route("/healthz")
    def healthz():
        return jsonify({"status": "ok"})

    _register_error_pages(app)
    _register_security_headers(app)
    register_cli(app)

    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def _register_error_pages(app):
    for code in (403, 404, 500):
        app.register_error_handler(
            code,
            lambda e, code=code: (render_template(f"errors/{code}.html"), code),
        )


def _register_security_headers(app):
    @app.after_request
    def add_security_headers(response):
        response.headers.update(SECURITY_HEADERS)
        # HSTS only where we are served over HTTPS
        if not app.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("seed-demo")
    @click.option("--coach-email", default="coach@liftflow.local", help="Coach email")
    @click.option("--athlete-email", default="athlete@liftflow.local", help="Athlete email")
    @click.option("--password", default="liftflow123", help="Password for both users")
    def seed_demo(coach_email, athlete_email, password):
        """Create a coach, an athlete, and a purchasable demo program.

        Usage:
            flask seed-demo
            flask seed-demo --coach-email coach@example.com --password s3cret
        """
        from liftflow.models.user import User
        from liftflow.models.program import Program

        # --- 1. Coach ---
        coach = User.query.filter_by(email=coach_email).first()
        if coach:
            click.echo(f"Coach already exists: {coach_email}")
        else:
            coach = User(
                email=coach_email,
                password_hash=generate_password_hash(password),
                full_name="Demo Coach",
                role="coach",
            )
            db.session.add(coach)
            db.session.flush()
            click.echo(f"Created coach: {coach_email}")

        # --- 2. Athlete ---
        athlete = User.query.filter_by(email=athlete_email).first()
        if athlete:
            click.echo(f"Athlete already exists: {athlete_email}")
        else:
            athlete = User(
                email=athlete_email,
                password_hash=generate_password_hash(password),
                full_name="Demo Athlete",
                role="athlete",
            )
            db.session.add(athlete)
            db.session.flush()
            click.echo(f"Created athlete: {athlete_email}")

        # --- 3. Program ---
        program = Program(
            coach_id=coach.id,
            name="Demo Strength Block",
            short_description="Eight weeks of barbell basics.",
            price=199,
            currency="sek",
            is_purchasable=True,
        )
        db.session.add(program)

        db.session.commit()

        base_url = app.config["APP_BASE_URL"]

        click.echo("")
        click.echo("=" * 60)
        click.echo("Seed data created successfully!")
        click.echo("=" * 60)
        click.echo(f"  Coach:    {coach_email} / {password}")
        click.echo(f"  Athlete:  {athlete_email} / {password}")
        click.echo(f"  Program:  {program.name} (id: {program.id})")
        click.echo(f"  Login:    {base_url}/auth/login")
        click.echo("=" * 60)
