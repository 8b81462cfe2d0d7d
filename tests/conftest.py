"""Shared test fixtures for the LiftFlow test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, CSRF off)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- seed_data: a coach with two programs, a second coach, two athletes
- login: log a seeded user in through /auth/login
- sign_payload / post_webhook: Stripe-format signed webhook deliveries
"""

import hashlib
import hmac
import json
import time

import pytest
from werkzeug.security import generate_password_hash

from liftflow import create_app
from liftflow.extensions import db as _db
from liftflow.models.program import Program
from liftflow.models.user import User

TEST_PASSWORD = "liftpass123"
WEBHOOK_SECRET = "whsec_test_fake"  # matches TestConfig.STRIPE_WEBHOOK_SECRET


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def seed_data(app, db_session):
    """Seed coaches, athletes and programs.

    Returns plain IDs so tests can use them even when objects are detached
    from the session (cross-context access).
    """
    with app.app_context():
        coach = User(
            email="coach@test.com",
            password_hash=generate_password_hash(TEST_PASSWORD),
            full_name="Coach Carter",
            role="coach",
        )
        other_coach = User(
            email="other-coach@test.com",
            password_hash=generate_password_hash(TEST_PASSWORD),
            full_name="Other Coach",
            role="coach",
        )
        athlete = User(
            email="athlete@test.com",
            password_hash=generate_password_hash(TEST_PASSWORD),
            full_name="Alex Athlete",
            role="athlete",
        )
        second_athlete = User(
            email="athlete2@test.com",
            password_hash=generate_password_hash(TEST_PASSWORD),
            full_name="Sam Second",
            role="athlete",
        )
        _db.session.add_all([coach, other_coach, athlete, second_athlete])
        _db.session.flush()

        program = Program(
            coach_id=coach.id,
            name="Strength Foundations",
            price=199,
            currency="sek",
            is_purchasable=True,
        )
        private_program = Program(
            coach_id=coach.id,
            name="Private Coaching Block",
            is_purchasable=False,
        )
        other_program = Program(
            coach_id=other_coach.id,
            name="Other Coach Program",
            price=299,
            currency="sek",
            is_purchasable=True,
        )
        _db.session.add_all([program, private_program, other_program])
        _db.session.commit()

        return {
            "coach_id": coach.id,
            "coach_email": coach.email,
            "other_coach_id": other_coach.id,
            "other_coach_email": other_coach.email,
            "athlete_id": athlete.id,
            "athlete_email": athlete.email,
            "second_athlete_id": second_athlete.id,
            "program_id": program.id,
            "private_program_id": private_program.id,
            "other_program_id": other_program.id,
        }


@pytest.fixture
def login(client):
    """Return a function that logs `email` in on the shared test client."""

    def _login(email, password=TEST_PASSWORD):
        return client.post(
            "/auth/login",
            data={"email": email, "password": password},
            follow_redirects=False,
        )

    return _login


def sign_payload(payload, secret=WEBHOOK_SECRET, timestamp=None):
    """Build a Stripe-Signature header (t=...,v1=HMAC-SHA256) for payload."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture
def post_webhook(client):
    """Return a function that delivers a correctly signed webhook event."""

    def _post(event):
        payload = json.dumps(event)
        return client.post(
            "/stripe/webhooks",
            data=payload,
            content_type="application/json",
            headers={"Stripe-Signature": sign_payload(payload)},
        )

    return _post


def checkout_completed_event(event_id, user_id, program_id, session_id="cs_test_1",
                             payment_status="paid", amount_total=19900,
                             currency="sek"):
    """A checkout.session.completed event as Stripe delivers it."""
    metadata = {}
    if user_id is not None:
        metadata["user_id"] = user_id
    if program_id is not None:
        metadata["program_id"] = program_id

    return {
        "id": event_id,
        "object": "event",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": session_id,
                "object": "checkout.session",
                "mode": "payment",
                "payment_status": payment_status,
                "amount_total": amount_total,
                "currency": currency,
                "metadata": metadata,
            }
        },
    }


@pytest.fixture
def make_checkout_event():
    """Factory fixture for checkout.session.completed events."""
    return checkout_completed_event


@pytest.fixture
def signer():
    """Expose sign_payload to tests that build raw deliveries by hand."""
    return sign_payload
