"""Stripe service — all Stripe API calls and webhook handling.

Responsible for:
- Creating Stripe Checkout Sessions (one-time program purchases)
- Reading Checkout Session status for the purchaser
- Verifying incoming webhooks against the raw request body
- Dispatching to event-specific handlers
- Idempotency via the payments_log table
"""

import json
import logging

import stripe
from flask import current_app

from liftflow.extensions import db
from liftflow.services.access_service import upsert_access_grant
from liftflow.services.payment_log_service import (
    event_already_processed,
    record_payment_event,
)

logger = logging.getLogger(__name__)

# Stripe rejects card payments below 3.00 SEK
MIN_AMOUNT_BY_CURRENCY = {
    "sek": 300,
}


def to_minor_units(price):
    """Convert a major-unit price (Decimal/float, e.g. 199.00) to öre/cents."""
    return int(round(float(price) * 100))


# ──────────────────────────────────────────────
# Checkout Sessions
# ──────────────────────────────────────────────

def create_checkout_session(user, program):
    """Create a one-time payment Checkout Session for a program.

    The amount comes from the Program row, never from the client.
    user_id and program_id travel in the session metadata and come back
    on checkout.session.completed, where the webhook trusts them as-is.

    Returns (url, session_id).
    Raises ValueError if the program has no valid price.
    Raises stripe.StripeError on API failures.
    """
    if program.price is None or program.price <= 0:
        raise ValueError("Program has no valid price")

    currency = (program.currency or "sek").lower()
    amount = to_minor_units(program.price)

    minimum = MIN_AMOUNT_BY_CURRENCY.get(currency)
    if minimum is not None and amount < minimum:
        raise ValueError(
            f"Price must be at least {minimum / 100:.2f} {currency.upper()}. "
            f"Current: {program.price} {currency.upper()}"
        )

    stripe.api_key = current_app.config["STRIPE_SECRET_KEY"]
    app_base_url = current_app.config["APP_BASE_URL"]

    session = stripe.checkout.Session.create(
        mode="payment",
        line_items=[{
            "price_data": {
                "currency": currency,
                "product_data": {
                    "name": program.name,
                    "description": f"Access to {program.name} training program",
                },
                "unit_amount": amount,
            },
            "quantity": 1,
        }],
        success_url=(
            f"{app_base_url}/payment/success"
            f"?session_id={{CHECKOUT_SESSION_ID}}&program_id={program.id}"
        ),
        cancel_url=f"{app_base_url}/payment/cancel?program_id={program.id}",
        metadata={
            "user_id": str(user.id),
            "program_id": str(program.id),
        },
        customer_email=user.email,
    )

    logger.info(f"Created checkout session {session.id} for user {user.id}, program {program.id}")
    return session.url, session.id


def retrieve_checkout_status(session_id):
    """Read a Checkout Session's payment state straight from Stripe.

    Read-only: access is granted by the webhook alone, never from here.
    Returns dict with payment_status, session_status, metadata.
    """
    stripe.api_key = current_app.config["STRIPE_SECRET_KEY"]
    session = stripe.checkout.Session.retrieve(session_id)

    metadata = session.metadata or {}
    return {
        "payment_status": session.payment_status,
        "session_status": session.status,
        "metadata": dict(metadata),
    }


# ──────────────────────────────────────────────
# Webhook Handling
# ──────────────────────────────────────────────

def verify_webhook_signature(payload, sig_header, secret, tolerance=300):
    """Verify a Stripe webhook signature and parse the event.

    The signature is checked over the raw, unparsed body; only verified
    bytes are ever decoded as JSON.

    Returns the event as a plain dict.
    Raises stripe.SignatureVerificationError on a bad or stale signature.
    Raises ValueError if the verified body is not valid JSON.
    """
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8")

    stripe.WebhookSignature.verify_header(payload, sig_header, secret, tolerance)
    return json.loads(payload)


def handle_webhook_event(event, provider="stripe"):
    """Process a verified Stripe webhook event.

    Idempotency: checks payments_log before processing. If the event was
    already processed, returns immediately with success so Stripe stops
    retrying.

    The grant upsert and the payments_log append commit together. On any
    failure (the idempotency lookup included) both roll back and the event
    stays unrecorded, so Stripe's retry repeats the (idempotent) work.

    Returns (success: bool, message: str).
    """
    event_id = event["id"]
    event_type = event["type"]

    try:
        # --- Idempotency check ---
        if event_already_processed(event_id):
            logger.info(f"Duplicate webhook event {event_id}, skipping")
            return True, "already_processed"

        # --- Route to handler ---
        handler = EVENT_HANDLERS.get(event_type, _handle_unrecognized)
        log_fields = handler(event, provider)
        record_payment_event(event_id, event_type, **log_fields)
        db.session.commit()
    except Exception as e:
        logger.error(f"Error handling {event_type} ({event_id}): {e}", exc_info=True)
        db.session.rollback()
        return False, str(e)

    logger.info(f"Processed webhook event {event_id} ({event_type})")
    return True, "processed"


# ──────────────────────────────────────────────
# Event Handlers
#
# Each handler performs its side effects without committing and returns
# the payments_log fields for the event.
# ──────────────────────────────────────────────

def _handle_checkout_completed(event, provider):
    """Handle checkout.session.completed.

    Grants purchased access for the user/program in the session metadata
    when the payment status is "paid". Unpaid sessions (e.g. delayed
    payment methods) are logged without a grant.
    """
    session = event["data"]["object"]
    metadata = session.get("metadata") or {}

    user_id = metadata.get("user_id")
    program_id = metadata.get("program_id")
    session_id = session.get("id")

    if not user_id or not program_id:
        logger.error(
            f"checkout.session.completed {session_id} missing metadata: "
            f"user_id={user_id!r} program_id={program_id!r}"
        )
        raise ValueError("Missing required metadata")

    payment_status = session.get("payment_status")
    if payment_status == "paid":
        upsert_access_grant(
            user_id=user_id,
            program_id=program_id,
            access_type="purchased",
            source=provider,
            external_reference=session_id,
        )
        logger.info(f"Granted access to user {user_id} for program {program_id}")
    else:
        logger.info(f"Checkout {session_id} not paid (status: {payment_status}), no access granted")

    return {
        "user_id": user_id,
        "program_id": program_id,
        "amount_total": session.get("amount_total"),
        "currency": session.get("currency"),
        "stripe_session_id": session_id,
    }


def _handle_invoice_paid(event, provider):
    """Handle invoice.paid — logged only; subscriptions grant nothing yet."""
    invoice = event["data"]["object"]
    metadata = invoice.get("metadata") or {}
    logger.info(f"Invoice paid: {invoice.get('id')}")

    return {
        "user_id": metadata.get("user_id"),
        "program_id": metadata.get("program_id"),
        "amount_total": invoice.get("amount_paid"),
        "currency": invoice.get("currency"),
    }


def _handle_subscription_event(event, provider):
    """Handle customer.subscription.created / .updated — logged only."""
    subscription = event["data"]["object"]
    metadata = subscription.get("metadata") or {}
    logger.info(f"Subscription {event['type']}: {subscription.get('id')}")

    return {
        "user_id": metadata.get("user_id"),
        "program_id": metadata.get("program_id"),
    }


def _handle_unrecognized(event, provider):
    """Unknown event types are acknowledged and logged, nothing else."""
    logger.info(f"Unhandled event type: {event['type']}")
    return {}


EVENT_HANDLERS = {
    "checkout.session.completed": _handle_checkout_completed,
    "invoice.paid": _handle_invoice_paid,
    "customer.subscription.created": _handle_subscription_event,
    "customer.subscription.updated": _handle_subscription_event,
}
