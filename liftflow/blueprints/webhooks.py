"""Webhooks blueprint — /stripe/webhooks

The only writer of purchased program access. Machine-to-machine: every
response is JSON for Stripe, never a page. CSRF-exempt because the
request is authenticated by the Stripe-Signature header over the raw body.
"""

import logging

import stripe
from flask import Blueprint, current_app, jsonify, request

from liftflow.services.stripe_service import handle_webhook_event, verify_webhook_signature

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/stripe")


def _is_well_formed(event):
    """Stripe event envelope: string id and type, and an object under data."""
    if not isinstance(event, dict):
        return False
    if not isinstance(event.get("id"), str) or not event["id"]:
        return False
    if not isinstance(event.get("type"), str) or not event["type"]:
        return False
    data = event.get("data")
    return isinstance(data, dict) and isinstance(data.get("object"), dict)


@webhooks_bp.route("/webhooks", methods=["POST"])
def stripe_webhook():
    """Verify, then hand off to handle_webhook_event.

    400: no signature, bad or stale signature, unparseable event. Nothing
         is read from or written to the database in these cases.
    200: processed, or already processed (duplicate delivery).
    500: handling failed and was rolled back; Stripe will redeliver.
    """
    sig_header = request.headers.get("Stripe-Signature")

    if not sig_header:
        logger.warning("Webhook received without Stripe-Signature header")
        return jsonify({"error": "Missing signature"}), 400

    payload = request.get_data()

    # --- Verify signature ---
    try:
        event = verify_webhook_signature(
            payload,
            sig_header,
            current_app.config["STRIPE_WEBHOOK_SECRET"],
            current_app.config["STRIPE_WEBHOOK_TOLERANCE"],
        )
    except stripe.SignatureVerificationError as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        return jsonify({"error": "Invalid signature"}), 400
    except ValueError as e:
        logger.warning(f"Webhook body is not valid JSON: {e}")
        return jsonify({"error": "Invalid payload"}), 400

    if not _is_well_formed(event):
        logger.warning("Webhook event missing id, type or data.object")
        return jsonify({"error": "Invalid payload"}), 400

    # --- Process event (idempotent) ---
    success, message = handle_webhook_event(
        event, provider=current_app.config["PAYMENT_PROVIDER"]
    )

    if success:
        return jsonify({"status": message}), 200
    else:
        logger.error(f"Webhook processing failed for {event['id']}: {message}")
        return jsonify({"error": message}), 500
