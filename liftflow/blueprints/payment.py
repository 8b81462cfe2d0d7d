"""Payment blueprint — /payment/*

Stripe Checkout for program purchases and the post-checkout pages.

Routes:
- POST /payment/checkout              — create Checkout Session, return its URL
- GET  /payment/success               — post-checkout confirmation page
- GET  /payment/status                — status check JSON (has the webhook landed?)
- GET  /payment/session/<session_id>  — Checkout Session payment state from Stripe
- GET  /payment/cancel                — user cancelled checkout

Access is only ever granted by the webhook. Nothing here writes
program_access; these routes only read it.
"""

import logging

import stripe
from flask import (
    Blueprint,
    current_app,
    jsonify,
    render_template,
    request,
)
from flask_login import current_user, login_required

from liftflow.extensions import db, limiter
from liftflow.models.program import Program
from liftflow.services import access_service
from liftflow.services.confirmation_service import ConfirmationFlow
from liftflow.services.stripe_service import (
    create_checkout_session,
    retrieve_checkout_status,
)

logger = logging.getLogger(__name__)

payment_bp = Blueprint("payment", __name__, url_prefix="/payment")


# ──────────────────────────────────────────────
# POST /payment/checkout
# ──────────────────────────────────────────────

@payment_bp.route("/checkout", methods=["POST"])
@limiter.limit("10 per minute")
@login_required
def checkout():
    """Create a Stripe Checkout Session for a program.

    Body: {"program_id": "..."}. The price is looked up server-side.
    Returns {"url": ..., "session_id": ...}; the client redirects to url.
    """
    data = request.get_json(silent=True) or {}
    program_id = data.get("program_id")
    if not program_id:
        return jsonify({"error": "program_id is required"}), 400

    program = db.session.get(Program, program_id)
    if program is None or program.is_archived or not program.is_purchasable:
        return jsonify({"error": "Program not found"}), 404

    try:
        url, session_id = create_checkout_session(current_user, program)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except stripe.StripeError as e:
        logger.error(f"Checkout error: {e}", exc_info=True)
        return jsonify({"error": "Internal error"}), 500

    return jsonify({"url": url, "session_id": session_id})


# ──────────────────────────────────────────────
# GET /payment/success
# ──────────────────────────────────────────────

@payment_bp.route("/success")
@login_required
def payment_success():
    """Post-checkout landing page.

    Runs one ConfirmationFlow for this page load: an immediate access check,
    then (if needed) a grace period and a single status check, bounded by
    CONFIRM_TIMEOUT. Always renders success, already-has-access, or an
    error with a next step. Reloading the page is the retry.
    """
    program_id = request.args.get("program_id")
    session_id = request.args.get("session_id") or None

    app = current_app._get_current_object()
    user_id = current_user.id

    def check_status(pid, sid):
        # Runs on the flow's worker thread, which has no app context
        with app.app_context():
            return access_service.check_payment_status(user_id, pid, sid)["hasAccess"]

    flow = ConfirmationFlow(
        has_access=lambda pid: access_service.has_access(user_id, pid),
        check_status=check_status,
        grace_period=app.config["CONFIRM_GRACE_PERIOD"],
        timeout=app.config["CONFIRM_TIMEOUT"],
    )
    try:
        result = flow.run(program_id, session_id)
    finally:
        # The page is rendered from `result`; a late answer has nowhere to go
        flow.dispose()

    program = db.session.get(Program, program_id) if program_id else None
    return render_template(
        "payment/success.html",
        result=result,
        program=program,
        program_id=program_id,
        session_id=session_id,
    )


# ──────────────────────────────────────────────
# GET /payment/status — status check
# ──────────────────────────────────────────────

@payment_bp.route("/status")
@login_required
def payment_status():
    """Has the current user got access to the program yet?

    Safe to call repeatedly; always reads the current access store.
    """
    program_id = request.args.get("program_id")
    if not program_id:
        return jsonify({"error": "program_id is required"}), 400

    session_id = request.args.get("session_id") or None
    return jsonify(
        access_service.check_payment_status(current_user.id, program_id, session_id)
    )


# ──────────────────────────────────────────────
# GET /payment/session/<session_id>
# ──────────────────────────────────────────────

@payment_bp.route("/session/<session_id>")
@login_required
def session_status(session_id):
    """Payment state of a Checkout Session, as Stripe reports it.

    Only the purchaser named in the session metadata may read it.
    """
    try:
        status = retrieve_checkout_status(session_id)
    except stripe.InvalidRequestError:
        return jsonify({"error": "Session not found"}), 404
    except stripe.StripeError as e:
        logger.error(f"Failed to retrieve checkout session {session_id}: {e}")
        return jsonify({"error": "Internal error"}), 500

    if status["metadata"].get("user_id") != current_user.id:
        return jsonify({"error": "Session not found"}), 404

    return jsonify(status)


# ──────────────────────────────────────────────
# GET /payment/cancel
# ──────────────────────────────────────────────

@payment_bp.route("/cancel")
@login_required
def payment_cancel():
    """User cancelled Stripe Checkout."""
    program_id = request.args.get("program_id")
    program = db.session.get(Program, program_id) if program_id else None
    return render_template("payment/cancel.html", program=program)
