"""Payment log service — idempotency lookups and the append-only audit trail.

The payments_log table doubles as the webhook idempotency key store:
one row per Stripe event ID, written after the event's side effects.
"""

import logging
import uuid

from liftflow.extensions import db
from liftflow.models.payment_event import PaymentEvent
from liftflow.services.sql import upsert_insert

logger = logging.getLogger(__name__)


def event_already_processed(event_id):
    """Return True if a payments_log row exists for this Stripe event ID."""
    return (
        db.session.query(PaymentEvent.id)
        .filter_by(event_id=event_id)
        .first()
    ) is not None


def record_payment_event(event_id, event_type, user_id=None, program_id=None,
                         amount_total=None, currency=None,
                         stripe_session_id=None):
    """Append one payments_log row keyed by the Stripe event ID.

    Written as INSERT ... ON CONFLICT (event_id) DO NOTHING so a concurrent
    delivery of the same event that got past the idempotency check cannot
    fail this request or write a second row. Does not commit; the caller
    owns the transaction.

    Returns True if this call inserted the row, False if it already existed.
    """
    stmt = upsert_insert(PaymentEvent).values(
        id=str(uuid.uuid4()),
        event_id=event_id,
        type=event_type,
        user_id=user_id,
        program_id=program_id,
        amount_total=amount_total,
        currency=currency,
        stripe_session_id=stripe_session_id,
    )
    stmt = stmt.on_conflict_do_nothing(index_elements=["event_id"])
    result = db.session.execute(stmt)

    inserted = result.rowcount == 1
    if not inserted:
        logger.info(f"Payment event {event_id} was recorded by a concurrent delivery")
    return inserted
