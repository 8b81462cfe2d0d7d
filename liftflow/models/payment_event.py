"""Payment event model (idempotency + audit table).

Every verified webhook event is recorded by its Stripe event ID. Before
processing any event, the handler checks this table. If the event_id
already exists, it returns 200 immediately — preventing double-writes
from Stripe retries. Rows are append-only.
"""

import uuid

from liftflow.extensions import db


class PaymentEvent(db.Model):
    __tablename__ = "payments_log"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    event_id = db.Column(
        db.String(255), unique=True, nullable=False
    )  # e.g. "evt_1Abc..."
    type = db.Column(
        db.String(255), nullable=False
    )  # e.g. "checkout.session.completed"
    user_id = db.Column(db.String(36), nullable=True)
    program_id = db.Column(db.String(36), nullable=True)
    amount_total = db.Column(db.Integer, nullable=True)  # minor units (öre, cents)
    currency = db.Column(db.String(3), nullable=True)
    stripe_session_id = db.Column(db.String(255), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<PaymentEvent {self.event_id} ({self.type})>"
