"""Program model.

A coach-owned training program. Only the fields the payment and access
paths read are modelled here: ownership, pricing, and purchasability.
price is in major currency units (e.g. 199.00 SEK); checkout converts it
to minor units server-side so clients never dictate what they pay.
"""

import uuid

from liftflow.extensions import db


class Program(db.Model):
    __tablename__ = "programs"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    coach_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )
    name = db.Column(db.String(255), nullable=False)
    short_description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=True)
    currency = db.Column(db.String(3), nullable=True, default="sek")
    is_purchasable = db.Column(db.Boolean, default=False)
    is_archived = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    coach = db.relationship("User", back_populates="programs")
    access_grants = db.relationship(
        "ProgramAccess",
        back_populates="program",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Program {self.name}>"
