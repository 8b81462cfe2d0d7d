"""Program access model (the access-grant store).

One row per (user_id, program_id), enforced by a unique constraint.
Rows are created by a coach assignment (access_type="assigned") or by the
Stripe webhook on a paid checkout (access_type="purchased"). The webhook
path never inserts directly: it goes through
access_service.upsert_access_grant, which resolves conflicts on the unique
constraint in a single statement.
"""

import uuid

from liftflow.extensions import db


class ProgramAccess(db.Model):
    __tablename__ = "program_access"
    __table_args__ = (
        db.UniqueConstraint(
            "user_id", "program_id", name="uq_program_access_user_program"
        ),
    )

    ACCESS_TYPES = ["assigned", "purchased"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False, index=True
    )
    program_id = db.Column(
        db.String(36),
        db.ForeignKey("programs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    access_type = db.Column(
        db.String(20), nullable=False
    )  # assigned | purchased
    source = db.Column(db.String(50), nullable=True)  # "stripe" | None (coach)
    stripe_session_id = db.Column(
        db.String(255), nullable=True
    )  # e.g. "cs_test_a1B2..."
    coach_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )  # granting coach for assignments
    granted_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    expires_at = db.Column(
        db.DateTime(timezone=True), nullable=True
    )  # None = unlimited
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    user = db.relationship(
        "User", foreign_keys=[user_id], back_populates="program_access"
    )
    coach = db.relationship("User", foreign_keys=[coach_id])
    program = db.relationship("Program", back_populates="access_grants")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "program_id": self.program_id,
            "access_type": self.access_type,
            "source": self.source,
            "stripe_session_id": self.stripe_session_id,
            "coach_id": self.coach_id,
            "granted_at": self.granted_at.isoformat() if self.granted_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<ProgramAccess {self.user_id}/{self.program_id} ({self.access_type})>"
