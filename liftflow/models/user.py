"""User model.

Stores authentication credentials, profile info, and the role claim
(coach | athlete) that gates the coach-only access manager.
Flask-Login integration via UserMixin.
"""

import uuid

from flask_login import UserMixin

from liftflow.extensions import db


class User(UserMixin, db.Model):
    __tablename__ = "users"

    ROLES = ["coach", "athlete"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(255))
    role = db.Column(
        db.String(20), nullable=False, default="athlete"
    )  # coach | athlete
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    programs = db.relationship(
        "Program", back_populates="coach", lazy="dynamic"
    )
    program_access = db.relationship(
        "ProgramAccess",
        foreign_keys="ProgramAccess.user_id",
        back_populates="user",
        lazy="dynamic",
    )

    @property
    def is_coach(self):
        return self.role == "coach"

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"
