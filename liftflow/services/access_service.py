"""Access service — the program access-grant store.

Responsible for:
- Conflict-safe upsert of purchased grants (webhook path)
- Access checks for athletes and the payment confirmation page
- Coach-driven assign / revoke / expiry updates and listings

At most one program_access row exists per (user_id, program_id); every
write path here respects that, either through ON CONFLICT or by surfacing
the unique-constraint violation to the caller.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from liftflow.extensions import db
from liftflow.models.access import ProgramAccess
from liftflow.models.user import User
from liftflow.services.sql import upsert_insert

logger = logging.getLogger(__name__)


class AccessAlreadyGranted(Exception):
    """Raised when a coach assigns a program the athlete already has."""


def _active_grant_filter(query, now=None):
    now = now or datetime.now(timezone.utc)
    return query.filter(
        db.or_(ProgramAccess.expires_at.is_(None), ProgramAccess.expires_at > now)
    )


# ──────────────────────────────────────────────
# Webhook path
# ──────────────────────────────────────────────

def upsert_access_grant(user_id, program_id, access_type, source,
                        external_reference):
    """Create or refresh the grant for (user_id, program_id) in one statement.

    INSERT ... ON CONFLICT (user_id, program_id) DO UPDATE: a redelivered
    webhook, or a second purchase with a different session ID, overwrites
    the same logical grant instead of failing or duplicating it. A purchase
    is unlimited, so any coach-set expiry is cleared.

    Does not commit; the caller owns the transaction.
    Returns the ProgramAccess instance.
    """
    now = datetime.now(timezone.utc)
    stmt = upsert_insert(ProgramAccess).values(
        id=str(uuid.uuid4()),
        user_id=user_id,
        program_id=program_id,
        access_type=access_type,
        source=source,
        stripe_session_id=external_reference,
        granted_at=now,
        expires_at=None,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "program_id"],
        set_={
            "access_type": stmt.excluded.access_type,
            "source": stmt.excluded.source,
            "stripe_session_id": stmt.excluded.stripe_session_id,
            "granted_at": stmt.excluded.granted_at,
            "expires_at": None,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    db.session.execute(stmt)

    # The session may already hold this row from an earlier read
    return (
        ProgramAccess.query
        .filter_by(user_id=user_id, program_id=program_id)
        .populate_existing()
        .one()
    )


# ──────────────────────────────────────────────
# Access checks
# ──────────────────────────────────────────────

def get_access(user_id, program_id):
    """Return the ProgramAccess row for (user_id, program_id), or None."""
    return ProgramAccess.query.filter_by(
        user_id=user_id, program_id=program_id
    ).first()


def has_access(user_id, program_id):
    """True if the user holds a non-expired grant for the program."""
    if not user_id or not program_id:
        return False
    query = ProgramAccess.query.filter_by(user_id=user_id, program_id=program_id)
    return _active_grant_filter(query).first() is not None


def check_payment_status(user_id, program_id, session_id=None):
    """Status check polled after the Stripe redirect.

    Reads the access store directly on every call (no caching) — its whole
    purpose is to observe whether the webhook has landed yet. The session ID
    is informational only: access for (user, program) is what counts, so a
    grant from a different checkout session still reports hasAccess.
    """
    grant = None
    if user_id and program_id:
        query = ProgramAccess.query.filter_by(user_id=user_id, program_id=program_id)
        grant = _active_grant_filter(query).first()

    if grant and session_id and grant.stripe_session_id != session_id:
        logger.info(
            f"Status check for program {program_id}: grant came from session "
            f"{grant.stripe_session_id}, client reported {session_id}"
        )

    return {
        "hasAccess": grant is not None,
        "accessType": grant.access_type if grant else None,
    }


# ──────────────────────────────────────────────
# Coach access manager
# ──────────────────────────────────────────────

def assign_program(coach_id, program_id, athlete_id, expires_at=None):
    """Assign a program to an athlete (access_type="assigned").

    Plain insert: the unique constraint rejects a second grant for the
    same athlete, which is surfaced as AccessAlreadyGranted.
    Returns the committed ProgramAccess instance.
    """
    access = ProgramAccess(
        user_id=athlete_id,
        program_id=program_id,
        access_type="assigned",
        coach_id=coach_id,
        expires_at=expires_at,
    )
    db.session.add(access)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise AccessAlreadyGranted(
            "Athlete already has access to this program"
        )

    logger.info(f"Coach {coach_id} assigned program {program_id} to {athlete_id}")
    return access


def update_access_expiry(access, expires_at):
    """Set or clear (None) the expiry of an existing grant."""
    access.expires_at = expires_at
    db.session.commit()
    logger.info(f"Access {access.id} expiry set to {expires_at}")
    return access


def remove_access(access):
    """Revoke a grant by deleting its row."""
    logger.info(
        f"Removing {access.access_type} access {access.id} "
        f"({access.user_id}/{access.program_id})"
    )
    db.session.delete(access)
    db.session.commit()


def list_program_access(program_id):
    """All grants for a program with the athlete's profile, newest first."""
    rows = (
        db.session.query(ProgramAccess, User)
        .join(User, ProgramAccess.user_id == User.id)
        .filter(ProgramAccess.program_id == program_id)
        .order_by(ProgramAccess.created_at.desc())
        .all()
    )
    result = []
    for access, user in rows:
        item = access.to_dict()
        item["profile"] = {
            "email": user.email,
            "full_name": user.full_name,
            "role": user.role,
        }
        result.append(item)
    return result


def list_user_access(user_id):
    """A user's own grants with basic program info, newest first."""
    grants = (
        ProgramAccess.query
        .filter_by(user_id=user_id)
        .order_by(ProgramAccess.created_at.desc())
        .all()
    )
    result = []
    for access in grants:
        item = access.to_dict()
        program = access.program
        item["program"] = {
            "id": program.id,
            "name": program.name,
            "price": float(program.price) if program.price is not None else None,
            "is_purchasable": bool(program.is_purchasable),
        } if program else None
        result.append(item)
    return result


def list_available_athletes(program_id):
    """Every athlete, annotated with their access to this program (if any)."""
    athletes = User.query.filter_by(role="athlete").order_by(User.email).all()
    existing = {
        a.user_id: a
        for a in ProgramAccess.query.filter_by(program_id=program_id).all()
    }

    result = []
    for athlete in athletes:
        access = existing.get(athlete.id)
        result.append({
            "user_id": athlete.id,
            "email": athlete.email,
            "full_name": athlete.full_name,
            "access_type": access.access_type if access else None,
            "access_id": access.id if access else None,
            "expires_at": (
                access.expires_at.isoformat()
                if access and access.expires_at else None
            ),
            "assigned_at": (
                access.created_at.isoformat()
                if access and access.created_at else None
            ),
        })
    return result
