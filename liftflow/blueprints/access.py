"""Access blueprint — coach access manager + athlete access reads.

Route Map:
  GET    /coach/programs/<program_id>/access    — grants for a program
  POST   /coach/programs/<program_id>/access    — assign program to athlete
  GET    /coach/programs/<program_id>/athletes  — athletes + their access
  PUT    /coach/access/<access_id>              — update expiry
  DELETE /coach/access/<access_id>              — revoke access
  GET    /athlete/access                        — my grants
  GET    /athlete/programs/<program_id>/access  — do I have access?

Coach routes require the coach to own the program the grant belongs to.
"""

import logging
from datetime import datetime, timezone

from flask import Blueprint, abort, jsonify, request
from flask_login import current_user, login_required

from liftflow.decorators import coach_required, program_owner_required
from liftflow.extensions import db
from liftflow.models.access import ProgramAccess
from liftflow.models.user import User
from liftflow.services import access_service
from liftflow.services.access_service import AccessAlreadyGranted

logger = logging.getLogger(__name__)

access_bp = Blueprint("access", __name__)


def _parse_expires_at(value):
    """Parse an ISO-8601 date/datetime; empty means unlimited (None).

    Naive values are taken as UTC. Raises ValueError on bad input.
    """
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _get_owned_access(access_id):
    """Load a grant and make sure the current coach owns its program."""
    access = db.session.get(ProgramAccess, access_id)
    if access is None:
        abort(404)
    if access.program is None or access.program.coach_id != current_user.id:
        abort(403)
    return access


# ─── Coach: per-program access ───────────────────────────────────

@access_bp.route("/coach/programs/<program_id>/access")
@program_owner_required
def program_access(program):
    return jsonify(access_service.list_program_access(program.id))


@access_bp.route("/coach/programs/<program_id>/athletes")
@program_owner_required
def available_athletes(program):
    return jsonify(access_service.list_available_athletes(program.id))


@access_bp.route("/coach/programs/<program_id>/access", methods=["POST"])
@program_owner_required
def assign_program(program):
    """Assign the program to an athlete. Body: {athlete_id, expires_at?}."""
    data = request.get_json(silent=True) or {}
    athlete_id = data.get("athlete_id")
    if not athlete_id:
        return jsonify({"error": "athlete_id is required"}), 400

    athlete = db.session.get(User, athlete_id)
    if athlete is None or athlete.role != "athlete":
        return jsonify({"error": "Athlete not found"}), 404

    try:
        expires_at = _parse_expires_at(data.get("expires_at"))
    except ValueError:
        return jsonify({"error": "expires_at must be an ISO-8601 date"}), 400

    try:
        access = access_service.assign_program(
            coach_id=current_user.id,
            program_id=program.id,
            athlete_id=athlete.id,
            expires_at=expires_at,
        )
    except AccessAlreadyGranted as e:
        return jsonify({"error": str(e)}), 409

    return jsonify(access.to_dict()), 201


# ─── Coach: single grant ─────────────────────────────────────────

@access_bp.route("/coach/access/<access_id>", methods=["PUT"])
@coach_required
def update_access(access_id):
    """Change a grant's expiry. Body: {expires_at: "2026-12-31" | null}."""
    access = _get_owned_access(access_id)
    data = request.get_json(silent=True) or {}

    try:
        expires_at = _parse_expires_at(data.get("expires_at"))
    except ValueError:
        return jsonify({"error": "expires_at must be an ISO-8601 date"}), 400

    access_service.update_access_expiry(access, expires_at)
    return jsonify(access.to_dict())


@access_bp.route("/coach/access/<access_id>", methods=["DELETE"])
@coach_required
def remove_access(access_id):
    access = _get_owned_access(access_id)
    access_service.remove_access(access)
    return jsonify({"status": "removed"})


# ─── Athlete ─────────────────────────────────────────────────────

@access_bp.route("/athlete/access")
@login_required
def my_access():
    return jsonify(access_service.list_user_access(current_user.id))


@access_bp.route("/athlete/programs/<program_id>/access")
@login_required
def my_program_access(program_id):
    return jsonify({
        "hasAccess": access_service.has_access(current_user.id, program_id),
    })
