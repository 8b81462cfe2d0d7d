"""
Custom route decorators for access control.

- coach_required: ensures user is logged in AND has role="coach".
- program_owner_required: coach_required + the <program_id> in the URL
  belongs to the current coach. Passes the Program as `program`.
"""

from functools import wraps

from flask import abort
from flask_login import current_user, login_required

from liftflow.extensions import db


def coach_required(f):
    """Require login + coach role."""

    @wraps(f)
    @login_required
    def decorated(*args, **kwargs):
        if not current_user.is_coach:
            abort(403)
        return f(*args, **kwargs)

    return decorated


def program_owner_required(f):
    """Require login + coach role + ownership of the program in the URL."""

    @wraps(f)
    @coach_required
    def decorated(program_id, *args, **kwargs):
        from liftflow.models.program import Program

        program = db.session.get(Program, program_id)
        if program is None:
            abort(404)
        if program.coach_id != current_user.id:
            abort(403)

        return f(*args, program=program, **kwargs)

    return decorated
