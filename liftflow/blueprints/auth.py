"""Auth blueprint — /auth/*

Email + password login and logout. Account creation is out of band
(the identity provider, or `flask seed-demo` locally); this only issues
the session that carries the user ID and role.
"""

from flask import (
    Blueprint,
    flash,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_login import current_user, login_user, logout_user
from werkzeug.security import check_password_hash

from liftflow.extensions import limiter
from liftflow.models.user import User

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _safe_next(url):
    """Only same-site relative paths; anything else (incl. //host) becomes /."""
    if not url or not url.startswith("/") or url.startswith("//"):
        return "/"
    return url


def _login_failed(message, email, status):
    flash(message, "error")
    return render_template(
        "auth/login.html",
        email=email,
        next_url=request.form.get("next", ""),
    ), status


# ──────────────────────────────────────────────
# GET/POST /auth/login?next=/payment/success?...
# ──────────────────────────────────────────────

@auth_bp.route("/login", methods=["GET", "POST"])
@limiter.limit("15 per minute", methods=["POST"])
def login():
    """Log in and continue to `next`.

    `next` is usually the post-checkout page, so the purchaser comes back
    to the confirmation with program_id and session_id intact.
    """
    if current_user.is_authenticated:
        return redirect(_safe_next(request.args.get("next")))

    if request.method == "GET":
        return render_template(
            "auth/login.html",
            next_url=request.args.get("next", ""),
        )

    email = request.form.get("email", "").lower().strip()
    password = request.form.get("password", "")

    if not email or not password:
        return _login_failed("Email and password are required.", email, 400)

    user = User.query.filter_by(email=email).first()
    if user is None or not check_password_hash(user.password_hash, password):
        return _login_failed("Invalid email or password.", email, 401)
    if not user.is_active:
        return _login_failed("Your account has been deactivated.", email, 403)

    login_user(user, remember=bool(request.form.get("remember")))

    return redirect(_safe_next(request.form.get("next") or request.args.get("next")))


# ──────────────────────────────────────────────
# GET /auth/logout
# ──────────────────────────────────────────────

@auth_bp.route("/logout")
def logout():
    logout_user()
    flash("You have been logged out.", "info")
    return redirect(url_for("auth.login"))
