"""
Extension singletons for LiftFlow.

Instantiated unbound here and attached in create_app() with init_app(),
so blueprints and services can import them without importing the app.

- db:            Flask-SQLAlchemy (users, programs, program_access, payments_log)
- migrate:       Alembic via Flask-Migrate
- login_manager: session login for athletes and coaches
- csrf:          form CSRF; the Stripe webhook blueprint is exempted
- limiter:       per-route limits on login and checkout
"""

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_wtf.csrf import CSRFProtect
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

db = SQLAlchemy()
migrate = Migrate()
csrf = CSRFProtect()

# In-process counters; limits are only applied where a route asks for them
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    storage_uri="memory://",
)

login_manager = LoginManager()
login_manager.login_view = "auth.login"
login_manager.login_message = "Please log in to continue."
login_manager.login_message_category = "info"


@login_manager.user_loader
def load_user(user_id):
    """Resolve the session's user ID to a User row (None logs the session out)."""
    from liftflow.models.user import User

    return db.session.get(User, user_id)
