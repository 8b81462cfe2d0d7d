# Models package — import all models here so Alembic can discover them.

from liftflow.models.user import User  # noqa: F401
from liftflow.models.program import Program  # noqa: F401
from liftflow.models.access import ProgramAccess  # noqa: F401
from liftflow.models.payment_event import PaymentEvent  # noqa: F401
