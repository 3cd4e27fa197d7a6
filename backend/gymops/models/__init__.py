"""SQLAlchemy models for GymOps.

All models are imported here so that ``Base.metadata`` sees every table.
If you add a new model, import it in this file.
"""

from gymops.models.payment import Payment
from gymops.models.plan import Plan
from gymops.models.user import User

__all__ = [
    "Payment",
    "Plan",
    "User",
]
