"""Plan model — a subscription tier in the plan catalog."""

from decimal import Decimal

from sqlalchemy import CheckConstraint, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from gymops.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Plan(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A named membership tier: price per month and length in months."""

    __tablename__ = "plans"

    plan_type: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)  # months

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_plans_amount_positive"),
        CheckConstraint("duration > 0", name="ck_plans_duration_positive"),
    )

    def __repr__(self) -> str:
        return f"<Plan(plan_type={self.plan_type!r}, amount={self.amount}, duration={self.duration})>"
