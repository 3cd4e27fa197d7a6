"""Payment model — one purchase attempt through the payment gateway."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gymops.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Payment(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A gateway order and its latest known payment status."""

    __tablename__ = "payments"

    order_id: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    order_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    order_currency: Mapped[str] = mapped_column(String(3), default="INR", nullable=False)
    payment_status: Mapped[str] = mapped_column(
        String(20), default="initiated", index=True, nullable=False
    )  # initiated, paid, failed, cancelled, pending
    payment_session_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Customer details as sent to the gateway
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(255), index=True, nullable=True)
    customer_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Plan snapshot, when known at checkout
    plan_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    plan_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    plan_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)

    gateway_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    payment_completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    user: Mapped["User | None"] = relationship(back_populates="payments", lazy="selectin")  # type: ignore[name-defined]  # noqa: F821

    def __repr__(self) -> str:
        return f"<Payment(order_id={self.order_id!r}, amount={self.order_amount}, status={self.payment_status})>"
