"""User model — a gym member."""

from datetime import datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gymops.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Member account with its membership and payment state."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    mobile: Mapped[str | None] = mapped_column(String(32), nullable=True)
    account_status: Mapped[str] = mapped_column(
        String(20), default="inactive", index=True, nullable=False
    )  # active, inactive, suspended, terminated
    payment_status: Mapped[str] = mapped_column(
        String(20), default="unpaid", index=True, nullable=False
    )  # paid, unpaid, pending
    plan_type: Mapped[str] = mapped_column(String(100), default="no plan", nullable=False)

    # Admin override; when set it wins over anything derived from payments
    end_date: Mapped[datetime | None] = mapped_column(nullable=True)

    payments: Mapped[list["Payment"]] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "Payment", back_populates="user", lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} account_status={self.account_status!r}>"
