"""Profile model — identity, role, and billing exemption."""

from sqlalchemy import Boolean, String, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, TimestampMixin, UUIDPrimaryKeyMixin

VALID_ROLES: tuple[str, ...] = ("guardian", "student", "admin")
VALID_ACCOUNT_STATUSES: tuple[str, ...] = ("active", "suspended", "pending", "deactivated")


class Profile(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A signed-up account. ``id`` equals the identity provider's user id."""

    __tablename__ = "profiles"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(20), default="guardian", nullable=False)

    # Account status, independent of subscription status
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)

    # Grants subscribed-equivalent access without a billing relationship
    subscription_exempt: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )

    subscription: Mapped["Subscription | None"] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "Subscription", back_populates="profile", uselist=False, lazy="selectin"
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def __repr__(self) -> str:
        return f"<Profile id={self.id} email={self.email!r} role={self.role!r}>"
