"""Account model - regular users and CMS admins."""

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from plotdesk.models.base import BaseModel


class Account(BaseModel):
    """A login identity for either the player app or the CMS.

    The same email may be registered once as a user and once as an admin;
    ``is_admin`` decides which login variant can reach the account.
    """

    __tablename__ = "accounts"

    __table_args__ = (UniqueConstraint("email", "is_admin", name="uq_accounts_email_is_admin"),)

    email: Mapped[str] = mapped_column(String(254), nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Profile
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    surname: Mapped[str] = mapped_column(String(100), nullable=False)
    avatar: Mapped[str | None] = mapped_column(String(500), nullable=True)

    @property
    def role(self) -> str:
        return "admin" if self.is_admin else "user"

    def __repr__(self) -> str:
        return f"<Account {self.email} ({self.role})>"
