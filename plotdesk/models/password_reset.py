"""Password reset links awaiting use."""

import uuid

from sqlalchemy import BigInteger, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from plotdesk.core.database import Base


class PasswordReset(Base):
    """The one live reset link of an account.

    Requesting a new link replaces the previous one. The row is deleted
    when the link is used or first presented after ``expires_at``. Only the
    SHA-256 digest of the emailed token is stored.
    """

    __tablename__ = "password_resets"

    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        primary_key=True,
    )
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    expires_at: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
