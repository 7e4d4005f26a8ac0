"""Revoked tokens - shared denylist that survives process restarts."""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from plotdesk.core.database import Base


class TokenRevocation(Base):
    """A revoked token identified by a digest of its raw value.

    Entries are created on logout and purged once ``expires_at`` (the
    token's own exp claim) has passed.
    """

    __tablename__ = "token_revocations"

    key: Mapped[str] = mapped_column(String(80), primary_key=True)
    account_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    role: Mapped[str | None] = mapped_column(String(16), nullable=True)
    expires_at: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
