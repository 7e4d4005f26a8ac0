"""Server-side refresh token records for the stateful refresh mode."""

import uuid

from sqlalchemy import BigInteger, Boolean, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from plotdesk.core.database import Base


class RefreshToken(Base):
    """A refresh token that is still allowed to mint access tokens.

    Created at login, deleted on logout or the first time the token is
    presented after its expiry. The raw token is never stored, only its
    SHA-256 digest.
    """

    __tablename__ = "refresh_tokens"

    value_hash: Mapped[str] = mapped_column(String(64), primary_key=True)
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False)
    # Unix timestamp copied from the token's exp claim, used by the purge task
    expires_at: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
