# Plotdesk Models
from plotdesk.models.account import Account
from plotdesk.models.base import BaseModel
from plotdesk.models.password_reset import PasswordReset
from plotdesk.models.refresh_token import RefreshToken
from plotdesk.models.token_revocation import TokenRevocation

__all__ = [
    "Account",
    "BaseModel",
    "PasswordReset",
    "RefreshToken",
    "TokenRevocation",
]
