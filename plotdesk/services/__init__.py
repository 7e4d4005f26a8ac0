# Plotdesk Services
from plotdesk.services.account import AccountService
from plotdesk.services.auth import AuthService, TokenPair
from plotdesk.services.revocation import (
    DatabaseRevocationStore,
    MemoryRevocationStore,
    RevocationStore,
)

__all__ = [
    "AccountService",
    "AuthService",
    "DatabaseRevocationStore",
    "MemoryRevocationStore",
    "RevocationStore",
    "TokenPair",
]
