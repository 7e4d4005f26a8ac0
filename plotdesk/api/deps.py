"""Request dependencies: authentication gate, role and observer guards.

Order on a protected route: ``get_current_identity`` (signature, expiry and
denylist) → ``require_role`` → optionally ``forbid_observer`` → handler.

Every credential failure on an authenticated request answers 401 so the
client knows to refresh and retry; 403 means the caller is known but not
allowed and retrying will not help.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from plotdesk.core import get_db, settings
from plotdesk.services.auth import AuthService
from plotdesk.services.errors import (
    AuthError,
    Forbidden,
    InsufficientPrivilegeError,
    RevocationStoreError,
    TokenError,
    TokenRevokedError,
    Unauthorized,
)
from plotdesk.services.mailer import Mailer
from plotdesk.services.refresh import build_refresh_validator
from plotdesk.services.revocation import RevocationStore, access_token_key
from plotdesk.services.tokens import Identity, Role, decode_access_token

logger = logging.getLogger(__name__)

BEARER_HEADERS = {"WWW-Authenticate": "Bearer"}


def to_http_exception(error: AuthError) -> HTTPException:
    """Convert a service error into the HTTP response it stands for."""
    headers = BEARER_HEADERS if error.status_code == status.HTTP_401_UNAUTHORIZED else None
    return HTTPException(status_code=error.status_code, detail=error.message, headers=headers)


def extract_bearer_token(authorization: str | None) -> str:
    """Return the token from an ``Authorization: Bearer <token>`` header.

    The header must hold exactly two whitespace-separated parts.
    """
    if not authorization:
        raise Unauthorized("Missing authorization header")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise Unauthorized("Invalid authorization header")
    return parts[1]


def get_revocation_store(request: Request) -> RevocationStore:
    """Revocation store constructed by the application lifespan."""
    store = getattr(request.app.state, "revocation_store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=RevocationStoreError.default_message,
        )
    return store


def get_mailer(request: Request) -> Mailer:
    """Mailer constructed by the application lifespan."""
    mailer = getattr(request.app.state, "mailer", None)
    if mailer is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Mail delivery is unavailable",
        )
    return mailer


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    revocations: RevocationStore = Depends(get_revocation_store),
) -> AuthService:
    """Dependency to get auth service."""
    validator = build_refresh_validator(settings.refresh_token_mode, db, revocations)
    return AuthService(db, revocations, validator)


async def get_current_identity(
    request: Request,
    revocations: RevocationStore = Depends(get_revocation_store),
) -> Identity:
    """Authenticate the request from its bearer access token.

    A revoked token is rejected before its signature is even checked. If
    the revocation store cannot be read the request is rejected as well.
    """
    try:
        token = extract_bearer_token(request.headers.get("Authorization"))

        try:
            revoked = await revocations.is_revoked(access_token_key(token))
        except RevocationStoreError:
            logger.error(f"Revocation lookup failed for: {request.method} {request.url.path}")
            raise
        if revoked:
            logger.warning(f"Revoked token used for: {request.method} {request.url.path}")
            raise TokenRevokedError()

        identity = decode_access_token(token)
    except TokenError as e:
        logger.debug(f"Rejected token for: {request.method} {request.url.path} - {e}")
        raise to_http_exception(e) from e
    except AuthError as e:
        raise to_http_exception(e) from e

    request.state.identity = identity
    return identity


def require_role(role: Role) -> Callable[..., Awaitable[Identity]]:
    """
    Use: Depends(require_role("admin"))
    Rejects every identity whose role is not exactly ``role``.
    """

    async def _checker(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role != role:
            raise to_http_exception(Forbidden())
        return identity

    return _checker


def forbid_observer(
    protected_ids: Iterable[str] | None = None,
    param: str = "id",
) -> Callable[..., Awaitable[None]]:
    """
    Use: dependencies=[Depends(forbid_observer({"<act id>"}, param="act_id"))]
    Blocks the observer account from the route. With ``protected_ids``,
    only requests whose ``param`` path parameter is listed are blocked.

    The caller's token is decoded here on its own, so the guard also works
    on routes that do not run the full authentication gate. A revoked token
    is answered with 401 here as well, so logging out always wins over the
    observer check.
    """
    protected = frozenset(protected_ids) if protected_ids is not None else None

    async def _guard(
        request: Request,
        revocations: RevocationStore = Depends(get_revocation_store),
    ) -> None:
        try:
            token = extract_bearer_token(request.headers.get("Authorization"))
            if await revocations.is_revoked(access_token_key(token)):
                raise TokenRevokedError()
            identity = decode_access_token(token)
        except Unauthorized as e:
            raise to_http_exception(e) from e
        except RevocationStoreError as e:
            logger.error(f"Revocation lookup failed for: {request.method} {request.url.path}")
            raise to_http_exception(e) from e

        observer_id = settings.observer_account_id
        if not observer_id or identity.id != observer_id:
            return
        if protected is None or request.path_params.get(param) in protected:
            logger.info(f"Observer account blocked from {request.method} {request.url.path}")
            raise to_http_exception(InsufficientPrivilegeError())

    return _guard
