"""
API Dependencies

FastAPI dependency injection for authentication, access guards and the
session-scoped services.

Security: JWT tokens are verified cryptographically using Supabase JWKS (ES256)
with HS256 fallback via the JWT secret. Never decode without verification.
"""

import logging
from typing import Annotated, AsyncGenerator, Optional

import jwt
from jwt import PyJWKClient
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from subie.config.settings import get_settings
from subie.domain.users import AuthUser
from subie.infrastructure.db.dependencies import (
    CategoryRepoDep,
    SessionDep,
    SubscriptionRepoDep,
    TransactionRepoDep,
    UserRepoDep,
)
from subie.infrastructure.exceptions import AccessDeniedError
from subie.services.entitlements import EntitlementProvider, build_entitlement_provider
from subie.services.guards import AuthState, RecordingNavigator, RoleGuard
from subie.services.session import SessionContext
from subie.services.subscription_store import SubscriptionStore
from subie.services.transactions import TransactionLedger


logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

# PyJWKClient caches keys internally and refreshes them periodically
_jwks_client: Optional[PyJWKClient] = None


def _get_jwks_client() -> PyJWKClient:
    """Return a singleton PyJWKClient for the Supabase JWKS endpoint."""
    global _jwks_client
    if _jwks_client is None:
        settings = get_settings()
        jwks_url = f"{settings.supabase_url}/auth/v1/.well-known/jwks.json"
        _jwks_client = PyJWKClient(jwks_url, cache_keys=True)
    return _jwks_client


def _decode_with_jwks(token: str, issuer: str) -> dict:
    """Verify JWT using Supabase JWKS endpoint (ES256 asymmetric keys)."""
    client = _get_jwks_client()
    signing_key = client.get_signing_key_from_jwt(token)
    return jwt.decode(
        token,
        signing_key.key,
        algorithms=["ES256"],
        issuer=issuer,
        audience="authenticated",
        options={"require": ["exp", "sub", "iss"]},
    )


def _decode_with_secret(token: str, secret: str, issuer: str) -> dict:
    """Verify JWT using HS256 symmetric secret (legacy Supabase signing)."""
    return jwt.decode(
        token,
        secret,
        algorithms=["HS256"],
        issuer=issuer,
        audience="authenticated",
        options={"require": ["exp", "sub", "iss"]},
    )


async def get_token_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """
    Verify a Supabase JWT and return its claims.

    Verification strategy (in order):
      1. JWKS (ES256), supports key rotation automatically.
      2. HS256 with ``SUPABASE_JWT_SECRET`` for legacy signing.

    Raises:
        HTTPException 401: token missing, expired, or invalid.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = credentials.credentials
    settings = get_settings()
    issuer = f"{settings.supabase_url}/auth/v1"

    payload: Optional[dict] = None

    # --- Strategy 1: JWKS (ES256) ---
    try:
        payload = _decode_with_jwks(token, issuer)
    except (jwt.exceptions.PyJWKClientError, jwt.InvalidTokenError) as jwks_err:
        logger.debug("JWKS verification failed, trying HS256 fallback: %s", jwks_err)

    # --- Strategy 2: HS256 fallback ---
    if payload is None and settings.supabase_jwt_secret:
        try:
            payload = _decode_with_secret(
                token, settings.supabase_jwt_secret, issuer
            )
        except jwt.ExpiredSignatureError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
            )
        except jwt.InvalidTokenError as e:
            logger.warning("HS256 JWT verification also failed: %s", e)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or unverifiable token",
        )

    if not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing user ID",
        )

    return payload


async def get_current_user_id(claims: dict = Depends(get_token_claims)) -> str:
    """Authenticated user ID (``sub`` claim)."""
    return claims["sub"]


def identity_from_claims(claims: dict) -> AuthUser:
    """Build an identity from token claims; the role comes from the user row."""
    metadata = claims.get("user_metadata") or {}
    first_name = metadata.get("first_name")
    last_name = metadata.get("last_name")
    if not first_name and metadata.get("full_name"):
        first_name, _, rest = metadata["full_name"].strip().partition(" ")
        last_name = rest or None

    return AuthUser(
        id=claims["sub"],
        email=claims.get("email"),
        first_name=first_name or None,
        last_name=last_name,
    )


async def get_current_user(
    claims: Annotated[dict, Depends(get_token_claims)],
    users: UserRepoDep,
) -> AuthUser:
    """
    Resolve the caller's identity, creating the user row on first access.

    The role is read from the database, never from the token.
    """
    user, created = await users.get_or_create(identity_from_claims(claims))
    if created:
        logger.info(f"Registered user {user.id} on first request")
    return user.to_auth_user()


CurrentUser = Annotated[AuthUser, Depends(get_current_user)]


# =============================================================================
# Access Guards
# =============================================================================

def _check_role(user: AuthUser, require_admin: bool) -> AuthUser:
    settings = get_settings()
    guard = RoleGuard(
        RecordingNavigator(),
        fallback=settings.access_denied_route,
        require_admin=require_admin,
        login_route=settings.login_route,
    )
    decision = guard.evaluate(AuthState.authenticated(user))
    if not decision.allowed:
        raise AccessDeniedError(
            decision.message,
            required=guard.required_role,
            redirect_to=decision.redirect_to,
        )
    return user


async def require_elevated_access(user: CurrentUser) -> AuthUser:
    """Admins and moderators."""
    return _check_role(user, require_admin=False)


async def require_admin(user: CurrentUser) -> AuthUser:
    """Admins only."""
    return _check_role(user, require_admin=True)


# =============================================================================
# Session-scoped Services
# =============================================================================

async def get_identity_context(user: CurrentUser) -> AsyncGenerator[SessionContext, None]:
    """Session context bound to the caller for the duration of the request."""
    context = SessionContext(user)
    try:
        yield context
    finally:
        context.dispose()


IdentityContextDep = Annotated[SessionContext, Depends(get_identity_context)]


async def get_subscription_store(
    repository: SubscriptionRepoDep,
    categories: CategoryRepoDep,
    transactions: TransactionRepoDep,
    context: IdentityContextDep,
) -> SubscriptionStore:
    return SubscriptionStore(repository, context, categories=categories, transactions=transactions)


async def get_transaction_ledger(
    repository: TransactionRepoDep,
    context: IdentityContextDep,
) -> TransactionLedger:
    return TransactionLedger(repository, context)


async def get_entitlement_provider(
    session: SessionDep,
    context: IdentityContextDep,
) -> AsyncGenerator[EntitlementProvider, None]:
    """
    The deployment's entitlement provider, initialized for the caller.
    """
    provider = build_entitlement_provider(context, session)
    await context.init()
    try:
        yield provider
    finally:
        provider.dispose()


StoreDep = Annotated[SubscriptionStore, Depends(get_subscription_store)]
LedgerDep = Annotated[TransactionLedger, Depends(get_transaction_ledger)]
EntitlementProviderDep = Annotated[EntitlementProvider, Depends(get_entitlement_provider)]
ElevatedUser = Annotated[AuthUser, Depends(require_elevated_access)]
AdminUser = Annotated[AuthUser, Depends(require_admin)]


# =============================================================================
# Re-export DB dependencies for a single import source
# Routers should import from api.dependencies, not db.dependencies directly.
# =============================================================================
from subie.infrastructure.db.dependencies import (  # noqa: E402, F401
    NotificationPreferenceRepoDep,
)
