"""JWT authentication and RBAC middleware for API endpoints.

Provides:
- create_access_token(): Issue JWT tokens with user-id and role claims
- verify_jwt(): FastAPI dependency that validates JWT Bearer tokens
- require_role(): Factory that returns a dependency enforcing role-based access
- resolve_user_id(): Pick the user a request acts on behalf of
- Role enum: ADMIN, TRADER, VIEWER

Identity is issued elsewhere; this service only verifies tokens. In
development mode (DEBUG=true), authentication is bypassed and all
requests are treated as the "dev-user" with ADMIN role.
"""

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Annotated, Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from trade_risk.core.config import settings

logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------
class Role(str, Enum):
    """User roles.

    ADMIN  — Full access, may act on behalf of any user.
    TRADER — Can trade and open a portfolio for itself.
    VIEWER — Read-only access to portfolios, trades and risk.
    """

    ADMIN = "ADMIN"
    TRADER = "TRADER"
    VIEWER = "VIEWER"


# Role hierarchy: higher roles inherit permissions from lower ones
_ROLE_HIERARCHY: dict[Role, set[Role]] = {
    Role.ADMIN: {Role.ADMIN, Role.TRADER, Role.VIEWER},
    Role.TRADER: {Role.TRADER, Role.VIEWER},
    Role.VIEWER: {Role.VIEWER},
}


# ---------------------------------------------------------------------------
# Token creation
# ---------------------------------------------------------------------------
def create_access_token(
    subject: str,
    role: str = "VIEWER",
    user_id: Optional[int] = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token with role and user-id claims.

    Args:
        subject: User identifier (username).
        role: User role (ADMIN, TRADER, VIEWER).
        user_id: Numeric user id, emitted as the ``uid`` claim.
        expires_delta: Custom expiry. Defaults to settings.jwt_expiry_minutes.

    Returns:
        Encoded JWT string.
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.jwt_expiry_minutes)
    )
    payload = {
        "sub": subject,
        "uid": user_id,
        "role": role,
        "exp": expire,
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(
        payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm
    )


# ---------------------------------------------------------------------------
# Token verification dependency
# ---------------------------------------------------------------------------
async def verify_jwt(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> dict:
    """Validate JWT Bearer token. Bypassed when DEBUG=true.

    Returns the decoded payload dict with at least {"sub", "uid", "role"}.
    """
    if settings.debug:
        return {"sub": "dev-user", "uid": None, "role": "ADMIN"}

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        payload.setdefault("role", "VIEWER")
        payload.setdefault("uid", None)
        return payload
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )


# Typed alias for use in route signatures
CurrentUser = Annotated[dict, Depends(verify_jwt)]


# ---------------------------------------------------------------------------
# Role-based access control dependency
# ---------------------------------------------------------------------------
def require_role(*allowed_roles: Role):
    """Factory that returns a FastAPI dependency enforcing role membership.

    Usage::

        @router.post("/trades")
        def create_trade(user: dict = Depends(require_role(Role.TRADER))): ...
    """

    async def _check_role(
        user: dict = Depends(verify_jwt),
    ) -> dict:
        user_role_str = user.get("role", "VIEWER")
        try:
            user_role = Role(user_role_str)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Unknown role: {user_role_str}",
            )

        effective_roles = _ROLE_HIERARCHY.get(user_role, {user_role})
        if not effective_roles.intersection(set(allowed_roles)):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=(
                    f"Insufficient permissions. Required: "
                    f"{', '.join(r.value for r in allowed_roles)}. "
                    f"Your role: {user_role.value}."
                ),
            )
        return user

    return _check_role


def resolve_user_id(user: dict, requested: Optional[int]) -> int:
    """User id a write acts for.

    ADMIN may name any user (falling back to its own ``uid``). Everyone
    else acts only as the ``uid`` in their token.
    """
    token_uid = user.get("uid")
    if user.get("role") == Role.ADMIN.value:
        target = requested if requested is not None else token_uid
    else:
        if token_uid is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Token carries no user id",
            )
        if requested is not None and requested != token_uid:
            logger.warning(
                "User %s attempted to act for user %s", user.get("sub"), requested
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Cannot act on behalf of another user",
            )
        target = token_uid

    if target is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="user_id is required",
        )
    return int(target)
