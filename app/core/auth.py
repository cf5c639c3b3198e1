"""
Bearer-token authentication against Auth0.

Access tokens are RS256 JWTs signed by the Auth0 tenant. Signing keys come
from the tenant JWKS document, cached in-process. Roles are read from the
namespaced ``<audience>/roles`` claim and permissions from the RBAC
``permissions`` claim.
"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

import httpx
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from app.core.config import get_settings
from app.core.errors import ForbiddenError, UnauthorizedError
from app.core.http_client import get_async_http_client
from app.core.resilience import CircuitBreaker, CircuitBreakerOpenError

logger = logging.getLogger(__name__)

# Roles
PLATFORM_ADMIN = "PLATFORM_ADMIN"  # implicitly holds every permission
OPERATIONS_ADMIN = "OPERATIONS_ADMIN"
CUSTOMER = "CUSTOMER"

# Permissions
BULK_EXECUTE = "bulk:execute"
BILLS_PAY = "bills:pay"

INVALID_OR_EXPIRED_TOKEN_MSG = "Invalid or expired token"

# JWK members needed to rebuild an RSA public key
RSA_KEY_FIELDS = ("kty", "kid", "use", "n", "e")

_bearer_scheme = HTTPBearer(auto_error=False)


class AuthenticatedUser(BaseModel):
    """Caller identity resolved from a verified access token."""

    user_id: str
    email: str | None = None
    name: str | None = None
    roles: list[str] = []
    permissions: list[str] = []

    @property
    def is_platform_admin(self) -> bool:
        return self.has_role(PLATFORM_ADMIN)

    @property
    def is_operations_admin(self) -> bool:
        return self.is_platform_admin or self.has_role(OPERATIONS_ADMIN)

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_permission(self, permission: str) -> bool:
        return self.is_platform_admin or permission in self.permissions


class JWKSCache:
    """Tenant JWKS held for ``ttl_seconds``.

    Fetches go through a circuit breaker. When a refresh fails the last
    good document keeps being served.
    """

    def __init__(self, ttl_seconds: int = 600):
        self._ttl_seconds = ttl_seconds
        self._cache: dict[str, Any] | None = None
        self._fetched_at: datetime | None = None
        self._lock = asyncio.Lock()
        self._circuit_breaker = CircuitBreaker("auth0-jwks", expected_exception=httpx.HTTPError)

    def _is_fresh(self, now: datetime) -> bool:
        if self._cache is None or self._fetched_at is None:
            return False
        return (now - self._fetched_at).total_seconds() < self._ttl_seconds

    @staticmethod
    async def _download(url: str) -> dict[str, Any]:
        response = await get_async_http_client().get(url)
        response.raise_for_status()
        return response.json()

    async def get_jwks(self) -> dict[str, Any]:
        url = get_settings().auth0.jwks_url

        async with self._lock:
            now = datetime.now(UTC)
            if self._is_fresh(now):
                return self._cache

            logger.info("Refreshing JWKS from %s", url)
            try:
                jwks = await self._circuit_breaker.call(self._download, url)
            except (httpx.HTTPError, CircuitBreakerOpenError) as e:
                if self._cache is None:
                    logger.error("JWKS unavailable and nothing cached: %s", e)
                    raise UnauthorizedError(
                        "Unable to verify token: authentication service unavailable"
                    ) from None
                logger.warning("JWKS refresh failed, serving stale keys: %s", e)
                return self._cache

            self._cache, self._fetched_at = jwks, now
            return jwks

    def clear(self) -> None:
        self._cache = None
        self._fetched_at = None
        self._circuit_breaker.reset()


_jwks_cache = JWKSCache(ttl_seconds=get_settings().auth0.jwks_cache_ttl)


def _find_rsa_key(jwks: dict[str, Any], token: str) -> dict[str, Any]:
    """Return the JWK whose ``kid`` matches the token header."""
    try:
        kid = jwt.get_unverified_header(token).get("kid")
    except JWTError as e:
        logger.warning("Rejecting token with unreadable header: %s", e)
        raise UnauthorizedError(INVALID_OR_EXPIRED_TOKEN_MSG) from None

    key = next((k for k in jwks.get("keys", []) if k.get("kid") == kid), None)
    if key is None:
        logger.error("No JWKS key matches kid %s", kid)
        raise UnauthorizedError(INVALID_OR_EXPIRED_TOKEN_MSG)
    return {field: key[field] for field in RSA_KEY_FIELDS}


def _verify_token_with_key(token: str, rsa_key: dict[str, Any]) -> dict[str, Any]:
    auth0 = get_settings().auth0
    try:
        return jwt.decode(
            token,
            rsa_key,
            algorithms=auth0.algorithms_list,
            audience=auth0.audience,
            issuer=auth0.issuer_url,
        )
    except jwt.ExpiredSignatureError:
        logger.info("Rejecting expired token")
    except JWTError as e:
        logger.warning("Rejecting token: %s", e)
    raise UnauthorizedError(INVALID_OR_EXPIRED_TOKEN_MSG)


async def verify_token(token: str) -> dict[str, Any]:
    """Verify signature, audience, issuer and expiry; return the claims."""
    jwks = await _jwks_cache.get_jwks()
    return _verify_token_with_key(token, _find_rsa_key(jwks, token))


def _string_list_claim(payload: dict[str, Any], claim: str) -> list[str]:
    value = payload.get(claim, [])
    if isinstance(value, list):
        return value
    logger.warning("Ignoring claim %s of type %s", claim, type(value).__name__)
    return []


def get_user_roles(payload: dict[str, Any]) -> list[str]:
    return _string_list_claim(payload, get_settings().auth0.roles_claim)


def get_user_permissions(payload: dict[str, Any]) -> list[str]:
    return _string_list_claim(payload, "permissions")


def _local_dev_user() -> AuthenticatedUser:
    return AuthenticatedUser(
        user_id="local-dev-user",
        email="local-dev@example.com",
        name="Local Development User",
        roles=[PLATFORM_ADMIN],
        permissions=[BULK_EXECUTE, BILLS_PAY],
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> AuthenticatedUser:
    """FastAPI dependency resolving the bearer token to an ``AuthenticatedUser``.

    With ``SECURITY_SKIP_JWT_VALIDATION`` (local only) every request runs as
    a platform admin.
    """
    if get_settings().security.skip_jwt_validation is True:
        logger.info("JWT validation skipped, acting as local development user")
        return _local_dev_user()

    if credentials is None:
        raise UnauthorizedError("Missing authorization header")

    claims = await verify_token(credentials.credentials)
    if not claims.get("sub"):
        raise UnauthorizedError("Invalid token - missing user identifier")

    return AuthenticatedUser(
        user_id=claims["sub"],
        email=claims.get("email"),
        name=claims.get("name"),
        roles=get_user_roles(claims),
        permissions=get_user_permissions(claims),
    )


def require_permission(required_permission: str):
    """Build a dependency that admits only users holding ``required_permission``.

    Example::

        @router.post("/bulk/operations")
        async def execute(user=Depends(require_permission(BULK_EXECUTE))): ...
    """

    def permission_checker(
        user: AuthenticatedUser = Depends(get_current_user),
    ) -> AuthenticatedUser:
        if user.has_permission(required_permission):
            return user

        logger.warning("User %s denied: needs %s", user.user_id, required_permission)
        details = None
        if not get_settings().security.sanitize_errors:
            details = {
                "required_permission": required_permission,
                "user_permissions": user.permissions,
            }
        raise ForbiddenError("Insufficient permissions", details=details)

    return permission_checker
