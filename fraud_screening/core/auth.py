"""
Auth0 JWT token verification and authentication utilities.

Verifies bearer tokens against Auth0's JWKS endpoint, extracts the
requester identity with its roles and permissions, and provides the
FastAPI dependencies that guard the screening endpoints.
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

from fraud_screening.core.config import get_settings
from fraud_screening.core.errors import ForbiddenError, UnauthorizedError

logger = logging.getLogger(__name__)

# Roles
PLATFORM_ADMIN = "PLATFORM_ADMIN"

# Permissions
FRAUD_SCREEN = "fraud:screen"  # Submit transactions for screening

UNAUTHORISED_MSG = "Unauthorised Access not allowed"
INVALID_OR_EXPIRED_TOKEN_MSG = "Invalid or expired token"

# Authorization header is optional at the scheme level so a missing header
# surfaces as our own UnauthorizedError rather than FastAPI's 403.
_optional_security = HTTPBearer(auto_error=False)

_async_http: httpx.AsyncClient | None = None


class AuthenticatedUser(BaseModel):
    """Authenticated requester information."""

    user_id: str
    email: str | None = None
    name: str | None = None
    roles: list[str] = []
    permissions: list[str] = []

    @property
    def is_platform_admin(self) -> bool:
        return PLATFORM_ADMIN in self.roles

    def has_permission(self, permission: str) -> bool:
        """Check if user has a specific permission."""
        return permission in self.permissions or self.is_platform_admin


def get_async_http_client() -> httpx.AsyncClient:
    global _async_http
    if _async_http is None or _async_http.is_closed:
        _async_http = httpx.AsyncClient(timeout=httpx.Timeout(10.0))
    return _async_http


async def close_async_http_client() -> None:
    global _async_http
    if _async_http is not None:
        try:
            if not _async_http.is_closed:
                await _async_http.aclose()
        except RuntimeError:
            # Event loop is already closed
            pass
        finally:
            _async_http = None


class JWKSCache:
    """TTL cache for the Auth0 signing keys, falling back to stale keys on fetch failure."""

    def __init__(self):
        self._cache: dict[str, Any] | None = None
        self._cache_time: datetime | None = None
        self._lock = asyncio.Lock()

    def _is_cache_valid(self, now: datetime, ttl_seconds: int) -> bool:
        return (
            self._cache is not None
            and self._cache_time is not None
            and (now - self._cache_time).total_seconds() < ttl_seconds
        )

    async def get_jwks(self) -> dict[str, Any]:
        settings = get_settings()
        now = datetime.now(UTC)
        jwks_url = settings.auth0.jwks_url

        async with self._lock:
            if self._is_cache_valid(now, settings.auth0.jwks_cache_ttl):
                logger.debug("Using cached JWKS")
                return self._cache

            try:
                logger.info("Fetching JWKS", extra={"url": jwks_url})
                response = await get_async_http_client().get(jwks_url)
                response.raise_for_status()
                self._cache = response.json()
                self._cache_time = now
                return self._cache
            except (httpx.HTTPError, ValueError) as e:
                logger.error("Failed to fetch JWKS", extra={"error": str(e)})
                if self._cache is not None:
                    logger.warning("Using stale JWKS cache as fallback")
                    return self._cache
                raise UnauthorizedError(
                    "Unable to verify token: authentication service unavailable"
                ) from None


_jwks_cache = JWKSCache()


def _find_rsa_key(jwks: dict[str, Any], token: str) -> dict[str, Any]:
    """Extract the RSA key matching the token's key ID."""
    try:
        unverified_header = jwt.get_unverified_header(token)
    except JWTError as e:
        logger.warning(f"Invalid JWT header: {e}")
        raise UnauthorizedError(INVALID_OR_EXPIRED_TOKEN_MSG) from None

    for key in jwks.get("keys", []):
        if key.get("kid") == unverified_header.get("kid"):
            return {
                "kty": key["kty"],
                "kid": key["kid"],
                "use": key["use"],
                "n": key["n"],
                "e": key["e"],
            }

    logger.error(f"Unable to find matching key for kid: {unverified_header.get('kid')}")
    raise UnauthorizedError(INVALID_OR_EXPIRED_TOKEN_MSG)


async def verify_token(token: str) -> dict[str, Any]:
    """Verify a JWT against the Auth0 JWKS and return its claims."""
    settings = get_settings()
    rsa_key = _find_rsa_key(await _jwks_cache.get_jwks(), token)

    try:
        return jwt.decode(
            token,
            rsa_key,
            algorithms=settings.auth0.algorithms_list,
            audience=settings.auth0.audience,
            issuer=settings.auth0.issuer_url,
        )
    except jwt.ExpiredSignatureError:
        logger.warning("Token has expired")
        raise UnauthorizedError(INVALID_OR_EXPIRED_TOKEN_MSG) from None
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        raise UnauthorizedError(INVALID_OR_EXPIRED_TOKEN_MSG) from None


def _create_bypass_user() -> AuthenticatedUser:
    """Local development user, only returned when SECURITY_SKIP_JWT_VALIDATION is set."""
    return AuthenticatedUser(
        user_id="local-dev-user",
        email="local-dev@example.com",
        name="Local Development User",
        roles=[PLATFORM_ADMIN],
        permissions=[FRAUD_SCREEN],
    )


def _claim_list(payload: dict[str, Any], claim: str) -> list[str]:
    """Read a list-valued claim; anything else counts as empty."""
    value = payload.get(claim, [])
    if not isinstance(value, list):
        logger.warning("Claim is not a list", extra={"claim": claim, "type": type(value).__name__})
        return []
    return value


def get_user_roles(payload: dict[str, Any]) -> list[str]:
    return _claim_list(payload, f"{get_settings().auth0.audience}/roles")


def get_user_permissions(payload: dict[str, Any]) -> list[str]:
    return _claim_list(payload, "permissions")


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_optional_security),
) -> AuthenticatedUser:
    """Resolve the requester identity from the bearer token.

    Raises:
        UnauthorizedError: No token, or a token that does not verify or has no subject.
    """
    settings = get_settings()

    if settings.security.skip_jwt_validation is True:
        logger.info("JWT validation bypassed - returning local development user")
        return _create_bypass_user()

    if credentials is None:
        logger.warning("Missing Authorization header")
        raise UnauthorizedError(UNAUTHORISED_MSG)

    payload = await verify_token(credentials.credentials)
    if not payload.get("sub"):
        logger.error("JWT payload missing 'sub' claim")
        raise UnauthorizedError(UNAUTHORISED_MSG)

    return AuthenticatedUser(
        user_id=payload["sub"],
        email=payload.get("email"),
        name=payload.get("name"),
        roles=get_user_roles(payload),
        permissions=get_user_permissions(payload),
    )


def require_permission(required_permission: str):
    """Dependency factory that enforces a specific permission.

    Usage:
        @router.post("/detect/batch")
        async def detect_batch(
            user: AuthenticatedUser = Depends(require_permission(FRAUD_SCREEN))
        ):
            ...
    """

    def permission_checker(
        user: AuthenticatedUser = Depends(get_current_user),
    ) -> AuthenticatedUser:
        if user.has_permission(required_permission):
            return user

        logger.warning(
            "Access denied - user %s lacks required permission: %s",
            user.user_id,
            required_permission,
        )
        if get_settings().security.sanitize_errors:
            raise ForbiddenError("Insufficient permissions")
        raise ForbiddenError(
            "Insufficient permissions",
            details={
                "required_permission": required_permission,
                "user_permissions": user.permissions,
            },
        )

    return permission_checker

