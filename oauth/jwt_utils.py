"""JWT utilities for bridge access tokens.

Provides stateless token generation and validation using PyJWT.
Tokens are never stored: validity is proven by signature and expiry alone,
so the only way to revoke them is to rotate JWT_SECRET.
"""

import logging
import time
from typing import Optional

import jwt

logger = logging.getLogger(__name__)

# JWT configuration
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_SECONDS = 60 * 60  # 1 hour


def create_access_token(
    identity: str,
    secret: str,
    issuer: str,
    expires_in: int = ACCESS_TOKEN_EXPIRE_SECONDS,
    issued_at: Optional[float] = None,
) -> str:
    """Create a JWT access token.

    Args:
        identity: The verified Steam ID
        secret: HS256 signing secret
        issuer: The token issuer (bridge public URL)
        expires_in: Token lifetime in seconds (default 1 hour)
        issued_at: Issue time as a unix timestamp (default now)

    Returns:
        A signed JWT token string
    """
    # NumericDate may be fractional; exp is exactly issued_at + expires_in
    now = issued_at if issued_at is not None else time.time()

    payload = {
        "sub": identity,           # Subject (Steam ID) - standard claim
        "iss": issuer,             # Issuer - standard claim
        "iat": now,                # Issued at - standard claim
        "exp": now + expires_in,   # Expiration - standard claim
        "type": "access"           # Token type
    }

    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def verify_access_token(
    token: str,
    secret: str,
    issuer: str = None,
    now: Optional[float] = None,
) -> Optional[dict]:
    """Verify and decode a JWT access token.

    Args:
        token: The JWT token string
        secret: HS256 signing secret
        issuer: Expected issuer (optional, for additional validation)
        now: Current unix time (default time.time()); the token is valid
            strictly before its exp claim

    Returns:
        The decoded token payload if valid, None otherwise.
        The payload contains: sub, iss, iat, exp, type
    """
    # Time claims are checked below against our own clock so the boundary is exact
    options = {
        "require": ["exp", "iat", "sub"],
        "verify_exp": False,
        "verify_iat": False,
    }
    kwargs = {"issuer": issuer} if issuer else {}

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[JWT_ALGORITHM],
            options=options,
            **kwargs
        )
    except jwt.InvalidTokenError as e:
        logger.debug(f"[JWT] Invalid token: {e}")
        return None

    current = now if now is not None else time.time()
    try:
        expires_at = float(payload["exp"])
    except (TypeError, ValueError):
        logger.debug("[JWT] Token has a non-numeric exp claim")
        return None
    if current >= expires_at:
        logger.debug("[JWT] Token expired")
        return None

    # Verify it's an access token
    if payload.get("type") != "access":
        logger.debug("[JWT] Token is not an access token")
        return None

    if not isinstance(payload.get("sub"), str) or not payload["sub"]:
        logger.debug("[JWT] Token has no usable subject")
        return None

    return payload
