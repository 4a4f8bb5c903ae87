"""Steam-to-OAuth2 bridge protocol.

Four steps, each a method on SteamBridge:

1. authorize  - store PendingCallback, send the browser to Steam
2. callback   - consume PendingCallback, verify with Steam, store IssuedCode,
                send the browser back to the relying app with ?code&state
3. token      - check client credentials, consume IssuedCode, mint a JWT
4. userinfo   - check the JWT, fetch the Steam profile

Failures are returned as BridgeError values rather than raised. Unknown,
already-used and expired correlation ids produce the same error so callers
cannot tell them apart.
"""

import logging
import secrets
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

from oauth.helpers import append_query, is_absolute_http_url
from oauth.jwt_utils import ACCESS_TOKEN_EXPIRE_SECONDS, create_access_token, verify_access_token
from oauth.profile import ProfileFetchError
from oauth.steam_openid import VerificationError
from oauth.stores import IssuedCode, PendingCallback, SessionStore, generate_id, session_store

logger = logging.getLogger(__name__)

# Error code for failed client authentication at the token endpoint
INVALID_CLIENT = "invalid_client"


class ErrorKind(Enum):
    """Failure categories with their HTTP status and OAuth error code."""

    BAD_REQUEST = (400, "invalid_request")
    INVALID_SESSION = (400, "invalid_session")
    INVALID_GRANT = (400, "invalid_grant")
    UNAUTHORIZED = (401, "invalid_token")
    VERIFICATION_ERROR = (400, "authentication_failed")
    STORAGE_ERROR = (500, "server_error")
    UPSTREAM_ERROR = (502, "upstream_error")

    @property
    def status_code(self) -> int:
        return self.value[0]

    @property
    def code(self) -> str:
        return self.value[1]


@dataclass(frozen=True)
class BridgeError:
    """A failed operation. code, when set, replaces the kind's default OAuth error code."""

    kind: ErrorKind
    description: str
    code: Optional[str] = None

    @property
    def error_code(self) -> str:
        return self.code or self.kind.code


@dataclass(frozen=True)
class Redirect:
    """Send the browser to url. error is set when the redirect reports a failure."""

    url: str
    error: Optional[BridgeError] = None


@dataclass(frozen=True)
class TokenResponse:
    access_token: str
    token_type: str = "Bearer"
    expires_in: int = ACCESS_TOKEN_EXPIRE_SECONDS

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
        }


def _matches(supplied: Optional[str], expected: str) -> bool:
    if not isinstance(supplied, str):
        return False
    return secrets.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


class SteamBridge:
    """Runs the authorize/callback/token/userinfo exchange.

    provider must offer build_redirect(id) and async verify_assertion(url);
    profiles must offer async fetch_profile(identity).
    """

    def __init__(
        self,
        provider,
        profiles,
        client_id: str,
        client_secret: str,
        jwt_secret: str,
        issuer: str,
        store: SessionStore = session_store,
        token_ttl: int = ACCESS_TOKEN_EXPIRE_SECONDS,
        new_id: Callable[[], str] = generate_id,
        clock: Callable[[], float] = time.time,
    ):
        self.provider = provider
        self.profiles = profiles
        self.client_id = client_id
        self.client_secret = client_secret
        self.jwt_secret = jwt_secret
        self.issuer = issuer
        self.store = store
        self.token_ttl = token_ttl
        self._new_id = new_id
        self._clock = clock

    # ============== Step 1: authorize ==============

    def authorize(self, redirect_uri: str, state: str) -> Union[Redirect, BridgeError]:
        if not redirect_uri or not state:
            logger.warning("[AUTHORIZE] Missing state or redirect_uri")
            return BridgeError(ErrorKind.BAD_REQUEST, "Missing state or redirect_uri")
        if not is_absolute_http_url(redirect_uri):
            logger.warning("[AUTHORIZE] redirect_uri is not an absolute http(s) URL")
            return BridgeError(ErrorKind.BAD_REQUEST, "redirect_uri must be an absolute http(s) URL")

        session_id = self._new_id()
        record = PendingCallback(redirect_uri=redirect_uri, state=state, created_at=self._clock())
        if not self.store.create(session_id, record):
            logger.error("[AUTHORIZE] Session id collision, refusing to continue")
            return BridgeError(ErrorKind.STORAGE_ERROR, "Failed to store session")

        logger.info("[AUTHORIZE] Redirecting to Steam")
        return Redirect(self.provider.build_redirect(session_id))

    # ============== Step 2: callback ==============

    async def callback(self, correlation_id: str, callback_url: str) -> Union[Redirect, BridgeError]:
        if not correlation_id:
            return BridgeError(ErrorKind.BAD_REQUEST, "Missing session_key")

        session = self.store.take(correlation_id, PendingCallback)
        if session is None:
            logger.warning("[CALLBACK] Unknown or already used session_key")
            return BridgeError(ErrorKind.INVALID_SESSION, "Invalid session_key")

        result = await self.provider.verify_assertion(callback_url)
        if isinstance(result, VerificationError):
            logger.warning(f"[CALLBACK] Steam authentication failed: {result.reason}")
            error = BridgeError(ErrorKind.VERIFICATION_ERROR, result.description)
            return self._error_redirect(session, error)

        code = self._new_id()
        record = IssuedCode(identity=result, state=session.state, created_at=self._clock())
        if not self.store.create(code, record):
            logger.error("[CALLBACK] Authorization code collision, refusing to continue")
            error = BridgeError(ErrorKind.STORAGE_ERROR, "Failed to store auth session")
            return self._error_redirect(session, error)

        logger.info(f"[CALLBACK] Issued authorization code for Steam ID: {result}")
        return Redirect(append_query(session.redirect_uri, {"code": code, "state": session.state}))

    def _error_redirect(self, session: PendingCallback, error: BridgeError) -> Redirect:
        params = {
            "error": error.error_code,
            "error_description": error.description,
            "state": session.state,
        }
        return Redirect(append_query(session.redirect_uri, params), error=error)

    # ============== Step 3: token ==============

    def token(self, client_id: Optional[str], client_secret: Optional[str], code) -> Union[TokenResponse, BridgeError]:
        # Credentials first: a bad client must not burn a valid code.
        # Both comparisons always run (no short-circuit).
        if not (_matches(client_id, self.client_id) & _matches(client_secret, self.client_secret)):
            logger.warning("[TOKEN] Invalid client credentials")
            return BridgeError(ErrorKind.UNAUTHORIZED, "Invalid client credentials", code=INVALID_CLIENT)

        if not isinstance(code, str) or not code.strip():
            return BridgeError(ErrorKind.BAD_REQUEST, "Invalid code")

        grant = self.store.take(code, IssuedCode)
        if grant is None:
            logger.warning("[TOKEN] Invalid or expired code")
            return BridgeError(ErrorKind.INVALID_GRANT, "Invalid or expired code")

        access_token = create_access_token(
            identity=grant.identity,
            secret=self.jwt_secret,
            issuer=self.issuer,
            expires_in=self.token_ttl,
            issued_at=self._clock(),
        )
        logger.info(f"[TOKEN] Token issued for Steam ID: {grant.identity}")
        return TokenResponse(access_token=access_token, expires_in=self.token_ttl)

    # ============== Step 4: userinfo ==============

    def identity_from_header(self, authorization: Optional[str]) -> Union[str, BridgeError]:
        if not authorization or not authorization.startswith("Bearer "):
            return BridgeError(ErrorKind.UNAUTHORIZED, "Missing or invalid token")
        token = authorization[7:].strip()
        if not token:
            return BridgeError(ErrorKind.UNAUTHORIZED, "Missing or invalid token")

        payload = verify_access_token(token, self.jwt_secret, issuer=self.issuer, now=self._clock())
        if payload is None:
            logger.info("[USERINFO] Request rejected: invalid or expired token")
            return BridgeError(ErrorKind.UNAUTHORIZED, "Invalid or expired token")
        return payload["sub"]

    async def userinfo(self, authorization: Optional[str]) -> Union[dict, BridgeError]:
        identity = self.identity_from_header(authorization)
        if isinstance(identity, BridgeError):
            return identity

        profile = await self.profiles.fetch_profile(identity)
        if isinstance(profile, ProfileFetchError):
            if profile.not_found:
                logger.warning(f"[USERINFO] Token subject has no Steam profile: {identity}")
                return BridgeError(ErrorKind.UNAUTHORIZED, "Token subject no longer exists")
            logger.error(f"[USERINFO] Profile fetch failed for {identity}: {profile.description}")
            return BridgeError(ErrorKind.UPSTREAM_ERROR, profile.description)

        return profile
