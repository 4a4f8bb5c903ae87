"""Steam OpenID 2.0 adapter.

Builds the outbound login redirect and verifies the assertion Steam sends
back. Verification is direct: the assertion is re-posted to Steam with
mode=check_authentication and Steam itself answers is_valid:true/false.

The correlation id rides along as the session_key query parameter of
openid.return_to. Steam echoes return_to verbatim, which is what ties a
callback to the /authorize call that started it.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Union
from urllib.parse import parse_qsl, urlencode, urlsplit

import httpx

from oauth.helpers import append_query

logger = logging.getLogger(__name__)

OPENID_NS = "http://specs.openid.net/auth/2.0"
OPENID_IDENTIFIER_SELECT = "http://specs.openid.net/auth/2.0/identifier_select"
STEAM_OP_ENDPOINT = "https://steamcommunity.com/openid/login"
CLAIMED_ID_PATTERN = re.compile(r"https?://steamcommunity\.com/openid/id/([0-9]+)")

SESSION_KEY_PARAM = "session_key"
REQUIRED_PARAMS = ("openid.claimed_id", "openid.sig", "openid.signed", SESSION_KEY_PARAM)


@dataclass(frozen=True)
class VerificationError:
    """Why a Steam assertion was not accepted.

    reason is one of: missing_parameter, cancelled, provider_rejected,
    malformed_identity, provider_unreachable.
    """

    reason: str
    description: str


class SteamOpenIDProvider:
    """Talks OpenID 2.0 to steamcommunity.com."""

    def __init__(
        self,
        realm: str,
        return_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not realm or not return_url:
            raise ValueError("realm and return_url are required")
        self.realm = realm
        self.return_url = return_url
        self.timeout = timeout
        self._transport = transport

    def return_to(self, correlation_id: str) -> str:
        return append_query(self.return_url, {SESSION_KEY_PARAM: correlation_id})

    def build_redirect(self, correlation_id: str) -> str:
        """Steam login URL whose return_to carries correlation_id."""
        params = {
            "openid.ns": OPENID_NS,
            "openid.mode": "checkid_setup",
            "openid.return_to": self.return_to(correlation_id),
            "openid.realm": self.realm,
            "openid.identity": OPENID_IDENTIFIER_SELECT,
            "openid.claimed_id": OPENID_IDENTIFIER_SELECT,
        }
        return f"{STEAM_OP_ENDPOINT}?{urlencode(params)}"

    async def verify_assertion(self, callback_url: str) -> Union[str, VerificationError]:
        """Check a callback URL with Steam.

        Returns the numeric Steam ID on success, a VerificationError otherwise.
        """
        params = dict(parse_qsl(urlsplit(callback_url).query, keep_blank_values=True))

        missing = [name for name in REQUIRED_PARAMS if not params.get(name)]
        if missing:
            return VerificationError(
                "missing_parameter",
                f"Missing {', '.join(missing)} in callback.",
            )

        mode = params.get("openid.mode")
        if mode == "cancel":
            return VerificationError("cancelled", "User cancelled the Steam login.")
        if mode != "id_res" or params.get("openid.ns") != OPENID_NS:
            return VerificationError("provider_rejected", "Unexpected OpenID response mode.")

        op_endpoint = params.get("openid.op_endpoint")
        if op_endpoint and op_endpoint != STEAM_OP_ENDPOINT:
            logger.warning(f"[STEAM] Assertion from unexpected endpoint: {op_endpoint}")
            return VerificationError("provider_rejected", "Assertion was not issued by Steam.")

        match = CLAIMED_ID_PATTERN.fullmatch(params["openid.claimed_id"])
        if not match:
            return VerificationError(
                "malformed_identity",
                "Invalid claimed_id format (not a valid SteamID).",
            )
        steam_id = match.group(1)

        form = {key: value for key, value in params.items() if key.startswith("openid.")}
        form["openid.mode"] = "check_authentication"
        form["openid.return_to"] = self.return_to(params[SESSION_KEY_PARAM])

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    STEAM_OP_ENDPOINT,
                    data=form,
                    headers={"Accept": "text/plain"},
                )
                response.raise_for_status()
        except httpx.TimeoutException:
            logger.warning("[STEAM] Verification request timed out")
            return VerificationError("provider_unreachable", "Steam did not answer in time.")
        except httpx.HTTPError as e:
            logger.warning(f"[STEAM] Verification request failed: {e!r}")
            return VerificationError("provider_unreachable", "Could not reach Steam to verify the login.")

        if parse_key_value(response.text).get("is_valid") != "true":
            logger.info(f"[STEAM] Steam rejected assertion for {steam_id}")
            return VerificationError("provider_rejected", "Invalid Steam OpenID response.")

        logger.info(f"[STEAM] Verified Steam ID: {steam_id}")
        return steam_id


def parse_key_value(body: str) -> dict[str, str]:
    """Parse an OpenID key-value form body (one key:value per line)."""
    fields = {}
    for line in body.splitlines():
        key, sep, value = line.partition(":")
        if sep:
            fields[key.strip()] = value.strip()
    return fields
