"""OAuth2-shaped endpoints backed by Steam OpenID.

This module contains the bridge's HTTP surface:
- Authorization flow (/authorize, /callback)
- Token endpoint (/token)
- User info (/userinfo)

All protocol decisions live in oauth.bridge; this layer only translates
between HTTP and SteamBridge results.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse

from oauth.bridge import INVALID_CLIENT, BridgeError, ErrorKind, Redirect, SteamBridge
from oauth.helpers import error_response, extract_client_credentials, get_full_url
from oauth.steam_openid import SESSION_KEY_PARAM

logger = logging.getLogger(__name__)

# Router for bridge endpoints
router = APIRouter(prefix="/auth/steam", tags=["steam"])

# These will be set by init_oauth_routes()
_bridge: SteamBridge = None
_public_url: str = ""


def init_oauth_routes(bridge: SteamBridge, public_url: str = ""):
    """Initialize bridge routes with the protocol engine.

    Must be called before including the router in the app.
    """
    global _bridge, _public_url
    _bridge = bridge
    _public_url = public_url


def bridge_error_response(error: BridgeError) -> JSONResponse:
    """Direct (non-redirect) HTTP error for a BridgeError."""
    headers = None
    if error.kind is ErrorKind.UNAUTHORIZED:
        challenge = "Basic" if error.error_code == INVALID_CLIENT else "Bearer"
        headers = {"WWW-Authenticate": challenge}
    return error_response(error.kind.status_code, error.error_code, error.description, headers=headers)


def _redirect(result: Redirect) -> RedirectResponse:
    return RedirectResponse(url=result.url, status_code=302)


# ============== Authorization Flow ==============

@router.get("/authorize")
async def authorize(state: str = "", redirect_uri: str = ""):
    """Start a login: remember where to return, then send the browser to Steam."""
    result = _bridge.authorize(redirect_uri, state)
    if isinstance(result, BridgeError):
        return bridge_error_response(result)
    return _redirect(result)


@router.get("/callback")
async def callback(request: Request):
    """Steam returns here; forward the outcome to the relying app."""
    session_key = request.query_params.get(SESSION_KEY_PARAM, "")
    result = await _bridge.callback(session_key, get_full_url(request, _public_url))
    if isinstance(result, BridgeError):
        return bridge_error_response(result)
    return _redirect(result)


# ============== Token Endpoint ==============

async def _read_body(request: Request) -> dict:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            data = await request.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
    form = await request.form()
    return dict(form)


@router.post("/token")
async def token(request: Request):
    """Exchange an authorization code for a bearer token."""
    body = await _read_body(request)
    client_id, client_secret = extract_client_credentials(request.headers.get("Authorization"), body)

    try:
        result = _bridge.token(client_id, client_secret, body.get("code"))
    except Exception:
        logger.exception("[TOKEN] Token endpoint error")
        return error_response(500, "server_error", "Internal server error")

    if isinstance(result, BridgeError):
        return bridge_error_response(result)
    return JSONResponse(result.to_dict(), headers={"Cache-Control": "no-store"})


# ============== User Info ==============

@router.get("/userinfo")
async def userinfo(request: Request):
    """Return the Steam profile of the token's subject."""
    result = await _bridge.userinfo(request.headers.get("Authorization"))
    if isinstance(result, BridgeError):
        return bridge_error_response(result)
    return JSONResponse(result)
