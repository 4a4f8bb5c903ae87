"""Small request/response helpers shared by the bridge modules."""

import base64
import binascii
from typing import Mapping, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from fastapi import Request
from fastapi.responses import JSONResponse


def append_query(url: str, params: Mapping[str, str]) -> str:
    """Add params to url, keeping any query it already has."""
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend(params.items())
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def is_absolute_http_url(url: str) -> bool:
    parts = urlsplit(url)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def extract_client_credentials(
    authorization: Optional[str],
    body: Mapping,
) -> tuple[Optional[str], Optional[str]]:
    """Read client credentials from a Basic auth header, falling back to body fields."""
    client_id = None
    client_secret = None

    if authorization and authorization.startswith("Basic "):
        encoded = authorization[6:].strip()
        try:
            decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            decoded = ""
        if ":" in decoded:
            client_id, client_secret = decoded.split(":", 1)

    client_id = client_id or body.get("client_id")
    client_secret = client_secret or body.get("client_secret")
    return client_id, client_secret


def error_response(status_code: int, error: str, description: str, headers: dict = None) -> JSONResponse:
    return JSONResponse(
        {"error": error, "error_description": description},
        status_code=status_code,
        headers=headers,
    )


def get_full_url(request: Request, public_url: str = "") -> str:
    """Rebuild the URL the browser actually requested.

    Behind a proxy the scheme and host seen by the app differ from the public
    ones, so public_url (when set) replaces them.
    """
    url = str(request.url)
    if not public_url:
        return url
    public = urlsplit(public_url)
    parts = urlsplit(url)
    return urlunsplit((public.scheme, public.netloc, parts.path, parts.query, ""))
