"""Steam OAuth Bridge - HTTP service.

Lets a relying application log users in with Steam while speaking a plain
OAuth2 authorization-code flow:
- /auth/steam/authorize, /auth/steam/callback (browser legs)
- /auth/steam/token (server-to-server code exchange)
- /auth/steam/userinfo (bearer-authenticated profile)

Auth routes are only mounted when every required setting is present;
/health reports which ones are missing.
"""
import logging
import time
from datetime import datetime, timezone

from fastapi import FastAPI, Request

from config import Config, load_config
from logging_config import setup_logging
from oauth.bridge import SteamBridge
from oauth.profile import SteamProfileClient
from oauth.steam_openid import SteamOpenIDProvider
from oauth.stores import SessionStore

logger = logging.getLogger(__name__)

SERVICE_NAME = "steam-oauth-bridge"
VERSION = "1.0.0"


def build_bridge(config: Config) -> SteamBridge:
    """Wire the protocol engine from settings."""
    return SteamBridge(
        provider=SteamOpenIDProvider(
            realm=config.realm,
            return_url=config.return_url,
            timeout=config.upstream_timeout,
        ),
        profiles=SteamProfileClient(config.steam_api_key, timeout=config.upstream_timeout),
        client_id=config.client_id,
        client_secret=config.client_secret,
        jwt_secret=config.jwt_secret,
        issuer=config.public_url,
        store=SessionStore(ttl_seconds=config.session_ttl_seconds),
    )


def create_app(config: Config, bridge: SteamBridge = None) -> FastAPI:
    app = FastAPI(
        title="Steam OAuth Bridge",
        description="OAuth2 authorization-code facade over Steam OpenID 2.0",
        version=VERSION,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"[REQUEST] {request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)")
        return response

    server_url = config.public_url
    oauth_enabled = bridge is not None or config.is_valid()

    if oauth_enabled:
        from oauth.endpoints import router as oauth_router, init_oauth_routes
        init_oauth_routes(bridge or build_bridge(config), server_url)
        app.include_router(oauth_router)
    else:
        logger.error(f"[STARTUP] Missing required settings: {', '.join(config.missing())}; auth routes disabled")

    # ============== Server Info Endpoints ==============

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy" if config.is_valid() else "unhealthy",
            "service": SERVICE_NAME,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "config": config.status(),
        }

    @app.get("/")
    async def root():
        """Root endpoint with server info."""
        return {
            "name": "Steam OAuth Bridge",
            "version": VERSION,
            "oauth_enabled": oauth_enabled,
            "endpoints": {
                "authorize": "/auth/steam/authorize",
                "token": "/auth/steam/token",
                "userinfo": "/auth/steam/userinfo",
            },
        }

    @app.get("/.well-known/oauth-authorization-server")
    async def oauth_authorization_server():
        """OAuth 2.0 Authorization Server Metadata (RFC 8414)."""
        return {
            "issuer": server_url,
            "authorization_endpoint": f"{server_url}/auth/steam/authorize",
            "token_endpoint": f"{server_url}/auth/steam/token",
            "userinfo_endpoint": f"{server_url}/auth/steam/userinfo",
            "response_types_supported": ["code"],
            "response_modes_supported": ["query"],
            "grant_types_supported": ["authorization_code"],
            "token_endpoint_auth_methods_supported": ["client_secret_basic", "client_secret_post"],
        }

    return app


# Load settings and logging once at import so `uvicorn main:app` works
settings = load_config()
setup_logging(level=settings.log_level, fmt=settings.log_format, service_name=SERVICE_NAME)
logger.info(f"[STARTUP] Config loaded - valid: {settings.is_valid()}")
app = create_app(settings)


# ============== Main Entry Point ==============

if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting {SERVICE_NAME} on {settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port)
