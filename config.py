"""Config management for steam-oauth-bridge.

Settings come from the environment. A .env file in the working directory
is loaded first when present (values already in the environment win).
"""
import os
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

from dotenv import load_dotenv


ENV_FILE = Path(".env")

REQUIRED_SETTINGS = (
    "STEAM_API_KEY",
    "REALM",
    "RETURN_URL",
    "CLIENT_ID",
    "CLIENT_SECRET",
    "JWT_SECRET",
)


class Config:
    """Configuration container."""

    def __init__(self, data: dict = None):
        self.data = data or {}

    def _get(self, name: str, default: str = "") -> str:
        return self.data.get(name) or default

    @property
    def steam_api_key(self) -> str:
        return self._get("STEAM_API_KEY")

    @property
    def realm(self) -> str:
        return self._get("REALM")

    @property
    def return_url(self) -> str:
        return self._get("RETURN_URL")

    @property
    def client_id(self) -> str:
        return self._get("CLIENT_ID")

    @property
    def client_secret(self) -> str:
        return self._get("CLIENT_SECRET")

    @property
    def jwt_secret(self) -> str:
        return self._get("JWT_SECRET")

    @property
    def public_url(self) -> str:
        """External base URL, also used as the JWT issuer.

        Defaults to the origin of RETURN_URL.
        """
        explicit = self._get("PUBLIC_URL")
        if explicit:
            return explicit.rstrip("/")
        parts = urlsplit(self.return_url)
        if parts.scheme and parts.netloc:
            return f"{parts.scheme}://{parts.netloc}"
        return ""

    @property
    def host(self) -> str:
        return self._get("HOST", "0.0.0.0")

    @property
    def port(self) -> int:
        return int(self._get("PORT", "3000"))

    @property
    def session_ttl_seconds(self) -> float:
        return float(self._get("SESSION_TTL_SECONDS", "600"))

    @property
    def upstream_timeout(self) -> float:
        return float(self._get("UPSTREAM_TIMEOUT_SECONDS", "10"))

    @property
    def log_format(self) -> str:
        return self._get("LOG_FORMAT", "plain").lower()

    @property
    def log_level(self) -> str:
        return self._get("LOG_LEVEL", "INFO").upper()

    def missing(self) -> list[str]:
        """Names of required settings that are not set."""
        return [name for name in REQUIRED_SETTINGS if not self.data.get(name)]

    def is_valid(self) -> bool:
        """Check if config has required fields."""
        return not self.missing()

    def status(self) -> dict[str, str]:
        """configured/missing per required setting, never the values."""
        missing = set(self.missing())
        return {
            name: "missing" if name in missing else "configured"
            for name in REQUIRED_SETTINGS
        }


def load_config(env_file: Optional[Path] = ENV_FILE) -> Config:
    """Load config from the environment (and .env if present)."""
    if env_file is not None and env_file.exists():
        load_dotenv(env_file)
    return Config(dict(os.environ))
