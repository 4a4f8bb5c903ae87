"""CLI entry point for steam-oauth-bridge.

Commands:
- serve         run the bridge with uvicorn
- check-config  report which required settings are set
- status        query /health of a running bridge
"""
import argparse
import sys

import requests
import uvicorn

from config import load_config

VERSION = "1.0.0"
DEFAULT_STATUS_URL = "http://127.0.0.1:3000"


# ============== Commands ==============

def cmd_serve(args) -> int:
    """Run the HTTP service in the foreground."""
    config = load_config()
    host = args.host or config.host
    port = args.port or config.port
    uvicorn.run("main:app", host=host, port=port, reload=args.reload, log_level="info")
    return 0


def cmd_check_config(args) -> int:
    """Print configured/missing per setting. Exit 1 if anything is missing."""
    config = load_config()

    print("\n" + "=" * 50)
    print("  Steam OAuth Bridge Config")
    print("=" * 50 + "\n")
    for name, state in config.status().items():
        marker = "[OK]" if state == "configured" else "[X] "
        print(f"  {marker} {name:<16} {state}")

    print(f"\n  Public URL:  {config.public_url or '(unset)'}")
    print(f"  Session TTL: {config.session_ttl_seconds:g}s")
    print("\n" + "=" * 50 + "\n")
    return 0 if config.is_valid() else 1


def fetch_health(base_url: str, timeout: float = 5.0) -> dict:
    """GET /health of a running bridge.

    Returns the decoded body, or {"status": "unreachable", "error": ...}.
    """
    try:
        response = requests.get(f"{base_url.rstrip('/')}/health", timeout=timeout)
        return response.json()
    except requests.RequestException as e:
        return {"status": "unreachable", "error": f"Network error: {e}"}
    except ValueError:
        return {"status": "unreachable", "error": "Response was not JSON"}


def cmd_status(args) -> int:
    """Show the health of a running instance."""
    health = fetch_health(args.url)

    print(f"\n[Server] {args.url}")
    print(f"  Status:   {health.get('status')}")
    if health.get("error"):
        print(f"  Error:    {health['error']}")
    for name, state in (health.get("config") or {}).items():
        print(f"  {name:<16} {state}")
    print()
    return 0 if health.get("status") == "healthy" else 1


# ============== Main Entry Point ==============

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="steam-bridge",
        description="Steam OpenID to OAuth2 bridge",
    )
    parser.add_argument("--version", "-v", action="version", version=f"steam-oauth-bridge v{VERSION}")
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the bridge (default)")
    serve.add_argument("--host", default=None, help="Bind address (default: HOST or 0.0.0.0)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: PORT or 3000)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes")
    serve.set_defaults(func=cmd_serve)

    check = subparsers.add_parser("check-config", help="Report missing settings")
    check.set_defaults(func=cmd_check_config)

    status = subparsers.add_parser("status", help="Query /health of a running bridge")
    status.add_argument("--url", default=DEFAULT_STATUS_URL, help=f"Bridge base URL (default: {DEFAULT_STATUS_URL})")
    status.set_defaults(func=cmd_status)

    return parser


def main(argv=None) -> int:
    """Main entry point for CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        args = parser.parse_args(["serve"] + list(argv or []))
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
