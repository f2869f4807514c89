#!/usr/bin/env python3
"""
AuthGate -- registration, login, JWT issuance and role-gated routes.

Usage:
  python main.py
  python main.py --port 8080
  python main.py --host 0.0.0.0 --reload

Environment variables (or .env):
  SECRET_KEY     Token signing key, at least 32 characters. Required unless DEBUG=true.
  DEBUG          true to auto-generate a throwaway SECRET_KEY for local development.
  DATABASE_URL   SQLAlchemy URL of the user store (default: sqlite:///./authgate_users.db).
  HOST / PORT    Bind address (default: 127.0.0.1:3000).
"""

import argparse

import uvicorn

from core.config import get_settings


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="authgate",
        description="Run the AuthGate API server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py
  python main.py --port 8080
  DEBUG=true python main.py --reload
        """,
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Interface to bind (default: HOST setting, 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on (default: PORT setting, 3000)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Restart the server when source files change (development only)",
    )
    args = parser.parse_args()

    # Validate configuration before uvicorn imports the app, so a missing
    # SECRET_KEY fails here with a readable message.
    settings = get_settings()
    host = args.host or settings.host
    port = args.port or settings.port

    uvicorn.run("asgi:app", host=host, port=port, reload=args.reload)


if __name__ == "__main__":
    main()
