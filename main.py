#!/usr/bin/env python3
"""
userauth -- user registration and login backend.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080
  python main.py serve --reload
  python main.py init-db

Environment variables (see core/config.py for the full list):
  SECRET_KEY            Token signing key, at least 32 characters. Required
                        unless DEBUG=true, which generates a throwaway key.
  DATABASE_URL          SQLAlchemy URL of the credential store.
  TOKEN_EXPIRE_SECONDS  Bearer token lifetime (default 86400).
"""

import argparse
import sys

from core.config import get_settings


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run(
        "asgi:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=get_settings().log_level.lower(),
    )
    return 0


def _init_db(args: argparse.Namespace) -> int:
    """Create the users table if needed and report what is there."""
    from auth.errors import StoreUnavailableError
    from auth.store import UserStore

    url = args.database_url or get_settings().database_url
    try:
        store = UserStore(db_url=url)
    except StoreUnavailableError as e:
        print(f"  [!] Could not open credential store: {e}")
        return 1
    try:
        state = "has users" if store.has_users() else "empty"
    finally:
        store.close()
    print(f"  Credential store ready ({state}).")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="userauth",
        description="User registration and login backend.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    serve.set_defaults(func=_serve)

    init_db = sub.add_parser("init-db", help="Create the credential store schema")
    init_db.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    init_db.set_defaults(func=_init_db)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
