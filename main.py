#!/usr/bin/env python3
"""
Stockroom Auth -- command line entry point.

Usage:
  python main.py serve                      # listen on HOST:PORT from the environment
  python main.py serve --port 8080 --reload
  python main.py users                      # list accounts
  python main.py disable admin              # block an account from logging in
  python main.py enable admin

Environment variables (see core/config.py for the full list):
  JWT_SECRET     Signing key, at least 32 characters. Required unless DEBUG=true.
  DATABASE_URL   SQLAlchemy URL of the user store.
  PORT           Listen port (default 5000).
  APP_ENV        development | production -- selects the CORS origin list.
"""

import argparse
import sys

from auth.store import StoreError, UserStore
from core.config import get_settings


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    host = args.host or settings.host
    port = args.port or settings.port
    print(f"  Stockroom Auth listening on http://{host}:{port}")
    print(f"  Health check: http://localhost:{port}/health")
    uvicorn.run("asgi:app", host=host, port=port, reload=args.reload)
    return 0


def _list_users(args: argparse.Namespace) -> int:
    store = UserStore(get_settings().database_url)
    try:
        users = store.list_users()
    finally:
        store.close()
    if not users:
        print("  No users. POST /api/auth/setup to create the default admin.")
        return 0
    for user in users:
        state = "active" if user.is_active else "disabled"
        last = user.last_login.isoformat() if user.last_login else "never"
        print(f"  {user.username:<24} {user.role:<10} {state:<9} last login: {last}")
    return 0


def _set_active(args: argparse.Namespace, is_active: bool) -> int:
    store = UserStore(get_settings().database_url)
    try:
        user = store.find_by_username(args.username)
        if user is None:
            print(f"  [!] No user named '{args.username}'.", file=sys.stderr)
            return 1
        store.set_active(user.id, is_active)
    finally:
        store.close()
    print(f"  {'Enabled' if is_active else 'Disabled'} '{user.username}'.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Stockroom Auth -- login, token verification and first-run setup API.",
    )
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("--host", default=None, help="Bind address (default: HOST env or 0.0.0.0)")
    serve.add_argument("--port", type=int, default=None, help="Listen port (default: PORT env or 5000)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")
    serve.set_defaults(func=_serve)

    users = sub.add_parser("users", help="List user accounts")
    users.set_defaults(func=_list_users)

    disable = sub.add_parser("disable", help="Disable an account")
    disable.add_argument("username")
    disable.set_defaults(func=lambda a: _set_active(a, False))

    enable = sub.add_parser("enable", help="Re-enable an account")
    enable.add_argument("username")
    enable.set_defaults(func=lambda a: _set_active(a, True))

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 1
    try:
        return args.func(args)
    except StoreError as e:
        print(f"  [!] User store error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
