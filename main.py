#!/usr/bin/env python3
"""
ExpenseGate -- operator login and Google Sheets access for the expense form.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080
  python main.py serve --reload
  python main.py hash-password
  python main.py hash-password 'correct horse battery staple'

Environment variables (or .env, .env.<APP_ENV>, .env.local, .env.<APP_ENV>.local):
  AUTH_USERNAME, AUTH_PASSWORD_HASH, JWT_SECRET   operator login
  JWT_EXPIRES_IN                                  session lifetime, e.g. 1h
  MAX_LOGIN_ATTEMPTS, LOGIN_WINDOW_MINUTES        login rate limit
  SERVICE_ACCOUNT_EMAIL, SERVICE_ACCOUNT_PRIVATE_KEY, SPREADSHEET_ID
"""

import argparse
import getpass
import sys
from typing import Optional


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    from core.config import get_settings

    port = args.port or get_settings().port
    uvicorn.run("asgi:app", host=args.host, port=port, reload=args.reload)
    return 0


def _hash_password(args: argparse.Namespace) -> int:
    """Print a bcrypt hash suitable for AUTH_PASSWORD_HASH.

    Prompting keeps the password out of shell history; the positional form is
    for scripts.
    """
    from auth.tokens import MAX_PASSWORD_BYTES, hash_password

    password: Optional[str] = args.password
    if password is None:
        password = getpass.getpass("Password: ")
        if password != getpass.getpass("Repeat password: "):
            print("  [!] Passwords do not match.", file=sys.stderr)
            return 1
    if not password:
        print("  [!] Password must not be empty.", file=sys.stderr)
        return 1
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        print(f"  [!] Password must be at most {MAX_PASSWORD_BYTES} bytes (bcrypt limit).", file=sys.stderr)
        return 1
    print(hash_password(password, rounds=args.rounds))
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="expensegate",
        description="Operator login and Google Sheets access for the expense form.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP server (uvicorn)")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=None, help="Defaults to PORT (4000)")
    serve.add_argument("--reload", action="store_true", help="Auto-reload on code changes")
    serve.set_defaults(func=_serve)

    hp = sub.add_parser("hash-password", help="Print a bcrypt hash for AUTH_PASSWORD_HASH")
    hp.add_argument("password", nargs="?", default=None, help="Prompted for when omitted")
    hp.add_argument("--rounds", type=int, default=12, help="bcrypt cost factor (default 12)")
    hp.set_defaults(func=_hash_password)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
