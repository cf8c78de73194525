#!/usr/bin/env python3
"""
Forum API -- operator command line.

Admins cannot sign up over HTTP. They are created here, each with its own
TOTP secret; the otpauth:// URI is printed once for the authenticator app.

Usage:
  python main.py init-db
  python main.py create-admin alice
  python main.py create-user bob
  python main.py seed
  python main.py serve --host 127.0.0.1 --port 8000

Environment variables:
  SECRET_KEY     Required unless DEBUG=true. Signs the session cookie.
  AUTH_DB_URL    Users database (default sqlite:///forum_auth.db).
  FORUM_DB_URL   Posts and comments database (default sqlite:///forum.db).
"""

import argparse
import getpass
import logging
import sys

from auth.accounts import register_admin, register_user
from auth.store import UserStore
from auth.totp import provisioning_uri
from core.config import get_settings
from core.errors import UsernameTaken
from forum.seed import seed
from forum.store import ForumStore

logger = logging.getLogger("forum.cli")


def _read_password(args: argparse.Namespace) -> str:
    """Take the password from --password or prompt for it twice."""
    if args.password:
        return args.password
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Repeat password: "):
        print("  [!] Passwords do not match.")
        sys.exit(1)
    if not password:
        print("  [!] Password must not be empty.")
        sys.exit(1)
    return password


def cmd_init_db(args: argparse.Namespace) -> None:
    settings = get_settings()
    # Constructing the stores creates any missing tables.
    UserStore(settings.auth_db_url).close()
    ForumStore(settings.forum_db_url).close()
    print(f"Databases ready: {settings.auth_db_url}, {settings.forum_db_url}")


def cmd_create_admin(args: argparse.Namespace) -> None:
    settings = get_settings()
    password = _read_password(args)
    users = UserStore(settings.auth_db_url)
    try:
        admin = register_admin(users, args.username, password)
    except UsernameTaken:
        print(f"  [!] User '{args.username}' already exists.")
        sys.exit(1)
    finally:
        users.close()
    print(f"Admin '{admin.username}' created (id={admin.id}).")
    print("Add this account to an authenticator app. It is shown only once:")
    print(f"  {provisioning_uri(admin.totp_secret, admin.username, settings.totp_issuer)}")


def cmd_create_user(args: argparse.Namespace) -> None:
    settings = get_settings()
    password = _read_password(args)
    users = UserStore(settings.auth_db_url)
    try:
        user = register_user(users, args.username, password)
    except UsernameTaken:
        print(f"  [!] User '{args.username}' already exists.")
        sys.exit(1)
    finally:
        users.close()
    print(f"User '{user.username}' created (id={user.id}).")


def cmd_seed(args: argparse.Namespace) -> None:
    settings = get_settings()
    users = UserStore(settings.auth_db_url)
    forum = ForumStore(settings.forum_db_url)
    try:
        report = seed(users, forum, issuer=settings.totp_issuer)
    finally:
        forum.close()
        users.close()

    print(f"Users created: {', '.join(report.created_users) or 'none'}")
    if report.skipped_users:
        print(f"Users already present: {', '.join(report.skipped_users)}")
    print(f"Posts created: {report.created_posts} ({report.skipped_posts} already present)")
    print(f"Comments created: {report.created_comments}")
    for username, uri in report.admin_uris.items():
        print(f"TOTP for {username}: {uri}")


def cmd_serve(args: argparse.Namespace) -> None:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="forum",
        description="Forum API operator tools.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  DEBUG=true python main.py seed
  python main.py create-admin alice
  python main.py serve --reload
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p = sub.add_parser("init-db", help="Create the database tables if missing")
    p.set_defaults(func=cmd_init_db)

    for name, func, help_text in (
        ("create-admin", cmd_create_admin, "Create an admin account with a new TOTP secret"),
        ("create-user", cmd_create_user, "Create a regular account"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("username")
        p.add_argument("--password", help="Password (prompted for when omitted)")
        p.set_defaults(func=func)

    p = sub.add_parser("seed", help="Load demo users, posts and comments")
    p.set_defaults(func=cmd_seed)

    p = sub.add_parser("serve", help="Run the API with uvicorn")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)
    p.add_argument("--reload", action="store_true", help="Restart on code changes (development)")
    p.set_defaults(func=cmd_serve)

    args = parser.parse_args()
    if not hasattr(args, "func"):
        parser.print_help()
        return

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)-5s %(name)s %(message)s")
    args.func(args)


if __name__ == "__main__":
    main()
