#!/usr/bin/env python3
"""
Chapter Portal -- admin command line.

Usage:
  python main.py create-user admin --role admin --email admin@example.org
  python main.py create-user qc-lead --role chapter --chapter qc
  python main.py list-users
  python main.py update-user qc-lead --chapter qc-north
  python main.py sweep-sessions
  python main.py edit-chapter qc --username qc-lead --title "Quezon City Chapter" --members 45

create-user prompts for the password unless --password is given. The store
commands use the same AUTH_BACKEND / AUTH_DB_URL settings as the API server.
edit-chapter talks to the running API at PORTAL_API_URL.
"""

import argparse
import asyncio
import getpass
import sys
from datetime import timedelta
from typing import Optional

from auth.service import provision_user
from auth.sessions import SessionManager
from auth.store import SqlAuthStore
from auth.tokens import MAX_PASSWORD_BYTES, password_too_long
from core.config import get_settings
from editor.client import PortalClient, PortalError
from editor.prompts import AutoConfirmPrompt, ConsolePrompt
from editor.state import ChapterEditor

ROLES = ("admin", "chapter")


def _open_store() -> SqlAuthStore:
    settings = get_settings()
    if settings.auth_backend != "sql":
        print("  [!] AUTH_BACKEND=memory has no persistent store to administer.")
        sys.exit(2)
    return SqlAuthStore(settings.auth_db_url) if settings.auth_db_url else SqlAuthStore()


def cmd_create_user(args: argparse.Namespace) -> int:
    password: Optional[str] = args.password
    if not password:
        password = getpass.getpass("Password: ")
        if password != getpass.getpass("Repeat password: "):
            print("  [!] Passwords do not match.")
            return 1
    if not password:
        print("  [!] Password must not be empty.")
        return 1
    if password_too_long(password):
        print(f"  [!] Password must be at most {MAX_PASSWORD_BYTES} bytes.")
        return 1

    store = _open_store()
    try:
        existing = store.find_users(args.username)
        if existing:
            # Login uses the first row whose password matches.
            print(f"  [!] Warning: {len(existing)} user(s) named '{args.username}' already exist.")
        user = provision_user(
            store,
            args.username,
            password,
            role=args.role,
            email=args.email,
            chapter_id=args.chapter,
        )
    finally:
        store.close()
    print(f"  Created {user.role} '{user.username}' (id {user.user_id}).")
    return 0


def cmd_list_users(args: argparse.Namespace) -> int:
    store = _open_store()
    try:
        users = store.list_users()
    finally:
        store.close()
    if not users:
        print("  No users.")
        return 0
    print(f"  {'ROW':>4}  {'USERNAME':<24} {'ROLE':<8} {'CHAPTER':<12} EMAIL")
    for u in users:
        print(f"  {u.id:>4}  {u.username:<24} {u.role:<8} {u.chapter_id or '-':<12} {u.email}")
    return 0


def cmd_update_user(args: argparse.Namespace) -> int:
    fields = {
        name: value
        for name, value in (("role", args.role), ("email", args.email), ("chapter_id", args.chapter))
        if value is not None
    }
    if not fields:
        print("  [!] Nothing to update. Pass --role, --email or --chapter.")
        return 1

    store = _open_store()
    try:
        rows = store.find_users(args.username)
        for user in rows:
            store.update_user(user.id, **fields)
    finally:
        store.close()
    if not rows:
        print(f"  [!] No user named '{args.username}'.")
        return 1
    # Sessions already issued keep their login-time snapshot.
    print(f"  Updated {len(rows)} row(s) for '{args.username}'. Existing sessions are unchanged.")
    return 0


def cmd_sweep_sessions(args: argparse.Namespace) -> int:
    settings = get_settings()
    store = _open_store()
    try:
        removed = SessionManager(store, ttl=timedelta(hours=settings.session_ttl_hours)).cleanup_expired()
        remaining = store.count_sessions()
    finally:
        store.close()
    print(f"  Removed {removed} expired session(s). {remaining} active session(s) remain.")
    return 0


def cmd_edit_chapter(args: argparse.Namespace) -> int:
    client = PortalClient(args.api_url or get_settings().portal_api_url)
    password = args.password or getpass.getpass("Password: ")
    try:
        envelope = client.login(args.username, password)
        if not envelope.get("success"):
            print(f"  [!] {envelope.get('message', 'Login failed')}")
            return 1

        prompt = AutoConfirmPrompt() if args.yes else ConsolePrompt()
        editor = ChapterEditor(client, args.chapter_id, envelope["sessionToken"], prompt)
        editor.load()
        print(f"  {editor.heading}")

        if args.title is not None:
            editor.set_title(args.title)
        if args.description is not None:
            editor.set_description(args.description)
        if args.image_url is not None:
            editor.set_image_url(args.image_url)
        if args.members is not None:
            editor.set_members(args.members)
        for spec in args.add_activity or []:
            title, _, description = spec.partition(":")
            editor.add_activity()
            editor.update_activity(-1, title=title.strip(), description=description.strip())

        result = asyncio.run(editor.save())
        editor.logout()
        return 0 if result.ok else 1
    except (PortalError, ValueError) as e:
        print(f"  [!] {e}")
        return 1
    finally:
        client.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chapter-portal",
        description="Administer chapter portal accounts, sessions and chapter content.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-user admin --role admin
  python main.py create-user qc-lead --role chapter --chapter qc --password s3cret
  python main.py list-users
  python main.py update-user qc-lead --role admin
  python main.py sweep-sessions
  python main.py edit-chapter qc --username qc-lead --add-activity "Beach cleanup: Monthly coastal cleanup" --yes
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p_create = sub.add_parser("create-user", help="Provision a user account")
    p_create.add_argument("username")
    p_create.add_argument("--role", choices=ROLES, default="chapter", help="Account role (default: chapter)")
    p_create.add_argument("--email", default="", help="Contact email")
    p_create.add_argument("--chapter", metavar="CHAPTER-ID", default=None, help="Chapter the account may edit")
    p_create.add_argument("--password", default=None, help="Password (prompted when omitted)")
    p_create.set_defaults(func=cmd_create_user)

    p_list = sub.add_parser("list-users", help="List user accounts in row order")
    p_list.set_defaults(func=cmd_list_users)

    p_update = sub.add_parser("update-user", help="Change role, email or chapter on every row for a username")
    p_update.add_argument("username")
    p_update.add_argument("--role", choices=ROLES, default=None)
    p_update.add_argument("--email", default=None)
    p_update.add_argument("--chapter", metavar="CHAPTER-ID", default=None)
    p_update.set_defaults(func=cmd_update_user)

    p_sweep = sub.add_parser("sweep-sessions", help="Delete expired sessions now")
    p_sweep.set_defaults(func=cmd_sweep_sessions)

    p_edit = sub.add_parser("edit-chapter", help="Update chapter content through the running API")
    p_edit.add_argument("chapter_id", metavar="CHAPTER-ID")
    p_edit.add_argument("--username", required=True)
    p_edit.add_argument("--password", default=None, help="Password (prompted when omitted)")
    p_edit.add_argument("--api-url", default=None, help="Portal API base URL (default: PORTAL_API_URL)")
    p_edit.add_argument("--title")
    p_edit.add_argument("--description")
    p_edit.add_argument("--image-url")
    p_edit.add_argument("--members")
    p_edit.add_argument(
        "--add-activity",
        action="append",
        metavar="TITLE:DESCRIPTION",
        help="Append an activity (repeatable)",
    )
    p_edit.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    p_edit.set_defaults(func=cmd_edit_chapter)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
