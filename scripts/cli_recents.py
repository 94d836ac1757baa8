#!/usr/bin/env python
"""CLI helper for the /api/recents endpoints.
Usage:
  python scripts/cli_recents.py recent octocat --avatar https://example.com/o.png
  python scripts/cli_recents.py compare octocat torvalds
  python scripts/cli_recents.py list
  python scripts/cli_recents.py remove octocat
  python scripts/cli_recents.py clear
  python scripts/cli_recents.py end

The session cookie is kept in a cookie file so consecutive calls share one session.
"""
import argparse
import json
import sys
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import httpx

COOKIE_NAME = "recents_session"
DEFAULT_COOKIE_FILE = Path.home() / ".recents_session"


def _load_session(cookie_file: Path) -> dict:
    if cookie_file.exists():
        session_id = cookie_file.read_text(encoding="utf-8").strip()
        if session_id:
            return {COOKIE_NAME: session_id}
    return {}


def _save_session(client: httpx.Client, cookie_file: Path, ended: bool = False) -> None:
    session_id = None if ended else client.cookies.get(COOKIE_NAME)
    if session_id:
        cookie_file.write_text(session_id, encoding="utf-8")
    elif cookie_file.exists():
        cookie_file.unlink()


def _user(login: str, avatar: str = "", name: str = "") -> dict:
    user = {"login": login, "avatar_url": avatar}
    if name:
        user["name"] = name
    return user


def run(args: argparse.Namespace, transport: Optional[httpx.BaseTransport] = None) -> dict:
    cookie_file = Path(args.cookie_file)
    with httpx.Client(
        base_url=args.host.rstrip("/"),
        cookies=_load_session(cookie_file),
        timeout=10,
        transport=transport,
    ) as client:
        if args.command == "recent":
            r = client.post("/api/recents/users", json=_user(args.login, args.avatar, args.name))
        elif args.command == "compare":
            r = client.post("/api/recents/comparisons", json={"users": [_user(login) for login in args.logins]})
        elif args.command == "remove":
            r = client.delete(f"/api/recents/users/{quote(args.login, safe='')}")
        elif args.command == "clear":
            r = client.delete("/api/recents")
        elif args.command == "end":
            r = client.delete("/api/session")
        else:
            r = client.get("/api/recents")
        r.raise_for_status()
        _save_session(client, cookie_file, ended=args.command == "end")
        return r.json()


def main():
    parser = argparse.ArgumentParser(description="Recently viewed and compared users")
    parser.add_argument("--host", default="http://localhost:8000", help="Backend host")
    parser.add_argument("--cookie-file", default=str(DEFAULT_COOKIE_FILE), help="Where to keep the session id")
    sub = parser.add_subparsers(dest="command")

    recent = sub.add_parser("recent", help="Record a user lookup")
    recent.add_argument("login")
    recent.add_argument("--avatar", default="", help="Avatar URL")
    recent.add_argument("--name", default="", help="Display name")

    compare = sub.add_parser("compare", help="Record a comparison of two or more users")
    compare.add_argument("logins", nargs="+")

    remove = sub.add_parser("remove", help="Forget a recent user")
    remove.add_argument("login")

    sub.add_parser("list", help="Show recent users and comparisons")
    sub.add_parser("clear", help="Clear recent users and comparisons")
    sub.add_parser("end", help="End the session")

    args = parser.parse_args()
    try:
        print(json.dumps(run(args), indent=2, ensure_ascii=False))
    except httpx.HTTPError as e:
        print(f"[recents] request failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
