"""
Operator CLI for SealBox.

Usage:
    sealbox init-secret [--force]
    sealbox share-text --owner alice@example.com --text "secret" [--password pw] [--max-views 1] [--ttl-hours 24]
    sealbox share-file --owner alice@example.com path/to/file [--mime application/pdf] [...]
    sealbox info <share_id>
    sealbox view <share_id> <key> [--password pw --token tok] [--output out.bin]
    sealbox delete <share_id> <key>
    sealbox request --owner alice@example.com [--ttl-hours 48]
    sealbox sweep
    sealbox run-sweeper

Settings come from SEALBOX_* environment variables (see sealbox.config).
"""

from __future__ import annotations

import argparse
import json
import logging
import mimetypes
import sys
from pathlib import Path
from typing import List, Optional

from .config import load_settings
from .context import build_context
from .core.dropbox import build_view_url
from .core.exceptions import ConfigurationError, SealBoxError
from .core.models import ShareType
from .logging_config import configure_logging
from .security import keystore

logger = logging.getLogger(__name__)


def _expires_at(ctx, ttl_hours: Optional[float]) -> Optional[int]:
    if ttl_hours is None:
        return None
    if ttl_hours <= 0:
        raise ValueError("ttl_hours must be positive")
    return ctx.shares.now() + int(ttl_hours * 3600)


def _print_created(ctx, created) -> None:
    print(f"Share ID: {created.share_id}")
    print(f"Link:     {build_view_url(ctx.settings.base_url, created.share_id, created.key, created.password_token)}")
    print("Keep the link: the key is not stored on the server.")


def cmd_init_secret(args) -> int:
    existing = keystore.load_secret()
    if existing and not args.force:
        print("A signing secret is already stored; pass --force to replace it.", file=sys.stderr)
        return 1
    secure, msg = keystore.assess_keyring_backend()
    if not secure and not args.force:
        print(f"Refusing to store the secret: {msg}", file=sys.stderr)
        return 1
    keystore.save_secret(keystore.generate_secret())
    print("Signing secret stored in the OS keystore.")
    return 0


def cmd_share_text(ctx, args) -> int:
    text = args.text if args.text is not None else sys.stdin.read()
    if not text:
        print("Error: empty text", file=sys.stderr)
        return 1
    created = ctx.shares.create_text_share(
        owner_id=args.owner,
        text=text,
        password=args.password,
        max_views=args.max_views,
        expires_at=_expires_at(ctx, args.ttl_hours),
    )
    _print_created(ctx, created)
    return 0


def cmd_share_file(ctx, args) -> int:
    path = Path(args.path).expanduser()
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1
    mime = args.mime or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    created = ctx.shares.create_file_share(
        owner_id=args.owner,
        data=path.read_bytes(),
        file_name=path.name,
        file_mime=mime,
        password=args.password,
        max_views=args.max_views,
        expires_at=_expires_at(ctx, args.ttl_hours),
    )
    _print_created(ctx, created)
    return 0


def cmd_info(ctx, args) -> int:
    meta = ctx.shares.get_metadata(args.share_id)
    if meta is None or not meta.is_servable(ctx.shares.now()):
        print("Not found or expired", file=sys.stderr)
        return 1
    info = meta.to_dict()
    info.pop("owner_id", None)
    print(json.dumps(info, indent=2))
    return 0


def cmd_view(ctx, args) -> int:
    result = ctx.shares.view(args.share_id, args.key, password=args.password, password_token=args.token)
    if result.share_type is ShareType.TEXT:
        sys.stdout.write(result.text)
        if not result.text.endswith("\n"):
            sys.stdout.write("\n")
        return 0
    destination = Path(args.output or result.file_name or args.share_id)
    destination.write_bytes(result.data)
    print(f"Wrote {result.file_size} bytes to {destination}")
    return 0


def cmd_delete(ctx, args) -> int:
    if ctx.shares.delete(args.share_id, args.key):
        print("Deleted.")
        return 0
    print("Not found or invalid key", file=sys.stderr)
    return 1


def cmd_list(ctx, args) -> int:
    for meta in ctx.shares.list_shares(args.owner, limit=args.limit):
        state = "consumed" if meta.is_consumed else "active"
        label = meta.file_name or "(text)"
        print(f"{meta.share_id}  {meta.share_type.value:<4}  {state:<8}  views={meta.view_count}  {label}")
    return 0


def cmd_request(ctx, args) -> int:
    created = ctx.dropbox.create_request(args.owner, ttl_hours=args.ttl_hours)
    print(f"Upload link: {created.url}")
    print(f"This link is one-time use and expires in {args.ttl_hours} hours.")
    return 0


def cmd_sweep(ctx, args) -> int:
    counts = ctx.sweeper.run_once()
    print(", ".join(f"{name}: {count}" for name, count in counts.items()))
    return 0


def cmd_run_sweeper(ctx, args) -> int:
    ctx.sweeper.run_forever()
    return 0


COMMANDS = {
    "share-text": cmd_share_text,
    "share-file": cmd_share_file,
    "info": cmd_info,
    "view": cmd_view,
    "delete": cmd_delete,
    "list": cmd_list,
    "request": cmd_request,
    "sweep": cmd_sweep,
    "run-sweeper": cmd_run_sweeper,
}


def _add_policy_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--owner", required=True, help="Owner identity (mail address)")
    p.add_argument("--password", default=None, help="Protect the share with a password")
    p.add_argument("--max-views", type=int, default=None, help="Consume after this many views")
    p.add_argument("--ttl-hours", type=float, default=None, help="Expire after this many hours")


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sealbox", description="Encrypted ephemeral shares.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-secret", help="Generate and store the signing secret in the OS keystore")
    p.add_argument("--force", action="store_true")

    p = sub.add_parser("share-text", help="Create a text share")
    p.add_argument("--text", default=None, help="Text to share (default: read stdin)")
    _add_policy_args(p)

    p = sub.add_parser("share-file", help="Create a file share")
    p.add_argument("path")
    p.add_argument("--mime", default=None)
    _add_policy_args(p)

    p = sub.add_parser("info", help="Show share metadata")
    p.add_argument("share_id")

    p = sub.add_parser("view", help="Open a share (counts as a view)")
    p.add_argument("share_id")
    p.add_argument("key")
    p.add_argument("--password", default=None)
    p.add_argument("--token", default=None, help="Password token from the share link")
    p.add_argument("--output", "-o", default=None, help="Output path for file shares")

    p = sub.add_parser("delete", help="Delete a share")
    p.add_argument("share_id")
    p.add_argument("key")

    p = sub.add_parser("list", help="List shares of an owner")
    p.add_argument("--owner", required=True)
    p.add_argument("--limit", type=int, default=50)

    p = sub.add_parser("request", help="Create a drop-box upload link")
    p.add_argument("--owner", required=True)
    p.add_argument("--ttl-hours", type=int, default=48)

    sub.add_parser("sweep", help="Remove expired and consumed records once")
    sub.add_parser("run-sweeper", help="Sweep now and then on the configured interval")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    if args.command == "init-secret":
        configure_logging(logging.DEBUG if args.verbose else logging.INFO)
        return cmd_init_secret(args)

    try:
        settings = load_settings()
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    configure_logging(logging.DEBUG if args.verbose else settings.log_level)

    ctx = build_context(settings)
    try:
        return COMMANDS[args.command](ctx, args)
    except SealBoxError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        ctx.close()


if __name__ == "__main__":  # pragma: no cover - CLI entry
    sys.exit(main())
