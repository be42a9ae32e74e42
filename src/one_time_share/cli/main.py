"""Command line entry point.

Runs the HTTP server and covers the manual chores around the store:
adding/removing identities with their limits and one-off expiry sweeps.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Optional, Sequence

import uvicorn

from one_time_share.app.server import create_app
from one_time_share.core.infrastructure.settings import Settings
from one_time_share.core.infrastructure.storage.facade import Storage
from one_time_share.core.infrastructure.storage.migrations.runner import update_version
from one_time_share.utils.exceptions import ShareError
from one_time_share.utils.logging import configure_root, get_logger, level_from_name, short_token
from one_time_share.utils.time import iso_utc, now_sec

_log = get_logger(__name__)


def _print_json(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _open_store(settings: Settings) -> Storage:
    storage = Storage.connect(settings.DATABASE_PATH)
    try:
        update_version(storage)
    except ShareError:
        storage.disconnect()
        raise
    return storage


# ============== Commands ==============

def cmd_serve(settings: Settings, _args: argparse.Namespace) -> int:
    ssl: dict[str, str] = {}
    if not settings.FORCE_UNPROTECTED_HTTP:
        ssl = {"ssl_certfile": settings.CERT_PATH, "ssl_keyfile": settings.KEY_PATH}
    _log.info(
        "serve_starting",
        extra={"host": settings.HOST, "port": settings.PORT, "tls": bool(ssl)},
    )
    uvicorn.run(
        create_app(settings=settings),
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        **ssl,
    )
    return 0


def cmd_identity_set(settings: Settings, args: argparse.Namespace) -> int:
    storage = _open_store(settings)
    try:
        storage.set_limits(args.token, args.retention, args.max_size, args.creation_limit)
        limits = storage.get_limits(args.token)
    finally:
        storage.disconnect()
    _print_json({
        "token": args.token,
        "retention_limit_minutes": limits.retention_limit_minutes,
        "max_size_bytes": limits.max_size_bytes,
        "creation_limit_minutes": limits.creation_limit_minutes,
    })
    return 0


def cmd_identity_get(settings: Settings, args: argparse.Namespace) -> int:
    storage = _open_store(settings)
    try:
        limits = storage.get_limits(args.token)
        last_ts = storage.get_last_creation_timestamp(args.token)
    finally:
        storage.disconnect()
    if not limits.found:
        print(f"identity not found: {args.token}", file=sys.stderr)
        return 1
    _print_json({
        "token": args.token,
        "retention_limit_minutes": limits.retention_limit_minutes,
        "max_size_bytes": limits.max_size_bytes,
        "creation_limit_minutes": limits.creation_limit_minutes,
        "last_message_creation": iso_utc(last_ts) if last_ts else None,
    })
    return 0


def cmd_identity_remove(settings: Settings, args: argparse.Namespace) -> int:
    storage = _open_store(settings)
    try:
        storage.remove_identity(args.token)
    finally:
        storage.disconnect()
    _log.info("identity_removed", extra={"identity": short_token(args.token)})
    return 0


def cmd_identity_list(settings: Settings, _args: argparse.Namespace) -> int:
    storage = _open_store(settings)
    try:
        tokens = storage.list_identities()
    finally:
        storage.disconnect()
    for token in tokens:
        print(token)
    return 0


def cmd_purge(settings: Settings, _args: argparse.Namespace) -> int:
    storage = _open_store(settings)
    try:
        removed = storage.clear_expired_messages(now_sec())
    finally:
        storage.disconnect()
    _print_json({"removed": removed})
    return 0


# ============== Parser ==============

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="one-time-share", description="One-time secret sharing service")
    parser.add_argument("--config", default=None, help="path to app-config.json (default: $APP_CONFIG_FILE or ./app-config.json)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_serve = sub.add_parser("serve", help="run the HTTP(S) server")
    p_serve.set_defaults(func=cmd_serve)

    p_ident = sub.add_parser("identity", help="manage identities and their limits")
    ident_sub = p_ident.add_subparsers(dest="identity_command", required=True)

    p_set = ident_sub.add_parser("set", help="create or update an identity")
    p_set.add_argument("token")
    p_set.add_argument("--retention", type=int, default=0, help="max retention in minutes (0 = unlimited)")
    p_set.add_argument("--max-size", type=int, default=0, help="max message size in bytes (0 = unlimited)")
    p_set.add_argument("--creation-limit", type=int, default=0, help="minutes between two messages (0 = unlimited)")
    p_set.set_defaults(func=cmd_identity_set)

    p_get = ident_sub.add_parser("get", help="show an identity")
    p_get.add_argument("token")
    p_get.set_defaults(func=cmd_identity_get)

    p_rm = ident_sub.add_parser("remove", help="delete an identity")
    p_rm.add_argument("token")
    p_rm.set_defaults(func=cmd_identity_remove)

    p_list = ident_sub.add_parser("list", help="list identity tokens")
    p_list.set_defaults(func=cmd_identity_list)

    p_purge = sub.add_parser("purge", help="delete expired messages now")
    p_purge.set_defaults(func=cmd_purge)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = Settings.load(args.config)
    except ShareError as exc:
        print(f"configuration error: {exc}", file=sys.stderr)
        return 2

    configure_root(level_from_name(settings.LOG_LEVEL))

    for name in ("retention", "max_size", "creation_limit"):
        if getattr(args, name, 0) < 0:
            parser.error(f"--{name.replace('_', '-')} must be >= 0")

    try:
        return int(args.func(settings, args))
    except ShareError as exc:
        _log.error("command_failed", extra={"command": args.command, "error": str(exc)})
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
