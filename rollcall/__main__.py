"""CLI entry point for rollcall."""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

from .app import Rollcall
from .config import load_config
from .errors import RollcallError
from .models import Collection
from .notifications import Notification, check_notifications


class JSONFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str)


def setup_logging(verbose: bool = False, log_level: str | None = None, json_output: bool = False) -> None:
    """Configure logging.

    Args:
        verbose: Enable debug logging (ignored if log_level is set).
        log_level: Explicit log level (warning, info, debug).
        json_output: Output logs as JSON lines for machine parsing.
    """
    if log_level:
        level = getattr(logging, log_level.upper())
    else:
        level = logging.DEBUG if verbose else logging.WARNING

    handler = logging.StreamHandler()
    handler.setFormatter(
        JSONFormatter()
        if json_output
        else logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    logging.basicConfig(level=level, handlers=[handler])

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _build_app(args: argparse.Namespace) -> Rollcall:
    return Rollcall(load_config(args.config))


async def cmd_status(args: argparse.Namespace) -> int:
    """Show local collections, identity and remote connectivity."""
    app = _build_app(args)

    collections = {}
    for collection in (Collection.PEOPLE, Collection.ACTIVITIES, Collection.ATTENDANCE):
        records = app.store.load(collection)
        collections[collection.value] = {
            "records": len(records),
            "unsynced": sum(1 for r in records if r.is_dirty),
        }
    audit_stats = app.audit_log.get_stats()
    collections[Collection.AUDIT_LOGS.value] = {
        "records": audit_stats["total_entries"],
        "unsynced": audit_stats["unsynced_entries"],
    }

    identity = app.identity.identity
    remote_config = app.remote_config()
    remote = app.create_remote()
    connected = False
    if remote is not None:
        try:
            connected = await remote.check_connection()
        finally:
            await remote.close()

    status_data = {
        "timestamp": datetime.now().isoformat(),
        "data_dir": str(Path(app.config.storage.data_dir).expanduser()),
        "device_id": app.identity.device_id,
        "identity": (
            {"name": identity.name, "email": identity.email} if identity else None
        ),
        "collections": collections,
        "remote": {
            "url": remote_config.url or None,
            "configured": remote_config.configured,
            "connected": connected,
        },
    }

    if args.json:
        print(json.dumps(status_data, indent=2))
        return 0

    print("Rollcall Status")
    print("===============")
    print(f"Data directory: {status_data['data_dir']}")
    print(f"Device: {status_data['device_id']}")
    if identity:
        print(f"Identity: {identity.name} <{identity.email}>")
    else:
        print("Identity: not set")
    print()

    print("Collections:")
    for name, counts in collections.items():
        print(f"  {name}: {counts['records']} records, {counts['unsynced']} unsynced")
    print()

    print("Remote:")
    if not remote_config.configured:
        print("  Status: Not configured (offline mode)")
    elif connected:
        print(f"  Status: Connected ({remote_config.url})")
    else:
        print(f"  Status: Not reachable ({remote_config.url})")

    return 0


async def cmd_sync(args: argparse.Namespace) -> int:
    """Reconcile local collections with the remote store."""
    app = _build_app(args)
    remote = app.create_remote()
    if remote is None:
        print("No remote configured. Use 'rollcall remote set URL KEY'.", file=sys.stderr)
        return 1

    engine = app.create_sync_engine(remote)
    try:
        report = await engine.sync(full=args.full)
    finally:
        await remote.close()

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        for outcome in report.outcomes:
            line = (
                f"{outcome.collection.value:<12} {outcome.status.value:<9} "
                f"pulled={outcome.pulled} pushed={outcome.pushed}"
            )
            if outcome.rejected:
                line += f" rejected={outcome.rejected}"
            if outcome.error:
                line += f" ({outcome.error})"
            print(line)

    return 0 if report.ok else 1


def cmd_identity_show(args: argparse.Namespace) -> int:
    app = _build_app(args)
    identity = app.identity.identity
    print(f"Device: {app.identity.device_id}")
    if identity:
        print(f"Name: {identity.name}")
        print(f"Email: {identity.email}")
    else:
        print("Identity: not set")
    return 0


def cmd_identity_set(args: argparse.Namespace) -> int:
    app = _build_app(args)
    identity = app.identity.set_identity(args.name, args.email)
    print(f"Identity set: {identity.name} <{identity.email}> on {app.identity.device_id}")
    return 0


def cmd_remote_set(args: argparse.Namespace) -> int:
    app = _build_app(args)
    app.save_remote(args.url, args.key)
    print(f"Remote saved: {args.url}")
    return 0


async def cmd_remote_test(args: argparse.Namespace) -> int:
    app = _build_app(args)
    remote = app.create_remote()
    if remote is None:
        print("No remote configured.", file=sys.stderr)
        return 1
    try:
        connected = await remote.check_connection()
    finally:
        await remote.close()

    print("Connection OK" if connected else "Connection failed")
    return 0 if connected else 1


def cmd_notify(args: argparse.Namespace) -> int:
    """Print the notifications the app would show today."""
    app = _build_app(args)

    def print_notification(notification: Notification) -> None:
        print(f"[{notification.level.upper()}] {notification.title}")
        print(f"  {notification.body}")

    fired = check_notifications(app.store, print_notification)
    if not fired:
        print("Nothing to report.")
    return 0


def cmd_reset(args: argparse.Namespace) -> int:
    """Delete all local data."""
    if not args.yes:
        print("Refusing to reset without --yes", file=sys.stderr)
        return 1

    app = _build_app(args)
    app.factory_reset()
    print("All local data deleted.")
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="rollcall",
        description="Offline-first people, activity and attendance records",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config file (default: built-in defaults)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["warning", "info", "debug"],
        default=None,
        help="Set log level explicitly (overrides -v/--verbose)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs as JSON for machine parsing",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Status command
    status_parser = subparsers.add_parser("status", help="Show local and remote status")
    status_parser.add_argument("--json", action="store_true", help="Output status as JSON")
    status_parser.set_defaults(func=cmd_status)

    # Sync command
    sync_parser = subparsers.add_parser("sync", help="Sync with the remote store")
    sync_parser.add_argument(
        "--full",
        action="store_true",
        help="Ignore watermarks and pull every remote record",
    )
    sync_parser.add_argument("--json", action="store_true", help="Output report as JSON")
    sync_parser.set_defaults(func=cmd_sync)

    # Identity commands
    identity_parser = subparsers.add_parser("identity", help="Show or set the user identity")
    identity_subparsers = identity_parser.add_subparsers(dest="identity_command")

    identity_show = identity_subparsers.add_parser("show", help="Show identity and device")
    identity_show.set_defaults(func=cmd_identity_show)

    identity_set = identity_subparsers.add_parser("set", help="Set identity")
    identity_set.add_argument("name")
    identity_set.add_argument("email")
    identity_set.set_defaults(func=cmd_identity_set)

    # Remote commands
    remote_parser = subparsers.add_parser("remote", help="Configure the remote store")
    remote_subparsers = remote_parser.add_subparsers(dest="remote_command")

    remote_set = remote_subparsers.add_parser("set", help="Save remote URL and key")
    remote_set.add_argument("url")
    remote_set.add_argument("key")
    remote_set.set_defaults(func=cmd_remote_set)

    remote_test = remote_subparsers.add_parser("test", help="Test the remote connection")
    remote_test.set_defaults(func=cmd_remote_test)

    # Notify command
    notify_parser = subparsers.add_parser("notify", help="Show today's notifications")
    notify_parser.set_defaults(func=cmd_notify)

    # Reset command
    reset_parser = subparsers.add_parser("reset", help="Factory reset: delete all local data")
    reset_parser.add_argument("--yes", action="store_true", help="Confirm deletion")
    reset_parser.set_defaults(func=cmd_reset)

    args = parser.parse_args()

    setup_logging(args.verbose, args.log_level, args.json_logs)

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "identity" and not args.identity_command:
        identity_parser.print_help()
        return 1

    if args.command == "remote" and not args.remote_command:
        remote_parser.print_help()
        return 1

    func = args.func
    try:
        if asyncio.iscoroutinefunction(func):
            return asyncio.run(func(args))
        return func(args)
    except RollcallError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
