"""Command-line interface for a Transmission daemon."""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Union

from transrpc.core.config import settings
from transrpc.core.exceptions import TransmissionError
from transrpc.models.schemas import TorrentStatus
from transrpc.services.transmission import Transmission

logger = logging.getLogger(__name__)


def torrent_id(value: str) -> Union[int, str]:
    """Numeric ids become ints, anything else is treated as a hash string."""
    return int(value) if value.isdigit() else value


def torrent_state(value: str) -> TorrentStatus:
    """Parse a status by name (``seed``, ``check-wait``) or number."""
    if value.isdigit():
        try:
            return TorrentStatus(int(value))
        except ValueError:
            pass
    try:
        return TorrentStatus[value.upper().replace("-", "_")]
    except KeyError:
        choices = ", ".join(s.name.lower() for s in TorrentStatus)
        raise argparse.ArgumentTypeError(f"unknown state {value!r} (choose from {choices})")


def setting(value: str) -> tuple[str, Any]:
    """Parse ``KEY=VALUE``; values are read as JSON when possible."""
    key, sep, raw = value.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {value!r}")
    try:
        return key, json.loads(raw)
    except json.JSONDecodeError:
        return key, raw


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="transrpc", description="Control a Transmission daemon over RPC"
    )
    parser.add_argument("--host", help=f"Daemon host (default: {settings.daemon.host})")
    parser.add_argument("--port", type=int, help=f"RPC port (default: {settings.daemon.port})")
    parser.add_argument("--username", help="RPC username")
    parser.add_argument("--password", help="RPC password")
    parser.add_argument("--ssl", action="store_true", default=None, help="Use HTTPS")
    parser.add_argument("--path", help=f"RPC path (default: {settings.daemon.path})")
    parser.add_argument(
        "--log-level",
        default=settings.monitoring.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list", help="List all torrents (fast fields)")

    get = commands.add_parser("get", help="Show torrents")
    get.add_argument("ids", nargs="+", type=torrent_id)
    get.add_argument("--fields", nargs="+", default=[], help="Fields to return")

    add = commands.add_parser("add", help="Add a torrent from a URL, magnet link or file")
    add.add_argument("source")
    add.add_argument("--download-dir", help="Download directory")
    add.add_argument("--paused", action="store_true", help="Add without starting")

    remove = commands.add_parser("remove", help="Remove torrents")
    remove.add_argument("ids", nargs="+", type=torrent_id)
    remove.add_argument("--delete", action="store_true", help="Also delete local data")

    for name, help_text in (
        ("start", "Start torrents (all if no ids)"),
        ("stop", "Stop torrents (all if no ids)"),
    ):
        action = commands.add_parser(name, help=help_text)
        action.add_argument("ids", nargs="*", type=torrent_id)

    verify = commands.add_parser("verify", help="Verify downloaded data")
    verify.add_argument("ids", nargs="+", type=torrent_id)

    wait = commands.add_parser("wait", help="Wait until a torrent reaches a state")
    wait.add_argument("id", type=int)
    wait.add_argument("state", type=torrent_state)
    wait.add_argument("--timeout", type=float, help="Give up after this many seconds")
    wait.add_argument("--interval", type=float, help="Seconds between polls")

    session = commands.add_parser("session", help="Show or change session settings")
    session.add_argument("settings", nargs="*", type=setting, metavar="KEY=VALUE")

    commands.add_parser("stats", help="Show session statistics")

    free_space = commands.add_parser("free-space", help="Free space in a daemon-side folder")
    free_space.add_argument("path")

    return parser


async def run(args: argparse.Namespace) -> Any:
    """Execute one parsed command."""
    async with Transmission(
        host=args.host,
        port=args.port,
        username=args.username,
        password=args.password,
        ssl=args.ssl,
        path=args.path,
        poll_interval=getattr(args, "interval", None),
    ) as client:
        if args.command == "list":
            return await client.fast()
        if args.command == "get":
            return await client.get(args.ids, args.fields)
        if args.command == "add":
            options: dict[str, Any] = {}
            if args.download_dir:
                options["download-dir"] = args.download_dir
            if args.paused:
                options["paused"] = True
            if Path(args.source).is_file():
                return await client.add_file(args.source, options)
            return await client.add_url(args.source, options)
        if args.command == "remove":
            return await client.remove(args.ids, delete_local_data=args.delete)
        if args.command == "start":
            return await client.start(args.ids or None)
        if args.command == "stop":
            return await client.stop(args.ids or None)
        if args.command == "verify":
            return await client.verify(args.ids)
        if args.command == "wait":
            if args.timeout is None:
                return await client.wait_for_state(args.id, args.state)
            return await client.wait_for_state(args.id, args.state, timeout=args.timeout)
        if args.command == "session":
            return await client.session(dict(args.settings) if args.settings else None)
        if args.command == "stats":
            return await client.session_stats()
        if args.command == "free-space":
            return await client.free_space(args.path)

    raise ValueError(f"Unhandled command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        result = asyncio.run(run(args))
    except TransmissionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    sys.exit(main())
