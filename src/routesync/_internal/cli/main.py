import argparse
import asyncio
from pathlib import Path
from typing import Optional

import argcomplete
from rich.markup import escape
from rich_argparse import RichHelpFormatter

from routesync._internal import settings
from routesync._internal.cli.utils.common import _colors, configure_logging, console
from routesync._internal.core.errors import CLIError, ConfigurationError, RoutesyncError
from routesync._internal.core.services.backends import AuthorityBackendSource
from routesync._internal.core.services.proxy_config import load_command_socket
from routesync._internal.proxy.channel import unix_socket_connector
from routesync._internal.proxy.dispatcher import DispatchStrategy
from routesync._internal.sync.reconciler import Reconciler
from routesync._internal.sync.watcher import FileEventSource
from routesync._internal.utils.logging import get_logger
from routesync.version import __version__ as version

logger = get_logger(__name__)


def positive_float(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value!r} is not a number")
    if parsed <= 0:
        raise argparse.ArgumentTypeError(f"{value!r} must be positive")
    return parsed


def get_parser() -> argparse.ArgumentParser:
    RichHelpFormatter.usage_markup = True
    RichHelpFormatter.styles["code"] = _colors["code"]
    RichHelpFormatter.styles["argparse.args"] = _colors["code"]
    RichHelpFormatter.styles["argparse.groups"] = "bold grey74"
    RichHelpFormatter.styles["argparse.text"] = "grey74"

    parser = argparse.ArgumentParser(
        prog="routesync",
        description="Watch application routing configs and push updates to the proxy",
        formatter_class=RichHelpFormatter,
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"{version}",
        help="Show routesync version",
    )
    parser.add_argument(
        "-a",
        "--applications",
        metavar="FILE",
        type=Path,
        default=Path(settings.APPLICATIONS_FILE),
        help="What application config file to watch. Defaults to [code]%(default)s[/]",
    )
    socket_group = parser.add_mutually_exclusive_group()
    socket_group.add_argument(
        "-s",
        "--socket",
        metavar="PATH",
        type=Path,
        default=Path(settings.PROXY_SOCKET) if settings.PROXY_SOCKET else None,
        help="The proxy command socket. Defaults to [code]$ROUTESYNC_SOCKET[/]",
    )
    socket_group.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        type=Path,
        default=Path(settings.PROXY_CONFIG_FILE),
        help=(
            "What proxy config to read the command socket from"
            " if [code]--socket[/] is not set. Defaults to [code]%(default)s[/]"
        ),
    )
    parser.add_argument(
        "-i",
        "--interval",
        metavar="SECONDS",
        type=positive_float,
        default=settings.WATCH_INTERVAL,
        help="How often to check for file changes. Defaults to [code]%(default)s[/]",
    )
    parser.add_argument(
        "--refresh",
        metavar="SECONDS",
        type=positive_float,
        default=settings.REFRESH_INTERVAL,
        help="Refetch the proxy state every SECONDS to pick up changes made by others",
    )
    parser.add_argument(
        "--concurrent",
        action="store_true",
        help="Send all orders of a change at once instead of one by one",
    )
    parser.add_argument(
        "--follow-processing",
        action="store_true",
        help="Wait for orders the proxy reports as processing to complete",
    )
    parser.add_argument(
        "--no-backends",
        action="store_true",
        help="Do not manage backend instances, keep the ones registered in the proxy",
    )
    parser.add_argument(
        "--log-level",
        metavar="LEVEL",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=settings.LOG_LEVEL,
        help="Console log level. Defaults to [code]%(default)s[/]",
    )
    return parser


def get_socket_path(args: argparse.Namespace) -> Path:
    if args.socket is not None:
        return args.socket
    try:
        return load_command_socket(args.config)
    except ConfigurationError as e:
        raise CLIError(f"Cannot get the proxy command socket from {args.config}: {e}") from e


def make_reconciler(args: argparse.Namespace, socket_path: Path) -> Reconciler:
    return Reconciler(
        applications_file=args.applications,
        connect=unix_socket_connector(socket_path),
        strategy=DispatchStrategy.CONCURRENT if args.concurrent else DispatchStrategy.SEQUENTIAL,
        backend_source=None if args.no_backends else AuthorityBackendSource(),
        follow_processing=args.follow_processing,
    )


async def watch(reconciler: Reconciler, interval: float, refresh: Optional[float]) -> None:
    source = FileEventSource(debounce=interval)
    logger.info(
        "Watching file `%s`. Updating every %s second(s).", reconciler.watched_path, interval
    )
    try:
        await reconciler.run(source, refresh_interval=refresh)
    finally:
        source.stop()


def main() -> None:
    parser = get_parser()
    argcomplete.autocomplete(parser, always_complete_options=False)
    args = parser.parse_args()
    configure_logging(
        level=args.log_level,
        log_file=Path(settings.FILE_LOG) if settings.FILE_LOG else None,
    )

    try:
        socket_path = get_socket_path(args)
        reconciler = make_reconciler(args, socket_path)
        asyncio.run(watch(reconciler, args.interval, args.refresh))
    except KeyboardInterrupt:
        logger.info("Exiting routesync")
    except RoutesyncError as e:
        console.print(f"[error]{escape(str(e))}[/]")
        logger.debug(e, exc_info=True)
        exit(1)


if __name__ == "__main__":
    main()
