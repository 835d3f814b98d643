import asyncio
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol

from routesync._internal.core.errors import ConfigurationError, ProxyError, StateError
from routesync._internal.core.models.state import ConfigState
from routesync._internal.core.services.backends import AuthorityBackendSource, BackendSource
from routesync._internal.core.services.translator import parse_config_file
from routesync._internal.proxy.channel import ChannelFactory
from routesync._internal.proxy.dispatcher import (
    DispatchStrategy,
    execute_orders,
    get_config_state,
)
from routesync._internal.sync.watcher import FileEvent, FileEventKind
from routesync._internal.utils.common import run_async
from routesync._internal.utils.logging import get_logger

logger = get_logger(__name__)

# upper bound for a single wait on the event source so that the loop stays responsive
POLL_INTERVAL = 1.0

RECONCILE_EVENTS = (FileEventKind.WRITE, FileEventKind.CREATE, FileEventKind.CHMOD)


class EventSource(Protocol):
    def watch(self, path: Path) -> None: ...

    def unwatch(self, path: Path) -> None: ...

    def get(self, timeout: Optional[float] = None) -> Optional[FileEvent]: ...


class SyncStatus(str, Enum):
    INITIALIZING = "initializing"
    WATCHING = "watching"
    RECONCILING = "reconciling"
    RESYNCING = "resyncing"


class Reconciler:
    """
    Reconciler keeps the proxy configuration in sync with the applications file.

    It owns `mirror`, the local copy of the proxy state. The mirror is either the last
    state successfully pushed to the proxy or a fresh dump fetched from the proxy.
    If a fetch fails the mirror becomes unknown (None) and is fetched again before
    the next change is applied.
    """

    def __init__(
        self,
        applications_file: Path,
        connect: ChannelFactory,
        strategy: DispatchStrategy = DispatchStrategy.SEQUENTIAL,
        backend_source: Optional[BackendSource] = AuthorityBackendSource(),
        follow_processing: bool = False,
    ) -> None:
        self.watched_path = Path(applications_file).absolute()
        self.status = SyncStatus.INITIALIZING
        self.mirror: Optional[ConfigState] = None
        self.last_applied: Optional[ConfigState] = None
        self._connect = connect
        self._strategy = strategy
        self._backend_source = backend_source
        self._follow_processing = follow_processing

    async def initialize(self) -> None:
        """Fetches the proxy state. Errors are not handled since there is nothing to mirror."""
        self.status = SyncStatus.INITIALIZING
        logger.info("Retrieving current proxy state")
        self.mirror = await get_config_state(self._connect)
        self.status = SyncStatus.WATCHING
        logger.info("Current state initialized (%s). Waiting for changes...", self.mirror.fmt())

    async def run(self, source: EventSource, refresh_interval: Optional[float] = None) -> None:
        """
        Processes events one at a time until the event source fails.
        If `refresh_interval` is set, the mirror is refetched from the proxy every
        `refresh_interval` seconds to pick up changes made by others.
        """
        source.watch(self.watched_path)
        await self.initialize()
        loop = asyncio.get_running_loop()
        next_refresh = None if refresh_interval is None else loop.time() + refresh_interval
        while True:
            timeout = POLL_INTERVAL
            if next_refresh is not None:
                timeout = min(timeout, max(0.0, next_refresh - loop.time()))
            event = await run_async(source.get, timeout)
            if event is not None:
                await self.handle_event(event, source)
            if next_refresh is not None and loop.time() >= next_refresh:
                await self.resync("periodic refresh")
                next_refresh = loop.time() + refresh_interval

    async def handle_event(self, event: FileEvent, source: EventSource) -> None:
        if event.kind in RECONCILE_EVENTS:
            logger.info("File %s changed (%s), generating diff", event.path, event.kind.value)
            await self.reconcile(event.path)
        elif event.kind == FileEventKind.RENAME and event.new_path is not None:
            logger.info(
                "File renamed:\n\tOld path: %s\n\tNew path: %s", event.path, event.new_path
            )
            source.unwatch(event.path)
            source.watch(event.new_path)
            self.watched_path = Path(event.new_path)
        else:
            logger.debug("Unhandled event: %s", event)

    async def reconcile(self, path: Path) -> bool:
        """
        Applies the applications file at `path` to the proxy.
        Returns True if the proxy is known to match the file afterwards.
        """
        self.status = SyncStatus.RECONCILING
        try:
            return await self._reconcile(path)
        finally:
            self.status = SyncStatus.WATCHING

    async def _reconcile(self, path: Path) -> bool:
        try:
            desired = await run_async(
                parse_config_file, path, backend_source=self._backend_source
            )
        except (ConfigurationError, StateError) as e:
            logger.error("Error reading file %s. Reason: %s", path, e)
            return False

        if self.mirror is None and not await self.resync("proxy state is unknown"):
            logger.error("Changes in %s are not applied: proxy state is unknown", path)
            return False
        mirror = self.mirror
        assert mirror is not None

        if self._backend_source is None:
            # instances are managed elsewhere, keep the ones the proxy has
            desired = desired.with_instances_of(mirror)

        orders = mirror.diff(desired)
        if not orders:
            logger.warning("No changes made.")
            return True

        logger.info("Sending new configuration to the proxy: %d order(s)", len(orders))
        try:
            outcomes = await execute_orders(
                self._connect,
                orders,
                strategy=self._strategy,
                follow_processing=self._follow_processing,
            )
        except ProxyError as e:
            logger.error("Could not send orders to the proxy: %s", e)
        else:
            failed = [o for o in outcomes if not o.ok]
            if not failed:
                self.mirror = desired
                self.last_applied = desired
                logger.info("Proxy configuration updated")
                return True
            for outcome in failed:
                logger.error("Order %s failed: %s", outcome.order.type, outcome.error)

        logger.info("Error sending orders to proxy. Resynchronizing state.")
        await self.resync("orders failed")
        return False

    async def resync(self, reason: str) -> bool:
        """
        Replaces the mirror with a fresh dump of the proxy state.
        If the proxy cannot be reached, the mirror becomes unknown.
        """
        previous_status = self.status
        self.status = SyncStatus.RESYNCING
        logger.debug("Resynchronizing proxy state: %s", reason)
        try:
            self.mirror = await get_config_state(self._connect)
        except ProxyError as e:
            logger.error("Could not resynchronize proxy state (%s): %s", reason, e)
            self.mirror = None
            return False
        finally:
            self.status = previous_status
        logger.info("Proxy state resynchronized (%s): %s", reason, self.mirror.fmt())
        return True
