import queue
import threading
from enum import Enum
from pathlib import Path
from typing import Iterable, NamedTuple, Optional, Sequence

import watchfiles

from routesync._internal.core.errors import WatchError
from routesync._internal.utils.logging import get_logger

logger = get_logger(__name__)

JOIN_TIMEOUT = 5.0


class FileEventKind(str, Enum):
    WRITE = "write"
    CREATE = "create"
    CHMOD = "chmod"
    RENAME = "rename"
    REMOVE = "remove"


class FileEvent(NamedTuple):
    kind: FileEventKind
    path: Path
    # set for RENAME only
    new_path: Optional[Path] = None


def changes_to_events(
    changes: Iterable[tuple[watchfiles.Change, str]], watched: Sequence[Path]
) -> list[FileEvent]:
    """
    Converts a debounced batch of raw changes into events on the watched files.
    Changes to other files are dropped unless they complete a rename of a watched file.
    """
    added: list[Path] = []
    modified: set[Path] = set()
    deleted: set[Path] = set()
    for change, raw_path in changes:
        path = Path(raw_path)
        if change == watchfiles.Change.added:
            if path not in added:
                added.append(path)
        elif change == watchfiles.Change.modified:
            modified.add(path)
        elif change == watchfiles.Change.deleted:
            deleted.add(path)

    events = []
    for path in watched:
        if path in added:
            # editors often save by replacing the file
            events.append(FileEvent(FileEventKind.CREATE, path))
        elif path in deleted:
            candidates = [
                p
                for p in added
                if p.parent == path.parent and p not in watched and p not in deleted
            ]
            if len(candidates) == 1:
                events.append(FileEvent(FileEventKind.RENAME, path, candidates[0]))
            else:
                events.append(FileEvent(FileEventKind.REMOVE, path))
        elif path in modified:
            # watchfiles reports permission changes as modifications
            events.append(FileEvent(FileEventKind.WRITE, path))
    return events


class _WatcherThread(threading.Thread):
    def __init__(self, paths: Sequence[Path], debounce: float, q: "queue.Queue[FileEvent]"):
        super().__init__(name="routesync-watcher", daemon=True)
        self.paths = list(paths)
        self.debounce = debounce
        self.queue = q
        self.stop_event = threading.Event()
        self.error: Optional[Exception] = None

    def run(self) -> None:
        dirs = sorted({p.parent for p in self.paths})
        try:
            for changes in watchfiles.watch(
                *dirs,
                watch_filter=None,
                debounce=int(self.debounce * 1000),
                stop_event=self.stop_event,
                raise_interrupt=False,
                recursive=False,
            ):
                logger.debug("Raw changes: %s", changes)
                for event in changes_to_events(changes, self.paths):
                    self.queue.put(event)
        except Exception as e:
            logger.debug("Watcher failed", exc_info=True)
            self.error = e


class FileEventSource:
    """
    FileEventSource watches files from a background thread and queues debounced
    events for a single consumer.
    """

    def __init__(self, debounce: float = 5.0) -> None:
        self.debounce = debounce
        self._paths: list[Path] = []
        self._queue: "queue.Queue[FileEvent]" = queue.Queue()
        self._thread: Optional[_WatcherThread] = None

    @property
    def watched(self) -> list[Path]:
        return list(self._paths)

    def watch(self, path: Path) -> None:
        path = Path(path).absolute()
        if path in self._paths:
            return
        if not path.parent.is_dir():
            raise WatchError(f"Cannot watch {path}: directory {path.parent} does not exist")
        self._paths.append(path)
        self._restart()

    def unwatch(self, path: Path) -> None:
        path = Path(path).absolute()
        if path not in self._paths:
            return
        self._paths.remove(path)
        self._restart()

    def get(self, timeout: Optional[float] = None) -> Optional[FileEvent]:
        """
        Returns the next event or None if there was none within `timeout` seconds.
        Raises WatchError if watching failed.
        """
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            pass
        thread = self._thread
        if thread is not None and thread.error is not None:
            raise WatchError(f"Cannot watch {', '.join(map(str, thread.paths))}: {thread.error}")
        return None

    def stop(self) -> None:
        thread, self._thread = self._thread, None
        if thread is not None:
            thread.stop_event.set()
            thread.join(timeout=JOIN_TIMEOUT)

    def _restart(self) -> None:
        self.stop()
        if self._paths:
            logger.debug("Watching %s", ", ".join(map(str, self._paths)))
            self._thread = _WatcherThread(self._paths, self.debounce, self._queue)
            self._thread.start()
