"""
File watchers for the session log and the session registry.

Each watcher owns one asyncio task running a watch loop. The loop never
gives up: backend failures are logged, the watch is torn down and it is
reattached after ``restart_delay`` seconds. A superseded watch is always
cancelled and awaited before its replacement starts, so no stale watch can
deliver duplicate notifications.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing, suppress
from pathlib import Path

from watchfiles import Change, awatch

from .errors import WatchBackendError
from .logging_config import logger

ChangeSet = set[tuple[Change, str]]
WatchFactory = Callable[[Path, asyncio.Event], AsyncIterator[ChangeSet]]


async def watch_changes(path: Path, stop_event: asyncio.Event) -> AsyncIterator[ChangeSet]:
    """
    Yield change batches for a single file.

    The parent directory is watched (with a filter on the target) rather
    than the file itself, so atomic replace-by-rename writes are still seen.
    """
    target = path.resolve()

    def _only_target(change: Change, changed_path: str) -> bool:
        return Path(changed_path).resolve() == target

    try:
        async for changes in awatch(
            target.parent,
            watch_filter=_only_target,
            stop_event=stop_event,
            debounce=50,
            recursive=False,
        ):
            yield changes
    except (OSError, RuntimeError) as exc:
        raise WatchBackendError(f"watching {path} failed: {exc}") from exc


class _SupervisedWatch:
    def __init__(
        self,
        name: str,
        *,
        restart_delay: float,
        watch_factory: WatchFactory,
    ) -> None:
        self.name = name
        self.restart_delay = restart_delay
        self._watch_factory = watch_factory
        self._task: asyncio.Task | None = None
        self._stop_event: asyncio.Event | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _start(self, path: Path) -> None:
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(
            self._run(path, self._stop_event), name=f"status-pin-{self.name}-watch"
        )

    async def close(self) -> None:
        task, self._task = self._task, None
        if self._stop_event is not None:
            self._stop_event.set()
            self._stop_event = None
        if task is None or task.done():
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    async def _before_attach(self, path: Path) -> None:
        return None

    def _handle(self, changes: ChangeSet) -> None:
        raise NotImplementedError

    def _notify(self, callback: Callable[[], object]) -> None:
        try:
            callback()
        except Exception:
            logger.exception("%s watcher callback failed", self.name)

    async def _run(self, path: Path, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await self._before_attach(path)
                async with aclosing(self._watch_factory(path, stop_event)) as changes_iter:
                    async for changes in changes_iter:
                        self._handle(changes)
                if stop_event.is_set():
                    return
                logger.warning("%s watch on %s ended unexpectedly", self.name, path)
            except WatchBackendError as exc:
                logger.error("%s watcher error: %s", self.name, exc)
            except Exception:
                logger.exception("%s watcher crashed", self.name)
            await asyncio.sleep(self.restart_delay)


class LogWatcher(_SupervisedWatch):
    """
    Watches the active session log and calls ``on_change`` for every batch.

    While the log does not exist yet it is polled every ``poll_interval``
    seconds; the change-based watch is attached once it appears.
    """

    def __init__(
        self,
        on_change: Callable[[], object],
        *,
        poll_interval: float = 5.0,
        restart_delay: float = 5.0,
        watch_factory: WatchFactory = watch_changes,
    ) -> None:
        super().__init__("session log", restart_delay=restart_delay, watch_factory=watch_factory)
        self._on_change = on_change
        self.poll_interval = poll_interval
        self.path: Path | None = None

    async def attach(self, path: str | Path) -> None:
        await self.close()
        self.path = Path(path)
        self._start(self.path)

    async def _before_attach(self, path: Path) -> None:
        if path.exists():
            return
        logger.warning("Session file not yet created, polling for it...")
        while not path.exists():
            await asyncio.sleep(self.poll_interval)
        logger.info("Session file appeared: %s", path)

    def _handle(self, changes: ChangeSet) -> None:
        if any(change != Change.deleted for change, _ in changes):
            self._notify(self._on_change)


class RegistryWatcher(_SupervisedWatch):
    """
    Watches sessions.json and calls ``on_settled`` once a burst of changes
    has been quiet for ``debounce`` seconds (cancel-and-reschedule timer).
    """

    def __init__(
        self,
        path: str | Path,
        on_settled: Callable[[], object],
        *,
        debounce: float = 1.0,
        restart_delay: float = 5.0,
        watch_factory: WatchFactory = watch_changes,
    ) -> None:
        super().__init__("sessions", restart_delay=restart_delay, watch_factory=watch_factory)
        self.path = Path(path)
        self.debounce = debounce
        self._on_settled = on_settled
        self._timer: asyncio.TimerHandle | None = None

    async def start(self) -> None:
        await self.close()
        self._start(self.path)

    async def close(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        await super().close()

    def _handle(self, changes: ChangeSet) -> None:
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.debounce, self._fire)

    def _fire(self) -> None:
        self._timer = None
        self._notify(self._on_settled)


__all__ = ["LogWatcher", "RegistryWatcher", "watch_changes"]
