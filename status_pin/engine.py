"""
Reconciliation engine.

One StatusPinEngine instance owns all mutable runtime state (current
session, cached balance, model capacities, watchers, last update time) and
drives the update cycle:

    cooldown gate -> parse usage -> refresh balance -> format -> publish
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Coroutine
from typing import Any, Mapping, Optional

import httpx

from .credentials import Credentials, resolve_credentials
from .errors import RemoteError, StatusPinError
from .formatter import format_status_message
from .logging_config import logger
from .openrouter import (
    DEFAULT_CONTEXT_WINDOW,
    BalanceCache,
    ModelCapacityCache,
    fetch_balance,
    fetch_context_window,
)
from .pin_store import PinStateStore
from .publisher import Publisher
from .schemas import SessionDescriptor
from .session_discovery import discover_session_from_file
from .settings import Settings, settings as default_settings
from .telegram import TelegramClient
from .usage import parse_last_usage
from .watchers import LogWatcher, RegistryWatcher, WatchFactory, watch_changes


class StatusPinEngine:
    def __init__(
        self,
        settings: Settings,
        *,
        http_client: httpx.AsyncClient | None = None,
        pin_store: PinStateStore | None = None,
        watch_factory: WatchFactory = watch_changes,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=settings.http_timeout)
        self.pin_store = pin_store or PinStateStore(settings.resolved_state_file)
        self._clock = clock

        self.credentials: Credentials | None = None
        self.publisher: Publisher | None = None
        self.session: SessionDescriptor | None = None
        self.capacity_cache = ModelCapacityCache()
        self.balance_cache = BalanceCache()

        self._last_update: float | None = None
        self._trailing: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()

        self.log_watcher = LogWatcher(
            self._on_log_change,
            poll_interval=settings.log_poll_interval,
            restart_delay=settings.watcher_restart_delay,
            watch_factory=watch_factory,
        )
        self.registry_watcher = RegistryWatcher(
            settings.sessions_file,
            self._on_registry_settled,
            debounce=settings.registry_debounce_ms / 1000,
            restart_delay=settings.watcher_restart_delay,
            watch_factory=watch_factory,
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "StatusPinEngine":
        return cls(settings or default_settings)

    @property
    def cooldown(self) -> float:
        return self.settings.cooldown_ms / 1000

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def configure(self, event: Optional[Mapping[str, Any]] = None) -> None:
        """
        Resolve credentials and build the publisher. Raises ConfigurationError.
        """
        self.credentials = resolve_credentials(self.settings, event)
        telegram = TelegramClient(
            self.http_client,
            self.credentials.bot_token,
            api_base=self.settings.telegram_api_base,
        )
        self.publisher = Publisher(telegram, self.pin_store)

    def discover(self) -> SessionDescriptor:
        return discover_session_from_file(
            self.settings.sessions_file,
            agent_id=self.settings.agent_id,
            chat_id_override=self.settings.chat_id_override,
            context_window_override=self.settings.context_window_override,
            capacity_cache=self.capacity_cache,
            channel=self.settings.delivery_channel,
        )

    async def resolve_context_window(self, model: str) -> int:
        """
        Override -> capacity cache -> OpenRouter listing -> default. Never raises.
        """
        if self.settings.context_window_override:
            return self.settings.context_window_override
        if self.credentials is None:
            return DEFAULT_CONTEXT_WINDOW
        try:
            value = await fetch_context_window(
                self.http_client,
                self.credentials.openrouter_key,
                model,
                self.capacity_cache,
                base_url=self.settings.openrouter_api_base,
            )
        except RemoteError as exc:
            logger.warning(
                "Could not fetch context window, using default %d: %s",
                DEFAULT_CONTEXT_WINDOW,
                exc,
            )
            return DEFAULT_CONTEXT_WINDOW
        logger.info("Context window for %s: %s (from OpenRouter)", model, f"{value:,}")
        return value

    async def start(self, event: Optional[Mapping[str, Any]] = None) -> None:
        """
        Configure, discover the session, publish once and start watching.

        Configuration and discovery errors propagate and nothing is watched.
        """
        await self.close_watchers()

        self.configure(event)
        session = self.discover()

        if not session.context_window:
            session.context_window = await self.resolve_context_window(session.model)
        else:
            logger.info("Context window: %s", f"{session.context_window:,}")

        self.session = session
        logger.info("Model: %s", session.model)
        logger.info("Chat ID: %s", session.chat_id)
        logger.info("Watching: %s", session.session_file)

        try:
            await self.run_update()
        except (StatusPinError, httpx.HTTPError, OSError) as exc:
            logger.error("Initial update failed: %s", exc)

        await self.log_watcher.attach(session.session_file)
        await self.registry_watcher.start()
        logger.info("Running.")

    # ------------------------------------------------------------------
    # Update cycle
    # ------------------------------------------------------------------

    async def run_update(self) -> bool:
        """
        Run one reconciliation pass. Returns False when the pass was
        skipped by the cooldown gate.
        """
        if self.publisher is None or self.credentials is None:
            raise RuntimeError("StatusPinEngine.configure() must run before run_update()")
        session = self.session
        if session is None:
            return False

        now = self._clock()
        if self._last_update is not None:
            elapsed = now - self._last_update
            if elapsed < self.cooldown:
                logger.debug("Update skipped, %.2fs into cooldown", elapsed)
                self._schedule_trailing_update(self.cooldown - elapsed)
                return False
        self._last_update = now

        usage = parse_last_usage(session.session_file)

        openrouter_key = self.credentials.openrouter_key
        stale_balance = await self.balance_cache.refresh(
            lambda: fetch_balance(
                self.http_client,
                openrouter_key,
                base_url=self.settings.openrouter_api_base,
            )
        )

        text = format_status_message(
            session, usage, self.balance_cache.snapshot, stale_balance
        )
        await self.publisher.ensure_pin(session, text)
        return True

    def _schedule_trailing_update(self, delay: float) -> None:
        if not self.settings.trailing_update or self._trailing is not None:
            return
        loop = asyncio.get_running_loop()
        self._trailing = loop.call_later(delay, self._fire_trailing_update)

    def _fire_trailing_update(self) -> None:
        self._trailing = None
        self.spawn(self.run_update(), name="status-pin-trailing-update")

    # ------------------------------------------------------------------
    # Watch callbacks
    # ------------------------------------------------------------------

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task:
        """
        Fire-and-forget a coroutine; failures are logged at the task boundary.
        """
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("%s failed: %s", task.get_name(), exc, exc_info=exc)

    def _on_log_change(self) -> None:
        self.spawn(self.run_update(), name="status-pin-update")

    def _on_registry_settled(self) -> None:
        self.spawn(self.rediscover(), name="status-pin-rediscover")

    async def rediscover(self) -> None:
        """
        Re-read the registry after it changed.

        Same log file: refresh model/chat/capacity in place and update.
        New log file: replace the session, move the log watch and update.
        """
        try:
            session = self.discover()
        except StatusPinError as exc:
            logger.error("Session re-discovery failed: %s", exc)
            return

        current = self.session
        if current is not None and session.session_file == current.session_file:
            if not session.context_window:
                if session.model == current.model:
                    session.context_window = current.context_window
                else:
                    session.context_window = await self.resolve_context_window(session.model)
            current.refresh_from(session)
            await self.run_update()
            return

        if not session.context_window:
            session.context_window = await self.resolve_context_window(session.model)

        logger.info("Session changed: %s", session.session_file)
        self.session = session
        await self.log_watcher.attach(session.session_file)
        await self.run_update()

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def close_watchers(self) -> None:
        if self._trailing is not None:
            self._trailing.cancel()
            self._trailing = None
        await self.log_watcher.close()
        await self.registry_watcher.close()

    async def _cancel_tasks(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def stop(self) -> None:
        if self._trailing is not None:
            self._trailing.cancel()
            self._trailing = None
        # A cancelled rediscover can still finish attaching a log watch.
        await self._cancel_tasks()
        await self.close_watchers()
        await self._cancel_tasks()
        if self._owns_client:
            await self.http_client.aclose()


__all__ = ["StatusPinEngine"]
