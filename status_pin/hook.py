"""
OpenClaw gateway hook entry point.

The gateway calls ``handle_event`` for lifecycle events. On
``gateway:startup`` the engine is started in the background so gateway
startup is never blocked; a previous engine from an earlier invocation in
the same process is stopped first.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Mapping, Optional

from .engine import StatusPinEngine
from .errors import StatusPinError
from .logging_config import logger

_active_engine: Optional[StatusPinEngine] = None
_start_task: Optional[asyncio.Task] = None


async def _start(
    event: Mapping[str, Any], engine_factory: Callable[[], StatusPinEngine]
) -> Optional[StatusPinEngine]:
    global _active_engine
    if _active_engine is not None:
        await _active_engine.stop()
        _active_engine = None

    engine = engine_factory()
    try:
        await engine.start(event)
    except StatusPinError as exc:
        logger.error("Fatal: %s", exc)
        await engine.stop()
        return None
    except Exception as exc:
        logger.exception("Fatal: %s", exc)
        await engine.stop()
        return None
    _active_engine = engine
    return engine


def handle_event(
    event: Mapping[str, Any],
    *,
    engine_factory: Callable[[], StatusPinEngine] = StatusPinEngine.from_settings,
) -> Optional[asyncio.Task]:
    global _start_task
    if event.get("type") != "gateway" or event.get("action") != "startup":
        return None
    _start_task = asyncio.get_running_loop().create_task(
        _start(event, engine_factory), name="status-pin-start"
    )
    return _start_task


def active_engine() -> Optional[StatusPinEngine]:
    return _active_engine


__all__ = ["active_engine", "handle_event"]
