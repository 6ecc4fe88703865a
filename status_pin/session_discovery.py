"""
Resolve the active session from the OpenClaw session registry.

The registry (``agents/<agent>/sessions/sessions.json``) maps keys shaped
like ``agent:<id>:<suffix>`` to entries such as::

    {
        "sessionFile": "/home/me/.openclaw/agents/main/sessions/abc.jsonl",
        "model": "anthropic/claude-sonnet-4",
        "deliveryContext": {"to": "telegram:123456789"}
    }
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Mapping

from .errors import ConfigurationError, SessionNotFoundError
from .schemas import SessionDescriptor


def load_registry(path: str | Path) -> dict[str, Any]:
    """
    Read and parse the session registry.

    A missing or half-written file is reported as SessionNotFoundError so
    that callers treat it like "no session yet" and retry on the next change.
    """
    registry_path = Path(path)
    try:
        raw = registry_path.read_bytes().decode("utf-8")
    except FileNotFoundError as exc:
        raise SessionNotFoundError(f"Session registry {registry_path} does not exist") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise SessionNotFoundError(
            f"Session registry {registry_path} could not be read: {exc}"
        ) from exc

    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise SessionNotFoundError(
            f"Session registry {registry_path} is not valid JSON: {exc}"
        ) from exc

    if not isinstance(data, dict):
        raise SessionNotFoundError(f"Session registry {registry_path} is not a JSON object")
    return data


def _chat_id_from_entry(entry: Mapping[str, Any], channel: str) -> str | None:
    delivery = entry.get("deliveryContext")
    if not isinstance(delivery, dict):
        return None
    target = delivery.get("to")
    if not isinstance(target, str):
        return None
    match = re.match(rf"^{re.escape(channel)}:(\d+)$", target)
    if match:
        return match.group(1)
    return None


def discover_session(
    registry: Mapping[str, Any],
    *,
    agent_id: str,
    chat_id_override: str | None = None,
    context_window_override: int | None = None,
    capacity_cache: Mapping[str, int] | None = None,
    channel: str = "telegram",
) -> SessionDescriptor:
    """
    Find the entry for ``agent:<agent_id>:*`` and turn it into a descriptor.

    Context window resolution: explicit override, then the model capacity
    cache, then None (the engine resolves it remotely before first use).
    """
    prefix = f"agent:{agent_id}:"

    for key, entry in registry.items():
        if not key.startswith(prefix) or not isinstance(entry, dict):
            continue

        session_file = entry.get("sessionFile")
        if not session_file:
            raise ConfigurationError(f"No sessionFile found for {key}")

        model = entry.get("model") or "unknown"

        chat_id = chat_id_override or _chat_id_from_entry(entry, channel)
        if not chat_id:
            raise ConfigurationError(
                f"Could not determine {channel} chat ID from session or STATUS_PIN_CHAT_ID"
            )

        context_window = context_window_override or None
        if context_window is None and capacity_cache is not None:
            context_window = capacity_cache.get(model)

        return SessionDescriptor(
            session_file=str(session_file),
            model=str(model),
            chat_id=str(chat_id),
            context_window=context_window,
        )

    raise SessionNotFoundError(f"No session found matching agent:{agent_id}:*")


def discover_session_from_file(path: str | Path, **kwargs: Any) -> SessionDescriptor:
    return discover_session(load_registry(path), **kwargs)


__all__ = ["discover_session", "discover_session_from_file", "load_registry"]
