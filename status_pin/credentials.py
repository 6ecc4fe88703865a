"""
Credential resolution for the Telegram bot and OpenRouter.

Bot token: TELEGRAM_BOT_TOKEN -> gateway event config -> openclaw.json.
OpenRouter key: OPENROUTER_API_KEY -> the agent's auth-profiles.json.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from .errors import ConfigurationError
from .logging_config import logger
from .settings import Settings


@dataclass(frozen=True)
class Credentials:
    bot_token: str
    openrouter_key: str


def _strip_json5_comments(raw: str) -> str:
    # Only strip // comments that start a line or follow whitespace so that
    # URLs inside string values survive.
    without_blocks = re.sub(r"/\*.*?\*/", "", raw, flags=re.S)
    return re.sub(r"(?m)(^|\s)//.*$", r"\1", without_blocks)


def _read_json(path: Path, *, json5: bool = False) -> Any | None:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return None
    if json5:
        raw = _strip_json5_comments(raw)
    try:
        return json.loads(raw)
    except ValueError as exc:
        logger.warning("Ignoring unparseable %s: %s", path, exc)
        return None


def _dig(data: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(data, Mapping):
            return None
        data = data.get(key)
    return data


def _bot_token_from_event(event: Optional[Mapping[str, Any]]) -> Optional[str]:
    token = _dig(event, "context", "cfg", "channels", "telegram", "botToken")
    return token if isinstance(token, str) and token else None


def _bot_token_from_config_file(path: Path) -> Optional[str]:
    token = _dig(_read_json(path, json5=True), "channels", "telegram", "botToken")
    return token if isinstance(token, str) and token else None


def _openrouter_key_from_profiles(path: Path) -> Optional[str]:
    data = _read_json(path)
    if not isinstance(data, Mapping):
        return None
    profiles = data.get("profiles", data)
    if not isinstance(profiles, Mapping):
        return None
    for profile in profiles.values():
        if (
            isinstance(profile, Mapping)
            and profile.get("provider") == "openrouter"
            and profile.get("key")
        ):
            return str(profile["key"])
    return None


def resolve_credentials(
    settings: Settings, event: Optional[Mapping[str, Any]] = None
) -> Credentials:
    bot_token = (
        settings.telegram_bot_token
        or _bot_token_from_event(event)
        or _bot_token_from_config_file(settings.openclaw_config_file)
    )
    openrouter_key = settings.openrouter_api_key or _openrouter_key_from_profiles(
        settings.auth_profiles_file
    )

    if not bot_token:
        raise ConfigurationError("TELEGRAM_BOT_TOKEN not found in environment or config")
    if not openrouter_key:
        raise ConfigurationError(
            "OPENROUTER_API_KEY not found in environment or auth profiles"
        )
    return Credentials(bot_token=bot_token, openrouter_key=openrouter_key)


__all__ = ["Credentials", "resolve_credentials"]
