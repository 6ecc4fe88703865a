"""
Minimal Telegram Bot API client for the three calls the pin needs.
"""

from __future__ import annotations

from typing import Any, Dict

import httpx

from .errors import TelegramAPIError
from .logging_config import logger

DEFAULT_API_BASE = "https://api.telegram.org"


class TelegramClient:
    """
    Thin wrapper over an httpx.AsyncClient bound to one bot token.

    API level failures raise TelegramAPIError; transport failures propagate
    as httpx.HTTPError so callers can tell them apart.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        bot_token: str,
        *,
        api_base: str = DEFAULT_API_BASE,
    ) -> None:
        self._client = client
        self._bot_token = bot_token
        self._api_base = api_base.rstrip("/")

    async def call(self, method: str, body: Dict[str, Any]) -> Any:
        # The URL embeds the bot token; never log it.
        url = f"{self._api_base}/bot{self._bot_token}/{method}"
        resp = await self._client.post(url, json=body)

        try:
            payload = resp.json()
        except ValueError:
            raise TelegramAPIError(
                method, resp.status_code, resp.text[:200] or f"HTTP {resp.status_code}"
            ) from None

        if not isinstance(payload, dict) or not payload.get("ok"):
            error_code = None
            description = ""
            if isinstance(payload, dict):
                error_code = payload.get("error_code")
                description = payload.get("description") or ""
            raise TelegramAPIError(
                method,
                error_code if error_code is not None else resp.status_code,
                description or f"HTTP {resp.status_code}",
            )

        logger.debug("telegram: %s ok", method)
        return payload.get("result")

    async def send_message(self, chat_id: str, text: str) -> Dict[str, Any]:
        return await self.call(
            "sendMessage",
            {
                "chat_id": chat_id,
                "text": text,
                "parse_mode": "HTML",
                "disable_notification": True,
            },
        )

    async def edit_message_text(self, chat_id: str, message_id: int, text: str) -> Any:
        return await self.call(
            "editMessageText",
            {
                "chat_id": chat_id,
                "message_id": message_id,
                "text": text,
                "parse_mode": "HTML",
            },
        )

    async def pin_chat_message(self, chat_id: str, message_id: int) -> Any:
        return await self.call(
            "pinChatMessage",
            {
                "chat_id": chat_id,
                "message_id": message_id,
                "disable_notification": True,
            },
        )


__all__ = ["TelegramClient"]
