"""
Keep exactly one pinned status message per chat.

State machine over the persisted PinRecord:

- NoPin (no record, or record for another chat): send, pin, persist.
- Pinned: edit in place. "not modified" counts as success.
- Pinned + transient edit failure (network, rate limit, any error that does
  not prove the message is gone): keep the record, retry on the next cycle.
- Pinned + "message gone": Recreating, which behaves as NoPin.

A new message is only created when the record is absent, for another chat,
or confirmed unreachable; never on a transient failure.
"""

from __future__ import annotations

import httpx

from .errors import PinTargetGoneError, TelegramAPIError, TransientPublishError
from .logging_config import logger
from .pin_store import PinStateStore
from .schemas import PinRecord, SessionDescriptor
from .telegram import TelegramClient

# Bot API descriptions meaning the stored message can no longer be edited.
_GONE_MARKERS = (
    "message to edit not found",
    "message_id_invalid",
    "message can't be edited",
)


def _is_gone(exc: TelegramAPIError) -> bool:
    if exc.error_code != 400:
        return False
    description = exc.description.lower()
    return any(marker in description for marker in _GONE_MARKERS)


class Publisher:
    def __init__(self, telegram: TelegramClient, store: PinStateStore) -> None:
        self.telegram = telegram
        self.store = store

    async def ensure_pin(self, session: SessionDescriptor, text: str) -> int:
        """
        Make the pinned message show ``text`` and return its message id.
        """
        record = self.store.load()

        if record is not None and record.chat_id == session.chat_id:
            try:
                await self._edit(record, text)
                return record.message_id
            except TransientPublishError as exc:
                logger.warning("Edit failed, keeping pinned message %s: %s", record.message_id, exc)
                return record.message_id
            except PinTargetGoneError as exc:
                logger.warning("Pinned message gone, creating new one: %s", exc)

        return await self._create(session, text)

    async def _edit(self, record: PinRecord, text: str) -> None:
        try:
            await self.telegram.edit_message_text(record.chat_id, record.message_id, text)
        except TelegramAPIError as exc:
            if exc.is_not_modified:
                logger.debug("Pinned message %s already up to date", record.message_id)
                return
            if _is_gone(exc):
                raise PinTargetGoneError(str(exc)) from exc
            raise TransientPublishError(str(exc)) from exc
        except httpx.HTTPError as exc:
            raise TransientPublishError(f"editMessageText transport error: {exc}") from exc

    async def _create(self, session: SessionDescriptor, text: str) -> int:
        message = await self.telegram.send_message(session.chat_id, text)
        message_id = int(message["message_id"])

        try:
            await self.telegram.pin_chat_message(session.chat_id, message_id)
        except (TelegramAPIError, httpx.HTTPError) as exc:
            logger.warning("Pin failed (message still sent): %s", exc)

        self.store.save(
            PinRecord(
                message_id=message_id,
                chat_id=session.chat_id,
                session_file=session.session_file,
            )
        )
        logger.info("Created status message %s in chat %s", message_id, session.chat_id)
        return message_id


__all__ = ["Publisher"]
